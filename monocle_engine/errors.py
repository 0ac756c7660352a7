"""Exception types raised by the engine."""

from __future__ import annotations


class MonocleError(Exception):
    """Base class for engine errors."""


class TextGenerationError(MonocleError):
    """Every configured text provider failed or returned nothing usable."""


class StorageError(MonocleError):
    """A store read or write failed."""


class NotFoundError(MonocleError):
    """The requested record does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidInputError(MonocleError, ValueError):
    """A caller supplied a value the engine rejects."""
