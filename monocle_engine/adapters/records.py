"""Conversion of loosely typed records into schema objects."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from monocle_engine.schema import ACTIVITY_TYPES, PRIORITIES, Activity, WorkThread, ensure_aware, new_id

_THREAD_REQUIRED = ("id", "user_id", "title", "priority", "created_at")
_ACTIVITY_REQUIRED = ("user_id", "type", "timestamp")
_TRUE_VALUES = {"1", "true", "yes", "y"}


def _missing(record: dict, required: tuple[str, ...]) -> list[str]:
    return [name for name in required if record.get(name) in (None, "")]


def _timestamp(raw: Any, label: str, name: str) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    try:
        return ensure_aware(datetime.fromisoformat(str(raw)))
    except ValueError as exc:
        raise ValueError(f"{label}: malformed {name}") from exc


def _flag(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in _TRUE_VALUES


def thread_from_record(record: dict, label: str) -> WorkThread:
    """Build a WorkThread; ``label`` prefixes error messages (e.g. ``"Row 3"``)."""

    missing = _missing(record, _THREAD_REQUIRED)
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    priority = str(record["priority"]).strip()
    if priority not in PRIORITIES:
        raise ValueError(f"{label}: invalid priority '{priority}'")

    progress_raw = record.get("progress")
    try:
        progress = int(float(progress_raw)) if progress_raw not in (None, "") else 0
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label}: invalid progress") from exc
    if not 0 <= progress <= 100:
        raise ValueError(f"{label}: progress must be between 0 and 100")

    created_at = _timestamp(record["created_at"], label, "created_at")
    tags_raw = record.get("tags") or []
    tags = [t.strip() for t in tags_raw.split(";") if t.strip()] if isinstance(tags_raw, str) else list(tags_raw)

    return WorkThread(
        id=str(record["id"]).strip(),
        user_id=str(record["user_id"]).strip(),
        title=str(record["title"]).strip(),
        priority=priority,
        progress=progress,
        deadline=_timestamp(record.get("deadline"), label, "deadline"),
        last_activity=_timestamp(record.get("last_activity"), label, "last_activity") or created_at,
        created_at=created_at,
        is_ignored=_flag(record.get("is_ignored")),
        description=record.get("description") or None,
        tags=tags,
    )


def activity_from_record(record: dict, label: str) -> Activity:
    missing = _missing(record, _ACTIVITY_REQUIRED)
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    activity_type = str(record["type"]).strip()
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"{label}: invalid activity type '{activity_type}'")

    metadata = record.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError(f"{label}: metadata must be an object")

    return Activity(
        id=str(record.get("id") or new_id()).strip(),
        user_id=str(record["user_id"]).strip(),
        type=activity_type,
        timestamp=_timestamp(record["timestamp"], label, "timestamp"),
        metadata=metadata,
    )
