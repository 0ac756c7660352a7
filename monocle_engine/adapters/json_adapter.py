"""JSON adapter for work threads and activities."""

from __future__ import annotations

import json

from monocle_engine.adapters.records import activity_from_record, thread_from_record
from monocle_engine.schema import Activity, WorkThread


def _items(file_path: str) -> list:
    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of objects")
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"Item {index}: expected an object")
    return payload


def parse_threads(file_path: str) -> list[WorkThread]:
    """Parse a JSON list of thread objects."""

    return [thread_from_record(item, f"Item {i}") for i, item in enumerate(_items(file_path), start=1)]


def parse_activities(file_path: str) -> list[Activity]:
    """Parse a JSON list of activity objects."""

    return [activity_from_record(item, f"Item {i}") for i, item in enumerate(_items(file_path), start=1)]
