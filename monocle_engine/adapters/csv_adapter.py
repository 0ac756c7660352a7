"""CSV adapter for work threads and activities."""

from __future__ import annotations

import csv
import json

from monocle_engine.adapters.records import activity_from_record, thread_from_record
from monocle_engine.schema import Activity, WorkThread


def _rows(file_path: str) -> list[tuple[int, dict]]:
    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []
        return list(enumerate(reader, start=2))


def parse_threads(file_path: str) -> list[WorkThread]:
    """Parse a CSV file of threads; ``tags`` are semicolon separated."""

    return [thread_from_record(row, f"Row {row_number}") for row_number, row in _rows(file_path)]


def parse_activities(file_path: str) -> list[Activity]:
    """Parse a CSV file of activity log entries; ``metadata`` holds a JSON object."""

    activities = []
    for row_number, row in _rows(file_path):
        metadata_raw = row.get("metadata")
        try:
            row["metadata"] = json.loads(metadata_raw) if metadata_raw else {}
        except json.JSONDecodeError as exc:
            raise ValueError(f"Row {row_number}: malformed metadata") from exc
        activities.append(activity_from_record(row, f"Row {row_number}"))
    return activities
