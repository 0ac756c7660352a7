"""Workload feature extraction from threads and the activity log."""

from __future__ import annotations

from datetime import datetime

from monocle_engine.schema import Activity, LoadFactors, WorkThread


def work_duration_hours(activities: list[Activity], now: datetime) -> float:
    """Hours since the earliest of the given activities that happened today.

    Only the activities passed in are considered; callers hand over the
    recent-activity window, so sessions that started before the window are
    not visible here.
    """

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    today = [activity.timestamp for activity in activities if activity.timestamp >= today_start]
    if not today:
        return 0.0
    return (now - min(today)).total_seconds() / 3600.0


def extract_load_factors(
    active_threads: list[WorkThread],
    recent_activities: list[Activity],
    upcoming_deadlines: list[WorkThread],
    now: datetime,
) -> LoadFactors:
    """Extract the four cognitive-load factors from a user's data snapshot."""

    context_switches = sum(1 for activity in recent_activities if activity.type == "context-switch")

    return LoadFactors(
        active_threads=len(active_threads),
        switching_frequency=context_switches,
        work_duration=work_duration_hours(recent_activities, now),
        pending_deadlines=len(upcoming_deadlines),
    )
