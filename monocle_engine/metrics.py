"""Productivity summary metrics over daily stats."""

from __future__ import annotations

import numpy as np

from monocle_engine.schema import DailyStats


def summarize_daily_stats(stats: list[DailyStats]) -> dict:
    """Compute average focus hours, average context switches, completed total and focus trend."""

    if not stats:
        return {
            "avg_focus_hours": 0.0,
            "avg_context_switches": 0.0,
            "total_completed_tasks": 0,
            "focus_trend_minutes_per_day": 0.0,
            "days": 0,
        }

    ordered = sorted(stats, key=lambda s: s.date)
    focus = np.asarray([s.focus_time for s in ordered], dtype=float)
    switches = np.asarray([s.context_switches for s in ordered], dtype=float)
    completed = np.asarray([s.completed_tasks for s in ordered], dtype=int)

    trend = 0.0
    if len(ordered) >= 2:
        offsets = np.asarray([(s.date - ordered[0].date).days for s in ordered], dtype=float)
        if np.ptp(offsets) > 0:
            trend = float(np.polyfit(offsets, focus, deg=1)[0])

    return {
        "avg_focus_hours": float(focus.mean() / 60.0),
        "avg_context_switches": float(switches.mean()),
        "total_completed_tasks": int(completed.sum()),
        "focus_trend_minutes_per_day": trend,
        "days": len(ordered),
    }
