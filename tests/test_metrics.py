from datetime import date

import pytest

from monocle_engine.metrics import summarize_daily_stats
from monocle_engine.schema import DailyStats


def test_summary_of_empty_stats():
    summary = summarize_daily_stats([])
    assert summary["days"] == 0
    assert summary["avg_focus_hours"] == 0.0


def test_summary_averages_and_trend():
    stats = [
        DailyStats("u1", date(2025, 3, 3), focus_time=60, context_switches=4, completed_tasks=1),
        DailyStats("u1", date(2025, 3, 1), focus_time=120, context_switches=2, completed_tasks=2),
        DailyStats("u1", date(2025, 3, 2), focus_time=90, context_switches=3, completed_tasks=0),
    ]
    summary = summarize_daily_stats(stats)

    assert summary["avg_focus_hours"] == pytest.approx(1.5)
    assert summary["avg_context_switches"] == pytest.approx(3.0)
    assert summary["total_completed_tasks"] == 3
    assert summary["focus_trend_minutes_per_day"] == pytest.approx(-30.0)


def test_single_day_has_flat_trend():
    summary = summarize_daily_stats([DailyStats("u1", date(2025, 3, 1), focus_time=45)])
    assert summary["focus_trend_minutes_per_day"] == 0.0
    assert summary["days"] == 1
