"""Cognitive load scoring."""

from __future__ import annotations

from datetime import datetime, timedelta

from monocle_engine.escalation import load_level
from monocle_engine.features import extract_load_factors
from monocle_engine.schema import Activity, CognitiveLoadState, LoadFactors, WorkThread, new_id

ACTIVITY_WINDOW = timedelta(hours=1)
DEADLINE_HORIZON_DAYS = 7


def load_score(factors: LoadFactors, return_components: bool = False):
    """Weighted sum of the load factors, each term capped before summing."""

    threads_term = min(30, factors.active_threads * 5)
    switching_term = min(30, factors.switching_frequency * 3)
    duration_term = min(20, factors.work_duration * 2.5)
    deadlines_term = min(20, factors.pending_deadlines * 4)

    bounded = max(0.0, min(100.0, float(threads_term + switching_term + duration_term + deadlines_term)))

    if return_components:
        return {
            "score": bounded,
            "active_threads": threads_term,
            "switching": switching_term,
            "work_duration": duration_term,
            "pending_deadlines": deadlines_term,
        }

    return bounded


def calculate_cognitive_load(
    user_id: str,
    active_threads: list[WorkThread],
    recent_activities: list[Activity],
    upcoming_deadlines: list[WorkThread],
    now: datetime,
) -> CognitiveLoadState:
    """Build a fresh load snapshot for one user."""

    factors = extract_load_factors(active_threads, recent_activities, upcoming_deadlines, now)
    score = load_score(factors)
    return CognitiveLoadState(
        id=new_id(),
        user_id=user_id,
        level=load_level(score),
        score=score,
        factors=factors,
        timestamp=now,
    )
