"""Additive priority scoring for work threads."""

from __future__ import annotations

from datetime import datetime

from monocle_engine.escalation import deadline_points
from monocle_engine.schema import WorkThread

PRIORITY_WEIGHTS = {"high": 40, "medium": 25, "low": 10}
RECOMMENDATION_THRESHOLD = 50

_SECONDS_PER_DAY = 60 * 60 * 24


def days_until(deadline: datetime | None, now: datetime) -> float | None:
    """Fractional days from now until the deadline (negative once overdue)."""

    if deadline is None:
        return None
    return (deadline - now).total_seconds() / _SECONDS_PER_DAY


def priority_score(thread: WorkThread, now: datetime, return_components: bool = False):
    """Compute a bounded 0-100 urgency score for one thread snapshot."""

    days = days_until(thread.deadline, now)

    base = PRIORITY_WEIGHTS.get(thread.priority, PRIORITY_WEIGHTS["low"])
    deadline_urgency = deadline_points(days)
    stalled_bonus = 15 if thread.priority == "high" and thread.progress < 50 else 0
    ignored_bonus = 25 if thread.is_ignored and days is not None and days <= 3 else 0
    completion_bonus = 10 if 70 <= thread.progress < 100 else 0

    score = min(100, base + deadline_urgency + stalled_bonus + ignored_bonus + completion_bonus)

    if return_components:
        return {
            "score": score,
            "base": base,
            "deadline_urgency": deadline_urgency,
            "stalled_bonus": stalled_bonus,
            "ignored_bonus": ignored_bonus,
            "completion_bonus": completion_bonus,
        }

    return score


def qualifies(score: int) -> bool:
    return score >= RECOMMENDATION_THRESHOLD


def rank_threads(threads: list[WorkThread], now: datetime) -> list[tuple[WorkThread, int]]:
    """Return qualifying threads with their scores, highest first.

    Ties keep the input order.
    """

    scored = [(thread, priority_score(thread, now)) for thread in threads]
    return sorted((pair for pair in scored if qualifies(pair[1])), key=lambda pair: pair[1], reverse=True)
