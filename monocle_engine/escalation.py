"""Deadline bands and level thresholds shared by the scorers."""

from __future__ import annotations

# (upper bound in days, points); first matching band wins.
DEADLINE_BANDS: tuple[tuple[float, int], ...] = ((1, 30), (3, 20), (7, 10))

# (exclusive upper bound, level) in ascending order.
LOAD_LEVEL_THRESHOLDS: tuple[tuple[float, str], ...] = ((25, "low"), (50, "medium"), (75, "high"))


def deadline_points(days_until_deadline: float | None) -> int:
    """Return the deadline-proximity points for the tightest matching band."""

    if days_until_deadline is None:
        return 0
    for upper, points in DEADLINE_BANDS:
        if days_until_deadline <= upper:
            return points
    return 0


def deadline_weight(days_until_deadline: int) -> str:
    """Factor weight for a deadline that is the given whole number of days away."""

    return "high" if days_until_deadline <= 2 else "medium"


def ignored_severity(days_until_deadline: int) -> str:
    return "critical" if days_until_deadline <= 1 else "warning"


def load_level(score: float) -> str:
    """Map a 0-100 load score onto low / medium / high / critical."""

    for upper, level in LOAD_LEVEL_THRESHOLDS:
        if score < upper:
            return level
    return "critical"
