"""Core data schema for work threads, activities and intelligence snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

PRIORITIES = ("high", "medium", "low")
ACTIVITY_TYPES = ("thread-created", "thread-updated", "item-added", "context-switch", "focus-session")
LOAD_LEVELS = ("low", "medium", "high", "critical")
FACTOR_WEIGHTS = ("high", "medium", "low")
INSIGHT_TYPES = ("attention-leak", "ignored-work", "overload", "momentum-drift", "deadline-risk")
SEVERITIES = ("info", "warning", "critical")


def new_id() -> str:
    return uuid4().hex


def ensure_aware(value: datetime) -> datetime:
    """Attach the local timezone to naive datetimes."""

    if value.tzinfo is None:
        return value.astimezone()
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class WorkThread:
    """A group of related work items sharing a goal and deadline."""

    id: str
    user_id: str
    title: str
    priority: str
    progress: int
    last_activity: datetime
    created_at: datetime
    deadline: Optional[datetime] = None
    is_ignored: bool = False
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    item_ids: list[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "progress": self.progress,
            "deadline": _iso(self.deadline),
            "lastActivity": _iso(self.last_activity),
            "isIgnored": self.is_ignored,
            "tags": list(self.tags),
            "itemIds": list(self.item_ids),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at or self.created_at),
        }


@dataclass(frozen=True)
class Activity:
    """Append-only activity log entry."""

    id: str
    user_id: str
    type: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "timestamp": _iso(self.timestamp),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class LoadFactors:
    active_threads: int
    switching_frequency: int
    work_duration: float
    pending_deadlines: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeThreads": self.active_threads,
            "switchingFrequency": self.switching_frequency,
            "workDuration": self.work_duration,
            "pendingDeadlines": self.pending_deadlines,
        }


@dataclass(frozen=True)
class CognitiveLoadState:
    """Point-in-time cognitive load snapshot. A new one is written per calculation."""

    id: str
    user_id: str
    level: str
    score: float
    factors: LoadFactors
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "level": self.level,
            "score": self.score,
            "factors": self.factors.to_dict(),
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class PriorityFactor:
    label: str
    weight: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "weight": self.weight, "description": self.description}


@dataclass(frozen=True)
class PriorityReasoning:
    title: str
    description: str
    factors: tuple[PriorityFactor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "factors": [factor.to_dict() for factor in self.factors],
        }


@dataclass(frozen=True)
class PriorityRecommendation:
    """Ranked suggestion of which thread to focus on next."""

    id: str
    user_id: str
    thread_id: str
    score: int
    reasoning: PriorityReasoning
    generated_at: datetime
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "threadId": self.thread_id,
            "score": self.score,
            "reasoning": self.reasoning.to_dict(),
            "generatedAt": _iso(self.generated_at),
            "isActive": self.is_active,
        }


@dataclass
class WorkInsight:
    """Generated observation about work patterns."""

    id: str
    user_id: str
    type: str
    title: str
    description: str
    severity: str
    detected_at: datetime
    related_thread_ids: list[str] = field(default_factory=list)
    action_suggestion: Optional[str] = None
    is_active: bool = True
    is_dismissed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "relatedThreadIds": list(self.related_thread_ids),
            "actionSuggestion": self.action_suggestion,
            "detectedAt": _iso(self.detected_at),
            "isActive": self.is_active,
            "isDismissed": self.is_dismissed,
        }


@dataclass
class DailyStats:
    """Per-user, per-day counters. focus_time is in minutes."""

    user_id: str
    date: date
    focus_time: int = 0
    context_switches: int = 0
    completed_tasks: int = 0
    active_threads: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "date": self.date.isoformat(),
            "focusTime": self.focus_time,
            "contextSwitches": self.context_switches,
            "completedTasks": self.completed_tasks,
            "activeThreads": self.active_threads,
        }
