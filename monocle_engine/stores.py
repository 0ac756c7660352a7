"""Storage interfaces and an in-memory implementation."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Optional, Protocol

from monocle_engine.errors import NotFoundError
from monocle_engine.schema import (
    Activity,
    CognitiveLoadState,
    DailyStats,
    PriorityRecommendation,
    WorkInsight,
    WorkThread,
)


class ThreadStore(Protocol):
    def get_thread(self, thread_id: str) -> Optional[WorkThread]: ...

    def get_user_threads(self, user_id: str) -> list[WorkThread]: ...

    def get_active_threads(self, user_id: str) -> list[WorkThread]: ...

    def get_threads_with_deadline_within(self, user_id: str, days: int, now: datetime) -> list[WorkThread]: ...

    def save_thread(self, thread: WorkThread) -> WorkThread: ...

    def delete_thread(self, thread_id: str) -> None: ...


class ActivityStore(Protocol):
    def record_activity(self, activity: Activity) -> Activity: ...

    def get_activities_since(self, user_id: str, since: datetime) -> list[Activity]: ...


class SnapshotStore(Protocol):
    def save_cognitive_load(self, state: CognitiveLoadState) -> CognitiveLoadState: ...

    def get_latest_cognitive_load(self, user_id: str) -> Optional[CognitiveLoadState]: ...

    def save_recommendation(self, recommendation: PriorityRecommendation) -> PriorityRecommendation: ...

    def get_active_recommendations(self, user_id: str) -> list[PriorityRecommendation]: ...


class InsightStore(Protocol):
    def save_insight(self, insight: WorkInsight) -> WorkInsight: ...

    def get_active_insights(self, user_id: str) -> list[WorkInsight]: ...

    def dismiss_insight(self, insight_id: str) -> None: ...

    def delete_insights_before(self, user_id: str, cutoff: datetime) -> int: ...


class DailyStatsStore(Protocol):
    def get_daily_stats(self, user_id: str, day: date) -> Optional[DailyStats]: ...

    def save_daily_stats(self, stats: DailyStats) -> DailyStats: ...

    def increment_daily_stats(self, user_id: str, day: date, **deltas: int) -> DailyStats: ...

    def set_daily_stats(self, user_id: str, day: date, **values: int) -> DailyStats: ...

    def get_daily_stats_since(self, user_id: str, start: date) -> list[DailyStats]: ...


class Store(ThreadStore, ActivityStore, SnapshotStore, InsightStore, DailyStatsStore, Protocol):
    """Everything the intelligence service reads and writes."""


class InMemoryStore:
    """Dictionary-backed store; orderings match the SQLite store."""

    def __init__(self) -> None:
        self.threads: dict[str, WorkThread] = {}
        self.activities: list[Activity] = []
        self.loads: list[CognitiveLoadState] = []
        self.recommendations: list[PriorityRecommendation] = []
        self.insights: dict[str, WorkInsight] = {}
        self.daily_stats: dict[tuple[str, date], DailyStats] = {}
        self._stats_lock = threading.Lock()

    # threads

    def get_thread(self, thread_id: str) -> Optional[WorkThread]:
        return self.threads.get(thread_id)

    def get_user_threads(self, user_id: str) -> list[WorkThread]:
        threads = [t for t in self.threads.values() if t.user_id == user_id]
        return sorted(threads, key=lambda t: t.last_activity, reverse=True)

    def get_active_threads(self, user_id: str) -> list[WorkThread]:
        return [t for t in self.get_user_threads(user_id) if not t.is_ignored]

    def get_threads_with_deadline_within(self, user_id: str, days: int, now: datetime) -> list[WorkThread]:
        horizon = now + timedelta(days=days)
        threads = [
            t
            for t in self.threads.values()
            if t.user_id == user_id and t.deadline is not None and now <= t.deadline <= horizon
        ]
        return sorted(threads, key=lambda t: t.deadline)

    def save_thread(self, thread: WorkThread) -> WorkThread:
        self.threads[thread.id] = thread
        return thread

    def delete_thread(self, thread_id: str) -> None:
        if self.threads.pop(thread_id, None) is None:
            raise NotFoundError("thread", thread_id)

    # activities

    def record_activity(self, activity: Activity) -> Activity:
        self.activities.append(activity)
        return activity

    def get_activities_since(self, user_id: str, since: datetime) -> list[Activity]:
        found = [a for a in self.activities if a.user_id == user_id and a.timestamp >= since]
        return sorted(found, key=lambda a: a.timestamp, reverse=True)

    # snapshots

    def save_cognitive_load(self, state: CognitiveLoadState) -> CognitiveLoadState:
        self.loads.append(state)
        return state

    def get_latest_cognitive_load(self, user_id: str) -> Optional[CognitiveLoadState]:
        mine = [s for s in self.loads if s.user_id == user_id]
        return max(mine, key=lambda s: s.timestamp, default=None)

    def save_recommendation(self, recommendation: PriorityRecommendation) -> PriorityRecommendation:
        self.recommendations.append(recommendation)
        return recommendation

    def get_active_recommendations(self, user_id: str) -> list[PriorityRecommendation]:
        mine = [r for r in self.recommendations if r.user_id == user_id and r.is_active]
        return sorted(mine, key=lambda r: r.score, reverse=True)

    # insights

    def save_insight(self, insight: WorkInsight) -> WorkInsight:
        self.insights[insight.id] = insight
        return insight

    def get_active_insights(self, user_id: str) -> list[WorkInsight]:
        mine = [i for i in self.insights.values() if i.user_id == user_id and i.is_active and not i.is_dismissed]
        return sorted(mine, key=lambda i: i.detected_at, reverse=True)

    def dismiss_insight(self, insight_id: str) -> None:
        insight = self.insights.get(insight_id)
        if insight is None:
            raise NotFoundError("insight", insight_id)
        self.insights[insight_id] = replace(insight, is_dismissed=True)

    def delete_insights_before(self, user_id: str, cutoff: datetime) -> int:
        stale = [i.id for i in self.insights.values() if i.user_id == user_id and i.detected_at < cutoff]
        for insight_id in stale:
            del self.insights[insight_id]
        return len(stale)

    # daily stats

    def get_daily_stats(self, user_id: str, day: date) -> Optional[DailyStats]:
        return self.daily_stats.get((user_id, day))

    def save_daily_stats(self, stats: DailyStats) -> DailyStats:
        with self._stats_lock:
            self.daily_stats[(stats.user_id, stats.date)] = stats
        return stats

    def get_daily_stats_since(self, user_id: str, start: date) -> list[DailyStats]:
        mine = [s for (uid, day), s in self.daily_stats.items() if uid == user_id and day >= start]
        return sorted(mine, key=lambda s: s.date)

    def increment_daily_stats(self, user_id: str, day: date, **deltas: int) -> DailyStats:
        with self._stats_lock:
            current = self.daily_stats.get((user_id, day)) or DailyStats(user_id=user_id, date=day)
            updated = replace(current, **{name: getattr(current, name) + delta for name, delta in deltas.items()})
            self.daily_stats[(user_id, day)] = updated
            return updated

    def set_daily_stats(self, user_id: str, day: date, **values: int) -> DailyStats:
        with self._stats_lock:
            current = self.daily_stats.get((user_id, day)) or DailyStats(user_id=user_id, date=day)
            updated = replace(current, **values)
            self.daily_stats[(user_id, day)] = updated
            return updated
