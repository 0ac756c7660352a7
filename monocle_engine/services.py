"""Intelligence service: wires stores, calculators and the text generator together."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from monocle_engine.cognitive_load import ACTIVITY_WINDOW, DEADLINE_HORIZON_DAYS, calculate_cognitive_load
from monocle_engine.errors import InvalidInputError, NotFoundError
from monocle_engine.explain import explain_priority
from monocle_engine.insights import detect_insights
from monocle_engine.metrics import summarize_daily_stats
from monocle_engine.schema import (
    ACTIVITY_TYPES,
    PRIORITIES,
    Activity,
    CognitiveLoadState,
    DailyStats,
    PriorityRecommendation,
    WorkInsight,
    WorkThread,
    ensure_aware,
    new_id,
)
from monocle_engine.scoring import rank_threads
from monocle_engine.stores import Store
from monocle_engine.text_generation import APOLOGY, TextGenerator

logger = logging.getLogger(__name__)

_STATS_FIELDS = ("focus_time", "context_switches", "completed_tasks", "active_threads")
_THREAD_UPDATE_FIELDS = ("title", "description", "priority", "deadline", "tags")

CHAT_ACKNOWLEDGEMENT = (
    "Understood. I am Monocle AI, ready to assist you with your work intelligence. How can I help you today?"
)


def local_now() -> datetime:
    return datetime.now().astimezone()


class IntelligenceService:
    """Per-user operations behind the REST API.

    Collaborators are passed in so each app or test can supply its own store,
    text generator and clock.
    """

    def __init__(
        self,
        store: Store,
        generator: Optional[TextGenerator] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.store = store
        self.generator = generator
        self.clock = clock

    # recommendations

    def generate_recommendations(self, user_id: str) -> list[PriorityRecommendation]:
        now = self.clock()
        threads = self.store.get_active_threads(user_id)
        recommendations = []
        for thread, score in rank_threads(threads, now):
            reasoning, source = explain_priority(thread, self.generator, now)
            recommendation = PriorityRecommendation(
                id=new_id(),
                user_id=user_id,
                thread_id=thread.id,
                score=score,
                reasoning=reasoning,
                generated_at=now,
            )
            recommendations.append(self.store.save_recommendation(recommendation))
            logger.debug("Recommended thread %s with score %d (%s reasoning)", thread.id, score, source)
        logger.info("Generated %d recommendations for user %s", len(recommendations), user_id)
        return recommendations

    def get_active_recommendations(self, user_id: str) -> list[PriorityRecommendation]:
        return self.store.get_active_recommendations(user_id)

    # cognitive load

    def calculate_cognitive_load(self, user_id: str) -> CognitiveLoadState:
        now = self.clock()
        state = calculate_cognitive_load(
            user_id,
            active_threads=self.store.get_active_threads(user_id),
            recent_activities=self.store.get_activities_since(user_id, now - ACTIVITY_WINDOW),
            upcoming_deadlines=self.store.get_threads_with_deadline_within(user_id, DEADLINE_HORIZON_DAYS, now),
            now=now,
        )
        logger.info("Cognitive load for user %s: %.1f (%s)", user_id, state.score, state.level)
        return self.store.save_cognitive_load(state)

    def get_latest_cognitive_load(self, user_id: str) -> Optional[CognitiveLoadState]:
        return self.store.get_latest_cognitive_load(user_id)

    # insights

    def generate_insights(self, user_id: str) -> list[WorkInsight]:
        now = self.clock()
        threads = self.store.get_user_threads(user_id)
        insights = [self.store.save_insight(insight) for insight in detect_insights(user_id, threads, self.generator, now)]
        logger.info("Generated %d insights for user %s", len(insights), user_id)
        return insights

    def get_active_insights(self, user_id: str) -> list[WorkInsight]:
        return self.store.get_active_insights(user_id)

    def dismiss_insight(self, insight_id: str) -> None:
        self.store.dismiss_insight(insight_id)

    def delete_old_insights(self, user_id: str, days_old: int = 30) -> int:
        cutoff = self.clock() - timedelta(days=days_old)
        return self.store.delete_insights_before(user_id, cutoff)

    # activity and daily stats

    def record_activity(
        self, user_id: str, activity_type: str, metadata: Optional[dict[str, Any]] = None
    ) -> Activity:
        if activity_type not in ACTIVITY_TYPES:
            raise InvalidInputError(f"invalid activity type '{activity_type}'")
        activity = Activity(
            id=new_id(), user_id=user_id, type=activity_type, timestamp=self.clock(), metadata=metadata or {}
        )
        return self.store.record_activity(activity)

    def record_context_switch(self, user_id: str) -> DailyStats:
        stats = self.store.increment_daily_stats(user_id, self.clock().date(), context_switches=1)
        self.record_activity(user_id, "context-switch")
        return stats

    def record_focus_session(self, user_id: str, duration_minutes: int, tasks_completed: int = 0) -> DailyStats:
        if duration_minutes < 0 or tasks_completed < 0:
            raise InvalidInputError("focus session values must be non-negative")
        stats = self.store.increment_daily_stats(
            user_id, self.clock().date(), focus_time=duration_minutes, completed_tasks=tasks_completed
        )
        self.record_activity(
            user_id, "focus-session", {"durationMinutes": duration_minutes, "tasksCompleted": tasks_completed}
        )
        return stats

    def update_daily_stats(self, user_id: str, **updates: int) -> DailyStats:
        unknown = sorted(set(updates) - set(_STATS_FIELDS))
        if unknown:
            raise InvalidInputError(f"unknown stats fields {unknown}")
        return self.store.set_daily_stats(user_id, self.clock().date(), **updates)

    def get_daily_stats(self, user_id: str, days_ago: int = 7) -> list[DailyStats]:
        start = (self.clock() - timedelta(days=days_ago)).date()
        return self.store.get_daily_stats_since(user_id, start)

    def summarize_daily_stats(self, user_id: str, days_ago: int = 7) -> dict:
        return summarize_daily_stats(self.get_daily_stats(user_id, days_ago))

    # threads

    def _require_thread(self, thread_id: str) -> WorkThread:
        thread = self.store.get_thread(thread_id)
        if thread is None:
            raise NotFoundError("thread", thread_id)
        return thread

    def get_thread(self, thread_id: str) -> WorkThread:
        return self._require_thread(thread_id)

    def get_user_threads(self, user_id: str) -> list[WorkThread]:
        return self.store.get_user_threads(user_id)

    def get_active_threads(self, user_id: str) -> list[WorkThread]:
        return self.store.get_active_threads(user_id)

    def get_high_priority_threads(self, user_id: str) -> list[WorkThread]:
        return [t for t in self.store.get_user_threads(user_id) if t.priority == "high"]

    def get_upcoming_deadlines(self, user_id: str, days_ahead: int = 7) -> list[WorkThread]:
        """Threads due between now and ``days_ahead`` days from now, soonest first."""

        return self.store.get_threads_with_deadline_within(user_id, days_ahead, self.clock())

    def create_thread(
        self,
        user_id: str,
        title: str,
        priority: str = "medium",
        progress: int = 0,
        deadline: Optional[datetime] = None,
        description: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> WorkThread:
        if priority not in PRIORITIES:
            raise InvalidInputError(f"invalid priority '{priority}'")
        if not 0 <= progress <= 100:
            raise InvalidInputError("progress must be between 0 and 100")
        now = self.clock()
        thread = WorkThread(
            id=new_id(),
            user_id=user_id,
            title=title,
            priority=priority,
            progress=progress,
            deadline=ensure_aware(deadline) if deadline else None,
            last_activity=now,
            created_at=now,
            updated_at=now,
            description=description,
            tags=list(tags or []),
        )
        self.store.save_thread(thread)
        self.record_activity(user_id, "thread-created", {"threadId": thread.id})
        return thread

    def update_progress(self, thread_id: str, progress: int) -> WorkThread:
        if not 0 <= progress <= 100:
            raise InvalidInputError("progress must be between 0 and 100")
        now = self.clock()
        thread = replace(self._require_thread(thread_id), progress=progress, last_activity=now, updated_at=now)
        self.store.save_thread(thread)
        self.record_activity(thread.user_id, "thread-updated", {"threadId": thread_id, "progress": progress})
        return thread

    def toggle_ignore(self, thread_id: str, is_ignored: bool) -> WorkThread:
        thread = replace(self._require_thread(thread_id), is_ignored=is_ignored, updated_at=self.clock())
        self.store.save_thread(thread)
        self.record_activity(thread.user_id, "thread-updated", {"threadId": thread_id, "isIgnored": is_ignored})
        return thread

    def update_thread(self, thread_id: str, **changes: Any) -> WorkThread:
        """Apply a partial update; a ``deadline`` of None clears the deadline."""

        unknown = sorted(set(changes) - set(_THREAD_UPDATE_FIELDS))
        if unknown:
            raise InvalidInputError(f"unknown thread fields {unknown}")
        if "priority" in changes and changes["priority"] not in PRIORITIES:
            raise InvalidInputError(f"invalid priority '{changes['priority']}'")
        if "title" in changes and not (changes["title"] or "").strip():
            raise InvalidInputError("title must not be empty")
        if changes.get("deadline") is not None:
            changes["deadline"] = ensure_aware(changes["deadline"])
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])

        thread = replace(self._require_thread(thread_id), **changes, updated_at=self.clock())
        self.store.save_thread(thread)
        self.record_activity(thread.user_id, "thread-updated", {"threadId": thread_id, "fields": sorted(changes)})
        return thread

    def delete_thread(self, thread_id: str) -> None:
        thread = self._require_thread(thread_id)
        self.store.delete_thread(thread_id)
        self.record_activity(thread.user_id, "thread-updated", {"threadId": thread_id, "deleted": True})

    # chat

    def _chat_context(self, user_id: str) -> str:
        threads = [
            {
                "title": t.title,
                "priority": t.priority,
                "progress": t.progress,
                "deadline": t.deadline.isoformat() if t.deadline else None,
            }
            for t in self.store.get_user_threads(user_id)
        ]
        insights = [
            {"title": i.title, "description": i.description, "severity": i.severity}
            for i in self.store.get_active_insights(user_id)
        ]
        return f"""You are Monocle AI, a work intelligence assistant.
You help users manage their work threads, insights, and productivity.

USER CONTEXT:
- Recent Threads: {json.dumps(threads)}
- Active Insights: {json.dumps(insights)}

GUIDELINES:
1. Be concise, professional, and helpful.
2. Use the provided context to answer questions about their work.
3. If a user asks about their progress, refer to their threads.
4. If a user is overloaded (high cognitive load), suggest focusing on one high-priority thread.
5. You can suggest creating new threads or marking items as complete.

Respond in Markdown format. Keep responses under 200 words unless detail is requested."""

    def chat(self, user_id: str, message: str, history: Optional[list[dict[str, str]]] = None) -> str:
        if self.generator is None:
            return APOLOGY
        messages = [
            {"role": "user", "content": self._chat_context(user_id)},
            {"role": "assistant", "content": CHAT_ACKNOWLEDGEMENT},
        ]
        for turn in history or []:
            role = "user" if turn.get("role") == "user" else "assistant"
            messages.append({"role": role, "content": turn.get("content", "")})
        messages.append({"role": "user", "content": message})
        return self.generator.chat(messages)
