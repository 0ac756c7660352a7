"""SQLite-backed store."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager, suppress
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from monocle_engine.errors import InvalidInputError, NotFoundError, StorageError
from monocle_engine.schema import (
    Activity,
    CognitiveLoadState,
    DailyStats,
    LoadFactors,
    PriorityFactor,
    PriorityReasoning,
    PriorityRecommendation,
    WorkInsight,
    WorkThread,
)

logger = logging.getLogger(__name__)

_STATS_COLUMNS = ("focus_time", "context_switches", "completed_tasks", "active_threads")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS threads (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    priority TEXT NOT NULL,
    progress INTEGER NOT NULL,
    deadline TEXT,
    last_activity TEXT NOT NULL,
    is_ignored INTEGER NOT NULL DEFAULT 0,
    tags TEXT NOT NULL DEFAULT '[]',
    item_ids TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_threads_user ON threads(user_id);

CREATE TABLE IF NOT EXISTS activities (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_activities_user_ts ON activities(user_id, timestamp);

CREATE TABLE IF NOT EXISTS cognitive_loads (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    level TEXT NOT NULL,
    score REAL NOT NULL,
    factors TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_loads_user_ts ON cognitive_loads(user_id, timestamp);

CREATE TABLE IF NOT EXISTS recommendations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    thread_id TEXT NOT NULL,
    score INTEGER NOT NULL,
    reasoning TEXT NOT NULL,
    generated_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS insights (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    severity TEXT NOT NULL,
    related_thread_ids TEXT NOT NULL DEFAULT '[]',
    action_suggestion TEXT,
    detected_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    is_dismissed INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS daily_stats (
    user_id TEXT NOT NULL,
    date TEXT NOT NULL,
    focus_time INTEGER NOT NULL DEFAULT 0,
    context_switches INTEGER NOT NULL DEFAULT 0,
    completed_tasks INTEGER NOT NULL DEFAULT 0,
    active_threads INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, date)
);
"""


def _to_db(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_thread(row: sqlite3.Row) -> WorkThread:
    return WorkThread(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        priority=row["priority"],
        progress=int(row["progress"]),
        deadline=_from_db(row["deadline"]),
        last_activity=_from_db(row["last_activity"]),
        is_ignored=bool(row["is_ignored"]),
        tags=json.loads(row["tags"]),
        item_ids=json.loads(row["item_ids"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
    )


def _row_to_activity(row: sqlite3.Row) -> Activity:
    return Activity(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        timestamp=_from_db(row["timestamp"]),
        metadata=json.loads(row["metadata"]),
    )


def _row_to_load(row: sqlite3.Row) -> CognitiveLoadState:
    factors = json.loads(row["factors"])
    return CognitiveLoadState(
        id=row["id"],
        user_id=row["user_id"],
        level=row["level"],
        score=float(row["score"]),
        factors=LoadFactors(
            active_threads=factors["activeThreads"],
            switching_frequency=factors["switchingFrequency"],
            work_duration=factors["workDuration"],
            pending_deadlines=factors["pendingDeadlines"],
        ),
        timestamp=_from_db(row["timestamp"]),
    )


def _row_to_recommendation(row: sqlite3.Row) -> PriorityRecommendation:
    reasoning = json.loads(row["reasoning"])
    return PriorityRecommendation(
        id=row["id"],
        user_id=row["user_id"],
        thread_id=row["thread_id"],
        score=int(row["score"]),
        reasoning=PriorityReasoning(
            title=reasoning["title"],
            description=reasoning["description"],
            factors=tuple(PriorityFactor(**factor) for factor in reasoning["factors"]),
        ),
        generated_at=_from_db(row["generated_at"]),
        is_active=bool(row["is_active"]),
    )


def _row_to_insight(row: sqlite3.Row) -> WorkInsight:
    return WorkInsight(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        title=row["title"],
        description=row["description"],
        severity=row["severity"],
        related_thread_ids=json.loads(row["related_thread_ids"]),
        action_suggestion=row["action_suggestion"],
        detected_at=_from_db(row["detected_at"]),
        is_active=bool(row["is_active"]),
        is_dismissed=bool(row["is_dismissed"]),
    )


def _row_to_stats(row: sqlite3.Row) -> DailyStats:
    return DailyStats(
        user_id=row["user_id"],
        date=date.fromisoformat(row["date"]),
        focus_time=int(row["focus_time"]),
        context_switches=int(row["context_switches"]),
        completed_tasks=int(row["completed_tasks"]),
        active_threads=int(row["active_threads"]),
    )


class SQLiteStore:
    """Single-connection SQLite store. Use ``":memory:"`` for a throwaway database."""

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open database {path}: {exc}") from exc

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            try:
                cursor = self._conn.cursor()
                yield cursor
                self._conn.commit()
            except sqlite3.Error as exc:
                with suppress(sqlite3.Error):
                    self._conn.rollback()
                logger.error("SQLite operation failed: %s", exc)
                raise StorageError(str(exc)) from exc

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._cursor() as cur:
            return cur.execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._cursor() as cur:
            return cur.execute(sql, params).fetchone()

    # threads

    def get_thread(self, thread_id: str) -> Optional[WorkThread]:
        row = self._fetchone("SELECT * FROM threads WHERE id = ?", (thread_id,))
        return _row_to_thread(row) if row else None

    def get_user_threads(self, user_id: str) -> list[WorkThread]:
        rows = self._fetchall("SELECT * FROM threads WHERE user_id = ? ORDER BY last_activity DESC", (user_id,))
        return [_row_to_thread(r) for r in rows]

    def get_active_threads(self, user_id: str) -> list[WorkThread]:
        rows = self._fetchall(
            "SELECT * FROM threads WHERE user_id = ? AND is_ignored = 0 ORDER BY last_activity DESC", (user_id,)
        )
        return [_row_to_thread(r) for r in rows]

    def get_threads_with_deadline_within(self, user_id: str, days: int, now: datetime) -> list[WorkThread]:
        rows = self._fetchall(
            """
            SELECT * FROM threads
            WHERE user_id = ? AND deadline IS NOT NULL AND deadline >= ? AND deadline <= ?
            ORDER BY deadline ASC
            """,
            (user_id, _to_db(now), _to_db(now + timedelta(days=days))),
        )
        return [_row_to_thread(r) for r in rows]

    def save_thread(self, thread: WorkThread) -> WorkThread:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT OR REPLACE INTO threads
                (id, user_id, title, description, priority, progress, deadline, last_activity,
                 is_ignored, tags, item_ids, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    thread.id,
                    thread.user_id,
                    thread.title,
                    thread.description,
                    thread.priority,
                    int(thread.progress),
                    _to_db(thread.deadline),
                    _to_db(thread.last_activity),
                    int(thread.is_ignored),
                    json.dumps(thread.tags),
                    json.dumps(thread.item_ids),
                    _to_db(thread.created_at),
                    _to_db(thread.updated_at),
                ),
            )
        return thread

    def delete_thread(self, thread_id: str) -> None:
        with self._cursor() as cur:
            deleted = cur.execute("DELETE FROM threads WHERE id = ?", (thread_id,)).rowcount
        if not deleted:
            raise NotFoundError("thread", thread_id)

    # activities

    def record_activity(self, activity: Activity) -> Activity:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO activities (id, user_id, type, timestamp, metadata) VALUES (?, ?, ?, ?, ?)",
                (
                    activity.id,
                    activity.user_id,
                    activity.type,
                    _to_db(activity.timestamp),
                    json.dumps(activity.metadata, default=str),
                ),
            )
        return activity

    def get_activities_since(self, user_id: str, since: datetime) -> list[Activity]:
        rows = self._fetchall(
            "SELECT * FROM activities WHERE user_id = ? AND timestamp >= ? ORDER BY timestamp DESC",
            (user_id, _to_db(since)),
        )
        return [_row_to_activity(r) for r in rows]

    # snapshots

    def save_cognitive_load(self, state: CognitiveLoadState) -> CognitiveLoadState:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO cognitive_loads (id, user_id, level, score, factors, timestamp) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    state.id,
                    state.user_id,
                    state.level,
                    state.score,
                    json.dumps(state.factors.to_dict()),
                    _to_db(state.timestamp),
                ),
            )
        return state

    def get_latest_cognitive_load(self, user_id: str) -> Optional[CognitiveLoadState]:
        row = self._fetchone(
            "SELECT * FROM cognitive_loads WHERE user_id = ? ORDER BY timestamp DESC LIMIT 1", (user_id,)
        )
        return _row_to_load(row) if row else None

    def save_recommendation(self, recommendation: PriorityRecommendation) -> PriorityRecommendation:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO recommendations (id, user_id, thread_id, score, reasoning, generated_at, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    recommendation.id,
                    recommendation.user_id,
                    recommendation.thread_id,
                    recommendation.score,
                    json.dumps(recommendation.reasoning.to_dict()),
                    _to_db(recommendation.generated_at),
                    int(recommendation.is_active),
                ),
            )
        return recommendation

    def get_active_recommendations(self, user_id: str) -> list[PriorityRecommendation]:
        rows = self._fetchall(
            "SELECT * FROM recommendations WHERE user_id = ? AND is_active = 1 ORDER BY score DESC, rowid ASC",
            (user_id,),
        )
        return [_row_to_recommendation(r) for r in rows]

    # insights

    def save_insight(self, insight: WorkInsight) -> WorkInsight:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT OR REPLACE INTO insights
                (id, user_id, type, title, description, severity, related_thread_ids,
                 action_suggestion, detected_at, is_active, is_dismissed)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    insight.id,
                    insight.user_id,
                    insight.type,
                    insight.title,
                    insight.description,
                    insight.severity,
                    json.dumps(insight.related_thread_ids),
                    insight.action_suggestion,
                    _to_db(insight.detected_at),
                    int(insight.is_active),
                    int(insight.is_dismissed),
                ),
            )
        return insight

    def get_active_insights(self, user_id: str) -> list[WorkInsight]:
        rows = self._fetchall(
            """
            SELECT * FROM insights
            WHERE user_id = ? AND is_active = 1 AND is_dismissed = 0
            ORDER BY detected_at DESC
            """,
            (user_id,),
        )
        return [_row_to_insight(r) for r in rows]

    def dismiss_insight(self, insight_id: str) -> None:
        with self._cursor() as cur:
            updated = cur.execute("UPDATE insights SET is_dismissed = 1 WHERE id = ?", (insight_id,)).rowcount
        if not updated:
            raise NotFoundError("insight", insight_id)

    def delete_insights_before(self, user_id: str, cutoff: datetime) -> int:
        with self._cursor() as cur:
            return cur.execute(
                "DELETE FROM insights WHERE user_id = ? AND detected_at < ?", (user_id, _to_db(cutoff))
            ).rowcount

    # daily stats

    def get_daily_stats(self, user_id: str, day: date) -> Optional[DailyStats]:
        row = self._fetchone("SELECT * FROM daily_stats WHERE user_id = ? AND date = ?", (user_id, day.isoformat()))
        return _row_to_stats(row) if row else None

    def save_daily_stats(self, stats: DailyStats) -> DailyStats:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT OR REPLACE INTO daily_stats
                (user_id, date, focus_time, context_switches, completed_tasks, active_threads)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    stats.user_id,
                    stats.date.isoformat(),
                    stats.focus_time,
                    stats.context_switches,
                    stats.completed_tasks,
                    stats.active_threads,
                ),
            )
        return stats

    def _upsert_daily_stats(self, user_id: str, day: date, values: dict[str, int], additive: bool) -> DailyStats:
        unknown = sorted(set(values) - set(_STATS_COLUMNS))
        if unknown:
            raise InvalidInputError(f"unknown stats fields {unknown}")
        if not values:
            return self.get_daily_stats(user_id, day) or DailyStats(user_id=user_id, date=day)

        columns = list(values)
        column_list = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(
            f"{name} = {name} + excluded.{name}" if additive else f"{name} = excluded.{name}" for name in columns
        )
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO daily_stats (user_id, date, {column_list})
                VALUES (?, ?, {placeholders})
                ON CONFLICT(user_id, date) DO UPDATE SET {assignments}
                """,
                (user_id, day.isoformat(), *(values[name] for name in columns)),
            )
            row = cur.execute(
                "SELECT * FROM daily_stats WHERE user_id = ? AND date = ?", (user_id, day.isoformat())
            ).fetchone()
        return _row_to_stats(row)

    def increment_daily_stats(self, user_id: str, day: date, **deltas: int) -> DailyStats:
        """Add to one day's counters in a single upsert."""

        return self._upsert_daily_stats(user_id, day, deltas, additive=True)

    def set_daily_stats(self, user_id: str, day: date, **values: int) -> DailyStats:
        return self._upsert_daily_stats(user_id, day, values, additive=False)

    def get_daily_stats_since(self, user_id: str, start: date) -> list[DailyStats]:
        rows = self._fetchall(
            "SELECT * FROM daily_stats WHERE user_id = ? AND date >= ? ORDER BY date ASC",
            (user_id, start.isoformat()),
        )
        return [_row_to_stats(r) for r in rows]
