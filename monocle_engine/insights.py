"""Rule-based and generated work insights."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from monocle_engine.errors import TextGenerationError
from monocle_engine.escalation import ignored_severity
from monocle_engine.explain import extract_json
from monocle_engine.schema import WorkInsight, WorkThread, new_id
from monocle_engine.scoring import days_until
from monocle_engine.text_generation import TextGenerator

logger = logging.getLogger(__name__)

IGNORED_WORK_WINDOW_DAYS = 3
RISK_RATE_FACTOR = 1.5
RISK_PROGRESS_CEILING = 80


class _InsightPayload(BaseModel):
    type: Literal["attention-leak", "overload", "momentum-drift"]
    title: str
    description: str
    severity: Literal["info", "warning", "critical"]
    actionSuggestion: Optional[str] = None


def _whole_days(delta_days: float) -> int:
    return math.ceil(delta_days)


def detect_ignored_work(threads: list[WorkThread], now: datetime) -> list[WorkInsight]:
    """Flag ignored threads whose deadline is three days away or less."""

    insights = []
    for thread in threads:
        if not thread.is_ignored or thread.deadline is None:
            continue
        days = _whole_days(days_until(thread.deadline, now))
        if days > IGNORED_WORK_WINDOW_DAYS:
            continue
        insights.append(
            WorkInsight(
                id=new_id(),
                user_id=thread.user_id,
                type="ignored-work",
                title=f"{thread.title} needs attention",
                description=f"This work thread has a deadline in {days} days but has been marked as ignored.",
                severity=ignored_severity(days),
                detected_at=now,
                related_thread_ids=[thread.id],
                action_suggestion="Consider unblocking time to work on this before the deadline.",
            )
        )
    return insights


def detect_deadline_risk(threads: list[WorkThread], now: datetime) -> list[WorkInsight]:
    """Flag active threads whose progress rate will not meet the deadline."""

    insights = []
    for thread in threads:
        if thread.is_ignored or thread.deadline is None:
            continue
        days_left = _whole_days(days_until(thread.deadline, now))
        days_open = _whole_days((now - thread.created_at).total_seconds() / 86400.0)
        progress_per_day = thread.progress / max(1, days_open)
        required_per_day = (100 - thread.progress) / max(1, days_left)

        if required_per_day > progress_per_day * RISK_RATE_FACTOR and thread.progress < RISK_PROGRESS_CEILING:
            insights.append(
                WorkInsight(
                    id=new_id(),
                    user_id=thread.user_id,
                    type="deadline-risk",
                    title=f"{thread.title} at risk",
                    description=(
                        f"With current progress rate ({progress_per_day:.1f}% per day), "
                        "you may not complete this before the deadline."
                    ),
                    severity="critical",
                    detected_at=now,
                    related_thread_ids=[thread.id],
                    action_suggestion=f"Block {math.ceil((100 - thread.progress) / 10)} hours of focus time to address this.",
                )
            )
    return insights


def build_insight_prompt(threads: list[WorkThread]) -> str:
    context = [
        {
            "title": thread.title,
            "priority": thread.priority,
            "progress": thread.progress,
            "deadline": thread.deadline.isoformat() if thread.deadline else None,
        }
        for thread in threads
    ]
    return f"""Analyze these work threads and provide ONE actionable insight about work patterns or productivity:
{json.dumps(context, indent=2)}

Respond in JSON format:
{{
  "type": "attention-leak" | "overload" | "momentum-drift",
  "title": "Brief title",
  "description": "Detailed description",
  "severity": "info" | "warning" | "critical",
  "actionSuggestion": "Specific action to take"
}}"""


def generate_ai_insight(
    user_id: str, threads: list[WorkThread], generator: Optional[TextGenerator], now: datetime
) -> Optional[WorkInsight]:
    """Ask the text generator for one free-form insight; None when that fails."""

    if generator is None:
        return None
    try:
        text = generator.generate_strict(build_insight_prompt(threads))
    except TextGenerationError as exc:
        logger.warning("Skipping generated insight: %s", exc)
        return None

    payload = extract_json(text)
    if payload is None:
        logger.warning("Skipping generated insight: no JSON object in response")
        return None
    try:
        parsed = _InsightPayload.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Skipping generated insight: %s", exc.errors()[0].get("msg"))
        return None

    return WorkInsight(
        id=new_id(),
        user_id=user_id,
        type=parsed.type,
        title=parsed.title,
        description=parsed.description,
        severity=parsed.severity,
        detected_at=now,
        action_suggestion=parsed.actionSuggestion,
    )


def detect_insights(
    user_id: str, threads: list[WorkThread], generator: Optional[TextGenerator], now: datetime
) -> list[WorkInsight]:
    insights = detect_ignored_work(threads, now) + detect_deadline_risk(threads, now)
    generated = generate_ai_insight(user_id, threads, generator, now)
    if generated is not None:
        insights.append(generated)
    return insights
