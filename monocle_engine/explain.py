"""Explanations for priority recommendations."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ValidationError

from monocle_engine.errors import TextGenerationError
from monocle_engine.escalation import deadline_weight
from monocle_engine.schema import PriorityFactor, PriorityReasoning, WorkThread
from monocle_engine.scoring import days_until
from monocle_engine.text_generation import TextGenerator

logger = logging.getLogger(__name__)


class _FactorPayload(BaseModel):
    label: str
    weight: Literal["high", "medium", "low"]
    description: str


class _ReasoningPayload(BaseModel):
    title: str
    description: str
    factors: list[_FactorPayload] = []


def extract_json(text: str) -> Optional[dict[str, Any]]:
    """Parse the first balanced ``{...}`` span of free text as a JSON object."""

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    payload = json.loads(text[start : index + 1])
                except json.JSONDecodeError:
                    return None
                return payload if isinstance(payload, dict) else None
    return None


def build_priority_prompt(thread: WorkThread) -> str:
    deadline = thread.deadline.isoformat() if thread.deadline else "None"
    return f"""Analyze this work thread and explain why it should be prioritized:
Thread: {thread.title}
Priority: {thread.priority}
Progress: {thread.progress}%
Deadline: {deadline}
Last Activity: {thread.last_activity.isoformat()}

Provide a JSON response with:
{{
  "title": "Brief title for why to prioritize",
  "description": "Detailed explanation",
  "factors": [
    {{"label": "Factor name", "weight": "high|medium|low", "description": "Why this matters"}}
  ]
}}"""


def fallback_reasoning(thread: WorkThread, now: datetime) -> PriorityReasoning:
    """Deterministic reasoning used when no generated explanation is available."""

    factors = []
    if thread.priority == "high":
        factors.append(PriorityFactor("High Priority", "high", "This thread is marked as high priority"))

    if thread.deadline is not None:
        days = math.ceil(days_until(thread.deadline, now))
        factors.append(PriorityFactor("Deadline Proximity", deadline_weight(days), f"Due in {days} days"))

    if thread.progress < 50:
        factors.append(PriorityFactor("Low Progress", "medium", f"Only {thread.progress}% complete"))

    return PriorityReasoning(
        title="Deadline approaching" if thread.deadline is not None else "Priority work needs attention",
        description=f"{thread.title} requires your focus to stay on track.",
        factors=tuple(factors),
    )


def _parse_reasoning(text: str) -> Optional[PriorityReasoning]:
    payload = extract_json(text)
    if payload is None:
        return None
    try:
        parsed = _ReasoningPayload.model_validate(payload)
    except ValidationError:
        return None
    return PriorityReasoning(
        title=parsed.title,
        description=parsed.description,
        factors=tuple(PriorityFactor(f.label, f.weight, f.description) for f in parsed.factors),
    )


def explain_priority(
    thread: WorkThread, generator: Optional[TextGenerator], now: datetime
) -> tuple[PriorityReasoning, str]:
    """Return ``(reasoning, source)`` where source is ``"ai"`` or ``"fallback"``."""

    if generator is None:
        return fallback_reasoning(thread, now), "fallback"

    try:
        text = generator.generate_strict(build_priority_prompt(thread))
    except TextGenerationError as exc:
        logger.warning("Priority reasoning for thread %s fell back: %s", thread.id, exc)
        return fallback_reasoning(thread, now), "fallback"

    reasoning = _parse_reasoning(text)
    if reasoning is None:
        logger.warning("Priority reasoning for thread %s was not parseable, using fallback", thread.id)
        return fallback_reasoning(thread, now), "fallback"
    return reasoning, "ai"
