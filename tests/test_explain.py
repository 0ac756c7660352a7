from datetime import datetime, timedelta, timezone

from monocle_engine.errors import TextGenerationError
from monocle_engine.explain import build_priority_prompt, explain_priority, extract_json, fallback_reasoning
from monocle_engine.schema import WorkThread
from monocle_engine.text_generation import TextGenerator

NOW = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


class StubProvider:
    name = "stub"

    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def complete(self, messages, timeout):
        self.prompts.append(messages[-1]["content"])
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def make_thread(priority="high", progress=30, deadline=None):
    return WorkThread(
        id="t1",
        user_id="u1",
        title="Board deck",
        priority=priority,
        progress=progress,
        last_activity=NOW,
        created_at=NOW - timedelta(days=3),
        deadline=deadline,
    )


def test_extract_json_from_chatty_response():
    text = 'Sure! Here you go:\n```json\n{"title": "Ship {it}", "factors": [{"label": "a"}]}\n```\nThanks {bye}'
    assert extract_json(text) == {"title": "Ship {it}", "factors": [{"label": "a"}]}


def test_extract_json_failures():
    assert extract_json("no json here") is None
    assert extract_json('{"title": "unterminated"') is None
    assert extract_json("{not: json}") is None


def test_fallback_with_deadline_lists_all_factors():
    reasoning = fallback_reasoning(make_thread(deadline=NOW + timedelta(hours=30)), NOW)

    assert reasoning.title == "Deadline approaching"
    assert reasoning.description == "Board deck requires your focus to stay on track."
    assert [(f.label, f.weight) for f in reasoning.factors] == [
        ("High Priority", "high"),
        ("Deadline Proximity", "high"),
        ("Low Progress", "medium"),
    ]
    assert reasoning.factors[1].description == "Due in 2 days"
    assert reasoning.factors[2].description == "Only 30% complete"


def test_fallback_without_deadline_omits_factors():
    reasoning = fallback_reasoning(make_thread(priority="medium", progress=75), NOW)
    assert reasoning.title == "Priority work needs attention"
    assert reasoning.factors == ()


def test_fallback_distant_deadline_is_medium_weight():
    reasoning = fallback_reasoning(make_thread(priority="low", progress=90, deadline=NOW + timedelta(days=5)), NOW)
    assert [(f.label, f.weight, f.description) for f in reasoning.factors] == [
        ("Deadline Proximity", "medium", "Due in 5 days")
    ]


def test_prompt_mentions_thread_details():
    prompt = build_priority_prompt(make_thread())
    assert "Thread: Board deck" in prompt
    assert "Deadline: None" in prompt
    assert "Progress: 30%" in prompt


def test_explain_uses_generated_reasoning():
    provider = StubProvider(
        'Analysis: {"title": "Focus now", "description": "Deck is due.", '
        '"factors": [{"label": "Deadline", "weight": "high", "description": "Tomorrow"}]}'
    )
    reasoning, source = explain_priority(make_thread(), TextGenerator([provider]), NOW)

    assert source == "ai"
    assert reasoning.title == "Focus now"
    assert reasoning.factors[0].weight == "high"
    assert "Board deck" in provider.prompts[0]


def test_explain_falls_back_on_bad_or_missing_output():
    for reply in ("I cannot answer that.", '{"title": "x", "description": "y", "factors": [{"weight": "huge"}]}',
                  TextGenerationError("down")):
        reasoning, source = explain_priority(make_thread(), TextGenerator([StubProvider(reply)]), NOW)
        assert source == "fallback"
        assert reasoning.title == "Priority work needs attention"


def test_explain_without_generator():
    reasoning, source = explain_priority(make_thread(), None, NOW)
    assert source == "fallback"
    assert reasoning == fallback_reasoning(make_thread(), NOW)
