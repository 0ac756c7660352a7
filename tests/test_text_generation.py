import httpx
import pytest

from monocle_engine.config import Settings
from monocle_engine.errors import TextGenerationError
from monocle_engine.text_generation import (
    APOLOGY,
    GeminiProvider,
    GroqProvider,
    PollinationsProvider,
    TextGenerator,
    build_text_generator,
)


class StubProvider:
    def __init__(self, name, reply):
        self.name = name
        self.reply = reply
        self.calls = []

    def complete(self, messages, timeout):
        self.calls.append(timeout)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def test_first_successful_provider_wins():
    failing = StubProvider("a", httpx.ConnectError("down"))
    empty = StubProvider("b", "   ")
    good = StubProvider("c", "hello")
    unused = StubProvider("d", "never")

    generator = TextGenerator([failing, empty, good, unused])

    assert generator.generate("hi") == "hello"
    assert len(failing.calls) == 1
    assert len(good.calls) == 1
    assert unused.calls == []


def test_exhausted_chain_returns_apology_or_raises():
    generator = TextGenerator([StubProvider("a", ValueError("bad payload"))])
    assert generator.generate("hi") == APOLOGY
    with pytest.raises(TextGenerationError):
        generator.generate_strict("hi")


def test_providers_share_the_timeout_budget():
    ticks = iter([0.0, 0.0, 12.0, 31.0])
    first = StubProvider("a", httpx.ReadTimeout("slow"))
    second = StubProvider("b", httpx.ReadTimeout("slow"))
    third = StubProvider("c", "too late")

    generator = TextGenerator([first, second, third], timeout_budget=30.0, clock=lambda: next(ticks))

    with pytest.raises(TextGenerationError):
        generator.generate_strict("hi")
    assert first.calls == [30.0]
    assert second.calls == [18.0]
    assert third.calls == []


def test_groq_provider_posts_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"choices": [{"message": {"content": "groq says hi"}}]}, request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        provider = GroqProvider("key-1", client=client)
        text = provider.complete([{"role": "user", "content": "hi"}], timeout=5)
    finally:
        client.close()

    assert text == "groq says hi"
    assert seen["auth"] == "Bearer key-1"
    assert b"llama-3.1-8b-instant" in seen["body"]


def test_gemini_provider_falls_through_models():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        if "gemini-1.5-flash" in request.url.path:
            return httpx.Response(404, json={"error": "missing"}, request=request)
        payload = {"candidates": [{"content": {"parts": [{"text": "pro "}, {"text": "answer"}]}}]}
        return httpx.Response(200, json=payload, request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        provider = GeminiProvider("key-2", client=client)
        text = provider.complete([{"role": "user", "content": "hi"}], timeout=5)
    finally:
        client.close()

    assert text == "pro answer"
    assert requested == [
        "/v1beta/models/gemini-1.5-flash:generateContent",
        "/v1beta/models/gemini-pro:generateContent",
    ]


def test_gemini_provider_raises_when_all_models_fail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(TextGenerationError):
            GeminiProvider("key", client=client).complete([{"role": "user", "content": "hi"}], timeout=5)
    finally:
        client.close()


def test_pollinations_truncates_prompt():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, text="plain text reply", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        provider = PollinationsProvider(max_prompt_chars=5, client=client)
        text = provider.complete([{"role": "user", "content": "abcdefghij"}], timeout=5)
    finally:
        client.close()

    assert text == "plain text reply"
    assert seen["url"].path == "/abcde"
    assert seen["url"].params["system"] == "MonocleAI"


def test_build_text_generator_only_uses_configured_providers(monkeypatch):
    for name in ("GROQ_API_KEY", "GEMINI_API_KEY", "MONOCLE_GROQ_API_KEY", "MONOCLE_GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    generator = build_text_generator(Settings(gemini_api_key="g", pollinations_enabled=False))
    assert [p.name for p in generator.providers] == ["gemini"]

    generator = build_text_generator(Settings(groq_api_key="q", gemini_api_key="g"))
    assert [p.name for p in generator.providers] == ["groq", "gemini", "pollinations"]


def test_slow_response_body_counts_against_the_timeout():
    ticks = iter([0.0, 4.0, 9.0, 16.0])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"plain ", b"text ", b"reply"]), request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        provider = PollinationsProvider(client=client, clock=lambda: next(ticks))
        with pytest.raises(httpx.ReadTimeout):
            provider.complete([{"role": "user", "content": "hi"}], timeout=10)
    finally:
        client.close()


def test_generator_moves_on_when_a_provider_overruns_its_budget():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"late"]), request=request)

    ticks = iter([0.0, 150.0])
    client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        slow = PollinationsProvider(client=client, clock=lambda: next(ticks))
        fallback = StubProvider("backup", "on time")
        generator = TextGenerator([slow, fallback], timeout_budget=100.0)
        assert generator.generate("hi") == "on time"
    finally:
        client.close()
