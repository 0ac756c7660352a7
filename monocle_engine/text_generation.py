"""Text generation over an ordered chain of hosted LLM providers.

Providers are tried in order and share a single timeout budget. The first
provider that returns non-empty text wins; a provider that fails is not
retried. When every provider fails, the strict calls raise
:class:`TextGenerationError` and the lenient calls return a static apology.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol
from urllib.parse import quote

import httpx

from monocle_engine.config import Settings
from monocle_engine.errors import TextGenerationError

logger = logging.getLogger(__name__)

APOLOGY = (
    "I'm currently having trouble reaching my AI services. Please check back in a moment "
    "or verify your internet connection. (Fallback Mode)"
)

Message = dict[str, str]

_PROVIDER_ERRORS = (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError)


class TextProvider(Protocol):
    name: str

    def complete(self, messages: list[Message], timeout: float) -> str:
        ...


class _HttpProvider:
    name = "http"

    def __init__(self, client: Optional[httpx.Client] = None, clock: Callable[[], float] = time.monotonic):
        self._client = client
        self._clock = clock

    def _request(self, method: str, url: str, timeout: float, **kwargs) -> httpx.Response:
        """Send one request; ``timeout`` bounds the whole exchange, body included.

        httpx timeouts apply to each connect or read on their own, so the body
        is streamed and the deadline is checked between chunks.
        """

        deadline = self._clock() + timeout
        if self._client is not None:
            return self._read_within(self._client, method, url, timeout, deadline, **kwargs)
        with httpx.Client() as client:
            return self._read_within(client, method, url, timeout, deadline, **kwargs)

    def _read_within(
        self, client: httpx.Client, method: str, url: str, timeout: float, deadline: float, **kwargs
    ) -> httpx.Response:
        with client.stream(method, url, timeout=httpx.Timeout(timeout), **kwargs) as streamed:
            chunks = []
            for chunk in streamed.iter_bytes():
                if self._clock() > deadline:
                    raise httpx.ReadTimeout("response exceeded the time budget", request=streamed.request)
                chunks.append(chunk)
        response = httpx.Response(streamed.status_code, content=b"".join(chunks), request=streamed.request)
        response.raise_for_status()
        return response


class GroqProvider(_HttpProvider):
    """OpenAI-compatible chat completions endpoint hosted by Groq."""

    name = "groq"
    url = "https://api.groq.com/openai/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-8b-instant",
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(client, clock)
        self.api_key = api_key
        self.model = model

    def complete(self, messages: list[Message], timeout: float) -> str:
        response = self._request(
            "POST",
            self.url,
            timeout,
            json={"model": self.model, "messages": messages},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return response.json()["choices"][0]["message"]["content"] or ""


class GeminiProvider(_HttpProvider):
    """Gemini generateContent REST endpoint, trying each model in turn."""

    name = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: str,
        models: tuple[str, ...] = ("gemini-1.5-flash", "gemini-pro"),
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(client, clock)
        self.api_key = api_key
        self.models = tuple(models)

    @staticmethod
    def _contents(messages: list[Message]) -> list[dict]:
        return [
            {
                "role": "model" if message["role"] in ("assistant", "model") else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in messages
        ]

    def complete(self, messages: list[Message], timeout: float) -> str:
        deadline = self._clock() + timeout
        last_error: Optional[Exception] = None
        for model in self.models:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            try:
                response = self._request(
                    "POST",
                    f"{self.base_url}/{model}:generateContent",
                    remaining,
                    params={"key": self.api_key},
                    json={"contents": self._contents(messages)},
                )
                parts = response.json()["candidates"][0]["content"]["parts"]
                return "".join(part.get("text", "") for part in parts)
            except _PROVIDER_ERRORS as exc:
                logger.warning("Gemini model %s failed: %s", model, exc)
                last_error = exc
        raise TextGenerationError(f"all Gemini models failed: {last_error}")


class PollinationsProvider(_HttpProvider):
    """Keyless public text endpoint, used as the last resort."""

    name = "pollinations"

    def __init__(
        self,
        base_url: str = "https://text.pollinations.ai",
        max_prompt_chars: int = 1000,
        system: str = "MonocleAI",
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(client, clock)
        self.base_url = base_url.rstrip("/")
        self.max_prompt_chars = max_prompt_chars
        self.system = system

    def complete(self, messages: list[Message], timeout: float) -> str:
        prompt = messages[-1]["content"][: self.max_prompt_chars]
        response = self._request(
            "GET",
            f"{self.base_url}/{quote(prompt, safe='')}",
            timeout,
            params={"model": "openai", "system": self.system},
        )
        return response.text


class TextGenerator:
    """Ordered provider chain with a shared timeout budget."""

    def __init__(
        self,
        providers: list[TextProvider],
        timeout_budget: float = 30.0,
        apology: str = APOLOGY,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.providers = list(providers)
        self.timeout_budget = timeout_budget
        self.apology = apology
        self._clock = clock

    def chat_strict(self, messages: list[Message]) -> str:
        """Return the first successful completion or raise TextGenerationError."""

        started = self._clock()
        for provider in self.providers:
            remaining = self.timeout_budget - (self._clock() - started)
            if remaining <= 0:
                logger.warning("Text generation budget exhausted before trying %s", provider.name)
                break
            logger.info("Trying text provider %s", provider.name)
            try:
                text = provider.complete(messages, timeout=remaining)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Text provider %s failed: %s", provider.name, exc)
                continue
            if text and text.strip():
                logger.info("Text provider %s succeeded", provider.name)
                return text
            logger.warning("Text provider %s returned an empty response", provider.name)
        raise TextGenerationError("no text provider produced a response")

    def generate_strict(self, prompt: str) -> str:
        return self.chat_strict([{"role": "user", "content": prompt}])

    def chat(self, messages: list[Message]) -> str:
        try:
            return self.chat_strict(messages)
        except TextGenerationError:
            logger.error("All text providers failed, returning fallback message")
            return self.apology

    def generate(self, prompt: str) -> str:
        return self.chat([{"role": "user", "content": prompt}])


def build_text_generator(settings: Settings, client: Optional[httpx.Client] = None) -> TextGenerator:
    """Build the provider chain for whichever providers are configured."""

    providers: list[TextProvider] = []
    if settings.groq_api_key:
        providers.append(GroqProvider(settings.groq_api_key, settings.groq_model, client=client))
    if settings.gemini_api_key:
        providers.append(GeminiProvider(settings.gemini_api_key, tuple(settings.gemini_models), client=client))
    if settings.pollinations_enabled:
        providers.append(PollinationsProvider(settings.pollinations_url, client=client))
    if not providers:
        logger.warning("No text providers configured; AI features will use deterministic fallbacks")
    return TextGenerator(providers, timeout_budget=settings.ai_timeout_seconds)
