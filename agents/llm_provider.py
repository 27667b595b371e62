"""Model invocation layer for OpenAI, Anthropic, Cohere, and OpenRouter.

Every debate participant reaches a model through ``LLMClient.generate``
which routes a ``ModelConfig`` to the provider registered for its model id.
Providers own retries and backoff; once their retry budget is spent they
raise ``GenerationError`` and the caller decides what that means.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]

# Longest pause between two attempts against the same provider, in seconds.
MAX_BACKOFF = 16


class GenerationError(RuntimeError):
    """Raised when a model call cannot produce text."""


def backoff_delay(attempt: int) -> int:
    """Seconds to wait after failed *attempt* (1-based): 2, 4, 8, 16, 16..."""
    return min(2**attempt, MAX_BACKOFF)


def split_system_prompt(messages: Messages) -> tuple[str, Messages]:
    """Separate system content from the chat turns.

    Multiple system messages are joined with a blank line.
    """
    system = [m["content"] for m in messages if m["role"] == "system"]
    chat = [m for m in messages if m["role"] != "system"]
    return "\n\n".join(system), chat


def _dump(obj: Any) -> dict[str, Any]:
    return obj.model_dump() if hasattr(obj, "model_dump") else {}


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Which model to call and how to sample from it."""

    model_id: str
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass(frozen=True)
class LLMResponse:
    """One completed model call, whatever the backend."""

    text: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    latency_ms: float
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class LLMProvider(ABC):
    """A single model behind one vendor API.

    Subclasses set ``name``, ``default_model`` and ``default_key_env`` and
    implement ``_call_api``, returning a payload dict with ``text``,
    ``input_tokens``, ``output_tokens`` and ``raw``.
    """

    name: str
    default_model: str = ""
    default_key_env: str = ""

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        api_key_env: str | None = None,
        timeout: int = 60,
        max_retries: int = 3,
    ) -> None:
        self.model = model or self.default_model
        self.timeout = timeout
        self.max_retries = max_retries

        key_env = api_key_env or self.default_key_env
        self.api_key = api_key or os.getenv(key_env)
        if not self.api_key:
            raise ValueError(
                f"No API key for {self.name}. Set {key_env!r} or pass api_key explicitly."
            )

    async def generate(
        self,
        messages: Messages,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any,
    ) -> LLMResponse:
        """Call the model, retrying transient failures with exponential backoff.

        No pause follows the final attempt; its exception becomes the
        ``__cause__`` of the raised :class:`GenerationError`.
        """
        for attempt in range(1, self.max_retries + 1):
            started = time.perf_counter()
            try:
                payload = await self._call_api(
                    messages, temperature=temperature, max_tokens=max_tokens, **kwargs
                )
            except Exception as exc:  # noqa: BLE001
                if attempt >= self.max_retries:
                    raise GenerationError(
                        f"[{self.name}] All {self.max_retries} attempts failed"
                    ) from exc
                delay = backoff_delay(attempt)
                logger.warning(
                    "[%s] %s call %d/%d failed (%s); next attempt in %ds",
                    self.name,
                    self.model,
                    attempt,
                    self.max_retries,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            response = LLMResponse(
                text=payload["text"],
                input_tokens=payload.get("input_tokens", 0),
                output_tokens=payload.get("output_tokens", 0),
                model=self.model,
                provider=self.name,
                latency_ms=round((time.perf_counter() - started) * 1000, 1),
                raw=payload.get("raw", {}),
            )
            logger.debug(
                "[%s] %s: %d prompt / %d completion tokens in %.0f ms",
                self.name,
                self.model,
                response.input_tokens,
                response.output_tokens,
                response.latency_ms,
            )
            return response

        raise GenerationError(f"[{self.name}] max_retries must be at least 1")

    @abstractmethod
    async def _call_api(
        self,
        messages: Messages,
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class OpenAIProvider(LLMProvider):
    """Chat completions through ``openai.AsyncOpenAI``."""

    name = "openai"
    default_model = "gpt-4o"
    default_key_env = "OPENAI_API_KEY"
    base_url: str | None = None

    def __init__(self, model: str | None = None, **kwargs: Any) -> None:
        super().__init__(model=model, **kwargs)
        import openai

        self._client = openai.AsyncOpenAI(
            api_key=self.api_key, base_url=self.base_url, timeout=self.timeout
        )

    async def _call_api(self, messages, *, temperature, max_tokens, **kwargs):
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        usage = response.usage
        return {
            "text": response.choices[0].message.content or "",
            "input_tokens": usage.prompt_tokens if usage else 0,
            "output_tokens": usage.completion_tokens if usage else 0,
            "raw": _dump(response),
        }


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter's OpenAI-compatible endpoint.

    Model names are ``vendor/model`` strings such as
    ``"meta-llama/llama-3.1-70b-instruct"``.
    """

    name = "openrouter"
    default_model = "openai/gpt-4o"
    default_key_env = "OPENROUTER_API_KEY"
    base_url = "https://openrouter.ai/api/v1"


class AnthropicProvider(LLMProvider):
    """Messages API through ``anthropic.AsyncAnthropic``."""

    name = "anthropic"
    default_model = "claude-sonnet-4-5"
    default_key_env = "ANTHROPIC_API_KEY"

    def __init__(self, model: str | None = None, **kwargs: Any) -> None:
        super().__init__(model=model, **kwargs)
        import anthropic

        self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)

    async def _call_api(self, messages, *, temperature, max_tokens, **kwargs):
        system, chat = split_system_prompt(messages)
        if system:
            kwargs["system"] = system
        response = await self._client.messages.create(
            model=self.model,
            messages=chat,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        usage = response.usage
        return {
            "text": "".join(getattr(block, "text", "") for block in response.content),
            "input_tokens": usage.input_tokens if usage else 0,
            "output_tokens": usage.output_tokens if usage else 0,
            "raw": _dump(response),
        }


class CohereProvider(LLMProvider):
    """Chat v2 through ``cohere.AsyncClientV2``."""

    name = "cohere"
    default_model = "command-r-plus"
    default_key_env = "COHERE_API_KEY"

    def __init__(self, model: str | None = None, **kwargs: Any) -> None:
        super().__init__(model=model, **kwargs)
        import cohere

        self._client = cohere.AsyncClientV2(api_key=self.api_key, timeout=self.timeout)

    async def _call_api(self, messages, *, temperature, max_tokens, **kwargs):
        response = await self._client.chat(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        content = response.message.content if response.message else None
        tokens = response.usage.tokens if response.usage else None
        return {
            "text": content[0].text if content else "",
            "input_tokens": int(tokens.input_tokens or 0) if tokens else 0,
            "output_tokens": int(tokens.output_tokens or 0) if tokens else 0,
            "raw": _dump(response),
        }


PROVIDERS: dict[str, type[LLMProvider]] = {
    cls.name: cls
    for cls in (OpenAIProvider, AnthropicProvider, CohereProvider, OpenRouterProvider)
}


def create_provider(name: str, **kwargs: Any) -> LLMProvider:
    """Build the backend registered under *name* (case-insensitive).

    >>> provider = create_provider("anthropic", model="claude-sonnet-4-5")
    """
    try:
        cls = PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown provider {name!r}. Choose from {sorted(PROVIDERS)}") from None
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LLMClient:
    """Routes model ids to registered providers.

    Debates refer to models by an identity string (``"gpt-4o"``,
    ``"claude"``...). The client owns the mapping from that identity to a
    concrete provider so components never construct providers themselves.
    Token usage is tallied per model id in ``usage``.
    """

    def __init__(self, providers: dict[str, LLMProvider] | None = None) -> None:
        self._providers: dict[str, LLMProvider] = dict(providers or {})
        self.usage: Counter[str] = Counter()

    def register(self, model_id: str, provider: LLMProvider) -> None:
        self._providers[model_id] = provider

    def has_model(self, model_id: str) -> bool:
        return model_id in self._providers

    @property
    def model_ids(self) -> list[str]:
        return list(self._providers)

    async def generate(self, messages: Messages, config: ModelConfig) -> LLMResponse:
        provider = self._providers.get(config.model_id)
        if provider is None:
            raise GenerationError(f"No provider registered for model {config.model_id!r}")
        response = await provider.generate(
            messages, temperature=config.temperature, max_tokens=config.max_tokens
        )
        self.usage[config.model_id] += response.tokens_used
        return response
