"""Streaming text-generation client backed by pydantic-ai.

The pipeline only needs "send a prompt, receive text deltas"; anything that
implements ``TextGenerationClient`` can be swapped in (tests use scripted
fakes). Provider imports are kept lazy to avoid import-time errors when
credentials or optional provider packages are missing.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from pydantic_ai import Agent
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.core.config import GenerationSettings, settings
from app.core.logging import get_logger
from app.modules.questions.errors import (
    GenerationError,
    ModelConfigurationError,
    TransientGenerationError,
)

logger = get_logger(__name__)

DEFAULT_SAFETY_FILTERS: tuple[tuple[str, str], ...] = (
    ("HARM_CATEGORY_HARASSMENT", "BLOCK_MEDIUM_AND_ABOVE"),
    ("HARM_CATEGORY_HATE_SPEECH", "BLOCK_MEDIUM_AND_ABOVE"),
    ("HARM_CATEGORY_SEXUALLY_EXPLICIT", "BLOCK_MEDIUM_AND_ABOVE"),
    ("HARM_CATEGORY_DANGEROUS_CONTENT", "BLOCK_MEDIUM_AND_ABOVE"),
)

SYSTEM_PROMPT = (
    "You write study material. Answer with raw JSON only: no markdown, "
    "no code fences, no commentary before or after the JSON object."
)


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling and safety options sent with every request.

    ``top_k`` only reaches the model on the OpenRouter provider. pydantic-ai's
    Google settings have no field for it, so it is ignored there (logged once
    at debug level).
    """

    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192
    safety_filters: tuple[tuple[str, str], ...] = DEFAULT_SAFETY_FILTERS

    @classmethod
    def from_settings(cls, gen: GenerationSettings) -> "GenerationOptions":
        return cls(
            temperature=gen.temperature,
            top_k=gen.top_k,
            top_p=gen.top_p,
            max_output_tokens=gen.max_output_tokens,
        )


class TextGenerationClient(Protocol):
    def generate(self, prompt: str, options: GenerationOptions) -> AsyncIterator[str]:
        """Stream incremental text deltas for ``prompt``.

        Raises ``GenerationError`` subclasses; may be abandoned early.
        """
        ...


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0
    factor: float = 2.0

    @classmethod
    def from_settings(cls, gen: GenerationSettings) -> "RetryPolicy":
        return cls(
            attempts=max(1, gen.retry_attempts),
            initial_delay=gen.retry_initial_delay,
            max_delay=gen.retry_max_delay,
            factor=gen.retry_factor,
        )

    def retrying(
        self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ) -> AsyncRetrying:
        """Tenacity controller for opening a stream.

        Waits grow by ``factor`` from ``initial_delay`` up to ``max_delay``,
        plus up to ``initial_delay`` of random jitter. Only plain exceptions
        are retried; ``GenerationError`` and cancellation pass straight through.
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(
                initial=self.initial_delay,
                max=self.max_delay,
                exp_base=self.factor,
                jitter=self.initial_delay,
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=sleep,
        )


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and not isinstance(exc, GenerationError)


def _log_retry(state: RetryCallState) -> None:
    logger.warning(
        "Attempt %d to open model stream failed (%s); retrying in %.2fs",
        state.attempt_number,
        state.outcome.exception() if state.outcome else None,
        state.next_action.sleep if state.next_action else 0.0,
    )


def _build_google_model():
    """Build Google Gemini model for pydantic-ai (lazy import)."""
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    if not settings.gemini_api_key:
        raise ModelConfigurationError(
            "Gemini API key not configured. Set GEMINI_API_KEY in your environment."
        )
    provider = GoogleProvider(api_key=settings.gemini_api_key)
    return GoogleModel(settings.generation.model_name, provider=provider)


def _build_openrouter_model():
    """Build OpenRouter model via OpenAI-compatible provider (lazy import)."""
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    if not settings.openrouter_api_key:
        raise ModelConfigurationError(
            "OpenRouter API key not configured. Set OPENROUTER_API_KEY in your environment."
        )

    provider = OpenAIProvider(
        api_key=settings.openrouter_api_key,
        base_url="https://openrouter.ai/api/v1",
    )
    return OpenAIChatModel(settings.openrouter_model, provider=provider)


def _build_model_by_settings():
    provider = (settings.model_provider or "google").lower()
    if provider == "openrouter":
        return _build_openrouter_model()
    return _build_google_model()


_top_k_notice_logged = False


def _model_settings(provider: str, options: GenerationOptions) -> dict[str, Any]:
    base: dict[str, Any] = {
        "temperature": options.temperature,
        "top_p": options.top_p,
        "max_tokens": options.max_output_tokens,
    }
    if provider == "openrouter":
        # top_k is not part of the OpenAI schema; OpenRouter reads it from the body
        base["extra_body"] = {"top_k": options.top_k}
        return base
    from pydantic_ai.models.google import GoogleModelSettings

    global _top_k_notice_logged
    if not _top_k_notice_logged:
        logger.debug(
            "top_k=%d is not supported by the %s provider and is not sent",
            options.top_k,
            provider,
        )
        _top_k_notice_logged = True
    return GoogleModelSettings(
        **base,
        google_safety_settings=[
            {"category": category, "threshold": threshold}
            for category, threshold in options.safety_filters
        ],
    )


class PydanticAIStreamClient:
    """Streams plain text from the configured provider through a pydantic-ai Agent."""

    def __init__(
        self,
        model: Any = None,
        *,
        retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._model = model
        self._agent: Optional[Agent[None, str]] = None
        self.retry = retry or RetryPolicy.from_settings(settings.generation)
        self._sleep = sleep

    def _get_agent(self) -> Agent[None, str]:
        if self._agent is None:
            model = self._model or _build_model_by_settings()
            self._agent = Agent[None, str](
                model=model, output_type=str, system_prompt=SYSTEM_PROMPT
            )
        return self._agent

    async def generate(
        self, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[str]:
        agent = self._get_agent()
        provider = (settings.model_provider or "google").lower()
        model_settings = _model_settings(provider, options)

        try:
            stack, deltas, first = await self.retry.retrying(self._sleep)(
                self._open_stream, agent, prompt, model_settings
            )
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise TransientGenerationError(
                f"Model stream failed after {e.last_attempt.attempt_number} attempts: {cause}"
            ) from cause

        async with stack:
            if first is None:
                return
            yield first
            try:
                async for delta in deltas:
                    if delta:
                        yield delta
            except GenerationError:
                raise
            except Exception as e:  # noqa: BLE001
                # Text was already handed out; a retry would duplicate it
                raise TransientGenerationError(f"Model stream dropped: {e}") from e

    @staticmethod
    async def _open_stream(
        agent: Agent[None, str], prompt: str, model_settings: dict[str, Any]
    ) -> tuple[AsyncExitStack, AsyncIterator[str], Optional[str]]:
        """Open the model stream and read up to its first non-empty delta.

        The returned stack owns the open stream; ``first`` is None when the
        model finished without producing any text.
        """
        stack = AsyncExitStack()
        try:
            result = await stack.enter_async_context(
                agent.run_stream(prompt, model_settings=model_settings)
            )
            deltas = result.stream_text(delta=True, debounce_by=None)
            async for delta in deltas:
                if delta:
                    return stack, deltas, delta
            return stack, deltas, None
        except BaseException:
            await stack.aclose()
            raise
