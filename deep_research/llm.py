"""Streaming calls to Claude, classified into parser fragments."""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Protocol

import httpx
from anthropic import APIConnectionError, APIError, APITimeoutError, AsyncAnthropic, RateLimitError

from .errors import ANTHROPIC_TIMEOUT
from .modes import DEFAULT_MODEL
from .stream import Fragment, ReasoningDelta, StreamFailure, TextDelta

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]


class LanguageModel(Protocol):
    """Anything that can stream one completion as parser fragments."""

    def stream(
        self,
        system: str,
        prompt: str,
        *,
        operation: str = "",
        on_error: ErrorCallback | None = None,
    ) -> AsyncIterator[Fragment]: ...


def log_model_error(operation: str) -> ErrorCallback:
    """Build the default error callback, which logs and lets the stream report it."""
    def _on_error(error: Exception) -> None:
        logger.warning("%s failed: %s: %s", operation or "Model call", type(error).__name__, error)
    return _on_error


class AnthropicModel:
    """Stream completions from the Anthropic Messages API.

    Text deltas become ``TextDelta`` fragments and extended-thinking deltas
    become ``ReasoningDelta`` fragments. Provider failures never raise out
    of the stream: the error callback is invoked and a ``StreamFailure`` is
    the last fragment.
    """

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8192,
        thinking_budget: int | None = None,
        timeout: float = ANTHROPIC_TIMEOUT,
    ):
        if thinking_budget is not None and thinking_budget >= max_tokens:
            raise ValueError(
                f"thinking_budget ({thinking_budget}) must be < max_tokens ({max_tokens})"
            )
        self.client = client or AsyncAnthropic()
        self.model = model
        self.max_tokens = max_tokens
        self.thinking_budget = thinking_budget
        self.timeout = timeout

    async def stream(
        self,
        system: str,
        prompt: str,
        *,
        operation: str = "",
        on_error: ErrorCallback | None = None,
    ) -> AsyncIterator[Fragment]:
        on_error = on_error or log_model_error(operation)
        extra = {}
        if self.thinking_budget:
            extra["thinking"] = {"type": "enabled", "budget_tokens": self.thinking_budget}

        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                system=system,
                messages=[{"role": "user", "content": prompt}],
                **extra,
            ) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield TextDelta(text=event.text)
                    elif event.type == "thinking":
                        yield ReasoningDelta(text=event.thinking)
        except (RateLimitError, APITimeoutError, APIConnectionError, APIError, httpx.TransportError) as e:
            on_error(e)
            yield StreamFailure(message=str(e) or type(e).__name__)
