from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Base model-backend abstraction.

Adapters implement `_response_core` (and optionally `_stream_core`); the base
class owns timeout and retry behavior so every backend fails the same way.
"""

import asyncio
import socket
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Protocol, TypeVar

from .config import ModelConfig
from .errors import ModelError, ModelRetryableError, ModelTimeoutError
from .types import (
    ModelRequest,
    ModelResponse,
    ModelStreamEvent,
    StreamCompletedEvent,
    StreamTextDeltaEvent,
)
from .utils import backoff_delay

ReturnT = TypeVar("ReturnT")

_RETRY_PHRASES = (
    "rate limit",
    "rate_limit",
    "quota exceeded",
    "temporarily unavailable",
    "overloaded",
    "service unavailable",
    "try again",
    "please retry",
    "timed out",
    "connection reset",
    "connection aborted",
    "connection refused",
    "connection error",
)


class Model(ABC):
    """
    One model backend bound to one model name.

    `get_response` returns the full turn output; `stream_response` yields
    incremental deltas terminated by a `StreamCompletedEvent` carrying the
    same final item set.
    """

    def __init__(self, *, config: ModelConfig | None = None) -> None:
        self.config = config or ModelConfig()

    @property
    def provider_id(self) -> str:
        return self.__class__.__name__

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        """Run one non-streaming call under timeout/retry policy."""
        timeout = self.config.timeout_s

        async def _provider_call() -> ModelResponse:
            if timeout is None:
                return await self._response_core(request)
            try:
                return await asyncio.wait_for(self._response_core(request), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise ModelTimeoutError(
                    f"{self.provider_id} call exceeded timeout of {timeout} seconds."
                ) from e

        return await self._call_with_retries(_provider_call)

    async def stream_response(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        """Yield normalized stream events for one call."""
        async for event in self._stream_core(request):
            yield event

    @abstractmethod
    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        """Provider transport hook for a blocking call."""

    async def _stream_core(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        """
        Default stream for backends without native streaming: one text delta
        per assistant message followed by the completion marker.
        """
        response = await self.get_response(request)
        for item in response.output:
            text = getattr(item, "text", None)
            if getattr(item, "type", None) == "message" and isinstance(text, str) and text:
                yield StreamTextDeltaEvent(delta=text)
        yield StreamCompletedEvent(response=response)

    async def _call_with_retries(self, fn: Callable[[], Awaitable[ReturnT]]) -> ReturnT:
        """Execute a callable with retry-on-transient-error semantics."""
        retries = max(0, self.config.max_retries)
        last: Exception | None = None

        for attempt in range(retries + 1):
            try:
                return await fn()
            except Exception as e:
                classified = e if isinstance(e, ModelError) else self._classify_error(e)
                last = classified
                retryable = isinstance(classified, (ModelRetryableError, ModelTimeoutError))
                if retryable and attempt < retries:
                    await asyncio.sleep(
                        backoff_delay(
                            attempt,
                            self.config.backoff_base_s,
                            self.config.backoff_jitter_s,
                        )
                    )
                    continue
                if classified is e:
                    raise
                raise classified from e

        raise ModelError(f"Model call failed after {retries} retries") from last

    def _classify_error(self, e: Exception) -> ModelError:
        """Map arbitrary exceptions into retryable vs non-retryable model errors."""
        msg = str(e) or repr(e)
        status = None
        for attr in ("status_code", "status", "code"):
            val = getattr(e, attr, None)
            if isinstance(val, int):
                status = val
                break
            if isinstance(val, str) and val.isdigit():
                status = int(val)
                break

        if status is not None:
            if status in (408, 429) or 500 <= status < 600:
                return ModelRetryableError(msg)
            if 400 <= status < 500:
                return ModelError(msg)

        if isinstance(e, (asyncio.TimeoutError, TimeoutError, socket.timeout, ConnectionError)):
            return ModelRetryableError(msg)

        m = msg.lower()
        if any(phrase in m for phrase in _RETRY_PHRASES):
            return ModelRetryableError(msg)
        return ModelError(msg)


class ModelProvider(Protocol):
    """Resolves model names declared on agents into concrete `Model` instances."""

    def get_model(self, name: str | None) -> Model:
        ...
