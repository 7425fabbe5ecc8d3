from __future__ import annotations

import asyncio

import pytest

from baton.items import MessageItem
from baton.models import (
    Model,
    ModelConfig,
    ModelError,
    ModelRequest,
    ModelResponse,
    ModelRetryableError,
    ModelTimeoutError,
    StreamCompletedEvent,
    StreamTextDeltaEvent,
    Usage,
)
from baton.models.utils import backoff_delay, run_sync


def run_async(coro):
    return asyncio.run(coro)


class _StatusError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class _FlakyModel(Model):
    def __init__(self, failures: list[Exception], *, delay: float = 0.0, **config) -> None:
        super().__init__(
            config=ModelConfig(backoff_base_s=0.0, backoff_jitter_s=0.0, **config)
        )
        self.failures = list(failures)
        self.delay = delay
        self.calls = 0

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            raise self.failures.pop(0)
        return ModelResponse(output=[MessageItem.assistant("ok")], usage=Usage(requests=1))


def _request() -> ModelRequest:
    return ModelRequest(input=[MessageItem.user("hi")])


def test_retryable_status_codes_are_retried():
    model = _FlakyModel([_StatusError("rate limited", 429), _StatusError("bad gateway", 502)], max_retries=2)

    response = run_async(model.get_response(_request()))

    assert response.output[0].text == "ok"
    assert model.calls == 3


def test_client_errors_are_not_retried():
    model = _FlakyModel([_StatusError("bad request", 400)], max_retries=3)

    with pytest.raises(ModelError) as exc:
        run_async(model.get_response(_request()))

    assert not isinstance(exc.value, ModelRetryableError)
    assert model.calls == 1


def test_retry_budget_exhaustion_surfaces_last_error():
    model = _FlakyModel([ConnectionError("reset")] * 3, max_retries=1)

    with pytest.raises(ModelRetryableError):
        run_async(model.get_response(_request()))

    assert model.calls == 2


def test_transient_phrases_are_retryable():
    model = _FlakyModel([RuntimeError("Service temporarily unavailable")], max_retries=1)

    run_async(model.get_response(_request()))

    assert model.calls == 2


def test_timeout_is_typed_and_retried():
    model = _FlakyModel([], delay=0.2, timeout_s=0.01, max_retries=1)

    with pytest.raises(ModelTimeoutError):
        run_async(model.get_response(_request()))

    assert model.calls == 2


def test_default_stream_wraps_blocking_response():
    model = _FlakyModel([], max_retries=0)

    async def _collect():
        return [event async for event in model.stream_response(_request())]

    events = run_async(_collect())

    assert isinstance(events[0], StreamTextDeltaEvent)
    assert events[0].delta == "ok"
    assert isinstance(events[1], StreamCompletedEvent)


def test_backoff_grows_exponentially():
    assert backoff_delay(0, 0.5, 0.0) == 0.5
    assert backoff_delay(2, 0.5, 0.0) == 2.0
    assert 1.0 <= backoff_delay(1, 0.5, 0.1) <= 1.1


def test_run_sync_refuses_inside_event_loop():
    async def _inner():
        return 1

    async def _main():
        with pytest.raises(RuntimeError):
            run_sync(_inner())

    run_async(_main())
    assert run_sync(_inner()) == 1
