"""
Run results: the blocking `RunResult` and the incremental `RunResultStreaming`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator

from ..agents.errors import AgentCancelledError
from ..agents.guardrails import InputGuardrailResult, OutputGuardrailResult
from ..items import ApprovalRequestItem, RunItem
from ..models.types import ModelResponse, Usage
from .events import StreamEvent
from .runner_types import _RUN_END
from .state import RunState

if TYPE_CHECKING:
    from ..agents.base import Agent


@dataclass(frozen=True, slots=True)
class RunResult:
    """
    Terminal (or suspended) outcome of one run invocation.

    Attributes:
        input: Caller's original input.
        new_items: Every item the run produced, in order.
        history: `input` followed by `new_items`.
        final_output: Validated final output, `None` when suspended.
        last_agent: Agent active at the end.
        interruptions: Pending approvals; non-empty means suspended.
        raw_responses: Backend responses of this invocation.
        usage: Usage accumulated across the whole run.
        state: Live run state; serialize it to resume later.
    """

    input: str | list[RunItem]
    new_items: list[RunItem]
    history: list[RunItem]
    final_output: Any
    last_agent: "Agent[Any]"
    interruptions: list[ApprovalRequestItem] = field(default_factory=list)
    raw_responses: list[ModelResponse] = field(default_factory=list)
    input_guardrail_results: list[InputGuardrailResult] = field(default_factory=list)
    output_guardrail_results: list[OutputGuardrailResult] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    state: RunState[Any] | None = None
    last_response_id: str | None = None

    def to_input_list(self) -> list[RunItem]:
        """History as input for a follow-up run."""
        return list(self.history)


class RunResultStreaming:
    """
    Live view of a run executing in a background task.

    Events are pushed into an unbounded queue while the run proceeds;
    `stream_events()` drains it. The stream supports a single consumer.
    """

    def __init__(self, state: RunState[Any]) -> None:
        self.state = state
        self.current_agent: "Agent[Any]" = state.current_agent
        self.is_complete = False
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._events_consumed = False
        self._result: RunResult | None = None
        self._error: BaseException | None = None
        self._cancelled = False

    def attach_task(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def final_output(self) -> Any:
        return self._result.final_output if self._result is not None else None

    @property
    def new_items(self) -> list[RunItem]:
        return list(self.state.new_items)

    @property
    def interruptions(self) -> list[ApprovalRequestItem]:
        return list(self.state.interruptions)

    def stream_events(self) -> AsyncIterator[StreamEvent]:
        """
        Return the event stream.

        Raises:
            RuntimeError: If the stream is requested more than once.
        """
        if self._events_consumed:
            raise RuntimeError("RunResultStreaming.stream_events supports a single consumer")
        self._events_consumed = True
        return self._iter_events()

    async def _iter_events(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _RUN_END:
                break
            yield item  # type: ignore[misc]
        if self._error is not None:
            raise self._error

    async def wait(self) -> RunResult:
        """
        Wait for the run to finish, without consuming events.

        Raises:
            AgentCancelledError: If the run was cancelled.
        """
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._error is not None:
            raise self._error
        if self._result is None:
            raise AgentCancelledError("Run cancelled", state=self.state)
        return self._result

    async def cancel(self) -> None:
        """
        Stop the run at its next suspension point.

        Tool calls in flight are cancelled and their outputs never reach
        the history.
        """
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        if not self.is_complete:
            self._end()

    def _push(self, event: StreamEvent) -> None:
        if not self.is_complete:
            self._queue.put_nowait(event)

    def _set_result(self, result: RunResult) -> None:
        self._result = result

    def _set_error(self, error: BaseException) -> None:
        self._error = error

    def _end(self) -> None:
        if self.is_complete:
            return
        self.is_complete = True
        self._queue.put_nowait(_RUN_END)
