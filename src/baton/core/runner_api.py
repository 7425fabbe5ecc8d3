"""
Public runner API and lifecycle entrypoints.
"""

from __future__ import annotations

import asyncio
from typing import Any

from ..agents.base import Agent
from ..agents.errors import AgentConfigurationError
from ..agents.lifecycle import RunHooks
from ..items import RunItem
from ..models.base import ModelProvider
from ..models.utils import run_sync
from .context import RunContext
from .result import RunResult, RunResultStreaming
from .runner_types import RunnerConfig
from .state import RunState
from .telemetry import NullTelemetrySink, TelemetrySink


class RunnerAPIMixin:
    """
    Public API surface for running and resuming agents.

    This mixin owns dependency wiring (model provider, hooks, telemetry)
    and exposes the stable entrypoints `run`, `run_streamed` and `run_sync`.
    """

    def __init__(
        self,
        *,
        model_provider: ModelProvider | None = None,
        config: RunnerConfig | None = None,
        hooks: RunHooks[Any] | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        """
        Initialize a runner with optional runtime dependencies.

        Args:
            model_provider: Resolves model names declared on agents. Not
                needed when every agent carries a `Model` instance.
            config: Runner configuration. Defaults to `RunnerConfig()`.
            hooks: Default run-level lifecycle listener.
            telemetry: Telemetry sink for counters/spans/events.
        """
        self.config = config or RunnerConfig()
        self._model_provider = model_provider
        self._hooks = hooks
        self._telemetry = telemetry or NullTelemetrySink()

    async def run(
        self,
        agent: Agent[Any],
        input: str | list[RunItem] | RunState[Any],
        *,
        context: Any = None,
        max_turns: int | None = None,
        previous_response_id: str | None = None,
        hooks: RunHooks[Any] | None = None,
    ) -> RunResult:
        """
        Execute a run and wait for its result.

        Args:
            agent: Starting agent. Ignored for the active agent when `input`
                is a `RunState`, which carries its own.
            input: User text, input items, or a suspended `RunState`.
            context: Caller payload threaded to instructions, tools,
                guardrails and hooks. Never inspected by the runner.
            max_turns: Turn budget override.
            previous_response_id: Backend-side conversation id.
            hooks: Run-level listener for this call.

        Returns:
            Terminal result, or a suspended one with `interruptions`.

        Raises:
            MaxTurnsExceededError: If the turn budget is exhausted.
            InputGuardrailTripwireTriggered: If an input check tripped.
            OutputGuardrailTripwireTriggered: If an output check tripped.
            AgentConfigurationError: On invalid usage, such as resuming with
                undecided interruptions.
        """
        state = self._prepare_state(
            agent,
            input,
            context=context,
            max_turns=max_turns,
            previous_response_id=previous_response_id,
        )
        return await self._execute(state, hooks=self._resolve_hooks(hooks))

    def run_streamed(
        self,
        agent: Agent[Any],
        input: str | list[RunItem] | RunState[Any],
        *,
        context: Any = None,
        max_turns: int | None = None,
        previous_response_id: str | None = None,
        hooks: RunHooks[Any] | None = None,
    ) -> RunResultStreaming:
        """
        Start a run in a background task and return its live view.

        Must be called from inside a running event loop.
        """
        state = self._prepare_state(
            agent,
            input,
            context=context,
            max_turns=max_turns,
            previous_response_id=previous_response_id,
        )
        stream = RunResultStreaming(state)
        task = asyncio.create_task(
            self._run_streamed_task(state, stream, hooks=self._resolve_hooks(hooks))
        )
        stream.attach_task(task)
        return stream

    def run_sync(
        self,
        agent: Agent[Any],
        input: str | list[RunItem] | RunState[Any],
        *,
        context: Any = None,
        max_turns: int | None = None,
        previous_response_id: str | None = None,
        hooks: RunHooks[Any] | None = None,
    ) -> RunResult:
        """
        Blocking wrapper around `run`.

        Raises:
            RuntimeError: If called inside a running event loop.
        """
        return run_sync(
            self.run(
                agent,
                input,
                context=context,
                max_turns=max_turns,
                previous_response_id=previous_response_id,
                hooks=hooks,
            )
        )

    def _resolve_hooks(self, hooks: RunHooks[Any] | None) -> RunHooks[Any]:
        return hooks or self._hooks or RunHooks()

    def _prepare_state(
        self,
        agent: Agent[Any],
        input: str | list[RunItem] | RunState[Any],
        *,
        context: Any,
        max_turns: int | None,
        previous_response_id: str | None,
    ) -> RunState[Any]:
        if max_turns is not None and max_turns < 1:
            raise AgentConfigurationError("max_turns must be >= 1")

        if isinstance(input, RunState):
            state = input
            if context is not None:
                state.context.context = context
            if max_turns is not None:
                state.max_turns = max_turns
            if previous_response_id is not None:
                state.previous_response_id = previous_response_id
            state.raw_responses = []
            return state

        if not isinstance(input, (str, list)):
            raise AgentConfigurationError(
                f"Run input must be a string, a list of items, or a RunState; got {type(input).__name__}"
            )
        return RunState(
            context=RunContext(context),
            original_input=input,
            starting_agent=agent,
            max_turns=max_turns or self.config.max_turns,
            previous_response_id=previous_response_id,
        )

    async def _run_streamed_task(
        self,
        state: RunState[Any],
        stream: RunResultStreaming,
        *,
        hooks: RunHooks[Any],
    ) -> None:
        try:
            result = await self._execute(state, hooks=hooks, stream=stream)
            stream._set_result(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            stream._set_error(e)
        finally:
            stream.current_agent = state.current_agent
            stream._end()
