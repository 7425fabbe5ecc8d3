"""
Core execution loop for the baton runner.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, assert_never

from ..agents.base import Agent, FunctionToolResult
from ..agents.errors import (
    AgentConfigurationError,
    AgentError,
    GuardrailExecutionError,
    MaxTurnsExceededError,
    ModelBehaviorError,
    OutputValidationError,
    ToolCallError,
)
from ..agents.handoffs import Handoff
from ..agents.lifecycle import RunHooks
from ..items import (
    HandoffCallItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
    last_message_text,
)
from ..models.types import ModelResponse, StreamCompletedEvent, StreamTextDeltaEvent
from .events import RawModelStreamEvent
from .result import RunResult, RunResultStreaming
from .runner_types import (
    _NextStep,
    _NextStepFinalOutput,
    _NextStepHandoff,
    _NextStepInterruption,
    _NextStepRunAgain,
    _TurnResult,
)
from .state import OutputSource, RunState


class RunnerExecutionMixin:
    """Implements the turn loop, resume flow, and final-output handling."""

    async def _execute(
        self,
        state: RunState[Any],
        *,
        hooks: RunHooks[Any],
        stream: RunResultStreaming | None = None,
    ) -> RunResult:
        """
        Drive one run invocation to a terminal or suspended result.

        Args:
            state: Fresh or resumed run state; mutated in place.
            hooks: Run-level lifecycle listener.
            stream: Streaming result receiving projected events, if any.

        Returns:
            Result of this invocation. Non-empty `interruptions` means the
            run is suspended.
        """
        run_span = self._telemetry_start_span(
            "agent.run",
            attributes={
                "agent_name": state.current_agent.name,
                "max_turns": state.max_turns,
                "resumed": state.current_step != "running",
                "streaming": stream is not None,
            },
        )
        run_started_s = time.time()
        run_span_status = "error"
        run_span_error: str | None = None
        try:
            result = await self._run_loop(state, hooks=hooks, stream=stream)
            run_span_status = "interrupted" if result.interruptions else "ok"
            return result
        except asyncio.CancelledError:
            run_span_status = "cancelled"
            raise
        except AgentError as e:
            run_span_error = str(e)
            if e.state is None:
                e.state = state
            raise
        except Exception as e:
            run_span_error = str(e)
            raise
        finally:
            self._telemetry_end_span(
                run_span,
                status=run_span_status,
                error=run_span_error,
                attributes={
                    "turns": state.current_turn,
                    "last_agent": state.current_agent.name,
                },
            )
            self._telemetry_histogram(
                "agent.run.duration_ms",
                value=(time.time() - run_started_s) * 1000.0,
                attributes={"status": run_span_status},
            )

    async def _run_loop(
        self,
        state: RunState[Any],
        *,
        hooks: RunHooks[Any],
        stream: RunResultStreaming | None,
    ) -> RunResult:
        if state.current_step == "final_output":
            return self._build_result(state)
        if state.current_step == "output_guardrails":
            return await self._finalize(
                state, state.current_agent, state.candidate_output, source=state.output_source, hooks=hooks
            )
        if state.current_step == "interrupted":
            step = await self._resume_interrupted_turn(state, state.current_agent, hooks=hooks, stream=stream)
            if isinstance(step, _NextStepFinalOutput):
                return await self._finalize(state, state.current_agent, step.output, source=step.source, hooks=hooks)
            if isinstance(step, _NextStepInterruption):
                return self._build_result(state)

        agent_changed = True
        while True:
            agent = state.current_agent
            state.current_turn += 1
            if state.current_turn > state.max_turns:
                raise MaxTurnsExceededError(
                    f"Max turns ({state.max_turns}) exceeded",
                    state=state,
                )

            turn_span = self._telemetry_start_span(
                "agent.turn",
                attributes={"agent_name": agent.name, "turn": state.current_turn},
            )
            self._telemetry_counter("agent.turns.total", attributes={"agent_name": agent.name})
            turn_status = "error"
            turn_error: str | None = None
            try:
                if agent_changed:
                    await hooks.on_agent_start(state.context, agent)
                    if agent.hooks is not None:
                        await agent.hooks.on_start(state.context, agent)
                    agent_changed = False

                if state.current_turn == 1:
                    try:
                        await self._run_input_guardrails(state, agent)
                    except GuardrailExecutionError:
                        state.current_turn -= 1
                        raise

                handoffs = await agent.enabled_handoffs(state.context)
                try:
                    response = await self._call_model(state, agent, handoffs, stream=stream)
                except GuardrailExecutionError:
                    state.current_turn -= 1
                    raise
                try:
                    turn = await self._process_turn(state, agent, response, handoffs, hooks=hooks, stream=stream)
                except ToolCallError as e:
                    state.current_turn -= 1
                    e.state = state
                    raise
                turn_status = "ok"
            except asyncio.CancelledError:
                turn_status = "cancelled"
                raise
            except Exception as e:
                turn_error = str(e)
                raise
            finally:
                self._telemetry_end_span(turn_span, status=turn_status, error=turn_error)

            step = turn.next_step
            if isinstance(step, _NextStepFinalOutput):
                return await self._finalize(state, agent, step.output, source=step.source, hooks=hooks)
            elif isinstance(step, _NextStepInterruption):
                return self._build_result(state)
            elif isinstance(step, _NextStepHandoff):
                agent_changed = True
            elif isinstance(step, _NextStepRunAgain):
                continue
            else:
                assert_never(step)

    # ''''''''''''''''''''''''''''''''''''''
    # Model call
    # ''''''''''''''''''''''''''''''''''''''

    async def _call_model(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        handoffs: list[Handoff[Any]],
        *,
        stream: RunResultStreaming | None,
    ) -> ModelResponse:
        """
        Call the model once and record its response on the state.

        In streaming mode raw events are forwarded as they arrive and output
        guardrails re-check the partial text every
        `stream_guardrail_interval_chars` characters.

        Raises:
            ModelBehaviorError: If a stream ends without a completion event.
        """
        model = self._resolve_model(agent)
        request = await self._build_request(state, agent, handoffs)

        if stream is None:
            response = await model.get_response(request)
        else:
            completed: ModelResponse | None = None
            interval = self.config.stream_guardrail_interval_chars
            next_check = interval or 0
            buffer = ""
            async for event in model.stream_response(request):
                self._emit(stream, RawModelStreamEvent(data=event))
                if isinstance(event, StreamTextDeltaEvent):
                    buffer += event.delta
                    if interval and len(buffer) >= next_check:
                        await self._run_output_guardrails(state, agent, buffer, record=False)
                        next_check = (len(buffer) // interval + 1) * interval
                elif isinstance(event, StreamCompletedEvent):
                    completed = event.response
            if completed is None:
                raise ModelBehaviorError(
                    "Model stream ended without a completion event",
                    state=state,
                )
            response = completed

        state.raw_responses.append(response)
        state.context.add_usage(response.usage)
        state.turn_usage = response.usage
        if response.response_id:
            state.last_response_id = response.response_id
        return response

    # ''''''''''''''''''''''''''''''''''''''
    # Dispatch
    # ''''''''''''''''''''''''''''''''''''''

    async def _process_turn(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        response: ModelResponse,
        handoffs: list[Handoff[Any]],
        *,
        hooks: RunHooks[Any],
        stream: RunResultStreaming | None,
    ) -> _TurnResult:
        """
        Classify one response and decide the next step.

        Items are committed only after dispatch succeeded.
        """
        model_items = self._classify_model_output(state, agent, response, handoffs)
        self._emit_items(stream, model_items)
        pre_handoff_items = list(state.generated_items)

        if any(isinstance(i, HandoffCallItem) for i in model_items):
            h, new_agent, outputs = await self._dispatch_handoff(state, agent, model_items, handoffs)
            items: list[RunItem] = [*model_items, *outputs]
            state.turn_call_ids = []
            state.commit_items(items)
            self._emit_items(stream, outputs)
            await self._complete_handoff(
                state,
                agent,
                h,
                new_agent,
                turn_items=items,
                pre_handoff_items=pre_handoff_items,
                hooks=hooks,
                stream=stream,
            )
            return _TurnResult(
                items=items,
                next_step=_NextStepHandoff(handoff=h, new_agent=new_agent),
                pre_handoff_items=pre_handoff_items,
            )

        calls = [i for i in model_items if isinstance(i, ToolCallItem)]
        if calls:
            outcomes = await self._execute_tool_calls(state, agent, calls, hooks=hooks)
            outputs = [o.output_item for o in outcomes if o.output_item is not None]
            approvals = [o.approval_item for o in outcomes if o.approval_item is not None]
            next_step: _NextStep
            if approvals:
                next_step = _NextStepInterruption(interruptions=approvals)
            else:
                decision = await self._apply_tool_use_behavior(
                    state, agent, [o.result for o in outcomes if o.result is not None]
                )
                next_step = (
                    _NextStepFinalOutput(output=decision.final_output, source="tool")
                    if decision.is_final_output
                    else _NextStepRunAgain()
                )

            items = [*model_items, *outputs, *approvals]
            state.turn_call_ids = [c.call_id for c in calls]
            state.record_tool_use(agent.name, [c.name for c in calls])
            state.commit_items(items)
            if approvals:
                state.interruptions = list(approvals)
                state.current_step = "interrupted"
            self._emit_items(stream, [*outputs, *approvals])
            return _TurnResult(items=items, next_step=next_step, pre_handoff_items=pre_handoff_items)

        state.turn_call_ids = []
        text = last_message_text(model_items)
        if text is None:
            next_step = _NextStepRunAgain()
        elif agent.output_schema is None:
            next_step = _NextStepFinalOutput(output=text)
        else:
            try:
                next_step = _NextStepFinalOutput(output=agent.output_schema.validate_json(text))
            except OutputValidationError as e:
                e.state = state
                raise
        state.commit_items(model_items)
        return _TurnResult(items=model_items, next_step=next_step, pre_handoff_items=pre_handoff_items)

    async def _resume_interrupted_turn(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        *,
        hooks: RunHooks[Any],
        stream: RunResultStreaming | None,
    ) -> _NextStep:
        """
        Finish the suspended turn: run approved calls, reject the rest, then
        apply the tool-use policy to every output of that turn.

        Raises:
            AgentConfigurationError: If an interruption is undecided or names
                a tool the agent no longer has.
        """
        pending = [
            i.name
            for i in state.interruptions
            if state.context.is_tool_approved(i.name, i.call_id) is None
        ]
        if pending:
            raise AgentConfigurationError(
                f"Cannot resume: interruptions without an approval decision: {pending}",
                state=state,
            )

        tools = {t.name: t for t in agent.tools}
        missing = [i.name for i in state.interruptions if i.name not in tools]
        if missing:
            raise AgentConfigurationError(
                f"Cannot resume: agent '{agent.name}' has no tools named {missing}",
                state=state,
            )

        calls = [
            ToolCallItem(
                call_id=i.call_id,
                name=i.name,
                arguments=i.arguments,
                agent_name=i.agent_name,
            )
            for i in state.interruptions
        ]
        try:
            outcomes = await self._execute_tool_calls(state, agent, calls, hooks=hooks)
        except ToolCallError as e:
            e.state = state
            raise

        outputs = [o.output_item for o in outcomes if o.output_item is not None]
        approvals = [o.approval_item for o in outcomes if o.approval_item is not None]
        state.commit_items([*outputs, *approvals])
        self._emit_items(stream, [*outputs, *approvals])
        if approvals:
            state.interruptions = list(approvals)
            return _NextStepInterruption(interruptions=approvals)
        state.interruptions = []
        state.current_step = "running"

        fresh = {o.call.call_id: o.result for o in outcomes if o.result is not None}
        results: list[FunctionToolResult] = []
        for call_id in state.turn_call_ids:
            result = fresh.get(call_id) or self._prior_tool_result(state, tools, call_id)
            if result is not None:
                results.append(result)

        decision = await self._apply_tool_use_behavior(state, agent, results)
        if decision.is_final_output:
            return _NextStepFinalOutput(output=decision.final_output, source="tool")
        return _NextStepRunAgain()

    def _prior_tool_result(
        self,
        state: RunState[Any],
        tools: dict[str, Any],
        call_id: str,
    ) -> FunctionToolResult | None:
        for item in reversed(state.new_items):
            if isinstance(item, ToolCallOutputItem) and item.call_id == call_id:
                tool = tools.get(item.name)
                if tool is None or item.status not in ("completed", "failed"):
                    return None
                return FunctionToolResult(tool=tool, output=item.output, run_item=item)
        return None

    # ''''''''''''''''''''''''''''''''''''''
    # Final output
    # ''''''''''''''''''''''''''''''''''''''

    async def _finalize(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        output: Any,
        *,
        source: OutputSource = "model",
        hooks: RunHooks[Any],
    ) -> RunResult:
        state.candidate_output = output
        state.output_source = source
        state.current_step = "output_guardrails"
        await self._run_output_guardrails(state, agent, output)

        state.final_output = output
        state.candidate_output = None
        state.current_step = "final_output"
        await hooks.on_agent_end(state.context, agent, output)
        if agent.hooks is not None:
            await agent.hooks.on_end(state.context, agent, output)
        return self._build_result(state)
