"""
Tool dispatch for the runner: approval gating, concurrent execution, and
tool-use policy evaluation.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from ..agents.base import (
    Agent,
    FunctionToolResult,
    StopAtTools,
    ToolsToFinalOutputResult,
)
from ..agents.errors import AgentConfigurationError, ToolCallError
from ..agents.lifecycle import RunHooks
from ..items import ApprovalRequestItem, ToolCallItem, ToolCallOutputItem
from ..tools.base import ToolContext, call_maybe_async, to_output_text
from ..tools.errors import ToolError, ToolValidationError
from ..tools.registry import ToolRegistry
from .runner_types import _final_from_tools, _ToolOutcome
from .state import RunState

REJECTED_TOOL_OUTPUT = "Tool execution was not approved."


class RunnerToolsMixin:
    """Executes one turn's tool calls and applies the agent's tool-use policy."""

    def _tool_registry(self, agent: Agent[Any]) -> ToolRegistry:
        return agent.build_tool_registry(
            max_concurrency=self.config.max_tool_concurrency,
            default_timeout=self.config.tool_timeout_s,
        )

    async def _execute_tool_calls(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        calls: list[ToolCallItem],
        *,
        hooks: RunHooks[Any],
    ) -> list[_ToolOutcome]:
        """
        Run every call concurrently and return outcomes in call order.

        All calls settle before the first failure (in call order) is raised.
        """
        if not calls:
            return []
        registry = self._tool_registry(agent)
        settled = await asyncio.gather(
            *(self._run_tool_call(state, agent, registry, call, hooks=hooks) for call in calls),
            return_exceptions=True,
        )
        for outcome in settled:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(settled)  # type: ignore[arg-type]

    async def _run_tool_call(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        registry: ToolRegistry,
        call: ToolCallItem,
        *,
        hooks: RunHooks[Any],
    ) -> _ToolOutcome:
        tool = registry.get(call.name)
        span = self._telemetry_start_span(
            "agent.tool",
            attributes={
                "tool_name": call.name,
                "tool_call_id": call.call_id,
                "agent_name": agent.name,
            },
        )
        started_s = time.time()
        status = "error"
        error: str | None = None
        try:
            try:
                args = tool.validate(call.arguments)
            except ToolValidationError as e:
                status = "failed"
                return _ToolOutcome(call=call, output_item=self._tool_output(call, agent, str(e), "failed"))

            if await tool.requires_approval(state.context, args, call.call_id):
                decision = state.context.is_tool_approved(tool.name, call.call_id)
                if decision is None:
                    status = "interrupted"
                    return _ToolOutcome(
                        call=call,
                        approval_item=ApprovalRequestItem(
                            call_id=call.call_id,
                            name=call.name,
                            arguments=call.arguments,
                            agent_name=agent.name,
                        ),
                    )
                if decision is False:
                    status = "rejected"
                    return _ToolOutcome(
                        call=call,
                        output_item=self._tool_output(call, agent, REJECTED_TOOL_OUTPUT, "rejected"),
                    )

            self._telemetry_counter("agent.tool_calls.total", attributes={"tool_name": tool.name})
            await hooks.on_tool_start(state.context, agent, tool)
            if agent.hooks is not None:
                await agent.hooks.on_tool_start(state.context, agent, tool)

            ctx = ToolContext(
                context=state.context.context,
                usage=state.context.usage,
                tool_call_id=call.call_id,
                tool_name=tool.name,
                agent_name=agent.name,
            )
            try:
                res = await registry.call(tool.name, args, ctx=ctx, tool_call_id=call.call_id)
            except ToolError as e:
                raise ToolCallError(
                    f"Tool '{tool.name}' failed: {e}",
                    tool_name=tool.name,
                ) from e

            if res.success:
                raw_output: Any = res.output
                text = to_output_text(res.output)
                item_status = "completed"
            else:
                text = await tool.format_error(state.context, res.error or ToolError(res.error_message or ""))
                raw_output = text
                item_status = "failed"
                error = res.error_message

            await hooks.on_tool_end(state.context, agent, tool, text)
            if agent.hooks is not None:
                await agent.hooks.on_tool_end(state.context, agent, tool, text)

            item = self._tool_output(call, agent, text, item_status)
            status = "ok" if res.success else "failed"
            return _ToolOutcome(
                call=call,
                output_item=item,
                result=FunctionToolResult(tool=tool, output=raw_output, run_item=item),
            )
        except asyncio.CancelledError:
            status = "cancelled"
            raise
        except Exception as e:
            error = str(e)
            raise
        finally:
            self._telemetry_end_span(span, status=status, error=error)
            self._telemetry_histogram(
                "agent.tool.duration_ms",
                value=(time.time() - started_s) * 1000.0,
                attributes={"tool_name": call.name, "status": status},
            )

    def _tool_output(
        self,
        call: ToolCallItem,
        agent: Agent[Any],
        output: str,
        status: Any,
    ) -> ToolCallOutputItem:
        return ToolCallOutputItem(
            call_id=call.call_id,
            name=call.name,
            output=output,
            status=status,
            agent_name=agent.name,
        )

    async def _apply_tool_use_behavior(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        results: list[FunctionToolResult],
    ) -> ToolsToFinalOutputResult:
        """Decide whether the tool results of a turn end the run."""
        if not results:
            return ToolsToFinalOutputResult(is_final_output=False)

        behavior = agent.tool_use_behavior
        if behavior == "run_llm_again":
            return ToolsToFinalOutputResult(is_final_output=False)
        if behavior == "stop_on_first_tool":
            return _final_from_tools(results)
        if isinstance(behavior, StopAtTools):
            stopping = [r for r in results if r.tool.name in behavior.stop_at_tool_names]
            return _final_from_tools(stopping)
        if callable(behavior):
            out = await call_maybe_async(behavior, state.context, list(results))
            if not isinstance(out, ToolsToFinalOutputResult):
                raise AgentConfigurationError(
                    f"tool_use_behavior of agent '{agent.name}' must return ToolsToFinalOutputResult, "
                    f"got {type(out).__name__}"
                )
            return out
        raise AgentConfigurationError(f"Unknown tool_use_behavior: {behavior!r}")
