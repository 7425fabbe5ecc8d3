"""
Hand-off resolution for the runner.
"""

from __future__ import annotations

from typing import Any

from ..agents.base import Agent
from ..agents.errors import AgentConfigurationError, ModelBehaviorError
from ..agents.handoffs import Handoff, HandoffInputData
from ..agents.lifecycle import RunHooks
from ..items import HandoffCallItem, HandoffOutputItem, RunItem, ToolCallItem, ToolCallOutputItem
from ..tools.base import call_maybe_async
from .events import AgentUpdatedStreamEvent
from .result import RunResultStreaming
from .state import RunState

MULTIPLE_HANDOFFS_OUTPUT = "Multiple handoffs detected, ignoring this one."
SKIPPED_FOR_HANDOFF_OUTPUT = "Tool call skipped because a handoff was requested in the same turn."


class RunnerHandoffsMixin:
    """Resolves hand-off calls, rewrites the model view, and swaps agents."""

    async def _dispatch_handoff(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        model_items: list[RunItem],
        handoffs: list[Handoff[Any]],
    ) -> tuple[Handoff[Any], Agent[Any], list[RunItem]]:
        """
        Run the first hand-off call of a turn.

        Sibling hand-offs and tool calls are answered with `skipped` outputs,
        in call order, and never executed.

        Returns:
            The winning hand-off, its target agent, and the output items.

        Raises:
            ModelBehaviorError: If the hand-off payload is invalid.
        """
        by_tool_name = {h.tool_name: h for h in handoffs}
        winner: tuple[Handoff[Any], Agent[Any], HandoffCallItem] | None = None
        outputs: list[RunItem] = []

        for item in model_items:
            if isinstance(item, HandoffCallItem):
                if winner is None:
                    h = by_tool_name.get(item.name)
                    if h is None:
                        raise ModelBehaviorError(
                            f"Handoff {item.name} not found in agent {agent.name}",
                            state=state,
                        )
                    new_agent = await h.invoke(state.context, item.arguments)
                    winner = (h, new_agent, item)
                    outputs.append(
                        HandoffOutputItem(
                            call_id=item.call_id,
                            name=item.name,
                            output=h.transfer_message(),
                            source_agent=agent.name,
                            target_agent=new_agent.name,
                        )
                    )
                else:
                    outputs.append(
                        ToolCallOutputItem(
                            call_id=item.call_id,
                            name=item.name,
                            output=MULTIPLE_HANDOFFS_OUTPUT,
                            status="skipped",
                            agent_name=agent.name,
                        )
                    )
            elif isinstance(item, ToolCallItem):
                outputs.append(
                    ToolCallOutputItem(
                        call_id=item.call_id,
                        name=item.name,
                        output=SKIPPED_FOR_HANDOFF_OUTPUT,
                        status="skipped",
                        agent_name=agent.name,
                    )
                )

        if winner is None:
            raise ModelBehaviorError("No handoff call to dispatch", state=state)

        h, new_agent, call = winner
        self._telemetry_counter(
            "agent.handoffs.total",
            attributes={"from_agent": agent.name, "to_agent": new_agent.name, "tool_name": call.name},
        )
        return h, new_agent, outputs

    async def _complete_handoff(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        h: Handoff[Any],
        new_agent: Agent[Any],
        *,
        turn_items: list[RunItem],
        pre_handoff_items: list[RunItem],
        hooks: RunHooks[Any],
        stream: RunResultStreaming | None,
    ) -> None:
        """Filter the model view, fire hooks, and make `new_agent` active."""
        input_filter = h.input_filter or self.config.handoff_input_filter
        if input_filter is not None:
            data = HandoffInputData(
                input_history=tuple(state.input_items),
                pre_handoff_items=tuple(pre_handoff_items),
                new_items=tuple(turn_items),
            )
            filtered = await call_maybe_async(input_filter, data)
            if not isinstance(filtered, HandoffInputData):
                raise AgentConfigurationError(
                    f"Handoff input filter for '{h.tool_name}' must return HandoffInputData"
                )
            state.input_items = list(filtered.input_history)
            state.generated_items = [*filtered.pre_handoff_items, *filtered.new_items]

        await hooks.on_handoff(state.context, agent, new_agent)
        if new_agent.hooks is not None:
            await new_agent.hooks.on_handoff(state.context, new_agent, agent)

        state.current_agent = new_agent
        if stream is not None:
            stream.current_agent = new_agent
        self._emit(stream, AgentUpdatedStreamEvent(new_agent=new_agent))
