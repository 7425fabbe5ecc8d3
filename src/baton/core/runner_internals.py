"""
Internal helpers shared by runner mixins: model resolution, request building,
model-output classification, event emission, and guarded telemetry.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, assert_never

from ..agents.base import Agent
from ..agents.errors import AgentConfigurationError, ModelBehaviorError
from ..agents.handoffs import Handoff
from ..items import (
    ApprovalRequestItem,
    HandoffCallItem,
    HandoffOutputItem,
    MessageItem,
    ReasoningItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from ..models.base import Model
from ..models.types import JSONValue, ModelRequest, ModelResponse, ModelSettings
from ..tools.export import to_declarations
from .events import RunItemStreamEvent, StreamEvent, item_event_name
from .result import RunResult, RunResultStreaming
from .state import RunState
from .telemetry import TelemetryEvent, TelemetrySpan, now_ms

if TYPE_CHECKING:
    from ..models.base import ModelProvider
    from .runner_types import RunnerConfig
    from .telemetry import TelemetrySink


class RunnerInternalsMixin:
    """Stateless helpers; dependencies are wired by `RunnerAPIMixin.__init__`."""

    config: "RunnerConfig"
    _model_provider: "ModelProvider | None"
    _telemetry: "TelemetrySink"

    # ''''''''''''''''''''''''''''''''''''''
    # Model request / response
    # ''''''''''''''''''''''''''''''''''''''

    def _resolve_model(self, agent: Agent[Any]) -> Model:
        """
        Resolve `agent.model` into a `Model` instance.

        Raises:
            AgentConfigurationError: If a model name cannot be resolved.
        """
        if isinstance(agent.model, Model):
            return agent.model
        name = agent.model or self.config.default_model
        if self._model_provider is None:
            raise AgentConfigurationError(
                f"Agent '{agent.name}' needs model {name!r} but the runner has no model_provider"
            )
        return self._model_provider.get_model(name)

    def _resolve_settings(self, state: RunState[Any], agent: Agent[Any]) -> ModelSettings:
        base = self.config.model_settings or ModelSettings()
        settings = base.resolve(agent.model_settings)
        # A forced tool choice would loop forever once the agent used tools.
        forced = settings.tool_choice == "required" or isinstance(settings.tool_choice, dict)
        if agent.reset_tool_choice and forced and state.tool_use_tracker.get(agent.name):
            settings = dataclasses.replace(settings, tool_choice=None)
        return settings

    async def _build_request(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        handoffs: list[Handoff[Any]],
    ) -> ModelRequest:
        instructions = await agent.resolve_instructions(state.context)
        tools = to_declarations(t.spec for t in agent.tools)
        tools.extend(h.to_declaration() for h in handoffs)
        return ModelRequest(
            input=state.model_input(),
            system_instructions=instructions,
            tools=tools,
            output_schema=(
                agent.output_schema.to_declaration() if agent.output_schema is not None else None
            ),
            model_settings=self._resolve_settings(state, agent),
            previous_response_id=state.previous_response_id,
        )

    def _classify_model_output(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        response: ModelResponse,
        handoffs: list[Handoff[Any]],
    ) -> list[RunItem]:
        """
        Stamp model items with the agent name and turn hand-off calls into
        `HandoffCallItem`s.

        Raises:
            ModelBehaviorError: On unknown tool names or item kinds a model
                must not produce.
        """
        tool_names = {t.name for t in agent.tools}
        by_tool_name = {h.tool_name: h for h in handoffs}
        out: list[RunItem] = []

        for item in response.output:
            if isinstance(item, (MessageItem, ReasoningItem)):
                out.append(dataclasses.replace(item, agent_name=agent.name))
            elif isinstance(item, ToolCallItem):
                target = by_tool_name.get(item.name)
                if target is not None:
                    out.append(
                        HandoffCallItem(
                            call_id=item.call_id,
                            name=item.name,
                            target_agent=target.agent_name,
                            arguments=item.arguments,
                            agent_name=agent.name,
                            id=item.id,
                        )
                    )
                elif item.name in tool_names:
                    out.append(dataclasses.replace(item, agent_name=agent.name))
                else:
                    raise ModelBehaviorError(
                        f"Tool {item.name} not found in agent {agent.name}",
                        state=state,
                    )
            elif isinstance(item, (ToolCallOutputItem, HandoffCallItem, HandoffOutputItem, ApprovalRequestItem)):
                raise ModelBehaviorError(
                    f"Model returned a '{item.type}' item, which only the runtime may create",
                    state=state,
                )
            else:
                assert_never(item)
        return out

    def _build_result(self, state: RunState[Any]) -> RunResult:
        return RunResult(
            input=state.input,
            new_items=list(state.new_items),
            history=state.history,
            final_output=state.final_output,
            last_agent=state.current_agent,
            interruptions=list(state.interruptions),
            raw_responses=list(state.raw_responses),
            input_guardrail_results=list(state.input_guardrail_results),
            output_guardrail_results=list(state.output_guardrail_results),
            usage=state.usage,
            state=state,
            last_response_id=state.last_response_id,
        )

    # ''''''''''''''''''''''''''''''''''''''
    # Events
    # ''''''''''''''''''''''''''''''''''''''

    def _emit(self, stream: RunResultStreaming | None, event: StreamEvent) -> None:
        """Publish one event to the stream (if any) and to telemetry."""
        if stream is not None:
            stream._push(event)
        attributes: dict[str, JSONValue] = {"event_type": event.type}
        if isinstance(event, RunItemStreamEvent):
            attributes["name"] = event.name
            attributes["agent_name"] = getattr(event.item, "agent_name", None)
        elif event.type == "agent_updated_stream_event":
            attributes["agent_name"] = event.new_agent.name  # type: ignore[union-attr]
        else:
            # Raw deltas are too chatty for telemetry.
            return
        try:
            self._telemetry.record_event(
                TelemetryEvent(name="agent.run.event", timestamp_ms=now_ms(), attributes=attributes)
            )
        except Exception:
            return

    def _emit_items(self, stream: RunResultStreaming | None, items: list[RunItem]) -> None:
        for item in items:
            self._emit(stream, RunItemStreamEvent(name=item_event_name(item), item=item))

    # ''''''''''''''''''''''''''''''''''''''
    # Telemetry
    # ''''''''''''''''''''''''''''''''''''''

    def _telemetry_start_span(
        self,
        name: str,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> TelemetrySpan | None:
        try:
            return self._telemetry.start_span(name, attributes=attributes)
        except Exception:
            return None

    def _telemetry_end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        try:
            self._telemetry.end_span(span, status=status, error=error, attributes=attributes)
        except Exception:
            return None

    def _telemetry_counter(
        self,
        name: str,
        *,
        value: int = 1,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        try:
            self._telemetry.increment_counter(name, value=value, attributes=attributes)
        except Exception:
            return None

    def _telemetry_histogram(
        self,
        name: str,
        *,
        value: float,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        try:
            self._telemetry.record_histogram(name, value, attributes=attributes)
        except Exception:
            return None
