"""
Shared runtime types for runner internals.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..agents.base import FunctionToolResult, ToolsToFinalOutputResult
from ..agents.guardrails import InputGuardrail, OutputGuardrail
from ..agents.handoffs import Handoff, HandoffInputFilter
from ..items import ApprovalRequestItem, RunItem, ToolCallItem, ToolCallOutputItem
from ..models.types import ModelSettings
from .state import DEFAULT_MAX_TURNS, OutputSource

if TYPE_CHECKING:
    from ..agents.base import Agent


_RUN_END = object()


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """
    Runner-wide configuration.

    Attributes:
        max_turns: Default turn budget for runs that do not pass one.
        default_model: Model name used when an agent declares none.
        model_settings: Base settings; agent settings override them.
        handoff_input_filter: Filter applied to hand-offs without their own.
        input_guardrails: Run-level input guardrails, checked before agent ones.
        output_guardrails: Run-level output guardrails, checked before agent ones.
        max_tool_concurrency: Upper bound on tool calls running at once.
        tool_timeout_s: Registry-level default tool timeout.
        stream_guardrail_interval_chars: When set, streamed runs re-check
            output guardrails each time this many more characters arrived.
    """

    max_turns: int = DEFAULT_MAX_TURNS
    default_model: str | None = None
    model_settings: ModelSettings | None = None
    handoff_input_filter: HandoffInputFilter | None = None
    input_guardrails: tuple[InputGuardrail[Any], ...] = ()
    output_guardrails: tuple[OutputGuardrail[Any], ...] = ()
    max_tool_concurrency: int = 32
    tool_timeout_s: float | None = None
    stream_guardrail_interval_chars: int | None = None

    @staticmethod
    def from_env() -> "RunnerConfig":
        timeout = os.getenv("BATON_TOOL_TIMEOUT_S", "")
        interval = os.getenv("BATON_STREAM_GUARDRAIL_INTERVAL_CHARS", "")
        return RunnerConfig(
            max_turns=int(os.getenv("BATON_MAX_TURNS", str(DEFAULT_MAX_TURNS))),
            default_model=os.getenv("BATON_DEFAULT_MODEL") or None,
            max_tool_concurrency=int(os.getenv("BATON_MAX_TOOL_CONCURRENCY", "32")),
            tool_timeout_s=float(timeout) if timeout.strip() else None,
            stream_guardrail_interval_chars=int(interval) if interval.strip() else None,
        )


@dataclass(frozen=True, slots=True)
class _ToolOutcome:
    """
    Result of dispatching one tool call.

    Exactly one of `output_item` / `approval_item` is set.
    """

    call: ToolCallItem
    output_item: ToolCallOutputItem | None = None
    approval_item: ApprovalRequestItem | None = None
    result: FunctionToolResult | None = None


@dataclass(frozen=True, slots=True)
class _NextStepRunAgain:
    pass


@dataclass(frozen=True, slots=True)
class _NextStepHandoff:
    handoff: Handoff[Any]
    new_agent: "Agent[Any]"


@dataclass(frozen=True, slots=True)
class _NextStepFinalOutput:
    output: Any
    source: OutputSource = "model"


@dataclass(frozen=True, slots=True)
class _NextStepInterruption:
    interruptions: list[ApprovalRequestItem]


_NextStep = _NextStepRunAgain | _NextStepHandoff | _NextStepFinalOutput | _NextStepInterruption


@dataclass(frozen=True, slots=True)
class _TurnResult:
    """
    Items and decision of one dispatched turn, not yet committed.

    Attributes:
        items: Model output items followed by the outputs they caused.
        next_step: What the loop does next.
        pre_handoff_items: Model-view generated items before this turn.
    """

    items: list[RunItem]
    next_step: _NextStep
    pre_handoff_items: list[RunItem]


def _final_from_tools(results: list[FunctionToolResult]) -> ToolsToFinalOutputResult:
    if not results:
        return ToolsToFinalOutputResult(is_final_output=False)
    return ToolsToFinalOutputResult(is_final_output=True, final_output=results[0].output)
