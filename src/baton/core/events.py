"""
Events yielded by `RunResultStreaming.stream_events()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias, assert_never

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
from ..models.types import ModelStreamEvent

if TYPE_CHECKING:
    from ..agents.base import Agent

RunItemEventName = Literal[
    "message_output_created",
    "handoff_requested",
    "handoff_occurred",
    "tool_called",
    "tool_output",
    "reasoning_item_created",
    "tool_approval_requested",
]


@dataclass(frozen=True, slots=True)
class RawModelStreamEvent:
    """Pass-through of one backend stream event."""

    data: ModelStreamEvent
    type: Literal["raw_model_stream_event"] = "raw_model_stream_event"


@dataclass(frozen=True, slots=True)
class RunItemStreamEvent:
    """
    A structurally complete run item.

    Attributes:
        name: What happened.
        item: The item that was created.
    """

    name: RunItemEventName
    item: RunItem
    type: Literal["run_item_stream_event"] = "run_item_stream_event"


@dataclass(frozen=True, slots=True)
class AgentUpdatedStreamEvent:
    """Emitted once per hand-off, naming the agent now in control."""

    new_agent: "Agent[Any]"
    type: Literal["agent_updated_stream_event"] = "agent_updated_stream_event"


StreamEvent: TypeAlias = RawModelStreamEvent | RunItemStreamEvent | AgentUpdatedStreamEvent


def item_event_name(item: RunItem) -> RunItemEventName:
    if isinstance(item, MessageItem):
        return "message_output_created"
    if isinstance(item, ToolCallItem):
        return "tool_called"
    if isinstance(item, ToolCallOutputItem):
        return "tool_output"
    if isinstance(item, HandoffCallItem):
        return "handoff_requested"
    if isinstance(item, HandoffOutputItem):
        return "handoff_occurred"
    if isinstance(item, ReasoningItem):
        return "reasoning_item_created"
    if isinstance(item, ApprovalRequestItem):
        return "tool_approval_requested"
    assert_never(item)
