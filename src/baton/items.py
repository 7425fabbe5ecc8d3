"""
Typed conversation vocabulary shared by the runner, tools, and model adapters.

Items are immutable once created and a run's history is an ordered,
append-only sequence of them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, TypeAlias

from .agents.errors import RunStateCorruptionError


Role = Literal["user", "assistant", "system", "developer"]
ToolOutputStatus = Literal["completed", "failed", "rejected", "skipped"]
ItemType = Literal[
    "message",
    "tool_call",
    "tool_call_output",
    "handoff_call",
    "handoff_output",
    "reasoning",
    "approval_request",
]


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True, slots=True)
class RefusalPart:
    refusal: str
    type: Literal["refusal"] = "refusal"


@dataclass(frozen=True, slots=True)
class ImagePart:
    image_url: str
    type: Literal["image"] = "image"


ContentPart: TypeAlias = TextPart | RefusalPart | ImagePart


@dataclass(frozen=True, slots=True)
class MessageItem:
    """
    Chat message authored by the user, the system, or an agent.

    Attributes:
        role: Message author role.
        content: Ordered content parts.
        agent_name: Producing agent for assistant messages.
        id: Backend item id, when the backend assigns one.
    """

    role: Role
    content: tuple[ContentPart, ...] = ()
    agent_name: str | None = None
    id: str | None = None
    type: Literal["message"] = "message"

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content if isinstance(part, TextPart))

    @property
    def refusal(self) -> str | None:
        chunks = [part.refusal for part in self.content if isinstance(part, RefusalPart)]
        return "".join(chunks) if chunks else None

    @classmethod
    def user(cls, text: str) -> "MessageItem":
        return cls(role="user", content=(TextPart(text=text),))

    @classmethod
    def system(cls, text: str) -> "MessageItem":
        return cls(role="system", content=(TextPart(text=text),))

    @classmethod
    def assistant(cls, text: str, *, agent_name: str | None = None) -> "MessageItem":
        return cls(role="assistant", content=(TextPart(text=text),), agent_name=agent_name)


@dataclass(frozen=True, slots=True)
class ToolCallItem:
    """
    Model-issued function call. `arguments` is the raw JSON string.
    """

    call_id: str
    name: str
    arguments: str = "{}"
    agent_name: str | None = None
    id: str | None = None
    type: Literal["tool_call"] = "tool_call"


@dataclass(frozen=True, slots=True)
class ToolCallOutputItem:
    call_id: str
    name: str
    output: str
    status: ToolOutputStatus = "completed"
    agent_name: str | None = None
    type: Literal["tool_call_output"] = "tool_call_output"


@dataclass(frozen=True, slots=True)
class HandoffCallItem:
    """Function call that names a configured hand-off target."""

    call_id: str
    name: str
    target_agent: str
    arguments: str = "{}"
    agent_name: str | None = None
    id: str | None = None
    type: Literal["handoff_call"] = "handoff_call"


@dataclass(frozen=True, slots=True)
class HandoffOutputItem:
    call_id: str
    name: str
    output: str
    source_agent: str
    target_agent: str
    type: Literal["handoff_output"] = "handoff_output"


@dataclass(frozen=True, slots=True)
class ReasoningItem:
    summary: tuple[str, ...] = ()
    agent_name: str | None = None
    id: str | None = None
    type: Literal["reasoning"] = "reasoning"


@dataclass(frozen=True, slots=True)
class ApprovalRequestItem:
    """
    Pending human decision for one tool call.

    Carries everything needed to re-issue the call once approved.
    """

    call_id: str
    name: str
    arguments: str = "{}"
    agent_name: str | None = None
    type: Literal["approval_request"] = "approval_request"


RunItem: TypeAlias = (
    MessageItem
    | ToolCallItem
    | ToolCallOutputItem
    | HandoffCallItem
    | HandoffOutputItem
    | ReasoningItem
    | ApprovalRequestItem
)

TOOL_ITEM_TYPES: frozenset[str] = frozenset(
    {"tool_call", "tool_call_output", "handoff_call", "handoff_output"}
)


def to_input_items(value: str | list[RunItem] | tuple[RunItem, ...]) -> list[RunItem]:
    """
    Normalize caller input into a list of items.

    A plain string becomes one user message.
    """
    if isinstance(value, str):
        return [MessageItem.user(value)]
    return list(value)


def item_to_dict(item: RunItem) -> dict[str, Any]:
    """Serialize one item into a plain, JSON-safe record."""
    row = asdict(item)
    if isinstance(item, MessageItem):
        row["content"] = [asdict(part) for part in item.content]
    elif isinstance(item, ReasoningItem):
        row["summary"] = list(item.summary)
    return row


def item_from_dict(row: Any) -> RunItem:
    """
    Deserialize one plain record into an item.

    Raises:
        RunStateCorruptionError: If the record is malformed or its tag unknown.
    """
    if not isinstance(row, dict):
        raise RunStateCorruptionError(f"Item record must be an object, got {type(row).__name__}")
    kind = row.get("type")
    data = {k: v for k, v in row.items() if k != "type"}
    try:
        if kind == "message":
            data["content"] = tuple(_part_from_dict(p) for p in data.get("content") or [])
            return MessageItem(**data)
        if kind == "tool_call":
            return ToolCallItem(**data)
        if kind == "tool_call_output":
            return ToolCallOutputItem(**data)
        if kind == "handoff_call":
            return HandoffCallItem(**data)
        if kind == "handoff_output":
            return HandoffOutputItem(**data)
        if kind == "reasoning":
            data["summary"] = tuple(str(s) for s in data.get("summary") or [])
            return ReasoningItem(**data)
        if kind == "approval_request":
            return ApprovalRequestItem(**data)
    except TypeError as e:
        raise RunStateCorruptionError(f"Malformed '{kind}' item record: {e}") from e
    raise RunStateCorruptionError(f"Unknown item type: {kind!r}")


def _part_from_dict(row: Any) -> ContentPart:
    if not isinstance(row, dict):
        raise RunStateCorruptionError("Message content part must be an object")
    kind = row.get("type")
    if kind == "text":
        return TextPart(text=str(row.get("text", "")))
    if kind == "refusal":
        return RefusalPart(refusal=str(row.get("refusal", "")))
    if kind == "image":
        return ImagePart(image_url=str(row.get("image_url", "")))
    raise RunStateCorruptionError(f"Unknown content part type: {kind!r}")


def last_message_text(items: list[RunItem]) -> str | None:
    """Return the text of the last assistant message, if any."""
    for item in reversed(items):
        if isinstance(item, MessageItem) and item.role == "assistant":
            return item.text
    return None
