"""
Hand-off declarations: how one agent transfers control to another.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, TypeVar, Union

from ..items import TOOL_ITEM_TYPES, RunItem
from ..models.types import FunctionDeclaration
from ..schema import SchemaAdapter
from ..tools.base import call_maybe_async
from .errors import AgentConfigurationError, ModelBehaviorError, SchemaValidationError

if TYPE_CHECKING:
    from ..core.context import RunContext
    from .base import Agent

TContext = TypeVar("TContext")

RECOMMENDED_PROMPT_PREFIX = (
    "# System context\n"
    "You are part of a multi-agent system. Agents bundle instructions and tools, "
    "and can hand off a conversation to another agent when appropriate. Handoffs "
    "are achieved by calling a handoff function, generally named "
    "`transfer_to_<agent_name>`. Transfers between agents are handled seamlessly "
    "in the background; do not mention or draw attention to these transfers in "
    "your conversation with the user."
)


def prompt_with_handoff_instructions(prompt: str) -> str:
    """Prefix agent instructions with the recommended hand-off guidance."""
    return f"{RECOMMENDED_PROMPT_PREFIX}\n\n{prompt}"


@dataclass(frozen=True, slots=True)
class HandoffInputData:
    """
    History handed to the receiving agent, split by origin.

    Attributes:
        input_history: Input the run (or the previous hand-off) started from.
        pre_handoff_items: Items generated before the turn that handed off.
        new_items: Items of the hand-off turn, including the transfer pair.
    """

    input_history: tuple[RunItem, ...]
    pre_handoff_items: tuple[RunItem, ...]
    new_items: tuple[RunItem, ...]

    def clone(self, **changes: Any) -> "HandoffInputData":
        return replace(self, **changes)


HandoffInputFilter = Callable[[HandoffInputData], Union[HandoffInputData, Awaitable[HandoffInputData]]]
HandoffEnabledPredicate = Callable[..., Union[bool, Awaitable[bool]]]
OnHandoffCallback = Callable[..., Any]


def remove_all_tools(data: HandoffInputData) -> HandoffInputData:
    """Hand-off filter that strips tool and hand-off traffic from every segment."""

    def _strip(items: tuple[RunItem, ...]) -> tuple[RunItem, ...]:
        return tuple(i for i in items if i.type not in TOOL_ITEM_TYPES)

    return HandoffInputData(
        input_history=_strip(data.input_history),
        pre_handoff_items=_strip(data.pre_handoff_items),
        new_items=_strip(data.new_items),
    )


def function_tool_name(name: str) -> str:
    """Turn an agent name into a valid function-tool identifier."""
    out = re.sub(r"[^a-zA-Z0-9]", "_", re.sub(r"\s", "_", name.strip())).lower()
    if not out:
        raise AgentConfigurationError("Tool name cannot be empty")
    return out


def default_tool_name(agent: "Agent[Any]") -> str:
    return f"transfer_to_{function_tool_name(agent.name)}"


def default_tool_description(agent: "Agent[Any]") -> str:
    return f"Handoff to the {agent.name} agent to handle the request. {agent.handoff_description or ''}"


def get_transfer_message(agent: "Agent[Any]") -> str:
    return json.dumps({"assistant": agent.name})


_EMPTY_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "required": [],
    "additionalProperties": False,
}


class Handoff(Generic[TContext]):
    """
    A transfer edge to `agent`, exposed to the model as a function tool.

    `on_handoff` is called as `(run_context)` or, when `input_model` is set,
    `(run_context, parsed_input)`. Its failures propagate.
    """

    def __init__(
        self,
        *,
        agent: "Agent[Any]",
        tool_name: str | None = None,
        tool_description: str | None = None,
        input_model: Any = None,
        on_handoff: OnHandoffCallback | None = None,
        input_filter: HandoffInputFilter | None = None,
        is_enabled: bool | HandoffEnabledPredicate = True,
    ) -> None:
        if input_model is not None and on_handoff is None:
            raise AgentConfigurationError("input_model requires an on_handoff callback to receive it")

        self.agent = agent
        self.tool_name = tool_name or default_tool_name(agent)
        self.tool_description = tool_description or default_tool_description(agent)
        self.input_model = input_model
        self.on_handoff = on_handoff
        self.input_filter = input_filter
        self.is_enabled = is_enabled

        self._input_adapter: SchemaAdapter[Any] | None = None
        if input_model is not None:
            self._input_adapter = SchemaAdapter(input_model, name=self.tool_name)

    @property
    def agent_name(self) -> str:
        return self.agent.name

    def parameters_schema(self) -> dict[str, Any]:
        if self._input_adapter is None:
            return dict(_EMPTY_PARAMETERS)
        return self._input_adapter.json_schema()

    def to_declaration(self) -> FunctionDeclaration:
        return FunctionDeclaration(
            name=self.tool_name,
            description=self.tool_description,
            parameters=self.parameters_schema(),
            strict=True,
        )

    async def enabled(self, run_context: "RunContext[TContext]", agent: "Agent[Any]") -> bool:
        if isinstance(self.is_enabled, bool):
            return self.is_enabled
        return bool(await call_maybe_async(self.is_enabled, run_context, agent))

    async def invoke(self, run_context: "RunContext[TContext]", arguments: str) -> "Agent[Any]":
        """
        Validate the model's hand-off payload and run the transfer callback.

        Raises:
            ModelBehaviorError: If a typed payload is empty or invalid.
        """
        if self._input_adapter is not None:
            if not arguments or not arguments.strip():
                raise ModelBehaviorError("Handoff function expected non empty input")
            try:
                parsed = self._input_adapter.validate_json(arguments)
            except SchemaValidationError as e:
                raise ModelBehaviorError(f"Invalid JSON provided for handoff '{self.tool_name}'") from e
            if self.on_handoff is not None:
                await call_maybe_async(self.on_handoff, run_context, parsed)
        elif self.on_handoff is not None:
            await call_maybe_async(self.on_handoff, run_context)
        return self.agent

    def transfer_message(self) -> str:
        return get_transfer_message(self.agent)


def handoff(
    agent: "Agent[Any]",
    *,
    tool_name_override: str | None = None,
    tool_description_override: str | None = None,
    input_model: Any = None,
    on_handoff: OnHandoffCallback | None = None,
    input_filter: HandoffInputFilter | None = None,
    is_enabled: bool | HandoffEnabledPredicate = True,
) -> Handoff[Any]:
    """Build a `Handoff` to `agent` with optional overrides."""
    return Handoff(
        agent=agent,
        tool_name=tool_name_override,
        tool_description=tool_description_override,
        input_model=input_model,
        on_handoff=on_handoff,
        input_filter=input_filter,
        is_enabled=is_enabled,
    )
