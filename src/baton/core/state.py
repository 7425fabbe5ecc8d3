"""
Serializable run state: the unit of resumability.
"""

from __future__ import annotations

import json
from collections import deque
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar

from ..agents.errors import RunStateCorruptionError
from ..agents.guardrails import (
    GuardrailFunctionOutput,
    InputGuardrailResult,
    OutputGuardrailResult,
)
from ..items import (
    ApprovalRequestItem,
    RunItem,
    item_from_dict,
    item_to_dict,
    to_input_items,
)
from ..models.normalization import is_json_value, to_jsonable
from ..models.types import ModelResponse, Usage
from .context import RunContext

if TYPE_CHECKING:
    from ..agents.base import Agent

TContext = TypeVar("TContext")

CURRENT_SCHEMA_VERSION = "1.0"
DEFAULT_MAX_TURNS = 10

RunStep = Literal["running", "interrupted", "output_guardrails", "final_output"]
_RUN_STEPS = ("running", "interrupted", "output_guardrails", "final_output")

# "model" outputs were validated against `output_type`; "tool" outputs come
# from a tool-use policy and are stored as plain JSON.
OutputSource = Literal["model", "tool"]
_OUTPUT_SOURCES = ("model", "tool")


class RunState(Generic[TContext]):
    """
    Everything needed to continue a run in another process.

    Three item views are kept:
      - `input_items` + `generated_items`: what the model sees next turn.
        Hand-off input filters rewrite these.
      - `history`: original input followed by every item the run produced.
        Append-only and never rewritten.

    The active agent is stored by name and resolved against the caller's
    agent graph when the state is loaded.
    """

    def __init__(
        self,
        *,
        context: RunContext[TContext],
        original_input: str | list[RunItem],
        starting_agent: "Agent[Any]",
        max_turns: int = DEFAULT_MAX_TURNS,
        previous_response_id: str | None = None,
    ) -> None:
        self.schema_version = CURRENT_SCHEMA_VERSION
        self.context = context
        self.input = original_input if isinstance(original_input, str) else list(original_input)
        self.current_agent = starting_agent
        self.current_turn = 0
        self.max_turns = max_turns
        self.current_step: RunStep = "running"

        self.input_items: list[RunItem] = to_input_items(original_input)
        self.generated_items: list[RunItem] = []
        self.new_items: list[RunItem] = []

        self.interruptions: list[ApprovalRequestItem] = []
        self.turn_call_ids: list[str] = []

        self.turn_usage = Usage()
        self.tool_use_tracker: dict[str, list[str]] = {}
        self.previous_response_id = previous_response_id
        self.last_response_id: str | None = None

        self.input_guardrail_results: list[InputGuardrailResult] = []
        self.output_guardrail_results: list[OutputGuardrailResult] = []
        self.candidate_output: Any = None
        self.final_output: Any = None
        self.output_source: OutputSource = "model"

        # Live-only: raw responses of the current invocation are not persisted.
        self.raw_responses: list[ModelResponse] = []

    @property
    def usage(self) -> Usage:
        return self.context.usage

    @property
    def history(self) -> list[RunItem]:
        return [*to_input_items(self.input), *self.new_items]

    def model_input(self) -> list[RunItem]:
        """Model-visible items, without pending approval requests."""
        return [
            item
            for item in (*self.input_items, *self.generated_items)
            if not isinstance(item, ApprovalRequestItem)
        ]

    def approve(self, item: ApprovalRequestItem, *, always: bool = False) -> None:
        self.context.approve_tool(item, always=always)

    def reject(self, item: ApprovalRequestItem, *, always: bool = False) -> None:
        self.context.reject_tool(item, always=always)

    def commit_items(self, items: list[RunItem]) -> None:
        """Append one turn's items to both the model view and the history."""
        self.generated_items.extend(items)
        self.new_items.extend(items)

    def record_tool_use(self, agent_name: str, tool_names: list[str]) -> None:
        if not tool_names:
            return
        used = self.tool_use_tracker.setdefault(agent_name, [])
        for name in tool_names:
            if name not in used:
                used.append(name)

    # ''''''''''''''''''''''''''''''''''''''
    # Serialization
    # ''''''''''''''''''''''''''''''''''''''

    def to_dict(self) -> dict[str, Any]:
        payload = self.context.context
        return {
            "schema_version": self.schema_version,
            "current_turn": self.current_turn,
            "max_turns": self.max_turns,
            "current_agent": self.current_agent.name,
            "current_step": self.current_step,
            "input": (
                self.input
                if isinstance(self.input, str)
                else [item_to_dict(i) for i in self.input]
            ),
            "input_items": [item_to_dict(i) for i in self.input_items],
            "generated_items": [item_to_dict(i) for i in self.generated_items],
            "new_items": [item_to_dict(i) for i in self.new_items],
            "interruptions": [item_to_dict(i) for i in self.interruptions],
            "turn_call_ids": list(self.turn_call_ids),
            "usage": self.usage.to_dict(),
            "turn_usage": self.turn_usage.to_dict(),
            "context": {
                "context": payload if is_json_value(payload) else None,
                "approvals": self.context.approvals_to_dict(),
            },
            "tool_use_tracker": {k: list(v) for k, v in self.tool_use_tracker.items()},
            "previous_response_id": self.previous_response_id,
            "last_response_id": self.last_response_id,
            "input_guardrail_results": [
                _serialize_guardrail_result(r) for r in self.input_guardrail_results
            ],
            "output_guardrail_results": [
                _serialize_guardrail_result(r) for r in self.output_guardrail_results
            ],
            "output_source": self.output_source,
            "candidate_output": _dump_output(self.current_agent, self.candidate_output, self.output_source),
            "final_output": _dump_output(self.current_agent, self.final_output, self.output_source),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(
        cls,
        starting_agent: "Agent[Any]",
        data: Any,
        *,
        context: Any = None,
    ) -> "RunState[Any]":
        """
        Rebuild a state produced by `to_dict`.

        Args:
            starting_agent: Root of the agent graph; the active agent is found
                by walking hand-offs from here.
            data: Serialized state.
            context: Context payload override. Required when the original
                payload was not JSON-safe.

        Raises:
            RunStateCorruptionError: On version mismatch, unknown agents, or
                malformed fields.
        """
        if not isinstance(data, dict):
            raise RunStateCorruptionError("Run state must be an object")

        version = data.get("schema_version")
        if version != CURRENT_SCHEMA_VERSION:
            raise RunStateCorruptionError(
                f"Run state schema version {version!r} is not supported "
                f"(expected {CURRENT_SCHEMA_VERSION!r})"
            )

        agents = _agent_graph(starting_agent)
        agent_name = data.get("current_agent")
        agent = agents.get(agent_name) if isinstance(agent_name, str) else None
        if agent is None:
            raise RunStateCorruptionError(f"Agent {agent_name!r} not found in the agent graph")

        step = data.get("current_step", "running")
        if step not in _RUN_STEPS:
            raise RunStateCorruptionError(f"Unknown run step: {step!r}")

        ctx_row = data.get("context") or {}
        if not isinstance(ctx_row, dict):
            raise RunStateCorruptionError("Run state 'context' must be an object")
        run_context: RunContext[Any] = RunContext(
            context if context is not None else ctx_row.get("context"),
            usage=Usage.from_dict(data.get("usage")),
        )
        run_context.load_approvals(ctx_row.get("approvals") or {})

        raw_input = data.get("input")
        original_input: str | list[RunItem]
        if isinstance(raw_input, str):
            original_input = raw_input
        else:
            original_input = _items(raw_input, "input")

        state: RunState[Any] = cls(
            context=run_context,
            original_input=original_input,
            starting_agent=agent,
            max_turns=_int(data.get("max_turns"), "max_turns"),
            previous_response_id=_opt_str(data.get("previous_response_id"), "previous_response_id"),
        )
        state.current_turn = _int(data.get("current_turn"), "current_turn")
        state.current_step = step
        state.input_items = _items(data.get("input_items"), "input_items")
        state.generated_items = _items(data.get("generated_items"), "generated_items")
        state.new_items = _items(data.get("new_items"), "new_items")

        interruptions = _items(data.get("interruptions", []), "interruptions")
        if not all(isinstance(i, ApprovalRequestItem) for i in interruptions):
            raise RunStateCorruptionError("Interruptions must be approval_request items")
        state.interruptions = interruptions  # type: ignore[assignment]

        call_ids = data.get("turn_call_ids", [])
        if not isinstance(call_ids, list) or not all(isinstance(c, str) for c in call_ids):
            raise RunStateCorruptionError("Run state 'turn_call_ids' must be a list of strings")
        state.turn_call_ids = list(call_ids)

        state.turn_usage = Usage.from_dict(data.get("turn_usage"))
        tracker = data.get("tool_use_tracker", {})
        if not isinstance(tracker, dict):
            raise RunStateCorruptionError("Run state 'tool_use_tracker' must be an object")
        state.tool_use_tracker = {str(k): [str(n) for n in v] for k, v in tracker.items() if isinstance(v, list)}
        state.last_response_id = _opt_str(data.get("last_response_id"), "last_response_id")

        state.input_guardrail_results = [
            InputGuardrailResult(guardrail_name=name, output=output)
            for name, output, _ in _guardrail_rows(data.get("input_guardrail_results", []))
        ]
        state.output_guardrail_results = [
            OutputGuardrailResult(guardrail_name=name, output=output, agent_name=owner)
            for name, output, owner in _guardrail_rows(data.get("output_guardrail_results", []))
        ]
        source = data.get("output_source", "model")
        if source not in _OUTPUT_SOURCES:
            raise RunStateCorruptionError(f"Unknown output source: {source!r}")
        state.output_source = source
        state.candidate_output = _load_output(agent, data.get("candidate_output"), source)
        state.final_output = _load_output(agent, data.get("final_output"), source)
        return state

    @classmethod
    def from_json(
        cls,
        starting_agent: "Agent[Any]",
        text: str,
        *,
        context: Any = None,
    ) -> "RunState[Any]":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise RunStateCorruptionError(f"Run state is not valid JSON: {e}") from e
        return cls.from_dict(starting_agent, data, context=context)


def _agent_graph(root: "Agent[Any]") -> dict[str, "Agent[Any]"]:
    """Breadth-first walk over hand-off edges, first name wins."""
    found: dict[str, Agent[Any]] = {}
    queue: deque[Agent[Any]] = deque([root])
    while queue:
        agent = queue.popleft()
        if agent.name in found:
            continue
        found[agent.name] = agent
        for h in agent.get_handoffs():
            if h.agent.name not in found:
                queue.append(h.agent)
    return found


def _items(value: Any, field_name: str) -> list[RunItem]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise RunStateCorruptionError(f"Run state '{field_name}' must be a list")
    return [item_from_dict(row) for row in value]


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise RunStateCorruptionError(f"Run state '{field_name}' must be a non-negative integer")
    return value


def _opt_str(value: Any, field_name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise RunStateCorruptionError(f"Run state '{field_name}' must be a string or null")


def _serialize_guardrail_result(result: InputGuardrailResult | OutputGuardrailResult) -> dict[str, Any]:
    row: dict[str, Any] = {
        "guardrail_name": result.guardrail_name,
        "output": {
            "tripwire_triggered": result.output.tripwire_triggered,
            "output_info": to_jsonable(result.output.output_info),
        },
    }
    if isinstance(result, OutputGuardrailResult):
        row["agent_name"] = result.agent_name
    return row


def _guardrail_rows(value: Any) -> list[tuple[str, GuardrailFunctionOutput, str | None]]:
    if not isinstance(value, list):
        raise RunStateCorruptionError("Guardrail results must be a list")
    out: list[tuple[str, GuardrailFunctionOutput, str | None]] = []
    for row in value:
        output = row.get("output") if isinstance(row, dict) else None
        if not isinstance(output, dict) or not isinstance(row.get("guardrail_name"), str):
            raise RunStateCorruptionError(f"Malformed guardrail result: {row!r}")
        out.append(
            (
                row["guardrail_name"],
                GuardrailFunctionOutput(
                    tripwire_triggered=bool(output.get("tripwire_triggered")),
                    output_info=output.get("output_info"),
                ),
                row.get("agent_name") if isinstance(row.get("agent_name"), str) else None,
            )
        )
    return out


def _dump_output(agent: "Agent[Any]", value: Any, source: OutputSource) -> Any:
    if value is None:
        return None
    if source == "model" and agent.output_schema is not None:
        return agent.output_schema.dump(value)
    return to_jsonable(value)


def _load_output(agent: "Agent[Any]", value: Any, source: OutputSource) -> Any:
    if value is None or source == "tool" or agent.output_schema is None:
        return value
    try:
        return agent.output_schema.load(value)
    except Exception as e:
        raise RunStateCorruptionError(
            f"Stored output does not match agent '{agent.name}' output type"
        ) from e
