from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from baton.agents import Agent, RunStateCorruptionError
from baton.core.context import RunContext
from baton.core.runner import Runner
from baton.core.state import CURRENT_SCHEMA_VERSION, RunState
from baton.items import ApprovalRequestItem, MessageItem, ToolCallItem
from baton.models.base import Model
from baton.models.config import ModelConfig
from baton.models.types import ModelRequest, ModelResponse, Usage
from baton.tools import tool


def run_async(coro):
    return asyncio.run(coro)


class _OneShotModel(Model):
    def __init__(self, response: ModelResponse) -> None:
        super().__init__(config=ModelConfig(timeout_s=None, max_retries=0))
        self.response = response

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        return self.response


class _Args(BaseModel):
    n: int


@tool(args_model=_Args, name="guarded", needs_approval=True)
def guarded(args: _Args) -> int:
    return args.n


class _Verdict(BaseModel):
    ok: bool


def _suspended_state() -> tuple[Agent, RunState]:
    model = _OneShotModel(
        ModelResponse(
            output=[ToolCallItem(call_id="call_1", name="guarded", arguments='{"n": 3}')],
            usage=Usage(requests=1, input_tokens=4, output_tokens=1, total_tokens=5),
        )
    )
    agent = Agent(name="root", model=model, tools=[guarded])
    result = run_async(Runner().run(agent, "go", context={"k": "v"}))
    return agent, result.state


def test_state_json_round_trip_preserves_run_fields():
    agent, state = _suspended_state()

    restored = RunState.from_json(agent, state.to_json())

    assert restored.schema_version == CURRENT_SCHEMA_VERSION
    assert restored.current_agent is agent
    assert restored.current_step == "interrupted"
    assert restored.current_turn == 1
    assert restored.max_turns == 10
    assert restored.interruptions == state.interruptions
    assert restored.new_items == state.new_items
    assert restored.history == state.history
    assert restored.turn_call_ids == ["call_1"]
    assert restored.usage.total_tokens == 5
    assert restored.context.context == {"k": "v"}
    assert restored.tool_use_tracker == {"root": ["guarded"]}


def test_approvals_ledger_survives_serialization():
    agent, state = _suspended_state()
    state.approve(state.interruptions[0])

    restored = RunState.from_dict(agent, json.loads(state.to_json()))

    assert restored.context.is_tool_approved("guarded", "call_1") is True
    assert restored.context.is_tool_approved("guarded", "call_2") is None


def test_context_override_on_load():
    agent, state = _suspended_state()
    payload = object()

    restored = RunState.from_dict(agent, state.to_dict(), context=payload)

    assert restored.context.context is payload


def test_version_mismatch_is_corruption():
    agent, state = _suspended_state()
    data = state.to_dict()
    data["schema_version"] = "0.1"

    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(agent, data)


def test_unknown_agent_is_corruption():
    agent, state = _suspended_state()
    data = state.to_dict()
    data["current_agent"] = "ghost"

    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(agent, data)


def test_agents_resolve_through_handoff_graph():
    leaf = Agent(name="leaf")
    root = Agent(name="root", handoffs=[leaf])
    state = RunState(context=RunContext(), original_input="hi", starting_agent=leaf)

    restored = RunState.from_dict(root, state.to_dict())

    assert restored.current_agent is leaf


def test_malformed_payloads_are_corruption():
    agent, _ = _suspended_state()

    with pytest.raises(RunStateCorruptionError):
        RunState.from_json(agent, "{not json")
    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(agent, ["not", "a", "dict"])
    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(
            agent,
            {"schema_version": CURRENT_SCHEMA_VERSION, "current_agent": "root", "current_turn": -1},
        )


def test_typed_candidate_output_round_trips_and_rejects_mismatch():
    agent = Agent(name="typed", output_type=_Verdict)
    state = RunState(context=RunContext(), original_input="hi", starting_agent=agent)
    state.candidate_output = _Verdict(ok=True)
    state.current_step = "output_guardrails"

    data = state.to_dict()
    assert data["candidate_output"] == {"ok": True}
    assert RunState.from_dict(agent, data).candidate_output == _Verdict(ok=True)

    data["candidate_output"] = {"ok": "maybe"}
    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(agent, data)


def test_tool_sourced_output_is_kept_as_plain_json():
    agent = Agent(name="typed", output_type=_Verdict)
    state = RunState(context=RunContext(), original_input="hi", starting_agent=agent)
    state.candidate_output = {"rows": [1, 2]}
    state.output_source = "tool"
    state.current_step = "output_guardrails"

    data = state.to_dict()
    restored = RunState.from_dict(agent, data)
    assert restored.candidate_output == {"rows": [1, 2]}
    assert restored.output_source == "tool"

    data["output_source"] = "guess"
    with pytest.raises(RunStateCorruptionError):
        RunState.from_dict(agent, data)


def test_model_input_excludes_approval_requests():
    agent = Agent(name="a")
    state = RunState(context=RunContext(), original_input="hi", starting_agent=agent)
    state.commit_items(
        [
            MessageItem.assistant("thinking"),
            ApprovalRequestItem(call_id="c1", name="guarded", arguments="{}"),
        ]
    )

    assert [i.type for i in state.model_input()] == ["message", "message"]
    assert [i.type for i in state.history] == ["message", "message", "approval_request"]
