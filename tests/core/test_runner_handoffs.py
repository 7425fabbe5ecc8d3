from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from baton.agents import (
    Agent,
    AgentHooks,
    HandoffInputData,
    ModelBehaviorError,
    RunHooks,
    handoff,
    remove_all_tools,
)
from baton.core.runner import Runner, RunnerConfig
from baton.core.telemetry import InMemoryTelemetrySink
from baton.items import (
    HandoffCallItem,
    HandoffOutputItem,
    MessageItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from baton.models.base import Model
from baton.models.config import ModelConfig
from baton.models.types import ModelRequest, ModelResponse, Usage
from baton.tools import tool

TOOL_TYPES = {"tool_call", "tool_call_output", "handoff_call", "handoff_output"}


def run_async(coro):
    return asyncio.run(coro)


class _ScriptedModel(Model):
    def __init__(self, script: list) -> None:
        super().__init__(config=ModelConfig(timeout_s=None, max_retries=0))
        self.script = list(script)
        self.calls = 0
        self.requests: list[ModelRequest] = []

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        self.calls += 1
        return self.script[min(self.calls - 1, len(self.script) - 1)]


def _text(text: str) -> ModelResponse:
    return ModelResponse(output=[MessageItem.assistant(text)], usage=Usage(requests=1))


def _calls(*calls: tuple[str, str, dict | str]) -> ModelResponse:
    return ModelResponse(
        output=[
            ToolCallItem(
                call_id=call_id,
                name=name,
                arguments=args if isinstance(args, str) else json.dumps(args),
            )
            for name, call_id, args in calls
        ],
        usage=Usage(requests=1),
    )


class _Query(BaseModel):
    q: str


executed: list[str] = []


@tool(args_model=_Query, name="lookup")
def lookup(args: _Query) -> str:
    executed.append(args.q)
    return f"found {args.q}"


def test_handoff_swaps_agent_and_filter_hides_tool_items_from_new_agent():
    executed.clear()
    b_model = _ScriptedModel([_text("B here")])
    agent_b = Agent(name="B", model=b_model, handoff_description="billing questions")
    a_model = _ScriptedModel(
        [
            _calls(("lookup", "call_1", {"q": "invoice"})),
            _calls(("transfer_to_b", "call_2", {})),
        ]
    )
    agent_a = Agent(
        name="A",
        model=a_model,
        tools=[lookup],
        handoffs=[handoff(agent_b, input_filter=remove_all_tools)],
    )

    result = run_async(Runner().run(agent_a, "help with my invoice"))

    assert result.final_output == "B here"
    assert result.last_agent is agent_b
    b_input = b_model.requests[0].input
    assert not [i for i in b_input if i.type in TOOL_TYPES]
    assert [i.type for i in b_input] == ["message"]
    assert [i for i in result.history if i.type in TOOL_TYPES]
    handoff_out = next(i for i in result.history if isinstance(i, HandoffOutputItem))
    assert json.loads(handoff_out.output) == {"assistant": "B"}
    assert handoff_out.source_agent == "A"
    assert handoff_out.target_agent == "B"


def test_handoff_declared_as_tool_with_default_name_and_description():
    b_model = _ScriptedModel([_text("unused")])
    agent_b = Agent(name="Billing Agent", model=b_model, handoff_description="billing questions")
    a_model = _ScriptedModel([_text("no transfer needed")])
    agent_a = Agent(name="A", model=a_model, handoffs=[agent_b])

    run_async(Runner().run(agent_a, "hi"))

    decl = next(t for t in a_model.requests[0].tools if t.name == "transfer_to_billing_agent")
    assert decl.description.startswith("Handoff to the Billing Agent agent to handle the request.")
    assert "billing questions" in decl.description


def test_without_filter_new_agent_sees_full_history():
    b_model = _ScriptedModel([_text("B here")])
    agent_b = Agent(name="B", model=b_model)
    a_model = _ScriptedModel([_calls(("transfer_to_b", "call_1", {}))])
    agent_a = Agent(name="A", model=a_model, handoffs=[agent_b])

    run_async(Runner().run(agent_a, "hi"))

    assert [i.type for i in b_model.requests[0].input] == ["message", "handoff_call", "handoff_output"]


def test_runner_level_filter_applies_when_handoff_has_none():
    seen: list[HandoffInputData] = []

    def _keep_last_user(data: HandoffInputData) -> HandoffInputData:
        seen.append(data)
        return data.clone(pre_handoff_items=(), new_items=())

    b_model = _ScriptedModel([_text("B here")])
    agent_b = Agent(name="B", model=b_model)
    a_model = _ScriptedModel([_calls(("transfer_to_b", "call_1", {}))])
    agent_a = Agent(name="A", model=a_model, handoffs=[agent_b])

    runner = Runner(config=RunnerConfig(handoff_input_filter=_keep_last_user))
    result = run_async(runner.run(agent_a, "hi"))

    assert len(seen) == 1
    assert [i.type for i in seen[0].new_items] == ["handoff_call", "handoff_output"]
    assert [i.type for i in b_model.requests[0].input] == ["message"]
    assert len(result.history) == 4


def test_first_handoff_wins_and_siblings_are_skipped():
    executed.clear()
    b_model = _ScriptedModel([_text("B wins")])
    c_model = _ScriptedModel([_text("C never runs")])
    agent_b = Agent(name="B", model=b_model)
    agent_c = Agent(name="C", model=c_model)
    a_model = _ScriptedModel(
        [
            _calls(
                ("lookup", "call_0", {"q": "x"}),
                ("transfer_to_b", "call_1", {}),
                ("transfer_to_c", "call_2", {}),
            )
        ]
    )
    agent_a = Agent(name="A", model=a_model, tools=[lookup], handoffs=[agent_b, agent_c])
    sink = InMemoryTelemetrySink()

    result = run_async(Runner(telemetry=sink).run(agent_a, "hi"))

    assert result.final_output == "B wins"
    assert c_model.calls == 0
    assert executed == []
    skipped = {i.call_id: i for i in result.history if isinstance(i, ToolCallOutputItem)}
    assert skipped["call_0"].status == "skipped"
    assert skipped["call_2"].status == "skipped"
    assert skipped["call_2"].output == "Multiple handoffs detected, ignoring this one."
    calls = [i for i in result.history if isinstance(i, HandoffCallItem)]
    assert [c.target_agent for c in calls] == ["B", "C"]
    assert sink.counter_total("agent.handoffs.total") == 1


def test_typed_handoff_payload_reaches_callback():
    received: list[_Query] = []

    async def _on_handoff(ctx, payload: _Query) -> None:
        received.append(payload)

    b_model = _ScriptedModel([_text("ok")])
    agent_b = Agent(name="B", model=b_model)
    a_model = _ScriptedModel([_calls(("escalate", "call_1", {"q": "refund"}))])
    agent_a = Agent(
        name="A",
        model=a_model,
        handoffs=[handoff(agent_b, tool_name_override="escalate", input_model=_Query, on_handoff=_on_handoff)],
    )

    run_async(Runner().run(agent_a, "hi"))

    assert received == [_Query(q="refund")]


def test_invalid_handoff_payload_is_protocol_error():
    agent_b = Agent(name="B", model=_ScriptedModel([_text("ok")]))
    a_model = _ScriptedModel([_calls(("transfer_to_b", "call_1", '{"q": 1}'))])
    agent_a = Agent(
        name="A",
        model=a_model,
        handoffs=[handoff(agent_b, input_model=_Query, on_handoff=lambda ctx, p: None)],
    )

    with pytest.raises(ModelBehaviorError):
        run_async(Runner().run(agent_a, "hi"))


def test_disabled_handoff_is_not_offered():
    agent_b = Agent(name="B", model=_ScriptedModel([_text("ok")]))
    a_model = _ScriptedModel([_text("stayed")])
    agent_a = Agent(
        name="A",
        model=a_model,
        handoffs=[handoff(agent_b, is_enabled=lambda ctx, agent: ctx.context["allow"])],
    )

    run_async(Runner().run(agent_a, "hi", context={"allow": False}))
    assert a_model.requests[0].tools == []

    run_async(Runner().run(agent_a, "hi", context={"allow": True}))
    assert [t.name for t in a_model.requests[1].tools] == ["transfer_to_b"]


def test_handoff_hooks_and_agent_start_fire_for_new_agent():
    events: list[str] = []

    class _RunHooks(RunHooks):
        async def on_agent_start(self, ctx, agent):
            events.append(f"start:{agent.name}")

        async def on_handoff(self, ctx, from_agent, to_agent):
            events.append(f"handoff:{from_agent.name}->{to_agent.name}")

    class _BHooks(AgentHooks):
        async def on_handoff(self, ctx, agent, source):
            events.append(f"b_received_from:{source.name}")

    agent_b = Agent(name="B", model=_ScriptedModel([_text("ok")]), hooks=_BHooks())
    agent_a = Agent(name="A", model=_ScriptedModel([_calls(("transfer_to_b", "c1", {}))]), handoffs=[agent_b])

    run_async(Runner(hooks=_RunHooks()).run(agent_a, "hi"))

    assert events == ["start:A", "handoff:A->B", "b_received_from:A", "start:B"]


def test_handoff_cycle_is_allowed():
    a_model = _ScriptedModel([_calls(("transfer_to_b", "c1", {})), _text("back in A")])
    b_model = _ScriptedModel([_calls(("transfer_to_a", "c2", {}))])
    agent_a = Agent(name="A", model=a_model)
    agent_b = Agent(name="B", model=b_model, handoffs=[agent_a])
    agent_a.handoffs.append(agent_b)

    result = run_async(Runner().run(agent_a, "hi"))

    assert result.final_output == "back in A"
    assert result.last_agent is agent_a
