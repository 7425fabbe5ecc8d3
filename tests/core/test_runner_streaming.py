from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from baton.agents import (
    AgentCancelledError,
    Agent,
    GuardrailExecutionError,
    GuardrailFunctionOutput,
    ModelBehaviorError,
    OutputGuardrailTripwireTriggered,
    output_guardrail,
)
from baton.core.events import AgentUpdatedStreamEvent, RawModelStreamEvent, RunItemStreamEvent
from baton.core.runner import Runner, RunnerConfig
from baton.items import MessageItem, ToolCallItem, ToolCallOutputItem
from baton.models.base import Model
from baton.models.config import ModelConfig
from baton.models.types import (
    ModelRequest,
    ModelResponse,
    StreamCompletedEvent,
    StreamTextDeltaEvent,
    Usage,
)
from baton.tools import tool


def run_async(coro):
    return asyncio.run(coro)


class _ScriptedModel(Model):
    def __init__(self, script: list) -> None:
        super().__init__(config=ModelConfig(timeout_s=None, max_retries=0))
        self.script = list(script)
        self.calls = 0

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        self.calls += 1
        return self.script[min(self.calls - 1, len(self.script) - 1)]


class _ChunkedModel(Model):
    """Streams text in fixed chunks, optionally pausing between them."""

    def __init__(self, chunks: list[str], *, delay: float = 0.0, complete: bool = True) -> None:
        super().__init__(config=ModelConfig(timeout_s=None, max_retries=0))
        self.chunks = chunks
        self.delay = delay
        self.complete = complete
        self.sent: list[str] = []

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        return _text("".join(self.chunks))

    async def _stream_core(self, request: ModelRequest):
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.sent.append(chunk)
            yield StreamTextDeltaEvent(delta=chunk)
        if self.complete:
            yield StreamCompletedEvent(response=_text("".join(self.chunks)))


def _text(text: str) -> ModelResponse:
    return ModelResponse(output=[MessageItem.assistant(text)], usage=Usage(requests=1))


def _handoff_call(name: str) -> ModelResponse:
    return ModelResponse(
        output=[ToolCallItem(call_id="call_1", name=name, arguments=json.dumps({}))],
        usage=Usage(requests=1),
    )


async def _collect(stream) -> list:
    return [event async for event in stream.stream_events()]


def test_streamed_run_emits_raw_then_item_events_and_matches_final_output():
    agent = Agent(name="a", model=_ChunkedModel(["Hel", "lo"]))

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        events = await _collect(stream)
        return stream, events, await stream.wait()

    stream, events, result = run_async(_main())

    deltas = [e.data.delta for e in events if isinstance(e, RawModelStreamEvent) and e.data.type == "text_delta"]
    assert deltas == ["Hel", "lo"]
    items = [e for e in events if isinstance(e, RunItemStreamEvent)]
    assert [e.name for e in items] == ["message_output_created"]
    assert events.index(items[0]) > max(i for i, e in enumerate(events) if isinstance(e, RawModelStreamEvent))
    assert result.final_output == "Hello"
    assert stream.final_output == "Hello"
    assert stream.is_complete
    assert not [e for e in events if isinstance(e, AgentUpdatedStreamEvent)]


def test_agent_updated_emitted_once_per_handoff_only():
    agent_b = Agent(name="B", model=_ScriptedModel([_text("from B")]))
    agent_a = Agent(name="A", model=_ScriptedModel([_handoff_call("transfer_to_b")]), handoffs=[agent_b])

    async def _main():
        first = Runner().run_streamed(agent_a, "hi")
        first_events = await _collect(first)
        first_result = await first.wait()
        second = Runner().run_streamed(agent_b, first_result.to_input_list())
        second_events = await _collect(second)
        return first, first_events, second_events

    first, first_events, second_events = run_async(_main())

    updates = [e for e in first_events if isinstance(e, AgentUpdatedStreamEvent)]
    assert len(updates) == 1
    assert updates[0].new_agent is agent_b
    assert first.current_agent is agent_b
    names = [e.name for e in first_events if isinstance(e, RunItemStreamEvent)]
    assert names == ["handoff_requested", "handoff_occurred", "message_output_created"]
    assert not [e for e in second_events if isinstance(e, AgentUpdatedStreamEvent)]


def test_stream_events_supports_single_consumer():
    agent = Agent(name="a", model=_ChunkedModel(["ok"]))

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        stream.stream_events()
        with pytest.raises(RuntimeError):
            stream.stream_events()
        return await stream.wait()

    assert run_async(_main()).final_output == "ok"


def test_wait_without_consuming_events():
    agent = Agent(name="a", model=_ChunkedModel(["a", "b", "c"]))

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        return await stream.wait()

    result = run_async(_main())
    assert result.final_output == "abc"


def test_stream_without_completion_is_protocol_error():
    agent = Agent(name="a", model=_ChunkedModel(["partial"], complete=False))

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        events = []
        with pytest.raises(ModelBehaviorError):
            async for event in stream.stream_events():
                events.append(event)
        with pytest.raises(ModelBehaviorError):
            await stream.wait()
        return events

    events = run_async(_main())
    assert [e.data.type for e in events] == ["text_delta"]


def test_interval_output_guardrail_stops_stream_before_completion():
    @output_guardrail
    def no_bad_words(ctx, agent, output):
        return GuardrailFunctionOutput(tripwire_triggered="BAD" in str(output))

    model = _ChunkedModel(["hello ", "world ", "BAD stuff", " more", " text"])
    agent = Agent(name="a", model=model, output_guardrails=[no_bad_words])
    runner = Runner(config=RunnerConfig(stream_guardrail_interval_chars=5))

    async def _main():
        stream = runner.run_streamed(agent, "hi")
        events = []
        with pytest.raises(OutputGuardrailTripwireTriggered):
            async for event in stream.stream_events():
                events.append(event)
        return stream, events

    stream, events = run_async(_main())

    assert model.sent == ["hello ", "world ", "BAD stuff"]
    assert not [e for e in events if isinstance(e, RawModelStreamEvent) and e.data.type == "completed"]
    assert stream.final_output is None
    assert stream.state.output_guardrail_results == []


def test_cancel_stops_run_and_ends_stream():
    model = _ChunkedModel(["one", "two", "three", "four"], delay=0.2)
    agent = Agent(name="a", model=model)

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        events = []
        async for event in stream.stream_events():
            events.append(event)
            await stream.cancel()
        with pytest.raises(AgentCancelledError):
            await stream.wait()
        return stream, events

    stream, events = run_async(_main())

    assert stream.is_complete
    assert len(events) == 1
    assert model.sent == ["one"]
    assert stream.final_output is None


def test_broken_interval_guardrail_does_not_consume_a_turn():
    @output_guardrail
    def broken(ctx, agent, output):
        raise RuntimeError("moderation API down")

    agent = Agent(name="a", model=_ChunkedModel(["abc", "def"]), output_guardrails=[broken])
    runner = Runner(config=RunnerConfig(stream_guardrail_interval_chars=3))

    async def _main():
        stream = runner.run_streamed(agent, "hi", max_turns=1)
        with pytest.raises(GuardrailExecutionError) as exc:
            await stream.wait()
        return exc.value.state

    state = run_async(_main())
    assert state.current_turn == 0

    agent.output_guardrails = []
    result = run_async(runner.run(agent, state))
    assert result.final_output == "abcdef"


class _WaitArgs(BaseModel):
    seconds: float


def test_cancel_discards_output_of_tool_in_flight():
    finished: list[bool] = []

    @tool(args_model=_WaitArgs, name="wait")
    async def wait(args: _WaitArgs) -> str:
        await asyncio.sleep(args.seconds)
        finished.append(True)
        return "late"

    model = _ScriptedModel(
        [
            ModelResponse(
                output=[ToolCallItem(call_id="c1", name="wait", arguments=json.dumps({"seconds": 1.0}))],
                usage=Usage(requests=1),
            ),
            _text("unreachable"),
        ]
    )
    agent = Agent(name="a", model=model, tools=[wait])

    async def _main():
        stream = Runner().run_streamed(agent, "hi")
        await asyncio.sleep(0.1)
        await stream.cancel()
        with pytest.raises(AgentCancelledError):
            await stream.wait()
        return stream

    stream = run_async(_main())

    assert finished == []
    assert model.calls == 1
    assert not [i for i in stream.state.new_items if isinstance(i, ToolCallOutputItem)]
    assert stream.final_output is None
