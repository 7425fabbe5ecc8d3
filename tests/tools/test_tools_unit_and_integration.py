from __future__ import annotations

import asyncio
import time

import pytest
from pydantic import BaseModel

from baton.tools import (
    ToolAlreadyRegisteredError,
    ToolContext,
    ToolExecutionError,
    ToolNotFoundError,
    ToolRegistry,
    ToolTimeoutError,
    ToolValidationError,
    to_declarations,
    tool,
)
from baton.tools.base import as_async, to_output_text


def run_async(coro):
    return asyncio.run(coro)


class EchoArgs(BaseModel):
    text: str


class AddArgs(BaseModel):
    a: int
    b: int


class SleepArgs(BaseModel):
    delay: float


def test_as_async_supports_sync_and_async_functions():
    def sync_fn(value: int) -> int:
        return value + 1

    async def async_fn(value: int) -> int:
        return value + 2

    assert run_async(as_async(sync_fn)(10)) == 11
    assert run_async(as_async(async_fn)(10)) == 12


def test_tool_decorator_uses_docstring_for_default_description():
    @tool(args_model=EchoArgs)
    def doc_tool(args: EchoArgs) -> str:
        """Echoes transformed user text.

        Extra detail is not part of the description.
        """
        return args.text

    assert doc_tool.name == "doc_tool"
    assert doc_tool.spec.description == "Echoes transformed user text."
    assert doc_tool.spec.parameters_schema["type"] == "object"
    assert doc_tool.needs_approval is False


def test_tool_function_signature_variants_are_supported():
    @tool(args_model=EchoArgs, name="args_only")
    def args_only(args: EchoArgs) -> str:
        return args.text

    @tool(args_model=EchoArgs, name="args_ctx")
    def args_ctx(args: EchoArgs, ctx: ToolContext) -> str:
        return f"{ctx.agent_name}:{args.text}"

    @tool(args_model=EchoArgs, name="ctx_args")
    async def ctx_args(ctx: ToolContext, args: EchoArgs) -> str:
        return f"{ctx.tool_call_id}:{args.text}"

    result_1 = run_async(args_only.call({"text": "hello"}))
    result_2 = run_async(args_ctx.call({"text": "hello"}, ctx=ToolContext(agent_name="a1")))
    result_3 = run_async(ctx_args.call('{"text": "hello"}', ctx=ToolContext(tool_call_id="call_9")))

    assert result_1.success and result_1.output == "hello"
    assert result_2.success and result_2.output == "a1:hello"
    assert result_3.success and result_3.output == "call_9:hello"


def test_invalid_tool_signature_is_rejected():
    with pytest.raises(ToolValidationError):

        @tool(args_model=EchoArgs, name="bad")
        def bad(first: EchoArgs, second: str) -> str:
            return first.text + second

        _ = bad

    with pytest.raises(ToolValidationError):

        @tool(args_model=EchoArgs, name="varargs")
        def varargs(*args) -> str:
            return ""

        _ = varargs


def test_validation_and_execution_errors_return_failed_tool_result():
    @tool(args_model=AddArgs, name="add")
    def add_tool(args: AddArgs) -> int:
        if args.b == 0:
            raise ValueError("b cannot be zero here")
        return args.a + args.b

    ok = run_async(add_tool.call({"a": 1, "b": 2}, tool_call_id="c1"))
    invalid = run_async(add_tool.call('{"a": "one", "b": 2}'))
    broken_json = run_async(add_tool.call("{not json"))
    failed = run_async(add_tool.call({"a": 1, "b": 0}))

    assert ok.success and ok.output == 3 and ok.tool_call_id == "c1"
    assert not invalid.success and isinstance(invalid.error, ToolValidationError)
    assert not broken_json.success and isinstance(broken_json.error, ToolValidationError)
    assert not failed.success and isinstance(failed.error, ToolExecutionError)
    assert "b cannot be zero here" in failed.error_message


def test_validation_is_strict_and_never_coerces():
    @tool(args_model=AddArgs, name="add")
    def add_tool(args: AddArgs) -> int:
        return args.a + args.b

    result = run_async(add_tool.call({"a": "1", "b": 2}))

    assert not result.success


def test_empty_arguments_parse_as_empty_object():
    class NoArgs(BaseModel):
        pass

    @tool(args_model=NoArgs, name="ping")
    def ping(args: NoArgs) -> str:
        return "pong"

    assert run_async(ping.call("")).output == "pong"


def test_tool_opted_out_of_error_mapping_raises():
    @tool(args_model=AddArgs, name="strict_add", error_function=None)
    def strict_add(args: AddArgs) -> int:
        raise RuntimeError("boom")

    with pytest.raises(ToolExecutionError):
        run_async(strict_add.call({"a": 1, "b": 1}))

    with pytest.raises(ToolValidationError):
        run_async(strict_add.call({"a": 1}))


def test_custom_error_function_and_format_error():
    @tool(args_model=AddArgs, name="add", error_function=lambda ctx, err: f"add failed: {err}")
    def add_tool(args: AddArgs) -> int:
        return args.a + args.b

    text = run_async(add_tool.format_error(None, ValueError("nope")))

    assert text == "add failed: nope"


def test_tool_timeout_returns_failure():
    @tool(args_model=SleepArgs, name="sleepy", timeout=0.01)
    async def sleepy(args: SleepArgs) -> str:
        await asyncio.sleep(args.delay)
        return "done"

    result = run_async(sleepy.call({"delay": 0.2}))

    assert not result.success
    assert isinstance(result.error, ToolTimeoutError)


def test_approval_predicate_sees_parsed_args():
    seen: list[tuple] = []

    async def _guard(run_context, args, call_id):
        seen.append((args.a, call_id))
        return args.a > 10

    @tool(args_model=AddArgs, name="add", needs_approval=_guard)
    def add_tool(args: AddArgs) -> int:
        return args.a + args.b

    assert run_async(add_tool.requires_approval(None, AddArgs(a=11, b=0), "c1")) is True
    assert run_async(add_tool.requires_approval(None, AddArgs(a=1, b=0), "c2")) is False
    assert seen == [(11, "c1"), (1, "c2")]


def test_output_text_rendering():
    assert to_output_text("plain") == "plain"
    assert to_output_text(EchoArgs(text="x")) == '{"text":"x"}'
    assert to_output_text({"n": [1, 2]}) == '{"n": [1, 2]}'


def test_registry_register_get_and_duplicates():
    @tool(args_model=EchoArgs, name="echo")
    def echo(args: EchoArgs) -> str:
        return args.text

    registry = ToolRegistry()
    registry.register(echo)

    assert registry.get("echo") is echo
    with pytest.raises(ToolAlreadyRegisteredError):
        registry.register(echo)
    registry.register(echo, overwrite=True)
    with pytest.raises(ToolNotFoundError):
        registry.get("missing")


def test_registry_timeout_precedence():
    @tool(args_model=SleepArgs, name="sleepy")
    async def sleepy(args: SleepArgs) -> str:
        await asyncio.sleep(args.delay)
        return "done"

    registry = ToolRegistry(default_timeout=0.01)
    registry.register(sleepy)

    timed_out = run_async(registry.call("sleepy", {"delay": 0.2}, tool_call_id="c1"))
    finished = run_async(registry.call("sleepy", {"delay": 0.05}, timeout=1.0, tool_call_id="c2"))

    assert not timed_out.success
    assert timed_out.tool_call_id == "c1"
    assert "timeout" in timed_out.error_message
    assert finished.success
    assert finished.output == "done"


def test_registry_limits_concurrency():
    @tool(args_model=SleepArgs, name="sleepy")
    async def sleepy(args: SleepArgs) -> str:
        await asyncio.sleep(args.delay)
        return "done"

    async def _main():
        registry = ToolRegistry(max_concurrency=1)
        registry.register(sleepy)
        started = time.perf_counter()
        await asyncio.gather(*(registry.call("sleepy", {"delay": 0.1}) for _ in range(3)))
        return time.perf_counter() - started

    assert run_async(_main()) >= 0.29


def test_registry_rejects_invalid_concurrency():
    with pytest.raises(ValueError):
        ToolRegistry(max_concurrency=0)


def test_declarations_carry_schema_and_strictness():
    @tool(args_model=AddArgs, name="add", description="Add two ints", strict=False)
    def add_tool(args: AddArgs) -> int:
        return args.a + args.b

    [decl] = to_declarations([add_tool.spec])

    assert decl.name == "add"
    assert decl.description == "Add two ints"
    assert decl.strict is False
    assert set(decl.parameters["properties"]) == {"a", "b"}
    assert decl.parameters["required"] == ["a", "b"]
