from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the types and base class for function tools an agent can call.
"""

import asyncio
import functools
import inspect
import json
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel

from ..agents.errors import SchemaValidationError
from ..models.normalization import to_jsonable
from ..schema import SchemaAdapter
from .errors import ToolExecutionError, ToolTimeoutError, ToolValidationError

if TYPE_CHECKING:
    from ..core.context import RunContext


ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

AsyncToolFn = Callable[..., Awaitable[Any]]
SyncToolFn = Callable[..., Any]
ToolFn = Union[AsyncToolFn, SyncToolFn]

# (run_context, parsed_args, call_id) -> bool, sync or async
ApprovalPredicate = Callable[..., Union[bool, Awaitable[bool]]]
# (run_context, error) -> str, sync or async
ToolErrorFunction = Callable[..., Union[str, Awaitable[str]]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """
    Stable tool metadata used for registry listing + model-facing export.
    """

    name: str
    description: str
    parameters_schema: Dict[str, Any]  # JSON Schema for the tool's arguments
    strict: bool = True


@dataclass(frozen=True, slots=True)
class ToolContext:
    """
    Contextual information available to a tool during its execution.

    `context` is the caller's payload, passed through by reference and never
    inspected by the runtime.
    """

    context: Any = None
    usage: Any = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    agent_name: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult(Generic[ReturnT]):
    """
    Standardized result object returned by tools after execution.

    Failures are captured here instead of raised unless the tool opted out
    of error-to-output mapping.
    """

    output: Optional[ReturnT] = None
    success: bool = True
    error_message: Optional[str] = None
    error: Optional[Exception] = None
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None


def default_tool_error_function(run_context: Any, error: Exception) -> str:
    """Default mapping from a tool failure to model-visible output text."""
    _ = run_context
    return f"An error occurred while running the tool. Please try again. Error: {error}"


def to_output_text(value: Any) -> str:
    """Render a tool return value as the model-visible output string."""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(to_jsonable(value), ensure_ascii=False)


def as_async(fn: ToolFn) -> AsyncToolFn:
    """
    Utility function to convert a synchronous function into an asynchronous one.
    This allows the registry and runner to treat all tools as async.
    """
    if inspect.iscoroutinefunction(fn):
        return fn  # type: ignore[return-value]

    async def _wrapped(*args: Any, **kwargs: Any) -> Any:
        # run sync function in threadpool
        return await asyncio.to_thread(functools.partial(fn, *args, **kwargs))

    return _wrapped


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync-or-async callback inline and await the result when needed."""
    out = fn(*args)
    if inspect.isawaitable(out):
        out = await out
    return out


def _infer_call_style(fn: Callable[..., Any]) -> str:
    """
    Determine how to call a tool based on the signature.

    Allowed:
      (args)
      (args, ctx)
      (ctx, args)

    We accept ctx by name "ctx" OR annotation ToolContext.
    """
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())

    if any(p.kind in (p.VAR_KEYWORD, p.VAR_POSITIONAL) for p in params):
        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' cannot have *args or **kwargs."
        )

    if len(params) == 1:
        return "args"

    if len(params) == 2:
        p0, p1 = params

        if p0.annotation in (ToolContext, "ToolContext") or p0.name == "ctx":
            return "ctx_args"

        if p1.annotation in (ToolContext, "ToolContext") or p1.name == "ctx":
            return "args_ctx"

        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' must include ToolContext "
            f"as 'ctx' (by name or annotation). Signature: {sig}"
        )

    raise ToolValidationError(
        f"Tool function '{getattr(fn, '__name__', 'unknown')}' has invalid signature. "
        f"Expected (args) or (args, ctx) or (ctx, args). Got {sig}."
    )


class FunctionTool(Generic[ArgsT, ReturnT]):
    """
    Function-backed tool with a pydantic args model.

    IMPORTANT: `call` returns ToolResult and does NOT throw tool errors unless
    `error_function` is `None`, which opts the tool out of error-to-output
    mapping so failures abort the run.
    """

    def __init__(
        self,
        *,
        spec: ToolSpec,
        fn: ToolFn,
        args_model: Type[ArgsT],
        needs_approval: bool | ApprovalPredicate = False,
        error_function: ToolErrorFunction | None = default_tool_error_function,
        default_timeout: Optional[float] = None,
    ) -> None:
        self.spec = spec
        self._original_fn = fn
        self.fn = as_async(fn)
        self.args_model = args_model
        self.needs_approval = needs_approval
        self.error_function = error_function
        self.default_timeout = default_timeout
        self.raise_on_error = error_function is None

        self._call_style = _infer_call_style(fn)
        self._args_adapter: SchemaAdapter[ArgsT] = SchemaAdapter(
            args_model, name=spec.name, strict=spec.strict
        )

    @property
    def name(self) -> str:
        return self.spec.name

    def validate(self, raw_args: str | Dict[str, Any] | ArgsT) -> ArgsT:
        """
        Parse raw model arguments (a JSON string or a dict) into the args model.

        Raises:
            ToolValidationError: If arguments are not valid JSON or fail the model.
        """
        if isinstance(raw_args, self.args_model):
            return raw_args
        try:
            if isinstance(raw_args, str):
                return self._args_adapter.validate_json(raw_args.strip() or "{}")
            return self._args_adapter.validate_python(raw_args)
        except SchemaValidationError as e:
            raise ToolValidationError(
                f"Invalid arguments for tool '{self.spec.name}': {e}"
            ) from e

    async def requires_approval(self, run_context: "RunContext[Any]", args: ArgsT, call_id: str) -> bool:
        if isinstance(self.needs_approval, bool):
            return self.needs_approval
        return bool(await call_maybe_async(self.needs_approval, run_context, args, call_id))

    async def format_error(self, run_context: "RunContext[Any]", error: Exception) -> str:
        if self.error_function is None:
            raise error
        return str(await call_maybe_async(self.error_function, run_context, error))

    async def _invoke(self, args: ArgsT, ctx: ToolContext) -> Any:
        if self._call_style == "args":
            return await self.fn(args)
        if self._call_style == "args_ctx":
            return await self.fn(args, ctx)
        return await self.fn(ctx, args)

    async def call(
        self,
        raw_args: str | Dict[str, Any] | ArgsT,
        *,
        ctx: Optional[ToolContext] = None,
        timeout: Optional[float] = None,
        tool_call_id: Optional[str] = None,
    ) -> ToolResult[ReturnT]:
        ctx = ctx or ToolContext(tool_call_id=tool_call_id, tool_name=self.spec.name)

        try:
            args = self.validate(raw_args)
        except ToolValidationError as e:
            if self.raise_on_error:
                raise
            return self._failure(e, tool_call_id)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            if effective_timeout is not None:
                output = await asyncio.wait_for(self._invoke(args, ctx), timeout=effective_timeout)
            else:
                output = await self._invoke(args, ctx)

            return ToolResult(
                output=output,
                success=True,
                tool_name=self.spec.name,
                tool_call_id=tool_call_id,
            )

        except asyncio.TimeoutError:
            err = ToolTimeoutError(
                f"Tool '{self.spec.name}' execution exceeded timeout of {effective_timeout} seconds."
            )
            if self.raise_on_error:
                raise err
            return self._failure(err, tool_call_id)

        except Exception as e:
            err = ToolExecutionError(f"Error executing tool '{self.spec.name}': {e}")
            if self.raise_on_error:
                raise err from e
            return self._failure(err, tool_call_id)

    def _failure(self, err: Exception, tool_call_id: str | None) -> ToolResult[ReturnT]:
        return ToolResult(
            output=None,
            success=False,
            error_message=str(err),
            error=err,
            tool_name=self.spec.name,
            tool_call_id=tool_call_id,
        )
