from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides the @tool decorator for defining function tools in a concise way.
"""

import inspect
from typing import Any, Callable, Type, TypeVar

from pydantic import BaseModel

from .base import (
    ApprovalPredicate,
    FunctionTool,
    ToolErrorFunction,
    ToolFn,
    ToolSpec,
    default_tool_error_function,
)


ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")


def _default_description(fn: Callable[..., Any], fallback: str) -> str:
    doc = inspect.getdoc(fn) or ""
    first_line = doc.splitlines()[0].strip() if doc else ""
    return first_line or fallback


def tool(
    *,
    args_model: Type[ArgsT],
    name: str | None = None,
    description: str | None = None,
    timeout: float | None = None,
    needs_approval: bool | ApprovalPredicate = False,
    error_function: ToolErrorFunction | None = default_tool_error_function,
    strict: bool = True,
) -> Callable[[ToolFn], FunctionTool[ArgsT, ReturnT]]:
    """
    Create a FunctionTool from a sync/async function and a Pydantic v2 args model.

    Tool function can be sync or async and should use one of:
      def/async def fn(args: ArgsModel) -> Any
      def/async def fn(args: ArgsModel, ctx: ToolContext) -> Any
      def/async def fn(ctx: ToolContext, args: ArgsModel) -> Any

    needs_approval:
      - False (default): calls execute immediately
      - True: every call suspends the run until approved or rejected
      - callable (run_context, args, call_id) -> bool: decided per call

    error_function:
      - default: failures become a model-visible output string
      - custom (run_context, error) -> str: custom failure text
      - None: failures raise and abort the run
    """

    def decorator(fn: ToolFn) -> FunctionTool[ArgsT, ReturnT]:
        tool_name = name or getattr(fn, "__name__", "tool")
        tool_desc = description or _default_description(fn, tool_name)

        schema = args_model.model_json_schema()
        spec = ToolSpec(
            name=tool_name,
            description=tool_desc,
            parameters_schema=schema,
            strict=strict,
        )

        return FunctionTool(
            spec=spec,
            fn=fn,
            args_model=args_model,
            needs_approval=needs_approval,
            error_function=error_function,
            default_timeout=timeout,
        )

    return decorator
