from __future__ import annotations
"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module implements the ToolRegistry used by the runner for one agent's tool set.
It resolves tools by name, limits concurrency and applies a registry-level
default timeout. Per-call timing is reported by the runner's telemetry.
"""

import asyncio
from typing import Any, Dict, Iterable

from .base import FunctionTool, ToolContext, ToolResult

from .errors import (
    ToolAlreadyRegisteredError,
    ToolNotFoundError,
)


class ToolRegistry:
    """
    Stores tools by name and provides safe async execution with:
      - unique names within one agent
      - concurrency limiting
      - registry-level default timeout
    """

    def __init__(
        self,
        *,
        max_concurrency: int = 32,
        default_timeout: float | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self._tools: Dict[str, FunctionTool[Any, Any]] = {}
        self._sem = asyncio.Semaphore(max_concurrency)
        self._default_timeout = default_timeout

    def register(self, tool: FunctionTool[Any, Any], *, overwrite: bool = False) -> None:
        name = tool.spec.name
        if not overwrite and name in self._tools:
            raise ToolAlreadyRegisteredError(f"Tool already registered: {name}")
        self._tools[name] = tool

    def register_many(self, tools: Iterable[FunctionTool[Any, Any]], *, overwrite: bool = False) -> None:
        for t in tools:
            self.register(t, overwrite=overwrite)

    def get(self, name: str) -> FunctionTool[Any, Any]:
        try:
            return self._tools[name]
        except KeyError as e:
            raise ToolNotFoundError(f"Unknown tool: {name}") from e

    async def call(
        self,
        name: str,
        args: Any,
        *,
        ctx: ToolContext | None = None,
        timeout: float | None = None,
        tool_call_id: str | None = None,
    ) -> ToolResult[Any]:
        """
        Execute a registered tool by name.

        Timeout precedence:
          1) call(timeout=...)
          2) tool.default_timeout
          3) registry default_timeout
        """
        tool = self.get(name)
        async with self._sem:
            effective_timeout = (
                timeout
                if timeout is not None
                else (tool.default_timeout if tool.default_timeout is not None else self._default_timeout)
            )
            return await tool.call(
                args,
                ctx=ctx,
                timeout=effective_timeout,
                tool_call_id=tool_call_id,
            )
