"""
Lifecycle listener interfaces.

`RunHooks` observe every agent in a run; `AgentHooks` are attached to one
agent and fire only while that agent is active. Every method is an async no-op
by default, and exceptions raised by a hook propagate and abort the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from ..core.context import RunContext
    from ..tools.base import FunctionTool
    from .base import Agent

TContext = TypeVar("TContext")


class RunHooks(Generic[TContext]):
    """Run-wide lifecycle listener. Override only the events you need."""

    async def on_agent_start(self, context: "RunContext[TContext]", agent: "Agent[TContext]") -> None:
        """Called before the agent is invoked, once per active-agent change."""

    async def on_agent_end(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        output: Any,
    ) -> None:
        """Called when the agent produces the final output."""

    async def on_handoff(
        self,
        context: "RunContext[TContext]",
        from_agent: "Agent[TContext]",
        to_agent: "Agent[TContext]",
    ) -> None:
        """Called when control transfers between agents."""

    async def on_tool_start(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        tool: "FunctionTool[Any, Any]",
    ) -> None:
        """Called immediately before a tool callable is invoked."""

    async def on_tool_end(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        tool: "FunctionTool[Any, Any]",
        result: str,
    ) -> None:
        """Called after a tool callable returns, with its model-visible output."""


class AgentHooks(Generic[TContext]):
    """Per-agent lifecycle listener, set through `Agent(hooks=...)`."""

    async def on_start(self, context: "RunContext[TContext]", agent: "Agent[TContext]") -> None:
        pass

    async def on_end(self, context: "RunContext[TContext]", agent: "Agent[TContext]", output: Any) -> None:
        pass

    async def on_handoff(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        source: "Agent[TContext]",
    ) -> None:
        """Called on the target agent when it receives control from `source`."""

    async def on_tool_start(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        tool: "FunctionTool[Any, Any]",
    ) -> None:
        pass

    async def on_tool_end(
        self,
        context: "RunContext[TContext]",
        agent: "Agent[TContext]",
        tool: "FunctionTool[Any, Any]",
        result: str,
    ) -> None:
        pass
