"""
Agent descriptor consumed by the runner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Generic,
    Literal,
    Sequence,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ConfigDict

from ..items import ToolCallOutputItem, last_message_text
from ..models.base import Model
from ..models.types import ModelSettings
from ..tools.base import FunctionTool, ToolContext, call_maybe_async
from ..tools.decorator import tool
from ..tools.registry import ToolRegistry
from .errors import AgentConfigurationError
from .guardrails import InputGuardrail, OutputGuardrail
from .handoffs import Handoff, function_tool_name, handoff
from .lifecycle import AgentHooks
from .output import AgentOutputSchema

if TYPE_CHECKING:
    from ..core.context import RunContext
    from ..core.result import RunResult
    from ..core.runner import Runner

TContext = TypeVar("TContext")


@dataclass(frozen=True, slots=True)
class StopAtTools:
    """Tool-use policy: stop as soon as any of the named tools ran."""

    stop_at_tool_names: tuple[str, ...]

    def __init__(self, stop_at_tool_names: Sequence[str]) -> None:
        object.__setattr__(self, "stop_at_tool_names", tuple(stop_at_tool_names))


@dataclass(frozen=True, slots=True)
class FunctionToolResult:
    """
    One tool invocation seen by a custom tool-use policy.

    Attributes:
        tool: Tool that was called.
        output: Raw value returned by the tool, or the mapped error text.
        run_item: Output item appended to history.
    """

    tool: FunctionTool[Any, Any]
    output: Any
    run_item: ToolCallOutputItem


@dataclass(frozen=True, slots=True)
class ToolsToFinalOutputResult:
    is_final_output: bool
    final_output: Any = None


ToolsToFinalOutputFunction = Callable[
    ..., Union[ToolsToFinalOutputResult, Awaitable[ToolsToFinalOutputResult]]
]
ToolUseBehavior = Union[
    Literal["run_llm_again", "stop_on_first_tool"],
    StopAtTools,
    ToolsToFinalOutputFunction,
]
InstructionProvider = Callable[..., Union[str, None, Awaitable[str | None]]]
OutputExtractor = Callable[["RunResult"], Union[str, Awaitable[str]]]


class AgentToolInput(BaseModel):
    """Arguments of a tool built by `Agent.as_tool`."""

    model_config = ConfigDict(extra="forbid")

    input: str

_CLONE_FIELDS = (
    "name",
    "instructions",
    "model",
    "model_settings",
    "tools",
    "handoffs",
    "handoff_description",
    "output_type",
    "tool_use_behavior",
    "reset_tool_choice",
    "input_guardrails",
    "output_guardrails",
    "hooks",
)


class Agent(Generic[TContext]):
    """
    Declarative agent configuration: instructions, tools, hand-off targets,
    output shape, and guardrails. Execution happens in `Runner`.

    Agents form a directed graph through `handoffs`. Cycles are legal; append
    to `handoffs` after construction to close one.
    """

    def __init__(
        self,
        *,
        name: str,
        instructions: str | InstructionProvider | None = None,
        model: str | Model | None = None,
        model_settings: ModelSettings | None = None,
        tools: list[FunctionTool[Any, Any]] | None = None,
        handoffs: list["Agent[Any] | Handoff[Any]"] | None = None,
        handoff_description: str | None = None,
        output_type: Any = None,
        tool_use_behavior: ToolUseBehavior = "run_llm_again",
        reset_tool_choice: bool = True,
        input_guardrails: list[InputGuardrail[Any]] | None = None,
        output_guardrails: list[OutputGuardrail[Any]] | None = None,
        hooks: AgentHooks[Any] | None = None,
    ) -> None:
        """
        Initialize an agent definition.

        Args:
            name: Unique name, used for hand-off routing and run-state lookup.
            instructions: Static string, or a sync/async callable
                `(run_context, agent) -> str | None` resolved each turn.
            model: `Model` instance, or a name resolved by the runner's model
                provider. `None` uses the runner default.
            model_settings: Sampling and tool-choice settings.
            tools: Function tools this agent may call. Names must be unique.
            handoffs: Agents, or explicit `Handoff` objects, this agent may
                transfer control to.
            handoff_description: Text appended to the default hand-off tool
                description when other agents target this one.
            output_type: Final-output type. `None` or `str` means free text.
            tool_use_behavior: `"run_llm_again"`, `"stop_on_first_tool"`,
                `StopAtTools(...)`, or a callable
                `(run_context, results) -> ToolsToFinalOutputResult`.
            reset_tool_choice: Clear a forced `tool_choice` after this agent
                used tools, so the model is not stuck calling them.
            input_guardrails: Checks run before the first model call.
            output_guardrails: Checks run over the candidate final output.
            hooks: Per-agent lifecycle listener.

        Raises:
            AgentConfigurationError: If the name is empty, tool names collide,
                or the tool-use policy is not recognized.
        """
        if not isinstance(name, str) or not name.strip():
            raise AgentConfigurationError("Agent name must be a non-empty string")

        if not (
            tool_use_behavior in ("run_llm_again", "stop_on_first_tool")
            or isinstance(tool_use_behavior, StopAtTools)
            or (callable(tool_use_behavior) and not isinstance(tool_use_behavior, str))
        ):
            raise AgentConfigurationError(f"Unknown tool_use_behavior: {tool_use_behavior!r}")

        self.name = name
        self.instructions = instructions
        self.model = model
        self.model_settings = model_settings or ModelSettings()
        self.tools = list(tools or [])
        self.handoffs = list(handoffs or [])
        self.handoff_description = handoff_description
        self.output_type = output_type
        self.tool_use_behavior = tool_use_behavior
        self.reset_tool_choice = reset_tool_choice
        self.input_guardrails = list(input_guardrails or [])
        self.output_guardrails = list(output_guardrails or [])
        self.hooks = hooks

        seen: set[str] = set()
        for t in self.tools:
            if t.name in seen:
                raise AgentConfigurationError(f"Duplicate tool name '{t.name}' in agent '{name}'")
            seen.add(t.name)

        self.output_schema: AgentOutputSchema | None = None
        if output_type is not None and output_type is not str:
            self.output_schema = AgentOutputSchema(output_type)

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r})"

    async def resolve_instructions(self, run_context: "RunContext[TContext]") -> str | None:
        """Resolve the instruction source for one turn."""
        if self.instructions is None or isinstance(self.instructions, str):
            return self.instructions
        if not callable(self.instructions):
            raise AgentConfigurationError(
                f"Agent '{self.name}' instructions must be a string or a callable"
            )
        out = await call_maybe_async(self.instructions, run_context, self)
        if out is not None and not isinstance(out, str):
            raise AgentConfigurationError(
                f"Agent '{self.name}' instructions callable returned {type(out).__name__}, expected str"
            )
        return out

    def clone(self, **changes: Any) -> "Agent[TContext]":
        """Copy this agent with selected constructor fields replaced."""
        unknown = set(changes) - set(_CLONE_FIELDS)
        if unknown:
            raise AgentConfigurationError(f"Unknown agent fields: {sorted(unknown)}")
        params = {field: getattr(self, field) for field in _CLONE_FIELDS}
        params.update(changes)
        return type(self)(**params)

    def get_handoffs(self) -> list[Handoff[Any]]:
        """
        Hand-off edges as `Handoff` objects.

        Raises:
            AgentConfigurationError: If a hand-off tool name collides with a
                tool or another hand-off.
        """
        out: list[Handoff[Any]] = []
        names = {t.name for t in self.tools}
        for entry in self.handoffs:
            h = entry if isinstance(entry, Handoff) else handoff(entry)
            if h.tool_name in names:
                raise AgentConfigurationError(
                    f"Duplicate tool name '{h.tool_name}' in agent '{self.name}'"
                )
            names.add(h.tool_name)
            out.append(h)
        return out

    async def enabled_handoffs(self, run_context: "RunContext[TContext]") -> list[Handoff[Any]]:
        out: list[Handoff[Any]] = []
        for h in self.get_handoffs():
            if await h.enabled(run_context, self):
                out.append(h)
        return out

    def build_tool_registry(
        self,
        *,
        max_concurrency: int = 32,
        default_timeout: float | None = None,
    ) -> ToolRegistry:
        registry = ToolRegistry(max_concurrency=max_concurrency, default_timeout=default_timeout)
        registry.register_many(self.tools)
        return registry

    def as_tool(
        self,
        tool_name: str | None = None,
        tool_description: str | None = None,
        custom_output_extractor: OutputExtractor | None = None,
        *,
        runner: "Runner | None" = None,
    ) -> FunctionTool[AgentToolInput, str]:
        """
        Expose this agent as a function tool of another agent.

        Each call starts a nested run of this agent on the `input` argument,
        sharing the caller's context payload. Control stays with the calling
        agent; use hand-offs to transfer it instead.

        Args:
            tool_name: Tool name. Defaults to the agent name in tool-name form.
            tool_description: Text shown to the model.
            custom_output_extractor: Sync/async `(run_result) -> str`. By
                default the last assistant message of the nested run is used.
            runner: Runner for nested runs. A default `Runner()` otherwise.
        """
        agent = self

        async def run_agent(args: AgentToolInput, ctx: ToolContext) -> str:
            from ..core.runner import Runner

            result = await (runner or Runner()).run(agent, args.input, context=ctx.context)
            if custom_output_extractor is not None:
                return str(await call_maybe_async(custom_output_extractor, result))
            if not result.raw_responses:
                return ""
            return last_message_text(result.raw_responses[-1].output) or ""

        return tool(
            args_model=AgentToolInput,
            name=tool_name or function_tool_name(self.name),
            description=tool_description or self.handoff_description or f"Ask the '{self.name}' agent.",
        )(run_agent)
