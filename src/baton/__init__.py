"""
baton: a multi-agent turn-execution runtime.
"""

from .agents import (
    Agent,
    AgentCancelledError,
    AgentConfigurationError,
    AgentError,
    AgentHooks,
    FunctionToolResult,
    GuardrailExecutionError,
    GuardrailFunctionOutput,
    Handoff,
    HandoffInputData,
    InputGuardrail,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceededError,
    ModelBehaviorError,
    OutputGuardrail,
    OutputGuardrailTripwireTriggered,
    OutputValidationError,
    RunHooks,
    RunStateCorruptionError,
    StopAtTools,
    ToolCallError,
    ToolsToFinalOutputResult,
    handoff,
    input_guardrail,
    output_guardrail,
    remove_all_tools,
)
from .core import (
    AgentUpdatedStreamEvent,
    RawModelStreamEvent,
    RunContext,
    RunItemStreamEvent,
    RunResult,
    RunResultStreaming,
    Runner,
    RunnerConfig,
    RunState,
)
from .items import (
    ApprovalRequestItem,
    HandoffCallItem,
    HandoffOutputItem,
    MessageItem,
    ReasoningItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from .models import LiteLLMProvider, Model, ModelProvider, ModelSettings, Usage
from .tools import FunctionTool, ToolContext, tool

__all__ = [
    "Agent",
    "AgentHooks",
    "RunHooks",
    "StopAtTools",
    "FunctionToolResult",
    "ToolsToFinalOutputResult",
    "GuardrailFunctionOutput",
    "InputGuardrail",
    "OutputGuardrail",
    "input_guardrail",
    "output_guardrail",
    "Handoff",
    "HandoffInputData",
    "handoff",
    "remove_all_tools",
    "Runner",
    "RunnerConfig",
    "RunContext",
    "RunState",
    "RunResult",
    "RunResultStreaming",
    "RawModelStreamEvent",
    "RunItemStreamEvent",
    "AgentUpdatedStreamEvent",
    "RunItem",
    "MessageItem",
    "ToolCallItem",
    "ToolCallOutputItem",
    "HandoffCallItem",
    "HandoffOutputItem",
    "ReasoningItem",
    "ApprovalRequestItem",
    "Model",
    "ModelProvider",
    "ModelSettings",
    "LiteLLMProvider",
    "Usage",
    "FunctionTool",
    "ToolContext",
    "tool",
    "AgentError",
    "AgentConfigurationError",
    "RunStateCorruptionError",
    "MaxTurnsExceededError",
    "ModelBehaviorError",
    "OutputValidationError",
    "ToolCallError",
    "GuardrailExecutionError",
    "InputGuardrailTripwireTriggered",
    "OutputGuardrailTripwireTriggered",
    "AgentCancelledError",
]
