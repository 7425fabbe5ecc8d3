from .errors import (
    AgentCancelledError,
    AgentConfigurationError,
    AgentError,
    AgentExecutionError,
    AgentLoopLimitError,
    GuardrailExecutionError,
    GuardrailTripwireTriggered,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceededError,
    ModelBehaviorError,
    OutputGuardrailTripwireTriggered,
    OutputValidationError,
    RunStateCorruptionError,
    SchemaValidationError,
    ToolCallError,
)
from .base import (
    Agent,
    AgentToolInput,
    FunctionToolResult,
    StopAtTools,
    ToolsToFinalOutputResult,
    ToolUseBehavior,
)
from .guardrails import (
    GuardrailFunctionOutput,
    InputGuardrail,
    InputGuardrailResult,
    OutputGuardrail,
    OutputGuardrailResult,
    input_guardrail,
    output_guardrail,
)
from .handoffs import (
    RECOMMENDED_PROMPT_PREFIX,
    Handoff,
    HandoffInputData,
    handoff,
    prompt_with_handoff_instructions,
    remove_all_tools,
)
from .lifecycle import AgentHooks, RunHooks
from .output import AgentOutputSchema

__all__ = [
    "Agent",
    "AgentToolInput",
    "AgentHooks",
    "AgentOutputSchema",
    "RunHooks",
    "StopAtTools",
    "FunctionToolResult",
    "ToolsToFinalOutputResult",
    "ToolUseBehavior",
    "GuardrailFunctionOutput",
    "InputGuardrail",
    "InputGuardrailResult",
    "OutputGuardrail",
    "OutputGuardrailResult",
    "input_guardrail",
    "output_guardrail",
    "Handoff",
    "HandoffInputData",
    "handoff",
    "remove_all_tools",
    "RECOMMENDED_PROMPT_PREFIX",
    "prompt_with_handoff_instructions",
    "AgentError",
    "AgentConfigurationError",
    "RunStateCorruptionError",
    "SchemaValidationError",
    "AgentExecutionError",
    "AgentLoopLimitError",
    "MaxTurnsExceededError",
    "ModelBehaviorError",
    "OutputValidationError",
    "ToolCallError",
    "GuardrailExecutionError",
    "GuardrailTripwireTriggered",
    "InputGuardrailTripwireTriggered",
    "OutputGuardrailTripwireTriggered",
    "AgentCancelledError",
]
