"""
Agent-layer error taxonomy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..core.state import RunState


class AgentError(Exception):
    """
    Base exception for all agent-runtime failures.

    Attributes:
        state: Run state as of the failure point, when one exists.
    """

    def __init__(self, message: str, *, state: "RunState | None" = None) -> None:
        super().__init__(message)
        self.state = state


class AgentConfigurationError(AgentError):
    """
    Raised when agent configuration or caller usage is invalid.

    Typical cases:
    - invalid constructor values
    - duplicate tool names within one agent
    - resuming a run with undecided interruptions
    """
    pass


class RunStateCorruptionError(AgentConfigurationError):
    """Raised when a serialized run state cannot be validated or loaded."""
    pass


class SchemaValidationError(AgentError):
    """
    Raised when a value does not match its declared shape.

    Attributes:
        errors: Structured validation error rows reported by the validator.
    """

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class AgentExecutionError(AgentError):
    """Raised for runtime execution failures not tied to configuration."""
    pass


class AgentLoopLimitError(AgentExecutionError):
    """Raised when loop guard limits are exceeded."""
    pass


class MaxTurnsExceededError(AgentLoopLimitError):
    """Raised when a run needs more model turns than its `max_turns` budget."""
    pass


class ModelBehaviorError(AgentExecutionError):
    """Raised when the model backend returns output the runtime cannot honor."""
    pass


class OutputValidationError(ModelBehaviorError):
    """Raised when a candidate final output fails the agent's output shape."""
    pass


class ToolCallError(AgentExecutionError):
    """
    Raised when a tool opted out of error-to-output mapping and failed.

    Attributes:
        tool_name: Name of the failing tool.
    """

    def __init__(
        self,
        message: str,
        *,
        tool_name: str,
        state: "RunState | None" = None,
    ) -> None:
        super().__init__(message, state=state)
        self.tool_name = tool_name


class GuardrailExecutionError(AgentExecutionError):
    """
    Raised when a guardrail predicate itself fails.

    Attributes:
        guardrail_name: Name of the failing guardrail.
    """

    def __init__(
        self,
        message: str,
        *,
        guardrail_name: str,
        state: "RunState | None" = None,
    ) -> None:
        super().__init__(message, state=state)
        self.guardrail_name = guardrail_name


class GuardrailTripwireTriggered(AgentExecutionError):
    """
    Raised when a guardrail check worked and stopped the run.

    Attributes:
        result: Guardrail result carrying the diagnostic payload.
    """

    def __init__(self, message: str, *, result: Any, state: "RunState | None" = None) -> None:
        super().__init__(message, state=state)
        self.result = result


class InputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Raised when an input guardrail tripwire is triggered."""
    pass


class OutputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Raised when an output guardrail tripwire is triggered."""
    pass


class AgentCancelledError(AgentExecutionError):
    """Raised when a run is cancelled by its caller."""
    pass
