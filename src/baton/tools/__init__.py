from .base import (
    FunctionTool,
    ToolContext,
    ToolResult,
    ToolSpec,
    default_tool_error_function,
)
from .decorator import tool
from .errors import (
    ToolAlreadyRegisteredError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    ToolValidationError,
)
from .export import to_declarations, toolspec_to_declaration
from .registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "ToolContext",
    "ToolResult",
    "ToolSpec",
    "default_tool_error_function",
    "tool",
    "ToolError",
    "ToolAlreadyRegisteredError",
    "ToolValidationError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "ToolNotFoundError",
    "to_declarations",
    "toolspec_to_declaration",
    "ToolRegistry",
]
