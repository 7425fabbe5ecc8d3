from .base import Model, ModelProvider
from .config import ModelConfig
from .errors import (
    ModelConfigurationError,
    ModelError,
    ModelInvalidResponseError,
    ModelRetryableError,
    ModelTimeoutError,
)
from .litellm import LiteLLMModel, LiteLLMProvider
from .types import (
    FunctionDeclaration,
    ModelRequest,
    ModelResponse,
    ModelSettings,
    ModelStreamEvent,
    OutputDeclaration,
    StreamCompletedEvent,
    StreamTextDeltaEvent,
    StreamToolCallDeltaEvent,
    Usage,
)

__all__ = [
    "Model",
    "ModelProvider",
    "ModelConfig",
    "ModelError",
    "ModelTimeoutError",
    "ModelRetryableError",
    "ModelInvalidResponseError",
    "ModelConfigurationError",
    "LiteLLMModel",
    "LiteLLMProvider",
    "FunctionDeclaration",
    "OutputDeclaration",
    "ModelRequest",
    "ModelResponse",
    "ModelSettings",
    "ModelStreamEvent",
    "StreamTextDeltaEvent",
    "StreamToolCallDeltaEvent",
    "StreamCompletedEvent",
    "Usage",
]
