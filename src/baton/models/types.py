from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the provider-agnostic contract between the runner and a model backend.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, TypedDict

from ..items import RunItem


JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONSchema: TypeAlias = dict[str, Any]


class ToolChoiceNamed(TypedDict):
    type: Literal["function"]
    name: str


ToolChoice: TypeAlias = Literal["auto", "none", "required"] | ToolChoiceNamed


@dataclass(frozen=True, slots=True)
class Usage:
    """
    Token and request counters.

    Attributes:
        requests: Number of model requests made.
        input_tokens: Prompt-side tokens.
        output_tokens: Completion-side tokens.
        total_tokens: Sum reported by the backend.
    """

    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "Usage") -> "Usage":
        return Usage(
            requests=self.requests + other.requests,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "requests": self.requests,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    @staticmethod
    def from_dict(value: Any) -> "Usage":
        if not isinstance(value, dict):
            return Usage()

        def _int(key: str) -> int:
            raw = value.get(key)
            return raw if isinstance(raw, int) else 0

        return Usage(
            requests=_int("requests"),
            input_tokens=_int("input_tokens"),
            output_tokens=_int("output_tokens"),
            total_tokens=_int("total_tokens"),
        )


@dataclass(frozen=True, slots=True)
class ModelSettings:
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    tool_choice: ToolChoice | None = None
    parallel_tool_calls: bool | None = None
    extra: JSONObject = field(default_factory=dict)

    def resolve(self, override: "ModelSettings | None") -> "ModelSettings":
        """Overlay non-empty fields from `override` on top of these settings."""
        if override is None:
            return self
        return ModelSettings(
            temperature=override.temperature if override.temperature is not None else self.temperature,
            top_p=override.top_p if override.top_p is not None else self.top_p,
            max_output_tokens=(
                override.max_output_tokens
                if override.max_output_tokens is not None
                else self.max_output_tokens
            ),
            tool_choice=override.tool_choice if override.tool_choice is not None else self.tool_choice,
            parallel_tool_calls=(
                override.parallel_tool_calls
                if override.parallel_tool_calls is not None
                else self.parallel_tool_calls
            ),
            extra={**self.extra, **override.extra},
        )


@dataclass(frozen=True, slots=True)
class FunctionDeclaration:
    """Function tool (or hand-off) declared to the model backend."""

    name: str
    description: str
    parameters: JSONSchema
    strict: bool = True


@dataclass(frozen=True, slots=True)
class OutputDeclaration:
    """Structured final-output shape declared to the model backend."""

    name: str
    json_schema: JSONSchema
    strict: bool = True


@dataclass(frozen=True, slots=True)
class ModelRequest:
    """
    Canonical request handed to a model backend for one turn.

    Attributes:
        system_instructions: Resolved agent instructions.
        input: Ordered model-visible history items.
        tools: Function tools and hand-offs available this turn.
        output_schema: Final-output declaration, or `None` for free text.
        model_settings: Sampling and tool-choice settings.
        previous_response_id: Backend-side conversation continuation id.
    """

    input: list[RunItem]
    system_instructions: str | None = None
    tools: list[FunctionDeclaration] = field(default_factory=list)
    output_schema: OutputDeclaration | None = None
    model_settings: ModelSettings = field(default_factory=ModelSettings)
    previous_response_id: str | None = None


@dataclass(frozen=True, slots=True)
class ModelResponse:
    output: list[RunItem] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    response_id: str | None = None


@dataclass(frozen=True, slots=True)
class StreamTextDeltaEvent:
    type: Literal["text_delta"] = "text_delta"
    delta: str = ""


@dataclass(frozen=True, slots=True)
class StreamToolCallDeltaEvent:
    type: Literal["tool_call_delta"] = "tool_call_delta"
    index: int = 0
    call_id: str | None = None
    tool_name: str | None = None
    arguments_delta: str = ""


@dataclass(frozen=True, slots=True)
class StreamCompletedEvent:
    """Completion marker carrying the same item set as a blocking response."""

    response: ModelResponse
    type: Literal["completed"] = "completed"


ModelStreamEvent: TypeAlias = StreamTextDeltaEvent | StreamToolCallDeltaEvent | StreamCompletedEvent
