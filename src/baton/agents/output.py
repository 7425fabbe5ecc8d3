"""
Final-output shape handling for agents that declare `output_type`.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from typing_extensions import is_typeddict

from pydantic import BaseModel, create_model

from ..models.types import OutputDeclaration
from ..schema import SchemaAdapter
from .errors import AgentConfigurationError, OutputValidationError, SchemaValidationError

_WRAPPER_KEY = "response"


def _is_object_type(output_type: Any) -> bool:
    if isinstance(output_type, type) and issubclass(output_type, BaseModel):
        return True
    if isinstance(output_type, type) and dataclasses.is_dataclass(output_type):
        return True
    return is_typeddict(output_type)


class AgentOutputSchema:
    """
    Declared final-output shape of an agent.

    Backends only accept object schemas, so non-object types (lists, unions,
    primitives) are wrapped as `{"response": <type>}` on the wire and unwrapped
    after validation.
    """

    def __init__(self, output_type: Any, *, strict: bool = True) -> None:
        if output_type is None or output_type is str:
            raise AgentConfigurationError("Plain-text agents do not need an output schema")

        self.output_type = output_type
        self.strict = strict
        self.is_wrapped = not _is_object_type(output_type)

        shape: Any = output_type
        if self.is_wrapped:
            shape = create_model("response", **{_WRAPPER_KEY: (output_type, ...)})
        self._adapter: SchemaAdapter[Any] = SchemaAdapter(shape, name=self.name(), strict=strict)

    def name(self) -> str:
        return getattr(self.output_type, "__name__", None) or repr(self.output_type)

    def json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()

    def to_declaration(self) -> OutputDeclaration:
        return OutputDeclaration(name="final_output", json_schema=self.json_schema(), strict=self.strict)

    def validate_json(self, text: str) -> Any:
        """
        Parse model text into the declared type.

        Raises:
            OutputValidationError: If `text` is not valid JSON for the shape.
                Values are never coerced.
        """
        try:
            parsed = self._adapter.validate_json(text)
        except SchemaValidationError as e:
            raise OutputValidationError(
                f"Final output does not match '{self.name()}': {e}"
            ) from e
        if self.is_wrapped:
            return getattr(parsed, _WRAPPER_KEY)
        return parsed

    def dump(self, value: Any) -> Any:
        """JSON-safe form of a validated output, for run-state serialization."""
        if self.is_wrapped:
            return SchemaAdapter(self.output_type, strict=False).dump(value)
        return self._adapter.dump(value)

    def load(self, value: Any) -> Any:
        """Rebuild a validated output from its `dump` form."""
        return SchemaAdapter(self.output_type, strict=False).validate_python(value)
