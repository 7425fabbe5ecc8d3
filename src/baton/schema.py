from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Schema adapter used for tool arguments, hand-off payloads, and final outputs.
Validation is strict by default: values are accepted or rejected, never coerced.
"""

from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from .agents.errors import SchemaValidationError


T = TypeVar("T")


class SchemaAdapter(Generic[T]):
    """
    Validate and parse structured data against a declared shape.

    Any type pydantic understands is accepted: `BaseModel` subclasses,
    dataclasses, TypedDicts, primitives, and containers of those.
    """

    def __init__(self, shape: Any, *, name: str | None = None, strict: bool = True) -> None:
        self.shape = shape
        self.name = name or getattr(shape, "__name__", None) or "output"
        self.strict = strict
        self._adapter: TypeAdapter[T] = TypeAdapter(shape)

    def json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()

    def validate_python(self, value: Any) -> T:
        try:
            return self._adapter.validate_python(value, strict=self.strict)
        except ValidationError as e:
            raise SchemaValidationError(
                f"Value does not match '{self.name}': {e}",
                errors=_error_rows(e),
            ) from e

    def validate_json(self, text: str | bytes) -> T:
        try:
            return self._adapter.validate_json(text, strict=self.strict)
        except ValidationError as e:
            raise SchemaValidationError(
                f"JSON does not match '{self.name}': {e}",
                errors=_error_rows(e),
            ) from e

    def dump(self, value: T) -> Any:
        """Return a JSON-safe representation of a validated value."""
        return self._adapter.dump_python(value, mode="json")


def _error_rows(e: ValidationError) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for err in e.errors(include_url=False):
        rows.append(
            {
                "type": err.get("type"),
                "loc": [str(part) for part in err.get("loc", ())],
                "msg": err.get("msg"),
            }
        )
    return rows
