from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Tool export utilities.

Converts ToolSpec objects into the model-facing `FunctionDeclaration` shape.
"""

from typing import Any, Dict, Iterable, List

from ..models.types import FunctionDeclaration
from .base import ToolSpec


def normalize_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pydantic v2's model_json_schema() is generally usable as-is.
    We ensure it is at least an object schema with 'properties' to avoid edge cases.
    """
    if not isinstance(schema, dict):
        return {"type": "object", "properties": {}}

    out = dict(schema)
    out.setdefault("type", "object")
    out.setdefault("properties", {})
    return out


def toolspec_to_declaration(spec: ToolSpec) -> FunctionDeclaration:
    return FunctionDeclaration(
        name=spec.name,
        description=spec.description,
        parameters=normalize_json_schema(spec.parameters_schema),
        strict=spec.strict,
    )


def to_declarations(specs: Iterable[ToolSpec]) -> List[FunctionDeclaration]:
    return [toolspec_to_declaration(s) for s in specs]
