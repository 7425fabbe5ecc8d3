from __future__ import annotations

"""
Shared normalization helpers used by model adapters and run-state serialization.
"""

from dataclasses import asdict, is_dataclass
from typing import Any

from .types import Usage


def to_plain_dict(value: Any) -> dict[str, Any]:
    """Best-effort conversion of SDK/provider objects into plain dictionaries."""
    if isinstance(value, dict):
        return value

    if hasattr(value, "model_dump"):
        try:
            dumped = value.model_dump()
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    if hasattr(value, "to_dict"):
        try:
            dumped = value.to_dict()
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    if is_dataclass(value) and not isinstance(value, type):
        try:
            dumped = asdict(value)
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    if hasattr(value, "__dict__"):
        try:
            dumped = dict(value.__dict__)
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    return {}


def to_jsonable(value: Any) -> Any:
    """Recursively coerce values into JSON-serializable primitives/containers."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]

    if hasattr(value, "model_dump"):
        try:
            return to_jsonable(value.model_dump(mode="json"))
        except Exception:
            pass

    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))

    as_dict = to_plain_dict(value)
    if as_dict:
        return to_jsonable(as_dict)

    return repr(value)


def is_json_value(value: Any) -> bool:
    """Return `True` when `value` is already made of JSON primitives/containers."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, list):
        return all(is_json_value(v) for v in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_json_value(v) for k, v in value.items())
    return False


def extract_usage(raw_dict: dict[str, Any]) -> Usage:
    """Normalize usage token counters from provider payloads. One call counts as one request."""
    usage = raw_dict.get("usage")
    if not isinstance(usage, dict):
        usage = to_plain_dict(usage) if usage is not None else {}

    input_tokens = usage.get("input_tokens")
    if input_tokens is None:
        input_tokens = usage.get("prompt_tokens")

    output_tokens = usage.get("output_tokens")
    if output_tokens is None:
        output_tokens = usage.get("completion_tokens")

    input_tokens = input_tokens if isinstance(input_tokens, int) else 0
    output_tokens = output_tokens if isinstance(output_tokens, int) else 0
    total_tokens = usage.get("total_tokens")
    if not isinstance(total_tokens, int):
        total_tokens = input_tokens + output_tokens

    return Usage(
        requests=1,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
    )
