from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides an in-process run-state store for tests and single-process use.
"""

import asyncio
import copy
from typing import Optional

from ..models.types import JSONValue
from .base import RunStateStore


class InMemoryRunStateStore(RunStateStore):
    """Non-persistent store; documents are deep-copied on the way in and out."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = asyncio.Lock()
        self._states: dict[str, JSONValue] = {}

    async def put_state(self, key: str, value: JSONValue) -> None:
        self._ensure_setup()
        async with self._lock:
            self._states[key] = copy.deepcopy(value)

    async def get_state(self, key: str) -> Optional[JSONValue]:
        self._ensure_setup()
        async with self._lock:
            value = self._states.get(key)
            return copy.deepcopy(value)

    async def delete_state(self, key: str) -> None:
        self._ensure_setup()
        async with self._lock:
            self._states.pop(key, None)

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        self._ensure_setup()
        async with self._lock:
            return sorted(
                key for key in self._states if prefix is None or key.startswith(prefix)
            )
