from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the abstract contract for run-state store backends and
helpers that persist `RunState` snapshots through them.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from ..core.state import RunState
from ..models.types import JSONValue

if TYPE_CHECKING:
    from ..agents.base import Agent


class RunStateStore(ABC):
    """
    Base contract for all run-state backends.

    Values are JSON documents keyed by caller-chosen strings, typically one
    key per suspended run.
    """

    def __init__(self) -> None:
        self._is_setup = False

    async def setup(self) -> None:
        """Initialize backend resources."""
        self._is_setup = True

    async def close(self) -> None:
        """Release backend resources."""
        self._is_setup = False

    async def __aenter__(self) -> "RunStateStore":
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_setup(self) -> None:
        if not self._is_setup:
            raise RuntimeError(
                "RunStateStore is not initialized. Call setup() or use `async with`."
            )

    @abstractmethod
    async def put_state(self, key: str, value: JSONValue) -> None:
        """Insert or replace the document stored under `key`."""

    @abstractmethod
    async def get_state(self, key: str) -> Optional[JSONValue]:
        """Return the document stored under `key`, or `None`."""

    @abstractmethod
    async def delete_state(self, key: str) -> None:
        """Delete `key`; deleting a missing key is a no-op."""

    @abstractmethod
    async def list_keys(self, prefix: str | None = None) -> list[str]:
        """List stored keys in ascending order, optionally by prefix."""


async def save_run_state(store: RunStateStore, key: str, state: RunState[Any]) -> None:
    """Persist a run state snapshot under `key`."""
    await store.put_state(key, state.to_dict())


async def load_run_state(
    store: RunStateStore,
    key: str,
    starting_agent: "Agent[Any]",
    *,
    context: Any = None,
) -> RunState[Any] | None:
    """
    Load a run state snapshot saved with `save_run_state`.

    Returns:
        The rebuilt state, or `None` when nothing is stored under `key`.

    Raises:
        RunStateCorruptionError: If the stored document cannot be loaded.
    """
    data = await store.get_state(key)
    if data is None:
        return None
    return RunState.from_dict(starting_agent, data, context=context)
