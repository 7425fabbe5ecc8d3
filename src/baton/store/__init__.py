from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Run-state store implementations and base contracts.
"""

from .base import RunStateStore, load_run_state, save_run_state
from .factory import create_state_store_from_env
from .in_memory import InMemoryRunStateStore
from .sqlite import SQLiteRunStateStore


def __getattr__(name: str):
    if name == "RedisRunStateStore":
        from .redis import RedisRunStateStore

        return RedisRunStateStore
    if name == "PostgresRunStateStore":
        from .postgres import PostgresRunStateStore

        return PostgresRunStateStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "RunStateStore",
    "InMemoryRunStateStore",
    "SQLiteRunStateStore",
    "RedisRunStateStore",
    "PostgresRunStateStore",
    "create_state_store_from_env",
    "save_run_state",
    "load_run_state",
]
