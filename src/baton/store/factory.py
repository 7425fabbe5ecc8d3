from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module creates run-state store backends from environment variables.
"""

import os

from ..agents.errors import AgentConfigurationError
from .base import RunStateStore
from .in_memory import InMemoryRunStateStore
from .sqlite import SQLiteRunStateStore


def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def create_state_store_from_env() -> RunStateStore:
    """Create a run-state store based on `BATON_STATE_BACKEND` and related settings."""
    backend = os.getenv("BATON_STATE_BACKEND", "memory").strip().lower()

    if backend in ("mem", "memory", "inmemory", "in_memory"):
        return InMemoryRunStateStore()

    if backend in ("sqlite", "sqlite3"):
        return SQLiteRunStateStore(path=os.getenv("BATON_SQLITE_PATH", "baton_state.sqlite3"))

    if backend in ("redis",):
        from .redis import RedisRunStateStore

        url = os.getenv("BATON_REDIS_URL")
        if not url:
            host = os.getenv("BATON_REDIS_HOST", "localhost")
            port = os.getenv("BATON_REDIS_PORT", "6379")
            db = os.getenv("BATON_REDIS_DB", "0")
            url = f"redis://{host}:{port}/{db}"
        return RedisRunStateStore(url=url, namespace=os.getenv("BATON_REDIS_NAMESPACE", "baton"))

    if backend in ("pg", "postgres", "postgresql"):
        from .postgres import PostgresRunStateStore

        dsn = os.getenv("BATON_PG_DSN")
        if not dsn:
            raise AgentConfigurationError("BATON_PG_DSN is required for the postgres state backend")
        return PostgresRunStateStore(
            dsn=dsn,
            pool_min=int(os.getenv("BATON_PG_POOL_MIN", "1")),
            pool_max=int(os.getenv("BATON_PG_POOL_MAX", "10")),
            ssl=_env_bool("BATON_PG_SSL", False),
        )

    raise AgentConfigurationError(f"Unknown BATON_STATE_BACKEND: {backend}")
