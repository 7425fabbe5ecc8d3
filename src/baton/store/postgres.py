from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a PostgreSQL run-state backend for multi-process deployments.
"""

import json
import time
from typing import Optional, cast

import asyncpg

from ..models.types import JSONValue
from .base import RunStateStore


class PostgresRunStateStore(RunStateStore):
    """Run-state store persisting JSONB documents in one table."""

    def __init__(
        self,
        *,
        dsn: str,
        pool_min: int = 1,
        pool_max: int = 10,
        ssl: bool = False,
    ) -> None:
        super().__init__()
        self.dsn = dsn
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.ssl = ssl
        self._pool: asyncpg.Pool | None = None

    async def setup(self) -> None:
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.pool_min,
            max_size=self.pool_max,
            ssl=self.ssl if self.ssl else None,
        )
        async with self._pool.acquire() as connection:
            await connection.execute(
                """
                CREATE TABLE IF NOT EXISTS run_states (
                  key TEXT PRIMARY KEY,
                  value_json JSONB NOT NULL,
                  updated_at BIGINT NOT NULL
                );
                """,
            )
        await super().setup()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        await super().close()

    def _pool_required(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError(
                "PostgresRunStateStore is not initialized. Call setup() first."
            )
        return self._pool

    async def put_state(self, key: str, value: JSONValue) -> None:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            await connection.execute(
                """
                INSERT INTO run_states (key, value_json, updated_at)
                VALUES ($1, $2::jsonb, $3)
                ON CONFLICT(key) DO UPDATE SET
                  value_json=EXCLUDED.value_json,
                  updated_at=EXCLUDED.updated_at
                """,
                key,
                json.dumps(value, ensure_ascii=False),
                int(time.time() * 1000),
            )

    async def get_state(self, key: str) -> Optional[JSONValue]:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            row = await connection.fetchrow(
                "SELECT value_json::text AS value_json FROM run_states WHERE key=$1",
                key,
            )
        if row is None:
            return None
        return cast(JSONValue, json.loads(row["value_json"]))

    async def delete_state(self, key: str) -> None:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            await connection.execute("DELETE FROM run_states WHERE key=$1", key)

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            if prefix:
                rows = await connection.fetch(
                    "SELECT key FROM run_states WHERE key LIKE $1 ORDER BY key ASC",
                    f"{prefix}%",
                )
            else:
                rows = await connection.fetch("SELECT key FROM run_states ORDER BY key ASC")
        return [cast(str, row["key"]) for row in rows]
