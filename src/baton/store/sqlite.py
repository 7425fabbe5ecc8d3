from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a SQLite run-state backend with JSON persistence.
"""

import json
import time
from typing import Optional

import aiosqlite

from ..models.types import JSONValue
from .base import RunStateStore


class SQLiteRunStateStore(RunStateStore):
    """Persistent local run-state backend backed by SQLite."""

    def __init__(self, path: str = "baton_state.sqlite3") -> None:
        super().__init__()
        self.path = path
        self._connection: aiosqlite.Connection | None = None

    async def setup(self) -> None:
        self._connection = await aiosqlite.connect(self.path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA synchronous=NORMAL;")
        await self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS run_states (
              key TEXT PRIMARY KEY,
              value_json TEXT NOT NULL,
              updated_at INTEGER NOT NULL
            );
            """,
        )
        await self._connection.commit()
        await super().setup()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        await super().close()

    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError(
                "SQLiteRunStateStore is not initialized. Call setup() first."
            )
        return self._connection

    async def put_state(self, key: str, value: JSONValue) -> None:
        self._ensure_setup()
        db = self._db()
        await db.execute(
            """
            INSERT INTO run_states (key, value_json, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
              value_json=excluded.value_json,
              updated_at=excluded.updated_at
            """,
            (key, json.dumps(value, ensure_ascii=False), int(time.time() * 1000)),
        )
        await db.commit()

    async def get_state(self, key: str) -> Optional[JSONValue]:
        self._ensure_setup()
        db = self._db()
        async with db.execute(
            "SELECT value_json FROM run_states WHERE key=?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    async def delete_state(self, key: str) -> None:
        self._ensure_setup()
        db = self._db()
        await db.execute("DELETE FROM run_states WHERE key=?", (key,))
        await db.commit()

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        self._ensure_setup()
        db = self._db()
        async with db.execute("SELECT key FROM run_states ORDER BY key ASC") as cursor:
            rows = await cursor.fetchall()
        keys = [str(row["key"]) for row in rows]
        if prefix is None:
            return keys
        return [k for k in keys if k.startswith(prefix)]
