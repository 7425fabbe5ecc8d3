from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a Redis run-state backend storing documents in one hash.
"""

import json
from typing import Optional

from redis.asyncio import Redis

from ..models.types import JSONValue
from .base import RunStateStore


class RedisRunStateStore(RunStateStore):
    """Redis-backed store; every document is a field of one namespaced hash."""

    def __init__(self, *, url: str, namespace: str = "baton") -> None:
        super().__init__()
        self.url = url
        self.namespace = namespace
        self._redis_client: Redis | None = None

    async def setup(self) -> None:
        self._redis_client = Redis.from_url(self.url, decode_responses=True)
        await self._redis_client.ping()
        await super().setup()

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None
        await super().close()

    def _redis(self) -> Redis:
        if self._redis_client is None:
            raise RuntimeError(
                "RedisRunStateStore is not initialized. Call setup() first."
            )
        return self._redis_client

    @property
    def _hash_key(self) -> str:
        return f"{self.namespace}:run_states"

    async def put_state(self, key: str, value: JSONValue) -> None:
        self._ensure_setup()
        await self._redis().hset(self._hash_key, key, json.dumps(value, ensure_ascii=False))

    async def get_state(self, key: str) -> Optional[JSONValue]:
        self._ensure_setup()
        value = await self._redis().hget(self._hash_key, key)
        if value is None:
            return None
        return json.loads(value)

    async def delete_state(self, key: str) -> None:
        self._ensure_setup()
        await self._redis().hdel(self._hash_key, key)

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        self._ensure_setup()
        keys = await self._redis().hkeys(self._hash_key)
        return sorted(k for k in keys if prefix is None or k.startswith(prefix))
