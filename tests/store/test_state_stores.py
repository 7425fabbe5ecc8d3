from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from baton.agents import Agent, AgentConfigurationError, RunStateCorruptionError
from baton.core.runner import Runner
from baton.items import MessageItem, ToolCallItem
from baton.models.base import Model
from baton.models.config import ModelConfig
from baton.models.types import ModelRequest, ModelResponse, Usage
from baton.store import (
    InMemoryRunStateStore,
    SQLiteRunStateStore,
    create_state_store_from_env,
    load_run_state,
    save_run_state,
)
from baton.tools import tool


def run_async(coro):
    return asyncio.run(coro)


class _ScriptedModel(Model):
    def __init__(self, script: list[ModelResponse]) -> None:
        super().__init__(config=ModelConfig(timeout_s=None, max_retries=0))
        self.script = script
        self.calls = 0

    async def _response_core(self, request: ModelRequest) -> ModelResponse:
        self.calls += 1
        return self.script[min(self.calls - 1, len(self.script) - 1)]


class _PathArgs(BaseModel):
    path: str


def _agent(deleted: list[str], *, resumed: bool = False) -> Agent:
    @tool(args_model=_PathArgs, name="delete_file", needs_approval=True)
    def delete_file(args: _PathArgs) -> str:
        deleted.append(args.path)
        return f"deleted {args.path}"

    call = ModelResponse(
        output=[ToolCallItem(call_id="call_1", name="delete_file", arguments=json.dumps({"path": "/tmp/a"}))],
        usage=Usage(requests=1),
    )
    done = ModelResponse(output=[MessageItem.assistant("removed")], usage=Usage(requests=1))
    model = _ScriptedModel([done] if resumed else [call, done])
    return Agent(name="janitor", model=model, tools=[delete_file])


def _stores(tmp_path):
    return [InMemoryRunStateStore(), SQLiteRunStateStore(path=str(tmp_path / "state.sqlite3"))]


def test_store_requires_setup(tmp_path):
    for store in _stores(tmp_path):
        with pytest.raises(RuntimeError, match="not initialized"):
            run_async(store.get_state("k"))


def test_store_crud_and_prefix_listing(tmp_path):
    async def scenario(store):
        async with store:
            await store.put_state("run:b", {"n": 1})
            await store.put_state("run:a", {"n": 2, "items": ["x"]})
            await store.put_state("other", [1, 2])
            await store.put_state("run:b", {"n": 3})
            got = await store.get_state("run:b")
            missing = await store.get_state("nope")
            keys = await store.list_keys()
            prefixed = await store.list_keys(prefix="run:")
            await store.delete_state("run:a")
            await store.delete_state("run:a")
            after = await store.list_keys()
        return got, missing, keys, prefixed, after

    for store in _stores(tmp_path):
        got, missing, keys, prefixed, after = run_async(scenario(store))
        assert got == {"n": 3}
        assert missing is None
        assert keys == ["other", "run:a", "run:b"]
        assert prefixed == ["run:a", "run:b"]
        assert after == ["other", "run:b"]


def test_in_memory_store_isolates_documents():
    async def scenario():
        store = InMemoryRunStateStore()
        await store.setup()
        doc = {"items": [1]}
        await store.put_state("k", doc)
        doc["items"].append(2)
        first = await store.get_state("k")
        first["items"].append(3)
        return await store.get_state("k")

    assert run_async(scenario()) == {"items": [1]}


def test_sqlite_store_persists_across_connections(tmp_path):
    path = str(tmp_path / "state.sqlite3")

    async def scenario():
        async with SQLiteRunStateStore(path=path) as store:
            await store.put_state("k", {"ok": True})
        async with SQLiteRunStateStore(path=path) as store:
            return await store.get_state("k")

    assert run_async(scenario()) == {"ok": True}


def test_suspended_run_resumes_from_sqlite_in_new_process_view(tmp_path):
    path = str(tmp_path / "state.sqlite3")
    deleted: list[str] = []

    async def suspend():
        agent = _agent(deleted)
        result = await Runner().run(agent, "clean up")
        assert result.interruptions
        async with SQLiteRunStateStore(path=path) as store:
            await save_run_state(store, "run-1", result.state)

    async def resume():
        agent = _agent(deleted, resumed=True)
        async with SQLiteRunStateStore(path=path) as store:
            state = await load_run_state(store, "run-1", agent)
            assert await load_run_state(store, "run-2", agent) is None
        state.approve(state.interruptions[0])
        return await Runner().run(agent, state)

    run_async(suspend())
    assert deleted == []
    result = run_async(resume())

    assert deleted == ["/tmp/a"]
    assert result.final_output == "removed"


def test_loading_corrupt_document_fails_loudly():
    async def scenario():
        async with InMemoryRunStateStore() as store:
            await store.put_state("bad", {"schema_version": "0.0", "items": []})
            await load_run_state(store, "bad", _agent([]))

    with pytest.raises(RunStateCorruptionError):
        run_async(scenario())


def test_factory_defaults_to_memory(monkeypatch):
    monkeypatch.delenv("BATON_STATE_BACKEND", raising=False)
    assert isinstance(create_state_store_from_env(), InMemoryRunStateStore)


def test_factory_builds_sqlite_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("BATON_STATE_BACKEND", "sqlite")
    monkeypatch.setenv("BATON_SQLITE_PATH", str(tmp_path / "env.sqlite3"))

    store = create_state_store_from_env()

    assert isinstance(store, SQLiteRunStateStore)
    assert store.path == str(tmp_path / "env.sqlite3")


def test_factory_rejects_unknown_backend(monkeypatch):
    monkeypatch.setenv("BATON_STATE_BACKEND", "dynamodb")
    with pytest.raises(AgentConfigurationError):
        create_state_store_from_env()


def test_factory_postgres_requires_dsn(monkeypatch):
    pytest.importorskip("asyncpg")
    monkeypatch.setenv("BATON_STATE_BACKEND", "postgres")
    monkeypatch.delenv("BATON_PG_DSN", raising=False)
    with pytest.raises(AgentConfigurationError):
        create_state_store_from_env()


def test_factory_builds_redis_url_from_parts(monkeypatch):
    pytest.importorskip("redis")
    monkeypatch.setenv("BATON_STATE_BACKEND", "redis")
    monkeypatch.delenv("BATON_REDIS_URL", raising=False)
    monkeypatch.setenv("BATON_REDIS_HOST", "cache")
    monkeypatch.setenv("BATON_REDIS_PORT", "6380")
    monkeypatch.setenv("BATON_REDIS_DB", "2")
    monkeypatch.setenv("BATON_REDIS_NAMESPACE", "tenant-a")

    store = create_state_store_from_env()

    assert store.url == "redis://cache:6380/2"
    assert store.namespace == "tenant-a"


class _FakeRedis:
    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.closed = False

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True

    async def hset(self, name, key, value):
        self.hashes.setdefault(name, {})[key] = value

    async def hget(self, name, key):
        return self.hashes.get(name, {}).get(key)

    async def hdel(self, name, key):
        self.hashes.get(name, {}).pop(key, None)

    async def hkeys(self, name):
        return list(self.hashes.get(name, {}))


def test_redis_store_uses_one_namespaced_hash(monkeypatch):
    pytest.importorskip("redis")
    from baton.store import RedisRunStateStore
    from baton.store import redis as redis_store

    fake = _FakeRedis()
    monkeypatch.setattr(redis_store.Redis, "from_url", lambda url, decode_responses: fake)

    async def scenario():
        async with RedisRunStateStore(url="redis://localhost:6379/0", namespace="ns") as store:
            await store.put_state("run:2", {"n": 2})
            await store.put_state("run:1", {"n": 1})
            got = await store.get_state("run:1")
            keys = await store.list_keys(prefix="run:")
            await store.delete_state("run:2")
        return got, keys

    got, keys = run_async(scenario())

    assert got == {"n": 1}
    assert keys == ["run:1", "run:2"]
    assert list(fake.hashes) == ["ns:run_states"]
    assert json.loads(fake.hashes["ns:run_states"]["run:1"]) == {"n": 1}
    assert fake.closed
