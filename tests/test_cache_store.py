# tests/test_cache_store.py

from __future__ import annotations

import pytest

from tasksync.storage.cache_store import SqliteCacheStore
from tasksync.storage.task_cache import TaskCache, queue_key, tasks_key
from tasksync.tasks.task_models import PendingMutation, Task

from .fakes import BrokenCacheStore


@pytest.mark.asyncio
async def test_set_replaces_whole_value_and_survives_reopen(tmp_path) -> None:
    db = tmp_path / "cache.sqlite3"
    store = SqliteCacheStore(db)
    await store.set("k", "one")
    await store.set("k", "two")

    reopened = SqliteCacheStore(db)
    assert await reopened.get("k") == "two"

    await reopened.remove("k")
    assert await reopened.get("k") is None
    await reopened.remove("k")  # removing a missing key is fine


@pytest.mark.asyncio
async def test_task_cache_keys_are_per_user(cache_store) -> None:
    task = Task(id=1, name="a", date="2024-01-01", place="p", creator_id="u1")
    await TaskCache(cache_store, "u1").save_tasks([task])

    assert await TaskCache(cache_store, "u2").load_tasks() is None
    assert await cache_store.get(tasks_key("u1")) is not None
    assert tasks_key("u1") != queue_key("u1")


@pytest.mark.asyncio
async def test_task_cache_skips_malformed_entries(cache_store) -> None:
    await cache_store.set(tasks_key("u1"), '[{"id": 1, "name": "a", "date": "2024-01-01", "place": "p", "creator_id": "u1"}, {"id": 2}]')
    await cache_store.set(queue_key("u1"), '[{"id": 1, "newValue": true}, {"nope": 1}]')
    cache = TaskCache(cache_store, "u1")

    assert [t.id for t in await cache.load_tasks()] == [1]
    assert await cache.load_queue() == [PendingMutation(id=1, new_value=True)]


@pytest.mark.asyncio
async def test_task_cache_treats_invalid_json_as_absent(cache_store) -> None:
    await cache_store.set(tasks_key("u1"), "{not json")
    assert await TaskCache(cache_store, "u1").load_tasks() is None


@pytest.mark.asyncio
async def test_task_cache_never_raises_on_store_failure() -> None:
    cache = TaskCache(BrokenCacheStore(), "u1")
    assert await cache.save_queue([PendingMutation(id=1, new_value=True)]) is False
    assert await cache.load_queue() is None
    assert await cache.clear_queue() is False
    assert await TaskCache.load_user(BrokenCacheStore()) is None
