# tests/test_sync_engine.py

from __future__ import annotations

import pytest

from tasksync.net.connectivity import ManualConnectivityMonitor
from tasksync.storage.task_cache import TaskCache
from tasksync.tasks.sync_engine import TaskSyncEngine
from tasksync.tasks.task_models import QUEUED_MESSAGE, NewTask, PendingMutation, SyncOutcome

from .conftest import USER_ID
from .fakes import BrokenCacheStore, FakeRemoteTaskService, task_row


@pytest.mark.asyncio
async def test_start_online_fetches_own_tasks_only(engine, remote) -> None:
    remote.seed("tasks", task_row(1, USER_ID))
    remote.seed("tasks", task_row(2, "someone-else"))

    await engine.start()

    assert [t.id for t in engine.tasks] == [1]
    assert remote.calls_of("select")[0].args == {"creator_id": USER_ID}
    await engine.stop()


@pytest.mark.asyncio
async def test_offline_toggle_is_optimistic_and_queued(engine, remote, monitor, cache_store) -> None:
    remote.seed("tasks", task_row(1, USER_ID, is_done=False))
    await engine.start()

    monitor.set_online(False)
    result = await engine.toggle_done(1, False)

    assert result.ok
    assert result.outcome == SyncOutcome.QUEUED
    assert result.message == QUEUED_MESSAGE
    assert engine.get_task_by_id(1).is_done is True
    assert engine.offline_queue == [PendingMutation(id=1, new_value=True)]
    # Nothing reached the server.
    assert remote.calls_of("update") == []
    assert remote.row("tasks", 1)["is_done"] is False

    # Snapshot and queue were persisted before toggle_done returned.
    cache = TaskCache(cache_store, USER_ID)
    cached = await cache.load_tasks()
    assert cached is not None and cached[0].is_done is True
    assert await cache.load_queue() == [PendingMutation(id=1, new_value=True)]
    await engine.stop()


@pytest.mark.asyncio
async def test_online_toggle_failure_is_reported_not_queued(engine, remote) -> None:
    remote.seed("tasks", task_row(1, USER_ID, is_done=False))
    await engine.start()
    remote.fail_update_ids.add(1)

    result = await engine.toggle_done(1, False)

    assert not result
    assert result.outcome == SyncOutcome.FAILED
    assert result.meta["code"] == "rejected"
    assert engine.get_task_by_id(1).is_done is False
    assert engine.offline_queue == []
    await engine.stop()


@pytest.mark.asyncio
async def test_online_toggle_applies_after_remote_ack(engine, remote) -> None:
    remote.seed("tasks", task_row(1, USER_ID, is_done=False))
    await engine.start()

    result = await engine.toggle_done(1, False)

    assert result.outcome == SyncOutcome.APPLIED
    assert result.data.is_done is True
    assert remote.row("tasks", 1)["is_done"] is True
    await engine.stop()


@pytest.mark.asyncio
async def test_add_task_appends_server_row(cache_store) -> None:
    remote = FakeRemoteTaskService(next_id=101, created_at="2024-01-01T10:00:00Z", realtime=False)
    engine = TaskSyncEngine(
        user_id=7,
        remote=remote,
        connectivity=ManualConnectivityMonitor(online=True),
        store=cache_store,
    )
    await engine.start()

    result = await engine.add_task(NewTask(name="Buy milk", date="2024-01-01", place="Store", creator_id=7))

    assert result.ok
    assert len(engine.tasks) == 1
    task = engine.tasks[0]
    assert task.id == 101
    assert task.created_at == "2024-01-01T10:00:00Z"
    assert (task.name, task.date, task.place, task.creator_id, task.is_done) == (
        "Buy milk",
        "2024-01-01",
        "Store",
        7,
        False,
    )
    await engine.stop()


@pytest.mark.asyncio
async def test_add_task_failure_leaves_collection_unchanged(engine, remote) -> None:
    await engine.start()
    remote.offline = True

    result = await engine.add_task(NewTask(name="x", date="2024-01-01", place="p", creator_id=USER_ID))

    assert not result
    assert result.meta["code"] == "connection"
    assert engine.tasks == []
    await engine.stop()


@pytest.mark.asyncio
async def test_fetch_task_by_id_in_memory_makes_no_remote_call(engine, remote) -> None:
    remote.seed("tasks", task_row(5, USER_ID))
    await engine.start()
    before = len(remote.calls)

    first = await engine.fetch_task_by_id(5)
    second = await engine.fetch_task_by_id("5")

    assert first == second
    assert len(remote.calls) == before
    await engine.stop()


@pytest.mark.asyncio
async def test_fetch_task_by_id_inserts_remote_task_once(engine, remote) -> None:
    await engine.start()
    remote.seed("tasks", task_row(9, USER_ID))

    found = await engine.fetch_task_by_id(9)
    again = await engine.fetch_task_by_id(9)

    assert found is not None and found.id == 9
    assert again == found
    assert [t.id for t in engine.tasks] == [9]
    assert len(remote.calls_of("select")) == 2  # initial fetch + one lookup
    await engine.stop()


@pytest.mark.asyncio
async def test_fetch_task_by_id_refuses_foreign_or_missing_task(engine, remote) -> None:
    await engine.start()
    remote.seed("tasks", task_row(3, "someone-else"))

    assert await engine.fetch_task_by_id(3) is None
    assert await engine.fetch_task_by_id(404) is None
    assert await engine.fetch_task_by_id("not-a-number") is None
    assert engine.tasks == []
    await engine.stop()


@pytest.mark.asyncio
async def test_fetch_failure_keeps_collection_and_snapshot(engine, remote, cache_store) -> None:
    remote.seed("tasks", task_row(1, USER_ID))
    await engine.start()
    remote.seed("tasks", task_row(2, USER_ID))
    remote.fail_select = True

    result = await engine.fetch_tasks()

    assert not result
    assert result.meta["code"] == "permission"
    assert [t.id for t in engine.tasks] == [1]
    cached = await TaskCache(cache_store, USER_ID).load_tasks()
    assert [t.id for t in cached] == [1]
    await engine.stop()


@pytest.mark.asyncio
async def test_fetch_tasks_rejects_other_user(engine) -> None:
    with pytest.raises(ValueError):
        await engine.fetch_tasks("u2")


@pytest.mark.asyncio
async def test_remove_task_only_after_remote_ack(engine, remote) -> None:
    remote.seed("tasks", task_row(1, USER_ID))
    remote.seed("tasks", task_row(2, USER_ID))
    await engine.start()

    remote.fail_delete = True
    failed = await engine.remove_task(1)
    assert not failed
    assert [t.id for t in engine.tasks] == [1, 2]

    remote.fail_delete = False
    ok = await engine.remove_task(1)
    assert ok
    assert [t.id for t in engine.tasks] == [2]
    assert remote.row("tasks", 1) is None
    await engine.stop()


@pytest.mark.asyncio
async def test_rehydrate_from_cache_when_starting_offline(remote, cache_store) -> None:
    monitor = ManualConnectivityMonitor(online=True)
    first = TaskSyncEngine(user_id=USER_ID, remote=remote, connectivity=monitor, store=cache_store)
    remote.seed("tasks", task_row(1, USER_ID))
    await first.start()
    await first.stop()

    offline = ManualConnectivityMonitor(online=False)
    second = TaskSyncEngine(user_id=USER_ID, remote=remote, connectivity=offline, store=cache_store)
    selects_before = len(remote.calls_of("select"))
    await second.start()

    assert [t.id for t in second.tasks] == [1]
    assert len(remote.calls_of("select")) == selects_before
    await second.stop()


@pytest.mark.asyncio
async def test_realtime_change_triggers_refetch(engine, remote) -> None:
    await engine.start()

    # Another device inserts a row; the change notification refreshes us.
    await remote.insert("tasks", task_row(0, USER_ID, name="from elsewhere"))
    await engine.wait_idle()

    assert [t.name for t in engine.tasks] == ["from elsewhere"]
    await engine.stop()


@pytest.mark.asyncio
async def test_stop_releases_subscriptions(engine, remote, monitor) -> None:
    remote.seed("tasks", task_row(1, USER_ID))
    await engine.start()
    assert remote.subscriber_count == 1

    monitor.set_online(False)
    await engine.toggle_done(1, False)
    await engine.stop()
    assert remote.subscriber_count == 0

    monitor.set_online(True)
    await engine.wait_idle()
    assert remote.calls_of("update") == []


@pytest.mark.asyncio
async def test_observers_receive_snapshots(engine, remote) -> None:
    remote.seed("tasks", task_row(1, USER_ID))
    seen: list[list[int]] = []
    unsubscribe = engine.subscribe(lambda tasks: seen.append([t.id for t in tasks]))

    await engine.start()
    unsubscribe()
    await engine.fetch_tasks()

    assert seen == [[1]]
    await engine.stop()


@pytest.mark.asyncio
async def test_cache_failure_does_not_block_offline_toggle(remote) -> None:
    monitor = ManualConnectivityMonitor(online=True)
    remote.seed("tasks", task_row(1, USER_ID))
    engine = TaskSyncEngine(user_id=USER_ID, remote=remote, connectivity=monitor, store=BrokenCacheStore())
    await engine.start()

    monitor.set_online(False)
    result = await engine.toggle_done(1, False)
    assert result.outcome == SyncOutcome.QUEUED
    assert len(engine.offline_queue) == 1

    # Nothing was persisted, so replay falls back to the in-memory queue.
    monitor.set_online(True)
    await engine.wait_idle()
    assert remote.row("tasks", 1)["is_done"] is True
    assert engine.offline_queue == []
    await engine.stop()
