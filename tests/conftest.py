# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.auth.session import UserSession
from tasksync.core.state import AppState
from tasksync.net.connectivity import ManualConnectivityMonitor
from tasksync.storage.cache_store import SqliteCacheStore
from tasksync.tasks.sync_engine import TaskSyncEngine
from tasksync.tasks.task_models import ReplayPolicy

from .fakes import FakeRemoteTaskService

USER_ID = "u1"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        log_level="DEBUG",
        console_enabled=False,
        supabase_url=None,
        supabase_key=None,
        tasks_table="tasks",
        replay_policy="retry",
        demo_user_id=USER_ID,
        data_dir=tmp_path,
        cache_db_path=tmp_path / "cache.sqlite3",
    )


@pytest.fixture()
def cache_store(settings: SimpleNamespace) -> SqliteCacheStore:
    # Real SQLite: snapshot durability is part of what we test.
    return SqliteCacheStore(settings.cache_db_path)


@pytest.fixture()
def remote() -> FakeRemoteTaskService:
    return FakeRemoteTaskService(user={"id": USER_ID, "email": "u1@example.com"})


@pytest.fixture()
def monitor() -> ManualConnectivityMonitor:
    return ManualConnectivityMonitor(online=True)


@pytest.fixture()
def engine(remote, monitor, cache_store) -> TaskSyncEngine:
    """Engine for USER_ID; tests call `await engine.start()` themselves."""
    return TaskSyncEngine(
        user_id=USER_ID,
        remote=remote,
        connectivity=monitor,
        store=cache_store,
        replay_policy=ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED,
    )


@pytest.fixture()
def state(settings, cache_store, remote, monitor) -> AppState:
    """AppState wired like the demo backend; the session is not started yet."""
    session = UserSession(
        auth=remote,
        remote=remote,
        connectivity=monitor,
        store=cache_store,
        table=settings.tasks_table,
    )
    return AppState(
        settings=settings,
        cache_store=cache_store,
        remote=remote,
        auth=remote,
        connectivity=monitor,
        session=session,
        demo_mode=True,
    )
