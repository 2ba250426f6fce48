# src/tasksync/auth/session.py

from __future__ import annotations

"""
Signed-in session tracking.

UserSession owns the auth listener and exactly one TaskSyncEngine for the
current user. A user switch stops the old engine (releasing its listeners and
realtime channel) before the new one starts, and cache keys are namespaced by
user id, so one account never sees another account's cached tasks.
"""

import asyncio
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

from ..core.ports import AuthService, CacheStore, ConnectivityMonitor, RemoteTaskService, Unsubscribe
from ..errors import RemoteServiceError
from ..storage.task_cache import TaskCache
from ..tasks.sync_engine import TaskSyncEngine
from ..tasks.task_gateway import DEFAULT_TABLE
from ..tasks.task_models import ReplayPolicy
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

User = Mapping[str, Any]


class UserSession:
    def __init__(
            self,
            *,
            auth: AuthService,
            remote: RemoteTaskService,
            connectivity: ConnectivityMonitor,
            store: CacheStore,
            table: str = DEFAULT_TABLE,
            replay_policy: ReplayPolicy = ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED,
    ) -> None:
        self._auth = auth
        self._remote = remote
        self._connectivity = connectivity
        self._cache_store = store
        self._table = table
        self._replay_policy = replay_policy

        self._user: dict[str, Any] | None = None
        self._engine: TaskSyncEngine | None = None
        self._task_store: TaskStore | None = None
        self._unsubscribe_auth: Unsubscribe | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._switch_lock = asyncio.Lock()

    @property
    def user(self) -> dict[str, Any] | None:
        return dict(self._user) if self._user else None

    @property
    def engine(self) -> TaskSyncEngine | None:
        return self._engine

    @property
    def tasks(self) -> TaskStore | None:
        """Facade for the signed-in user, or None when nobody is signed in."""
        return self._task_store

    async def _resolve_user(self) -> dict[str, Any] | None:
        try:
            online = (await self._connectivity.get_current_state()).is_online
        except Exception:
            logger.warning("Connectivity check failed; using cached user", exc_info=True)
            online = False

        if not online:
            cached = await TaskCache.load_user(self._cache_store)
            if cached:
                logger.info("Offline: using cached user id=%s", cached.get("id"))
            return cached

        try:
            session = await self._auth.get_session()
        except RemoteServiceError as e:
            logger.warning("get_session failed (%s); using cached user", e)
            return await TaskCache.load_user(self._cache_store)

        user = dict(session["user"]) if session and session.get("user") else None
        if not user or user.get("id") is None:
            return None

        # The stored session may carry a stale profile; ask the backend for the current one.
        try:
            current = await self._auth.get_current_user()
        except RemoteServiceError as e:
            logger.warning("get_current_user failed (%s); keeping session user", e)
            current = None
        if current and str(current.get("id")) == str(user["id"]):
            user.update({k: v for k, v in current.items() if v is not None})

        await TaskCache.save_user(self._cache_store, user)
        return user

    async def start(self) -> None:
        user = await self._resolve_user()
        self._unsubscribe_auth = self._auth.on_session_change(self._on_session_change)
        await self._switch_user(user)

    async def stop(self) -> None:
        if self._unsubscribe_auth is not None:
            try:
                self._unsubscribe_auth()
            except Exception:
                logger.exception("Auth unsubscribe failed")
            self._unsubscribe_auth = None

        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()

        async with self._switch_lock:
            await self._stop_engine()

    async def wait_idle(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._engine is not None:
            await self._engine.wait_idle()

    def _on_session_change(self, user: User | None) -> None:
        self._spawn(self._handle_session_change(user), "session-change")

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            logger.error("No running event loop; cannot schedule %s", name)
            return
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _handle_session_change(self, user: User | None) -> None:
        if user and user.get("id") is not None:
            await TaskCache.save_user(self._cache_store, user)
            await self._switch_user(dict(user))
        else:
            await TaskCache.clear_user(self._cache_store)
            await self._switch_user(None)

    async def _stop_engine(self) -> None:
        if self._engine is None:
            return
        engine = self._engine
        self._engine = None
        self._task_store = None
        await engine.stop()

    async def _switch_user(self, user: dict[str, Any] | None) -> None:
        async with self._switch_lock:
            new_id = user.get("id") if user else None
            if self._engine is not None and new_id is not None and str(self._engine.user_id) == str(new_id):
                self._user = user
                return

            await self._stop_engine()
            self._user = user
            if new_id is None:
                logger.info("No signed-in user; task sync idle")
                return

            engine = TaskSyncEngine(
                user_id=new_id,
                remote=self._remote,
                connectivity=self._connectivity,
                store=self._cache_store,
                table=self._table,
                replay_policy=self._replay_policy,
            )
            await engine.start()
            self._engine = engine
            self._task_store = TaskStore(engine)
            logger.info("Session active user=%s", new_id)
