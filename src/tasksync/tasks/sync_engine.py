# src/tasksync/tasks/sync_engine.py

from __future__ import annotations

"""
Task synchronization engine.

One engine per signed-in session. It owns:
- the in-memory task collection (mirrored to the cache after every change),
- the offline mutation queue,
- the connectivity listener and the realtime channel (acquired in start(),
  released in stop()).

User-initiated operations report failures through SyncResult. Background work
(replay on reconnect, realtime-triggered refetch) only logs.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Mapping
from typing import Any

from ..core.ports import (
    CacheStore,
    ConnectivityMonitor,
    ConnectivityState,
    RemoteTaskService,
    Unsubscribe,
)
from ..errors import RemoteServiceError
from ..storage.task_cache import TaskCache
from .offline_queue import OfflineMutationQueue, ReplayReport
from .task_gateway import DEFAULT_TABLE, TaskGateway
from .task_models import NewTask, PendingMutation, ReplayPolicy, SyncResult, Task, UserId

logger = logging.getLogger(__name__)

TasksListener = Callable[[list[Task]], None]


class TaskSyncEngine:
    def __init__(
            self,
            *,
            user_id: UserId,
            remote: RemoteTaskService,
            connectivity: ConnectivityMonitor,
            store: CacheStore,
            table: str = DEFAULT_TABLE,
            replay_policy: ReplayPolicy = ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED,
    ) -> None:
        self.user_id = user_id
        self._gateway = TaskGateway(remote, table)
        self._connectivity = connectivity
        self._cache = TaskCache(store, user_id)
        self.queue = OfflineMutationQueue(self._cache, policy=replay_policy)

        self._tasks: list[Task] = []
        self._listeners: list[TasksListener] = []

        self._unsubscribers: list[Unsubscribe] = []
        self._channel: Any = None
        self._background: set[asyncio.Task[Any]] = set()
        self._replay_lock = asyncio.Lock()
        self._online: bool | None = None
        self._started = False

    # ---- observers ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def offline_queue(self) -> list[PendingMutation]:
        return self.queue.items

    @property
    def started(self) -> bool:
        return self._started

    def subscribe(self, listener: TasksListener) -> Unsubscribe:
        """Register a collection observer; returns the unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_tasks(self, tasks: list[Task]) -> None:
        self._tasks = list(tasks)
        snapshot = self.tasks
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Tasks listener crashed")

    async def _persist(self) -> None:
        await self._cache.save_tasks(self._tasks)

    # ---- lifecycle ----

    async def rehydrate(self) -> None:
        """Load the last known-good snapshot and the pending queue from the cache."""
        cached = await self._cache.load_tasks()
        if cached is not None:
            self._set_tasks(cached)
            logger.info("Tasks loaded from cache user=%s count=%d", self.user_id, len(cached))
        await self.queue.load()

    async def start(self) -> None:
        """
        Acquire subscriptions and bring local state up to date.

        Online at start with a restored queue counts as a reconnect: the queue
        is replayed (which refetches afterwards). Online with an empty queue:
        plain fetch. Offline: the cached snapshot is all we have.
        """
        if self._started:
            return

        await self.rehydrate()

        self._unsubscribers.append(self._connectivity.on_change(self._on_connectivity_change))
        try:
            self._channel = await self._gateway.subscribe(self._on_remote_change)
        except RemoteServiceError as e:
            logger.warning("Realtime subscription failed; live updates disabled: %s", e)
            self._channel = None

        self._started = True
        state = await self._check_connectivity()
        self._online = state.is_online
        logger.info(
            "Sync engine started user=%s online=%s cached=%d queued=%d",
            self.user_id,
            self._online,
            len(self._tasks),
            len(self.queue),
        )

        if not self._online:
            return
        if len(self.queue):
            await self.replay_offline_queue()
        else:
            result = await self.fetch_tasks()
            if not result:
                logger.warning("Initial fetch failed user=%s: %s", self.user_id, result.error)

    async def stop(self) -> None:
        """Release every subscription and cancel background work."""
        for unsubscribe in self._unsubscribers:
            try:
                unsubscribe()
            except Exception:
                logger.exception("Unsubscribe failed")
        self._unsubscribers.clear()

        if self._channel is not None:
            try:
                await self._gateway.unsubscribe(self._channel)
            except RemoteServiceError as e:
                logger.warning("Realtime unsubscribe failed: %s", e)
            self._channel = None

        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()

        self._listeners.clear()
        self._started = False
        logger.info("Sync engine stopped user=%s", self.user_id)

    # ---- connectivity ----

    async def _check_connectivity(self) -> ConnectivityState:
        try:
            return await self._connectivity.get_current_state()
        except Exception:
            logger.warning("Connectivity check failed; assuming offline", exc_info=True)
            return ConnectivityState(is_connected=False, is_internet_reachable=False)

    async def is_online(self) -> bool:
        return (await self._check_connectivity()).is_online

    def _on_connectivity_change(self, state: ConnectivityState) -> None:
        was_online = self._online
        self._online = state.is_online
        if not self._started:
            return
        if was_online is False and state.is_online:
            logger.info("Connectivity restored; replaying offline queue")
            self._spawn(self.replay_offline_queue(), "replay-offline-queue")
        elif was_online and not state.is_online:
            logger.info("Connectivity lost; mutations will be queued")

    def _on_remote_change(self, payload: Mapping[str, Any]) -> None:
        if not self._started:
            return
        logger.debug("Remote change on tasks: %s", (payload or {}).get("eventType", payload))
        self._spawn(self._refresh_from_remote(), "realtime-refetch")

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            logger.error("No running event loop; cannot schedule %s", name)
            return
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_idle(self) -> None:
        """Wait until scheduled background work (replay, refetch) has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _refresh_from_remote(self) -> None:
        result = await self.fetch_tasks()
        if not result:
            logger.warning("Realtime refetch failed user=%s: %s", self.user_id, result.error)

    # ---- replay ----

    async def replay_offline_queue(self) -> ReplayReport:
        """
        Replay queued mutations, then reconcile with a full fetch.

        Passes never overlap; a second caller waits for the running pass and
        then finds whatever is left.
        """
        async with self._replay_lock:
            report = await self.queue.replay(self._apply_mutation)
            if report.empty:
                return report

            if self.user_id is not None:
                result = await self.fetch_tasks()
                if not result:
                    logger.warning("Post-replay refresh failed user=%s: %s", self.user_id, result.error)
            return report

    async def _apply_mutation(self, mutation: PendingMutation) -> None:
        await self._gateway.set_done(mutation.id, mutation.new_value)

    async def _drain_queue_first(self) -> None:
        # Older queued values for a task must reach the server before a newer online write.
        if len(self.queue) == 0 and not self._replay_lock.locked():
            return
        await self.replay_offline_queue()

    # ---- operations ----

    async def fetch_tasks(self, user_id: UserId | None = None) -> SyncResult:
        """
        Replace the collection with the server rows owned by the user.

        On failure the collection and the cached snapshot stay as they were.
        """
        if user_id is not None and str(user_id) != str(self.user_id):
            raise ValueError(f"engine is bound to user {self.user_id!r}, not {user_id!r}")

        try:
            tasks = await self._gateway.list_for_user(self.user_id)
        except RemoteServiceError as e:
            logger.error("fetch_tasks failed user=%s: %s", self.user_id, e)
            return SyncResult.failed(e.message, code=e.code)

        self._set_tasks(self._overlay_pending(tasks))
        await self._persist()
        logger.debug("fetch_tasks user=%s count=%d", self.user_id, len(self._tasks))
        return SyncResult.applied(self.tasks)

    def _overlay_pending(self, tasks: list[Task]) -> list[Task]:
        # Keep the optimistic view for mutations the server has not acknowledged yet.
        if len(self.queue) == 0:
            return tasks
        latest = {m.id: m.new_value for m in self.queue.items}
        return [t.with_done(latest[t.id]) if t.id in latest else t for t in tasks]

    def get_task_by_id(self, task_id: int | str) -> Task | None:
        try:
            wanted = int(task_id)
        except (TypeError, ValueError):
            return None
        for task in self._tasks:
            if task.id == wanted:
                return task
        return None

    async def fetch_task_by_id(self, task_id: int | str) -> Task | None:
        """Memory first (no network); otherwise one remote lookup, inserted once."""
        existing = self.get_task_by_id(task_id)
        if existing is not None:
            return existing

        try:
            wanted = int(task_id)
        except (TypeError, ValueError):
            return None

        try:
            task = await self._gateway.get_by_id(wanted)
        except RemoteServiceError as e:
            logger.error("fetch_task_by_id failed id=%s: %s", wanted, e)
            return None

        if task is None:
            return None
        if str(task.creator_id) != str(self.user_id):
            logger.warning("Task id=%s belongs to another user; not caching it", task.id)
            return None

        # Another handler may have inserted it while we were waiting.
        if self.get_task_by_id(task.id) is None:
            self._set_tasks(self._tasks + [task])
            await self._persist()
        return self.get_task_by_id(task.id)

    def _apply_done(self, task_id: int, is_done: bool) -> Task | None:
        updated: Task | None = None
        out: list[Task] = []
        for task in self._tasks:
            if task.id == task_id:
                task = task.with_done(is_done)
                updated = task
            out.append(task)
        self._set_tasks(out)
        return updated

    async def toggle_done(self, task_id: int, current_is_done: bool) -> SyncResult:
        """
        Flip is_done.

        Online: remote update first, local flip only after success; a failure
        is reported and nothing is queued; on success, older queued entries for
        the task are superseded and removed. Offline: optimistic local flip,
        snapshot, then the mutation is queued for replay.
        """
        task_id = int(task_id)
        new_value = not current_is_done
        state = await self._check_connectivity()

        if state.is_online:
            await self._drain_queue_first()
            try:
                await self._gateway.set_done(task_id, new_value)
            except RemoteServiceError as e:
                logger.error("toggle_done failed id=%s: %s", task_id, e)
                return SyncResult.failed(e.message, code=e.code)

            # Entries the drain could not deliver are older than this write.
            async with self._replay_lock:
                await self.queue.discard(task_id)

            task = self._apply_done(task_id, new_value)
            await self._persist()
            return SyncResult.applied(task)

        self._online = False
        task = self._apply_done(task_id, new_value)
        await self._persist()
        await self.queue.enqueue(PendingMutation(id=task_id, new_value=new_value))
        logger.info("toggle_done queued offline id=%s new_value=%s", task_id, new_value)
        return SyncResult.queued(task)

    async def remove_task(self, task_id: int) -> SyncResult:
        """Delete remotely; the collection changes only after the server acknowledged."""
        task_id = int(task_id)
        try:
            await self._gateway.delete(task_id)
        except RemoteServiceError as e:
            logger.error("remove_task failed id=%s: %s", task_id, e)
            return SyncResult.failed(e.message, code=e.code)

        self._set_tasks([t for t in self._tasks if t.id != task_id])
        await self._persist()
        return SyncResult.applied(task_id)

    async def add_task(self, new_task: NewTask) -> SyncResult:
        """Insert remotely and append the server row (with its id and created_at)."""
        try:
            task = await self._gateway.insert(new_task)
        except RemoteServiceError as e:
            logger.error("add_task failed name=%r: %s", new_task.name, e)
            return SyncResult.failed(e.message, code=e.code)

        self._set_tasks(self._tasks + [task])
        await self._persist()
        logger.info("Task added id=%s name=%r", task.id, task.name)
        return SyncResult.applied(task)
