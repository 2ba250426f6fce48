# src/tasksync/storage/task_cache.py

"""
Snapshot persistence for one user's task collection and offline queue.

Every write replaces the whole value. Failures are logged and swallowed:
the cache is best-effort and must never block the in-memory operation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.ports import CacheStore
from ..errors import RowShapeError, TaskSyncError
from ..tasks.task_models import PendingMutation, Task, UserId

logger = logging.getLogger(__name__)

TASKS_KEY = "local-tasks"
QUEUE_KEY = "offline-queue"
CACHED_USER_KEY = "cachedUser"


def tasks_key(user_id: UserId) -> str:
    return f"{TASKS_KEY}:{user_id}"


def queue_key(user_id: UserId) -> str:
    return f"{QUEUE_KEY}:{user_id}"


class TaskCache:
    def __init__(self, store: CacheStore, user_id: UserId) -> None:
        self._store = store
        self.user_id = user_id

    # ---- tasks snapshot ----

    async def save_tasks(self, tasks: Iterable[Task]) -> bool:
        payload = json.dumps([t.to_row() for t in tasks], ensure_ascii=False)
        return await self._write(tasks_key(self.user_id), payload)

    async def load_tasks(self) -> list[Task] | None:
        """Last known-good snapshot, or None if nothing was ever saved."""
        data = await self._read_json(tasks_key(self.user_id))
        if not isinstance(data, list):
            return None

        out: list[Task] = []
        for row in data:
            try:
                out.append(Task.from_row(row))
            except RowShapeError:
                logger.warning("Skipping malformed cached task row: %r", row)
        return out

    # ---- offline queue snapshot ----

    async def save_queue(self, mutations: Iterable[PendingMutation]) -> bool:
        payload = json.dumps([m.to_dict() for m in mutations])
        return await self._write(queue_key(self.user_id), payload)

    async def load_queue(self) -> list[PendingMutation] | None:
        """Persisted queue in insertion order; None when absent (not the same as empty)."""
        data = await self._read_json(queue_key(self.user_id))
        if not isinstance(data, list):
            return None

        out: list[PendingMutation] = []
        for item in data:
            try:
                out.append(PendingMutation.from_dict(item))
            except (TypeError, ValueError, AttributeError):
                logger.warning("Skipping malformed queued mutation: %r", item)
        return out

    async def clear_queue(self) -> bool:
        return await self._delete(queue_key(self.user_id))

    # ---- cached user (display continuity while offline) ----

    @staticmethod
    async def save_user(store: CacheStore, user: Mapping[str, Any]) -> None:
        try:
            await store.set(CACHED_USER_KEY, json.dumps(dict(user), ensure_ascii=False, default=str))
        except TaskSyncError:
            logger.exception("Failed to cache user")

    @staticmethod
    async def load_user(store: CacheStore) -> dict[str, Any] | None:
        try:
            raw = await store.get(CACHED_USER_KEY)
        except TaskSyncError:
            logger.exception("Failed to read cached user")
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Cached user is not valid JSON; ignoring")
            return None
        return data if isinstance(data, dict) and data.get("id") is not None else None

    @staticmethod
    async def clear_user(store: CacheStore) -> None:
        try:
            await store.remove(CACHED_USER_KEY)
        except TaskSyncError:
            logger.exception("Failed to clear cached user")

    # ---- low-level helpers ----

    async def _write(self, key: str, payload: str) -> bool:
        try:
            await self._store.set(key, payload)
            return True
        except TaskSyncError:
            logger.exception("Cache write failed key=%s", key)
            return False

    async def _delete(self, key: str) -> bool:
        try:
            await self._store.remove(key)
            return True
        except TaskSyncError:
            logger.exception("Cache delete failed key=%s", key)
            return False

    async def _read_json(self, key: str) -> Any:
        try:
            raw = await self._store.get(key)
        except TaskSyncError:
            logger.exception("Cache read failed key=%s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Cache value is not valid JSON key=%s; ignoring", key)
            return None
