# src/tasksync/remote/in_memory.py

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from ..core.ports import ChangeCallback, Row, Unsubscribe

logger = logging.getLogger(__name__)


class InMemoryTaskService:
    """
    In-process backend used for demos when no Supabase project is configured.

    Behaves like the hosted service where it matters to the sync core:
    - insert assigns id and created_at and returns the stored row
    - update/delete of a missing id are silent no-ops (0 rows affected)
    - every write emits a change notification to table subscribers
    - a single signed-in user for the auth sub-contract
    """

    def __init__(self, *, user: Mapping[str, Any] | None = None) -> None:
        self._tables: dict[str, dict[int, Row]] = {}
        self._ids = itertools.count(1)
        self._subscribers: dict[int, tuple[str, ChangeCallback]] = {}
        self._handles = itertools.count(1)
        self._user: dict[str, Any] | None = dict(user) if user else None
        self._session_listeners: list[Callable[[Mapping[str, Any] | None], None]] = []

    # ---- rows ----

    def _table(self, table: str) -> dict[int, Row]:
        return self._tables.setdefault(table, {})

    async def select(self, table: str, filters: Mapping[str, Any]) -> list[Row]:
        rows = self._table(table).values()
        return [dict(r) for r in rows if all(r.get(k) == v for k, v in filters.items())]

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        stored = dict(row)
        stored["id"] = next(self._ids)
        stored["created_at"] = datetime.now(timezone.utc).isoformat()
        self._table(table)[stored["id"]] = stored
        self._emit(table, "INSERT", new=stored)
        return dict(stored)

    async def update(self, table: str, row_id: int, patch: Mapping[str, Any]) -> None:
        row = self._table(table).get(int(row_id))
        if row is None:
            return
        old = dict(row)
        row.update(patch)
        self._emit(table, "UPDATE", new=row, old=old)

    async def delete(self, table: str, row_id: int) -> None:
        old = self._table(table).pop(int(row_id), None)
        if old is not None:
            self._emit(table, "DELETE", old=old)

    # ---- change notifications ----

    async def subscribe_to_changes(self, table: str, callback: ChangeCallback) -> int:
        handle = next(self._handles)
        self._subscribers[handle] = (table, callback)
        return handle

    async def unsubscribe(self, handle: Any) -> None:
        self._subscribers.pop(handle, None)

    def _emit(self, table: str, event: str, *, new: Row | None = None, old: Row | None = None) -> None:
        payload = {"eventType": event, "table": table, "new": dict(new or {}), "old": dict(old or {})}
        for sub_table, callback in list(self._subscribers.values()):
            if sub_table != table:
                continue
            try:
                callback(payload)
            except Exception:
                logger.exception("Change subscriber crashed")

    # ---- auth ----

    async def get_current_user(self) -> Mapping[str, Any] | None:
        return dict(self._user) if self._user else None

    async def get_session(self) -> Mapping[str, Any] | None:
        if not self._user:
            return None
        return {"user": dict(self._user)}

    def on_session_change(
            self,
            callback: Callable[[Mapping[str, Any] | None], None],
    ) -> Unsubscribe:
        self._session_listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._session_listeners:
                self._session_listeners.remove(callback)

        return _unsubscribe

    def set_user(self, user: Mapping[str, Any] | None) -> None:
        """Switch the signed-in user (None = signed out) and notify listeners."""
        self._user = dict(user) if user else None
        for listener in list(self._session_listeners):
            listener(dict(self._user) if self._user else None)
