# src/tasksync/tasks/task_gateway.py

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import ChangeCallback, RemoteTaskService
from ..errors import RemoteServiceError
from .task_models import NewTask, Task, UserId

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "tasks"


class TaskGateway:
    """
    Typed access to the remote tasks table.

    This is where backend rows become Task records: a row that does not have
    the task shape raises RowShapeError (a RemoteServiceError) instead of
    leaking an untyped dict into the engine.
    """

    def __init__(self, remote: RemoteTaskService, table: str = DEFAULT_TABLE) -> None:
        self._remote = remote
        self.table = table

    async def list_for_user(self, user_id: UserId) -> list[Task]:
        rows = await self._remote.select(self.table, {"creator_id": user_id})
        return [Task.from_row(r) for r in rows]

    async def get_by_id(self, task_id: int) -> Task | None:
        rows = await self._remote.select(self.table, {"id": task_id})
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning("Expected one row for task id=%s, got %d", task_id, len(rows))
        return Task.from_row(rows[0])

    async def insert(self, new_task: NewTask) -> Task:
        row = await self._remote.insert(self.table, new_task.to_row())
        if not row:
            raise RemoteServiceError("insert returned no row", code="bad_row")
        return Task.from_row(row)

    async def set_done(self, task_id: int, is_done: bool) -> None:
        await self._remote.update(self.table, task_id, {"is_done": is_done})

    async def delete(self, task_id: int) -> None:
        await self._remote.delete(self.table, task_id)

    async def subscribe(self, callback: ChangeCallback) -> Any:
        return await self._remote.subscribe_to_changes(self.table, callback)

    async def unsubscribe(self, handle: Any) -> None:
        await self._remote.unsubscribe(handle)
