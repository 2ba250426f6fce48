# src/tasksync/tasks/task_store.py

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.ports import Unsubscribe
from .sync_engine import TasksListener, TaskSyncEngine
from .task_models import NewTask, PendingMutation, SyncResult, Task, UserId


class TaskStore:
    """
    Operation surface for presentation code.

    Pure delegation to the session's TaskSyncEngine; the only thing done here
    is turning a plain mapping into a validated NewTask.
    """

    def __init__(self, engine: TaskSyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> TaskSyncEngine:
        return self._engine

    @property
    def tasks(self) -> list[Task]:
        return self._engine.tasks

    @property
    def offline_queue(self) -> list[PendingMutation]:
        return self._engine.offline_queue

    def subscribe(self, listener: TasksListener) -> Unsubscribe:
        return self._engine.subscribe(listener)

    async def fetch_tasks(self, user_id: UserId | None = None) -> SyncResult:
        return await self._engine.fetch_tasks(user_id)

    async def fetch_task_by_id(self, task_id: int | str) -> Task | None:
        return await self._engine.fetch_task_by_id(task_id)

    async def add_task(self, new_task: NewTask | Mapping[str, Any]) -> SyncResult:
        if not isinstance(new_task, NewTask):
            try:
                new_task = NewTask.from_mapping(new_task)
            except ValueError as e:
                return SyncResult.failed(str(e), code="invalid")
        return await self._engine.add_task(new_task)

    async def toggle_done(self, task_id: int, current_is_done: bool) -> SyncResult:
        return await self._engine.toggle_done(task_id, current_is_done)

    async def remove_task(self, task_id: int) -> SyncResult:
        return await self._engine.remove_task(task_id)

    def get_task_by_id(self, task_id: int | str) -> Task | None:
        return self._engine.get_task_by_id(task_id)
