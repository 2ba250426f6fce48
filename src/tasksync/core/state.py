# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..auth.session import UserSession
from ..tasks.task_store import TaskStore
from .ports import AuthService, CacheStore, ConnectivityMonitor, RemoteTaskService


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    cache_store: CacheStore
    remote: RemoteTaskService
    auth: AuthService
    connectivity: ConnectivityMonitor
    session: UserSession

    # True when running against the in-memory backend (no Supabase configured).
    demo_mode: bool = False

    @property
    def tasks(self) -> TaskStore | None:
        return self.session.tasks
