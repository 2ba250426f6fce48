# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (backend/connectivity/cache),
- falls back to the in-memory demo backend when Supabase is not configured.
"""

from __future__ import annotations

import logging

from ..auth.session import UserSession
from ..config import get_settings
from ..core.ports import AuthService, ConnectivityMonitor, RemoteTaskService
from ..core.state import AppState
from ..net.connectivity import HttpConnectivityMonitor, ManualConnectivityMonitor
from ..remote.in_memory import InMemoryTaskService
from ..remote.supabase_service import SupabaseTaskService
from ..storage.cache_store import SqliteCacheStore
from ..tasks.task_models import ReplayPolicy

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def _demo_backend(settings) -> tuple[InMemoryTaskService, ManualConnectivityMonitor]:
    remote = InMemoryTaskService(user={"id": settings.demo_user_id, "email": f"{settings.demo_user_id}@localhost"})
    return remote, ManualConnectivityMonitor(online=True)


async def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    remote: RemoteTaskService
    auth: AuthService
    connectivity: ConnectivityMonitor
    demo_mode = False

    if settings.supabase_configured:
        try:
            supabase = await SupabaseTaskService.connect(settings.supabase_url, settings.supabase_key)
            remote = auth = supabase
            connectivity = HttpConnectivityMonitor(
                settings.connectivity_check_url,
                timeout_seconds=settings.connectivity_timeout_seconds,
                interval_seconds=settings.connectivity_interval_seconds,
            )
        except Exception:
            # Fallback for demos / local runs without external services.
            logger.exception("Supabase client init failed; falling back to the in-memory demo backend")
            remote, connectivity = _demo_backend(settings)
            auth = remote
            demo_mode = True
    else:
        remote, connectivity = _demo_backend(settings)
        auth = remote
        demo_mode = True

    cache_store = SqliteCacheStore(settings.cache_db_path)
    session = UserSession(
        auth=auth,
        remote=remote,
        connectivity=connectivity,
        store=cache_store,
        table=settings.tasks_table,
        replay_policy=ReplayPolicy.from_config(settings.replay_policy),
    )

    return AppState(
        settings=settings,
        cache_store=cache_store,
        remote=remote,
        auth=auth,
        connectivity=connectivity,
        session=session,
        demo_mode=demo_mode,
    )
