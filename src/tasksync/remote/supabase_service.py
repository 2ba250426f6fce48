# src/tasksync/remote/supabase_service.py

from __future__ import annotations

"""
Supabase adapter for the RemoteTaskService and AuthService ports.

Library exceptions never leave this module: every failure is re-raised as
RemoteServiceError with a short code so the core can tell a dead network from
a rejected request.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from supabase import AsyncClient, acreate_client

from ..core.ports import ChangeCallback, Row, Unsubscribe
from ..errors import RemoteServiceError

logger = logging.getLogger(__name__)

# PostgREST caps a single response; larger tables are read page by page.
PAGE_SIZE = 1000


def _is_connection_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "ConnectError",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
        "PoolTimeout",
        "ReadError",
        "RemoteProtocolError",
        "NetworkError",
    }


def _api_error_code(exc: Exception) -> str:
    # postgrest APIError carries the PostgREST / Postgres error code.
    raw = str(getattr(exc, "code", "") or "")
    if raw == "PGRST116":
        return "not_found"
    if raw in {"42501", "PGRST301", "PGRST302"} or raw.startswith("28"):
        return "permission"
    return "rejected"


def to_remote_error(exc: Exception, operation: str) -> RemoteServiceError:
    if isinstance(exc, RemoteServiceError):
        return exc
    if _is_connection_error(exc):
        return RemoteServiceError(f"{operation}: backend unreachable ({exc.__class__.__name__})", code="connection")
    if exc.__class__.__name__ == "APIError":
        message = str(getattr(exc, "message", "") or exc)
        return RemoteServiceError(f"{operation}: {message}", code=_api_error_code(exc))
    if exc.__class__.__name__ in {"AuthApiError", "AuthSessionMissingError", "AuthError"}:
        return RemoteServiceError(f"{operation}: {exc}", code="permission")
    return RemoteServiceError(f"{operation}: {exc}", code="rejected")


def friendly_remote_error_message(err: Exception) -> str:
    if isinstance(err, RemoteServiceError):
        if err.code == "connection":
            return "Backend is unreachable. Check your connection and try again."
        if err.code == "permission":
            return "Not allowed. Sign in again and retry."
        if err.code == "not_found":
            return "Task not found."
    return str(err).strip() or "Backend error."


def _user_dict(user: Any) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": getattr(user, "id", None), "email": getattr(user, "email", None)}


class SupabaseTaskService:
    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    @classmethod
    async def connect(cls, url: str, key: str) -> SupabaseTaskService:
        if not url or not key:
            raise RuntimeError("Supabase is not configured. Set TASKSYNC_SUPABASE_URL and TASKSYNC_SUPABASE_KEY.")
        client = await acreate_client(url, key)
        logger.info("Supabase client ready url=%s", url)
        return cls(client)

    # ---- rows ----

    async def select(self, table: str, filters: Mapping[str, Any]) -> list[Row]:
        out: list[Row] = []
        offset = 0
        try:
            while True:
                query = self._client.table(table).select("*")
                for column, value in filters.items():
                    query = query.eq(column, value)
                response = await query.range(offset, offset + PAGE_SIZE - 1).execute()

                batch = response.data or []
                out.extend(dict(r) for r in batch)
                if len(batch) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        except Exception as e:
            raise to_remote_error(e, f"select {table}") from e
        return out

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        try:
            response = await self._client.table(table).insert(dict(row)).execute()
        except Exception as e:
            raise to_remote_error(e, f"insert {table}") from e
        data = response.data or []
        if not data:
            raise RemoteServiceError(f"insert {table}: no row returned", code="bad_row")
        return dict(data[0])

    async def update(self, table: str, row_id: int, patch: Mapping[str, Any]) -> None:
        try:
            await self._client.table(table).update(dict(patch)).eq("id", row_id).execute()
        except Exception as e:
            raise to_remote_error(e, f"update {table} id={row_id}") from e

    async def delete(self, table: str, row_id: int) -> None:
        try:
            await self._client.table(table).delete().eq("id", row_id).execute()
        except Exception as e:
            raise to_remote_error(e, f"delete {table} id={row_id}") from e

    # ---- change notifications ----

    async def subscribe_to_changes(self, table: str, callback: ChangeCallback) -> Any:
        try:
            channel = self._client.channel(f"{table}_changes")
            channel.on_postgres_changes("*", schema="public", table=table, callback=callback)
            await channel.subscribe()
        except Exception as e:
            raise to_remote_error(e, f"subscribe {table}") from e
        return channel

    async def unsubscribe(self, handle: Any) -> None:
        try:
            await self._client.remove_channel(handle)
        except Exception as e:
            raise to_remote_error(e, "unsubscribe") from e

    # ---- auth ----

    async def get_session(self) -> Mapping[str, Any] | None:
        try:
            session = await self._client.auth.get_session()
        except Exception as e:
            raise to_remote_error(e, "get_session") from e
        if session is None or getattr(session, "user", None) is None:
            return None
        return {"user": _user_dict(session.user), "expires_at": getattr(session, "expires_at", None)}

    async def get_current_user(self) -> Mapping[str, Any] | None:
        try:
            response = await self._client.auth.get_user()
        except Exception as e:
            raise to_remote_error(e, "get_user") from e
        return _user_dict(getattr(response, "user", None)) if response else None

    def on_session_change(
            self,
            callback: Callable[[Mapping[str, Any] | None], None],
    ) -> Unsubscribe:
        def _on_auth_event(_event: Any, session: Any) -> None:
            callback(_user_dict(getattr(session, "user", None)) if session else None)

        subscription = self._client.auth.on_auth_state_change(_on_auth_event)
        return subscription.unsubscribe

    async def aclose(self) -> None:
        try:
            await self._client.remove_all_channels()
        except Exception:
            logger.debug("Supabase channel cleanup failed.", exc_info=True)
