# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync core.

The core depends on Protocols instead of concrete implementations.
This keeps the backend, connectivity source and storage swappable and makes
testing easier. Every call that touches the network or disk is async: those
are the only points where other handlers can interleave.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

Row = dict[str, Any]
# Native backend row: {"id": 1, "name": "...", "is_done": false, ...}.

ChangeCallback = Callable[[Mapping[str, Any]], None]
Unsubscribe = Callable[[], None]


@dataclass(slots=True, frozen=True)
class ConnectivityState:
    is_connected: bool
    # None means "unknown"; only an explicit False counts as unreachable.
    is_internet_reachable: bool | None = None

    @property
    def is_online(self) -> bool:
        return self.is_connected and self.is_internet_reachable is not False


class RemoteTaskService(Protocol):
    """
    Row-level CRUD + change notifications for one backend.

    Every failure is raised as RemoteServiceError.
    """

    def select(self, table: str, filters: Mapping[str, Any]) -> Awaitable[list[Row]]: ...
    def insert(self, table: str, row: Mapping[str, Any]) -> Awaitable[Row]: ...
    def update(self, table: str, row_id: int, patch: Mapping[str, Any]) -> Awaitable[None]: ...
    def delete(self, table: str, row_id: int) -> Awaitable[None]: ...

    def subscribe_to_changes(self, table: str, callback: ChangeCallback) -> Awaitable[Any]: ...
    def unsubscribe(self, handle: Any) -> Awaitable[None]: ...


class AuthService(Protocol):
    """
    Authentication sub-contract.

    A user is a mapping with at least an "id" key. on_session_change calls back
    with the new user, or None after sign-out.
    """

    def get_current_user(self) -> Awaitable[Mapping[str, Any] | None]: ...
    def get_session(self) -> Awaitable[Mapping[str, Any] | None]: ...
    def on_session_change(
            self,
            callback: Callable[[Mapping[str, Any] | None], None],
    ) -> Unsubscribe: ...


class ConnectivityMonitor(Protocol):
    def get_current_state(self) -> Awaitable[ConnectivityState]: ...
    def on_change(self, callback: Callable[[ConnectivityState], None]) -> Unsubscribe: ...


class CacheStore(Protocol):
    """
    Opaque key/value store; values are serialized strings, writes replace whole values.

    Failures are raised as CacheStoreError.
    """

    def get(self, key: str) -> Awaitable[str | None]: ...
    def set(self, key: str, value: str) -> Awaitable[None]: ...
    def remove(self, key: str) -> Awaitable[None]: ...
