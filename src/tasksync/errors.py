# src/tasksync/errors.py

from __future__ import annotations


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""


class RemoteServiceError(TaskSyncError):
    """
    The remote task service rejected a call or could not be reached.

    `code` is a short machine-readable tag ("connection", "not_found",
    "permission", "rejected", "bad_row", ...).
    """

    def __init__(self, message: str, *, code: str = "rejected") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_connection_error(self) -> bool:
        return self.code == "connection"


class RowShapeError(RemoteServiceError):
    """A row returned by the remote service does not look like a task."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="bad_row")


class CacheStoreError(TaskSyncError):
    """The persistent cache store failed to read or write a value."""
