# src/tasksync/tasks/task_models.py

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..errors import RowShapeError

UserId = str | int

QUEUED_MESSAGE = "Saved locally, will sync later."

_LOCALE_DATE = re.compile(r"^\s*(\d{1,2})[./](\d{1,2})[./](\d{4})\s*$")


def normalize_date(value: Any) -> str:
    """
    Return the canonical ISO-8601 form of a task date.

    Accepted inputs:
    - ISO-8601 strings (date or timestamp) -> returned unchanged
    - date / datetime objects -> isoformat()
    - locale strings "DD/MM/YYYY" or "DD.MM.YYYY" -> "YYYY-MM-DD"
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"invalid task date: {value!r}")

    s = value.strip()
    try:
        datetime.fromisoformat(s)
        return s
    except ValueError:
        pass

    m = _LOCALE_DATE.match(s)
    if m:
        day, month, year = (int(g) for g in m.groups())
        return date(year, month, day).isoformat()

    raise ValueError(f"invalid task date: {value!r}")


def parse_date(value: str) -> datetime:
    """Parse a canonical task date; naive results are treated as local wall time."""
    return datetime.fromisoformat(normalize_date(value))


def format_date_display(value: str) -> str:
    """Display-only rendering of a task date: DD/MM/YYYY."""
    try:
        return parse_date(value).strftime("%d/%m/%Y")
    except ValueError:
        return value


class SyncOutcome(StrEnum):
    APPLIED = "applied"  # remote acknowledged
    QUEUED = "queued"  # accepted locally, replayed on reconnect
    FAILED = "failed"


class ReplayPolicy(StrEnum):
    """
    What happens to a queued mutation whose replay fails.

    DROP_AFTER_PASS clears the whole queue after one pass regardless of
    per-entry outcome (a failed entry is lost). RETRY_UNTIL_ACKNOWLEDGED keeps
    failed entries for the next reconnect.
    """

    RETRY_UNTIL_ACKNOWLEDGED = "retry"
    DROP_AFTER_PASS = "drop"

    @classmethod
    def from_config(cls, raw: str | None) -> ReplayPolicy:
        if not raw:
            return cls.RETRY_UNTIL_ACKNOWLEDGED
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.RETRY_UNTIL_ACKNOWLEDGED


def _opt_float(row: Mapping[str, Any], key: str) -> float | None:
    raw = row.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise RowShapeError(f"task field {key!r} is not a number: {raw!r}") from None


@dataclass(slots=True)
class Task:
    id: int
    name: str
    date: str
    place: str
    creator_id: UserId
    is_done: bool = False
    created_at: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        """Build a Task from a backend row, rejecting rows missing required fields."""
        if not isinstance(row, Mapping):
            raise RowShapeError(f"task row is not a mapping: {type(row).__name__}")

        missing = [k for k in ("id", "name", "date", "place", "creator_id") if row.get(k) is None]
        if missing:
            raise RowShapeError(f"task row is missing fields: {', '.join(missing)}")

        try:
            task_id = int(row["id"])
        except (TypeError, ValueError):
            raise RowShapeError(f"task id is not an integer: {row['id']!r}") from None

        try:
            task_date = normalize_date(row["date"])
        except ValueError as e:
            raise RowShapeError(str(e)) from None

        created_at = row.get("created_at")
        return cls(
            id=task_id,
            name=str(row["name"]),
            date=task_date,
            place=str(row["place"]),
            creator_id=row["creator_id"],
            is_done=bool(row.get("is_done") or False),
            created_at=str(created_at) if created_at is not None else None,
            latitude=_opt_float(row, "latitude"),
            longitude=_opt_float(row, "longitude"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date,
            "place": self.place,
            "creator_id": self.creator_id,
            "is_done": self.is_done,
            "created_at": self.created_at,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    def with_done(self, is_done: bool) -> Task:
        return replace(self, is_done=is_done)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class NewTask:
    """Insert payload; the server assigns id and created_at."""

    name: str
    date: str
    place: str
    creator_id: UserId
    is_done: bool = False
    latitude: float | None = None
    longitude: float | None = None

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ValueError("name is required")
        if not self.place or not str(self.place).strip():
            raise ValueError("place is required")
        if self.creator_id is None or self.creator_id == "":
            raise ValueError("creator_id is required")
        self.date = normalize_date(self.date)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> NewTask:
        return cls(
            name=data.get("name", ""),
            date=data.get("date", ""),
            place=data.get("place", ""),
            creator_id=data.get("creator_id"),
            is_done=bool(data.get("is_done") or False),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "name": self.name,
            "date": self.date,
            "place": self.place,
            "creator_id": self.creator_id,
            "is_done": self.is_done,
        }
        # Coordinates are absent when geocoding failed or was skipped.
        if self.latitude is not None and self.longitude is not None:
            row["latitude"] = float(self.latitude)
            row["longitude"] = float(self.longitude)
        return row


@dataclass(slots=True, frozen=True)
class PendingMutation:
    """An is_done change made offline, waiting for replay."""

    id: int
    new_value: bool

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "newValue": self.new_value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PendingMutation:
        raw_value = data.get("newValue", data.get("new_value"))
        if data.get("id") is None or raw_value is None:
            raise ValueError(f"invalid pending mutation: {dict(data)!r}")
        return cls(id=int(data["id"]), new_value=bool(raw_value))


@dataclass(slots=True)
class SyncResult:
    """
    Outcome of a user-initiated operation.

    Failures are reported here instead of raised so presentation code can show
    them inline; `bool(result)` is the success flag.
    """

    ok: bool
    outcome: SyncOutcome
    error: str | None = None
    data: Any = None
    meta: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def message(self) -> str:
        if self.outcome == SyncOutcome.QUEUED:
            return QUEUED_MESSAGE
        if not self.ok:
            return self.error or "Operation failed."
        return "OK"

    @classmethod
    def applied(cls, data: Any = None) -> SyncResult:
        return cls(ok=True, outcome=SyncOutcome.APPLIED, data=data)

    @classmethod
    def queued(cls, data: Any = None) -> SyncResult:
        return cls(ok=True, outcome=SyncOutcome.QUEUED, data=data)

    @classmethod
    def failed(cls, error: str, *, code: str = "rejected") -> SyncResult:
        return cls(ok=False, outcome=SyncOutcome.FAILED, error=error, meta={"code": code})
