# tests/test_task_models.py

from __future__ import annotations

from datetime import date

import pytest

from tasksync.errors import RowShapeError
from tasksync.tasks.task_models import (
    QUEUED_MESSAGE,
    NewTask,
    PendingMutation,
    ReplayPolicy,
    SyncResult,
    Task,
    format_date_display,
    normalize_date,
)

from .fakes import task_row


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-01-01", "2024-01-01"),
        ("2024-01-01T10:00:00+00:00", "2024-01-01T10:00:00+00:00"),
        ("05/03/2024", "2024-03-05"),
        ("5.3.2024", "2024-03-05"),
        (date(2024, 3, 5), "2024-03-05"),
    ],
)
def test_normalize_date_to_iso(raw, expected) -> None:
    assert normalize_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "tomorrow", "31/02/2024", None, 20240101])
def test_normalize_date_rejects_garbage(raw) -> None:
    with pytest.raises(ValueError):
        normalize_date(raw)


def test_format_date_display_is_day_first() -> None:
    assert format_date_display("2024-03-05") == "05/03/2024"
    assert format_date_display("not a date") == "not a date"


def test_task_from_row_reads_optional_fields() -> None:
    task = Task.from_row(task_row(3, "u1", latitude="52.23", longitude=21.01, date="05/03/2024"))
    assert task.id == 3
    assert task.date == "2024-03-05"
    assert task.has_location
    assert task.latitude == pytest.approx(52.23)


def test_task_from_row_rejects_bad_shape() -> None:
    row = task_row(1, "u1")
    del row["place"]
    with pytest.raises(RowShapeError, match="place"):
        Task.from_row(row)

    with pytest.raises(RowShapeError):
        Task.from_row(task_row("abc", "u1"))  # type: ignore[arg-type]

    with pytest.raises(RowShapeError):
        Task.from_row(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_new_task_validates_and_omits_missing_coordinates() -> None:
    new_task = NewTask(name="Buy milk", date="01.01.2024", place="Store", creator_id=7, latitude=1.0)
    row = new_task.to_row()
    assert row["date"] == "2024-01-01"
    assert "latitude" not in row and "longitude" not in row
    assert "id" not in row

    with pytest.raises(ValueError, match="name"):
        NewTask(name=" ", date="2024-01-01", place="Store", creator_id=7)
    with pytest.raises(ValueError, match="creator_id"):
        NewTask.from_mapping({"name": "x", "date": "2024-01-01", "place": "p"})


def test_pending_mutation_wire_format() -> None:
    m = PendingMutation(id=42, new_value=True)
    assert m.to_dict() == {"id": 42, "newValue": True}
    assert PendingMutation.from_dict({"id": "42", "newValue": True}) == m
    with pytest.raises(ValueError):
        PendingMutation.from_dict({"id": 42})


def test_replay_policy_from_config_defaults_to_retry() -> None:
    assert ReplayPolicy.from_config(None) is ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED
    assert ReplayPolicy.from_config("DROP") is ReplayPolicy.DROP_AFTER_PASS
    assert ReplayPolicy.from_config("bogus") is ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED


def test_sync_result_truthiness_and_messages() -> None:
    assert SyncResult.applied().message == "OK"
    queued = SyncResult.queued()
    assert queued and queued.message == QUEUED_MESSAGE
    failed = SyncResult.failed("nope", code="permission")
    assert not failed
    assert failed.message == "nope"
    assert failed.meta == {"code": "permission"}
