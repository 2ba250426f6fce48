# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from tasksync.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_quiets_poller_and_libraries() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("tasksync.tasks.sync_engine", logging.INFO))
    assert not f.filter(_record("tasksync.net.connectivity", logging.INFO))
    assert f.filter(_record("tasksync.net.connectivity", logging.WARNING))
    assert not f.filter(_record("httpx", logging.WARNING))
    assert f.filter(_record("realtime", logging.ERROR))


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    saved_level = root.level
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler) or any(isinstance(f, _ConsoleNoiseFilter) for f in h.filters):
            root.removeHandler(h)
            h.close()
    root.setLevel(saved_level)
    logging.captureWarnings(False)


def test_sync_journal_holds_only_sync_core_records(tmp_path, restore_root_logging) -> None:
    log_dir = setup_logging(log_dir=tmp_path, console_level=logging.CRITICAL)

    logging.getLogger("tasksync.tasks.offline_queue").info("Enqueued mutation id=1")
    logging.getLogger("tasksync.auth.session").info("Session active user=u1")
    logging.getLogger("tasksync.net.connectivity").info("Connectivity changed online=False")
    logging.getLogger("tasksync.tasks.sync_engine").debug("fetch_tasks user=u1 count=0")
    for h in logging.getLogger().handlers:
        h.flush()

    journal = (log_dir / "sync.log").read_text(encoding="utf-8")
    full = (log_dir / "tasksync.log").read_text(encoding="utf-8")

    assert "Enqueued mutation id=1" in journal
    assert "Session active user=u1" in journal
    assert "Connectivity changed" not in journal
    assert "fetch_tasks" not in journal
    assert "Connectivity changed" in full
    assert "fetch_tasks" in full
