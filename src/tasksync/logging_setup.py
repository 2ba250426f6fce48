# src/tasksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Loggers whose records form the offline-sync journal (queue, replay, engine, session).
SYNC_LOGGERS = ("tasksync.tasks.", "tasksync.auth.")

# Polled every few seconds; only failures are worth a console line.
_POLLING_LOGGERS = ("tasksync.net.",)

# Supabase stack: per-request INFO lines and websocket heartbeats.
_CHATTY_LIBRARIES = ("httpx", "httpcore", "realtime", "postgrest", "gotrue", "supabase", "websockets")


def _is_under(name: str, prefixes: tuple[str, ...]) -> bool:
    return any(name == p.rstrip(".") or name.startswith(p if p.endswith(".") else p + ".") for p in prefixes)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable: the prompt shares stderr with background sync.

    The connectivity poller only reports WARNING+, Python warnings and
    third-party libraries only ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("tasksync."):
            if _is_under(name, _POLLING_LOGGERS):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


class _SyncJournalFilter(logging.Filter):
    """Pass only engine/queue/session records (what happened to user changes)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return _is_under(record.name, SYNC_LOGGERS)


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install three handlers on the root logger:
    - console (filtered, for the interactive prompt)
    - tasksync.log with everything at file_level
    - sync.log, INFO+ from the sync core only: enqueue, replay outcomes,
      dropped or superseded mutations, user switches

    Call once, before the first log line. Returns the log directory.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    full = logging.FileHandler(str(log_dir / "tasksync.log"), encoding="utf-8")
    full.setLevel(file_level)
    full.setFormatter(fmt)
    root.addHandler(full)

    journal = logging.FileHandler(str(log_dir / "sync.log"), encoding="utf-8")
    journal.setLevel(logging.INFO)
    journal.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    journal.addFilter(_SyncJournalFilter())
    root.addHandler(journal)

    logging.captureWarnings(True)

    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_dir
