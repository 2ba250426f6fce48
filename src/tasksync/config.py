# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (Supabase credentials are optional;
  without them the app runs against the in-memory demo backend).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKSYNC"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Remote backend (Supabase) ----
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    tasks_table: str

    # ---- Connectivity ----
    connectivity_check_url: str
    connectivity_interval_seconds: float
    connectivity_timeout_seconds: float

    # ---- Sync ----
    replay_policy: str
    demo_user_id: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    cache_db_path: Path

    @property
    def supabase_configured(self) -> bool:
        return bool((self.supabase_url or "").strip() and (self.supabase_key or "").strip())

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        supabase_url = _first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default=None)
        supabase_key = _first_env(_k("SUPABASE_KEY"), "SUPABASE_KEY", default=None)
        tasks_table = _env(_k("TASKS_TABLE"), "tasks") or "tasks"

        # Without an explicit check URL we ping the backend itself.
        default_check_url = (supabase_url or "").rstrip("/") + "/rest/v1/" if supabase_url else ""
        connectivity_check_url = _env(_k("CONNECTIVITY_CHECK_URL"), default_check_url)
        connectivity_interval_seconds = _env_float(_k("CONNECTIVITY_INTERVAL_SECONDS"), 5.0)
        connectivity_timeout_seconds = _env_float(_k("CONNECTIVITY_TIMEOUT_SECONDS"), 3.0)

        replay_policy = _env(_k("REPLAY_POLICY"), "retry").strip().lower() or "retry"
        demo_user_id = _env(_k("DEMO_USER_ID"), "demo-user") or "demo-user"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            tasks_table=tasks_table,
            connectivity_check_url=connectivity_check_url,
            connectivity_interval_seconds=connectivity_interval_seconds,
            connectivity_timeout_seconds=connectivity_timeout_seconds,
            replay_policy=replay_policy,
            demo_user_id=demo_user_id,
            data_dir=data_dir,
            cache_db_path=cache_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
