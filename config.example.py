# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored); see .env.example.

Without TASKSYNC_SUPABASE_URL / TASKSYNC_SUPABASE_KEY the app runs against the
in-memory demo backend and connectivity is switched by hand (/net on|off).
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKSYNC_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Remote backend (Supabase)
    "TASKSYNC_SUPABASE_URL": "Supabase project URL (plain SUPABASE_URL is accepted too).",
    "TASKSYNC_SUPABASE_KEY": "Supabase anon key (plain SUPABASE_KEY is accepted too).",
    "TASKSYNC_TASKS_TABLE": "Remote table holding tasks (default: tasks).",
    # Connectivity
    "TASKSYNC_CONNECTIVITY_CHECK_URL": "URL checked with HEAD (default: <supabase_url>/rest/v1/).",
    "TASKSYNC_CONNECTIVITY_INTERVAL_SECONDS": "Seconds between checks (default: 5).",
    "TASKSYNC_CONNECTIVITY_TIMEOUT_SECONDS": "Check timeout in seconds (default: 3).",
    # Sync
    "TASKSYNC_REPLAY_POLICY": "retry (keep failed offline changes) or drop (clear after one pass).",
    "TASKSYNC_DEMO_USER_ID": "User id used by the in-memory demo backend (default: demo-user).",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory (default: .local/tasksync).",
    "TASKSYNC_CACHE_DB_PATH": "SQLite cache path (default: <data_dir>/cache.sqlite3).",
}
