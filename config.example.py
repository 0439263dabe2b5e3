# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory, also holds tasksync.log (default: .local/tasksync).",
    "TASKSYNC_CACHE_DB_PATH": "Offline cache SQLite path (default: <data_dir>/cache.sqlite3).",
    "TASKSYNC_CACHE_KEY": "Key under which the cached snapshot is stored (default: todos_offline).",
    # Remote document store
    "TASKSYNC_REMOTE_BASE_URL": "Document store base URL (empty => in-memory demo backend).",
    "TASKSYNC_REMOTE_API_KEY": "Optional API key sent as the `key` query parameter.",
    "TASKSYNC_COLLECTION_NAME": "Task collection name (default: todos).",
    "TASKSYNC_USERS_COLLECTION": "Parent collection for per-identity scopes (default: users).",
    "TASKSYNC_POLL_INTERVAL_SECONDS": "Live-query polling interval for the HTTP backend (default: 5).",
    "TASKSYNC_HTTP_TIMEOUT_SECONDS": "HTTP timeout (empty => the HTTP client's default).",
    # Identity
    "TASKSYNC_AUTH_BASE_URL": "Anonymous sign-in endpoint base URL (optional).",
    "TASKSYNC_STATIC_IDENTITY": "Fixed identity used when no auth URL is configured (optional).",
    # Sync behavior
    "TASKSYNC_USE_IDENTITY_SCOPE": "Store tasks under users/<identity>/todos (true/false, default: false).",
    "TASKSYNC_ENABLE_LOCAL_FALLBACK": "Serve/keep changes in the local cache when offline (default: true).",
    "TASKSYNC_PREFER_PUSH": "Subscribe to live updates instead of manual refresh (default: true).",
}
