# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- An empty remote URL is valid: the app then runs against the in-memory demo backend.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKSYNC"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_optional(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float | None) -> float | None:
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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    cache_db_path: Path
    cache_key: str

    # ---- Remote document store ----
    remote_base_url: str | None
    remote_api_key: str | None
    collection_name: str
    users_collection: str
    poll_interval_seconds: float
    # None -> the HTTP transport's own default timeout.
    http_timeout_seconds: float | None

    # ---- Identity ----
    auth_base_url: str | None
    static_identity: str | None

    # ---- Sync behavior ----
    use_identity_scope: bool
    enable_local_fallback: bool
    prefer_push: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")
        cache_key = _env(_k("CACHE_KEY"), "todos_offline") or "todos_offline"

        remote_base_url = _env_optional(_k("REMOTE_BASE_URL"))
        remote_api_key = _env_optional(_k("REMOTE_API_KEY"))
        collection_name = _env(_k("COLLECTION_NAME"), "todos") or "todos"
        users_collection = _env(_k("USERS_COLLECTION"), "users") or "users"
        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 5.0) or 5.0
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), None)

        auth_base_url = _env_optional(_k("AUTH_BASE_URL"))
        static_identity = _env_optional(_k("STATIC_IDENTITY"))

        use_identity_scope = _env_bool(_k("USE_IDENTITY_SCOPE"), False)
        enable_local_fallback = _env_bool(_k("ENABLE_LOCAL_FALLBACK"), True)
        prefer_push = _env_bool(_k("PREFER_PUSH"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            cache_db_path=cache_db_path,
            cache_key=cache_key,
            remote_base_url=remote_base_url,
            remote_api_key=remote_api_key,
            collection_name=collection_name,
            users_collection=users_collection,
            poll_interval_seconds=poll_interval_seconds,
            http_timeout_seconds=http_timeout_seconds,
            auth_base_url=auth_base_url,
            static_identity=static_identity,
            use_identity_scope=use_identity_scope,
            enable_local_fallback=enable_local_fallback,
            prefer_push=prefer_push,
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env for secrets; use config_local.py only for safe overrides.
try:
    import config_local as _config_local  # type: ignore

    # Simple overrides for selected switches. Keep it explicit.
    for _name in ("use_identity_scope", "enable_local_fallback", "prefer_push"):
        if hasattr(_config_local, _name.upper()):
            object.__setattr__(SETTINGS, _name, bool(getattr(_config_local, _name.upper())))  # type: ignore[misc]
except Exception:
    pass


def get_settings() -> Settings:
    return SETTINGS
