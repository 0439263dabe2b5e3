# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (cache, remote backend, identity) into the orchestrator,
- builds AppState for the console front-end.
"""

from __future__ import annotations

import logging
import uuid

from ..cache.kv_store import SqliteKeyValueStore
from ..cache.local_cache import LocalCacheStore
from ..config import get_settings
from ..core.ports import DocumentBackend, IdentityBackend
from ..core.state import AppState, SyncState
from ..identity.provider import HttpIdentityBackend, IdentityProvider, StaticIdentityBackend
from ..remote.client import RemoteTaskStoreClient
from ..remote.http_backend import HttpDocumentBackend
from ..remote.memory_backend import MemoryDocumentBackend
from ..sync.orchestrator import SyncConfig, SyncOrchestrator

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_backend(settings) -> DocumentBackend:
    base_url = getattr(settings, "remote_base_url", None)
    if base_url:
        return HttpDocumentBackend(
            base_url,
            api_key=getattr(settings, "remote_api_key", None),
            poll_interval_seconds=getattr(settings, "poll_interval_seconds", 5.0),
            timeout_seconds=getattr(settings, "http_timeout_seconds", None),
        )
    # Fallback for demos / local runs without external services.
    logger.warning("No remote store configured; using the in-memory demo backend.")
    return MemoryDocumentBackend()


def build_identity(settings) -> IdentityProvider | None:
    if not getattr(settings, "use_identity_scope", False):
        return None

    backend: IdentityBackend
    auth_url = getattr(settings, "auth_base_url", None)
    static_identity = getattr(settings, "static_identity", None)
    if auth_url:
        backend = HttpIdentityBackend(
            auth_url,
            api_key=getattr(settings, "remote_api_key", None),
            timeout_seconds=getattr(settings, "http_timeout_seconds", None),
        )
    elif static_identity:
        backend = StaticIdentityBackend(static_identity)
    else:
        anonymous = uuid.uuid4().hex
        logger.info("No identity backend configured; using anonymous session id %s", anonymous)
        backend = StaticIdentityBackend(anonymous)
    return IdentityProvider(backend)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    sync_state = SyncState()
    cache = LocalCacheStore(
        SqliteKeyValueStore(settings.cache_db_path),
        key=getattr(settings, "cache_key", "todos_offline"),
    )
    remote = RemoteTaskStoreClient(build_backend(settings))
    orchestrator = SyncOrchestrator(
        remote,
        cache,
        state=sync_state,
        identity=build_identity(settings),
        config=SyncConfig.from_settings(settings),
    )

    return AppState(
        settings=settings,
        sync_state=sync_state,
        cache=cache,
        remote=remote,
        orchestrator=orchestrator,
    )


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.orchestrator.aclose()
    except Exception:
        logger.debug("Orchestrator close failed.", exc_info=True)
