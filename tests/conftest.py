# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.cache.kv_store import SqliteKeyValueStore
from tasksync.cache.local_cache import LocalCacheStore
from tasksync.core.state import AppState, SyncState
from tasksync.remote.client import RemoteTaskStoreClient
from tasksync.remote.memory_backend import MemoryDocumentBackend
from tasksync.sync.orchestrator import SyncConfig, SyncOrchestrator

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the sync layer.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        cache_db_path=tmp_path / "cache.sqlite3",
        cache_key="todos_offline",
        remote_base_url=None,
        remote_api_key=None,
        collection_name="todos",
        users_collection="users",
        poll_interval_seconds=0.01,
        http_timeout_seconds=None,
        auth_base_url=None,
        static_identity=None,
        use_identity_scope=False,
        enable_local_fallback=True,
        prefer_push=True,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def backend(clock: FakeClock) -> MemoryDocumentBackend:
    return MemoryDocumentBackend(clock=clock)


@pytest.fixture()
def cache(settings: SimpleNamespace) -> LocalCacheStore:
    """Real SQLite store: its persistence is part of what we test."""
    return LocalCacheStore(SqliteKeyValueStore(settings.cache_db_path), key=settings.cache_key)


@pytest.fixture()
def remote(backend: MemoryDocumentBackend) -> RemoteTaskStoreClient:
    return RemoteTaskStoreClient(backend)


@pytest.fixture()
def sync_state() -> SyncState:
    return SyncState()


@pytest.fixture()
def orchestrator(
    remote: RemoteTaskStoreClient,
    cache: LocalCacheStore,
    sync_state: SyncState,
    clock: FakeClock,
) -> SyncOrchestrator:
    return SyncOrchestrator(remote, cache, state=sync_state, config=SyncConfig(), clock=clock)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    sync_state: SyncState,
    cache: LocalCacheStore,
    remote: RemoteTaskStoreClient,
    orchestrator: SyncOrchestrator,
) -> AppState:
    return AppState(
        settings=settings,
        sync_state=sync_state,
        cache=cache,
        remote=remote,
        orchestrator=orchestrator,
    )
