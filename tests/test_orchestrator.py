# tests/test_orchestrator.py

from __future__ import annotations

import asyncio

import pytest

from tasksync.cache.local_cache import LocalCacheStore
from tasksync.core.errors import AuthUnavailable, NotFound, RemoteUnavailable, TaskValidationError
from tasksync.core.state import SyncState
from tasksync.identity.provider import IdentityProvider
from tasksync.remote.client import RemoteTaskStoreClient
from tasksync.remote.memory_backend import MemoryDocumentBackend
from tasksync.sync.orchestrator import SyncConfig, SyncOrchestrator
from tasksync.tasks.task_api import apply_add, apply_delete, apply_patch
from tasksync.tasks.task_models import F_COMPLETED, F_PRIORITY, Priority, Task

from .fakes import FakeClock, FakeIdentityBackend, FakeKeyValueStore, Recorder


def _view(tasks: list[Task]) -> list[tuple[str, str, bool, str]]:
    """Compare lists by content, ignoring clock-dependent timestamps."""
    return [(t.id, t.text, t.completed, t.priority.value) for t in tasks]


def _make(
    backend: MemoryDocumentBackend,
    *,
    config: SyncConfig | None = None,
    identity: IdentityProvider | None = None,
    clock=None,
) -> tuple[SyncOrchestrator, LocalCacheStore]:
    cache = LocalCacheStore(FakeKeyValueStore())
    orch = SyncOrchestrator(
        RemoteTaskStoreClient(backend),
        cache,
        state=SyncState(),
        identity=identity,
        config=config or SyncConfig(),
        clock=clock or FakeClock(),
    )
    return orch, cache


# ---- end-to-end scenarios ----


@pytest.mark.asyncio
async def test_add_then_list_online(orchestrator: SyncOrchestrator) -> None:
    task_id = await orchestrator.add_task("Buy milk")
    assert task_id

    tasks = await orchestrator.list_tasks()
    assert len(tasks) == 1
    assert tasks[0].id == task_id
    assert tasks[0].text == "Buy milk"
    assert tasks[0].completed is False
    assert tasks[0].priority is Priority.MEDIUM
    assert orchestrator.health_status() is True
    assert orchestrator.is_online() is True


@pytest.mark.asyncio
async def test_add_and_list_while_remote_is_unreachable(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    backend.set_available(False)

    local_id = await orchestrator.add_task("Offline task")
    assert local_id.isdigit()
    assert orchestrator.health_status() is False

    tasks = await orchestrator.list_tasks()
    assert [(t.id, t.text) for t in tasks] == [(local_id, "Offline task")]
    assert orchestrator.health_status() is False


@pytest.mark.asyncio
async def test_toggle_updates_remote_document(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    task_id = await orchestrator.add_task("Walk dog")

    assert await orchestrator.toggle_task(task_id, False) is True

    fields = backend.document_fields("todos", task_id)
    assert fields is not None
    assert fields[F_COMPLETED] is True
    tasks = await orchestrator.list_tasks()
    assert tasks[0].completed is True


@pytest.mark.asyncio
async def test_delete_missing_task_raises_not_found_and_keeps_cache(
    orchestrator: SyncOrchestrator, cache: LocalCacheStore
) -> None:
    await orchestrator.add_task("Keep me")
    before = await orchestrator.list_tasks()

    with pytest.raises(NotFound):
        await orchestrator.delete_task("does-not-exist")

    assert _view(await cache.load()) == _view(before)
    assert orchestrator.health_status() is True


# ---- properties ----


@pytest.mark.asyncio
async def test_offline_sequence_matches_pure_mutations(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend, cache: LocalCacheStore
) -> None:
    a = await orchestrator.add_task("alpha")
    b = await orchestrator.add_task("beta", Priority.LOW)
    expected = await orchestrator.list_tasks()

    backend.set_available(False)

    c = await orchestrator.add_task("gamma", "high")
    expected = apply_add(expected, Task(id=c, text="gamma", priority=Priority.HIGH))

    await orchestrator.toggle_task(a, False)
    expected = apply_patch(expected, a, {F_COMPLETED: True}, now=0.0)

    await orchestrator.set_priority(c, "low")
    expected = apply_patch(expected, c, {F_PRIORITY: "low"}, now=0.0)

    await orchestrator.delete_task(b)
    expected = apply_delete(expected, b)

    assert _view(await cache.load()) == _view(expected)
    assert _view(orchestrator.tasks) == _view(expected)
    assert _view(await orchestrator.list_tasks()) == _view(expected)


@pytest.mark.asyncio
async def test_health_flag_follows_most_recent_remote_call(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    await orchestrator.list_tasks()
    assert orchestrator.health_status() is True

    backend.set_available(False)
    await orchestrator.add_task("queued")
    assert orchestrator.health_status() is False

    backend.set_available(True)
    await orchestrator.list_tasks()
    assert orchestrator.health_status() is True


@pytest.mark.asyncio
async def test_cached_tasks_served_when_remote_fails(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    for text in ("one", "two", "three"):
        await orchestrator.add_task(text)
    online = await orchestrator.list_tasks()

    backend.set_available(False)
    offline = await orchestrator.list_tasks()

    assert len(offline) == 3
    assert _view(offline) == _view(online)


# ---- rollback / fallback switches ----


@pytest.mark.asyncio
async def test_not_found_rolls_back_tentative_change(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    task_id = await orchestrator.add_task("deleted elsewhere")
    await orchestrator.list_tasks()
    await backend.delete_document("todos", task_id)

    seen: list[list[Task]] = []
    orchestrator.on_view_change(seen.append)

    with pytest.raises(NotFound):
        await orchestrator.toggle_task(task_id, False)

    # tentative flip, then restore
    assert seen[0][0].completed is True
    assert orchestrator.tasks[0].completed is False


@pytest.mark.asyncio
async def test_fallback_disabled_propagates_and_rolls_back(backend: MemoryDocumentBackend) -> None:
    orch, cache = _make(backend, config=SyncConfig(enable_local_fallback=False))
    backend.set_available(False)

    with pytest.raises(RemoteUnavailable):
        await orch.add_task("nope")
    assert orch.tasks == []
    assert await cache.load() == []

    with pytest.raises(RemoteUnavailable):
        await orch.list_tasks()
    assert orch.health_status() is False


@pytest.mark.asyncio
async def test_invalid_input_never_reaches_the_store(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    with pytest.raises(TaskValidationError):
        await orchestrator.add_task("   ")
    with pytest.raises(TaskValidationError):
        await orchestrator.set_priority("x", "urgent")
    with pytest.raises(TaskValidationError):
        await orchestrator.delete_task("")
    assert backend.calls == 0
    assert orchestrator.tasks == []


@pytest.mark.asyncio
async def test_alarm_set_and_clear(orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend) -> None:
    task_id = await orchestrator.add_task("Dentist")
    await orchestrator.set_alarm(task_id, 1_800_000_000.0, "notif-1")

    tasks = await orchestrator.list_tasks()
    assert tasks[0].alarm_time == 1_800_000_000.0
    assert tasks[0].notification_id == "notif-1"

    await orchestrator.clear_alarm(task_id)
    tasks = await orchestrator.list_tasks()
    assert tasks[0].alarm_time is None
    assert tasks[0].notification_id is None


# ---- concurrency ----


@pytest.mark.asyncio
async def test_local_ids_are_unique_even_with_a_frozen_clock(backend: MemoryDocumentBackend) -> None:
    orch, cache = _make(backend, clock=lambda: 5.0)
    backend.set_available(False)

    ids = await asyncio.gather(*(orch.add_task(f"t{i}") for i in range(5)))

    assert len(set(ids)) == 5
    assert sorted(ids, key=int) == ["5000", "5001", "5002", "5003", "5004"]
    # Concurrent offline writes must not lose each other in the cache.
    assert sorted(t.id for t in await cache.load()) == sorted(ids)


@pytest.mark.asyncio
async def test_concurrent_patches_on_one_task_are_serialized(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend
) -> None:
    task_id = await orchestrator.add_task("busy")
    await asyncio.gather(
        orchestrator.set_priority(task_id, "high"),
        orchestrator.toggle_task(task_id, False),
    )
    fields = backend.document_fields("todos", task_id)
    assert fields is not None
    assert fields[F_PRIORITY] == "high"
    assert fields[F_COMPLETED] is True


# ---- identity scope ----


@pytest.mark.asyncio
async def test_identity_scope_writes_under_user_collection(backend: MemoryDocumentBackend) -> None:
    identity = IdentityProvider(FakeIdentityBackend("u1"))
    orch, _ = _make(backend, config=SyncConfig(use_identity_scope=True), identity=identity)

    assert await orch.initialize() is True
    task_id = await orch.add_task("mine")

    assert backend.document_fields("users/u1/todos", task_id) is not None
    assert backend.document_fields("todos", task_id) is None
    assert orch.state.scope is not None
    assert orch.state.scope.collection_path == "users/u1/todos"


@pytest.mark.asyncio
async def test_identity_failure_is_handled_like_an_outage(backend: MemoryDocumentBackend) -> None:
    identity_backend = FakeIdentityBackend("u1", fail_times=2)
    orch, cache = _make(
        backend, config=SyncConfig(use_identity_scope=True), identity=IdentityProvider(identity_backend)
    )

    assert await orch.initialize() is False
    assert orch.health_status() is False

    local_id = await orch.add_task("while signed out")
    assert [t.id for t in await cache.load()] == [local_id]

    # Third attempt succeeds; the next call goes remote again.
    await orch.list_tasks()
    assert orch.health_status() is True
    assert identity_backend.calls == 3


def test_identity_scope_requires_a_provider(backend: MemoryDocumentBackend) -> None:
    with pytest.raises(ValueError):
        _make(backend, config=SyncConfig(use_identity_scope=True))


@pytest.mark.asyncio
async def test_reset_forgets_scope_view_and_optionally_cache(backend: MemoryDocumentBackend) -> None:
    identity_backend = FakeIdentityBackend("u1")
    orch, cache = _make(
        backend, config=SyncConfig(use_identity_scope=True), identity=IdentityProvider(identity_backend)
    )
    await orch.add_task("before reset")
    await orch.list_tasks()

    await orch.reset(clear_cache=True)

    assert orch.state.scope is None
    assert orch.tasks == []
    assert await cache.load() == []
    await orch.initialize()
    assert identity_backend.calls == 2


# ---- push model ----


@pytest.mark.asyncio
async def test_subscribe_refreshes_cache_and_degrades_to_it(
    orchestrator: SyncOrchestrator, backend: MemoryDocumentBackend, cache: LocalCacheStore
) -> None:
    await orchestrator.add_task("seed")
    rec = Recorder()

    unsubscribe = await orchestrator.subscribe(rec)
    assert rec.texts() == ["seed"]

    await orchestrator.add_task("pushed")
    await rec.wait_for(2)
    assert rec.texts() == ["pushed", "seed"]
    assert [t.text for t in await cache.load()] == ["pushed", "seed"]

    backend.set_available(False)
    await rec.wait_for(3)
    assert rec.texts() == ["pushed", "seed"]
    assert orchestrator.health_status() is False

    unsubscribe()
    unsubscribe()


@pytest.mark.asyncio
async def test_subscribe_when_scope_cannot_be_resolved_serves_cache(backend: MemoryDocumentBackend) -> None:
    orch, cache = _make(
        backend,
        config=SyncConfig(use_identity_scope=True),
        identity=IdentityProvider(FakeIdentityBackend(fail_times=99)),
    )
    await cache.save([Task(id="c1", text="cached")])
    rec = Recorder()

    unsubscribe = await orch.subscribe(rec)

    assert rec.texts() == ["cached"]
    assert orch.health_status() is False
    unsubscribe()


@pytest.mark.asyncio
async def test_open_task_feed_without_push_polls_once(backend: MemoryDocumentBackend) -> None:
    orch, _ = _make(backend, config=SyncConfig(prefer_push=False))
    await orch.add_task("polled")
    rec = Recorder()

    unsubscribe = await orch.open_task_feed(rec)

    assert rec.texts() == ["polled"]
    assert backend.watcher_count("todos") == 0
    unsubscribe()


@pytest.mark.asyncio
async def test_aclose_closes_identity_backend(backend: MemoryDocumentBackend) -> None:
    identity_backend = FakeIdentityBackend()
    orch, _ = _make(backend, config=SyncConfig(use_identity_scope=True), identity=IdentityProvider(identity_backend))
    await orch.aclose()
    assert identity_backend.closed is True


def test_auth_unavailable_is_a_remote_unavailable() -> None:
    assert issubclass(AuthUnavailable, RemoteUnavailable)
    assert AuthUnavailable().code == "unauthenticated"
