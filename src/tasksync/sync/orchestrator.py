# src/tasksync/sync/orchestrator.py

"""
Sync orchestrator: the façade the UI calls.

Every mutating operation:
1. applies a tentative change to the in-memory view (listeners see it at once),
2. attempts the remote operation,
3. on success marks the state online and reconciles the view,
4. on RemoteUnavailable (AuthUnavailable included) marks the state offline and
   applies the same change to the cached snapshot (read-modify-write),
5. on NotFound rolls the tentative change back and propagates.

Reads try the remote first and fall back to the cache. Every successful remote
list / subscription delivery refreshes the cache.

There is no background reconnection: the next user-initiated call simply tries
the remote path again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..cache.local_cache import LocalCacheStore
from ..core.errors import NotFound, RemoteUnavailable, TaskValidationError
from ..core.state import Scope, SyncState
from ..core.subscription import SnapshotCallback, TaskFeed, Unsubscribe, deliver
from ..identity.provider import IdentityProvider
from ..remote.client import RemoteTaskStoreClient
from ..tasks.task_api import (
    apply_add,
    apply_delete,
    apply_patch,
    copy_tasks,
    find_task,
    index_of,
    replace_task_id,
)
from ..tasks.task_models import (
    F_ALARM_TIME,
    F_COMPLETED,
    F_NOTIFICATION_ID,
    F_PRIORITY,
    Priority,
    Task,
    TaskDraft,
    validate_patch,
)

logger = logging.getLogger(__name__)

ViewListener = Callable[[list[Task]], Any]


@dataclass(frozen=True, slots=True)
class SyncConfig:
    use_identity_scope: bool = False
    enable_local_fallback: bool = True
    prefer_push: bool = True
    collection_name: str = "todos"
    users_collection: str = "users"

    @classmethod
    def from_settings(cls, settings: Any) -> SyncConfig:
        return cls(
            use_identity_scope=bool(getattr(settings, "use_identity_scope", False)),
            enable_local_fallback=bool(getattr(settings, "enable_local_fallback", True)),
            prefer_push=bool(getattr(settings, "prefer_push", True)),
            collection_name=str(getattr(settings, "collection_name", "todos")),
            users_collection=str(getattr(settings, "users_collection", "users")),
        )


class SyncOrchestrator:
    def __init__(
        self,
        remote: RemoteTaskStoreClient,
        cache: LocalCacheStore,
        *,
        state: SyncState,
        identity: IdentityProvider | None = None,
        config: SyncConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or SyncConfig()
        if self._config.use_identity_scope and identity is None:
            raise ValueError("use_identity_scope requires an IdentityProvider")

        self._remote = remote
        self._cache = cache
        self._state = state
        self._identity = identity
        self._clock = clock

        self._view: list[Task] = []
        self._view_listeners: list[ViewListener] = []
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._cache_lock = asyncio.Lock()
        self._last_local_ms = 0

    # ---- state / view ----

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def state(self) -> SyncState:
        return self._state

    def health_status(self) -> bool:
        """Single source of truth for "are we online" (last remote attempt outcome)."""
        return self._state.online

    is_online = health_status

    @property
    def tasks(self) -> list[Task]:
        """Current in-memory view, tentative changes included."""
        return copy_tasks(self._view)

    def on_view_change(self, listener: ViewListener) -> Callable[[], None]:
        self._view_listeners.append(listener)

        def remove() -> None:
            if listener in self._view_listeners:
                self._view_listeners.remove(listener)

        return remove

    def _set_view(self, tasks: list[Task]) -> None:
        self._view = copy_tasks(tasks)
        for listener in list(self._view_listeners):
            try:
                listener(copy_tasks(self._view))
            except Exception:
                logger.exception("View listener failed")

    def _restore(self, previous: Task, index: int) -> None:
        view = copy_tasks(self._view)
        pos = index_of(view, previous.id)
        if pos >= 0:
            view[pos] = previous.copy()
        else:
            view.insert(min(max(index, 0), len(view)), previous.copy())
        self._set_view(view)

    # ---- helpers ----

    def _lock_for(self, task_id: str) -> asyncio.Lock:
        return self._task_locks.setdefault(task_id, asyncio.Lock())

    def _next_local_id(self) -> str:
        ms = int(self._clock() * 1000)
        if ms <= self._last_local_ms:
            ms = self._last_local_ms + 1
        self._last_local_ms = ms
        return str(ms)

    def _mark_online(self) -> None:
        if not self._state.online:
            logger.info("Back online")
        self._state.online = True

    def _mark_offline(self, op: str, exc: RemoteUnavailable) -> None:
        if self._state.online:
            logger.warning("%s: remote unavailable (%s: %s); using local cache", op, exc.code, exc)
        else:
            logger.debug("%s: still offline (%s)", op, exc.code)
        self._state.online = False

    async def _ensure_scope(self) -> Scope:
        if self._state.scope is not None:
            return self._state.scope

        identity: str | None = None
        if self._config.use_identity_scope:
            assert self._identity is not None
            identity = await self._identity.resolve_scope()

        scope = Scope(
            identity=identity,
            collection=self._config.collection_name,
            users_collection=self._config.users_collection,
        )
        self._remote.bind(scope)
        self._state.scope = scope
        return scope

    async def _update_cache(self, op: str, mutate: Callable[[list[Task]], list[Task]]) -> None:
        async with self._cache_lock:
            cached = await self._cache.load()
            await self._cache.save(mutate(cached))
        logger.info("%s: saved offline", op)

    # ---- lifecycle ----

    async def initialize(self) -> bool:
        """Resolve the remote scope eagerly. False means we start offline."""
        try:
            await self._ensure_scope()
        except RemoteUnavailable as e:
            self._mark_offline("initialize", e)
            return False
        return True

    async def reset(self, *, clear_cache: bool = False) -> None:
        """Logout / re-init: forget scope, identity and view."""
        self._state.reset()
        self._remote.unbind()
        if self._identity is not None:
            self._identity.reset()
        self._task_locks.clear()
        self._set_view([])
        if clear_cache:
            await self._cache.clear()
        logger.info("Sync state reset (clear_cache=%s)", clear_cache)

    async def aclose(self) -> None:
        """Release transports (HTTP clients). Open subscriptions are owned by their callers."""
        await self._remote.aclose()
        if self._identity is not None:
            await self._identity.aclose()

    # ---- reads ----

    async def list_tasks(self) -> list[Task]:
        try:
            await self._ensure_scope()
            tasks = await self._remote.list()
        except RemoteUnavailable as e:
            self._mark_offline("list_tasks", e)
            if not self._config.enable_local_fallback:
                raise
            tasks = await self._cache.load()
        else:
            self._mark_online()
            await self._cache.save(tasks)

        self._set_view(tasks)
        return copy_tasks(tasks)

    async def probe(self) -> list[Task]:
        """Remote list without fallback (diagnostics); still updates flag and cache."""
        try:
            await self._ensure_scope()
            tasks = await self._remote.list()
        except RemoteUnavailable as e:
            self._mark_offline("probe", e)
            raise
        self._mark_online()
        await self._cache.save(tasks)
        return tasks

    async def subscribe(self, on_change: SnapshotCallback) -> Unsubscribe:
        """
        Push model: `on_change` gets the current list now and a fresh list on every
        remote change. If the channel cannot be opened or breaks, the cached list is
        delivered instead and the state goes offline.
        """
        fallback = self._config.enable_local_fallback

        try:
            await self._ensure_scope()
        except RemoteUnavailable as e:
            self._mark_offline("subscribe", e)
            if not fallback:
                raise
            tasks = await self._cache.load()
            self._set_view(tasks)
            await deliver(on_change, tasks)
            return Unsubscribe()

        async def relay(tasks: list[Task]) -> None:
            if self._remote.health_status():
                self._mark_online()
                await self._cache.save(tasks)
            else:
                self._state.online = False
                logger.warning("Subscription degraded; serving %s", "cache" if fallback else "last known list")
                if fallback:
                    tasks = await self._cache.load()
            self._set_view(tasks)
            await deliver(on_change, tasks)

        return await self._remote.subscribe(relay)

    def watch_tasks(self) -> TaskFeed:
        """Subscription as an async iterator of snapshots (see TaskFeed)."""
        return TaskFeed(self.subscribe)

    async def open_task_feed(self, on_change: SnapshotCallback) -> Unsubscribe:
        """Push when configured, otherwise one manual poll (the UI refreshes explicitly)."""
        if self._config.prefer_push:
            return await self.subscribe(on_change)
        tasks = await self.list_tasks()
        await deliver(on_change, tasks)
        return Unsubscribe()

    # ---- writes ----

    async def add_task(
        self,
        text: str,
        priority: Priority | str = Priority.MEDIUM,
        *,
        alarm_time: float | None = None,
        notification_id: str | None = None,
    ) -> str:
        draft = TaskDraft(
            text=text,
            priority=Priority.parse(priority),
            alarm_time=alarm_time,
            notification_id=notification_id,
        ).validated()

        local_id = self._next_local_id()
        tentative = draft.to_task(local_id, self._clock())
        self._set_view(apply_add(self._view, tentative))

        try:
            await self._ensure_scope()
            remote_id = await self._remote.create(draft)
        except RemoteUnavailable as e:
            self._mark_offline("add_task", e)
            if not self._config.enable_local_fallback:
                self._set_view(apply_delete(self._view, local_id))
                raise
            await self._update_cache("add_task", lambda cached: apply_add(cached, tentative))
            return local_id

        self._mark_online()
        self._set_view(replace_task_id(self._view, local_id, remote_id))
        return remote_id

    async def toggle_task(self, task_id: str, current: bool) -> bool:
        """
        Flip completion based on the caller's current value (no re-read; last write wins).
        Returns the new value.
        """
        new_value = not bool(current)
        await self._patch("toggle_task", task_id, {F_COMPLETED: new_value})
        return new_value

    async def set_priority(self, task_id: str, priority: Priority | str) -> None:
        await self._patch("set_priority", task_id, {F_PRIORITY: Priority.parse(priority).value})

    async def set_alarm(
        self,
        task_id: str,
        alarm_time: float | datetime,
        notification_id: str | None,
    ) -> None:
        """Store the alarm time and the scheduler's opaque notification id."""
        ts = alarm_time.timestamp() if isinstance(alarm_time, datetime) else alarm_time
        await self._patch("set_alarm", task_id, {F_ALARM_TIME: ts, F_NOTIFICATION_ID: notification_id})

    async def clear_alarm(self, task_id: str) -> None:
        await self._patch("clear_alarm", task_id, {F_ALARM_TIME: None, F_NOTIFICATION_ID: None})

    async def _patch(self, op: str, task_id: str, patch: Mapping[str, Any]) -> None:
        if not task_id:
            raise TaskValidationError("task id is required")
        fields = validate_patch(patch)

        async with self._lock_for(task_id):
            index = index_of(self._view, task_id)
            previous = self._view[index].copy() if index >= 0 else None
            self._set_view(apply_patch(self._view, task_id, fields, self._clock()))

            try:
                await self._ensure_scope()
                await self._remote.update(task_id, fields)
            except NotFound:
                if previous is not None:
                    self._restore(previous, index)
                raise
            except RemoteUnavailable as e:
                self._mark_offline(op, e)
                if not self._config.enable_local_fallback:
                    if previous is not None:
                        self._restore(previous, index)
                    raise
                async with self._cache_lock:
                    cached = await self._cache.load()
                    if find_task(cached, task_id) is None:
                        logger.warning("%s: task %s is not in the local cache; change kept in memory only", op, task_id)
                        return
                    await self._cache.save(apply_patch(cached, task_id, fields, self._clock()))
                logger.info("%s: saved offline", op)
                return

            self._mark_online()

    async def delete_task(self, task_id: str) -> None:
        if not task_id:
            raise TaskValidationError("task id is required")

        async with self._lock_for(task_id):
            index = index_of(self._view, task_id)
            previous = self._view[index].copy() if index >= 0 else None
            self._set_view(apply_delete(self._view, task_id))

            try:
                await self._ensure_scope()
                await self._remote.delete(task_id)
            except NotFound:
                if previous is not None:
                    self._restore(previous, index)
                raise
            except RemoteUnavailable as e:
                self._mark_offline("delete_task", e)
                if not self._config.enable_local_fallback:
                    if previous is not None:
                        self._restore(previous, index)
                    raise
                await self._update_cache("delete_task", lambda cached: apply_delete(cached, task_id))
                return

            self._mark_online()
