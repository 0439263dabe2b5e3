# src/tasksync/core/subscription.py

"""
Subscription primitives.

- Unsubscribe: idempotent close handle for a standing change channel.
- deliver(): invoke a sync or async snapshot callback, logging (not raising) its failures.
- TaskFeed: the channel as a lazy, non-restartable async iterator of task-list snapshots.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list["Task"]], Any]
SubscribeFn = Callable[[SnapshotCallback], Awaitable["Unsubscribe"]]


class Unsubscribe:
    """
    Close handle returned by subscribe().

    Calling it more than once is a no-op. A handle created without a task is
    already inert (used when the channel could not be opened at all).
    """

    def __init__(self, task: asyncio.Task[None] | None = None) -> None:
        self._task = task
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, task: asyncio.Task[None]) -> None:
        self._task = task
        if self._closed:
            task.cancel()

    def __call__(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


async def deliver(callback: SnapshotCallback, tasks: list[Task]) -> None:
    try:
        result = callback(tasks)
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Snapshot callback failed")


_CLOSED: Any = object()


class TaskFeed:
    """
    Async iterator over task-list snapshots.

    - lazy: the underlying subscription is opened on first iteration (or `async with`)
    - infinite: iteration only ends when the feed is closed
    - non-restartable: once closed, iteration stops and cannot be resumed

    Usage:
        async with orchestrator.watch_tasks() as feed:
            async for tasks in feed:
                ...
    """

    def __init__(self, subscribe: SubscribeFn) -> None:
        self._subscribe = subscribe
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._handle: Unsubscribe | None = None
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def _ensure_started(self) -> None:
        if self._started:
            return
        self._started = True
        self._handle = await self._subscribe(self._queue.put_nowait)
        if self._closed:
            self._handle()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._handle is not None:
            self._handle()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> TaskFeed:
        return self

    async def __anext__(self) -> list[Task]:
        if self._closed:
            raise StopAsyncIteration
        await self._ensure_started()
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> TaskFeed:
        if self._closed:
            raise RuntimeError("task feed is closed and cannot be restarted")
        await self._ensure_started()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
