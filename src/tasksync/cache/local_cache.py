# src/tasksync/cache/local_cache.py

"""
Local cache of the last-known-good task list.

Best-effort by contract: save() never raises, load() returns [] when the blob is
absent, corrupt or unreadable. The blob is a JSON array of task records.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence

from ..core.errors import CacheCorrupt
from ..core.ports import KeyValueStore
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "todos_offline"


def encode_tasks(tasks: Sequence[Task]) -> str:
    return json.dumps([t.to_record() for t in tasks], ensure_ascii=False)


def decode_tasks(blob: str) -> list[Task]:
    try:
        data = json.loads(blob)
    except ValueError as e:
        raise CacheCorrupt(f"cache blob is not JSON: {e}") from e

    if not isinstance(data, list):
        raise CacheCorrupt(f"cache blob is {type(data).__name__}, expected list")

    out: list[Task] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise CacheCorrupt(f"cache item #{i} is not an object")
        try:
            out.append(Task.from_record(item))
        except (TypeError, ValueError) as e:
            raise CacheCorrupt(f"cache item #{i} is invalid: {e}") from e
    return out


class LocalCacheStore:
    def __init__(self, kv: KeyValueStore, *, key: str = DEFAULT_CACHE_KEY) -> None:
        self._kv = kv
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def save(self, tasks: Sequence[Task]) -> None:
        try:
            blob = encode_tasks(tasks)
            await asyncio.to_thread(self._kv.set, self._key, blob)
            logger.debug("Cache saved: %d tasks", len(tasks))
        except Exception:
            logger.exception("Failed to save task cache key=%s", self._key)

    async def load(self) -> list[Task]:
        try:
            blob = await asyncio.to_thread(self._kv.get, self._key)
        except Exception:
            logger.exception("Failed to read task cache key=%s", self._key)
            return []

        if blob is None:
            return []

        try:
            tasks = decode_tasks(blob)
        except CacheCorrupt as e:
            logger.warning("Ignoring corrupt task cache key=%s: %s", self._key, e)
            return []

        logger.debug("Cache loaded: %d tasks", len(tasks))
        return tasks

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._kv.delete, self._key)
        except Exception:
            logger.exception("Failed to clear task cache key=%s", self._key)
