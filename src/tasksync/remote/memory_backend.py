# src/tasksync/remote/memory_backend.py

from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

from ..core.errors import NotFound, RemoteUnavailable
from ..core.ports import SERVER_TIMESTAMP, Document

logger = logging.getLogger(__name__)


class MemoryDocumentBackend:
    """
    In-process document backend used for demos when no remote store is configured.

    Behavior:
    - documents live in memory only (the local cache keeps the last snapshot on disk)
    - SERVER_TIMESTAMP field values are replaced by `clock()`
    - watch() is a real push channel: every mutation wakes all watchers of the collection
    - set_available(False) simulates an outage: calls raise RemoteUnavailable and
      open watch channels fail
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._insert_seq: dict[str, int] = {}
        self._seq = itertools.count()
        self._watchers: dict[str, list[asyncio.Queue[Any]]] = {}
        self._available = True
        self._outage_code = "unavailable"
        self.calls = 0

    # ---- availability switch ----

    @property
    def available(self) -> bool:
        return self._available

    def set_available(self, available: bool, *, code: str = "unavailable") -> None:
        self._available = available
        self._outage_code = code
        if not available:
            for queues in self._watchers.values():
                for q in queues:
                    q.put_nowait(RemoteUnavailable("backend went away", code=code))
        logger.info("MemoryDocumentBackend available=%s", available)

    def _check_available(self) -> None:
        self.calls += 1
        if not self._available:
            raise RemoteUnavailable("backend unavailable", code=self._outage_code)

    # ---- helpers ----

    def _resolve(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}

    def _snapshot(self, collection: str, order_by: str, descending: bool) -> list[Document]:
        docs = self._collections.get(collection, {})

        def sort_key(doc_id: str) -> tuple[float, int]:
            raw = docs[doc_id].get(order_by)
            value = float(raw) if isinstance(raw, (int, float)) else 0.0
            return value, self._insert_seq[doc_id]

        ordered = sorted(docs, key=sort_key, reverse=descending)
        return [Document(id=doc_id, fields=dict(docs[doc_id])) for doc_id in ordered]

    def _notify(self, collection: str) -> None:
        for q in self._watchers.get(collection, []):
            q.put_nowait(None)

    # ---- DocumentBackend ----

    async def add_document(self, collection: str, fields: Mapping[str, Any]) -> str:
        self._check_available()
        doc_id = uuid.uuid4().hex[:20]
        self._collections.setdefault(collection, {})[doc_id] = self._resolve(fields)
        self._insert_seq[doc_id] = next(self._seq)
        self._notify(collection)
        return doc_id

    async def list_documents(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
    ) -> list[Document]:
        self._check_available()
        return self._snapshot(collection, order_by, descending)

    async def update_document(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self._check_available()
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise NotFound(doc_id)
        docs[doc_id].update(self._resolve(fields))
        self._notify(collection)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        self._check_available()
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise NotFound(doc_id)
        del docs[doc_id]
        self._insert_seq.pop(doc_id, None)
        self._notify(collection)

    async def watch(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
    ) -> AsyncIterator[list[Document]]:
        self._check_available()
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._watchers.setdefault(collection, []).append(queue)
        try:
            yield self._snapshot(collection, order_by, descending)
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                # Coalesce bursts of changes into one snapshot.
                while not queue.empty():
                    extra = queue.get_nowait()
                    if isinstance(extra, BaseException):
                        raise extra
                yield self._snapshot(collection, order_by, descending)
        finally:
            queues = self._watchers.get(collection, [])
            if queue in queues:
                queues.remove(queue)

    async def aclose(self) -> None:
        return

    # ---- test/demo helpers ----

    def document_fields(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return dict(doc) if doc is not None else None

    def watcher_count(self, collection: str) -> int:
        return len(self._watchers.get(collection, []))
