# src/tasksync/remote/client.py

"""
Remote task store client.

Wraps a DocumentBackend scoped to one namespace (global or per-identity), translating
documents to/from Task and keeping a health flag:

- success                      -> healthy
- network-class failure        -> unhealthy (raised as RemoteUnavailable)
- NotFound / validation errors -> health unchanged

Any unexpected backend exception is treated as network-class and re-raised as
RemoteUnavailable, so callers only ever see the documented taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from ..core.errors import AuthUnavailable, NotFound, RemoteUnavailable, TaskValidationError
from ..core.ports import SERVER_TIMESTAMP, Document, DocumentBackend
from ..core.state import Scope
from ..core.subscription import SnapshotCallback, Unsubscribe, deliver
from ..tasks.task_models import F_CREATED_AT, F_UPDATED_AT, Task, TaskDraft, validate_patch

logger = logging.getLogger(__name__)

ORDER_FIELD = F_CREATED_AT


class RemoteTaskStoreClient:
    def __init__(self, backend: DocumentBackend, *, scope: Scope | None = None) -> None:
        self._backend = backend
        self._scope = scope
        self._healthy = True
        self._last_known: list[Task] = []

    # ---- scope ----

    @property
    def scope(self) -> Scope | None:
        return self._scope

    def bind(self, scope: Scope) -> None:
        """Bind the namespace for this session. Re-binding a different scope is refused."""
        if self._scope is not None and self._scope != scope:
            raise RuntimeError(
                f"remote client already bound to {self._scope.collection_path!r}; "
                f"refusing to switch to {scope.collection_path!r} mid-session"
            )
        self._scope = scope
        logger.info("Remote client bound to %s", scope.collection_path)

    def unbind(self) -> None:
        self._scope = None
        self._last_known = []

    async def aclose(self) -> None:
        await self._backend.aclose()

    def _collection(self) -> str:
        if self._scope is None:
            raise AuthUnavailable("no remote scope bound (identity not resolved)")
        return self._scope.collection_path

    # ---- health ----

    def health_status(self) -> bool:
        return self._healthy

    def _mark_online(self) -> None:
        if not self._healthy:
            logger.info("Remote store reachable again")
        self._healthy = True

    def _mark_offline(self, exc: BaseException) -> None:
        if self._healthy:
            logger.warning("Remote store unavailable: %s", exc)
        self._healthy = False

    async def _call(self, op: str, coro: Any) -> Any:
        """Await a backend call, maintaining the health flag and normalizing errors."""
        try:
            result = await coro
        except NotFound:
            raise
        except RemoteUnavailable as e:
            self._mark_offline(e)
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected remote failure op=%s", op)
            self._mark_offline(e)
            raise RemoteUnavailable(f"{op} failed: {e!r}", code="unknown") from e
        self._mark_online()
        return result

    @staticmethod
    def _to_tasks(docs: list[Document]) -> list[Task]:
        return [Task.from_fields(d.id, d.fields) for d in docs]

    # ---- operations ----

    async def create(self, draft: TaskDraft) -> str:
        draft = draft.validated()
        collection = self._collection()
        fields = draft.to_fields()
        fields[F_CREATED_AT] = SERVER_TIMESTAMP
        fields[F_UPDATED_AT] = SERVER_TIMESTAMP
        doc_id = await self._call("create", self._backend.add_document(collection, fields))
        logger.debug("Task created remotely id=%s", doc_id)
        return str(doc_id)

    async def list(self) -> list[Task]:
        collection = self._collection()
        docs = await self._call(
            "list",
            self._backend.list_documents(collection, order_by=ORDER_FIELD, descending=True),
        )
        tasks = self._to_tasks(docs)
        self._last_known = [t.copy() for t in tasks]
        return tasks

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> None:
        if not task_id:
            raise TaskValidationError("task id is required")
        fields = validate_patch(patch)
        collection = self._collection()
        fields[F_UPDATED_AT] = SERVER_TIMESTAMP
        await self._call("update", self._backend.update_document(collection, task_id, fields))
        logger.debug("Task updated remotely id=%s fields=%s", task_id, sorted(patch))

    async def delete(self, task_id: str) -> None:
        if not task_id:
            raise TaskValidationError("task id is required")
        collection = self._collection()
        await self._call("delete", self._backend.delete_document(collection, task_id))
        logger.debug("Task deleted remotely id=%s", task_id)

    async def subscribe(self, on_change: SnapshotCallback) -> Unsubscribe:
        """
        Open a standing change channel.

        `on_change` runs once with the current state before this coroutine returns,
        then after every remote change. On a transport error the channel marks the
        client offline, delivers the best currently-known list and closes.
        """
        handle = Unsubscribe()
        first_delivery = asyncio.Event()

        try:
            collection = self._collection()
        except AuthUnavailable:
            logger.warning("Subscribe without a bound scope; delivering last known list")
            await deliver(on_change, [t.copy() for t in self._last_known])
            handle()
            return handle

        task = asyncio.create_task(
            self._pump(collection, on_change, handle, first_delivery),
            name=f"tasksync-subscribe:{collection}",
        )
        handle.attach(task)
        await first_delivery.wait()
        return handle

    async def _pump(
        self,
        collection: str,
        on_change: SnapshotCallback,
        handle: Unsubscribe,
        first_delivery: asyncio.Event,
    ) -> None:
        stream = self._backend.watch(collection, order_by=ORDER_FIELD, descending=True)
        try:
            async for docs in stream:
                if handle.closed:
                    break
                tasks = self._to_tasks(docs)
                self._mark_online()
                self._last_known = [t.copy() for t in tasks]
                await deliver(on_change, tasks)
                first_delivery.set()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._mark_offline(e)
            if not handle.closed:
                logger.warning("Subscription on %s failed; delivering last known list", collection)
                await deliver(on_change, [t.copy() for t in self._last_known])
        finally:
            first_delivery.set()
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception:
                    logger.debug("Closing watch stream failed", exc_info=True)
            logger.debug("Subscription on %s closed", collection)
