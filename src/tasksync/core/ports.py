# src/tasksync/core/ports.py

"""
Ports (interfaces) used by the core.

The sync core depends on Protocols instead of concrete implementations.
This keeps the remote document store, the local persisted store and the identity
backend swappable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol


class _ServerTimestamp:
    """Sentinel field value: the backend replaces it with its own clock reading."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(slots=True)
class Document:
    """A remote document: opaque id + plain field/value record."""

    id: str
    fields: dict[str, Any] = field(default_factory=dict)


class KeyValueStore(Protocol):
    """Local persisted store: single key, single value, whole-value replace."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class DocumentBackend(Protocol):
    """
    Generic scoped document-collection backend (collection CRUD + live query).

    Implementations raise:
    - RemoteUnavailable on transport / permission / availability failures
    - NotFound when the target document does not exist (update/delete)
    """

    async def add_document(self, collection: str, fields: Mapping[str, Any]) -> str: ...

    async def list_documents(
            self,
            collection: str,
            *,
            order_by: str,
            descending: bool = False,
    ) -> list[Document]: ...

    async def update_document(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete_document(self, collection: str, doc_id: str) -> None: ...

    def watch(
            self,
            collection: str,
            *,
            order_by: str,
            descending: bool = False,
    ) -> AsyncIterator[list[Document]]:
        """Yield the current snapshot first, then a new snapshot after every change."""
        ...

    async def aclose(self) -> None: ...


class IdentityBackend(Protocol):
    """Anonymous-session creation yielding an opaque identifier string."""

    async def sign_in(self) -> str: ...
