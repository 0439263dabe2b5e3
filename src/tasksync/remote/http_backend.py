# src/tasksync/remote/http_backend.py

"""
REST document backend over httpx.

Wire contract (JSON):
- POST   /<collection>             {"fields": {...}, "serverTimestamps": [...]} -> {"id": "..."}
- GET    /<collection>?orderBy=<field>&direction=asc|desc                       -> {"documents": [{"id", "fields"}]}
- PATCH  /<collection>/<id>        {"fields": {...}, "serverTimestamps": [...]} -> 2xx | 404
- DELETE /<collection>/<id>                                                     -> 2xx | 404

Fields whose value is SERVER_TIMESTAMP are not sent; their names go into
"serverTimestamps" and the server fills them from its own clock.

Live queries are served by polling: watch() re-lists every poll interval and yields
only when the snapshot changed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import NotFound, RemoteUnavailable
from ..core.ports import SERVER_TIMESTAMP, Document

logger = logging.getLogger(__name__)


def code_for_status(status_code: int) -> str:
    if status_code in (401, 403):
        return "permission-denied"
    if status_code == 404:
        return "not-found"
    if status_code == 429:
        return "resource-exhausted"
    if status_code >= 500:
        return "unavailable"
    return "failed-precondition"


def encode_write(fields: Mapping[str, Any]) -> dict[str, Any]:
    plain = {k: v for k, v in fields.items() if v is not SERVER_TIMESTAMP}
    server = sorted(k for k, v in fields.items() if v is SERVER_TIMESTAMP)
    body: dict[str, Any] = {"fields": plain}
    if server:
        body["serverTimestamps"] = server
    return body


def decode_documents(payload: Any) -> list[Document]:
    if not isinstance(payload, dict):
        raise RemoteUnavailable("unexpected list payload", code="data-loss")
    raw_docs = payload.get("documents") or []
    if not isinstance(raw_docs, list):
        raise RemoteUnavailable("unexpected documents payload", code="data-loss")

    out: list[Document] = []
    for raw in raw_docs:
        if not isinstance(raw, dict) or not raw.get("id"):
            logger.warning("Skipping malformed document in list payload: %r", raw)
            continue
        fields = raw.get("fields")
        out.append(Document(id=str(raw["id"]), fields=dict(fields) if isinstance(fields, dict) else {}))
    return out


class HttpDocumentBackend:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        poll_interval_seconds: float = 5.0,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._poll_interval = max(0.01, float(poll_interval_seconds))
        self._timeout_seconds = timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {"base_url": self._base_url}
            # No explicit timeout unless configured: httpx's own default applies.
            if self._timeout_seconds is not None:
                kwargs["timeout"] = httpx.Timeout(self._timeout_seconds)
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def _doc_path(collection: str, doc_id: str | None = None) -> str:
        path = "/" + collection.strip("/")
        if doc_id is not None:
            path += "/" + quote(doc_id, safe="")
        return path

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        doc_id: str | None = None,
    ) -> httpx.Response:
        query = dict(params or {})
        if self._api_key:
            query["key"] = self._api_key

        client = self._get_client()
        try:
            resp = await client.request(method, path, json=json, params=query or None)
        except httpx.RequestError as e:
            raise RemoteUnavailable(f"{method} {path} failed: {e!r}", code="unavailable") from e

        if resp.status_code == 404 and doc_id is not None:
            raise NotFound(doc_id)

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            code = code_for_status(resp.status_code)
            raise RemoteUnavailable(f"{method} {path} -> HTTP {resp.status_code}", code=code) from e
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteUnavailable("response is not JSON", code="data-loss") from e

    # ---- DocumentBackend ----

    async def add_document(self, collection: str, fields: Mapping[str, Any]) -> str:
        resp = await self._request("POST", self._doc_path(collection), json=encode_write(fields))
        payload = self._json(resp)
        doc_id = payload.get("id") if isinstance(payload, dict) else None
        if not doc_id:
            raise RemoteUnavailable("create response without id", code="data-loss")
        return str(doc_id)

    async def list_documents(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
    ) -> list[Document]:
        params = {"orderBy": order_by, "direction": "desc" if descending else "asc"}
        resp = await self._request("GET", self._doc_path(collection), params=params)
        return decode_documents(self._json(resp))

    async def update_document(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        await self._request(
            "PATCH",
            self._doc_path(collection, doc_id),
            json=encode_write(fields),
            doc_id=doc_id,
        )

    async def delete_document(self, collection: str, doc_id: str) -> None:
        await self._request("DELETE", self._doc_path(collection, doc_id), doc_id=doc_id)

    async def watch(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
    ) -> AsyncIterator[list[Document]]:
        last: list[tuple[str, dict[str, Any]]] | None = None
        while True:
            docs = await self.list_documents(collection, order_by=order_by, descending=descending)
            signature = [(d.id, d.fields) for d in docs]
            if signature != last:
                last = signature
                yield docs
            await asyncio.sleep(self._poll_interval)
