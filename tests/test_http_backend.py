# tests/test_http_backend.py

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from tasksync.core.errors import NotFound, RemoteUnavailable
from tasksync.core.ports import SERVER_TIMESTAMP
from tasksync.remote.http_backend import HttpDocumentBackend, code_for_status, encode_write


class FakeDocumentServer:
    """Tiny in-process REST document store behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.status_override: int | None = None
        self.clock = 100.0
        self._next_id = 0

    def _stamp(self, body: dict[str, Any]) -> dict[str, Any]:
        fields = dict(body.get("fields") or {})
        for name in body.get("serverTimestamps") or []:
            self.clock += 1
            fields[name] = self.clock
        return fields

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        parts = request.url.path.strip("/").split("/")
        collection, doc_id = ("/".join(parts[:-1]), parts[-1]) if request.method in ("PATCH", "DELETE") else ("/".join(parts), None)
        coll = self.docs.setdefault(collection, {})

        if request.method == "POST":
            self._next_id += 1
            new_id = f"d{self._next_id}"
            coll[new_id] = self._stamp(json.loads(request.content))
            return httpx.Response(200, json={"id": new_id})
        if request.method == "GET":
            reverse = request.url.params.get("direction") == "desc"
            order_by = request.url.params["orderBy"]
            ordered = sorted(coll.items(), key=lambda kv: kv[1].get(order_by, 0), reverse=reverse)
            return httpx.Response(200, json={"documents": [{"id": i, "fields": f} for i, f in ordered]})
        if doc_id not in coll:
            return httpx.Response(404)
        if request.method == "PATCH":
            coll[doc_id].update(self._stamp(json.loads(request.content)))
            return httpx.Response(200, json={})
        del coll[doc_id]
        return httpx.Response(204)


@pytest.fixture()
def server() -> FakeDocumentServer:
    return FakeDocumentServer()


@pytest.fixture()
def http_backend(server: FakeDocumentServer) -> HttpDocumentBackend:
    client = httpx.AsyncClient(base_url="https://store.test/v1", transport=httpx.MockTransport(server))
    return HttpDocumentBackend("https://store.test/v1", api_key="secret", poll_interval_seconds=0.01, client=client)


def test_encode_write_splits_server_timestamps() -> None:
    body = encode_write({"text": "a", "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP})
    assert body == {"fields": {"text": "a"}, "serverTimestamps": ["createdAt", "updatedAt"]}
    assert encode_write({"text": "a"}) == {"fields": {"text": "a"}}


def test_status_codes_map_to_reasons() -> None:
    assert code_for_status(403) == "permission-denied"
    assert code_for_status(429) == "resource-exhausted"
    assert code_for_status(503) == "unavailable"
    assert code_for_status(400) == "failed-precondition"


@pytest.mark.asyncio
async def test_crud_round_trip(http_backend: HttpDocumentBackend, server: FakeDocumentServer) -> None:
    a = await http_backend.add_document("users/u1/todos", {"text": "a", "createdAt": SERVER_TIMESTAMP})
    b = await http_backend.add_document("users/u1/todos", {"text": "b", "createdAt": SERVER_TIMESTAMP})

    docs = await http_backend.list_documents("users/u1/todos", order_by="createdAt", descending=True)
    assert [d.id for d in docs] == [b, a]
    assert server.requests[-1].url.params["key"] == "secret"

    await http_backend.update_document("users/u1/todos", a, {"completed": True})
    await http_backend.delete_document("users/u1/todos", b)

    docs = await http_backend.list_documents("users/u1/todos", order_by="createdAt")
    assert [(d.id, d.fields.get("completed")) for d in docs] == [(a, True)]
    await http_backend.aclose()


@pytest.mark.asyncio
async def test_missing_document_raises_not_found(http_backend: HttpDocumentBackend) -> None:
    with pytest.raises(NotFound):
        await http_backend.update_document("todos", "nope", {"completed": True})
    with pytest.raises(NotFound):
        await http_backend.delete_document("todos", "nope")


@pytest.mark.asyncio
async def test_http_errors_become_remote_unavailable(
    http_backend: HttpDocumentBackend, server: FakeDocumentServer
) -> None:
    server.status_override = 403
    with pytest.raises(RemoteUnavailable) as exc_info:
        await http_backend.list_documents("todos", order_by="createdAt")
    assert exc_info.value.code == "permission-denied"


@pytest.mark.asyncio
async def test_transport_errors_become_remote_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.AsyncClient(base_url="https://store.test", transport=httpx.MockTransport(handler))
    backend = HttpDocumentBackend("https://store.test", client=client)
    with pytest.raises(RemoteUnavailable) as exc_info:
        await backend.add_document("todos", {"text": "x"})
    assert exc_info.value.code == "unavailable"


@pytest.mark.asyncio
async def test_watch_polls_and_yields_only_changes(
    http_backend: HttpDocumentBackend, server: FakeDocumentServer
) -> None:
    stream = http_backend.watch("todos", order_by="createdAt", descending=True)
    first = await stream.__anext__()
    assert first == []

    await http_backend.add_document("todos", {"text": "pushed", "createdAt": SERVER_TIMESTAMP})
    second = await stream.__anext__()
    assert [d.fields["text"] for d in second] == ["pushed"]

    await stream.aclose()
