# tests/test_identity.py

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tasksync.core.errors import AuthUnavailable
from tasksync.identity.provider import HttpIdentityBackend, IdentityProvider, StaticIdentityBackend

from .fakes import FakeIdentityBackend


@pytest.mark.asyncio
async def test_identity_is_cached_after_first_success() -> None:
    backend = FakeIdentityBackend("anon-1")
    provider = IdentityProvider(backend)

    assert await provider.resolve_scope() == "anon-1"
    assert await provider.resolve_scope() == "anon-1"
    assert backend.calls == 1
    assert provider.identity == "anon-1"


@pytest.mark.asyncio
async def test_concurrent_resolutions_share_one_sign_in() -> None:
    backend = FakeIdentityBackend("anon-2", delay=0.01)
    provider = IdentityProvider(backend)

    results = await asyncio.gather(*(provider.resolve_scope() for _ in range(5)))
    assert results == ["anon-2"] * 5
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_failures_are_not_cached() -> None:
    backend = FakeIdentityBackend("anon-3", fail_times=1)
    provider = IdentityProvider(backend)

    with pytest.raises(AuthUnavailable):
        await provider.resolve_scope()
    assert provider.identity is None

    assert await provider.resolve_scope() == "anon-3"
    assert backend.calls == 2


@pytest.mark.asyncio
async def test_reset_forgets_identity_and_close_reaches_backend() -> None:
    backend = FakeIdentityBackend("anon-4")
    provider = IdentityProvider(backend)
    await provider.resolve_scope()

    provider.reset()
    assert provider.identity is None
    await provider.resolve_scope()
    assert backend.calls == 2

    await provider.aclose()
    assert backend.closed is True


@pytest.mark.asyncio
async def test_static_backend_has_no_aclose_and_still_closes_cleanly() -> None:
    provider = IdentityProvider(StaticIdentityBackend("device-9"))
    assert await provider.resolve_scope() == "device-9"
    await provider.aclose()


@pytest.mark.asyncio
async def test_http_identity_backend_signs_up_anonymously() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"localId": "uid-42", "idToken": "t"})

    client = httpx.AsyncClient(base_url="https://auth.test", transport=httpx.MockTransport(handler))
    backend = HttpIdentityBackend("https://auth.test", api_key="k", client=client)

    assert await backend.sign_in() == "uid-42"
    assert seen[0].url.path == "/accounts:signUp"
    assert seen[0].url.params["key"] == "k"
    assert json.loads(seen[0].content) == {"returnSecureToken": True}
    await backend.aclose()


@pytest.mark.asyncio
async def test_http_identity_backend_errors_map_to_auth_unavailable() -> None:
    def rejected(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "ADMIN_ONLY_OPERATION"})

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    for handler, code in ((rejected, "unauthenticated"), (unreachable, "unavailable")):
        client = httpx.AsyncClient(base_url="https://auth.test", transport=httpx.MockTransport(handler))
        backend = HttpIdentityBackend("https://auth.test", client=client)
        with pytest.raises(AuthUnavailable) as exc_info:
            await backend.sign_in()
        assert exc_info.value.code == code
        await backend.aclose()
