# src/tasksync/identity/provider.py

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..core.errors import AuthUnavailable
from ..core.ports import IdentityBackend

logger = logging.getLogger(__name__)


class StaticIdentityBackend:
    """Implicit identity known up front (e.g. configured per device)."""

    def __init__(self, identity: str) -> None:
        self._identity = identity

    async def sign_in(self) -> str:
        return self._identity


class HttpIdentityBackend:
    """
    Anonymous sign-up over HTTP.

    POST <base_url>/accounts:signUp {"returnSecureToken": true} -> {"localId": "<uid>", ...}
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {"base_url": self._base_url}
            if self._timeout_seconds is not None:
                kwargs["timeout"] = httpx.Timeout(self._timeout_seconds)
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def sign_in(self) -> str:
        params = {"key": self._api_key} if self._api_key else None
        try:
            resp = await self._get_client().post(
                "/accounts:signUp", json={"returnSecureToken": True}, params=params
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise AuthUnavailable(f"anonymous sign-in rejected: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise AuthUnavailable(f"identity backend unreachable: {e!r}", code="unavailable") from e
        except ValueError as e:
            raise AuthUnavailable("identity response is not JSON") from e

        uid = payload.get("localId") if isinstance(payload, dict) else None
        if not uid:
            raise AuthUnavailable("identity response without localId")
        return str(uid)


class IdentityProvider:
    """
    Resolves the opaque identity used to build the per-identity remote scope.

    The first successful resolution is cached for the process lifetime; concurrent
    callers wait for the same in-flight sign-in. Failures are not cached, so the next
    remote attempt retries.
    """

    def __init__(self, backend: IdentityBackend) -> None:
        self._backend = backend
        self._identity: str | None = None
        self._lock = asyncio.Lock()

    @property
    def identity(self) -> str | None:
        return self._identity

    async def resolve_scope(self) -> str:
        if self._identity is not None:
            return self._identity

        async with self._lock:
            if self._identity is not None:
                return self._identity
            try:
                uid = await self._backend.sign_in()
            except AuthUnavailable:
                raise
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise AuthUnavailable(f"identity resolution failed: {e!r}") from e

            if not uid:
                raise AuthUnavailable("identity backend returned an empty identity")

            self._identity = str(uid)
            logger.info("Identity resolved: %s", self._identity)
            return self._identity

    def reset(self) -> None:
        """Forget the cached identity (logout / re-init)."""
        self._identity = None

    async def aclose(self) -> None:
        aclose = getattr(self._backend, "aclose", None)
        if aclose is not None:
            await aclose()
