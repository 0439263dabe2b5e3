# src/tasksync/sync/diagnostics.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.errors import NotFound, RemoteUnavailable
from .orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

_CODE_MESSAGES = {
    "permission-denied": "Permission denied - check the store's access rules",
    "unavailable": "Remote store unavailable - check the network connection",
    "unauthenticated": "Could not sign in - identity backend unavailable",
    "resource-exhausted": "Quota exhausted - too many requests",
    "failed-precondition": "Request rejected by the remote store",
    "not-found": "Collection or document not found",
    "data-loss": "Remote store returned an unreadable response",
}


@dataclass(frozen=True, slots=True)
class ConnectionReport:
    success: bool
    message: str
    code: str | None = None
    tasks_count: int | None = None


def friendly_error_message(code: str | None, fallback: str = "Unknown error") -> str:
    if not code:
        return fallback
    return _CODE_MESSAGES.get(code, fallback)


async def check_connection(orchestrator: SyncOrchestrator) -> ConnectionReport:
    """
    Test the remote path end-to-end (scope resolution + list), without cache fallback.

    The orchestrator's online flag is updated as a side effect, like any remote call.
    """
    logger.info("Testing remote connection...")
    try:
        tasks = await orchestrator.probe()
    except RemoteUnavailable as e:
        logger.warning("Connection test failed code=%s: %s", e.code, e)
        return ConnectionReport(
            success=False,
            message=friendly_error_message(e.code, str(e)),
            code=e.code,
        )
    except NotFound:
        return ConnectionReport(success=False, message=friendly_error_message("not-found"), code="not-found")

    logger.info("Connection test ok: %d tasks", len(tasks))
    return ConnectionReport(
        success=True,
        message="Remote connection successful",
        tasks_count=len(tasks),
    )
