# src/tasksync/core/errors.py

"""
Error taxonomy shared by the cache, remote client, identity provider and orchestrator.

Only NotFound and validation errors are expected to cross the orchestrator boundary.
Connectivity-class errors (RemoteUnavailable and its AuthUnavailable subclass) are
degraded into "offline flag + best-effort data" unless local fallback is disabled.
"""

from __future__ import annotations


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""


class RemoteUnavailable(TaskSyncError):
    """
    Network, quota, permission or backend-availability failure on the remote path.

    `code` is a short machine-readable reason (e.g. "unavailable", "permission-denied").
    """

    default_code = "unavailable"

    def __init__(self, message: str = "remote store unavailable", *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code


class AuthUnavailable(RemoteUnavailable):
    """Identity resolution failed. Handled exactly like RemoteUnavailable."""

    default_code = "unauthenticated"


class NotFound(TaskSyncError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


class CacheCorrupt(TaskSyncError):
    """Malformed persisted blob. Internal to the cache; never propagated."""


class TaskValidationError(TaskSyncError, ValueError):
    """Input rejected before any store call (empty text, unknown priority, ...)."""
