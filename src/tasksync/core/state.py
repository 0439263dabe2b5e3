# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..cache.local_cache import LocalCacheStore
    from ..remote.client import RemoteTaskStoreClient
    from ..sync.orchestrator import SyncOrchestrator
    from ..tasks.task_models import Task


@dataclass(frozen=True, slots=True)
class Scope:
    """
    Remote namespace for tasks.

    identity=None -> global collection ("todos")
    identity="u1" -> per-identity sub-collection ("users/u1/todos")
    """

    identity: str | None = None
    collection: str = "todos"
    users_collection: str = "users"

    @property
    def collection_path(self) -> str:
        if self.identity is None:
            return self.collection
        return f"{self.users_collection}/{self.identity}/{self.collection}"

    @property
    def is_global(self) -> bool:
        return self.identity is None


@dataclass(slots=True)
class SyncState:
    """
    Process-wide sync status, owned (and mutated) by the orchestrator only.

    Constructed once at startup and passed in; never a module-level singleton.
    """

    online: bool = True
    scope: Scope | None = None

    def reset(self) -> None:
        self.online = True
        self.scope = None


@dataclass
class AppState:
    """Everything the console front-end needs, wired once by cli.bootstrap."""

    settings: Any

    sync_state: SyncState
    cache: LocalCacheStore
    remote: RemoteTaskStoreClient
    orchestrator: SyncOrchestrator

    # Last list printed to the console; "/done 2" refers to its 2nd entry.
    last_listing: list[Task] = field(default_factory=list)
    filter_mode: str = "all"
