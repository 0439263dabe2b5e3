"""
tasksync: task synchronization and offline-fallback client.

Keeps a task list consistent between a remote document store and a local cache,
under unreliable connectivity. The UI talks to tasksync.sync.orchestrator.SyncOrchestrator.
"""

__version__ = "0.1.0"
