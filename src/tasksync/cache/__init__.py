"""
Local persisted cache.

- kv_store.py: SQLite key/value store (the persisted medium)
- local_cache.py: async best-effort cache of the last-known-good task list
"""
