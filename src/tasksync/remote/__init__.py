"""
Remote task store.

- client.py: RemoteTaskStoreClient (scoped CRUD + subscribe over a DocumentBackend, health flag)
- http_backend.py: REST document backend (httpx)
- memory_backend.py: in-process backend for demo runs and tests
"""
