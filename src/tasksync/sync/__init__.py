"""
Sync layer.

- orchestrator.py: SyncOrchestrator façade (remote first, cache fallback, online flag)
- diagnostics.py: end-to-end connection check with human-readable error messages
"""
