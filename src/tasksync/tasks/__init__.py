"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, Priority) and the document field names
- task_api.py: pure list mutations, filters and counters used by the orchestrator and the console
"""
