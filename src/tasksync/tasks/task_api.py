# src/tasksync/tasks/task_api.py

"""
Pure helpers over task lists.

Used by the orchestrator for both its in-memory view and the cache fallback path
(read-modify-write of the cached snapshot), and by the console for filtering.
None of these functions mutate their input list or the Task objects in it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .task_models import F_CREATED_AT, F_UPDATED_AT, Task


class TaskFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskFilter:
        if not raw:
            return cls.ALL
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.ALL


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    completed: int

    @property
    def active(self) -> int:
        return self.total - self.completed


def copy_tasks(tasks: Iterable[Task]) -> list[Task]:
    return [t.copy() for t in tasks]


def find_task(tasks: Sequence[Task], task_id: str) -> Task | None:
    for t in tasks:
        if t.id == task_id:
            return t
    return None


def index_of(tasks: Sequence[Task], task_id: str) -> int:
    for i, t in enumerate(tasks):
        if t.id == task_id:
            return i
    return -1


def apply_add(tasks: Sequence[Task], task: Task) -> list[Task]:
    """Newest first, matching the remote ordering (createdAt descending)."""
    return [task.copy(), *copy_tasks(tasks)]


def apply_patch(tasks: Sequence[Task], task_id: str, patch: Mapping[str, Any], now: float) -> list[Task]:
    """Merge `patch` into the task with `task_id`; unknown ids leave the list as is."""
    out: list[Task] = []
    for t in tasks:
        if t.id != task_id:
            out.append(t.copy())
            continue
        record = t.to_record()
        record.update(patch)
        record[F_CREATED_AT] = t.created_at
        record[F_UPDATED_AT] = now
        out.append(Task.from_record(record))
    return out


def apply_delete(tasks: Sequence[Task], task_id: str) -> list[Task]:
    return [t.copy() for t in tasks if t.id != task_id]


def replace_task_id(tasks: Sequence[Task], old_id: str, new_id: str) -> list[Task]:
    out = copy_tasks(tasks)
    for t in out:
        if t.id == old_id:
            t.id = new_id
    return out


def filter_tasks(tasks: Iterable[Task], mode: TaskFilter | str = TaskFilter.ALL) -> list[Task]:
    mode = TaskFilter.from_raw(str(mode))
    if mode == TaskFilter.ACTIVE:
        return [t for t in tasks if not t.completed]
    if mode == TaskFilter.COMPLETED:
        return [t for t in tasks if t.completed]
    return list(tasks)


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    items = list(tasks)
    return TaskStats(total=len(items), completed=sum(1 for t in items if t.completed))
