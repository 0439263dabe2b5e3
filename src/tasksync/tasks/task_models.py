# src/tasksync/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.errors import TaskValidationError

# Document field names (wire form shared by the remote store and the local cache).
F_TEXT = "text"
F_COMPLETED = "completed"
F_PRIORITY = "priority"
F_ALARM_TIME = "alarmTime"
F_NOTIFICATION_ID = "notificationId"
F_CREATED_AT = "createdAt"
F_UPDATED_AT = "updatedAt"

PATCHABLE_FIELDS = frozenset({F_TEXT, F_COMPLETED, F_PRIORITY, F_ALARM_TIME, F_NOTIFICATION_ID})


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_raw(cls, raw: Any) -> Priority:
        """Lenient read: unknown stored values fall back to MEDIUM."""
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        """Strict read for caller-supplied values."""
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise TaskValidationError(f"unknown priority: {raw!r}") from None


def coerce_timestamp(raw: Any) -> float | None:
    """
    Accept the timestamp shapes stores hand back:
    - epoch seconds (int/float or numeric string)
    - ISO-8601 strings (a trailing "Z" is accepted)
    - {"seconds": ..., "nanoseconds": ...} mappings
    Anything else reads as None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, Mapping):
        try:
            return float(raw.get("seconds", 0)) + float(raw.get("nanoseconds", 0)) / 1e9
        except (TypeError, ValueError):
            return None
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        try:
            return float(s)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return None


def clean_text(raw: Any) -> str:
    text = str(raw or "").strip()
    if not text:
        raise TaskValidationError("task text must not be empty")
    return text


@dataclass(slots=True)
class Task:
    id: str
    text: str
    completed: bool = False
    priority: Priority = Priority.MEDIUM

    alarm_time: float | None = None
    notification_id: str | None = None

    created_at: float | None = None
    updated_at: float | None = None

    def copy(self) -> Task:
        return replace(self)

    def to_fields(self) -> dict[str, Any]:
        return {
            F_TEXT: self.text,
            F_COMPLETED: self.completed,
            F_PRIORITY: self.priority.value,
            F_ALARM_TIME: self.alarm_time,
            F_NOTIFICATION_ID: self.notification_id,
            F_CREATED_AT: self.created_at,
            F_UPDATED_AT: self.updated_at,
        }

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, **self.to_fields()}

    @classmethod
    def from_fields(cls, doc_id: str, fields: Mapping[str, Any]) -> Task:
        notification_id = fields.get(F_NOTIFICATION_ID)
        return cls(
            id=str(doc_id),
            text=str(fields.get(F_TEXT) or ""),
            completed=bool(fields.get(F_COMPLETED, False)),
            priority=Priority.from_raw(fields.get(F_PRIORITY)),
            alarm_time=coerce_timestamp(fields.get(F_ALARM_TIME)),
            notification_id=str(notification_id) if notification_id is not None else None,
            created_at=coerce_timestamp(fields.get(F_CREATED_AT)),
            updated_at=coerce_timestamp(fields.get(F_UPDATED_AT)),
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Task:
        doc_id = record.get("id")
        if doc_id is None or str(doc_id) == "":
            raise ValueError("task record without id")
        return cls.from_fields(str(doc_id), record)


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """Caller input for a new task (before the store assigns id and timestamps)."""

    text: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    alarm_time: float | None = None
    notification_id: str | None = None

    def validated(self) -> TaskDraft:
        return TaskDraft(
            text=clean_text(self.text),
            priority=Priority.parse(self.priority),
            completed=bool(self.completed),
            alarm_time=self.alarm_time,
            notification_id=self.notification_id,
        )

    def to_fields(self) -> dict[str, Any]:
        return {
            F_TEXT: self.text,
            F_COMPLETED: self.completed,
            F_PRIORITY: Priority.parse(self.priority).value,
            F_ALARM_TIME: self.alarm_time,
            F_NOTIFICATION_ID: self.notification_id,
        }

    def to_task(self, task_id: str, now: float) -> Task:
        return Task(
            id=task_id,
            text=self.text,
            completed=self.completed,
            priority=Priority.parse(self.priority),
            alarm_time=self.alarm_time,
            notification_id=self.notification_id,
            created_at=now,
            updated_at=now,
        )


def validate_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalize a partial update (document field names -> values).

    createdAt/updatedAt/id are never patchable: updatedAt is always assigned by the
    writer, createdAt is immutable.
    """
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise TaskValidationError(f"fields cannot be patched: {', '.join(sorted(unknown))}")

    out: dict[str, Any] = {}
    for key, value in patch.items():
        if key == F_TEXT:
            out[key] = clean_text(value)
        elif key == F_COMPLETED:
            out[key] = bool(value)
        elif key == F_PRIORITY:
            out[key] = Priority.parse(value).value
        elif key == F_ALARM_TIME:
            ts = coerce_timestamp(value)
            if value is not None and ts is None:
                raise TaskValidationError(f"invalid alarm time: {value!r}")
            out[key] = ts
        else:
            out[key] = None if value is None else str(value)
    return out
