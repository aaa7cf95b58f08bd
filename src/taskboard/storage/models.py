# src/taskboard/storage/models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, fields
from enum import StrEnum
from typing import Any

# Marks a patch field as "not provided" (distinct from None / "").
UNSET: Any = object()


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


class Priority(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


_PRIORITY_RANK = {
    Priority.NONE: 0,
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
}


class TaskAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"


class ReminderType(StrEnum):
    NOTIFICATION = "notification"
    EMAIL = "email"


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    WEEKDAY = "weekday"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class _Record:
    """Wire form helpers shared by all stored records."""

    __slots__ = ()

    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class TodoList(_Record):
    id: str
    name: str
    color: str
    emoji: str
    is_default: bool
    created_at: int
    updated_at: int


@dataclass(frozen=True, slots=True)
class Label(_Record):
    id: str
    name: str
    color: str
    emoji: str
    created_at: int
    updated_at: int


@dataclass(frozen=True, slots=True)
class Task(_Record):
    id: str
    list_id: str
    name: str
    description: str
    date: int | None
    deadline: int | None
    priority: Priority
    estimated_time: str
    actual_time: str
    completed: bool
    completed_at: int | None
    created_at: int
    updated_at: int

    def is_overdue(self, now: int | None = None) -> bool:
        if self.deadline is None or self.completed:
            return False
        return self.deadline < (now_ms() if now is None else now)


@dataclass(frozen=True, slots=True)
class Subtask(_Record):
    id: str
    task_id: str
    name: str
    completed: bool
    completed_at: int | None
    created_at: int


@dataclass(frozen=True, slots=True)
class TaskLabel(_Record):
    task_id: str
    label_id: str


@dataclass(frozen=True, slots=True)
class TaskLog(_Record):
    id: str
    task_id: str
    action: TaskAction
    changes: str
    created_at: int


@dataclass(frozen=True, slots=True)
class Reminder(_Record):
    id: str
    task_id: str
    type: ReminderType
    minutes_before: int
    created_at: int


@dataclass(frozen=True, slots=True)
class Attachment(_Record):
    id: str
    task_id: str
    name: str
    url: str
    created_at: int


@dataclass(frozen=True, slots=True)
class TaskRecurrence(_Record):
    id: str
    task_id: str
    type: RecurrenceType
    custom_rule: str | None
    end_date: int | None
    created_at: int


# ---- patches ----


class _Patch:
    """
    Partial update: every field defaults to UNSET.

    present() -> only the provided fields (snake_case, matching columns)
    to_payload() -> the same in camelCase wire form (what TaskLog records)
    """

    __slots__ = ()

    def present(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is not UNSET:
                out[f.name] = value
        return out

    def to_payload(self) -> dict[str, Any]:
        return {_camel(k): v for k, v in self.present().items()}


@dataclass(frozen=True, slots=True)
class ListPatch(_Patch):
    name: str = UNSET
    color: str = UNSET
    emoji: str = UNSET


@dataclass(frozen=True, slots=True)
class LabelPatch(_Patch):
    name: str = UNSET
    color: str = UNSET
    emoji: str = UNSET


@dataclass(frozen=True, slots=True)
class TaskPatch(_Patch):
    name: str = UNSET
    description: str | None = UNSET
    date: int | None = UNSET
    deadline: int | None = UNSET
    priority: Priority | str = UNSET
    estimated_time: str | None = UNSET
    actual_time: str | None = UNSET
    completed: bool = UNSET


@dataclass(frozen=True, slots=True)
class SubtaskPatch(_Patch):
    name: str = UNSET
    completed: bool = UNSET
