# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the client layer.

The client sync layer depends on this Protocol instead of the concrete SQLite
Repository, so a remote (HTTP) implementation or a test fake can stand in.
"""

from typing import Any, Protocol

from ..storage.models import (
    Attachment,
    Label,
    LabelPatch,
    ListPatch,
    Reminder,
    Subtask,
    SubtaskPatch,
    Task,
    TaskLabel,
    TaskLog,
    TaskPatch,
    TaskRecurrence,
    TodoList,
)


class EntityRepo(Protocol):
    # Lists
    def list_lists(self) -> list[TodoList]: ...
    def get_list(self, list_id: str) -> TodoList: ...
    def create_list(self, name: str, color: str, emoji: str) -> TodoList: ...
    def update_list(self, list_id: str, patch: ListPatch) -> TodoList: ...
    def delete_list(self, list_id: str) -> None: ...

    # Tasks
    def list_tasks(self, list_id: str | None = None) -> list[Task]: ...
    def get_task(self, task_id: str) -> Task: ...
    def create_task(
            self,
            list_id: str | None,
            name: str | None,
            *,
            description: str | None = None,
            date: int | None = None,
            deadline: int | None = None,
            priority: Any = None,
            estimated_time: str | None = None,
            actual_time: str | None = None,
            payload: dict[str, Any] | None = None,
    ) -> Task: ...
    def update_task(self, task_id: str, patch: TaskPatch) -> Task: ...
    def delete_task(self, task_id: str) -> None: ...

    # Subtasks
    def list_subtasks(self, task_id: str) -> list[Subtask]: ...
    def create_subtask(self, task_id: str | None, name: str | None) -> Subtask: ...
    def update_subtask(self, subtask_id: str, patch: SubtaskPatch) -> Subtask: ...
    def delete_subtask(self, subtask_id: str) -> None: ...

    # Labels
    def list_labels(self) -> list[Label]: ...
    def create_label(self, name: str, color: str, emoji: str) -> Label: ...
    def update_label(self, label_id: str, patch: LabelPatch) -> Label: ...
    def delete_label(self, label_id: str) -> None: ...

    # Task labels
    def list_task_labels(self, task_id: str | None = None) -> list[TaskLabel]: ...
    def create_task_label(self, task_id: str | None, label_id: str | None) -> TaskLabel: ...
    def delete_task_label(self, task_id: str, label_id: str) -> None: ...

    # Audit trail
    def list_task_logs(self, task_id: str) -> list[TaskLog]: ...

    # Reminders / attachments / recurrence
    def list_reminders(self, task_id: str | None = None) -> list[Reminder]: ...
    def create_reminder(self, task_id: str | None, reminder_type: Any, minutes_before: Any) -> Reminder: ...
    def delete_reminder(self, reminder_id: str) -> None: ...
    def list_attachments(self, task_id: str | None = None) -> list[Attachment]: ...
    def create_attachment(self, task_id: str | None, name: str | None, url: str | None) -> Attachment: ...
    def delete_attachment(self, attachment_id: str) -> None: ...
    def list_recurrences(self, task_id: str | None = None) -> list[TaskRecurrence]: ...
    def create_recurrence(
            self,
            task_id: str | None,
            recurrence_type: Any,
            *,
            custom_rule: str | None = None,
            end_date: int | None = None,
    ) -> TaskRecurrence: ...
    def delete_recurrence(self, recurrence_id: str) -> None: ...
