# src/taskboard/client/store.py

"""
Client state store.

An explicit, in-memory mirror of the collections the UI renders from, plus the
selector state the filter engine reads. Pass one instance to whoever needs it;
there is no module-level singleton.

Every mutation applies synchronously and returns what a caller needs to undo
it (the previous record, or a Removed bundle for deletes). The store never
rolls anything back on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from ..storage.models import (
    Attachment,
    Label,
    LabelPatch,
    ListPatch,
    Priority,
    Reminder,
    Subtask,
    SubtaskPatch,
    Task,
    TaskLabel,
    TaskLog,
    TaskPatch,
    TaskRecurrence,
    TodoList,
    now_ms,
)
from ..views.filters import Selector, ViewType, filter_tasks, view_title
from ..views.search import DEFAULT_THRESHOLD

logger = logging.getLogger(__name__)

R = TypeVar("R", TodoList, Label, Task, Subtask, Reminder, Attachment, TaskRecurrence)

# Free-text task fields: a patch may send None, the stored value is "".
_TEXT_FIELDS = ("description", "estimated_time", "actual_time")


@dataclass(slots=True)
class Notification:
    id: int
    message: str
    level: str
    created_at: int


@dataclass(slots=True)
class Removed:
    """Everything a delete took out of the store (including local cascades)."""

    lists: list[TodoList] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    task_labels: list[TaskLabel] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    recurrences: list[TaskRecurrence] = field(default_factory=list)
    task_logs: list[TaskLog] = field(default_factory=list)


def _find(items: list[R], item_id: str) -> int:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    return -1


def _upsert(items: list[R], record: R) -> None:
    i = _find(items, record.id)
    if i < 0:
        items.append(record)
    else:
        items[i] = record


def _completion_changes(completed: bool, was: bool, old_at: int | None, ts: int) -> dict[str, Any]:
    if completed and not was:
        return {"completed": True, "completed_at": ts}
    if not completed:
        return {"completed": False, "completed_at": None}
    return {"completed": True, "completed_at": old_at}


class ClientStore:
    def __init__(
        self,
        *,
        current_view: ViewType = ViewType.TODAY,
        show_completed: bool = True,
        search_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.lists: list[TodoList] = []
        self.tasks: list[Task] = []
        self.subtasks: list[Subtask] = []
        self.labels: list[Label] = []
        self.task_labels: list[TaskLabel] = []
        self.reminders: list[Reminder] = []
        self.attachments: list[Attachment] = []
        self.recurrences: list[TaskRecurrence] = []
        self.task_logs: list[TaskLog] = []

        self.current_view = ViewType(current_view)
        self.selected_list_id: str | None = None
        self.selected_label_id: str | None = None
        self.selected_task_id: str | None = None
        self.show_completed = bool(show_completed)
        self.search_query = ""
        self.search_threshold = float(search_threshold)

        self.is_loading = False
        self.notifications: list[Notification] = []
        self._next_notification_id = 1

    # ---- hydration ----

    def set_lists(self, lists: Iterable[TodoList]) -> None:
        self.lists = list(lists)

    def set_tasks(self, tasks: Iterable[Task]) -> None:
        self.tasks = list(tasks)

    def set_subtasks(self, subtasks: Iterable[Subtask]) -> None:
        self.subtasks = list(subtasks)

    def set_labels(self, labels: Iterable[Label]) -> None:
        self.labels = list(labels)

    def set_task_labels(self, task_labels: Iterable[TaskLabel]) -> None:
        self.task_labels = list(task_labels)

    def set_reminders(self, reminders: Iterable[Reminder]) -> None:
        self.reminders = list(reminders)

    def set_attachments(self, attachments: Iterable[Attachment]) -> None:
        self.attachments = list(attachments)

    def set_recurrences(self, recurrences: Iterable[TaskRecurrence]) -> None:
        self.recurrences = list(recurrences)

    def set_task_logs(self, logs: Iterable[TaskLog]) -> None:
        self.task_logs = list(logs)

    # ---- lookups ----

    def get_list(self, list_id: str) -> TodoList | None:
        i = _find(self.lists, list_id)
        return self.lists[i] if i >= 0 else None

    def get_task(self, task_id: str) -> Task | None:
        i = _find(self.tasks, task_id)
        return self.tasks[i] if i >= 0 else None

    def get_subtask(self, subtask_id: str) -> Subtask | None:
        i = _find(self.subtasks, subtask_id)
        return self.subtasks[i] if i >= 0 else None

    def get_label(self, label_id: str) -> Label | None:
        i = _find(self.labels, label_id)
        return self.labels[i] if i >= 0 else None

    def default_list(self) -> TodoList | None:
        return next((lst for lst in self.lists if lst.is_default), None)

    # ---- lists ----

    def add_list(self, lst: TodoList) -> None:
        self.lists.append(lst)

    def upsert_list(self, lst: TodoList) -> None:
        _upsert(self.lists, lst)

    def update_list(self, list_id: str, patch: ListPatch) -> TodoList | None:
        i = _find(self.lists, list_id)
        if i < 0:
            return None
        prev = self.lists[i]
        self.lists[i] = replace(prev, **patch.present(), updated_at=now_ms())
        return prev

    def delete_list(self, list_id: str) -> Removed:
        removed = Removed()
        i = _find(self.lists, list_id)
        if i >= 0:
            removed.lists.append(self.lists.pop(i))
        for task in [t for t in self.tasks if t.list_id == list_id]:
            self._remove_task(task.id, removed)
        if self.selected_list_id == list_id:
            self.selected_list_id = None
        return removed

    # ---- tasks ----

    def add_task(self, task: Task) -> None:
        self.tasks.append(task)

    def upsert_task(self, task: Task) -> None:
        _upsert(self.tasks, task)

    def update_task(self, task_id: str, patch: TaskPatch) -> Task | None:
        i = _find(self.tasks, task_id)
        if i < 0:
            return None
        prev = self.tasks[i]
        ts = now_ms()
        changes = patch.present()
        if "priority" in changes:
            changes["priority"] = Priority.from_db(changes["priority"])
        for key in _TEXT_FIELDS:
            if key in changes and changes[key] is None:
                changes[key] = ""
        if "completed" in changes:
            changes.update(
                _completion_changes(bool(changes["completed"]), prev.completed, prev.completed_at, ts)
            )
        self.tasks[i] = replace(prev, **changes, updated_at=ts)
        return prev

    def toggle_task_completion(self, task_id: str) -> Task | None:
        i = _find(self.tasks, task_id)
        if i < 0:
            return None
        prev = self.tasks[i]
        ts = now_ms()
        self.tasks[i] = replace(
            prev,
            **_completion_changes(not prev.completed, prev.completed, prev.completed_at, ts),
            updated_at=ts,
        )
        return prev

    def delete_task(self, task_id: str) -> Removed:
        removed = Removed()
        self._remove_task(task_id, removed)
        return removed

    def _remove_task(self, task_id: str, removed: Removed) -> None:
        i = _find(self.tasks, task_id)
        if i >= 0:
            removed.tasks.append(self.tasks.pop(i))
        removed.subtasks.extend(s for s in self.subtasks if s.task_id == task_id)
        self.subtasks = [s for s in self.subtasks if s.task_id != task_id]
        removed.task_labels.extend(tl for tl in self.task_labels if tl.task_id == task_id)
        self.task_labels = [tl for tl in self.task_labels if tl.task_id != task_id]
        removed.reminders.extend(r for r in self.reminders if r.task_id == task_id)
        self.reminders = [r for r in self.reminders if r.task_id != task_id]
        removed.attachments.extend(a for a in self.attachments if a.task_id == task_id)
        self.attachments = [a for a in self.attachments if a.task_id != task_id]
        removed.recurrences.extend(r for r in self.recurrences if r.task_id == task_id)
        self.recurrences = [r for r in self.recurrences if r.task_id != task_id]
        removed.task_logs.extend(log for log in self.task_logs if log.task_id == task_id)
        self.task_logs = [log for log in self.task_logs if log.task_id != task_id]
        if self.selected_task_id == task_id:
            self.selected_task_id = None

    # ---- subtasks ----

    def add_subtask(self, subtask: Subtask) -> None:
        self.subtasks.append(subtask)

    def upsert_subtask(self, subtask: Subtask) -> None:
        _upsert(self.subtasks, subtask)

    def update_subtask(self, subtask_id: str, patch: SubtaskPatch) -> Subtask | None:
        i = _find(self.subtasks, subtask_id)
        if i < 0:
            return None
        prev = self.subtasks[i]
        changes = patch.present()
        if "completed" in changes:
            changes.update(
                _completion_changes(
                    bool(changes["completed"]), prev.completed, prev.completed_at, now_ms()
                )
            )
        self.subtasks[i] = replace(prev, **changes)
        return prev

    def toggle_subtask_completion(self, subtask_id: str) -> Subtask | None:
        i = _find(self.subtasks, subtask_id)
        if i < 0:
            return None
        prev = self.subtasks[i]
        self.subtasks[i] = replace(
            prev, **_completion_changes(not prev.completed, prev.completed, prev.completed_at, now_ms())
        )
        return prev

    def delete_subtask(self, subtask_id: str) -> Removed:
        removed = Removed()
        i = _find(self.subtasks, subtask_id)
        if i >= 0:
            removed.subtasks.append(self.subtasks.pop(i))
        return removed

    # ---- labels ----

    def add_label(self, label: Label) -> None:
        self.labels.append(label)

    def upsert_label(self, label: Label) -> None:
        _upsert(self.labels, label)

    def update_label(self, label_id: str, patch: LabelPatch) -> Label | None:
        i = _find(self.labels, label_id)
        if i < 0:
            return None
        prev = self.labels[i]
        self.labels[i] = replace(prev, **patch.present(), updated_at=now_ms())
        return prev

    def delete_label(self, label_id: str) -> Removed:
        removed = Removed()
        i = _find(self.labels, label_id)
        if i >= 0:
            removed.labels.append(self.labels.pop(i))
        removed.task_labels.extend(tl for tl in self.task_labels if tl.label_id == label_id)
        self.task_labels = [tl for tl in self.task_labels if tl.label_id != label_id]
        if self.selected_label_id == label_id:
            self.selected_label_id = None
        return removed

    # ---- task labels ----

    def add_task_label(self, task_label: TaskLabel) -> bool:
        """Returns False when the pair was already present (nothing added)."""
        if task_label in self.task_labels:
            return False
        self.task_labels.append(task_label)
        return True

    def delete_task_label(self, task_id: str, label_id: str) -> Removed:
        removed = Removed()
        pair = TaskLabel(task_id=task_id, label_id=label_id)
        if pair in self.task_labels:
            self.task_labels.remove(pair)
            removed.task_labels.append(pair)
        return removed

    # ---- reminders / attachments / recurrence ----

    def add_reminder(self, reminder: Reminder) -> None:
        self.reminders.append(reminder)

    def delete_reminder(self, reminder_id: str) -> Removed:
        removed = Removed()
        i = _find(self.reminders, reminder_id)
        if i >= 0:
            removed.reminders.append(self.reminders.pop(i))
        return removed

    def add_attachment(self, attachment: Attachment) -> None:
        self.attachments.append(attachment)

    def delete_attachment(self, attachment_id: str) -> Removed:
        removed = Removed()
        i = _find(self.attachments, attachment_id)
        if i >= 0:
            removed.attachments.append(self.attachments.pop(i))
        return removed

    def add_recurrence(self, recurrence: TaskRecurrence) -> None:
        self.recurrences.append(recurrence)

    def delete_recurrence(self, recurrence_id: str) -> Removed:
        removed = Removed()
        i = _find(self.recurrences, recurrence_id)
        if i >= 0:
            removed.recurrences.append(self.recurrences.pop(i))
        return removed

    # ---- task logs (append-only) ----

    def add_task_log(self, log: TaskLog) -> None:
        self.task_logs.append(log)

    def logs_for(self, task_id: str) -> list[TaskLog]:
        return [log for log in self.task_logs if log.task_id == task_id]

    # ---- compensation ----

    def restore(self, removed: Removed) -> None:
        """Put back what a delete removed (records already present are kept)."""
        for lst in removed.lists:
            if _find(self.lists, lst.id) < 0:
                self.lists.append(lst)
        for label in removed.labels:
            if _find(self.labels, label.id) < 0:
                self.labels.append(label)
        for task in removed.tasks:
            if _find(self.tasks, task.id) < 0:
                self.tasks.append(task)
        for subtask in removed.subtasks:
            if _find(self.subtasks, subtask.id) < 0:
                self.subtasks.append(subtask)
        for tl in removed.task_labels:
            self.add_task_label(tl)
        for items, restored in (
            (self.reminders, removed.reminders),
            (self.attachments, removed.attachments),
            (self.recurrences, removed.recurrences),
        ):
            for record in restored:
                if _find(items, record.id) < 0:
                    items.append(record)
        known = {log.id for log in self.task_logs}
        self.task_logs.extend(log for log in removed.task_logs if log.id not in known)

    # ---- selector ----

    def set_current_view(self, view: ViewType | str) -> None:
        self.current_view = ViewType(view)
        self.selected_list_id = None
        self.selected_label_id = None

    def select_list(self, list_id: str | None) -> None:
        self.selected_list_id = list_id
        if list_id:
            self.selected_label_id = None

    def select_label(self, label_id: str | None) -> None:
        self.selected_label_id = label_id
        if label_id:
            self.selected_list_id = None

    def set_selected_task(self, task_id: str | None) -> None:
        self.selected_task_id = task_id

    def toggle_show_completed(self) -> bool:
        self.show_completed = not self.show_completed
        return self.show_completed

    def set_search_query(self, query: str) -> None:
        self.search_query = query or ""

    def set_loading(self, loading: bool) -> None:
        self.is_loading = bool(loading)

    def selector(self) -> Selector:
        return Selector(
            view=self.current_view,
            selected_list_id=self.selected_list_id,
            selected_label_id=self.selected_label_id,
            show_completed=self.show_completed,
            search_query=self.search_query,
        )

    # ---- derived reads ----

    def visible_tasks(self, now_ms: int | None = None) -> list[Task]:
        return filter_tasks(
            self.tasks,
            self.selector(),
            task_labels=self.task_labels,
            now_ms=now_ms,
            threshold=self.search_threshold,
        )

    def title(self) -> str:
        return view_title(self.selector(), self.lists, self.labels)

    def subtasks_for(self, task_id: str) -> list[Subtask]:
        return [s for s in self.subtasks if s.task_id == task_id]

    def subtask_progress(self, task_id: str) -> tuple[int, int]:
        subs = self.subtasks_for(task_id)
        return sum(1 for s in subs if s.completed), len(subs)

    def labels_for(self, task_id: str) -> list[Label]:
        ids = {tl.label_id for tl in self.task_labels if tl.task_id == task_id}
        return [label for label in self.labels if label.id in ids]

    # ---- notifications ----

    def notify(self, message: str, level: str = "error") -> Notification:
        n = Notification(
            id=self._next_notification_id,
            message=message,
            level=level,
            created_at=now_ms(),
        )
        self._next_notification_id += 1
        self.notifications.append(n)
        logger.debug("Notification #%s [%s] %s", n.id, level, message)
        return n

    def dismiss(self, notification_id: int) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]
