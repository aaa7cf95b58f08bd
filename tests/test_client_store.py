# tests/test_client_store.py

from __future__ import annotations

from taskboard.client.store import ClientStore
from taskboard.storage.models import (
    Attachment,
    Label,
    Priority,
    RecurrenceType,
    Reminder,
    ReminderType,
    TaskAction,
    TaskLabel,
    TaskLog,
    TaskPatch,
    TaskRecurrence,
    TodoList,
)
from taskboard.views.filters import ViewType

from .fakes import make_subtask, make_task


def _seed(store: ClientStore) -> None:
    store.set_lists(
        [
            TodoList("inbox", "Inbox", "#3B82F6", "I", True, 0, 0),
            TodoList("L1", "Work", "#000", "W", False, 0, 0),
        ]
    )
    store.set_tasks([make_task("t1"), make_task("t2"), make_task("t3", list_id="inbox")])
    store.set_subtasks([make_subtask("s1", "t1"), make_subtask("s2", "t1", completed=True)])
    store.set_labels([Label("X", "urgent", "#f00", "!", 0, 0)])
    store.set_task_labels([TaskLabel("t1", "X"), TaskLabel("t3", "X")])


def test_toggle_task_sets_and_clears_completed_at(store: ClientStore) -> None:
    _seed(store)

    prev = store.toggle_task_completion("t1")
    assert prev is not None and prev.completed is False
    task = store.get_task("t1")
    assert task.completed is True and task.completed_at is not None

    store.toggle_task_completion("t1")
    task = store.get_task("t1")
    assert task.completed is False and task.completed_at is None

    assert store.toggle_task_completion("missing") is None


def test_toggle_subtask_sets_and_clears_completed_at(store: ClientStore) -> None:
    _seed(store)

    store.toggle_subtask_completion("s2")
    sub = store.get_subtask("s2")
    assert sub.completed is False and sub.completed_at is None

    store.toggle_subtask_completion("s2")
    sub = store.get_subtask("s2")
    assert sub.completed is True and sub.completed_at is not None


def test_update_task_returns_previous_and_keeps_other_fields(store: ClientStore) -> None:
    _seed(store)
    before = store.get_task("t2")

    prev = store.update_task("t2", TaskPatch(priority="high", completed=True))

    assert prev == before
    after = store.get_task("t2")
    assert after.priority == Priority.HIGH
    assert after.completed_at is not None
    assert after.name == before.name
    assert after.list_id == before.list_id

    store.upsert_task(prev)
    assert store.get_task("t2") == before


def test_update_task_stores_cleared_text_fields_as_empty(store: ClientStore) -> None:
    _seed(store)
    store.update_task("t1", TaskPatch(description="notes", estimated_time="1h"))

    store.update_task("t1", TaskPatch(description=None, estimated_time=None, actual_time=None))

    task = store.get_task("t1")
    assert task.description == ""
    assert task.estimated_time == ""
    assert task.actual_time == ""


def test_delete_list_cascades_locally_and_restores(store: ClientStore) -> None:
    _seed(store)
    store.select_list("L1")

    removed = store.delete_list("L1")

    assert [t.id for t in store.tasks] == ["t3"]
    assert store.subtasks == []
    assert store.task_labels == [TaskLabel("t3", "X")]
    assert store.selected_list_id is None
    assert {t.id for t in removed.tasks} == {"t1", "t2"}
    assert len(removed.subtasks) == 2

    store.restore(removed)
    assert {t.id for t in store.tasks} == {"t1", "t2", "t3"}
    assert len(store.subtasks) == 2
    assert TaskLabel("t1", "X") in store.task_labels
    assert store.get_list("L1") is not None


def test_delete_label_drops_associations_only(store: ClientStore) -> None:
    _seed(store)
    store.select_label("X")

    removed = store.delete_label("X")

    assert store.task_labels == []
    assert len(store.tasks) == 3
    assert store.selected_label_id is None
    assert len(removed.task_labels) == 2


def test_add_task_label_ignores_duplicates(store: ClientStore) -> None:
    _seed(store)
    assert store.add_task_label(TaskLabel("t1", "X")) is False
    assert store.add_task_label(TaskLabel("t2", "X")) is True
    assert store.delete_task_label("t2", "X").task_labels == [TaskLabel("t2", "X")]
    assert store.delete_task_label("t2", "X").task_labels == []


def test_selection_rules(store: ClientStore) -> None:
    _seed(store)

    store.select_list("L1")
    store.select_label("X")
    assert store.selected_list_id is None
    assert [t.id for t in store.visible_tasks()] == ["t1", "t3"]
    assert store.title() == "urgent"

    store.select_list("L1")
    assert store.selected_label_id is None
    assert [t.id for t in store.visible_tasks()] == ["t1", "t2"]

    store.set_current_view(ViewType.TODAY)
    assert store.selected_list_id is None
    assert store.title() == "Today"


def test_derived_reads(store: ClientStore) -> None:
    _seed(store)
    assert store.subtask_progress("t1") == (1, 2)
    assert store.subtask_progress("t2") == (0, 0)
    assert [lb.name for lb in store.labels_for("t1")] == ["urgent"]
    assert store.default_list().id == "inbox"


def test_notifications(store: ClientStore) -> None:
    first = store.notify("Failed to load tasks")
    second = store.notify("saved", level="info")
    assert [n.id for n in store.notifications] == [first.id, second.id]

    store.dismiss(first.id)
    assert [n.message for n in store.notifications] == ["saved"]


def test_show_completed_toggle(store: ClientStore) -> None:
    _seed(store)
    store.toggle_task_completion("t2")
    assert store.toggle_show_completed() is False
    assert "t2" not in [t.id for t in store.visible_tasks()]


def _seed_extras(store: ClientStore) -> None:
    store.set_reminders(
        [
            Reminder("r1", "t1", ReminderType.NOTIFICATION, 15, 0),
            Reminder("r2", "t2", ReminderType.EMAIL, 60, 0),
        ]
    )
    store.set_attachments([Attachment("a1", "t1", "plan", "https://example.com/a", 0)])
    store.set_recurrences([TaskRecurrence("c1", "t1", RecurrenceType.WEEKLY, None, None, 0)])
    store.set_task_logs(
        [
            TaskLog("g1", "t1", TaskAction.CREATED, "{}", 0),
            TaskLog("g2", "t2", TaskAction.CREATED, "{}", 0),
        ]
    )


def test_delete_task_cascades_extras_and_restores(store: ClientStore) -> None:
    _seed(store)
    _seed_extras(store)

    removed = store.delete_task("t1")

    assert [r.id for r in store.reminders] == ["r2"]
    assert store.attachments == []
    assert store.recurrences == []
    assert [log.id for log in store.task_logs] == ["g2"]
    assert [a.id for a in removed.attachments] == ["a1"]

    store.restore(removed)
    assert {r.id for r in store.reminders} == {"r1", "r2"}
    assert [a.id for a in store.attachments] == ["a1"]
    assert [c.id for c in store.recurrences] == ["c1"]
    assert [log.id for log in store.logs_for("t1")] == ["g1"]


def test_delete_reminder_returns_what_was_removed(store: ClientStore) -> None:
    _seed(store)
    _seed_extras(store)

    removed = store.delete_reminder("r1")

    assert [r.id for r in removed.reminders] == ["r1"]
    assert [r.id for r in store.reminders] == ["r2"]
    assert store.delete_reminder("missing").reminders == []

    store.restore(removed)
    store.restore(removed)
    assert len(store.reminders) == 2


def test_task_logs_append_per_task(store: ClientStore) -> None:
    _seed(store)
    _seed_extras(store)

    store.add_task_log(TaskLog("g3", "t1", TaskAction.UPDATED, '{"name":"x"}', 1))

    assert [log.action for log in store.logs_for("t1")] == [TaskAction.CREATED, TaskAction.UPDATED]
    assert store.logs_for("t3") == []
