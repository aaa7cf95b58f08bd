# tests/test_repository.py

from __future__ import annotations

import json

import pytest

from taskboard.errors import Forbidden, InternalError, NotFound, ValidationError
from taskboard.storage.database import Database
from taskboard.storage.models import (
    LabelPatch,
    ListPatch,
    Priority,
    RecurrenceType,
    ReminderType,
    SubtaskPatch,
    TaskAction,
    TaskPatch,
)
from taskboard.storage.repository import ALL_SUBTASKS, Repository


def _list(repo: Repository, name: str = "Work"):
    return repo.create_list(name, "#111111", "W")


def test_lists_are_ordered_by_name_and_include_inbox(repo: Repository) -> None:
    _list(repo, "Work")
    _list(repo, "Chores")

    names = [lst.name for lst in repo.list_lists()]
    assert names == ["Chores", "Inbox", "Work"]
    assert repo.default_list().name == "Inbox"


def test_create_list_requires_fields(repo: Repository) -> None:
    with pytest.raises(ValidationError, match="name is required"):
        repo.create_list("  ", "#fff", "*")
    with pytest.raises(ValidationError, match="color is required"):
        repo.create_list("x", "", "*")


def test_update_list_changes_only_given_fields(repo: Repository) -> None:
    lst = _list(repo)
    updated = repo.update_list(lst.id, ListPatch(name="Office"))

    assert updated.name == "Office"
    assert updated.color == lst.color
    assert updated.emoji == lst.emoji
    assert updated.created_at == lst.created_at
    assert updated.updated_at >= lst.updated_at

    with pytest.raises(ValidationError):
        repo.update_list(lst.id, ListPatch(name=""))
    with pytest.raises(NotFound):
        repo.update_list("missing", ListPatch(name="x"))


def test_default_list_cannot_be_deleted(repo: Repository) -> None:
    inbox = repo.default_list()
    with pytest.raises(Forbidden) as ei:
        repo.delete_list(inbox.id)

    assert ei.value.status == 400
    assert repo.get_list(inbox.id).is_default


def test_delete_missing_list_is_not_found(repo: Repository) -> None:
    with pytest.raises(NotFound) as ei:
        repo.delete_list("missing")
    assert ei.value.status == 404


def test_delete_list_cascades_to_everything_below(db: Database, repo: Repository) -> None:
    lst = _list(repo)
    label = repo.create_label("urgent", "#f00", "!")
    task = repo.create_task(lst.id, "write report")
    repo.create_subtask(task.id, "outline")
    repo.create_task_label(task.id, label.id)
    repo.update_task(task.id, TaskPatch(priority="high"))

    repo.delete_list(lst.id)

    assert repo.list_tasks() == []
    assert repo.list_subtasks(ALL_SUBTASKS) == []
    assert repo.list_task_labels() == []
    assert db.count_rows("task_logs") == 0
    # Labels themselves are not owned by the list.
    assert [lb.id for lb in repo.list_labels()] == [label.id]


def test_create_task_defaults_and_created_log(repo: Repository) -> None:
    inbox = repo.default_list()
    task = repo.create_task(inbox.id, "buy milk", deadline=123)

    assert task.priority == Priority.NONE
    assert task.completed is False
    assert task.completed_at is None
    assert task.description == ""
    assert task.deadline == 123

    logs = repo.list_task_logs(task.id)
    assert [entry.action for entry in logs] == [TaskAction.CREATED]
    assert json.loads(logs[0].changes) == {"listId": inbox.id, "name": "buy milk", "deadline": 123}


def test_create_task_records_raw_payload_when_given(repo: Repository) -> None:
    inbox = repo.default_list()
    body = {"listId": inbox.id, "name": "x", "clientHint": 1}
    task = repo.create_task(inbox.id, "x", payload=body)
    assert json.loads(repo.list_task_logs(task.id)[0].changes) == body


def test_create_task_without_list_persists_nothing(db: Database, repo: Repository) -> None:
    with pytest.raises(ValidationError, match="listId is required"):
        repo.create_task(None, "orphan")
    with pytest.raises(ValidationError, match="name is required"):
        repo.create_task(repo.default_list().id, "")

    assert db.count_rows("tasks") == 0
    assert db.count_rows("task_logs") == 0


def test_create_task_in_unknown_list_is_internal_error(repo: Repository) -> None:
    with pytest.raises(InternalError):
        repo.create_task("no-such-list", "x")


def test_invalid_priority_is_rejected(repo: Repository) -> None:
    inbox = repo.default_list()
    with pytest.raises(ValidationError):
        repo.create_task(inbox.id, "x", priority="urgent")

    task = repo.create_task(inbox.id, "y")
    with pytest.raises(ValidationError):
        repo.update_task(task.id, TaskPatch(priority="urgent"))


def test_list_tasks_newest_first_and_by_list(repo: Repository) -> None:
    inbox = repo.default_list()
    work = _list(repo)
    a = repo.create_task(inbox.id, "a")
    b = repo.create_task(inbox.id, "b")
    c = repo.create_task(work.id, "c")

    assert [t.id for t in repo.list_tasks()] == [c.id, b.id, a.id]
    assert [t.id for t in repo.list_tasks(work.id)] == [c.id]


def test_task_completion_stamps_and_clears_completed_at(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")

    done = repo.update_task(task.id, TaskPatch(completed=True))
    assert done.completed is True
    assert done.completed_at is not None

    again = repo.update_task(task.id, TaskPatch(completed=True))
    assert again.completed_at == done.completed_at

    undone = repo.update_task(task.id, TaskPatch(completed=False))
    assert undone.completed is False
    assert undone.completed_at is None


def test_partial_task_update_leaves_other_fields(repo: Repository) -> None:
    task = repo.create_task(
        repo.default_list().id,
        "x",
        description="keep me",
        date=1000,
        priority="low",
        estimated_time="1h",
    )
    updated = repo.update_task(task.id, TaskPatch(name="renamed"))

    assert updated.name == "renamed"
    for field in ("list_id", "description", "date", "deadline", "priority", "estimated_time",
                  "actual_time", "completed", "completed_at", "created_at"):
        assert getattr(updated, field) == getattr(task, field), field


def test_patch_can_clear_nullable_fields(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x", date=1000, deadline=2000)
    updated = repo.update_task(task.id, TaskPatch(date=None, deadline=None))
    assert updated.date is None
    assert updated.deadline is None


def test_update_task_appends_updated_log(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    repo.update_task(task.id, TaskPatch(completed=True, estimated_time="2h"))

    logs = repo.list_task_logs(task.id)
    assert [entry.action for entry in logs] == [TaskAction.CREATED, TaskAction.UPDATED]
    assert json.loads(logs[1].changes) == {"completed": True, "estimatedTime": "2h"}


def test_update_or_delete_missing_task_is_not_found(repo: Repository) -> None:
    with pytest.raises(NotFound):
        repo.update_task("missing", TaskPatch(name="x"))
    with pytest.raises(NotFound):
        repo.delete_task("missing")


def test_subtasks_crud_and_completion(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    s1 = repo.create_subtask(task.id, "one")
    s2 = repo.create_subtask(task.id, "two")

    assert [s.id for s in repo.list_subtasks(task.id)] == [s1.id, s2.id]

    done = repo.update_subtask(s1.id, SubtaskPatch(completed=True))
    assert done.completed and done.completed_at is not None
    assert done.name == "one"

    undone = repo.update_subtask(s1.id, SubtaskPatch(completed=False))
    assert undone.completed_at is None

    repo.delete_subtask(s2.id)
    assert [s.id for s in repo.list_subtasks(task.id)] == [s1.id]

    with pytest.raises(NotFound):
        repo.delete_subtask(s2.id)
    with pytest.raises(ValidationError):
        repo.create_subtask(task.id, " ")


def test_rename_subtask_keeps_completion(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    sub = repo.create_subtask(task.id, "one")
    done = repo.update_subtask(sub.id, SubtaskPatch(completed=True))

    renamed = repo.update_subtask(sub.id, SubtaskPatch(name="renamed"))

    assert renamed.name == "renamed"
    assert renamed.completed is True
    assert renamed.completed_at == done.completed_at
    assert renamed.task_id == task.id
    with pytest.raises(ValidationError):
        repo.update_subtask(sub.id, SubtaskPatch(name=""))
    with pytest.raises(NotFound):
        repo.update_subtask("missing", SubtaskPatch(name="x"))


def test_toggle_subtask_then_delete_parent_removes_subtask(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    sub = repo.create_subtask(task.id, "one")
    repo.update_subtask(sub.id, SubtaskPatch(completed=True))

    repo.delete_task(task.id)

    assert repo.list_subtasks(task.id) == []
    assert repo.list_subtasks(ALL_SUBTASKS) == []


def test_task_label_create_is_idempotent(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    label = repo.create_label("home", "#0f0", "H")

    first = repo.create_task_label(task.id, label.id)
    second = repo.create_task_label(task.id, label.id)

    assert first == second
    assert len(repo.list_task_labels(task.id)) == 1


def test_delete_absent_task_label_is_a_noop(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    label = repo.create_label("home", "#0f0", "H")

    repo.delete_task_label(task.id, label.id)
    assert repo.list_task_labels() == []


def test_delete_label_cascades_only_associations(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")
    label = repo.create_label("home", "#0f0", "H")
    repo.create_task_label(task.id, label.id)

    repo.delete_label(label.id)

    assert repo.list_task_labels() == []
    assert repo.get_task(task.id).id == task.id
    with pytest.raises(NotFound):
        repo.get_label(label.id)


def test_update_label_changes_only_given_fields(repo: Repository) -> None:
    label = repo.create_label("home", "#0f0", "H")

    updated = repo.update_label(label.id, LabelPatch(name="house"))

    assert updated.name == "house"
    assert updated.color == label.color
    assert updated.emoji == label.emoji
    assert updated.created_at == label.created_at
    assert updated.updated_at >= label.updated_at
    assert repo.get_label(label.id) == updated

    with pytest.raises(ValidationError, match="name is required"):
        repo.update_label(label.id, LabelPatch(name=""))
    with pytest.raises(NotFound):
        repo.update_label("missing", LabelPatch(name="x"))


def test_reminders_crud_and_validation(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")

    first = repo.create_reminder(task.id, "notification", 15)
    second = repo.create_reminder(task.id, ReminderType.EMAIL, "0")

    assert first.type == ReminderType.NOTIFICATION
    assert first.minutes_before == 15
    assert second.minutes_before == 0
    assert [r.id for r in repo.list_reminders(task.id)] == [first.id, second.id]

    with pytest.raises(ValidationError, match="invalid reminder type"):
        repo.create_reminder(task.id, "sms", 5)
    with pytest.raises(ValidationError, match="minutesBefore"):
        repo.create_reminder(task.id, "email", -1)
    with pytest.raises(ValidationError, match="minutesBefore"):
        repo.create_reminder(task.id, "email", "soon")
    with pytest.raises(InternalError):
        repo.create_reminder("missing", "email", 5)

    repo.delete_reminder(first.id)
    assert [r.id for r in repo.list_reminders()] == [second.id]
    with pytest.raises(NotFound):
        repo.delete_reminder(first.id)


def test_attachments_crud_and_validation(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")

    att = repo.create_attachment(task.id, "plan", "https://example.com/plan.pdf")

    assert repo.list_attachments(task.id) == [att]
    with pytest.raises(ValidationError, match="url is required"):
        repo.create_attachment(task.id, "plan", " ")

    repo.delete_attachment(att.id)
    assert repo.list_attachments() == []
    with pytest.raises(NotFound):
        repo.delete_attachment(att.id)


def test_recurrence_crud_and_validation(repo: Repository) -> None:
    task = repo.create_task(repo.default_list().id, "x")

    weekly = repo.create_recurrence(task.id, "weekly")
    custom = repo.create_recurrence(task.id, "custom", custom_rule="every 2 days", end_date=1000)

    assert weekly.type == RecurrenceType.WEEKLY
    assert weekly.custom_rule is None and weekly.end_date is None
    assert custom.custom_rule == "every 2 days"
    assert custom.end_date == 1000

    with pytest.raises(ValidationError, match="customRule is required"):
        repo.create_recurrence(task.id, "custom")
    with pytest.raises(ValidationError, match="invalid recurrence type"):
        repo.create_recurrence(task.id, "hourly")

    repo.delete_recurrence(weekly.id)
    assert [r.id for r in repo.list_recurrences(task.id)] == [custom.id]


def test_task_children_cascade_with_task_and_list(db: Database, repo: Repository) -> None:
    lst = _list(repo)
    kept = repo.create_task(lst.id, "kept")
    gone = repo.create_task(lst.id, "gone")
    for task in (kept, gone):
        repo.create_reminder(task.id, "notification", 10)
        repo.create_attachment(task.id, "doc", "https://example.com/doc")
        repo.create_recurrence(task.id, "daily")

    repo.delete_task(gone.id)

    assert [r.task_id for r in repo.list_reminders()] == [kept.id]
    assert [a.task_id for a in repo.list_attachments()] == [kept.id]
    assert [r.task_id for r in repo.list_recurrences()] == [kept.id]

    repo.delete_list(lst.id)

    for table in ("reminders", "attachments", "task_recurrence"):
        assert db.count_rows(table) == 0
