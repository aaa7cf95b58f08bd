# src/taskboard/storage/repository.py

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from ..errors import Forbidden, NotFound, ValidationError, require
from .database import Database
from .models import (
    Attachment,
    Label,
    LabelPatch,
    ListPatch,
    Priority,
    RecurrenceType,
    Reminder,
    ReminderType,
    Subtask,
    SubtaskPatch,
    Task,
    TaskAction,
    TaskLabel,
    TaskLog,
    TaskPatch,
    TaskRecurrence,
    TodoList,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

# list_subtasks() selector returning every subtask (initial hydration).
ALL_SUBTASKS = "all"


class Repository:
    """
    CRUD per entity on top of Database.

    Every public method is one Database.transaction(): the write and its
    task_logs row either both land or neither does. Nothing is retried.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ---- row mapping ----

    @staticmethod
    def _row_to_list(row: sqlite3.Row) -> TodoList:
        return TodoList(
            id=str(row["id"]),
            name=str(row["name"]),
            color=str(row["color"]),
            emoji=str(row["emoji"]),
            is_default=bool(row["is_default"]),
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )

    @staticmethod
    def _row_to_label(row: sqlite3.Row) -> Label:
        return Label(
            id=str(row["id"]),
            name=str(row["name"]),
            color=str(row["color"]),
            emoji=str(row["emoji"]),
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            list_id=str(row["list_id"]),
            name=str(row["name"]),
            description=str(row["description"] or ""),
            date=int(row["date"]) if row["date"] is not None else None,
            deadline=int(row["deadline"]) if row["deadline"] is not None else None,
            priority=Priority.from_db(row["priority"]),
            estimated_time=str(row["estimated_time"] or ""),
            actual_time=str(row["actual_time"] or ""),
            completed=bool(row["completed"]),
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        return Subtask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            name=str(row["name"]),
            completed=bool(row["completed"]),
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
            created_at=int(row["created_at"]),
        )

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            type=ReminderType(row["type"]),
            minutes_before=int(row["minutes_before"]),
            created_at=int(row["created_at"]),
        )

    @staticmethod
    def _row_to_attachment(row: sqlite3.Row) -> Attachment:
        return Attachment(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            name=str(row["name"]),
            url=str(row["url"]),
            created_at=int(row["created_at"]),
        )

    @staticmethod
    def _row_to_recurrence(row: sqlite3.Row) -> TaskRecurrence:
        return TaskRecurrence(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            type=RecurrenceType(row["type"]),
            custom_rule=row["custom_rule"],
            end_date=int(row["end_date"]) if row["end_date"] is not None else None,
            created_at=int(row["created_at"]),
        )

    @staticmethod
    def _row_to_task_log(row: sqlite3.Row) -> TaskLog:
        return TaskLog(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            action=TaskAction(row["action"]),
            changes=str(row["changes"] or "{}"),
            created_at=int(row["created_at"]),
        )

    # ---- shared helpers ----

    @staticmethod
    def _fetch_one(conn: sqlite3.Connection, table: str, entity_id: str, what: str) -> sqlite3.Row:
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (entity_id,)).fetchone()
        if row is None:
            raise NotFound(f"{what} not found: {entity_id}")
        return row

    @staticmethod
    def _changes_to_str(changes: dict[str, Any]) -> str:
        return json.dumps(changes, ensure_ascii=False, default=str)

    @staticmethod
    def _append_log(
        conn: sqlite3.Connection,
        task_id: str,
        action: TaskAction,
        changes: dict[str, Any],
        ts: int,
    ) -> None:
        conn.execute(
            "INSERT INTO task_logs(id, task_id, action, changes, created_at) VALUES (?, ?, ?, ?, ?)",
            (new_id(), task_id, action.value, Repository._changes_to_str(changes), ts),
        )

    @staticmethod
    def _check_named_patch(patch: ListPatch | LabelPatch) -> dict[str, Any]:
        present = patch.present()
        for key in ("name", "color", "emoji"):
            if key in present:
                require(present[key], key)
        return present

    @staticmethod
    def _priority(raw: Priority | str | None) -> Priority:
        if raw is None or raw == "":
            return Priority.NONE
        try:
            return Priority(raw)
        except ValueError as exc:
            raise ValidationError(f"invalid priority: {raw!r}") from exc

    @staticmethod
    def _completion(
        present: dict[str, Any], was_completed: bool, old_completed_at: int | None, ts: int
    ) -> None:
        """
        Rewrite present["completed"] into (completed, completed_at).

        completed_at is stamped on false->true, cleared on true->false, kept
        as-is when the state does not change.
        """
        if "completed" not in present:
            return
        completed = bool(present["completed"])
        present["completed"] = 1 if completed else 0
        if completed and not was_completed:
            present["completed_at"] = ts
        elif not completed:
            present["completed_at"] = None
        else:
            present["completed_at"] = old_completed_at

    @staticmethod
    def _apply_update(
        conn: sqlite3.Connection, table: str, entity_id: str, present: dict[str, Any]
    ) -> None:
        if not present:
            return
        sets = ", ".join(f"{col} = ?" for col in present)
        conn.execute(f"UPDATE {table} SET {sets} WHERE id = ?", (*present.values(), entity_id))

    # ---- lists ----

    def list_lists(self) -> list[TodoList]:
        with self._db.transaction() as conn:
            rows = conn.execute("SELECT * FROM lists ORDER BY name ASC, created_at ASC").fetchall()
            return [self._row_to_list(r) for r in rows]

    def get_list(self, list_id: str) -> TodoList:
        with self._db.transaction() as conn:
            return self._row_to_list(self._fetch_one(conn, "lists", list_id, "List"))

    def default_list(self) -> TodoList:
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM lists WHERE is_default = 1 ORDER BY created_at ASC LIMIT 1"
            ).fetchone()
        if row is None:
            # Only reachable if the file was edited behind our back.
            return self.get_list(self._db.ensure_default_list())
        return self._row_to_list(row)

    def create_list(self, name: str, color: str, emoji: str) -> TodoList:
        require(name, "name")
        require(color, "color")
        require(emoji, "emoji")

        list_id = new_id()
        ts = now_ms()
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO lists(id, name, color, emoji, is_default, created_at, updated_at)
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (list_id, name, color, emoji, ts, ts),
            )
            row = self._fetch_one(conn, "lists", list_id, "List")
        logger.debug("List created id=%s name=%s", list_id, name)
        return self._row_to_list(row)

    def update_list(self, list_id: str, patch: ListPatch) -> TodoList:
        present = self._check_named_patch(patch)
        present["updated_at"] = now_ms()
        with self._db.transaction() as conn:
            self._fetch_one(conn, "lists", list_id, "List")
            self._apply_update(conn, "lists", list_id, present)
            row = self._fetch_one(conn, "lists", list_id, "List")
        logger.debug("List updated id=%s fields=%s", list_id, sorted(present))
        return self._row_to_list(row)

    def delete_list(self, list_id: str) -> None:
        with self._db.transaction() as conn:
            row = self._fetch_one(conn, "lists", list_id, "List")
            if row["is_default"]:
                raise Forbidden("Cannot delete the inbox list")
            conn.execute("DELETE FROM lists WHERE id = ?", (list_id,))
        logger.debug("List deleted id=%s", list_id)

    # ---- tasks ----

    def list_tasks(self, list_id: str | None = None) -> list[Task]:
        sql = "SELECT * FROM tasks"
        params: tuple[Any, ...] = ()
        if list_id:
            sql += " WHERE list_id = ?"
            params = (list_id,)
        sql += " ORDER BY created_at DESC, rowid DESC"
        with self._db.transaction() as conn:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]

    def get_task(self, task_id: str) -> Task:
        with self._db.transaction() as conn:
            return self._row_to_task(self._fetch_one(conn, "tasks", task_id, "Task"))

    def create_task(
        self,
        list_id: str | None,
        name: str | None,
        *,
        description: str | None = None,
        date: int | None = None,
        deadline: int | None = None,
        priority: Priority | str | None = None,
        estimated_time: str | None = None,
        actual_time: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Task:
        """
        Insert a task plus its "created" log entry.

        payload is the raw request body recorded in the log; when omitted the
        provided arguments are recorded in wire form instead.
        """
        require(list_id, "listId")
        require(name, "name")
        prio = self._priority(priority)

        if payload is None:
            payload = {"listId": list_id, "name": name}
            optional = {
                "description": description,
                "date": date,
                "deadline": deadline,
                "priority": priority,
                "estimatedTime": estimated_time,
                "actualTime": actual_time,
            }
            payload.update({k: v for k, v in optional.items() if v is not None})

        task_id = new_id()
        ts = now_ms()
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, list_id, name, description, date, deadline, priority,
                    estimated_time, actual_time, completed, completed_at,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)
                """,
                (
                    task_id,
                    list_id,
                    name,
                    description or "",
                    date,
                    deadline,
                    prio.value,
                    estimated_time or "",
                    actual_time or "",
                    ts,
                    ts,
                ),
            )
            self._append_log(conn, task_id, TaskAction.CREATED, payload, ts)
            row = self._fetch_one(conn, "tasks", task_id, "Task")
        logger.debug("Task created id=%s list=%s", task_id, list_id)
        return self._row_to_task(row)

    def update_task(self, task_id: str, patch: TaskPatch) -> Task:
        present = patch.present()
        if "name" in present:
            require(present["name"], "name")
        if "priority" in present:
            present["priority"] = self._priority(present["priority"]).value
        for key in ("description", "estimated_time", "actual_time"):
            if key in present and present[key] is None:
                present[key] = ""

        ts = now_ms()
        with self._db.transaction() as conn:
            old = self._fetch_one(conn, "tasks", task_id, "Task")
            self._completion(present, bool(old["completed"]), old["completed_at"], ts)
            present["updated_at"] = ts
            self._apply_update(conn, "tasks", task_id, present)
            self._append_log(conn, task_id, TaskAction.UPDATED, patch.to_payload(), ts)
            row = self._fetch_one(conn, "tasks", task_id, "Task")
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(patch.present()))
        return self._row_to_task(row)

    def delete_task(self, task_id: str) -> None:
        with self._db.transaction() as conn:
            self._fetch_one(conn, "tasks", task_id, "Task")
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        logger.debug("Task deleted id=%s", task_id)

    # ---- subtasks ----

    def list_subtasks(self, task_id: str) -> list[Subtask]:
        require(task_id, "taskId")
        with self._db.transaction() as conn:
            if task_id == ALL_SUBTASKS:
                rows = conn.execute(
                    "SELECT * FROM subtasks ORDER BY created_at ASC, rowid ASC"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM subtasks WHERE task_id = ? ORDER BY created_at ASC, rowid ASC",
                    (task_id,),
                ).fetchall()
            return [self._row_to_subtask(r) for r in rows]

    def create_subtask(self, task_id: str | None, name: str | None) -> Subtask:
        require(task_id, "taskId")
        require(name, "name")

        subtask_id = new_id()
        ts = now_ms()
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO subtasks(id, task_id, name, completed, completed_at, created_at)
                VALUES (?, ?, ?, 0, NULL, ?)
                """,
                (subtask_id, task_id, name, ts),
            )
            row = self._fetch_one(conn, "subtasks", subtask_id, "Subtask")
        logger.debug("Subtask created id=%s task=%s", subtask_id, task_id)
        return self._row_to_subtask(row)

    def update_subtask(self, subtask_id: str, patch: SubtaskPatch) -> Subtask:
        present = patch.present()
        if "name" in present:
            require(present["name"], "name")

        ts = now_ms()
        with self._db.transaction() as conn:
            old = self._fetch_one(conn, "subtasks", subtask_id, "Subtask")
            self._completion(present, bool(old["completed"]), old["completed_at"], ts)
            self._apply_update(conn, "subtasks", subtask_id, present)
            row = self._fetch_one(conn, "subtasks", subtask_id, "Subtask")
        logger.debug("Subtask updated id=%s fields=%s", subtask_id, sorted(patch.present()))
        return self._row_to_subtask(row)

    def delete_subtask(self, subtask_id: str) -> None:
        with self._db.transaction() as conn:
            self._fetch_one(conn, "subtasks", subtask_id, "Subtask")
            conn.execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,))
        logger.debug("Subtask deleted id=%s", subtask_id)

    # ---- labels ----

    def list_labels(self) -> list[Label]:
        with self._db.transaction() as conn:
            rows = conn.execute("SELECT * FROM labels ORDER BY name ASC, created_at ASC").fetchall()
            return [self._row_to_label(r) for r in rows]

    def get_label(self, label_id: str) -> Label:
        with self._db.transaction() as conn:
            return self._row_to_label(self._fetch_one(conn, "labels", label_id, "Label"))

    def create_label(self, name: str, color: str, emoji: str) -> Label:
        require(name, "name")
        require(color, "color")
        require(emoji, "emoji")

        label_id = new_id()
        ts = now_ms()
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO labels(id, name, color, emoji, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (label_id, name, color, emoji, ts, ts),
            )
            row = self._fetch_one(conn, "labels", label_id, "Label")
        logger.debug("Label created id=%s name=%s", label_id, name)
        return self._row_to_label(row)

    def update_label(self, label_id: str, patch: LabelPatch) -> Label:
        present = self._check_named_patch(patch)
        present["updated_at"] = now_ms()
        with self._db.transaction() as conn:
            self._fetch_one(conn, "labels", label_id, "Label")
            self._apply_update(conn, "labels", label_id, present)
            row = self._fetch_one(conn, "labels", label_id, "Label")
        logger.debug("Label updated id=%s fields=%s", label_id, sorted(present))
        return self._row_to_label(row)

    def delete_label(self, label_id: str) -> None:
        with self._db.transaction() as conn:
            self._fetch_one(conn, "labels", label_id, "Label")
            conn.execute("DELETE FROM labels WHERE id = ?", (label_id,))
        logger.debug("Label deleted id=%s", label_id)

    # ---- task labels ----

    def list_task_labels(self, task_id: str | None = None) -> list[TaskLabel]:
        sql = "SELECT task_id, label_id FROM task_labels"
        params: tuple[Any, ...] = ()
        if task_id:
            sql += " WHERE task_id = ?"
            params = (task_id,)
        sql += " ORDER BY rowid ASC"
        with self._db.transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [TaskLabel(task_id=str(r["task_id"]), label_id=str(r["label_id"])) for r in rows]

    def create_task_label(self, task_id: str | None, label_id: str | None) -> TaskLabel:
        """Attach a label to a task; an existing pair is returned as-is."""
        require(task_id, "taskId")
        require(label_id, "labelId")
        with self._db.transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM task_labels WHERE task_id = ? AND label_id = ?",
                (task_id, label_id),
            ).fetchone()
            if existing is None:
                conn.execute(
                    "INSERT INTO task_labels(task_id, label_id) VALUES (?, ?)",
                    (task_id, label_id),
                )
                logger.debug("TaskLabel created task=%s label=%s", task_id, label_id)
        return TaskLabel(task_id=str(task_id), label_id=str(label_id))

    def delete_task_label(self, task_id: str, label_id: str) -> None:
        require(task_id, "taskId")
        require(label_id, "labelId")
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM task_labels WHERE task_id = ? AND label_id = ?",
                (task_id, label_id),
            )
        logger.debug("TaskLabel deleted task=%s label=%s", task_id, label_id)

    # ---- task logs (read-only) ----

    def list_task_logs(self, task_id: str) -> list[TaskLog]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM task_logs WHERE task_id = ? ORDER BY created_at ASC, rowid ASC",
                (task_id,),
            ).fetchall()
            return [self._row_to_task_log(r) for r in rows]

    # ---- per-task children (reminders, attachments, recurrence) ----

    def _list_children(self, table: str, task_id: str | None) -> list[sqlite3.Row]:
        sql = f"SELECT * FROM {table}"
        params: tuple[Any, ...] = ()
        if task_id:
            sql += " WHERE task_id = ?"
            params = (task_id,)
        sql += " ORDER BY created_at ASC, rowid ASC"
        with self._db.transaction() as conn:
            return conn.execute(sql, params).fetchall()

    def _insert_child(self, table: str, what: str, values: dict[str, Any]) -> sqlite3.Row:
        child_id = new_id()
        row_values = {"id": child_id, **values, "created_at": now_ms()}
        cols = ", ".join(row_values)
        marks = ", ".join("?" for _ in row_values)
        with self._db.transaction() as conn:
            conn.execute(f"INSERT INTO {table}({cols}) VALUES ({marks})", tuple(row_values.values()))
            row = self._fetch_one(conn, table, child_id, what)
        logger.debug("%s created id=%s task=%s", what, child_id, values.get("task_id"))
        return row

    def _delete_child(self, table: str, what: str, child_id: str) -> None:
        with self._db.transaction() as conn:
            self._fetch_one(conn, table, child_id, what)
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (child_id,))
        logger.debug("%s deleted id=%s", what, child_id)

    def list_reminders(self, task_id: str | None = None) -> list[Reminder]:
        return [self._row_to_reminder(r) for r in self._list_children("reminders", task_id)]

    def create_reminder(
        self,
        task_id: str | None,
        reminder_type: ReminderType | str | None,
        minutes_before: int | str | None,
    ) -> Reminder:
        require(task_id, "taskId")
        require(reminder_type, "type")
        require(minutes_before, "minutesBefore")
        try:
            kind = ReminderType(reminder_type)
        except ValueError as exc:
            raise ValidationError(f"invalid reminder type: {reminder_type!r}") from exc
        try:
            minutes = int(minutes_before)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"invalid minutesBefore: {minutes_before!r}") from exc
        if minutes < 0:
            raise ValidationError("minutesBefore must be >= 0")

        row = self._insert_child(
            "reminders",
            "Reminder",
            {"task_id": task_id, "type": kind.value, "minutes_before": minutes},
        )
        return self._row_to_reminder(row)

    def delete_reminder(self, reminder_id: str) -> None:
        self._delete_child("reminders", "Reminder", reminder_id)

    def list_attachments(self, task_id: str | None = None) -> list[Attachment]:
        return [self._row_to_attachment(r) for r in self._list_children("attachments", task_id)]

    def create_attachment(self, task_id: str | None, name: str | None, url: str | None) -> Attachment:
        require(task_id, "taskId")
        require(name, "name")
        require(url, "url")
        row = self._insert_child(
            "attachments", "Attachment", {"task_id": task_id, "name": name, "url": url}
        )
        return self._row_to_attachment(row)

    def delete_attachment(self, attachment_id: str) -> None:
        self._delete_child("attachments", "Attachment", attachment_id)

    def list_recurrences(self, task_id: str | None = None) -> list[TaskRecurrence]:
        return [self._row_to_recurrence(r) for r in self._list_children("task_recurrence", task_id)]

    def create_recurrence(
        self,
        task_id: str | None,
        recurrence_type: RecurrenceType | str | None,
        *,
        custom_rule: str | None = None,
        end_date: int | None = None,
    ) -> TaskRecurrence:
        require(task_id, "taskId")
        require(recurrence_type, "type")
        try:
            kind = RecurrenceType(recurrence_type)
        except ValueError as exc:
            raise ValidationError(f"invalid recurrence type: {recurrence_type!r}") from exc
        if kind == RecurrenceType.CUSTOM:
            require(custom_rule, "customRule")

        row = self._insert_child(
            "task_recurrence",
            "Recurrence",
            {
                "task_id": task_id,
                "type": kind.value,
                "custom_rule": custom_rule or None,
                "end_date": end_date,
            },
        )
        return self._row_to_recurrence(row)

    def delete_recurrence(self, recurrence_id: str) -> None:
        self._delete_child("task_recurrence", "Recurrence", recurrence_id)
