# src/taskboard/client/sync.py

from __future__ import annotations

"""
Two-phase mutations between the ClientStore and an EntityRepo.

Each mutation:
- applies the change to the store immediately (optimistic),
- commits it through the repository in a worker thread,
- returns a MutationResult.

On failure the error is pushed to the store as a notification and the caller
decides whether to call result.revert(). Nothing is retried, and concurrent
mutations are not sequenced: whichever local update ran last is what the
store shows.

Creates are the exception to "apply first": ids and timestamps come from the
repository, so the record is added once the repository returns it.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.ports import EntityRepo
from ..errors import Forbidden, InternalError, NotFound, TaskBoardError
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
from ..storage.repository import ALL_SUBTASKS
from .store import ClientStore, Removed

logger = logging.getLogger(__name__)


def _noop() -> None:
    return


@dataclass(slots=True)
class MutationResult:
    ok: bool
    value: Any = None
    error: TaskBoardError | None = None
    revert: Callable[[], None] = _noop


class TaskBoardClient:
    def __init__(self, store: ClientStore, repo: EntityRepo) -> None:
        self.store = store
        self.repo = repo

    # ---- plumbing ----

    async def _commit(
        self,
        what: str,
        call: Callable[[], Any],
        revert: Callable[[], None] = _noop,
        on_success: Callable[[Any], None] | None = None,
    ) -> MutationResult:
        try:
            value = await asyncio.to_thread(call)
        except TaskBoardError as exc:
            logger.warning("%s failed (%s): %s", what, exc.category, exc.message)
            self.store.notify(f"Failed to {what}: {exc.message}")
            return MutationResult(ok=False, error=exc, revert=revert)
        except Exception as exc:
            logger.exception("%s crashed", what)
            err = InternalError(str(exc) or exc.__class__.__name__)
            self.store.notify(f"Failed to {what}")
            return MutationResult(ok=False, error=err, revert=revert)

        if on_success is not None:
            on_success(value)
        return MutationResult(ok=True, value=value, revert=revert)

    def _missing(self, what: str, entity_id: str) -> MutationResult:
        err = NotFound(f"{what} not found: {entity_id}")
        self.store.notify(err.message)
        return MutationResult(ok=False, error=err)

    def _restore(self, removed: Removed) -> Callable[[], None]:
        return lambda: self.store.restore(removed)

    # ---- hydration ----

    async def hydrate(self) -> None:
        """
        Load every collection concurrently.

        Lists, tasks and labels are required: failures are logged and
        notified. Subtasks, task labels, reminders, attachments and
        recurrences are optional: a failure leaves the collection empty.
        """
        self.store.set_loading(True)
        try:
            (
                lists,
                tasks,
                labels,
                subtasks,
                task_labels,
                reminders,
                attachments,
                recurrences,
            ) = await asyncio.gather(
                asyncio.to_thread(self.repo.list_lists),
                asyncio.to_thread(self.repo.list_tasks),
                asyncio.to_thread(self.repo.list_labels),
                asyncio.to_thread(self.repo.list_subtasks, ALL_SUBTASKS),
                asyncio.to_thread(self.repo.list_task_labels),
                asyncio.to_thread(self.repo.list_reminders),
                asyncio.to_thread(self.repo.list_attachments),
                asyncio.to_thread(self.repo.list_recurrences),
                return_exceptions=True,
            )

            for name, value, setter in (
                ("lists", lists, self.store.set_lists),
                ("tasks", tasks, self.store.set_tasks),
                ("labels", labels, self.store.set_labels),
            ):
                if isinstance(value, BaseException):
                    logger.error("Failed to load %s", name, exc_info=value)
                    self.store.notify(f"Failed to load {name}")
                else:
                    setter(value)

            for name, value, setter in (
                ("subtasks", subtasks, self.store.set_subtasks),
                ("task labels", task_labels, self.store.set_task_labels),
                ("reminders", reminders, self.store.set_reminders),
                ("attachments", attachments, self.store.set_attachments),
                ("recurrences", recurrences, self.store.set_recurrences),
            ):
                if isinstance(value, BaseException):
                    logger.debug("Optional %s not loaded: %r", name, value)
                elif isinstance(value, list):
                    setter(value)
        finally:
            self.store.set_loading(False)

        logger.info(
            "Hydrated lists=%d tasks=%d labels=%d subtasks=%d task_labels=%d",
            len(self.store.lists),
            len(self.store.tasks),
            len(self.store.labels),
            len(self.store.subtasks),
            len(self.store.task_labels),
        )

    # ---- lists ----

    async def create_list(self, name: str, color: str, emoji: str) -> MutationResult:
        def added(lst: TodoList) -> None:
            self.store.add_list(lst)

        return await self._commit(
            "create list",
            lambda: self.repo.create_list(name, color, emoji),
            on_success=added,
        )

    async def update_list(self, list_id: str, patch: ListPatch) -> MutationResult:
        prev = self.store.update_list(list_id, patch)

        def revert() -> None:
            if prev is not None:
                self.store.upsert_list(prev)

        return await self._commit(
            "update list",
            lambda: self.repo.update_list(list_id, patch),
            revert,
            self.store.upsert_list,
        )

    async def delete_list(self, list_id: str) -> MutationResult:
        lst = self.store.get_list(list_id)
        if lst is not None and lst.is_default:
            err = Forbidden("Cannot delete the inbox list")
            self.store.notify(err.message)
            return MutationResult(ok=False, error=err)

        removed = self.store.delete_list(list_id)
        return await self._commit(
            "delete list", lambda: self.repo.delete_list(list_id), self._restore(removed)
        )

    # ---- tasks ----

    async def create_task(self, list_id: str, name: str, **fields: Any) -> MutationResult:
        def added(task: Task) -> None:
            self.store.add_task(task)

        return await self._commit(
            "create task",
            lambda: self.repo.create_task(list_id, name, **fields),
            on_success=added,
        )

    async def update_task(self, task_id: str, patch: TaskPatch) -> MutationResult:
        prev = self.store.update_task(task_id, patch)

        def revert() -> None:
            if prev is not None:
                self.store.upsert_task(prev)

        return await self._commit(
            "update task",
            lambda: self.repo.update_task(task_id, patch),
            revert,
            self.store.upsert_task,
        )

    async def toggle_task(self, task_id: str) -> MutationResult:
        prev = self.store.toggle_task_completion(task_id)
        if prev is None:
            return self._missing("Task", task_id)

        patch = TaskPatch(completed=not prev.completed)
        return await self._commit(
            "update task",
            lambda: self.repo.update_task(task_id, patch),
            lambda: self.store.upsert_task(prev),
            self.store.upsert_task,
        )

    async def delete_task(self, task_id: str) -> MutationResult:
        removed = self.store.delete_task(task_id)
        return await self._commit(
            "delete task", lambda: self.repo.delete_task(task_id), self._restore(removed)
        )

    # ---- subtasks ----

    async def create_subtask(self, task_id: str, name: str) -> MutationResult:
        def added(subtask: Subtask) -> None:
            self.store.add_subtask(subtask)

        return await self._commit(
            "create subtask",
            lambda: self.repo.create_subtask(task_id, name),
            on_success=added,
        )

    async def update_subtask(self, subtask_id: str, patch: SubtaskPatch) -> MutationResult:
        prev = self.store.update_subtask(subtask_id, patch)

        def revert() -> None:
            if prev is not None:
                self.store.upsert_subtask(prev)

        return await self._commit(
            "update subtask",
            lambda: self.repo.update_subtask(subtask_id, patch),
            revert,
            self.store.upsert_subtask,
        )

    async def toggle_subtask(self, subtask_id: str) -> MutationResult:
        prev = self.store.toggle_subtask_completion(subtask_id)
        if prev is None:
            return self._missing("Subtask", subtask_id)

        patch = SubtaskPatch(completed=not prev.completed)
        return await self._commit(
            "update subtask",
            lambda: self.repo.update_subtask(subtask_id, patch),
            lambda: self.store.upsert_subtask(prev),
            self.store.upsert_subtask,
        )

    async def delete_subtask(self, subtask_id: str) -> MutationResult:
        removed = self.store.delete_subtask(subtask_id)
        return await self._commit(
            "delete subtask", lambda: self.repo.delete_subtask(subtask_id), self._restore(removed)
        )

    # ---- labels ----

    async def create_label(self, name: str, color: str, emoji: str) -> MutationResult:
        def added(label: Label) -> None:
            self.store.add_label(label)

        return await self._commit(
            "create label",
            lambda: self.repo.create_label(name, color, emoji),
            on_success=added,
        )

    async def update_label(self, label_id: str, patch: LabelPatch) -> MutationResult:
        prev = self.store.update_label(label_id, patch)

        def revert() -> None:
            if prev is not None:
                self.store.upsert_label(prev)

        return await self._commit(
            "update label",
            lambda: self.repo.update_label(label_id, patch),
            revert,
            self.store.upsert_label,
        )

    async def delete_label(self, label_id: str) -> MutationResult:
        removed = self.store.delete_label(label_id)
        return await self._commit(
            "delete label", lambda: self.repo.delete_label(label_id), self._restore(removed)
        )

    # ---- task labels ----

    async def add_label(self, task_id: str, label_id: str) -> MutationResult:
        pair = TaskLabel(task_id=task_id, label_id=label_id)
        inserted = self.store.add_task_label(pair)

        def revert() -> None:
            if inserted:
                self.store.delete_task_label(task_id, label_id)

        return await self._commit(
            "add label",
            lambda: self.repo.create_task_label(task_id, label_id),
            revert,
        )

    async def remove_label(self, task_id: str, label_id: str) -> MutationResult:
        removed = self.store.delete_task_label(task_id, label_id)
        return await self._commit(
            "remove label",
            lambda: self.repo.delete_task_label(task_id, label_id),
            self._restore(removed),
        )

    # ---- reminders / attachments / recurrence ----

    async def create_reminder(
        self, task_id: str, reminder_type: str, minutes_before: int | str
    ) -> MutationResult:
        def added(reminder: Reminder) -> None:
            self.store.add_reminder(reminder)

        return await self._commit(
            "create reminder",
            lambda: self.repo.create_reminder(task_id, reminder_type, minutes_before),
            on_success=added,
        )

    async def delete_reminder(self, reminder_id: str) -> MutationResult:
        removed = self.store.delete_reminder(reminder_id)
        return await self._commit(
            "delete reminder",
            lambda: self.repo.delete_reminder(reminder_id),
            self._restore(removed),
        )

    async def create_attachment(self, task_id: str, name: str, url: str) -> MutationResult:
        def added(attachment: Attachment) -> None:
            self.store.add_attachment(attachment)

        return await self._commit(
            "create attachment",
            lambda: self.repo.create_attachment(task_id, name, url),
            on_success=added,
        )

    async def delete_attachment(self, attachment_id: str) -> MutationResult:
        removed = self.store.delete_attachment(attachment_id)
        return await self._commit(
            "delete attachment",
            lambda: self.repo.delete_attachment(attachment_id),
            self._restore(removed),
        )

    async def create_recurrence(
        self,
        task_id: str,
        recurrence_type: str,
        *,
        custom_rule: str | None = None,
        end_date: int | None = None,
    ) -> MutationResult:
        def added(recurrence: TaskRecurrence) -> None:
            self.store.add_recurrence(recurrence)

        return await self._commit(
            "create recurrence",
            lambda: self.repo.create_recurrence(
                task_id, recurrence_type, custom_rule=custom_rule, end_date=end_date
            ),
            on_success=added,
        )

    async def delete_recurrence(self, recurrence_id: str) -> MutationResult:
        removed = self.store.delete_recurrence(recurrence_id)
        return await self._commit(
            "delete recurrence",
            lambda: self.repo.delete_recurrence(recurrence_id),
            self._restore(removed),
        )

    # ---- task logs (read-only) ----

    async def load_task_logs(self, task_id: str) -> MutationResult:
        """Replace the store's log entries for one task with the repository's."""

        def loaded(logs: list[TaskLog]) -> None:
            others = [log for log in self.store.task_logs if log.task_id != task_id]
            self.store.set_task_logs(others + logs)

        return await self._commit(
            "load history", lambda: self.repo.list_task_logs(task_id), on_success=loaded
        )
