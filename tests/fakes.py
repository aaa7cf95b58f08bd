# tests/fakes.py

from __future__ import annotations

from typing import Any

from taskboard.errors import InternalError
from taskboard.storage.models import Priority, Subtask, Task


class FlakyRepo:
    """
    EntityRepo wrapper used by sync-layer tests.

    - Delegates to a real repository
    - Raises `error` from every method named in `fail`
    - Records call names for assertions
    """

    def __init__(self, inner: Any, *, fail: set[str] | None = None, error: Exception | None = None) -> None:
        self._inner = inner
        self.fail = set(fail or ())
        self.error = error or InternalError("storage failure: disk I/O error")
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            if name in self.fail:
                raise self.error
            return attr(*args, **kwargs)

        return call


def make_task(
    task_id: str,
    *,
    list_id: str = "L1",
    name: str | None = None,
    description: str = "",
    date: int | None = None,
    deadline: int | None = None,
    priority: Priority = Priority.NONE,
    completed: bool = False,
    created_at: int = 0,
) -> Task:
    return Task(
        id=task_id,
        list_id=list_id,
        name=name or task_id,
        description=description,
        date=date,
        deadline=deadline,
        priority=priority,
        estimated_time="",
        actual_time="",
        completed=completed,
        completed_at=created_at if completed else None,
        created_at=created_at,
        updated_at=created_at,
    )


def make_subtask(subtask_id: str, task_id: str, *, completed: bool = False) -> Subtask:
    return Subtask(
        id=subtask_id,
        task_id=task_id,
        name=subtask_id,
        completed=completed,
        completed_at=1 if completed else None,
        created_at=0,
    )
