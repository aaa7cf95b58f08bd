# src/taskboard/views/filters.py

"""
View/filter engine.

Pure functions only: given every task, the task-label associations and a
Selector, derive the visible tasks. No I/O, no clock reads unless now_ms is
omitted.

Precedence (first match wins, filters are not combined):
1. selected_label_id -> tasks carrying that label (view and list ignored)
2. selected_list_id  -> tasks in that list (view ignored)
3. time window for the view (today / next7days / upcoming / all)

Then: completion filter, then fuzzy search (relevance order).

Day boundaries use the local calendar day of the evaluating process.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from ..storage.models import Label, Task, TaskLabel, TodoList, now_ms as _clock
from .search import DEFAULT_THRESHOLD, Matcher, fuzzy_score, rank_by_query

DAY_MS = 86_400_000


class ViewType(StrEnum):
    TODAY = "today"
    NEXT_7_DAYS = "next7days"
    UPCOMING = "upcoming"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class Selector:
    view: ViewType = ViewType.TODAY
    selected_list_id: str | None = None
    selected_label_id: str | None = None
    show_completed: bool = True
    search_query: str = ""


def start_of_local_day(ts_ms: int) -> int:
    dt = datetime.fromtimestamp(ts_ms / 1000)
    midnight = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def window_bounds(view: ViewType, now_ms: int) -> tuple[int, int | None] | None:
    """
    Inclusive [lo, hi] bounds on Task.date for a view; hi=None means open.
    Returns None for ViewType.ALL (no time filter).
    """
    start = start_of_local_day(now_ms)
    if view == ViewType.TODAY:
        return start, start + DAY_MS - 1
    if view == ViewType.NEXT_7_DAYS:
        day = datetime.fromtimestamp(start / 1000) + timedelta(days=7)
        end = day.replace(hour=23, minute=59, second=59, microsecond=999_000)
        return start, int(end.timestamp() * 1000)
    if view == ViewType.UPCOMING:
        return start, None
    return None


def _in_window(task: Task, bounds: tuple[int, int | None]) -> bool:
    if task.date is None:
        return False
    lo, hi = bounds
    if task.date < lo:
        return False
    return hi is None or task.date <= hi


def filter_tasks(
    tasks: Sequence[Task],
    selector: Selector,
    *,
    task_labels: Iterable[TaskLabel] = (),
    now_ms: int | None = None,
    matcher: Matcher = fuzzy_score,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[Task]:
    if not tasks:
        return []

    if selector.selected_label_id:
        tagged = {tl.task_id for tl in task_labels if tl.label_id == selector.selected_label_id}
        visible = [t for t in tasks if t.id in tagged]
    elif selector.selected_list_id:
        visible = [t for t in tasks if t.list_id == selector.selected_list_id]
    else:
        bounds = window_bounds(ViewType(selector.view), _clock() if now_ms is None else now_ms)
        visible = list(tasks) if bounds is None else [t for t in tasks if _in_window(t, bounds)]

    if not selector.show_completed:
        visible = [t for t in visible if not t.completed]

    query = (selector.search_query or "").strip()
    if query:
        visible = rank_by_query(
            visible,
            query,
            lambda t: (t.name, t.description),
            matcher=matcher,
            threshold=threshold,
        )
    return visible


def view_title(
    selector: Selector,
    lists: Iterable[TodoList] = (),
    labels: Iterable[Label] = (),
) -> str:
    """Header text for the current selection."""
    if selector.selected_label_id:
        for label in labels:
            if label.id == selector.selected_label_id:
                return label.name
        return "Tasks"
    if selector.selected_list_id:
        for lst in lists:
            if lst.id == selector.selected_list_id:
                return lst.name
        return "Tasks"
    titles = {
        ViewType.TODAY: "Today",
        ViewType.NEXT_7_DAYS: "Next 7 Days",
        ViewType.UPCOMING: "Upcoming",
        ViewType.ALL: "All",
    }
    return titles[ViewType(selector.view)]
