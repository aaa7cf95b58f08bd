# src/taskboard/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Coroutine, Sequence
from datetime import datetime, timedelta
from typing import Any, TypeVar, cast

from ..client.sync import MutationResult
from ..core.state import AppState
from ..storage.models import Label, ListPatch, Priority, Task, TodoList, now_ms
from ..views.filters import ViewType, start_of_local_day

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

N = TypeVar("N", TodoList, Label)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _run(coro: Coroutine[Any, Any, MutationResult]) -> MutationResult:
    """
    Run one two-phase mutation to completion.

    The console is the caller of the mutation, so on failure it is the one
    that applies the compensating local change.
    """
    result = asyncio.run(coro)
    if not result.ok:
        result.revert()
    return result


def _failed(result: MutationResult) -> str:
    err = result.error
    return f"Error ({err.category}): {err.message}" if err is not None else "Error."


def _fmt_day(ts: int | None) -> str:
    if ts is None:
        return ""
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d")


def _parse_day(token: str) -> int | None:
    """@today / @tomorrow / @YYYY-MM-DD -> local midnight in ms."""
    word = token.lower()
    today = start_of_local_day(now_ms())
    if word == "today":
        return today
    if word == "tomorrow":
        day = datetime.fromtimestamp(today / 1000) + timedelta(days=1)
        return int(day.timestamp() * 1000)
    try:
        day = datetime.strptime(token, "%Y-%m-%d")
    except ValueError:
        return None
    return int(day.timestamp() * 1000)


def _find_named(items: Sequence[N], token: str) -> N | None:
    """Match by case-insensitive name, then by id prefix."""
    t = token.strip().lower()
    if not t:
        return None
    for item in items:
        if item.name.lower() == t:
            return item
    for item in items:
        if item.id.startswith(token):
            return item
    return None


def _visible_task(state: AppState, token: str) -> Task | None:
    """Resolve a 1-based index into the visible list, or a task id prefix."""
    visible = state.store.visible_tasks()
    if token.isdigit():
        i = int(token) - 1
        return visible[i] if 0 <= i < len(visible) else None
    for task in state.store.tasks:
        if task.id.startswith(token):
            return task
    return None


def _format_task(state: AppState, index: int, task: Task) -> str:
    box = "[x]" if task.completed else "[ ]"
    parts = [f"{index:>3}. {box} {task.name}"]
    if task.priority != Priority.NONE:
        parts.append(f"!{task.priority.value}")
    if task.date is not None:
        parts.append(f"@{_fmt_day(task.date)}")
    if task.is_overdue():
        parts.append(f"(overdue since {_fmt_day(task.deadline)})")
    done, total = state.store.subtask_progress(task.id)
    if total:
        parts.append(f"[{done}/{total}]")
    labels = state.store.labels_for(task.id)
    if labels:
        parts.append(" ".join(f"#{label.name}" for label in labels))
    return " ".join(parts)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tasks(state: AppState, args: list[str]) -> str:
    store = state.store
    visible = store.visible_tasks()
    header = f"{store.title()} ({len(visible)})"
    if store.search_query:
        header += f" matching '{store.search_query}'"
    if not visible:
        empty = "No tasks found matching your search" if store.search_query else "No tasks yet"
        return f"{header}\n  {empty}"
    lines = [header]
    for i, task in enumerate(visible, start=1):
        lines.append(_format_task(state, i, task))
    return "\n".join(lines)


def cmd_lists(state: AppState, args: list[str]) -> str:
    lines = ["Lists:"]
    for lst in state.store.lists:
        count = sum(1 for t in state.store.tasks if t.list_id == lst.id and not t.completed)
        mark = "*" if lst.id == state.store.selected_list_id else " "
        default = " (default)" if lst.is_default else ""
        lines.append(f" {mark} {lst.emoji} {lst.name}{default} - {count} open")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list <name>                      -> show that list
    /list add <name> [color] [emoji]  -> create a list
    /list rename <list> <new name>    -> rename
    /list delete <list>               -> delete (and its tasks)
    """
    if not args:
        return "Usage: /list <name> | /list add <name> [color] [emoji] | /list rename <list> <name> | /list delete <list>"

    sub = args[0].lower()
    client = state.client

    if sub == "add":
        if len(args) < 2:
            return "Usage: /list add <name> [color] [emoji]"
        color = args[2] if len(args) > 2 else "#6B7280"
        emoji = args[3] if len(args) > 3 else "\U0001F4CB"
        result = _run(client.create_list(args[1], color, emoji))
        return f"List created: {result.value.name}" if result.ok else _failed(result)

    if sub == "rename":
        if len(args) < 3:
            return "Usage: /list rename <list> <new name>"
        lst = _find_named(state.store.lists, args[1])
        if lst is None:
            return f"No list named {args[1]!r}."
        result = _run(client.update_list(lst.id, ListPatch(name=" ".join(args[2:]))))
        return f"List renamed: {result.value.name}" if result.ok else _failed(result)

    if sub in ("delete", "rm"):
        if len(args) < 2:
            return "Usage: /list delete <list>"
        lst = _find_named(state.store.lists, args[1])
        if lst is None:
            return f"No list named {args[1]!r}."
        if emit:
            with contextlib.suppress(Exception):
                emit(f"Deleting {lst.name} and its tasks...")
        result = _run(client.delete_list(lst.id))
        return f"List deleted: {lst.name}" if result.ok else _failed(result)

    lst = _find_named(state.store.lists, " ".join(args))
    if lst is None:
        return f"No list named {' '.join(args)!r}."
    state.store.select_list(lst.id)
    return cmd_tasks(state, [])


def cmd_labels(state: AppState, args: list[str]) -> str:
    if not state.store.labels:
        return "No labels yet. Use /label add <name>."
    lines = ["Labels:"]
    for label in state.store.labels:
        count = sum(1 for tl in state.store.task_labels if tl.label_id == label.id)
        lines.append(f"  {label.emoji} {label.name} - {count} tasks")
    return "\n".join(lines)


def cmd_label(state: AppState, args: list[str]) -> str:
    """
    /label <name>                     -> show tasks with that label
    /label add <name> [color] [emoji] -> create a label
    /label delete <label>             -> delete a label
    """
    if not args:
        return "Usage: /label <name> | /label add <name> [color] [emoji] | /label delete <label>"

    sub = args[0].lower()
    if sub == "add":
        if len(args) < 2:
            return "Usage: /label add <name> [color] [emoji]"
        color = args[2] if len(args) > 2 else "#10B981"
        emoji = args[3] if len(args) > 3 else "\U0001F3F7"
        result = _run(state.client.create_label(args[1], color, emoji))
        return f"Label created: {result.value.name}" if result.ok else _failed(result)

    if sub in ("delete", "rm"):
        if len(args) < 2:
            return "Usage: /label delete <label>"
        label = _find_named(state.store.labels, args[1])
        if label is None:
            return f"No label named {args[1]!r}."
        result = _run(state.client.delete_label(label.id))
        return f"Label deleted: {label.name}" if result.ok else _failed(result)

    label = _find_named(state.store.labels, " ".join(args))
    if label is None:
        return f"No label named {' '.join(args)!r}."
    state.store.select_label(label.id)
    return cmd_tasks(state, [])


def cmd_view(state: AppState, args: list[str]) -> str:
    if not args:
        return f"Current view: {state.store.current_view.value}. Use /view today|next7days|upcoming|all."
    try:
        state.store.set_current_view(ViewType(args[0].lower()))
    except ValueError:
        return "Usage: /view today|next7days|upcoming|all"
    return cmd_tasks(state, [])


def cmd_show(state: AppState, args: list[str]) -> str:
    shown = state.store.toggle_show_completed()
    return f"Completed tasks are now {'shown' if shown else 'hidden'}."


def cmd_search(state: AppState, args: list[str]) -> str:
    state.store.set_search_query(" ".join(args))
    return cmd_tasks(state, [])


def add_task_from_text(state: AppState, text: str) -> str:
    """
    Quick add: words starting with ! set the priority, @ sets the day.
    The task goes to the selected list, or the default list.
    """
    words: list[str] = []
    fields: dict[str, Any] = {}
    for word in text.split():
        if word.startswith("!") and word[1:].lower() in {p.value for p in Priority}:
            fields["priority"] = word[1:].lower()
        elif word.startswith("@") and _parse_day(word[1:]) is not None:
            fields["date"] = _parse_day(word[1:])
        else:
            words.append(word)

    store = state.store
    target = store.get_list(store.selected_list_id) if store.selected_list_id else None
    if target is None:
        target = store.default_list()
    if target is None:
        return "No list to add to (lists not loaded)."

    result = _run(state.client.create_task(target.id, " ".join(words), **fields))
    if not result.ok:
        return _failed(result)
    return f"Added to {target.name}: {result.value.name}"


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <name> [!high|!medium|!low] [@today|@tomorrow|@YYYY-MM-DD]"
    return add_task_from_text(state, " ".join(args))


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <n>"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."
    result = _run(state.client.toggle_task(task.id))
    if not result.ok:
        return _failed(result)
    return f"{'Completed' if result.value.completed else 'Reopened'}: {task.name}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <n>"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."
    result = _run(state.client.delete_task(task.id))
    return f"Deleted: {task.name}" if result.ok else _failed(result)


def cmd_sub(state: AppState, args: list[str]) -> str:
    """
    /sub <n>                  -> list subtasks of task n
    /sub <n> add <name>       -> add a subtask
    /sub <n> done <k>         -> toggle subtask k
    /sub <n> rm <k>           -> delete subtask k
    """
    if not args:
        return "Usage: /sub <n> [add <name> | done <k> | rm <k>]"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."

    subs = state.store.subtasks_for(task.id)
    if len(args) == 1:
        if not subs:
            return f"{task.name}: no subtasks."
        lines = [f"{task.name}:"]
        for i, s in enumerate(subs, start=1):
            lines.append(f"  {i}. [{'x' if s.completed else ' '}] {s.name}")
        return "\n".join(lines)

    action = args[1].lower()
    if action == "add":
        result = _run(state.client.create_subtask(task.id, " ".join(args[2:])))
        return f"Subtask added: {result.value.name}" if result.ok else _failed(result)

    if action in ("done", "rm") and len(args) > 2 and args[2].isdigit():
        k = int(args[2]) - 1
        if not 0 <= k < len(subs):
            return f"No subtask {args[2]}."
        if action == "done":
            result = _run(state.client.toggle_subtask(subs[k].id))
        else:
            result = _run(state.client.delete_subtask(subs[k].id))
        return "OK." if result.ok else _failed(result)

    return "Usage: /sub <n> [add <name> | done <k> | rm <k>]"


def cmd_tag(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /tag <n> <label>"
    task = _visible_task(state, args[0])
    label = _find_named(state.store.labels, " ".join(args[1:]))
    if task is None or label is None:
        return "Unknown task or label."
    result = _run(state.client.add_label(task.id, label.id))
    return f"Tagged {task.name} with #{label.name}" if result.ok else _failed(result)


def cmd_untag(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /untag <n> <label>"
    task = _visible_task(state, args[0])
    label = _find_named(state.store.labels, " ".join(args[1:]))
    if task is None or label is None:
        return "Unknown task or label."
    result = _run(state.client.remove_label(task.id, label.id))
    return f"Removed #{label.name} from {task.name}" if result.ok else _failed(result)


def cmd_log(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /log <n>"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."
    result = _run(state.client.load_task_logs(task.id))
    if not result.ok:
        return _failed(result)
    lines = [f"History of {task.name}:"]
    for entry in state.store.logs_for(task.id):
        ts = datetime.fromtimestamp(entry.created_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"  {ts} {entry.action.value}: {entry.changes}")
    return "\n".join(lines)


def cmd_remind(state: AppState, args: list[str]) -> str:
    """
    /remind <n>                                -> list reminders of task n
    /remind <n> <minutes> [notification|email] -> add a reminder
    /remind <n> rm <k>                         -> delete reminder k
    """
    if not args:
        return "Usage: /remind <n> [<minutes> [notification|email] | rm <k>]"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."

    reminders = [r for r in state.store.reminders if r.task_id == task.id]
    if len(args) == 1:
        if not reminders:
            return f"{task.name}: no reminders."
        lines = [f"{task.name}:"]
        for i, r in enumerate(reminders, start=1):
            lines.append(f"  {i}. {r.type.value} {r.minutes_before} min before")
        return "\n".join(lines)

    if args[1].lower() == "rm":
        k = int(args[2]) - 1 if len(args) > 2 and args[2].isdigit() else -1
        if not 0 <= k < len(reminders):
            return "Usage: /remind <n> rm <k>"
        result = _run(state.client.delete_reminder(reminders[k].id))
        return "Reminder deleted." if result.ok else _failed(result)

    kind = args[2].lower() if len(args) > 2 else "notification"
    result = _run(state.client.create_reminder(task.id, kind, args[1]))
    if not result.ok:
        return _failed(result)
    return f"Reminder set: {result.value.type.value} {result.value.minutes_before} min before {task.name}"


def cmd_attach(state: AppState, args: list[str]) -> str:
    """
    /attach <n>              -> list attachments of task n
    /attach <n> <url> [name] -> attach a link
    /attach <n> rm <k>       -> delete attachment k
    """
    if not args:
        return "Usage: /attach <n> [<url> [name] | rm <k>]"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."

    attachments = [a for a in state.store.attachments if a.task_id == task.id]
    if len(args) == 1:
        if not attachments:
            return f"{task.name}: no attachments."
        lines = [f"{task.name}:"]
        for i, a in enumerate(attachments, start=1):
            lines.append(f"  {i}. {a.name} <{a.url}>")
        return "\n".join(lines)

    if args[1].lower() == "rm":
        k = int(args[2]) - 1 if len(args) > 2 and args[2].isdigit() else -1
        if not 0 <= k < len(attachments):
            return "Usage: /attach <n> rm <k>"
        result = _run(state.client.delete_attachment(attachments[k].id))
        return "Attachment deleted." if result.ok else _failed(result)

    url = args[1]
    name = " ".join(args[2:]) or url
    result = _run(state.client.create_attachment(task.id, name, url))
    return f"Attached to {task.name}: {result.value.name}" if result.ok else _failed(result)


def cmd_repeat(state: AppState, args: list[str]) -> str:
    """
    /repeat <n>                                     -> show recurrence of task n
    /repeat <n> daily|weekly|weekday|monthly|yearly -> set a recurrence
    /repeat <n> custom <rule>                       -> custom rule
    /repeat <n> off                                 -> remove recurrence
    """
    if not args:
        return "Usage: /repeat <n> [daily|weekly|weekday|monthly|yearly|custom <rule>|off]"
    task = _visible_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}."

    current = [r for r in state.store.recurrences if r.task_id == task.id]
    if len(args) == 1:
        if not current:
            return f"{task.name}: does not repeat."
        rule = current[0].custom_rule or current[0].type.value
        return f"{task.name}: repeats {rule}"

    if args[1].lower() == "off":
        for rec in current:
            result = _run(state.client.delete_recurrence(rec.id))
            if not result.ok:
                return _failed(result)
        return f"{task.name}: does not repeat."

    custom_rule = " ".join(args[2:]) or None
    result = _run(state.client.create_recurrence(task.id, args[1].lower(), custom_rule=custom_rule))
    if not result.ok:
        return _failed(result)
    for rec in current:
        _run(state.client.delete_recurrence(rec.id))
    return f"{task.name}: repeats {result.value.custom_rule or result.value.type.value}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="Show the visible tasks.", aliases=["ls"])
registry.register("lists", cmd_lists, help_text="Show all lists.")
registry.register("list", cmd_list, help_text="Select, add, rename or delete a list.")
registry.register("labels", cmd_labels, help_text="Show all labels.")
registry.register("label", cmd_label, help_text="Select, add or delete a label.")
registry.register("view", cmd_view, help_text="Switch view: /view today|next7days|upcoming|all.")
registry.register("show", cmd_show, help_text="Toggle showing completed tasks.")
registry.register("search", cmd_search, help_text="Fuzzy search tasks: /search <text> (empty clears).")
registry.register("add", cmd_add, help_text="Add a task: /add <name> [!priority] [@day].")
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n>.")
registry.register("sub", cmd_sub, help_text="Subtasks: /sub <n> [add <name> | done <k> | rm <k>].")
registry.register("tag", cmd_tag, help_text="Attach a label: /tag <n> <label>.")
registry.register("untag", cmd_untag, help_text="Detach a label: /untag <n> <label>.")
registry.register("log", cmd_log, help_text="Show a task's change history: /log <n>.")
registry.register("remind", cmd_remind, help_text="Reminders: /remind <n> [<minutes> [notification|email] | rm <k>].")
registry.register("attach", cmd_attach, help_text="Attachments: /attach <n> [<url> [name] | rm <k>].")
registry.register("repeat", cmd_repeat, help_text="Recurrence: /repeat <n> [daily|weekly|weekday|monthly|yearly|custom <rule>|off].")
