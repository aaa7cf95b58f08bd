# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import add_task_from_text
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _flush_notifications(state: AppState) -> None:
    """Print and dismiss pending store notifications."""
    for note in list(state.store.notifications):
        _print_ts(f"[{note.level.upper()}] {note.message}")
        state.store.dismiss(note.id)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (view=%s).", state.store.current_view.value)
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., cascading deletes)
        print(f"[{_ts_local()}] {text}", flush=True)

    _flush_notifications(state)
    _print_ts(command_registry.handle(state, "/tasks") or "")

    while True:
        try:
            user_input = input(">>> ").strip()
            sent_ts = _ts_local()
            _rewrite_prev_line(f"[{sent_ts}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = command_registry.handle(state, user_input, emit=emit)
            if response is None:
                # Plain text: quick-add a task.
                response = add_task_from_text(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        _flush_notifications(state)
        _print_ts(response)

    logger.info("Console connector finished.")
