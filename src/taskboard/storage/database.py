# src/taskboard/storage/database.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from ..errors import InternalError
from .models import new_id, now_ms

logger = logging.getLogger(__name__)

DEFAULT_INBOX = ("Inbox", "#3B82F6", "\U0001F4E5")

_TABLES = (
    "lists",
    "labels",
    "tasks",
    "subtasks",
    "task_labels",
    "task_logs",
    "reminders",
    "attachments",
    "task_recurrence",
)


class Database:
    """
    SQLite schema owner.

    - create tables/indexes if missing (idempotent, safe on every start)
    - PRAGMA table_info checks add columns that older files lack
    - guarantees exactly one default list ("Inbox")

    Thread-safety:
    - every transaction opens its own connection, so repository calls can run
      from worker threads (asyncio.to_thread)
    """

    def __init__(
        self,
        db_path: str | Path = "taskboard.sqlite3",
        *,
        inbox: tuple[str, str, str] = DEFAULT_INBOX,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._inbox = inbox
        self.ensure_schema()
        self.ensure_default_list()
        try:
            total = self.count_rows("tasks")
        except InternalError:
            total = -1
        logger.info("Database ready db=%s tasks=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        # Cascades depend on this; it is per-connection in SQLite.
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        One atomic unit of work.

        Commits when the block exits normally, rolls back on any exception.
        sqlite3 errors are re-raised as InternalError.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            logger.exception("Failed to open db=%s", self._db_path)
            raise InternalError("storage unavailable") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.exception("Transaction failed db=%s", self._db_path)
            raise InternalError(f"storage failure: {exc}") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---- schema ----

    def ensure_schema(self) -> None:
        with self.transaction() as conn:
            cur = conn.cursor()
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS lists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL,
                    emoji TEXT NOT NULL,
                    is_default INTEGER NOT NULL DEFAULT 0,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS labels (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL,
                    emoji TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    list_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    date INTEGER,
                    deadline INTEGER,
                    priority TEXT NOT NULL DEFAULT 'none',
                    estimated_time TEXT NOT NULL DEFAULT '',
                    actual_time TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at INTEGER,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    FOREIGN KEY (list_id) REFERENCES lists(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS subtasks (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at INTEGER,
                    created_at INTEGER NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS task_labels (
                    task_id TEXT NOT NULL,
                    label_id TEXT NOT NULL,
                    PRIMARY KEY (task_id, label_id),
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                    FOREIGN KEY (label_id) REFERENCES labels(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS task_logs (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    changes TEXT NOT NULL DEFAULT '{}',
                    created_at INTEGER NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS reminders (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    minutes_before INTEGER NOT NULL,
                    created_at INTEGER NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS attachments (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    url TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS task_recurrence (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    custom_rule TEXT,
                    end_date INTEGER,
                    created_at INTEGER NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("Database migration: added tasks.%s", name)

            add_col("deadline", "INTEGER")
            add_col("estimated_time", "TEXT NOT NULL DEFAULT ''")
            add_col("actual_time", "TEXT NOT NULL DEFAULT ''")
            add_col("completed_at", "INTEGER")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_date ON tasks(date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks(deadline)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(completed)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_labels_task ON task_labels(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_labels_label ON task_labels(label_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_logs_task ON task_logs(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_task ON reminders(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_attachments_task ON attachments(task_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_task_recurrence_task ON task_recurrence(task_id)"
            )

    def ensure_default_list(self) -> str:
        """Create the Inbox once; return the id of the default list."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM lists WHERE is_default = 1 ORDER BY created_at ASC LIMIT 1"
            ).fetchone()
            if row is not None:
                return str(row["id"])

            list_id = new_id()
            ts = now_ms()
            name, color, emoji = self._inbox
            conn.execute(
                """
                INSERT INTO lists(id, name, color, emoji, is_default, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (list_id, name, color, emoji, ts, ts),
            )
            logger.info("Created default list id=%s name=%s", list_id, name)
            return list_id

    def count_rows(self, table: str) -> int:
        if table not in _TABLES:
            raise ValueError(f"unknown table: {table}")
        with self.transaction() as conn:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)
