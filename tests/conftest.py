# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.cli.bootstrap import create_initial_state
from taskboard.client.store import ClientStore
from taskboard.core.state import AppState
from taskboard.storage.database import Database
from taskboard.storage.repository import Repository
from taskboard.views.filters import ViewType


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any local .env.
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "taskboard.sqlite3",
        # Front-end
        console_enabled=False,
        default_view="all",
        show_completed=True,
        search_threshold=0.7,
        # Default list
        inbox_name="Inbox",
        inbox_color="#3B82F6",
        inbox_emoji="\U0001F4E5",
    )


@pytest.fixture()
def db(settings: SimpleNamespace) -> Database:
    return Database(settings.db_path)


@pytest.fixture()
def repo(db: Database) -> Repository:
    return Repository(db)


@pytest.fixture()
def store() -> ClientStore:
    return ClientStore(current_view=ViewType.ALL)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired exactly like the CLI does it.

    NOTE: We keep the real SQLite repository here because its behaviour
    (cascades, logs, validation) is part of what we want to test.
    """
    return create_initial_state(settings=settings)
