# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires Database -> Repository -> ClientStore -> TaskBoardClient into AppState,
- hydrates the client store before the first render.
"""

from __future__ import annotations

import asyncio
import logging

from ..client.store import ClientStore
from ..client.sync import TaskBoardClient
from ..config import get_settings
from ..core.state import AppState
from ..storage.database import Database
from ..storage.repository import Repository
from ..views.filters import ViewType

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    db = Database(
        settings.db_path,
        inbox=(settings.inbox_name, settings.inbox_color, settings.inbox_emoji),
    )
    repo = Repository(db)
    store = ClientStore(
        current_view=ViewType(getattr(settings, "default_view", "today")),
        show_completed=bool(getattr(settings, "show_completed", True)),
        search_threshold=float(getattr(settings, "search_threshold", 0.7)),
    )
    client = TaskBoardClient(store, repo)

    return AppState(settings=settings, db=db, repo=repo, store=store, client=client)


def load_initial_data(state: AppState) -> None:
    """Populate the client store from the repository (blocking)."""
    asyncio.run(state.client.hydrate())
