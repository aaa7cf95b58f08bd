# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..client.store import ClientStore
from ..client.sync import TaskBoardClient
from ..storage.database import Database
from .ports import EntityRepo


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    db: Database
    repo: EntityRepo
    store: ClientStore
    client: TaskBoardClient
