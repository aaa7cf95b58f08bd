# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing reads the environment except Settings.from_env(); everything else
  receives settings by injection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKBOARD"

_VIEWS = ("today", "next7days", "upcoming", "all")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Front-end ----
    console_enabled: bool
    default_view: str
    show_completed: bool
    search_threshold: float

    # ---- Default list ----
    inbox_name: str
    inbox_color: str
    inbox_emoji: str

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "taskboard") or "taskboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskboard.sqlite3")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        default_view = _env(_k("DEFAULT_VIEW"), "today").strip().lower()
        if default_view not in _VIEWS:
            default_view = "today"

        show_completed = _env_bool(_k("SHOW_COMPLETED"), True)
        search_threshold = max(0.0, min(1.0, _env_float(_k("SEARCH_THRESHOLD"), 0.7)))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            console_enabled=console_enabled,
            default_view=default_view,
            show_completed=show_completed,
            search_threshold=search_threshold,
            inbox_name=_env(_k("INBOX_NAME"), "Inbox") or "Inbox",
            inbox_color=_env(_k("INBOX_COLOR"), "#3B82F6") or "#3B82F6",
            inbox_emoji=_env(_k("INBOX_EMOJI"), "\U0001F4E5") or "\U0001F4E5",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
