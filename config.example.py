# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from TASKBOARD_* environment variables
(optionally via a local, gitignored .env file) by taskboard.config.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "TASKBOARD_DATA_DIR": "Local data directory, also holds taskboard.log (default: .local/taskboard).",
    "TASKBOARD_DB_PATH": "SQLite database path (default: <data_dir>/taskboard.sqlite3).",
    # Console
    "TASKBOARD_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "TASKBOARD_DEFAULT_VIEW": "Initial view: today, next7days, upcoming or all (default: today).",
    "TASKBOARD_SHOW_COMPLETED": "Show completed tasks at startup (true/false, default: true).",
    "TASKBOARD_SEARCH_THRESHOLD": "Minimum fuzzy-search similarity in [0, 1] (default: 0.7).",
    # Default list (created once, on first start)
    "TASKBOARD_INBOX_NAME": "Name of the default list (default: Inbox).",
    "TASKBOARD_INBOX_COLOR": "Color of the default list (default: #3B82F6).",
    "TASKBOARD_INBOX_EMOJI": "Emoji of the default list (default: inbox tray).",
}
