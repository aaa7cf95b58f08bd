"""Personal task lists: SQLite-backed repository, view filters and a client state store."""

__version__ = "0.1.0"
