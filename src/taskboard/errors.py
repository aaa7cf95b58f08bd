# src/taskboard/errors.py

"""
Error taxonomy shared by the repository, the client sync layer and the CLI.

Each error carries the category and the status code the request/response
boundary reports for it:
- ValidationError -> 400 (missing/empty required field)
- NotFound        -> 404 (referenced id does not exist)
- Forbidden       -> 400 (structurally disallowed, e.g. deleting the Inbox)
- InternalError   -> 500 (unexpected storage failure)
"""

from __future__ import annotations

from typing import Any


class TaskBoardError(Exception):
    category: str = "internal"
    status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "category": self.category}


class ValidationError(TaskBoardError):
    category = "validation"
    status = 400


class NotFound(TaskBoardError):
    category = "not_found"
    status = 404


class Forbidden(TaskBoardError):
    category = "forbidden"
    status = 400


class InternalError(TaskBoardError):
    category = "internal"
    status = 500


def require(value: Any, field: str) -> None:
    """Raise ValidationError when a required field is missing or blank."""
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{field} is required")
