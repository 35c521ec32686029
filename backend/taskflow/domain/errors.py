"""
Error taxonomy shared by services and the HTTP layer.

Services raise these; taskflow.main translates them into a structured
payload: {"error": code, "reason": reason, "detail": message}.
The HTTP status for each class lives in main.py, not here.
"""

from __future__ import annotations


class TaskFlowError(Exception):
    """Base class. `reason` is a machine-readable sub-code (optional)."""

    code = "Error"

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason


class NotFound(TaskFlowError):
    """Project, work item, parent or assignee does not exist."""

    code = "NotFound"


class Forbidden(TaskFlowError):
    """Caller is not the owner of the project."""

    code = "Forbidden"


class ValidationError(TaskFlowError):
    """Field, pagination or hierarchy rule violated. Raised before any write."""

    code = "ValidationError"


class Conflict(TaskFlowError):
    """Duplicate Epic title during bulk approval."""

    code = "Conflict"


class ConcurrencyConflict(TaskFlowError):
    """The row changed since it was read (stale version stamp)."""

    code = "ConcurrencyConflict"


class UserDirectoryUnavailable(TaskFlowError):
    """The external user directory could not answer."""

    code = "UserDirectoryUnavailable"
