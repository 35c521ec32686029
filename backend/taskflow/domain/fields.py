"""Length and presence rules for the free-text fields of projects and work items."""

from __future__ import annotations

from taskflow.domain.errors import ValidationError

PROJECT_NAME_MAX = 200
PROJECT_DESCRIPTION_MAX = 2000
WORK_ITEM_TITLE_MAX = 200
WORK_ITEM_DESCRIPTION_MAX = 5000
USER_ID_MAX = 256


def require_text(field: str, value: str | None, max_length: int) -> str:
    """Return `value` unchanged if it is non-blank and within `max_length`."""
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required and cannot be empty", reason="FieldRequired")
    if len(value) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            reason="FieldTooLong",
        )
    return value


def optional_text(field: str, value: str | None, max_length: int) -> str | None:
    if value is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            reason="FieldTooLong",
        )
    return value
