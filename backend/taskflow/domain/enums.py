"""
Work item kinds and statuses.

Values are the canonical wire/database names. Parsing is case-insensitive
so "epic", "EPIC" and "Epic" all resolve to WorkItemKind.EPIC; anything
else raises ValueError (pydantic turns that into a 422).
"""

from __future__ import annotations

from enum import Enum


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def parse(cls, value: object):  # type: ignore[no-untyped-def]
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        allowed = ", ".join(member.value for member in cls)
        raise ValueError(f"Invalid {cls._label()} {value!r}. Must be one of: {allowed}.")

    @classmethod
    def _label(cls) -> str:
        return cls.__name__


class WorkItemKind(_CaseInsensitiveEnum):
    EPIC = "Epic"
    STORY = "Story"
    TASK = "Task"

    @classmethod
    def _label(cls) -> str:
        return "work item kind"


class WorkItemStatus(_CaseInsensitiveEnum):
    NEW = "New"
    READY = "Ready"
    IN_PROGRESS = "InProgress"
    DONE = "Done"

    @classmethod
    def _label(cls) -> str:
        return "status"
