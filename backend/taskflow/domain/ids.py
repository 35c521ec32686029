"""
Typed identifiers for projects, work items and users.

Each id is a distinct NewType so a type checker refuses to pass a
ProjectId where a WorkItemId is expected. At runtime they are the
primitive underneath (uuid.UUID / str), which is what the database
and the wire format carry.
"""

from __future__ import annotations

import uuid
from typing import NewType

ProjectId = NewType("ProjectId", uuid.UUID)
WorkItemId = NewType("WorkItemId", uuid.UUID)
UserId = NewType("UserId", str)


def new_project_id() -> ProjectId:
    return ProjectId(uuid.uuid4())


def new_work_item_id() -> WorkItemId:
    return WorkItemId(uuid.uuid4())


def new_version_stamp(_current: str | None = None) -> str:
    """Opaque row version; the argument is the previous stamp (unused)."""
    return uuid.uuid4().hex
