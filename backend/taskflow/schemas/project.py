"""
Pydantic v2 schemas for projects.

  • ProjectCreate / ProjectUpdate — what the CLIENT sends.
  • ProjectOut — full record; ProjectListItem — the trimmed list row.

ownerId is never accepted from the client; it is the caller's identity.
"""

from __future__ import annotations

import datetime
import uuid

from pydantic import Field

from taskflow.domain.fields import PROJECT_DESCRIPTION_MAX, PROJECT_NAME_MAX
from taskflow.schemas.common import ApiModel, PaginationOut, RequestModel


# ── Request schemas ─────────────────────────────────────────
class ProjectCreate(RequestModel):
    name: str = Field(
        ...,
        min_length=1,
        max_length=PROJECT_NAME_MAX,
        examples=["Checkout revamp"],
    )
    description: str | None = Field(
        default=None,
        max_length=PROJECT_DESCRIPTION_MAX,
    )


class ProjectUpdate(ProjectCreate):
    """Full replacement of name and description."""


# ── Response schemas ────────────────────────────────────────
class ProjectListItem(ApiModel):
    id: uuid.UUID
    name: str
    description: str | None


class ProjectListResponse(ApiModel):
    projects: list[ProjectListItem]
    pagination: PaginationOut


class ProjectOut(ApiModel):
    id: uuid.UUID
    name: str
    description: str | None
    owner_id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
