"""
Pydantic v2 schemas for work items.

kind and status are parsed case-insensitively ("epic", "INPROGRESS")
and always serialized with their canonical names ("Epic", "InProgress").
Unknown values fail validation here, before any service code runs.
"""

from __future__ import annotations

import datetime
import uuid

from pydantic import Field, field_validator

from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.fields import (
    USER_ID_MAX,
    WORK_ITEM_DESCRIPTION_MAX,
    WORK_ITEM_TITLE_MAX,
)
from taskflow.schemas.common import ApiModel, PaginationOut, RequestModel
from taskflow.services.work_items import WorkItemDetail, WorkItemSummary


# ── Request schemas ─────────────────────────────────────────
class WorkItemCreate(RequestModel):
    """
    Payload accepted by POST /projects/{pid}/work-items.

    Status is absent on purpose: every new item starts as New.
    """

    parent_id: uuid.UUID | None = None
    kind: WorkItemKind = Field(..., examples=["Epic", "Story", "Task"])
    title: str = Field(..., min_length=1, max_length=WORK_ITEM_TITLE_MAX)
    description: str | None = Field(default=None, max_length=WORK_ITEM_DESCRIPTION_MAX)
    assigned_user_id: str | None = Field(default=None, min_length=1, max_length=USER_ID_MAX)

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: object) -> WorkItemKind:
        return WorkItemKind.parse(value)


class WorkItemUpdate(RequestModel):
    """
    Payload accepted by PUT /projects/{pid}/work-items/{id}.

    Omitting parentId keeps the current parent; sending null is a
    request to detach (only valid for Epics).
    """

    title: str = Field(..., min_length=1, max_length=WORK_ITEM_TITLE_MAX)
    description: str | None = Field(default=None, max_length=WORK_ITEM_DESCRIPTION_MAX)
    parent_id: uuid.UUID | None = None

    @property
    def parent_provided(self) -> bool:
        return "parent_id" in self.model_fields_set


class WorkItemStatusUpdate(RequestModel):
    status: WorkItemStatus = Field(..., examples=["New", "Ready", "InProgress", "Done"])

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: object) -> WorkItemStatus:
        return WorkItemStatus.parse(value)


class WorkItemAssign(RequestModel):
    """userId null (or omitted) clears the assignment."""

    user_id: str | None = Field(default=None, min_length=1, max_length=USER_ID_MAX)


# ── Response schemas ────────────────────────────────────────
class ProgressOut(ApiModel):
    completed: int
    total: int
    percentage: int


class WorkItemListItem(ApiModel):
    id: uuid.UUID
    project_id: uuid.UUID
    parent_id: uuid.UUID | None
    kind: WorkItemKind
    title: str
    status: WorkItemStatus
    assigned_user_id: str | None
    has_children: bool

    @classmethod
    def from_summary(cls, summary: WorkItemSummary) -> WorkItemListItem:
        item = summary.item
        return cls(
            id=item.id,
            project_id=item.project_id,
            parent_id=item.parent_id,
            kind=item.kind,
            title=item.title,
            status=item.status,
            assigned_user_id=item.assigned_user_id,
            has_children=summary.has_children,
        )


class WorkItemListResponse(ApiModel):
    work_items: list[WorkItemListItem]
    pagination: PaginationOut


class WorkItemOut(ApiModel):
    id: uuid.UUID
    project_id: uuid.UUID
    parent_id: uuid.UUID | None
    kind: WorkItemKind
    title: str
    description: str | None
    status: WorkItemStatus
    assigned_user_id: str | None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    progress: ProgressOut
    has_children: bool

    @classmethod
    def from_detail(cls, detail: WorkItemDetail) -> WorkItemOut:
        item = detail.item
        return cls(
            id=item.id,
            project_id=item.project_id,
            parent_id=item.parent_id,
            kind=item.kind,
            title=item.title,
            description=item.description,
            status=item.status,
            assigned_user_id=item.assigned_user_id,
            created_at=item.created_at,
            updated_at=item.updated_at,
            progress=ProgressOut.model_validate(detail.progress),
            has_children=detail.has_children,
        )
