"""
Work items router — the Epic → Story → Task tree of one project.

GET    /projects/{pid}/work-items?parentId&page&pageSize
         parentId omitted → Epics; Epic id → its Stories; Story id → its Tasks.
         A tree view expands one level per call.
POST   /projects/{pid}/work-items
GET    /projects/{pid}/work-items/{id}          — with progress + hasChildren
PUT    /projects/{pid}/work-items/{id}          — title, description, parent
DELETE /projects/{pid}/work-items/{id}          — cascades to descendants
PUT    /projects/{pid}/work-items/{id}/status
PUT    /projects/{pid}/work-items/{id}/assign
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import CurrentUser
from taskflow.core.database import get_db_session
from taskflow.domain.ids import ProjectId, UserId, WorkItemId
from taskflow.domain.pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, PageRequest
from taskflow.routers.versioning import IfMatch, expected_version, set_etag
from taskflow.schemas.common import DeleteResponse, PaginationOut
from taskflow.schemas.work_item import (
    WorkItemAssign,
    WorkItemCreate,
    WorkItemListItem,
    WorkItemListResponse,
    WorkItemOut,
    WorkItemStatusUpdate,
    WorkItemUpdate,
)
from taskflow.services import work_items as work_item_service
from taskflow.services.user_directory import UserDirectory, get_user_directory
from taskflow.services.work_items import WorkItemDetail

router = APIRouter(tags=["Work Items"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Directory = Annotated[UserDirectory, Depends(get_user_directory)]


def _respond(response: Response, detail: WorkItemDetail) -> WorkItemOut:
    set_etag(response, detail.item.version_stamp)
    return WorkItemOut.from_detail(detail)


@router.get(
    "",
    response_model=WorkItemListResponse,
    summary="List one level of the work item tree",
)
async def list_work_items(
    project_id: uuid.UUID,
    session: DbSession,
    user: CurrentUser,
    parent_id: uuid.UUID | None = Query(default=None, alias="parentId"),
    page: int = Query(default=DEFAULT_PAGE),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize"),
) -> WorkItemListResponse:
    result = await work_item_service.list_work_items(
        session,
        ProjectId(project_id),
        user,
        PageRequest.clamp(page, page_size),
        parent_id=WorkItemId(parent_id) if parent_id is not None else None,
    )
    return WorkItemListResponse(
        work_items=[WorkItemListItem.from_summary(s) for s in result.items],
        pagination=PaginationOut.from_info(result.info),
    )


@router.post(
    "",
    response_model=WorkItemOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an Epic, Story or Task",
)
async def create_work_item(
    project_id: uuid.UUID,
    payload: WorkItemCreate,
    session: DbSession,
    user: CurrentUser,
    directory: Directory,
    response: Response,
) -> WorkItemOut:
    detail = await work_item_service.create_work_item(
        session,
        directory,
        ProjectId(project_id),
        user,
        kind=payload.kind,
        title=payload.title,
        parent_id=WorkItemId(payload.parent_id) if payload.parent_id else None,
        description=payload.description,
        assigned_user_id=UserId(payload.assigned_user_id) if payload.assigned_user_id else None,
    )
    return _respond(response, detail)


@router.get(
    "/{work_item_id}",
    response_model=WorkItemOut,
    summary="Get one work item with progress",
)
async def get_work_item(
    project_id: uuid.UUID,
    work_item_id: uuid.UUID,
    session: DbSession,
    user: CurrentUser,
    response: Response,
) -> WorkItemOut:
    detail = await work_item_service.get_work_item(
        session, ProjectId(project_id), WorkItemId(work_item_id), user,
    )
    return _respond(response, detail)


@router.put(
    "/{work_item_id}",
    response_model=WorkItemOut,
    summary="Update title, description and parent",
)
async def update_work_item(
    project_id: uuid.UUID,
    work_item_id: uuid.UUID,
    payload: WorkItemUpdate,
    session: DbSession,
    user: CurrentUser,
    response: Response,
    if_match: IfMatch = None,
) -> WorkItemOut:
    detail = await work_item_service.update_work_item(
        session,
        ProjectId(project_id),
        WorkItemId(work_item_id),
        user,
        title=payload.title,
        description=payload.description,
        parent_id=WorkItemId(payload.parent_id) if payload.parent_id else None,
        keep_parent=not payload.parent_provided,
        expected_version=expected_version(if_match),
    )
    return _respond(response, detail)


@router.delete(
    "/{work_item_id}",
    response_model=DeleteResponse,
    summary="Delete a work item and all of its descendants",
)
async def delete_work_item(
    project_id: uuid.UUID,
    work_item_id: uuid.UUID,
    session: DbSession,
    user: CurrentUser,
    if_match: IfMatch = None,
) -> DeleteResponse:
    deleted_count = await work_item_service.delete_work_item(
        session,
        ProjectId(project_id),
        WorkItemId(work_item_id),
        user,
        expected_version=expected_version(if_match),
    )
    return DeleteResponse(
        message="Work item deleted successfully",
        deleted_count=deleted_count,
    )


@router.put(
    "/{work_item_id}/status",
    response_model=WorkItemOut,
    summary="Set status (any transition is allowed)",
)
async def update_work_item_status(
    project_id: uuid.UUID,
    work_item_id: uuid.UUID,
    payload: WorkItemStatusUpdate,
    session: DbSession,
    user: CurrentUser,
    response: Response,
    if_match: IfMatch = None,
) -> WorkItemOut:
    detail = await work_item_service.set_status(
        session,
        ProjectId(project_id),
        WorkItemId(work_item_id),
        user,
        payload.status,
        expected_version=expected_version(if_match),
    )
    return _respond(response, detail)


@router.put(
    "/{work_item_id}/assign",
    response_model=WorkItemOut,
    summary="Assign to a user, or unassign with userId null",
)
async def assign_work_item(
    project_id: uuid.UUID,
    work_item_id: uuid.UUID,
    payload: WorkItemAssign,
    session: DbSession,
    user: CurrentUser,
    directory: Directory,
    response: Response,
    if_match: IfMatch = None,
) -> WorkItemOut:
    detail = await work_item_service.assign(
        session,
        directory,
        ProjectId(project_id),
        WorkItemId(work_item_id),
        user,
        UserId(payload.user_id) if payload.user_id else None,
        expected_version=expected_version(if_match),
    )
    return _respond(response, detail)
