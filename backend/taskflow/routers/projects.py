"""
Projects router — owner-scoped CRUD.

GET    /projects              — caller's projects, paged
POST   /projects              — create (owner = caller)
GET    /projects/{id}         — one project (403 if not owner, 404 if absent)
PUT    /projects/{id}         — replace name/description
DELETE /projects/{id}         — delete with every work item in it
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import CurrentUser
from taskflow.core.database import get_db_session
from taskflow.domain.ids import ProjectId
from taskflow.domain.pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, PageRequest
from taskflow.routers.versioning import IfMatch, expected_version, set_etag
from taskflow.schemas.common import DeleteResponse, PaginationOut
from taskflow.schemas.project import (
    ProjectCreate,
    ProjectListItem,
    ProjectListResponse,
    ProjectOut,
    ProjectUpdate,
)
from taskflow.services import projects as project_service

router = APIRouter(tags=["Projects"])

# Type aliases for cleaner signatures
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="List the caller's projects",
)
async def list_projects(
    session: DbSession,
    user: CurrentUser,
    page: int = Query(default=DEFAULT_PAGE),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize"),
) -> ProjectListResponse:
    result = await project_service.list_projects(
        session, user, PageRequest.clamp(page, page_size),
    )
    return ProjectListResponse(
        projects=[ProjectListItem.model_validate(p) for p in result.items],
        pagination=PaginationOut.from_info(result.info),
    )


@router.post(
    "",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project owned by the caller",
)
async def create_project(
    payload: ProjectCreate,
    session: DbSession,
    user: CurrentUser,
    response: Response,
) -> ProjectOut:
    project = await project_service.create_project(
        session, user, payload.name, payload.description,
    )
    set_etag(response, project.version_stamp)
    return ProjectOut.model_validate(project)


@router.get(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Get one project",
)
async def get_project(
    project_id: uuid.UUID,
    session: DbSession,
    user: CurrentUser,
    response: Response,
) -> ProjectOut:
    project = await project_service.get_project(session, ProjectId(project_id), user)
    set_etag(response, project.version_stamp)
    return ProjectOut.model_validate(project)


@router.put(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Replace a project's name and description",
)
async def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    session: DbSession,
    user: CurrentUser,
    response: Response,
    if_match: IfMatch = None,
) -> ProjectOut:
    project = await project_service.update_project(
        session,
        ProjectId(project_id),
        user,
        payload.name,
        payload.description,
        expected_version=expected_version(if_match),
    )
    set_etag(response, project.version_stamp)
    return ProjectOut.model_validate(project)


@router.delete(
    "/{project_id}",
    response_model=DeleteResponse,
    summary="Delete a project and all of its work items",
)
async def delete_project(
    project_id: uuid.UUID,
    session: DbSession,
    user: CurrentUser,
    if_match: IfMatch = None,
) -> DeleteResponse:
    deleted_count = await project_service.delete_project(
        session,
        ProjectId(project_id),
        user,
        expected_version=expected_version(if_match),
    )
    return DeleteResponse(
        message="Project deleted successfully",
        deleted_count=deleted_count,
    )
