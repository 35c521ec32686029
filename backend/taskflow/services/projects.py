"""
Project service — owner-scoped CRUD.

Every operation that addresses an existing project goes through
require_owned_project(): missing → NotFound, someone else's → Forbidden.
The work item and approval services reuse the same check, so a work
item's effective owner is always its project's owner.

Deleting a project reports how many work items went with it. The count
and the delete run in one transaction; the rows themselves are removed
by the work_items.project_id ON DELETE CASCADE.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from taskflow.domain.errors import ConcurrencyConflict, Forbidden, NotFound
from taskflow.domain.fields import (
    PROJECT_DESCRIPTION_MAX,
    PROJECT_NAME_MAX,
    optional_text,
    require_text,
)
from taskflow.domain.ids import ProjectId, UserId
from taskflow.domain.pagination import Page, PageInfo, PageRequest
from taskflow.models.project import Project
from taskflow.models.work_item import WorkItem

logger = logging.getLogger(__name__)


async def require_owned_project(
    session: AsyncSession,
    project_id: ProjectId,
    user_id: UserId,
    *,
    for_update: bool = False,
) -> Project:
    """Load a project the caller owns, or raise NotFound / Forbidden."""
    stmt = select(Project).where(Project.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    project = (await session.execute(stmt)).scalar_one_or_none()

    if project is None:
        logger.warning("Project %s not found", project_id)
        raise NotFound(f"Project with ID '{project_id}' was not found")

    if project.owner_id != user_id:
        logger.warning(
            "User %s attempted to access project %s owned by %s",
            user_id, project_id, project.owner_id,
        )
        raise Forbidden("You do not have permission to access this project")

    return project


def check_version(current: str, expected: str | None) -> None:
    """Compare a client-held stamp with the row's; None skips the check."""
    if expected is not None and expected != current:
        raise ConcurrencyConflict(
            "The item was modified by someone else. Reload and try again.",
            reason="StaleVersion",
        )


async def commit_or_conflict(session: AsyncSession) -> None:
    """
    Commit the unit of work.

    StaleDataError (version stamp moved between read and write) becomes
    ConcurrencyConflict; anything else is rolled back and re-raised.
    """
    try:
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        raise ConcurrencyConflict(
            "The item was modified by someone else. Reload and try again.",
            reason="StaleVersion",
        ) from exc
    except Exception:
        await session.rollback()
        logger.exception("Failed to commit unit of work")
        raise


async def list_projects(
    session: AsyncSession,
    owner_id: UserId,
    page: PageRequest,
) -> Page[Project]:
    """The caller's projects, most recently updated first."""
    logger.info(
        "Listing projects for user %s (page %d, pageSize %d)",
        owner_id, page.page, page.page_size,
    )
    scope = Project.owner_id == owner_id

    total = (
        await session.execute(select(func.count()).select_from(Project).where(scope))
    ).scalar_one()

    stmt = (
        select(Project)
        .where(scope)
        .order_by(Project.updated_at.desc(), Project.id)
        .offset(page.offset)
        .limit(page.page_size)
    )
    projects = list((await session.execute(stmt)).scalars().all())
    return Page(items=projects, info=PageInfo.build(page, total))


async def get_project(
    session: AsyncSession,
    project_id: ProjectId,
    owner_id: UserId,
) -> Project:
    logger.info("Getting project %s for user %s", project_id, owner_id)
    return await require_owned_project(session, project_id, owner_id)


async def create_project(
    session: AsyncSession,
    owner_id: UserId,
    name: str,
    description: str | None = None,
) -> Project:
    logger.info("Creating project %r for user %s", name, owner_id)

    project = Project(
        name=require_text("Project name", name, PROJECT_NAME_MAX),
        description=optional_text("Project description", description, PROJECT_DESCRIPTION_MAX),
        owner_id=owner_id,
    )
    session.add(project)
    await commit_or_conflict(session)

    logger.info("Project %s created", project.id)
    return project


async def update_project(
    session: AsyncSession,
    project_id: ProjectId,
    owner_id: UserId,
    name: str,
    description: str | None = None,
    *,
    expected_version: str | None = None,
) -> Project:
    logger.info("Updating project %s for user %s", project_id, owner_id)

    project = await require_owned_project(session, project_id, owner_id)
    check_version(project.version_stamp, expected_version)

    name = require_text("Project name", name, PROJECT_NAME_MAX)
    description = optional_text("Project description", description, PROJECT_DESCRIPTION_MAX)

    project.rename(name, description)
    await commit_or_conflict(session)

    logger.info("Project %s updated", project_id)
    return project


async def delete_project(
    session: AsyncSession,
    project_id: ProjectId,
    owner_id: UserId,
    *,
    expected_version: str | None = None,
) -> int:
    """Delete the project; return how many work items were removed with it."""
    logger.info("Deleting project %s for user %s", project_id, owner_id)

    project = await require_owned_project(session, project_id, owner_id, for_update=True)
    check_version(project.version_stamp, expected_version)

    deleted_count = (
        await session.execute(
            select(func.count())
            .select_from(WorkItem)
            .where(WorkItem.project_id == project_id)
        )
    ).scalar_one()

    await session.delete(project)
    await commit_or_conflict(session)

    logger.info("Project %s and %d work items deleted", project_id, deleted_count)
    return deleted_count
