"""
WorkItem service — owner-scoped CRUD over the Epic → Story → Task tree.

Flow for every operation:
  1. Load the project and verify the caller owns it (NotFound / Forbidden).
  2. Validate fields and hierarchy rules — before anything is written.
  3. Mutate through the model's behaviour methods, commit once.

Progress and has-children are computed at read time from the direct
children; nothing derived is stored.

Deletion counts descendants from an adjacency index (parent_id → ids)
built from one query over the project, then deletes only the root row.
The store's ON DELETE CASCADE removes the subtree. Count and delete run
in one transaction with the root row locked FOR UPDATE (where the dialect
supports it), so no new child can attach to the root in between.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.errors import NotFound, ValidationError
from taskflow.domain.fields import (
    USER_ID_MAX,
    WORK_ITEM_DESCRIPTION_MAX,
    WORK_ITEM_TITLE_MAX,
    optional_text,
    require_text,
)
from taskflow.domain.hierarchy import HierarchyViolation, validate_hierarchy
from taskflow.domain.ids import ProjectId, UserId, WorkItemId, new_work_item_id
from taskflow.domain.pagination import Page, PageInfo, PageRequest
from taskflow.domain.progress import NO_PROGRESS, Progress, calculate_progress
from taskflow.models.project import utcnow
from taskflow.models.work_item import WorkItem
from taskflow.services.projects import (
    check_version,
    commit_or_conflict,
    require_owned_project,
)
from taskflow.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkItemSummary:
    """One row of a tree level listing."""

    item: WorkItem
    has_children: bool


@dataclass(frozen=True, slots=True)
class WorkItemDetail:
    """A single work item with its read-time aggregates."""

    item: WorkItem
    progress: Progress
    has_children: bool


# ── Helpers ─────────────────────────────────────────────────
async def _load_item(
    session: AsyncSession,
    work_item_id: WorkItemId,
    project_id: ProjectId,
    *,
    for_update: bool = False,
) -> WorkItem:
    stmt = select(WorkItem).where(
        WorkItem.id == work_item_id,
        WorkItem.project_id == project_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    item = (await session.execute(stmt)).scalar_one_or_none()
    if item is None:
        logger.warning("Work item %s not found in project %s", work_item_id, project_id)
        raise NotFound(f"Work item with ID '{work_item_id}' was not found")
    return item


async def _enforce_hierarchy(
    session: AsyncSession,
    project_id: ProjectId,
    kind: WorkItemKind,
    parent_id: WorkItemId | None,
) -> None:
    """Resolve the candidate parent once, then run the pure validator."""
    kinds: dict[WorkItemId, WorkItemKind] = {}
    if parent_id is not None:
        rows = await session.execute(
            select(WorkItem.id, WorkItem.kind).where(
                WorkItem.id == parent_id,
                WorkItem.project_id == project_id,
            )
        )
        kinds = {WorkItemId(row.id): row.kind for row in rows}

    violation = validate_hierarchy(kind, parent_id, kinds.get)
    if violation is None:
        return

    if violation is HierarchyViolation.PARENT_NOT_FOUND:
        logger.warning("Parent work item %s not found in project %s", parent_id, project_id)
        raise NotFound(
            f"Parent work item with ID '{parent_id}' was not found",
            reason=violation.value,
        )

    logger.warning("Hierarchy violation %s for %s under %s", violation.value, kind.value, parent_id)
    raise ValidationError(violation.message, reason=violation.value)


async def _require_user(directory: UserDirectory, user_id: UserId) -> None:
    require_text("User id", user_id, USER_ID_MAX)
    if not await directory.user_exists(user_id):
        logger.warning("User %s not found in the user directory", user_id)
        raise NotFound(f"User with ID '{user_id}' was not found", reason="UserNotFound")


async def _detail(session: AsyncSession, item: WorkItem) -> WorkItemDetail:
    statuses = (
        await session.execute(
            select(WorkItem.status).where(WorkItem.parent_id == item.id)
        )
    ).scalars().all()
    progress = calculate_progress(statuses)
    return WorkItemDetail(item=item, progress=progress, has_children=progress.total > 0)


async def _count_descendants(
    session: AsyncSession,
    project_id: ProjectId,
    root_id: WorkItemId,
) -> int:
    rows = await session.execute(
        select(WorkItem.id, WorkItem.parent_id).where(
            WorkItem.project_id == project_id,
            WorkItem.parent_id.is_not(None),
        )
    )
    children: defaultdict[WorkItemId, list[WorkItemId]] = defaultdict(list)
    for row in rows:
        children[row.parent_id].append(row.id)

    count = 0
    pending = list(children.get(root_id, ()))
    while pending:
        node = pending.pop()
        count += 1
        pending.extend(children.get(node, ()))
    return count


# ── Operations ──────────────────────────────────────────────
async def list_work_items(
    session: AsyncSession,
    project_id: ProjectId,
    user_id: UserId,
    page: PageRequest,
    parent_id: WorkItemId | None = None,
) -> Page[WorkItemSummary]:
    """
    One level of the tree: roots (Epics) when parent_id is None,
    otherwise the direct children of parent_id. Oldest first.
    """
    logger.info(
        "Listing work items for project %s with parent %s (page %d, pageSize %d)",
        project_id, parent_id, page.page, page.page_size,
    )
    await require_owned_project(session, project_id, user_id)

    if parent_id is None:
        level = WorkItem.parent_id.is_(None)
    else:
        await _load_item(session, parent_id, project_id)
        level = WorkItem.parent_id == parent_id
    scope = (WorkItem.project_id == project_id, level)

    total = (
        await session.execute(select(func.count()).select_from(WorkItem).where(*scope))
    ).scalar_one()

    child = aliased(WorkItem)
    has_children = (
        select(child.id).where(child.parent_id == WorkItem.id).exists().label("has_children")
    )
    stmt = (
        select(WorkItem, has_children)
        .where(*scope)
        .order_by(WorkItem.created_at.asc(), WorkItem.id)
        .offset(page.offset)
        .limit(page.page_size)
    )
    rows = (await session.execute(stmt)).all()

    items = [WorkItemSummary(item=row[0], has_children=bool(row[1])) for row in rows]
    return Page(items=items, info=PageInfo.build(page, total))


async def get_work_item(
    session: AsyncSession,
    project_id: ProjectId,
    work_item_id: WorkItemId,
    user_id: UserId,
) -> WorkItemDetail:
    logger.info("Getting work item %s for project %s", work_item_id, project_id)
    await require_owned_project(session, project_id, user_id)
    item = await _load_item(session, work_item_id, project_id)
    return await _detail(session, item)


async def create_work_item(
    session: AsyncSession,
    directory: UserDirectory,
    project_id: ProjectId,
    user_id: UserId,
    *,
    kind: WorkItemKind,
    title: str,
    parent_id: WorkItemId | None = None,
    description: str | None = None,
    assigned_user_id: UserId | None = None,
) -> WorkItemDetail:
    logger.info("Creating %s %r in project %s", kind.value, title, project_id)
    await require_owned_project(session, project_id, user_id)

    title = require_text("Work item title", title, WORK_ITEM_TITLE_MAX)
    description = optional_text(
        "Work item description", description, WORK_ITEM_DESCRIPTION_MAX,
    )
    await _enforce_hierarchy(session, project_id, kind, parent_id)
    if assigned_user_id is not None:
        await _require_user(directory, assigned_user_id)

    now = utcnow()
    item = WorkItem(
        id=new_work_item_id(),
        project_id=project_id,
        parent_id=parent_id,
        kind=kind,
        title=title,
        description=description,
        status=WorkItemStatus.NEW,
        assigned_user_id=assigned_user_id,
        created_at=now,
        updated_at=now,
    )
    session.add(item)
    await commit_or_conflict(session)

    logger.info("Work item %s created", item.id)
    return WorkItemDetail(item=item, progress=NO_PROGRESS, has_children=False)


async def update_work_item(
    session: AsyncSession,
    project_id: ProjectId,
    work_item_id: WorkItemId,
    user_id: UserId,
    *,
    title: str,
    description: str | None = None,
    parent_id: WorkItemId | None = None,
    keep_parent: bool = False,
    expected_version: str | None = None,
) -> WorkItemDetail:
    """
    Replace title/description and optionally move the item.

    The kind never changes. A new parent is validated against the item's
    existing kind, so a Story can only move to another Epic and a Task
    only to another Story. keep_parent=True leaves parent_id untouched.
    """
    logger.info("Updating work item %s in project %s", work_item_id, project_id)
    await require_owned_project(session, project_id, user_id)
    item = await _load_item(session, work_item_id, project_id)
    check_version(item.version_stamp, expected_version)

    title = require_text("Work item title", title, WORK_ITEM_TITLE_MAX)
    description = optional_text(
        "Work item description", description, WORK_ITEM_DESCRIPTION_MAX,
    )
    if not keep_parent and parent_id != item.parent_id:
        await _enforce_hierarchy(session, project_id, item.kind, parent_id)
        item.move_to(parent_id)

    item.rename(title, description)
    await commit_or_conflict(session)

    logger.info("Work item %s updated", work_item_id)
    return await _detail(session, item)


async def delete_work_item(
    session: AsyncSession,
    project_id: ProjectId,
    work_item_id: WorkItemId,
    user_id: UserId,
    *,
    expected_version: str | None = None,
) -> int:
    """Delete an item and its subtree; return 1 + number of descendants."""
    logger.info("Deleting work item %s from project %s", work_item_id, project_id)
    await require_owned_project(session, project_id, user_id)
    item = await _load_item(session, work_item_id, project_id, for_update=True)
    check_version(item.version_stamp, expected_version)

    deleted_count = 1 + await _count_descendants(session, project_id, item.id)

    await session.delete(item)
    await commit_or_conflict(session)

    logger.info(
        "Work item %s and %d descendants deleted", work_item_id, deleted_count - 1,
    )
    return deleted_count


async def set_status(
    session: AsyncSession,
    project_id: ProjectId,
    work_item_id: WorkItemId,
    user_id: UserId,
    status: WorkItemStatus,
    *,
    expected_version: str | None = None,
) -> WorkItemDetail:
    """Any status may follow any other."""
    logger.info("Updating status of work item %s to %s", work_item_id, status.value)
    await require_owned_project(session, project_id, user_id)
    item = await _load_item(session, work_item_id, project_id)
    check_version(item.version_stamp, expected_version)

    item.update_status(status)
    await commit_or_conflict(session)

    return await _detail(session, item)


async def assign(
    session: AsyncSession,
    directory: UserDirectory,
    project_id: ProjectId,
    work_item_id: WorkItemId,
    user_id: UserId,
    assignee_id: UserId | None,
    *,
    expected_version: str | None = None,
) -> WorkItemDetail:
    """Assign to `assignee_id`, or clear the assignment when it is None."""
    logger.info("Assigning work item %s to user %s", work_item_id, assignee_id)
    await require_owned_project(session, project_id, user_id)
    item = await _load_item(session, work_item_id, project_id)
    check_version(item.version_stamp, expected_version)

    if assignee_id is not None:
        await _require_user(directory, assignee_id)

    item.assign(assignee_id)
    await commit_or_conflict(session)

    return await _detail(session, item)
