"""
Bulk approval — persist an externally generated Epic → Story → Task draft.

The draft carries titles and descriptions only; ids, parent links,
status (New) and assignee (none) are decided here.

Order of work:
  1. Ownership check.
  2. Shape + field validation of the whole forest (ValidationError).
  3. Duplicate Epic titles, against the project and within the batch
     (Conflict). Nothing has been written yet.
  4. Build rows, flush level by level (epics, stories, tasks) so parents
     always exist before their children, then commit once.
  5. Any failure in step 4 rolls the whole batch back: zero new rows.

Per-node hierarchy validation is skipped on purpose. The forest can only
produce Epic → Story → Task links because of how it is built, and step 2
rejects anything that is not shaped that way.
"""

from __future__ import annotations

import datetime
import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.errors import Conflict, ValidationError
from taskflow.domain.fields import (
    WORK_ITEM_DESCRIPTION_MAX,
    WORK_ITEM_TITLE_MAX,
    optional_text,
    require_text,
)
from taskflow.domain.ids import ProjectId, UserId, WorkItemId, new_work_item_id
from taskflow.models.project import utcnow
from taskflow.models.work_item import WorkItem
from taskflow.services.projects import require_owned_project

logger = logging.getLogger(__name__)


# ── Draft tree ──────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class DraftTask:
    title: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class DraftStory:
    title: str
    description: str | None = None
    tasks: Sequence[DraftTask] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class DraftEpic:
    title: str
    description: str | None = None
    stories: Sequence[DraftStory] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class ApprovalResult:
    epics: int
    stories: int
    tasks: int
    work_item_ids: list[WorkItemId]

    @property
    def total(self) -> int:
        return self.epics + self.stories + self.tasks


# ── Validation ──────────────────────────────────────────────
def _check_node(node: object, expected: type, path: str) -> None:
    if not isinstance(node, expected):
        raise ValidationError(
            f"{path} must be a {expected.__name__.removeprefix('Draft')}",
            reason="MalformedDraft",
        )
    require_text(f"{path} title", node.title, WORK_ITEM_TITLE_MAX)  # type: ignore[attr-defined]
    optional_text(f"{path} description", node.description, WORK_ITEM_DESCRIPTION_MAX)  # type: ignore[attr-defined]


def validate_draft(epics: Sequence[DraftEpic]) -> None:
    """Reject anything that is not a non-empty Epic → Story → Task forest."""
    if not epics:
        raise ValidationError("Draft must contain at least one Epic", reason="MalformedDraft")

    for e, epic in enumerate(epics):
        _check_node(epic, DraftEpic, f"epics[{e}]")
        for s, story in enumerate(epic.stories):
            _check_node(story, DraftStory, f"epics[{e}].stories[{s}]")
            for t, task in enumerate(story.tasks):
                _check_node(task, DraftTask, f"epics[{e}].stories[{s}].tasks[{t}]")


async def _check_duplicate_epics(
    session: AsyncSession,
    project_id: ProjectId,
    epics: Sequence[DraftEpic],
) -> None:
    titles = [epic.title for epic in epics]

    repeated = sorted(title for title, n in Counter(titles).items() if n > 1)
    existing = (
        await session.execute(
            select(WorkItem.title).where(
                WorkItem.project_id == project_id,
                WorkItem.kind == WorkItemKind.EPIC,
                WorkItem.title.in_(set(titles)),
            )
        )
    ).scalars().all()

    duplicates = sorted(set(existing) | set(repeated))
    if duplicates:
        logger.warning(
            "Approval for project %s rejected: duplicate Epic titles %s",
            project_id, duplicates,
        )
        raise Conflict(
            "Epics with these titles already exist: " + ", ".join(duplicates),
            reason="DuplicateEpicTitle",
        )


# ── Transaction ─────────────────────────────────────────────
async def approve_draft(
    session: AsyncSession,
    project_id: ProjectId,
    user_id: UserId,
    epics: Sequence[DraftEpic],
) -> ApprovalResult:
    """Create every node of the draft in one transaction, or none of them."""
    logger.info("Approving draft with %d epics for project %s", len(epics), project_id)

    await require_owned_project(session, project_id, user_id)
    validate_draft(epics)
    await _check_duplicate_epics(session, project_id, epics)

    # Creation time follows draft order so siblings list in the order given.
    base = utcnow()
    sequence = 0

    def new_row(kind: WorkItemKind, parent_id: WorkItemId | None, title: str, description: str | None) -> WorkItem:
        nonlocal sequence
        created_at = base + datetime.timedelta(microseconds=sequence)
        sequence += 1
        return WorkItem(
            id=new_work_item_id(),
            project_id=project_id,
            parent_id=parent_id,
            kind=kind,
            title=title,
            description=description,
            status=WorkItemStatus.NEW,
            assigned_user_id=None,
            created_at=created_at,
            updated_at=created_at,
        )

    epic_rows: list[WorkItem] = []
    story_rows: list[WorkItem] = []
    task_rows: list[WorkItem] = []

    story_drafts: list[tuple[WorkItem, DraftStory]] = []
    for epic in epics:
        epic_row = new_row(WorkItemKind.EPIC, None, epic.title, epic.description)
        epic_rows.append(epic_row)
        for story in epic.stories:
            story_row = new_row(WorkItemKind.STORY, epic_row.id, story.title, story.description)
            story_rows.append(story_row)
            story_drafts.append((story_row, story))

    for story_row, story in story_drafts:
        for task in story.tasks:
            task_rows.append(
                new_row(WorkItemKind.TASK, story_row.id, task.title, task.description)
            )

    try:
        for level in (epic_rows, story_rows, task_rows):
            session.add_all(level)
            await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Failed to persist approved draft for project %s", project_id)
        raise

    result = ApprovalResult(
        epics=len(epic_rows),
        stories=len(story_rows),
        tasks=len(task_rows),
        work_item_ids=[WorkItemId(row.id) for row in (*epic_rows, *story_rows, *task_rows)],
    )
    logger.info(
        "Draft approved for project %s: %d epics, %d stories, %d tasks",
        project_id, result.epics, result.stories, result.tasks,
    )
    return result
