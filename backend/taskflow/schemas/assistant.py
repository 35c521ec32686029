"""
Pydantic v2 schemas for approving an assistant-generated draft.

The nesting (epics → stories → tasks) is the contract: a body that is
shaped differently fails validation with 422 before the service runs.
No ids are accepted — every id is assigned on approval.
"""

from __future__ import annotations

import uuid

from pydantic import Field

from taskflow.domain.fields import WORK_ITEM_DESCRIPTION_MAX, WORK_ITEM_TITLE_MAX
from taskflow.schemas.common import ApiModel, RequestModel
from taskflow.services.approval import ApprovalResult, DraftEpic, DraftStory, DraftTask


# ── Request schemas ─────────────────────────────────────────
class TaskDraftIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=WORK_ITEM_TITLE_MAX)
    description: str | None = Field(default=None, max_length=WORK_ITEM_DESCRIPTION_MAX)


class StoryDraftIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=WORK_ITEM_TITLE_MAX)
    description: str | None = Field(default=None, max_length=WORK_ITEM_DESCRIPTION_MAX)
    tasks: list[TaskDraftIn] = Field(default_factory=list)


class EpicDraftIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=WORK_ITEM_TITLE_MAX)
    description: str | None = Field(default=None, max_length=WORK_ITEM_DESCRIPTION_MAX)
    stories: list[StoryDraftIn] = Field(default_factory=list)


class ApproveDraftRequest(RequestModel):
    project_id: uuid.UUID
    epics: list[EpicDraftIn] = Field(..., min_length=1)

    def to_drafts(self) -> list[DraftEpic]:
        return [
            DraftEpic(
                title=epic.title,
                description=epic.description,
                stories=tuple(
                    DraftStory(
                        title=story.title,
                        description=story.description,
                        tasks=tuple(
                            DraftTask(title=task.title, description=task.description)
                            for task in story.tasks
                        ),
                    )
                    for story in epic.stories
                ),
            )
            for epic in self.epics
        ]


# ── Response schemas ────────────────────────────────────────
class CreatedCounts(ApiModel):
    epics: int
    stories: int
    tasks: int
    total: int


class ApproveDraftResponse(ApiModel):
    created_work_items: CreatedCounts
    work_item_ids: list[uuid.UUID]

    @classmethod
    def from_result(cls, result: ApprovalResult) -> ApproveDraftResponse:
        return cls(
            created_work_items=CreatedCounts(
                epics=result.epics,
                stories=result.stories,
                tasks=result.tasks,
                total=result.total,
            ),
            work_item_ids=result.work_item_ids,
        )
