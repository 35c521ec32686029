"""
Epic → Story → Task parent rules.

validate_hierarchy() is a pure decision: it never touches the database.
The caller injects `resolve`, which maps a candidate parent id to that
parent's kind within the same project (or None if there is no such item).
The service builds it from one query; tests pass a dict's .get.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from taskflow.domain.enums import WorkItemKind
from taskflow.domain.ids import WorkItemId

ParentResolver = Callable[[WorkItemId], WorkItemKind | None]

# Kind each non-root kind must hang under.
REQUIRED_PARENT_KIND: dict[WorkItemKind, WorkItemKind] = {
    WorkItemKind.STORY: WorkItemKind.EPIC,
    WorkItemKind.TASK: WorkItemKind.STORY,
}


class HierarchyViolation(str, Enum):
    EPIC_HAS_PARENT = "EpicHasParent"
    STORY_MISSING_EPIC_PARENT = "StoryMissingEpicParent"
    STORY_PARENT_WRONG_KIND = "StoryParentWrongKind"
    TASK_MISSING_STORY_PARENT = "TaskMissingStoryParent"
    TASK_PARENT_WRONG_KIND = "TaskParentWrongKind"
    PARENT_NOT_FOUND = "ParentNotFound"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    HierarchyViolation.EPIC_HAS_PARENT: "Epic cannot have a parent",
    HierarchyViolation.STORY_MISSING_EPIC_PARENT: "Story must have an Epic as parent",
    HierarchyViolation.STORY_PARENT_WRONG_KIND: "Story parent must be an Epic",
    HierarchyViolation.TASK_MISSING_STORY_PARENT: "Task must have a Story as parent",
    HierarchyViolation.TASK_PARENT_WRONG_KIND: "Task parent must be a Story",
    HierarchyViolation.PARENT_NOT_FOUND: "Parent work item was not found in this project",
}

_MISSING = {
    WorkItemKind.STORY: HierarchyViolation.STORY_MISSING_EPIC_PARENT,
    WorkItemKind.TASK: HierarchyViolation.TASK_MISSING_STORY_PARENT,
}

_WRONG_KIND = {
    WorkItemKind.STORY: HierarchyViolation.STORY_PARENT_WRONG_KIND,
    WorkItemKind.TASK: HierarchyViolation.TASK_PARENT_WRONG_KIND,
}


def validate_hierarchy(
    kind: WorkItemKind,
    parent_id: WorkItemId | None,
    resolve: ParentResolver,
) -> HierarchyViolation | None:
    """Return None when (kind, parent_id) is allowed, else the violated rule."""
    if kind is WorkItemKind.EPIC:
        return HierarchyViolation.EPIC_HAS_PARENT if parent_id is not None else None

    if parent_id is None:
        return _MISSING[kind]

    parent_kind = resolve(parent_id)
    if parent_kind is None:
        return HierarchyViolation.PARENT_NOT_FOUND
    if parent_kind != REQUIRED_PARENT_KIND[kind]:
        return _WRONG_KIND[kind]
    return None
