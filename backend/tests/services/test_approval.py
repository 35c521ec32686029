"""Tests for the all-or-nothing draft approval transaction."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import OWNER, STRANGER, make_item, make_project
from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.errors import Conflict, Forbidden, ValidationError
from taskflow.domain.ids import ProjectId
from taskflow.domain.pagination import PageRequest
from taskflow.models.work_item import WorkItem
from taskflow.services import work_items
from taskflow.services.approval import (
    DraftEpic,
    DraftStory,
    DraftTask,
    approve_draft,
    validate_draft,
)


def sample_draft(first_epic: str = "Onboarding") -> list[DraftEpic]:
    return [
        DraftEpic(
            title=first_epic,
            description="First-run experience",
            stories=(
                DraftStory(
                    title="Sign-up",
                    tasks=(DraftTask(title="Form"), DraftTask(title="Email check")),
                ),
                DraftStory(title="Tour", tasks=(DraftTask(title="Copy"),)),
            ),
        ),
        DraftEpic(title="Reporting", stories=(DraftStory(title="Weekly email"),)),
    ]


async def count_items(session: AsyncSession, project_id: ProjectId) -> int:
    return (
        await session.execute(
            select(func.count()).select_from(WorkItem).where(WorkItem.project_id == project_id)
        )
    ).scalar_one()


class TestApprove:
    async def test_creates_whole_forest(self, session: AsyncSession) -> None:
        project_id = await make_project(session)

        result = await approve_draft(session, project_id, OWNER, sample_draft())

        assert (result.epics, result.stories, result.tasks, result.total) == (2, 3, 3, 8)
        assert len(result.work_item_ids) == 8
        assert len(set(result.work_item_ids)) == 8
        assert await count_items(session, project_id) == 8

    async def test_tree_is_linked_and_ordered(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        await approve_draft(session, project_id, OWNER, sample_draft())

        epics = await work_items.list_work_items(session, project_id, OWNER, PageRequest.clamp())
        assert [s.item.title for s in epics.items] == ["Onboarding", "Reporting"]
        assert all(s.has_children for s in epics.items)

        onboarding = epics.items[0].item
        stories = await work_items.list_work_items(
            session, project_id, OWNER, PageRequest.clamp(), parent_id=onboarding.id,
        )
        assert [s.item.title for s in stories.items] == ["Sign-up", "Tour"]

        tasks = await work_items.list_work_items(
            session, project_id, OWNER, PageRequest.clamp(), parent_id=stories.items[0].item.id,
        )
        assert [s.item.title for s in tasks.items] == ["Form", "Email check"]
        assert all(s.item.kind is WorkItemKind.TASK for s in tasks.items)
        assert all(s.item.status is WorkItemStatus.NEW for s in tasks.items)
        assert all(s.item.assigned_user_id is None for s in tasks.items)

    async def test_stranger_is_forbidden(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(Forbidden):
            await approve_draft(session, project_id, STRANGER, sample_draft())
        assert await count_items(session, project_id) == 0


class TestDuplicates:
    async def test_existing_epic_title_commits_nothing(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        await make_item(session, project_id, WorkItemKind.EPIC, "Reporting")

        with pytest.raises(Conflict) as exc_info:
            await approve_draft(session, project_id, OWNER, sample_draft())
        assert exc_info.value.reason == "DuplicateEpicTitle"
        assert "Reporting" in exc_info.value.message
        assert await count_items(session, project_id) == 1

    async def test_retry_without_duplicate_succeeds(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        await make_item(session, project_id, WorkItemKind.EPIC, "Reporting")

        with pytest.raises(Conflict):
            await approve_draft(session, project_id, OWNER, sample_draft())

        retry = [epic for epic in sample_draft() if epic.title != "Reporting"]
        result = await approve_draft(session, project_id, OWNER, retry)
        assert result.total == 6
        assert await count_items(session, project_id) == 7

    async def test_repeated_title_within_draft(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        draft = [DraftEpic(title="Same"), DraftEpic(title="Same")]
        with pytest.raises(Conflict):
            await approve_draft(session, project_id, OWNER, draft)
        assert await count_items(session, project_id) == 0

    async def test_story_titles_may_repeat(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, WorkItemKind.EPIC, "Existing")
        await make_item(session, project_id, WorkItemKind.STORY, "Sign-up", epic)

        result = await approve_draft(session, project_id, OWNER, sample_draft())
        assert result.total == 8

    async def test_same_title_in_other_project_is_fine(self, session: AsyncSession) -> None:
        other = await make_project(session, "Other")
        await make_item(session, other, WorkItemKind.EPIC, "Reporting")
        project_id = await make_project(session)

        result = await approve_draft(session, project_id, OWNER, sample_draft())
        assert result.epics == 2


class TestAtomicity:
    async def test_failed_commit_leaves_zero_rows(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async with session_factory() as setup:
            project_id = await make_project(setup)

        async with session_factory() as session:
            async def failing_commit() -> None:
                raise RuntimeError("store went away")

            monkeypatch.setattr(session, "commit", failing_commit)
            with pytest.raises(RuntimeError):
                await approve_draft(session, project_id, OWNER, sample_draft())

        async with session_factory() as check:
            assert await count_items(check, project_id) == 0

    async def test_failure_after_upper_levels_flushed_leaves_zero_rows(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async with session_factory() as setup:
            project_id = await make_project(setup)

        async with session_factory() as session:
            real_flush = session.flush
            flushed: list[WorkItemKind] = []

            async def flush_until_tasks(*args, **kwargs) -> None:
                kinds = {obj.kind for obj in session.new if isinstance(obj, WorkItem)}
                if WorkItemKind.TASK in kinds:
                    raise RuntimeError("store went away")
                await real_flush(*args, **kwargs)
                flushed.extend(kinds)

            monkeypatch.setattr(session, "flush", flush_until_tasks)
            with pytest.raises(RuntimeError):
                await approve_draft(session, project_id, OWNER, sample_draft())
            assert WorkItemKind.EPIC in flushed
            assert WorkItemKind.STORY in flushed

        async with session_factory() as check:
            assert await count_items(check, project_id) == 0


class TestValidateDraft:
    def test_empty_draft(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_draft([])
        assert exc_info.value.reason == "MalformedDraft"

    def test_wrong_node_type(self) -> None:
        draft = [DraftEpic(title="E", stories=(DraftTask(title="not a story"),))]  # type: ignore[arg-type]
        with pytest.raises(ValidationError) as exc_info:
            validate_draft(draft)
        assert exc_info.value.reason == "MalformedDraft"

    def test_blank_task_title(self) -> None:
        draft = [DraftEpic(title="E", stories=(DraftStory(title="S", tasks=(DraftTask(title=" "),)),))]
        with pytest.raises(ValidationError) as exc_info:
            validate_draft(draft)
        assert "tasks[0]" in exc_info.value.message

    def test_epics_without_stories_are_fine(self) -> None:
        validate_draft([DraftEpic(title="Lonely")])
