"""Tests for the work item tree: hierarchy, progress, listing, delete, concurrency."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import OWNER, STRANGER, make_item, make_project
from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.errors import (
    ConcurrencyConflict,
    Forbidden,
    NotFound,
    UserDirectoryUnavailable,
    ValidationError,
)
from taskflow.domain.ids import UserId, WorkItemId
from taskflow.domain.pagination import PageRequest
from taskflow.domain.progress import Progress
from taskflow.services import work_items
from taskflow.services.user_directory import StaticUserDirectory

EPIC = WorkItemKind.EPIC
STORY = WorkItemKind.STORY
TASK = WorkItemKind.TASK


class _BrokenDirectory:
    async def user_exists(self, user_id: UserId) -> bool:
        raise UserDirectoryUnavailable("User directory is temporarily unavailable")


class TestCreate:
    async def test_new_item_defaults(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        detail = await work_items.create_work_item(
            session, StaticUserDirectory(), project_id, OWNER, kind=EPIC, title="Onboarding",
        )
        assert detail.item.status is WorkItemStatus.NEW
        assert detail.item.parent_id is None
        assert detail.item.assigned_user_id is None
        assert detail.progress == Progress(0, 0, 0)
        assert detail.has_children is False

    async def test_full_chain(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)
        task = await make_item(session, project_id, TASK, "T", story)

        detail = await work_items.get_work_item(session, project_id, task, OWNER)
        assert detail.item.parent_id == story

    async def test_epic_with_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, EPIC, "E2", epic)
        assert exc_info.value.reason == "EpicHasParent"

    async def test_story_without_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, STORY, "S")
        assert exc_info.value.reason == "StoryMissingEpicParent"

    async def test_story_under_story(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, STORY, "S2", story)
        assert exc_info.value.reason == "StoryParentWrongKind"

    async def test_task_under_epic(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, TASK, "T", epic)
        assert exc_info.value.reason == "TaskParentWrongKind"

    async def test_task_without_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, TASK, "T")
        assert exc_info.value.reason == "TaskMissingStoryParent"

    async def test_missing_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(NotFound) as exc_info:
            await make_item(session, project_id, STORY, "S", WorkItemId(uuid.uuid4()))
        assert exc_info.value.reason == "ParentNotFound"

    async def test_parent_from_another_project(self, session: AsyncSession) -> None:
        here = await make_project(session, "Here")
        there = await make_project(session, "There")
        foreign_epic = await make_item(session, there, EPIC, "Elsewhere")
        with pytest.raises(NotFound):
            await make_item(session, here, STORY, "S", foreign_epic)

    async def test_blank_title(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(ValidationError) as exc_info:
            await make_item(session, project_id, EPIC, "  ")
        assert exc_info.value.reason == "FieldRequired"

    async def test_stranger_cannot_create(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(Forbidden):
            await work_items.create_work_item(
                session, StaticUserDirectory(), project_id, STRANGER, kind=EPIC, title="E",
            )

    async def test_known_assignee(self, session: AsyncSession, directory: StaticUserDirectory) -> None:
        project_id = await make_project(session)
        detail = await work_items.create_work_item(
            session, directory, project_id, OWNER,
            kind=EPIC, title="E", assigned_user_id=UserId("bob"),
        )
        assert detail.item.assigned_user_id == "bob"

    async def test_unknown_assignee(self, session: AsyncSession, directory: StaticUserDirectory) -> None:
        project_id = await make_project(session)
        with pytest.raises(NotFound) as exc_info:
            await work_items.create_work_item(
                session, directory, project_id, OWNER,
                kind=EPIC, title="E", assigned_user_id=UserId("nobody"),
            )
        assert exc_info.value.reason == "UserNotFound"


class TestProgress:
    async def test_epic_with_one_of_two_stories_done(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        s1 = await make_item(session, project_id, STORY, "S1", epic)
        s2 = await make_item(session, project_id, STORY, "S2", epic)
        await work_items.set_status(session, project_id, s1, OWNER, WorkItemStatus.DONE)
        await work_items.set_status(session, project_id, s2, OWNER, WorkItemStatus.IN_PROGRESS)

        detail = await work_items.get_work_item(session, project_id, epic, OWNER)
        assert detail.progress == Progress(1, 2, 50)
        assert detail.has_children is True

    async def test_empty_epic(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E2")

        detail = await work_items.get_work_item(session, project_id, epic, OWNER)
        assert detail.progress == Progress(0, 0, 0)
        assert detail.has_children is False

    async def test_only_direct_children_count(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)
        task = await make_item(session, project_id, TASK, "T", story)
        await work_items.set_status(session, project_id, task, OWNER, WorkItemStatus.DONE)

        detail = await work_items.get_work_item(session, project_id, epic, OWNER)
        assert detail.progress == Progress(0, 1, 0)

    async def test_any_status_transition_is_allowed(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        for status in (WorkItemStatus.DONE, WorkItemStatus.NEW, WorkItemStatus.IN_PROGRESS):
            detail = await work_items.set_status(session, project_id, epic, OWNER, status)
            assert detail.item.status is status


class TestList:
    async def test_roots_are_epics_in_creation_order(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        e1 = await make_item(session, project_id, EPIC, "E1")
        e2 = await make_item(session, project_id, EPIC, "E2")
        await make_item(session, project_id, STORY, "S", e1)

        page = await work_items.list_work_items(session, project_id, OWNER, PageRequest.clamp(1, 20))
        assert [s.item.id for s in page.items] == [e1, e2]
        assert [s.has_children for s in page.items] == [True, False]
        assert page.info.total_items == 2

    async def test_children_of_a_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)
        task = await make_item(session, project_id, TASK, "T", story)

        stories = await work_items.list_work_items(
            session, project_id, OWNER, PageRequest.clamp(), parent_id=epic,
        )
        tasks = await work_items.list_work_items(
            session, project_id, OWNER, PageRequest.clamp(), parent_id=story,
        )
        assert [s.item.id for s in stories.items] == [story]
        assert stories.items[0].has_children is True
        assert [s.item.id for s in tasks.items] == [task]
        assert tasks.items[0].has_children is False

    async def test_paging_one_level(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        ids = [await make_item(session, project_id, EPIC, f"E{n}") for n in range(5)]

        page = await work_items.list_work_items(session, project_id, OWNER, PageRequest.clamp(3, 2))
        assert [s.item.id for s in page.items] == ids[4:]
        assert page.info.total_pages == 3

    async def test_unknown_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(NotFound):
            await work_items.list_work_items(
                session, project_id, OWNER, PageRequest.clamp(), parent_id=WorkItemId(uuid.uuid4()),
            )

    async def test_stranger_cannot_list(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        with pytest.raises(Forbidden):
            await work_items.list_work_items(session, project_id, STRANGER, PageRequest.clamp())


class TestUpdate:
    async def test_rename_keeps_parent(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)

        detail = await work_items.update_work_item(
            session, project_id, story, OWNER, title="Renamed", description="d", keep_parent=True,
        )
        assert detail.item.title == "Renamed"
        assert detail.item.description == "d"
        assert detail.item.parent_id == epic

    async def test_move_story_to_other_epic(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        e1 = await make_item(session, project_id, EPIC, "E1")
        e2 = await make_item(session, project_id, EPIC, "E2")
        story = await make_item(session, project_id, STORY, "S", e1)

        detail = await work_items.update_work_item(
            session, project_id, story, OWNER, title="S", parent_id=e2,
        )
        assert detail.item.parent_id == e2

    async def test_move_story_under_story_is_rejected(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        s1 = await make_item(session, project_id, STORY, "S1", epic)
        s2 = await make_item(session, project_id, STORY, "S2", epic)

        with pytest.raises(ValidationError) as exc_info:
            await work_items.update_work_item(
                session, project_id, s2, OWNER, title="S2", parent_id=s1,
            )
        assert exc_info.value.reason == "StoryParentWrongKind"

    async def test_detaching_a_story_is_rejected(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        story = await make_item(session, project_id, STORY, "S", epic)

        with pytest.raises(ValidationError) as exc_info:
            await work_items.update_work_item(
                session, project_id, story, OWNER, title="S", parent_id=None,
            )
        assert exc_info.value.reason == "StoryMissingEpicParent"

    async def test_version_changes_on_every_write(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        first = (await work_items.get_work_item(session, project_id, epic, OWNER)).item.version_stamp

        detail = await work_items.set_status(session, project_id, epic, OWNER, WorkItemStatus.READY)
        assert detail.item.version_stamp != first


class TestDelete:
    async def test_counts_subtree(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        subtree = [epic]
        for s in range(2):
            story = await make_item(session, project_id, STORY, f"S{s}", epic)
            subtree.append(story)
            for t in range(3):
                subtree.append(await make_item(session, project_id, TASK, f"T{s}.{t}", story))
        survivor = await make_item(session, project_id, EPIC, "Other")

        deleted = await work_items.delete_work_item(session, project_id, epic, OWNER)
        assert deleted == 9

        for item_id in subtree:
            with pytest.raises(NotFound):
                await work_items.get_work_item(session, project_id, item_id, OWNER)
        await work_items.get_work_item(session, project_id, survivor, OWNER)

    async def test_leaf_counts_itself(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        assert await work_items.delete_work_item(session, project_id, epic, OWNER) == 1

    async def test_story_takes_only_its_tasks(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        s1 = await make_item(session, project_id, STORY, "S1", epic)
        s2 = await make_item(session, project_id, STORY, "S2", epic)
        await make_item(session, project_id, TASK, "T1", s1)
        kept_task = await make_item(session, project_id, TASK, "T2", s2)

        assert await work_items.delete_work_item(session, project_id, s1, OWNER) == 2
        await work_items.get_work_item(session, project_id, kept_task, OWNER)

    async def test_item_from_another_project(self, session: AsyncSession) -> None:
        here = await make_project(session, "Here")
        there = await make_project(session, "There")
        foreign = await make_item(session, there, EPIC, "Elsewhere")
        with pytest.raises(NotFound):
            await work_items.delete_work_item(session, here, foreign, OWNER)


class TestAssign:
    async def test_assign_and_clear(self, session: AsyncSession, directory: StaticUserDirectory) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")

        detail = await work_items.assign(session, directory, project_id, epic, OWNER, UserId("carol"))
        assert detail.item.assigned_user_id == "carol"

        detail = await work_items.assign(session, directory, project_id, epic, OWNER, None)
        assert detail.item.assigned_user_id is None

    async def test_unknown_user(self, session: AsyncSession, directory: StaticUserDirectory) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        with pytest.raises(NotFound):
            await work_items.assign(session, directory, project_id, epic, OWNER, UserId("nobody"))

    async def test_directory_down(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        with pytest.raises(UserDirectoryUnavailable):
            await work_items.assign(session, _BrokenDirectory(), project_id, epic, OWNER, UserId("bob"))


class TestConcurrency:
    async def test_stale_expected_version(self, session: AsyncSession) -> None:
        project_id = await make_project(session)
        epic = await make_item(session, project_id, EPIC, "E")
        seen = (await work_items.get_work_item(session, project_id, epic, OWNER)).item.version_stamp

        await work_items.set_status(
            session, project_id, epic, OWNER, WorkItemStatus.READY, expected_version=seen,
        )
        with pytest.raises(ConcurrencyConflict):
            await work_items.set_status(
                session, project_id, epic, OWNER, WorkItemStatus.DONE, expected_version=seen,
            )

    async def test_interleaved_writers(
        self, session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        async with session_factory() as setup:
            project_id = await make_project(setup)
            epic = await make_item(setup, project_id, EPIC, "E")

        async with session_factory() as first, session_factory() as second:
            # Keep both loaded rows alive; the session only holds weak references.
            held = (await work_items.get_work_item(first, project_id, epic, OWNER)).item
            other = (await work_items.get_work_item(second, project_id, epic, OWNER)).item
            seen = held.version_stamp
            assert other.version_stamp == seen

            await work_items.set_status(second, project_id, epic, OWNER, WorkItemStatus.DONE)
            with pytest.raises(ConcurrencyConflict):
                await work_items.update_work_item(
                    first, project_id, epic, OWNER, title="Lost update", keep_parent=True,
                )
            assert held.version_stamp == seen

        async with session_factory() as check:
            detail = await work_items.get_work_item(check, project_id, epic, OWNER)
            assert detail.item.status is WorkItemStatus.DONE
            assert detail.item.title == "E"
