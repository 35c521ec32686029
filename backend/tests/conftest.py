"""Shared pytest fixtures and helpers for TaskFlow tests."""

from __future__ import annotations

import os

# Settings are read at import time; give them a database before anything
# from taskflow is imported. Each test still gets its own file database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import taskflow.models.project  # noqa: F401
import taskflow.models.work_item  # noqa: F401
from taskflow.core.config import settings
from taskflow.core.database import Base, build_engine, get_db_session
from taskflow.domain.enums import WorkItemKind
from taskflow.domain.ids import ProjectId, UserId, WorkItemId
from taskflow.services import projects, work_items
from taskflow.services.user_directory import StaticUserDirectory, get_user_directory

OWNER = UserId("alice")
STRANGER = UserId("mallory")
KNOWN_USERS = {"alice", "bob", "carol"}


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """SQLite file database with every table created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def directory() -> StaticUserDirectory:
    return StaticUserDirectory(KNOWN_USERS)


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    directory: StaticUserDirectory,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client bound to the app, one fresh session per request."""
    from taskflow.main import app

    monkeypatch.setattr(settings, "DEV_USER_ID", "")

    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_user_directory] = lambda: directory
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            headers={settings.USER_ID_HEADER: OWNER},
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


async def make_project(
    session: AsyncSession, name: str = "Checkout revamp", owner: UserId = OWNER,
) -> ProjectId:
    project = await projects.create_project(session, owner, name)
    return ProjectId(project.id)


async def make_item(
    session: AsyncSession,
    project_id: ProjectId,
    kind: WorkItemKind,
    title: str,
    parent_id: WorkItemId | None = None,
) -> WorkItemId:
    detail = await work_items.create_work_item(
        session,
        StaticUserDirectory(),
        project_id,
        OWNER,
        kind=kind,
        title=title,
        parent_id=parent_id,
    )
    return WorkItemId(detail.item.id)
