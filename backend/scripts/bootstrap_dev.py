"""
Dev bootstrap script — seed a demo project for local development.

Usage (from backend/, with DEV_USER_ID set in .env):
    python -m scripts.bootstrap_dev

This will:
  1. Create a project named "Demo Project" owned by DEV_USER_ID
  2. Approve a small Epic → Story → Task draft into it
  3. Print the project id and what was created
"""

import asyncio

from taskflow.core.config import settings
from taskflow.core.database import async_session_factory, engine
from taskflow.domain.ids import UserId
from taskflow.services.approval import DraftEpic, DraftStory, DraftTask, approve_draft
from taskflow.services.projects import create_project

DEMO_DRAFT = [
    DraftEpic(
        title="User onboarding",
        description="Everything a new user sees in their first session.",
        stories=(
            DraftStory(
                title="Sign-up form",
                tasks=(
                    DraftTask(title="Design the form"),
                    DraftTask(title="Validate email addresses"),
                ),
            ),
            DraftStory(
                title="Welcome tour",
                tasks=(DraftTask(title="Write tour copy"),),
            ),
        ),
    ),
    DraftEpic(
        title="Reporting",
        stories=(DraftStory(title="Weekly summary email"),),
    ),
]


async def main() -> None:
    if not settings.DEV_USER_ID:
        raise SystemExit("DEV_USER_ID is not set — nothing to own the demo project.")

    owner = UserId(settings.DEV_USER_ID)

    async with async_session_factory() as session:
        project = await create_project(
            session, owner, "Demo Project", "Seeded by scripts.bootstrap_dev",
        )
        result = await approve_draft(session, project.id, owner, DEMO_DRAFT)

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  Owner:      {owner}")
    print(f"  Project:    {project.name}")
    print(f"  Project ID: {project.id}")
    print()
    print(
        f"  Created:    {result.epics} epics, {result.stories} stories, "
        f"{result.tasks} tasks"
    )
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
