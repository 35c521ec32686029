"""
Assistant router — turns an approved draft into real work items.

Drafting itself (the generation model) happens elsewhere; the client
holds the draft until the user approves it.

POST /assistant/approve
  1. Identifies the caller.
  2. Validates the draft shape (Pydantic).
  3. Creates the whole Epic → Story → Task forest in one transaction.
  4. 409 if any Epic title already exists in the project; nothing is written.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import CurrentUser
from taskflow.core.database import get_db_session
from taskflow.domain.ids import ProjectId
from taskflow.schemas.assistant import ApproveDraftRequest, ApproveDraftResponse
from taskflow.services.approval import approve_draft

router = APIRouter(tags=["Assistant"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.post(
    "/approve",
    response_model=ApproveDraftResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Persist an approved Epic → Story → Task draft",
    description=(
        "All-or-nothing: either every node of the draft is created or none is. "
        "Fails with 409 if an Epic with the same title already exists."
    ),
)
async def approve(
    payload: ApproveDraftRequest,
    session: DbSession,
    user: CurrentUser,
) -> ApproveDraftResponse:
    result = await approve_draft(
        session,
        ProjectId(payload.project_id),
        user,
        payload.to_drafts(),
    )
    return ApproveDraftResponse.from_result(result)
