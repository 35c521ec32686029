"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity, report which user directory is used.
  • On shutdown: dispose the engine cleanly.

Routers:
  • /projects — owner-scoped project CRUD
  • /projects/{id}/work-items — the Epic → Story → Task tree
  • /assistant — bulk approval of generated drafts
  • /health — shallow liveness probe

Errors:
  Every TaskFlowError becomes {"error", "reason", "detail"} with the
  status from _STATUS_BY_ERROR. Request-shape failures use the same
  envelope (422, reason "InvalidRequest").
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from taskflow.core.config import settings
from taskflow.core.database import engine
from taskflow.domain.errors import (
    ConcurrencyConflict,
    Conflict,
    Forbidden,
    NotFound,
    TaskFlowError,
    UserDirectoryUnavailable,
    ValidationError,
)
from taskflow.routers.assistant import router as assistant_router
from taskflow.routers.projects import router as projects_router
from taskflow.routers.work_items import router as work_items_router
from taskflow.schemas.common import ErrorOut

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[TaskFlowError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Conflict: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    UserDirectoryUnavailable: status.HTTP_502_BAD_GATEWAY,
}


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup — verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    if settings.USER_DIRECTORY_URL:
        logger.info("Assignees are checked against %s", settings.USER_DIRECTORY_URL)
    else:
        logger.warning(
            "USER_DIRECTORY_URL is not set — every assignee id will be accepted."
        )

    yield  # ← application runs here

    # Shutdown — clean up connection pool
    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "Project and work item tracking — "
        "Epics, Stories and Tasks with progress roll-up and draft approval."
    ),
    lifespan=lifespan,
)

# Mount routers
app.include_router(projects_router, prefix="/projects")
app.include_router(work_items_router, prefix="/projects/{project_id}/work-items")
app.include_router(assistant_router, prefix="/assistant")


# ── Error envelope ──────────────────────────────────────────
@app.exception_handler(TaskFlowError)
async def taskflow_error_handler(_request: Request, exc: TaskFlowError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    body = ErrorOut(error=exc.code, reason=exc.reason, detail=exc.message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    body = ErrorOut(
        error=ValidationError.code,
        reason="InvalidRequest",
        detail="Request body or parameters failed validation",
        errors=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "healthy"}
