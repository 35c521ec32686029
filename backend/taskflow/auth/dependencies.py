"""
FastAPI dependency that resolves the calling user.

Credentials are validated by the gateway in front of this service, which
forwards the authenticated user id in a header (USER_ID_HEADER, default
X-User-Id). When ENVIRONMENT is "dev", DEV_USER_ID may stand in for it.

Security:
  • Generic 401 for every failure mode (missing, blank, oversized)
  • The header value is never trusted for anything beyond ownership checks
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from taskflow.core.config import settings
from taskflow.domain.fields import USER_ID_MAX
from taskflow.domain.ids import UserId

logger = logging.getLogger(__name__)

# Generic 401 — same message for all identity failures to avoid leaking info
_AUTH_FAILED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Missing or invalid user identity.",
)


async def get_current_user(request: Request) -> UserId:
    """
    FastAPI dependency — returns the caller's user id.

    Usage in routers:
        CurrentUser = Annotated[UserId, Depends(get_current_user)]
    """
    raw = request.headers.get(settings.USER_ID_HEADER, "").strip()

    if not raw and settings.DEV_USER_ID and settings.ENVIRONMENT == "dev":
        return UserId(settings.DEV_USER_ID)

    if not raw or len(raw) > USER_ID_MAX:
        logger.debug("Rejected request without a usable %s header", settings.USER_ID_HEADER)
        raise _AUTH_FAILED

    return UserId(raw)


CurrentUser = Annotated[UserId, Depends(get_current_user)]
