"""
User directory lookups used to validate assignees.

The directory itself (an identity provider's management API) lives
outside this service. We only ask one question: does this user id exist?

Staleness bound:
  Positive answers are cached per user id for USER_CACHE_TTL_SECONDS
  (30 minutes by default). A cached "yes" means the user existed at some
  point within that window — nothing stronger. Negative answers are not
  cached, so a freshly created user becomes assignable immediately.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import lru_cache
from typing import Protocol
from urllib.parse import quote

import httpx

from taskflow.core.config import settings
from taskflow.domain.errors import UserDirectoryUnavailable
from taskflow.domain.ids import UserId

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    async def user_exists(self, user_id: UserId) -> bool: ...


class HttpUserDirectory:
    """
    Asks GET {base_url}/users/{id}: 200 → exists, 404 → unknown user.

    Any other status or a transport error raises UserDirectoryUnavailable;
    the caller surfaces that as 502 instead of guessing.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        ttl_seconds: float = 1800.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._known: dict[str, float] = {}  # user id -> monotonic expiry

    def _cached(self, user_id: str) -> bool:
        expiry = self._known.get(user_id)
        if expiry is None:
            return False
        if expiry <= self._clock():
            del self._known[user_id]
            return False
        return True

    async def user_exists(self, user_id: UserId) -> bool:
        if self._cached(user_id):
            return True

        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        url = f"{self._base_url}/users/{quote(user_id, safe='')}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("User directory request failed for %s: %s", user_id, exc)
            raise UserDirectoryUnavailable(
                "User directory is temporarily unavailable",
            ) from exc

        if response.status_code == 404:
            return False
        if response.status_code != 200:
            logger.error(
                "User directory error: status=%d body=%s",
                response.status_code,
                response.text[:500],
            )
            raise UserDirectoryUnavailable("User directory is temporarily unavailable")

        now = self._clock()
        self._known = {k: v for k, v in self._known.items() if v > now}
        self._known[user_id] = now + self._ttl
        return True


class StaticUserDirectory:
    """
    In-memory directory for development and tests.

    With `user_ids=None` every id is accepted.
    """

    def __init__(self, user_ids: set[str] | None = None) -> None:
        self._user_ids = user_ids

    async def user_exists(self, user_id: UserId) -> bool:
        return self._user_ids is None or user_id in self._user_ids


@lru_cache(maxsize=1)
def get_user_directory() -> UserDirectory:
    """FastAPI dependency — one directory (and one TTL cache) per process."""
    if not settings.USER_DIRECTORY_URL:
        return StaticUserDirectory()
    return HttpUserDirectory(
        settings.USER_DIRECTORY_URL,
        token=settings.USER_DIRECTORY_TOKEN,
        ttl_seconds=settings.USER_CACHE_TTL_SECONDS,
    )
