"""
ETag / If-Match plumbing for optimistic concurrency.

The row's version stamp leaves the service only as an opaque ETag.
Clients that send it back in If-Match get a 409 if the row moved on;
clients that don't send it still get last-writer-wins per request,
guarded against interleaved writes by the mapper's version check.
"""

from typing import Annotated

from fastapi import Header, Response

IfMatch = Annotated[
    str | None,
    Header(alias="If-Match", description="ETag from a previous read"),
]


def expected_version(if_match: str | None) -> str | None:
    """Strip weak prefix and quotes; "*" means no precondition."""
    if if_match is None:
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    if not value or value == "*":
        return None
    return value


def set_etag(response: Response, version_stamp: str) -> None:
    response.headers["ETag"] = f'"{version_stamp}"'
