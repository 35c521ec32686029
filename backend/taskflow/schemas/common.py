"""
Shared pydantic v2 building blocks.

The wire format is camelCase (pageSize, parentId, hasChildren …);
Python code stays snake_case. populate_by_name lets tests and internal
callers use either spelling.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from taskflow.domain.pagination import PageInfo


class ApiModel(BaseModel):
    """Base for every response schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(ApiModel):
    """
    Base for request bodies.

    extra="forbid" rejects unknown fields (e.g. a client-supplied id or
    status on create) with 422 instead of silently ignoring them.
    """

    model_config = ConfigDict(extra="forbid")


class PaginationOut(ApiModel):
    current_page: int
    page_size: int
    total_items: int
    total_pages: int

    @classmethod
    def from_info(cls, info: PageInfo) -> PaginationOut:
        return cls(
            current_page=info.current_page,
            page_size=info.page_size,
            total_items=info.total_items,
            total_pages=info.total_pages,
        )


class DeleteResponse(ApiModel):
    """Confirmation for a delete, with how many work items went with it."""

    message: str
    deleted_count: int


class ErrorOut(ApiModel):
    """Body of every non-2xx response produced by this service."""

    error: str
    reason: str | None = None
    detail: str
    errors: list[dict[str, Any]] | None = None
