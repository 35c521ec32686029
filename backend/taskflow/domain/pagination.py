"""
Paging rules shared by project and work item listings.

Out-of-range values are clamped rather than rejected: page 0 becomes 1 and
a pageSize of 500 becomes 100. Negative numbers are a client bug and raise
ValidationError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from taskflow.domain.errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def clamp(cls, page: int | None = None, page_size: int | None = None) -> PageRequest:
        page = DEFAULT_PAGE if page is None else page
        page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size
        if page < 0 or page_size < 0:
            raise ValidationError(
                "page and pageSize must not be negative",
                reason="InvalidPagination",
            )
        return cls(
            page=max(1, page),
            page_size=min(max(1, page_size), MAX_PAGE_SIZE),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class PageInfo:
    current_page: int
    page_size: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, request: PageRequest, total_items: int) -> PageInfo:
        return cls(
            current_page=request.page,
            page_size=request.page_size,
            total_items=total_items,
            total_pages=math.ceil(total_items / request.page_size),
        )


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    items: list[T]
    info: PageInfo
