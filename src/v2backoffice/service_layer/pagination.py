"""ABOUTME: Page arithmetic shared by the user and invoice job listings
ABOUTME: Turns page/limit into an offset and the totals into the pagination block the API returns"""

import math
from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_args(cls, page: object = None, limit: object = None) -> "PageRequest":
        """Lenient parsing of query string values, falling back to page 1 of 10."""
        return cls(
            page=max(_to_int(page, 1), 1),
            limit=min(max(_to_int(limit, DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, request: PageRequest, total: int) -> "Pagination":
        total_pages = math.ceil(total / request.limit)
        return cls(
            current_page=request.page,
            total_pages=total_pages,
            total=total,
            has_next=request.page < total_pages,
            has_prev=request.page > 1,
        )

    def to_dict(self, total_key: str) -> dict[str, int | bool]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            total_key: self.total,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def _to_int(value: object, default: int) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return default
