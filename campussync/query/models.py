"""Types shared by the local query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

Record = Mapping[str, Any]
SortOrder = Literal["asc", "desc"]

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT_FIELD = "year"

SORT_FIELDS: tuple[str, ...] = (
    "year",
    "subjectCode",
    "department",
    "examType",
    "uploadedAt",
    "fileSizeKB",
)

SEARCH_FIELDS: tuple[str, ...] = (
    "subjectCode",
    "subjectName",
    "department",
    "category",
    "examType",
    "examTypeRaw",
    "year",
    "session",
    "fileName",
)

FACET_FIELDS: tuple[str, ...] = (
    "department",
    "deptCode",
    "subjectCode",
    "category",
    "examType",
    "year",
    "session",
    "variant",
)


@dataclass(slots=True)
class QueryOptions:
    query: str = ""
    filters: Mapping[str, Any] = field(default_factory=dict)
    page: Any = 1
    page_size: Any = DEFAULT_PAGE_SIZE
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: str = "desc"


@dataclass(frozen=True, slots=True)
class Page:
    """One page of query results plus pagination metadata."""

    data: list[Record]
    current_page: int
    page_size: int
    total_records: int
    total_pages: int
    has_more: bool
    next_page: int | None

    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "pageSize": self.page_size,
            "totalRecords": self.total_records,
            "totalPages": self.total_pages,
            "hasMore": self.has_more,
            "nextPage": self.next_page,
        }

    @classmethod
    def empty(cls, page_size: int = DEFAULT_PAGE_SIZE) -> "Page":
        return cls(
            data=[],
            current_page=1,
            page_size=page_size,
            total_records=0,
            total_pages=0,
            has_more=False,
            next_page=None,
        )


__all__ = [
    "Record",
    "SortOrder",
    "QueryOptions",
    "Page",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "DEFAULT_SORT_FIELD",
    "SORT_FIELDS",
    "SEARCH_FIELDS",
    "FACET_FIELDS",
]
