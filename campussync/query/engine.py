"""In-memory search, filtering, sorting and pagination over records.

Every function here is pure and synchronous: the input sequence is never
mutated and no I/O happens, so results depend only on the arguments.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Hashable
from functools import cmp_to_key
from typing import Any, Iterable, Mapping, Sequence

from .models import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT_FIELD,
    FACET_FIELDS,
    MAX_PAGE_SIZE,
    SEARCH_FIELDS,
    SORT_FIELDS,
    Page,
    QueryOptions,
    Record,
)

MULTI_VALUE_FIELD = "year"
NUMERIC_FILTER_FIELDS = ("midsemNumber",)

_WHITESPACE = re.compile(r"\s+")


def normalize(text: Any) -> str:
    """Lowercase, trim and collapse runs of whitespace."""
    if text is None:
        return ""
    return _WHITESPACE.sub(" ", str(text).lower().strip())


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and not value)


def _countable_values(value: Any) -> list[Any]:
    candidates = value if isinstance(value, (list, tuple)) else (value,)
    return [item for item in candidates if not _is_blank(item) and isinstance(item, Hashable)]


def build_search_text(record: Record, fields: Iterable[str] = SEARCH_FIELDS) -> str:
    parts = [str(record.get(name)) for name in fields if not _is_blank(record.get(name))]
    return normalize(" ".join(parts))


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
def matches_search(record: Record, query: str) -> bool:
    terms = normalize(query).split()
    if not terms:
        return True
    haystack = record.get("searchText") or build_search_text(record)
    return all(term in haystack for term in terms)


def search(records: Sequence[Record], query: str | None) -> list[Record]:
    """Keep records whose search text contains every whitespace token of ``query``."""
    if not query or not query.strip():
        return list(records)
    return [record for record in records if matches_search(record, query)]


# ----------------------------------------------------------------------
# Filter
# ----------------------------------------------------------------------
def _year_values(expected: Any) -> set[str]:
    if isinstance(expected, (list, tuple, set)):
        candidates = expected
    else:
        candidates = str(expected).split(",")
    return {str(value).strip() for value in candidates if str(value).strip()}


def matches_filter(record: Record, criteria: Mapping[str, Any]) -> bool:
    for name, expected in criteria.items():
        if _is_blank(expected):
            continue

        actual = record.get(name)
        if name == MULTI_VALUE_FIELD:
            if actual is None or str(actual) not in _year_values(expected):
                return False
        elif name in NUMERIC_FILTER_FIELDS:
            try:
                wanted = int(expected)
            except (TypeError, ValueError):
                continue
            if actual != wanted:
                return False
        elif actual != expected:
            return False
    return True


def filter_records(records: Sequence[Record], criteria: Mapping[str, Any] | None) -> list[Record]:
    """Keep records matching every non-empty criterion exactly."""
    if not criteria or all(_is_blank(value) for value in criteria.values()):
        return list(records)
    return [record for record in records if matches_filter(record, criteria)]


# ----------------------------------------------------------------------
# Sort
# ----------------------------------------------------------------------
def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _compare(left: Any, right: Any) -> int:
    if _is_number(left) and _is_number(right):
        return (left > right) - (left < right)
    left_str, right_str = str(left), str(right)
    return (left_str > right_str) - (left_str < right_str)


def sort_records(records: Sequence[Record], field: str | None = DEFAULT_SORT_FIELD, order: str = "desc") -> list[Record]:
    """Stable sort on ``field``; unknown fields fall back to ``year``."""

    sort_field = field if field in SORT_FIELDS else DEFAULT_SORT_FIELD

    def _value(record: Record) -> Any:
        value = record.get(sort_field)
        return "" if value is None else value

    key = cmp_to_key(lambda a, b: _compare(_value(a), _value(b)))
    return sorted(records, key=key, reverse=order != "asc")


# ----------------------------------------------------------------------
# Pagination
# ----------------------------------------------------------------------
def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def paginate(records: Sequence[Record], page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE) -> Page:
    """Slice ``records`` into one page; out-of-range pages come back empty."""

    size = min(max(_coerce_int(page_size, DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
    current = max(_coerce_int(page, 1), 1)
    total = len(records)
    total_pages = math.ceil(total / size)
    start = (current - 1) * size
    has_more = current < total_pages
    return Page(
        data=list(records[start : start + size]),
        current_page=current,
        page_size=size,
        total_records=total,
        total_pages=total_pages,
        has_more=has_more,
        next_page=current + 1 if has_more else None,
    )


def query(records: Sequence[Record], options: QueryOptions | None = None, **kwargs: Any) -> Page:
    """Search, then filter, then sort, then paginate."""

    opts = options or QueryOptions(**kwargs)
    results = search(records, opts.query)
    results = filter_records(results, opts.filters)
    results = sort_records(results, opts.sort_field, opts.sort_order)
    return paginate(results, opts.page, opts.page_size)


# ----------------------------------------------------------------------
# Dataset helpers
# ----------------------------------------------------------------------
def extract_facets(records: Iterable[Record], fields: Iterable[str] = FACET_FIELDS) -> dict[str, list[Any]]:
    """Distinct non-empty values per field, sorted alphabetically.

    List values contribute each of their items. Mappings and other unhashable
    values are skipped.
    """

    field_names = tuple(fields)
    values: dict[str, set[Any]] = {name: set() for name in field_names}
    for record in records:
        for name in field_names:
            values[name].update(_countable_values(record.get(name)))
    return {name: sorted(found, key=str) for name, found in values.items()}


def get_by_id(records: Iterable[Record], record_id: Any) -> Record | None:
    for record in records:
        if record.get("id") == record_id:
            return record
    return None


def compute_stats(records: Sequence[Record]) -> dict[str, Any]:
    def _count_by(name: str) -> dict[Any, int]:
        return dict(Counter(value for record in records for value in _countable_values(record.get(name))))

    return {
        "totalPapers": len(records),
        "byDepartment": _count_by("department"),
        "byYear": _count_by("year"),
        "byExamType": _count_by("examType"),
        "byCategory": _count_by("category"),
        "bySubjectCode": _count_by("subjectCode"),
        "byFileExtension": _count_by("fileExtension"),
    }


__all__ = [
    "normalize",
    "build_search_text",
    "matches_search",
    "search",
    "matches_filter",
    "filter_records",
    "sort_records",
    "paginate",
    "query",
    "extract_facets",
    "get_by_id",
    "compute_stats",
]
