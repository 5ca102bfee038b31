"""Client-side query engine over an in-memory dataset."""

from campussync.query.engine import (
    build_search_text,
    compute_stats,
    extract_facets,
    filter_records,
    get_by_id,
    matches_filter,
    matches_search,
    normalize,
    paginate,
    query,
    search,
    sort_records,
)
from campussync.query.models import (
    DEFAULT_PAGE_SIZE,
    FACET_FIELDS,
    MAX_PAGE_SIZE,
    SORT_FIELDS,
    Page,
    QueryOptions,
    Record,
)

__all__ = [
    "build_search_text",
    "compute_stats",
    "extract_facets",
    "filter_records",
    "get_by_id",
    "matches_filter",
    "matches_search",
    "normalize",
    "paginate",
    "query",
    "search",
    "sort_records",
    "Page",
    "QueryOptions",
    "Record",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SORT_FIELDS",
    "FACET_FIELDS",
]
