"""Stateful papers controller over the cached full dataset.

The session fetches every paper once through the stale-while-revalidate
cache, then answers all search, filter and "load more" requests locally
with :mod:`campussync.query`. When a background refresh lands, the dataset
is swapped in one assignment and the current query re-runs from page 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from loguru import logger

from campussync.api.cached import CachedCampusApi
from campussync.query import DEFAULT_PAGE_SIZE, Page, QueryOptions, Record, extract_facets, query
from campussync.query.engine import normalize

from .subjects import SubjectDirectory

INITIAL_FILTERS: Mapping[str, str] = MappingProxyType(
    {
        "deptCode": "",
        "examType": "",
        "midsemNumber": "",
        "year": "",
        "category": "",
        "subjectCode": "",
        "session": "",
    }
)

_SEARCH_TEXT_FIELDS = (
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

SessionListener = Callable[["PaperSession"], None]


@dataclass(slots=True)
class SyncStatus:
    from_cache: bool = False
    is_stale: bool = False
    cached_at: int | None = None
    total_papers_loaded: int = 0
    last_sync_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fromCache": self.from_cache,
            "isStale": self.is_stale,
            "cachedAt": self.cached_at,
            "totalPapersLoaded": self.total_papers_loaded,
            "lastSyncError": self.last_sync_error,
        }


def _is_active(value: Any) -> bool:
    return value is not None and value != ""


class PaperSession:
    """Search, filter and paginate the campus papers dataset offline."""

    def __init__(
        self,
        api: CachedCampusApi,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        subjects: SubjectDirectory | None = None,
    ) -> None:
        self.api = api
        self.page_size = page_size
        self.subjects = subjects or SubjectDirectory()

        self.dataset: tuple[Record, ...] = ()
        self.facets: dict[str, list[Any]] = {}
        self.papers: list[Record] = []
        self.page: Page = Page.empty(page_size)
        self.search_query = ""
        self.filters: dict[str, Any] = dict(INITIAL_FILTERS)
        self.status = SyncStatus()
        self.error: str | None = None
        self.loading = False

        self._listeners: list[SessionListener] = []

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self, *, force_refresh: bool = False) -> bool:
        """Load the full dataset. Returns ``False`` when the fetch failed."""

        self.loading = True
        self.error = None
        try:
            result = await self.api.fetch_all_papers(
                force_refresh=force_refresh,
                on_fresh_data=self._apply_fresh_data,
            )
        finally:
            self.loading = False

        if result.error is not None:
            logger.error("Failed to load papers: {}", result.error)
            self.error = result.error or "Failed to load papers"
            self.status.last_sync_error = self.error
            self._notify()
            return False

        self._replace_dataset(result.data)
        self.status = SyncStatus(
            from_cache=result.from_cache,
            is_stale=result.is_stale,
            cached_at=result.cached_at or self.api.orchestrator.store.now(),
            total_papers_loaded=len(self.dataset),
        )
        logger.info(
            "Loaded {} papers (from_cache={}, stale={})",
            len(self.dataset),
            result.from_cache,
            result.is_stale,
        )
        self.run_query()
        return True

    async def refresh(self) -> bool:
        return await self.load(force_refresh=True)

    def _apply_fresh_data(self, fresh: Any) -> None:
        self._replace_dataset(fresh)
        self.status = SyncStatus(
            cached_at=self.api.orchestrator.store.now(),
            total_papers_loaded=len(self.dataset),
        )
        logger.info("Background refresh delivered {} papers", len(self.dataset))
        self.run_query()

    def _replace_dataset(self, records: Iterable[Mapping[str, Any]] | None) -> None:
        processed = tuple(self.preprocess(record) for record in records or () if isinstance(record, Mapping))
        self.dataset = processed
        self.facets = extract_facets(processed)

    def preprocess(self, record: Mapping[str, Any]) -> Record:
        """Attach ``subjectName`` and a normalized ``searchText`` to a record."""
        enriched = dict(record)
        enriched["subjectName"] = self.subjects.get_name(record.get("subjectCode")) or ""
        parts = [str(enriched[name]) for name in _SEARCH_TEXT_FIELDS if enriched.get(name)]
        enriched["searchText"] = normalize(" ".join(parts))
        return MappingProxyType(enriched)

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------
    def run_query(self, page: int = 1) -> Page:
        """Query the local dataset; page 1 replaces ``papers``, later pages append."""

        if not self.dataset:
            result = Page.empty(self.page_size)
        else:
            result = query(
                self.dataset,
                QueryOptions(
                    query=self.search_query.strip(),
                    filters=self.filters,
                    page=page,
                    page_size=self.page_size,
                ),
            )

        if result.current_page == 1:
            self.papers = list(result.data)
        else:
            self.papers = [*self.papers, *result.data]
        self.page = result
        self._notify()
        return result

    def load_more(self) -> bool:
        if not self.page.has_more or self.page.next_page is None:
            return False
        self.run_query(self.page.next_page)
        return True

    def set_query(self, text: str) -> Page:
        self.search_query = text or ""
        return self.run_query()

    def clear_search(self) -> Page:
        return self.set_query("")

    def update_filter(self, key: str, value: Any) -> Page:
        """Set ``key`` to ``value``, or clear it when it already equals ``value``."""
        self.filters[key] = "" if self.filters.get(key) == value else value
        return self.run_query()

    def set_filters(self, filters: Mapping[str, Any]) -> Page:
        self.filters.update(filters)
        return self.run_query()

    def clear_filters(self) -> Page:
        self.filters = dict(INITIAL_FILTERS)
        return self.run_query()

    def reset_all(self) -> Page:
        self.search_query = ""
        self.filters = dict(INITIAL_FILTERS)
        return self.run_query()

    @property
    def active_filter_count(self) -> int:
        return sum(1 for value in self.filters.values() if _is_active(value))

    @property
    def has_active_filters(self) -> bool:
        return self.active_filter_count > 0 or bool(self.search_query.strip())

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener``; call the returned function to unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                logger.warning("Paper session listener failed: {}", exc)


__all__ = ["PaperSession", "SyncStatus", "INITIAL_FILTERS"]
