"""Cache-first wrappers around :class:`CampusApiClient`."""

from __future__ import annotations

from typing import Any

from campussync.cache.keys import CACHE_KEYS, CACHE_TTL, build_cache_key
from campussync.cache.sync import FetchResult, FreshDataCallback, SyncOrchestrator
from campussync.config.cache import CacheConfig

from .client import CampusApiClient


class CachedCampusApi:
    """Serve API resources through the stale-while-revalidate orchestrator.

    Each resource has its own TTL; parameterised resources get one cache entry
    per distinct parameter set.
    """

    def __init__(
        self,
        client: CampusApiClient,
        orchestrator: SyncOrchestrator,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self.client = client
        self.orchestrator = orchestrator
        self._cache_config = cache_config

    def ttl_ms(self, resource: str) -> int:
        if self._cache_config is not None:
            return self._cache_config.ttl_ms(resource)
        return CACHE_TTL[resource]

    async def fetch_all_papers(
        self,
        *,
        force_refresh: bool = False,
        on_fresh_data: FreshDataCallback | None = None,
    ) -> FetchResult:
        return await self.orchestrator.cached_fetch(
            CACHE_KEYS["papers_all"],
            self.client.fetch_all_papers,
            ttl_ms=self.ttl_ms("papers_all"),
            force_refresh=force_refresh,
            on_fresh_data=on_fresh_data,
        )

    async def fetch_papers(
        self,
        options: dict[str, Any] | None = None,
        *,
        force_refresh: bool = False,
        on_fresh_data: FreshDataCallback | None = None,
    ) -> FetchResult:
        options = options or {}

        async def _fetch() -> dict[str, Any]:
            return await self.client.fetch_papers(**options)

        return await self.orchestrator.cached_fetch(
            build_cache_key("papers", options),
            _fetch,
            ttl_ms=self.ttl_ms("papers"),
            force_refresh=force_refresh,
            on_fresh_data=on_fresh_data,
        )

    async def fetch_filters(self, *, force_refresh: bool = False) -> FetchResult:
        return await self.orchestrator.cached_fetch(
            CACHE_KEYS["filters"],
            self.client.fetch_filters,
            ttl_ms=self.ttl_ms("filters"),
            force_refresh=force_refresh,
        )

    async def fetch_stats(self, *, force_refresh: bool = False) -> FetchResult:
        return await self.orchestrator.cached_fetch(
            CACHE_KEYS["stats"],
            self.client.fetch_stats,
            ttl_ms=self.ttl_ms("stats"),
            force_refresh=force_refresh,
        )

    async def fetch_subjects(self, options: dict[str, Any] | None = None, *, force_refresh: bool = False) -> FetchResult:
        options = options or {}

        async def _fetch() -> list[dict[str, Any]]:
            return await self.client.fetch_subjects(**options)

        return await self.orchestrator.cached_fetch(
            build_cache_key(CACHE_KEYS["subjects"], options),
            _fetch,
            ttl_ms=self.ttl_ms("subjects"),
            force_refresh=force_refresh,
        )

    async def fetch_notifications(
        self,
        options: dict[str, Any] | None = None,
        *,
        force_refresh: bool = False,
        on_fresh_data: FreshDataCallback | None = None,
    ) -> FetchResult:
        options = options or {}

        async def _fetch() -> dict[str, Any]:
            return await self.client.fetch_notifications(**options)

        return await self.orchestrator.cached_fetch(
            build_cache_key(CACHE_KEYS["notifications"], options),
            _fetch,
            ttl_ms=self.ttl_ms("notifications"),
            force_refresh=force_refresh,
            on_fresh_data=on_fresh_data,
        )


__all__ = ["CachedCampusApi"]
