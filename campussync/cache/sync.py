"""Stale-while-revalidate fetch wrapper around :class:`CacheStore`."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from loguru import logger

from campussync.errors import ApiError

from .store import CacheStore

FetchFn = Callable[..., Awaitable[Any]]
FreshDataCallback = Callable[[Any], Any]


@dataclass(slots=True)
class FetchOptions:
    """Options for :meth:`SyncOrchestrator.cached_fetch`.

    ``ttl_ms`` is required. ``force_refresh`` bypasses the cache lookup and
    ``on_fresh_data`` is invoked (sync or async) after a background refresh
    has been written to the cache.
    """

    ttl_ms: int
    force_refresh: bool = False
    on_fresh_data: FreshDataCallback | None = None


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of one cached fetch. ``error`` is set and ``data`` is ``None`` on failure."""

    data: Any
    from_cache: bool
    is_stale: bool
    cached_at: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _call_args(args: Any) -> tuple[Any, ...]:
    if args is None:
        return ()
    if isinstance(args, (list, tuple)):
        return tuple(args)
    return (args,)


class SyncOrchestrator:
    """Serve cached data first and refresh stale entries in the background.

    Background refreshes run as detached tasks. At most one refresh per key is
    in flight at a time; stale hits arriving while one is pending reuse it.
    """

    def __init__(self, store: CacheStore) -> None:
        self.store = store
        self._in_flight: dict[str, asyncio.Task[None]] = {}

    @property
    def pending_refreshes(self) -> list[str]:
        return [key for key, task in self._in_flight.items() if not task.done()]

    async def cached_fetch(
        self,
        key: str,
        fetch_fn: FetchFn,
        args: Sequence[Any] | Any = (),
        options: FetchOptions | None = None,
        **overrides: Any,
    ) -> FetchResult:
        """Return data for ``key``, fetching only when nothing usable is cached.

        ``overrides`` accepts the :class:`FetchOptions` fields as keywords for
        convenience (``ttl_ms=...``, ``force_refresh=...``).
        """

        opts = self._resolve_options(options, overrides)
        call_args = _call_args(args)

        if not opts.force_refresh:
            cached = await self.store.get(key, allow_stale=True)
            if cached is not None:
                if not cached.is_stale:
                    logger.debug("Cache hit for {} (age {} ms)", key, cached.age)
                    return FetchResult(cached.data, from_cache=True, is_stale=False, cached_at=cached.cached_at)

                logger.debug("Serving stale cache for {}; refreshing in background", key)
                self._schedule_refresh(key, fetch_fn, call_args, opts)
                return FetchResult(cached.data, from_cache=True, is_stale=True, cached_at=cached.cached_at)

        try:
            fresh = await fetch_fn(*call_args)
        except ApiError as exc:
            logger.warning("Fetch failed for {}: {}", key, exc)
            return FetchResult(None, from_cache=False, is_stale=False, error=str(exc) or type(exc).__name__)

        written = await self.store.set(key, fresh, opts.ttl_ms)
        if not written:
            logger.warning("Proceeding without cache for {}", key)
        return FetchResult(fresh, from_cache=False, is_stale=False, cached_at=self.store.now())

    async def wait_for_refreshes(self) -> None:
        """Wait until every pending background refresh has finished."""
        while self._in_flight:
            tasks = list(self._in_flight.values())
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    def _resolve_options(self, options: FetchOptions | None, overrides: dict[str, Any]) -> FetchOptions:
        if options is None:
            if "ttl_ms" not in overrides:
                raise TypeError("cached_fetch() requires ttl_ms")
            return FetchOptions(**overrides)
        if overrides:
            return FetchOptions(
                ttl_ms=overrides.get("ttl_ms", options.ttl_ms),
                force_refresh=overrides.get("force_refresh", options.force_refresh),
                on_fresh_data=overrides.get("on_fresh_data", options.on_fresh_data),
            )
        return options

    def _schedule_refresh(
        self,
        key: str,
        fetch_fn: FetchFn,
        call_args: tuple[Any, ...],
        opts: FetchOptions,
    ) -> None:
        existing = self._in_flight.get(key)
        if existing is not None and not existing.done():
            logger.debug("Background refresh for {} already in flight", key)
            return

        task = asyncio.create_task(self._refresh(key, fetch_fn, call_args, opts), name=f"cache-refresh:{key}")
        self._in_flight[key] = task
        task.add_done_callback(lambda done, key=key: self._forget(key, done))

    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _refresh(
        self,
        key: str,
        fetch_fn: FetchFn,
        call_args: tuple[Any, ...],
        opts: FetchOptions,
    ) -> None:
        try:
            fresh = await fetch_fn(*call_args)
            await self.store.set(key, fresh, opts.ttl_ms)
            if opts.on_fresh_data is not None:
                outcome = opts.on_fresh_data(fresh)
                if inspect.isawaitable(outcome):
                    await outcome
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Background refresh failed for {}: {}", key, exc)


__all__ = ["FetchOptions", "FetchResult", "SyncOrchestrator", "FetchFn"]
