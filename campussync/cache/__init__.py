"""Persistent cache and stale-while-revalidate fetching."""

from campussync.cache.keys import CACHE_KEYS, CACHE_TTL, build_cache_key, sanitize_key
from campussync.cache.store import CacheEntry, CacheLookup, CacheStats, CacheStore, now_ms
from campussync.cache.sync import FetchOptions, FetchResult, SyncOrchestrator

__all__ = [
    "CACHE_KEYS",
    "CACHE_TTL",
    "build_cache_key",
    "sanitize_key",
    "CacheEntry",
    "CacheLookup",
    "CacheStats",
    "CacheStore",
    "now_ms",
    "FetchOptions",
    "FetchResult",
    "SyncOrchestrator",
]
