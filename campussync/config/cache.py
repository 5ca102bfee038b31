"""Configuration for the persistent response cache."""

from __future__ import annotations

from pydantic import Field

from .base import BaseConfig

_MINUTE_MS = 60 * 1000


class CacheConfig(BaseConfig):
    """Cache location and per-resource TTLs (minutes)."""

    directory: str = Field("app_cache", description="Cache directory, relative to data_dir")

    filters_ttl_minutes: int = Field(24 * 60, description="TTL for filter option lists", ge=1)
    papers_ttl_minutes: int = Field(10, description="TTL for paginated paper queries", ge=1)
    papers_all_ttl_minutes: int = Field(60, description="TTL for the full papers dataset", ge=1)
    notifications_ttl_minutes: int = Field(30, description="TTL for notification lists", ge=1)
    stats_ttl_minutes: int = Field(60, description="TTL for aggregated statistics", ge=1)
    subjects_ttl_minutes: int = Field(24 * 60, description="TTL for subject listings", ge=1)

    def ttl_ms(self, resource: str) -> int:
        """Return the TTL for ``resource`` (e.g. ``"papers_all"``) in milliseconds."""
        minutes = getattr(self, f"{resource}_ttl_minutes")
        return int(minutes) * _MINUTE_MS


__all__ = ["CacheConfig"]
