"""File-backed key/entry store with TTL metadata."""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from .keys import sanitize_key

Clock = Callable[[], int]

_SUFFIX = ".json"


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def _to_datetime(timestamp_ms: int | None) -> datetime | None:
    if timestamp_ms is None:
        return None
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class CorruptEntryError(ValueError):
    """Raised internally when a cache file cannot be decoded."""


@dataclass(slots=True)
class CacheEntry:
    """A single cached payload; ``expires_at == cached_at + ttl_ms``."""

    data: Any
    cached_at: int
    expires_at: int
    ttl_ms: int
    key: str | None = None

    @classmethod
    def create(cls, data: Any, ttl_ms: int, now: int, *, key: str | None = None) -> "CacheEntry":
        return cls(data=data, cached_at=now, expires_at=now + ttl_ms, ttl_ms=ttl_ms, key=key)

    def is_stale(self, now: int) -> bool:
        return now > self.expires_at

    def to_payload(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "cachedAt": self.cached_at,
            "expiresAt": self.expires_at,
            "ttlMs": self.ttl_ms,
            "key": self.key,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "CacheEntry":
        if not isinstance(payload, dict):
            raise CorruptEntryError("cache entry is not a JSON object")
        try:
            cached_at = int(payload["cachedAt"])
            expires_at = int(payload["expiresAt"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptEntryError(f"cache entry is missing timestamps: {exc}") from exc
        ttl_ms = payload.get("ttlMs")
        if not isinstance(ttl_ms, int):
            ttl_ms = expires_at - cached_at
        return cls(
            data=payload.get("data"),
            cached_at=cached_at,
            expires_at=expires_at,
            ttl_ms=ttl_ms,
            key=payload.get("key") if isinstance(payload.get("key"), str) else None,
        )


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """Result of a cache read."""

    data: Any
    is_stale: bool
    cached_at: int
    age: int


@dataclass(slots=True)
class CacheEntryInfo:
    key: str
    size_bytes: int
    is_stale: bool
    cached_at: datetime | None
    expires_at: datetime | None


@dataclass(slots=True)
class CacheStats:
    """Snapshot of the cache directory, staleness computed at call time."""

    total_entries: int = 0
    fresh_count: int = 0
    stale_count: int = 0
    total_size_bytes: int = 0
    entries: list[CacheEntryInfo] = field(default_factory=list)

    @property
    def total_size_kb(self) -> int:
        return round(self.total_size_bytes / 1024)

    @property
    def total_size_mb(self) -> str:
        return f"{self.total_size_bytes / (1024 * 1024):.2f}"


class CacheStore:
    """Persistent cache backed by one JSON file per key.

    Reads never raise: missing or undecodable files are reported as misses.
    Writes replace the whole file atomically and report failure through their
    return value instead of raising, so callers can continue uncached.
    """

    def __init__(self, root: Path | str, *, clock: Clock | None = None) -> None:
        self.root = Path(root)
        self._clock = clock or now_ms

    def now(self) -> int:
        return self._clock()

    def path_for(self, key: str) -> Path:
        return self.root / f"{sanitize_key(key)}{_SUFFIX}"

    # ------------------------------------------------------------------
    # Public async API
    # ------------------------------------------------------------------
    async def set(self, key: str, data: Any, ttl_ms: int) -> bool:
        entry = CacheEntry.create(data, ttl_ms, self._clock(), key=key)
        try:
            await asyncio.to_thread(self._write_entry, self.path_for(key), entry)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Cache write failed for {}: {}", key, exc)
            return False
        return True

    async def get(self, key: str, *, allow_stale: bool = True) -> CacheLookup | None:
        path = self.path_for(key)
        try:
            entry = await asyncio.to_thread(self._read_entry, path)
        except FileNotFoundError:
            return None
        except (OSError, CorruptEntryError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Cache read failed for {}: {}", key, exc)
            return None

        if entry.key is not None and entry.key != key:
            logger.warning("Cache file for {} holds entry {}; treating as a miss", key, entry.key)
            return None

        now = self._clock()
        stale = entry.is_stale(now)
        if stale and not allow_stale:
            return None
        return CacheLookup(
            data=entry.data,
            is_stale=stale,
            cached_at=entry.cached_at,
            age=now - entry.cached_at,
        )

    async def has_fresh(self, key: str) -> bool:
        return await self.get(key, allow_stale=False) is not None

    async def remove(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self.path_for(key).unlink, missing_ok=True)
        except OSError as exc:
            logger.warning("Cache remove failed for {}: {}", key, exc)
            return False
        return True

    async def clear_all(self) -> bool:
        try:
            await asyncio.to_thread(shutil.rmtree, self.root, ignore_errors=False)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.warning("Cache clear failed: {}", exc)
            return False
        logger.info("All cache entries cleared under {}", self.root)
        return True

    async def stats(self) -> CacheStats:
        try:
            return await asyncio.to_thread(self._collect_stats, self._clock())
        except OSError as exc:
            logger.warning("Cache stats failed: {}", exc)
            return CacheStats()

    async def purge_stale(self) -> int:
        try:
            purged = await asyncio.to_thread(self._purge_stale, self._clock())
        except OSError as exc:
            logger.warning("Cache purge failed: {}", exc)
            return 0
        logger.info("Purged {} stale cache entries", purged)
        return purged

    # ------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # ------------------------------------------------------------------
    def _write_entry(self, path: Path, entry: CacheEntry) -> None:
        atomic_write_text(path, json.dumps(entry.to_payload(), ensure_ascii=False))

    @staticmethod
    def _read_entry(path: Path) -> CacheEntry:
        raw = path.read_text(encoding="utf-8")
        return CacheEntry.from_payload(json.loads(raw))

    def _entry_files(self) -> list[Path]:
        if not self.root.exists():
            return []
        return sorted(
            path
            for path in self.root.iterdir()
            if path.is_file() and path.suffix == _SUFFIX and not path.name.startswith(".tmp-")
        )

    def _collect_stats(self, now: int) -> CacheStats:
        stats = CacheStats()
        for path in self._entry_files():
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                continue
            stats.total_entries += 1
            stats.total_size_bytes += size
            try:
                entry = self._read_entry(path)
            except (OSError, CorruptEntryError, json.JSONDecodeError, UnicodeDecodeError):
                stats.stale_count += 1
                stats.entries.append(
                    CacheEntryInfo(key=path.stem, size_bytes=size, is_stale=True, cached_at=None, expires_at=None)
                )
                continue

            stale = entry.is_stale(now)
            if stale:
                stats.stale_count += 1
            else:
                stats.fresh_count += 1
            stats.entries.append(
                CacheEntryInfo(
                    key=entry.key or path.stem,
                    size_bytes=size,
                    is_stale=stale,
                    cached_at=_to_datetime(entry.cached_at),
                    expires_at=_to_datetime(entry.expires_at),
                )
            )
        return stats

    def _purge_stale(self, now: int) -> int:
        purged = 0
        for path in self._entry_files():
            try:
                entry = self._read_entry(path)
            except FileNotFoundError:
                continue
            except (OSError, CorruptEntryError, json.JSONDecodeError, UnicodeDecodeError):
                # Undecodable entries are treated as expired.
                path.unlink(missing_ok=True)
                purged += 1
                continue
            if entry.is_stale(now):
                path.unlink(missing_ok=True)
                purged += 1
        return purged


__all__ = [
    "CacheEntry",
    "CacheEntryInfo",
    "CacheLookup",
    "CacheStats",
    "CacheStore",
    "Clock",
    "atomic_write_text",
    "CorruptEntryError",
    "now_ms",
]
