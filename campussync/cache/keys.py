"""Cache key construction and default TTL presets."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Mapping

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS

MAX_FILENAME_LENGTH = 120
DIGEST_LENGTH = 16

# Defaults used when no CacheConfig is supplied.
CACHE_TTL: dict[str, int] = {
    "filters": 24 * _HOUR_MS,
    "papers": 10 * _MINUTE_MS,
    "papers_all": _HOUR_MS,
    "notifications": 30 * _MINUTE_MS,
    "stats": _HOUR_MS,
    "subjects": 24 * _HOUR_MS,
}

CACHE_KEYS: dict[str, str] = {
    "filters": "filters",
    "stats": "stats",
    "notifications": "notifications",
    "subjects": "subjects",
    "papers_all": "papers_all",
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_REPEATED_SEPARATORS = re.compile(r"__+")


def build_cache_key(prefix: str, params: Mapping[str, Any] | None = None) -> str:
    """Build a deterministic cache key from a resource name and its query params.

    Parameters whose value is ``None`` or an empty string are ignored and the
    remaining ones are sorted by name, so ``{"b": 1, "a": 2}`` and
    ``{"a": 2, "b": 1, "c": ""}`` map to the same key.
    """

    if not params:
        return prefix
    filtered = sorted(
        ((name, value) for name, value in params.items() if value is not None and value != ""),
        key=lambda item: item[0],
    )
    if not filtered:
        return prefix
    param_str = "&".join(f"{name}={value}" for name, value in filtered)
    return f"{prefix}_{param_str}"


def sanitize_key(key: str) -> str:
    """Map ``key`` to a filesystem-safe file stem.

    The stem is a readable, truncated form of the key followed by a SHA1
    digest of the full key, so keys that only differ in unsafe characters or
    past the truncation point still get distinct files.
    """

    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]
    readable = _REPEATED_SEPARATORS.sub("_", _UNSAFE_CHARS.sub("_", key)).strip("_")
    readable = readable[: MAX_FILENAME_LENGTH - DIGEST_LENGTH - 1].rstrip("_")
    return f"{readable}-{digest}" if readable else digest


__all__ = [
    "CACHE_TTL",
    "CACHE_KEYS",
    "MAX_FILENAME_LENGTH",
    "DIGEST_LENGTH",
    "build_cache_key",
    "sanitize_key",
]
