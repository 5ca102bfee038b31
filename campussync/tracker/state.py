"""On-disk state for the digest tracker (hash, seen titles, meta)."""

from __future__ import annotations

import asyncio
import json
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from campussync.cache.store import atomic_write_text

from .models import TrackerMeta
from .seen import DEFAULT_MAX_SEEN_TITLES, SeenTitleSet

HASH_FILE = "digest_hash.json"
SEEN_TITLES_FILE = "seen_titles.json"
TRACKER_META_FILE = "tracker_meta.json"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrackerStateStore:
    """JSON files under a private directory, one per piece of tracker state.

    Unreadable or malformed files read back as their defaults, which makes the
    tracker fall back to a first-sync reseed instead of failing.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    async def load_hash(self) -> str | None:
        payload = await self._read_json(HASH_FILE)
        value = payload.get("hash") if isinstance(payload, dict) else None
        return value if isinstance(value, str) and value else None

    async def save_hash(self, digest_hash: str) -> bool:
        return await self._write_json(HASH_FILE, {"hash": digest_hash, "savedAt": _utc_now_iso()})

    async def load_seen(self, max_size: int = DEFAULT_MAX_SEEN_TITLES) -> SeenTitleSet:
        payload = await self._read_json(SEEN_TITLES_FILE)
        titles = payload.get("titles") if isinstance(payload, dict) else None
        if not isinstance(titles, list):
            titles = []
        return SeenTitleSet((title for title in titles if isinstance(title, str)), max_size=max_size)

    async def save_seen(self, titles: SeenTitleSet) -> bool:
        ordered = titles.to_list()
        return await self._write_json(
            SEEN_TITLES_FILE,
            {"titles": ordered, "count": len(ordered), "savedAt": _utc_now_iso()},
        )

    async def load_meta(self) -> TrackerMeta:
        return TrackerMeta.from_dict(await self._read_json(TRACKER_META_FILE))

    async def save_meta(self, meta: TrackerMeta) -> bool:
        meta.updated_at = _utc_now_iso()
        return await self._write_json(TRACKER_META_FILE, meta.to_dict())

    async def clear(self) -> bool:
        try:
            await asyncio.to_thread(shutil.rmtree, self.root)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.warning("Tracker state reset failed: {}", exc)
            return False
        return True

    # ------------------------------------------------------------------
    async def _read_json(self, name: str) -> Any:
        path = self.root / name
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Tracker state read failed for {}: {}", name, exc)
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Tracker state file {} is corrupt: {}", name, exc)
            return None

    async def _write_json(self, name: str, payload: dict[str, Any]) -> bool:
        try:
            await asyncio.to_thread(atomic_write_text, self.root / name, json.dumps(payload, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Tracker state write failed for {}: {}", name, exc)
            return False
        return True


__all__ = ["TrackerStateStore", "HASH_FILE", "SEEN_TITLES_FILE", "TRACKER_META_FILE"]
