"""Digest-based change detection for the campus alert feed.

A poll fetches a tiny fingerprint of the remote feed. Only when it differs
from the last persisted fingerprint is the full feed downloaded and diffed
against the titles seen so far; genuinely new titles produce one batched
alert. The very first successful sync only seeds the seen-set.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from loguru import logger

from campussync.errors import ApiError, NetworkError
from campussync.cache.store import Clock, now_ms
from campussync.config.tracker import TrackerConfig

from .models import FeedItem, PollResult, TrackerMeta
from .notifier import DEFAULT_ALERT_TITLE, Notifier
from .seen import DEFAULT_MAX_SEEN_TITLES, SeenTitleSet
from .state import TrackerStateStore

POLL_COOLDOWN_SECONDS = 5 * 60
FETCH_TIMEOUT_SECONDS = 15.0


class DigestSource(Protocol):
    async def fetch_digest(self, *, timeout: float | None = None) -> dict[str, Any]: ...

    async def fetch_digest_full(self, *, timeout: float | None = None) -> list[dict[str, Any]]: ...


def _describe(exc: ApiError) -> str:
    kind = "Network error" if isinstance(exc, NetworkError) else "Server error"
    return f"{kind}: {exc}"


class DigestTracker:
    """Poll the digest endpoint and dispatch alerts for new feed items.

    All mutable state (polling flag, cooldown clock, in-memory copies of the
    hash and seen-set) belongs to the instance, so independent trackers never
    interfere with each other.
    """

    def __init__(
        self,
        source: DigestSource,
        state: TrackerStateStore,
        notifier: Notifier | None = None,
        *,
        cooldown_seconds: float = POLL_COOLDOWN_SECONDS,
        max_seen_titles: int = DEFAULT_MAX_SEEN_TITLES,
        timeout_seconds: float = FETCH_TIMEOUT_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        self.source = source
        self.state = state
        self.notifier = notifier
        self.cooldown_ms = int(cooldown_seconds * 1000)
        self.max_seen_titles = max_seen_titles
        self.timeout_seconds = timeout_seconds
        self._clock = clock or now_ms

        self._is_polling = False
        self._last_poll_ms: int | None = None
        self._hash_loaded = False
        self._cached_hash: str | None = None
        self._seen: SeenTitleSet | None = None

    @classmethod
    def from_config(
        cls,
        config: TrackerConfig,
        source: DigestSource,
        state: TrackerStateStore,
        notifier: Notifier | None = None,
    ) -> "DigestTracker":
        return cls(
            source,
            state,
            notifier,
            cooldown_seconds=config.cooldown_seconds,
            max_seen_titles=config.max_seen_titles,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def is_polling(self) -> bool:
        return self._is_polling

    def cooldown_remaining_ms(self) -> int:
        if self._last_poll_ms is None:
            return 0
        elapsed = self._clock() - self._last_poll_ms
        return max(self.cooldown_ms - elapsed, 0)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    async def check_for_new(self, *, force: bool = False) -> PollResult:
        """Run one poll cycle. Never raises; failures land in ``error``."""

        if self._is_polling:
            return PollResult.skip("already_polling")

        remaining = self.cooldown_remaining_ms()
        if not force and remaining > 0:
            return PollResult.skip("cooldown", cooldown_remaining_ms=remaining)

        self._is_polling = True
        self._last_poll_ms = self._clock()
        try:
            return await self._poll()
        except Exception as exc:
            logger.error("Unexpected error while polling digest: {}", exc)
            return PollResult.failed(str(exc))
        finally:
            self._is_polling = False

    async def force_poll(self) -> PollResult:
        return await self.check_for_new(force=True)

    async def get_hash(self) -> str | None:
        if not self._hash_loaded:
            self._cached_hash = await self.state.load_hash()
            self._hash_loaded = True
        return self._cached_hash

    async def get_seen_titles(self) -> SeenTitleSet:
        if self._seen is None:
            self._seen = await self.state.load_seen(self.max_seen_titles)
        return self._seen

    async def reset(self) -> bool:
        """Forget every persisted and in-memory trace of previous polls."""
        self._cached_hash = None
        self._hash_loaded = False
        self._seen = None
        self._last_poll_ms = None
        cleared = await self.state.clear()
        if cleared:
            logger.info("Digest tracker reset complete")
        return cleared

    async def stats(self) -> dict[str, Any]:
        meta = await self.state.load_meta()
        return {
            "currentHash": await self.get_hash(),
            "seenTitlesCount": len(await self.get_seen_titles()),
            "lastPollAt": meta.last_poll_at,
            "lastNewCount": meta.last_new_count,
            "totalChecks": meta.total_checks,
            "totalNewDetected": meta.total_new_detected,
            "lastResult": meta.last_result or "none",
            "isPolling": self._is_polling,
            "cooldownActive": self.cooldown_remaining_ms() > 0,
        }

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------
    async def _poll(self) -> PollResult:
        meta = await self.state.load_meta()

        logger.debug("Polling alert digest")
        try:
            digest = await self.source.fetch_digest(timeout=self.timeout_seconds)
        except ApiError as exc:
            logger.warning("Digest fetch failed: {}", exc)
            return PollResult.failed(_describe(exc))

        server_hash = digest.get("hash") if isinstance(digest, dict) else None
        if not isinstance(server_hash, str) or not server_hash:
            logger.warning("Digest response carried no hash")
            return PollResult.failed("No hash in digest response")

        local_hash = await self.get_hash()
        logger.debug("Digest hash compare: local={} server={}", local_hash or "none", server_hash)

        if local_hash == server_hash:
            meta.last_poll_at = self._now_iso()
            meta.last_hash = server_hash
            meta.total_checks += 1
            meta.last_result = "no_change"
            await self.state.save_meta(meta)
            logger.info("No alert changes detected")
            return PollResult(checked=True, hash=server_hash)

        logger.info("Digest hash changed; fetching full feed")
        try:
            raw_items = await self.source.fetch_digest_full(timeout=self.timeout_seconds)
        except ApiError as exc:
            # Leave the stored hash alone so the next poll retries the full fetch.
            logger.warning("Full feed fetch failed: {}", exc)
            return PollResult.failed(f"Full data fetch failed: {exc}")

        items = [FeedItem.from_dict(raw) for raw in raw_items if isinstance(raw, dict)]
        seen = await self.get_seen_titles()
        new_items = self._diff(items, seen)
        is_first_sync = local_hash is None

        if is_first_sync:
            logger.info("First sync; seeding {} feed items without alerting", len(items))
            new_items = []
        elif new_items:
            logger.info("{} new alert(s) detected", len(new_items))
            await self._dispatch(new_items)
        else:
            logger.info("Digest changed but no unseen titles (items removed or reordered)")

        updated_seen = seen.copy()
        updated_seen.update(title for title in (item.title.strip() for item in items) if title)

        # Seen titles are written before the hash: if the hash write is lost the
        # next poll re-diffs against the updated set instead of re-alerting.
        if not await self.state.save_seen(updated_seen):
            return PollResult.failed("Failed to persist seen titles")
        if not await self.state.save_hash(server_hash):
            return PollResult.failed("Failed to persist digest hash")
        self._seen = updated_seen
        self._cached_hash = server_hash
        self._hash_loaded = True

        new_count = len(new_items)
        meta.last_poll_at = self._now_iso()
        meta.last_hash = server_hash
        meta.last_new_count = new_count
        meta.total_checks += 1
        meta.total_new_detected += new_count
        meta.last_result = "first_sync" if is_first_sync else ("new_found" if new_count else "hash_changed_no_new")
        meta.seen_titles_count = len(updated_seen)
        await self.state.save_meta(meta)

        return PollResult(
            checked=True,
            has_new=new_count > 0,
            new_count=new_count,
            new_items=new_items,
            hash=server_hash,
            is_first_sync=is_first_sync,
        )

    @staticmethod
    def _diff(items: list[FeedItem], seen: SeenTitleSet) -> list[FeedItem]:
        new_items: list[FeedItem] = []
        batch_titles: set[str] = set()
        for item in items:
            title = item.title.strip()
            if not title or title in seen or title in batch_titles:
                continue
            batch_titles.add(title)
            new_items.append(item)
        return new_items

    async def _dispatch(self, new_items: list[FeedItem]) -> None:
        if self.notifier is None:
            return
        first_title = new_items[0].title.strip() or DEFAULT_ALERT_TITLE
        try:
            await self.notifier.notify_new_alerts(len(new_items), first_title)
        except Exception as exc:
            logger.warning("Alert dispatch failed: {}", exc)

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc).isoformat()


__all__ = ["DigestTracker", "DigestSource", "POLL_COOLDOWN_SECONDS", "FETCH_TIMEOUT_SECONDS"]
