"""Data models for the change-digest tracker."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

PollOutcome = Literal["no_change", "first_sync", "new_found", "hash_changed_no_new"]
SkipReason = Literal["already_polling", "cooldown"]


@dataclass(frozen=True, slots=True)
class FeedItem:
    """One entry of the remote alert feed."""

    title: str
    date: str | None = None
    category: str | None = None
    link: str | None = None
    source: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "FeedItem":
        return cls(
            title=str(raw.get("title") or ""),
            date=raw.get("date"),
            category=raw.get("category"),
            link=raw.get("link"),
            source=raw.get("source"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class TrackerMeta:
    """Observability counters persisted alongside the digest state."""

    last_poll_at: str | None = None
    last_hash: str | None = None
    last_new_count: int = 0
    total_checks: int = 0
    total_new_detected: int = 0
    last_result: PollOutcome | None = None
    seen_titles_count: int = 0
    updated_at: str | None = None

    _KEYS = {
        "last_poll_at": "lastPollAt",
        "last_hash": "lastHash",
        "last_new_count": "lastNewCount",
        "total_checks": "totalChecks",
        "total_new_detected": "totalNewDetected",
        "last_result": "lastResult",
        "seen_titles_count": "seenTitlesCount",
        "updated_at": "updatedAt",
    }

    @classmethod
    def from_dict(cls, raw: Any) -> "TrackerMeta":
        if not isinstance(raw, dict):
            return cls()
        meta = cls()
        for attr, key in cls._KEYS.items():
            if key in raw and raw[key] is not None:
                setattr(meta, attr, raw[key])
        for counter in ("last_new_count", "total_checks", "total_new_detected", "seen_titles_count"):
            value = getattr(meta, counter)
            if not isinstance(value, int):
                setattr(meta, counter, 0)
        return meta

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self._KEYS.items()}


@dataclass(slots=True)
class PollResult:
    """Outcome of one :meth:`DigestTracker.check_for_new` call.

    Failures are reported through ``error``; ``has_new`` is then ``False``.
    """

    checked: bool = False
    has_new: bool = False
    new_count: int = 0
    new_items: list[FeedItem] = field(default_factory=list)
    hash: str | None = None
    is_first_sync: bool = False
    skipped: bool = False
    reason: SkipReason | None = None
    cooldown_remaining_ms: int | None = None
    error: str | None = None

    @classmethod
    def skip(cls, reason: SkipReason, *, cooldown_remaining_ms: int | None = None) -> "PollResult":
        return cls(skipped=True, reason=reason, cooldown_remaining_ms=cooldown_remaining_ms)

    @classmethod
    def failed(cls, error: str) -> "PollResult":
        return cls(checked=True, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["new_items"] = [item.to_dict() for item in self.new_items]
        return payload


__all__ = ["FeedItem", "TrackerMeta", "PollResult", "PollOutcome", "SkipReason"]
