from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from campussync.api import NetworkError, ServerError
from campussync.tracker import DigestTracker, LoggingNotifier, TrackerStateStore, build_alert
from campussync.tracker.state import HASH_FILE, SEEN_TITLES_FILE

from tests.conftest import FakeClock


class FakeDigestSource:
    def __init__(self, digest_hash: str | None, titles: list[str]) -> None:
        self.digest: Any = {"hash": digest_hash}
        self.items: Any = [{"title": title, "category": "notice"} for title in titles]
        self.digest_calls = 0
        self.full_calls = 0
        self.gate: asyncio.Event | None = None

    def publish(self, digest_hash: str, titles: list[str]) -> None:
        self.digest = {"hash": digest_hash}
        self.items = [{"title": title} for title in titles]

    async def fetch_digest(self, *, timeout: float | None = None) -> Any:
        self.digest_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.digest, Exception):
            raise self.digest
        return self.digest

    async def fetch_digest_full(self, *, timeout: float | None = None) -> Any:
        self.full_calls += 1
        if isinstance(self.items, Exception):
            raise self.items
        return self.items


@pytest.fixture()
def state(tmp_path: Path) -> TrackerStateStore:
    return TrackerStateStore(tmp_path / "notification_tracker")


def _tracker(source: FakeDigestSource, state: TrackerStateStore, clock: FakeClock, notifier: Any = None) -> DigestTracker:
    return DigestTracker(source, state, notifier, cooldown_seconds=300, clock=clock)


@pytest.mark.asyncio
async def test_first_sync_seeds_without_notifying(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", [f"Notice {index}" for index in range(10)])
    notifier = LoggingNotifier()
    tracker = _tracker(source, state, clock, notifier)

    result = await tracker.check_for_new()

    assert result.checked is True
    assert result.is_first_sync is True
    assert result.has_new is False
    assert result.new_count == 0
    assert result.error is None
    assert notifier.sent == []
    assert await state.load_hash() == "h1"
    assert len(await state.load_seen()) == 10


@pytest.mark.asyncio
async def test_new_titles_produce_one_notification(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A", "B", "C"])
    notifier = LoggingNotifier()
    tracker = _tracker(source, state, clock, notifier)
    await tracker.check_for_new()

    source.publish("h2", ["A", "B", "C", "D", "E"])
    result = await tracker.check_for_new(force=True)

    assert result.has_new is True
    assert result.new_count == 2
    assert [item.title for item in result.new_items] == ["D", "E"]
    assert len(notifier.sent) == 1
    assert notifier.sent[0] == build_alert(2, "D")

    seen = await state.load_seen()
    assert {"A", "B", "C", "D", "E"} <= set(seen)
    assert await state.load_hash() == "h2"


@pytest.mark.asyncio
async def test_unchanged_hash_skips_full_fetch(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    tracker = _tracker(source, state, clock, LoggingNotifier())
    await tracker.check_for_new()

    result = await tracker.check_for_new(force=True)

    assert result.checked is True
    assert result.has_new is False
    assert result.hash == "h1"
    assert source.full_calls == 1
    meta = await state.load_meta()
    assert meta.last_result == "no_change"
    assert meta.total_checks == 2


@pytest.mark.asyncio
async def test_hash_change_with_no_unseen_titles(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A", "B"])
    notifier = LoggingNotifier()
    tracker = _tracker(source, state, clock, notifier)
    await tracker.check_for_new()

    source.publish("h2", ["B"])
    result = await tracker.check_for_new(force=True)

    assert result.has_new is False
    assert notifier.sent == []
    assert (await state.load_meta()).last_result == "hash_changed_no_new"
    assert await state.load_hash() == "h2"


@pytest.mark.asyncio
async def test_duplicate_and_blank_titles_count_once(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    tracker = _tracker(source, state, clock, LoggingNotifier())
    await tracker.check_for_new()

    source.publish("h2", ["A", "New", "New", "  ", ""])
    result = await tracker.check_for_new(force=True)

    assert result.new_count == 1


@pytest.mark.asyncio
async def test_digest_failure_leaves_state_untouched(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    tracker = _tracker(source, state, clock)
    await tracker.check_for_new()

    source.digest = NetworkError("timed out")
    result = await tracker.check_for_new(force=True)
    assert result.error == "Network error: timed out"
    assert result.has_new is False

    source.digest = ServerError("boom", status_code=500)
    result = await tracker.check_for_new(force=True)
    assert result.error == "Server error: boom"
    assert await state.load_hash() == "h1"


@pytest.mark.asyncio
async def test_missing_hash_is_an_error(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource(None, ["A"])
    tracker = _tracker(source, state, clock)

    result = await tracker.check_for_new()

    assert result.error == "No hash in digest response"
    assert source.full_calls == 0


@pytest.mark.asyncio
async def test_full_fetch_failure_does_not_persist_hash(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    notifier = LoggingNotifier()
    tracker = _tracker(source, state, clock, notifier)
    await tracker.check_for_new()

    source.publish("h2", ["A", "B"])
    source.items = NetworkError("connection reset")
    failed = await tracker.check_for_new(force=True)

    assert failed.error == "Full data fetch failed: connection reset"
    assert await state.load_hash() == "h1"

    source.items = [{"title": "A"}, {"title": "B"}]
    retried = await tracker.check_for_new(force=True)
    assert retried.new_count == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_notifier_failure_does_not_fail_poll(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    notifier = AsyncMock()
    notifier.notify_new_alerts.side_effect = RuntimeError("channel closed")
    tracker = _tracker(source, state, clock, notifier)
    await tracker.check_for_new()

    source.publish("h2", ["A", "B"])
    result = await tracker.check_for_new(force=True)

    assert result.error is None
    assert result.new_count == 1
    notifier.notify_new_alerts.assert_awaited_once_with(1, "B")
    assert await state.load_hash() == "h2"


@pytest.mark.asyncio
async def test_cooldown_skips_second_poll(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    tracker = _tracker(source, state, clock)
    await tracker.check_for_new()

    clock.advance(60_000)
    skipped = await tracker.check_for_new()
    assert skipped.skipped is True
    assert skipped.reason == "cooldown"
    assert skipped.cooldown_remaining_ms == 240_000
    assert source.digest_calls == 1

    clock.advance(240_000)
    result = await tracker.check_for_new()
    assert result.skipped is False
    assert source.digest_calls == 2


@pytest.mark.asyncio
async def test_overlapping_poll_is_skipped(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A"])
    source.gate = asyncio.Event()
    tracker = _tracker(source, state, clock)

    first = asyncio.create_task(tracker.check_for_new())
    await asyncio.sleep(0)
    while not tracker.is_polling:
        await asyncio.sleep(0)
    second = await tracker.check_for_new(force=True)
    source.gate.set()
    await first

    assert second.skipped is True
    assert second.reason == "already_polling"
    assert tracker.is_polling is False


@pytest.mark.asyncio
async def test_corrupt_state_files_fall_back_to_first_sync(state: TrackerStateStore, clock: FakeClock) -> None:
    state.root.mkdir(parents=True)
    (state.root / HASH_FILE).write_text("{broken", encoding="utf-8")
    (state.root / SEEN_TITLES_FILE).write_text(json.dumps({"titles": "nope"}), encoding="utf-8")
    notifier = LoggingNotifier()
    tracker = _tracker(FakeDigestSource("h1", ["A"]), state, clock, notifier)

    result = await tracker.check_for_new()

    assert result.is_first_sync is True
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_reset_and_stats(state: TrackerStateStore, clock: FakeClock) -> None:
    source = FakeDigestSource("h1", ["A", "B"])
    tracker = _tracker(source, state, clock)
    await tracker.check_for_new()

    stats = await tracker.stats()
    assert stats["currentHash"] == "h1"
    assert stats["seenTitlesCount"] == 2
    assert stats["totalChecks"] == 1
    assert stats["lastResult"] == "first_sync"
    assert stats["cooldownActive"] is True

    assert await tracker.reset() is True
    assert await tracker.get_hash() is None
    assert len(await tracker.get_seen_titles()) == 0
    assert tracker.cooldown_remaining_ms() == 0

    again = await tracker.check_for_new()
    assert again.is_first_sync is True


def test_build_alert_wording() -> None:
    assert build_alert(1, "Exam schedule").body == "Exam schedule"
    assert build_alert(3, "Exam schedule").body == "3 new notifications.\nLatest: Exam schedule"
    assert build_alert(2, "x").data == {"type": "college_alert", "count": 2}
