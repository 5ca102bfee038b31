"""Digest-based alert tracking."""

from campussync.tracker.models import FeedItem, PollResult, TrackerMeta
from campussync.tracker.notifier import Alert, LoggingNotifier, Notifier, build_alert
from campussync.tracker.seen import DEFAULT_MAX_SEEN_TITLES, SeenTitleSet
from campussync.tracker.service import DigestSource, DigestTracker
from campussync.tracker.state import TrackerStateStore

__all__ = [
    "DigestTracker",
    "DigestSource",
    "TrackerStateStore",
    "SeenTitleSet",
    "DEFAULT_MAX_SEEN_TITLES",
    "FeedItem",
    "PollResult",
    "TrackerMeta",
    "Alert",
    "Notifier",
    "LoggingNotifier",
    "build_alert",
]
