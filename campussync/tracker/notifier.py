"""Alert dispatch capability used by the digest tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

DEFAULT_ALERT_TITLE = "New update"


@dataclass(frozen=True, slots=True)
class Alert:
    """A user-visible alert summarising one batch of new feed items."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


def build_alert(count: int, first_title: str | None, *, heading: str = "Campus Update") -> Alert:
    """Summarise ``count`` new items into a single alert."""

    if count == 1:
        body = first_title or "1 new notification."
    else:
        body = f"{count} new notifications."
        if first_title:
            body += f"\nLatest: {first_title}"
    return Alert(title=heading, body=body, data={"type": "college_alert", "count": count})


class Notifier(Protocol):
    async def notify_new_alerts(self, count: int, first_title: str) -> None:
        """Show exactly one alert for ``count`` new items."""


class LoggingNotifier:
    """Notifier that writes alerts to the log instead of a device channel."""

    def __init__(self, heading: str = "Campus Update") -> None:
        self.heading = heading
        self.sent: list[Alert] = []

    async def notify_new_alerts(self, count: int, first_title: str) -> None:
        if count <= 0:
            return
        alert = build_alert(count, first_title, heading=self.heading)
        self.sent.append(alert)
        logger.info("[{}] {}", alert.title, alert.body.replace("\n", " | "))


__all__ = ["Alert", "build_alert", "Notifier", "LoggingNotifier", "DEFAULT_ALERT_TITLE"]
