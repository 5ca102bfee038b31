"""Configuration for the change-digest tracker."""

from __future__ import annotations

from pydantic import Field

from .base import BaseConfig


class TrackerConfig(BaseConfig):
    """Polling cadence and state limits for alert detection."""

    enabled: bool = Field(True, description="Whether alert polling is enabled")
    directory: str = Field(
        "notification_tracker",
        description="Tracker state directory, relative to data_dir",
    )
    cooldown_seconds: float = Field(300.0, description="Minimum interval between polls", ge=0)
    max_seen_titles: int = Field(500, description="Cap on remembered alert titles", ge=1)
    timeout_seconds: float = Field(15.0, description="Timeout for digest and feed requests", gt=0)


__all__ = ["TrackerConfig"]
