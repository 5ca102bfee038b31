"""Application-level configuration models."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator

from campussync.config.api import ApiConfig
from campussync.config.base import BaseConfig
from campussync.config.cache import CacheConfig
from campussync.config.scheduler import SchedulerConfig
from campussync.config.papers import PapersConfig
from campussync.config.tracker import TrackerConfig


class AppConfig(BaseConfig):
    """Top-level runtime configuration for the entire application."""

    data_dir: Path = Field(Path("./data"), description="Root directory for cache and tracker state")
    logging_level: str = Field("INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")

    api: ApiConfig = Field(default_factory=ApiConfig, description="Remote API settings")
    cache: CacheConfig = Field(default_factory=CacheConfig, description="Response cache settings")
    tracker: TrackerConfig = Field(default_factory=TrackerConfig, description="Alert tracker settings")
    papers: PapersConfig = Field(default_factory=PapersConfig, description="Papers session settings")
    scheduler: SchedulerConfig | None = Field(None, description="Scheduler configuration")

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / self.cache.directory

    @property
    def tracker_dir(self) -> Path:
        return self.data_dir / self.tracker.directory

    @model_validator(mode="after")
    def _validate_state_directories(self) -> "AppConfig":
        # clear_all removes cache_dir recursively, so it must not contain other state.
        root = Path(os.path.normpath(self.data_dir))
        cache_dir = Path(os.path.normpath(self.cache_dir))
        tracker_dir = Path(os.path.normpath(self.tracker_dir))
        if root.is_relative_to(cache_dir):
            raise ValueError("cache.directory must be a subdirectory of data_dir.")
        if cache_dir.is_relative_to(tracker_dir) or tracker_dir.is_relative_to(cache_dir):
            raise ValueError("cache.directory and tracker.directory must not overlap.")
        return self


__all__ = ["AppConfig"]
