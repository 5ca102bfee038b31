"""Configuration namespace for campussync."""

from __future__ import annotations

from .api import ApiConfig
from .app import AppConfig
from .base import BaseConfig, load_config
from .cache import CacheConfig
from .scheduler import SchedulerConfig, SchedulerJobConfig
from .papers import PapersConfig
from .tracker import TrackerConfig

__all__ = [
    "BaseConfig",
    "AppConfig",
    "load_config",
    "ApiConfig",
    "CacheConfig",
    "TrackerConfig",
    "PapersConfig",
    "SchedulerConfig",
    "SchedulerJobConfig",
]
