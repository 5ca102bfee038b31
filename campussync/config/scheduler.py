"""Scheduler configuration models."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from campussync.config.base import BaseConfig


class SchedulerJobConfig(BaseConfig):
    """Configuration for a single scheduled job."""

    enabled: bool = Field(True, description="Whether the job is active")
    name: str = Field(..., description="Human-friendly name for the job")
    cron: str = Field(
        ...,
        description="Cron expression (minute hour day month weekday)",
        validation_alias=AliasChoices("cron", "cron_schedule"),
        serialization_alias="cron",
    )


class SchedulerConfig(BaseConfig):
    """Scheduler-wide configuration aggregating multiple jobs."""

    enabled: bool = Field(True, description="Whether the scheduler is active")
    timezone: str = Field("UTC", description="Timezone used by the scheduler")
    poll_job: SchedulerJobConfig | None = Field(None, description="Alert digest polling schedule")
    purge_job: SchedulerJobConfig | None = Field(None, description="Stale cache purge schedule")


__all__ = ["SchedulerJobConfig", "SchedulerConfig"]
