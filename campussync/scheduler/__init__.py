"""Scheduler package exposing the background job service."""

from campussync.scheduler.service import JobFailedError, JobMetrics, SchedulerMetricsRegistry, SchedulerService

__all__ = ["SchedulerService", "SchedulerMetricsRegistry", "JobMetrics", "JobFailedError"]
