"""Background jobs: periodic alert polling and stale cache purging."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from time import perf_counter
from typing import Any, Callable
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from campussync.config import AppConfig, SchedulerJobConfig
from campussync.runtime import SyncRuntime

JobFunc = Callable[[SchedulerJobConfig], None]


class JobFailedError(RuntimeError):
    """Raised by a job body to mark the run as failed in the metrics."""


@dataclass(slots=True)
class JobMetrics:
    """Execution statistics for one scheduler job."""

    job_id: str
    job_name: str
    total_runs: int = 0
    success_count: int = 0
    failure_count: int = 0
    dry_run_count: int = 0
    last_status: str | None = None
    last_error: str | None = None
    last_start_time: datetime | None = None
    last_end_time: datetime | None = None
    last_duration_seconds: float | None = None
    next_run_time: datetime | None = None


class SchedulerMetricsRegistry:
    """Thread-safe metrics collector for scheduler jobs."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._metrics: dict[str, JobMetrics] = {}

    def ensure_job(self, job_id: str, job_name: str) -> JobMetrics:
        with self._lock:
            metrics = self._metrics.get(job_id)
            if metrics is None:
                metrics = self._metrics[job_id] = JobMetrics(job_id=job_id, job_name=job_name)
            else:
                metrics.job_name = job_name
            return metrics

    def record_start(self, job_id: str, job_name: str, start_time: datetime) -> None:
        metrics = self.ensure_job(job_id, job_name)
        with self._lock:
            metrics.last_start_time = start_time
            metrics.last_status = "running"
            metrics.last_error = None

    def record_finish(
        self,
        job_id: str,
        job_name: str,
        start_time: datetime,
        end_time: datetime,
        duration_seconds: float,
        error: str | None = None,
    ) -> None:
        metrics = self.ensure_job(job_id, job_name)
        with self._lock:
            metrics.total_runs += 1
            if error is None:
                metrics.success_count += 1
                metrics.last_status = "success"
            else:
                metrics.failure_count += 1
                metrics.last_status = "failure"
                metrics.last_error = error
            metrics.last_start_time = start_time
            metrics.last_end_time = end_time
            metrics.last_duration_seconds = duration_seconds

    def record_dry_run(self, job_id: str, job_name: str, timestamp: datetime) -> None:
        metrics = self.ensure_job(job_id, job_name)
        with self._lock:
            metrics.total_runs += 1
            metrics.dry_run_count += 1
            metrics.last_status = "dry_run"
            metrics.last_start_time = timestamp
            metrics.last_end_time = timestamp
            metrics.last_duration_seconds = 0.0

    def set_next_run(self, job_id: str, job_name: str, next_run: datetime | None) -> None:
        metrics = self.ensure_job(job_id, job_name)
        with self._lock:
            metrics.next_run_time = next_run

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {job_id: asdict(metrics) for job_id, metrics in self._metrics.items()}

    def export_prometheus(self) -> str:
        """Render the registry in the Prometheus text exposition format."""

        with self._lock:
            values = list(self._metrics.values())

        series: list[tuple[str, str, str, Callable[[JobMetrics], Any]]] = [
            ("campussync_job_runs_total", "counter", "Total job executions.", lambda m: m.total_runs),
            ("campussync_job_success_total", "counter", "Successful job executions.", lambda m: m.success_count),
            ("campussync_job_failure_total", "counter", "Failed job executions.", lambda m: m.failure_count),
            ("campussync_job_dry_run_total", "counter", "Dry-run job simulations.", lambda m: m.dry_run_count),
            (
                "campussync_job_last_duration_seconds",
                "gauge",
                "Duration of the last execution in seconds.",
                lambda m: m.last_duration_seconds,
            ),
            (
                "campussync_job_next_run_timestamp_seconds",
                "gauge",
                "Next scheduled run (epoch seconds).",
                lambda m: m.next_run_time.timestamp() if m.next_run_time else None,
            ),
        ]

        lines: list[str] = []
        for name, kind, help_text, getter in series:
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} {kind}")
            for metrics in values:
                value = getter(metrics)
                if value is None:
                    continue
                labels = f'job_id="{metrics.job_id}",job_name="{metrics.job_name}"'
                lines.append(f"{name}{{{labels}}} {value}")
        return "\n".join(lines) + "\n"


class SchedulerService:
    """Runs the alert poll and cache purge on cron schedules."""

    def __init__(self, config: AppConfig, runtime: SyncRuntime | None = None, dry_run: bool = False):
        self.config = config
        self.dry_run = dry_run
        self._runtime = runtime
        timezone = config.scheduler.timezone if config.scheduler and config.scheduler.timezone else "UTC"
        self.scheduler = BackgroundScheduler(timezone=timezone)
        self._timezone = timezone
        self._jobs: dict[str, tuple[JobFunc, SchedulerJobConfig]] = {}
        self.metrics = SchedulerMetricsRegistry()
        self._file_sink_id: int | None = None
        self._setup_logging_sink()

    @property
    def runtime(self) -> SyncRuntime:
        if self._runtime is None:
            self._runtime = SyncRuntime.from_config(self.config)
        return self._runtime

    def _setup_logging_sink(self) -> None:
        """Persist scheduler logs to a rotating JSON file sink."""

        log_dir = Path("logs")
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            self._file_sink_id = logger.add(
                log_dir / "scheduler.log",
                rotation="5 MB",
                retention=5,
                enqueue=True,
                serialize=True,
                level="INFO",
            )
        except Exception as exc:  # pragma: no cover - filesystem issues are environment-specific
            logger.warning("Failed to initialise scheduler file log sink: {}", exc)
            self._file_sink_id = None

    def setup_jobs(self) -> None:
        """Register the configured jobs."""
        if not self.config.scheduler or not self.config.scheduler.enabled:
            logger.warning("Scheduler is disabled in the configuration. No jobs will be scheduled.")
            return

        self.scheduler.remove_all_jobs()
        self._jobs.clear()

        logger.info("Setting up scheduled jobs (timezone {})", self._timezone)
        if self.config.scheduler.poll_job:
            if self.config.tracker.enabled:
                self._register_job("poll", self.config.scheduler.poll_job, self._run_poll)
            else:
                logger.info("Alert tracker is disabled; poll job not registered")

        if self.config.scheduler.purge_job:
            self._register_job("purge", self.config.scheduler.purge_job, self._run_purge)

        if self.dry_run:
            logger.info("[Dry Run] Jobs validated and registered. Scheduler will not be started.")
            for job in self.scheduler.get_jobs():
                logger.info("[Dry Run] Job '{}' with trigger: {}", job.id, job.trigger)
                self.metrics.record_dry_run(job.id, job.name or job.id, datetime.now(self.scheduler.timezone))

    def _register_job(self, job_id: str, job_config: SchedulerJobConfig, func: JobFunc) -> None:
        if not job_config.enabled:
            logger.info("Job '{}' is disabled, skipping.", job_id)
            return

        logger.info("Registering job '{}' with cron schedule '{}'", job_id, job_config.cron)
        trigger = CronTrigger.from_crontab(job_config.cron, timezone=self._timezone)
        self.scheduler.add_job(
            self._build_job_runner(job_id, job_config, func),
            trigger,
            id=job_id,
            name=job_config.name,
            replace_existing=True,
        )
        self._jobs[job_id] = (func, job_config)
        self.metrics.ensure_job(job_id, job_config.name)
        self.metrics.set_next_run(job_id, job_config.name, self._next_run_time(job_id))

    # ------------------------------------------------------------------
    # Job bodies
    # ------------------------------------------------------------------
    def _run_poll(self, job_config: SchedulerJobConfig) -> None:
        result = asyncio.run(self.runtime.tracker.check_for_new())
        if result.skipped:
            logger.info("Poll '{}' skipped: {}", job_config.name, result.reason)
        elif result.error:
            raise JobFailedError(result.error)
        else:
            logger.info("Poll '{}' finished: {} new alert(s)", job_config.name, result.new_count)

    def _run_purge(self, job_config: SchedulerJobConfig) -> None:
        removed = asyncio.run(self.runtime.store.purge_stale())
        logger.info("Purge '{}' removed {} stale cache entr(ies)", job_config.name, removed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the scheduler unless in dry-run mode or nothing is scheduled."""
        if self.dry_run:
            logger.info("[Dry Run] Scheduler start is skipped.")
            return
        if not self.scheduler.get_jobs():
            logger.warning("No jobs are scheduled. The scheduler will not start.")
            return
        if self.scheduler.running:
            logger.info("Scheduler is already running.")
            return

        logger.info("Starting scheduler...")
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop the scheduler and release the file sink and HTTP session."""
        if self.scheduler.running:
            logger.info("Shutting down scheduler...")
            self.scheduler.shutdown()
            logger.info("Scheduler has been shut down.")
        else:
            logger.info("Scheduler is not running.")

        if self._runtime is not None:
            self._runtime.close()
        if self._file_sink_id is not None:
            logger.remove(self._file_sink_id)
            self._file_sink_id = None

    def list_jobs(self) -> list[dict[str, Any]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = self._job_next_run(job)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "trigger": str(job.trigger),
                    "next_run_time": next_run.isoformat() if next_run else None,
                }
            )
        return jobs

    def trigger_job(self, job_id: str) -> bool:
        """Schedule a one-off run of a registered job right now."""
        job_entry = self._jobs.get(job_id)
        if job_entry is None or self.scheduler.get_job(job_id) is None:
            return False

        func, job_config = job_entry
        run_date = datetime.now(self.scheduler.timezone)
        if self.dry_run:
            logger.info("[Dry Run] Manual trigger for job '{}' skipped.", job_id)
            self.metrics.record_dry_run(job_id, job_config.name, run_date)
            return True

        logger.info("Manually triggering job '{}'", job_id)
        self.scheduler.add_job(
            self._build_job_runner(job_id, job_config, func),
            trigger="date",
            run_date=run_date,
            id=f"{job_id}-manual-{uuid4().hex}",
        )
        if self.scheduler.running:
            self.scheduler.wakeup()
        return True

    def get_metrics_snapshot(self) -> dict[str, dict[str, Any]]:
        return self.metrics.snapshot()

    def export_metrics(self) -> str:
        return self.metrics.export_prometheus()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _build_job_runner(self, job_id: str, job_config: SchedulerJobConfig, func: JobFunc) -> Callable[[], None]:
        def _runner() -> None:
            self._execute_job(job_id, job_config, func)

        return _runner

    def _execute_job(self, job_id: str, job_config: SchedulerJobConfig, func: JobFunc) -> None:
        run_id = uuid4().hex
        bound_logger = logger.bind(job_id=job_id, job_name=job_config.name, run_id=run_id)
        start_time = datetime.now(self.scheduler.timezone)
        self.metrics.record_start(job_id, job_config.name, start_time)

        bound_logger.info("Job execution started", dry_run=self.dry_run, timezone=str(self._timezone))

        if self.dry_run:
            bound_logger.info("Dry-run mode active; skipping execution")
            self.metrics.record_dry_run(job_id, job_config.name, start_time)
            return

        timer_start = perf_counter()
        error: str | None = None
        try:
            func(job_config)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            raise
        finally:
            duration = perf_counter() - timer_start
            end_time = datetime.now(self.scheduler.timezone)
            self.metrics.record_finish(job_id, job_config.name, start_time, end_time, duration, error)
            self.metrics.set_next_run(job_id, job_config.name, self._next_run_time(job_id))
            if error is None:
                bound_logger.info("Job execution finished", status="success", duration_seconds=duration)
            else:
                bound_logger.error("Job execution failed", duration_seconds=duration, error=error)

    def _next_run_time(self, job_id: str) -> datetime | None:
        job = self.scheduler.get_job(job_id)
        if job is None:
            return None
        return self._job_next_run(job)

    @staticmethod
    def _job_next_run(job: Any) -> datetime | None:
        try:
            return job.next_run_time
        except AttributeError:
            return None


__all__ = ["SchedulerService", "SchedulerMetricsRegistry", "JobMetrics", "JobFailedError"]
