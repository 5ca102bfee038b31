"""Command line interface for campussync."""

from __future__ import annotations

import asyncio
import json
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import typer
from loguru import logger

from .api import ApiError
from .config import AppConfig, load_config
from .runtime import SyncRuntime
from .scheduler import SchedulerService

T = TypeVar("T")

_stderr_sink_id: int | None = None


@dataclass(slots=True)
class CLIState:
    """Holds shared state between Typer commands."""

    config_path: Path
    _config: AppConfig | None = None
    _runtime: SyncRuntime | None = None

    def ensure_config(self) -> AppConfig:
        if self._config is None:
            logger.info("Loading configuration from {}", self.config_path)
            self._config = load_config(AppConfig, self.config_path)
            _configure_logging(self._config.logging_level)
        return self._config

    def ensure_runtime(self) -> SyncRuntime:
        if self._runtime is None:
            self._runtime = SyncRuntime.from_config(self.ensure_config())
        return self._runtime

    def close(self) -> None:
        if self._runtime is not None:
            self._runtime.close()
            self._runtime = None


app = typer.Typer(help="Offline-first campus data sync")
cache_app = typer.Typer(help="Inspect and maintain the response cache")
app.add_typer(cache_app, name="cache")
alerts_app = typer.Typer(help="Poll the alert digest and inspect tracker state")
app.add_typer(alerts_app, name="alerts")
papers_app = typer.Typer(help="Search the papers dataset locally")
app.add_typer(papers_app, name="papers")


def _default_config_path() -> Path:
    repo_root = Path(__file__).resolve().parents[1]
    return repo_root / "config" / "example.toml"


def _configure_logging(level: str) -> None:
    """Route stderr logging through one sink at the configured level."""
    global _stderr_sink_id
    if _stderr_sink_id is None:
        try:
            logger.remove(0)
        except ValueError:
            pass
    else:
        logger.remove(_stderr_sink_id)
    _stderr_sink_id = logger.add(sys.stderr, level=level.upper())


def _reset_logging() -> None:
    global _stderr_sink_id
    if _stderr_sink_id is not None:
        logger.remove(_stderr_sink_id)
        _stderr_sink_id = None


def _normalize_format(value: str) -> str:
    value = value.lower()
    if value not in {"text", "json"}:
        raise typer.BadParameter("format must be 'text' or 'json'")
    return value


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):  # pragma: no cover - defensive guard
        raise RuntimeError("CLI context is not initialised")
    return state


def _exit(code: int) -> None:
    raise typer.Exit(code)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _parse_filters(values: list[str] | None) -> dict[str, str]:
    filters: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{raw}'", param_hint="--filter")
        filters[name.strip()] = value.strip()
    return filters


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Path = typer.Option(
        _default_config_path(),
        help="Path to the TOML configuration file",
    ),
) -> None:
    """Initialise CLI state."""

    state = CLIState(config_path=config.resolve())
    ctx.obj = state
    ctx.call_on_close(state.close)

    if ctx.invoked_subcommand is None:
        state.ensure_config()
        logger.warning("No command provided. Try 'status' or 'papers search'.")
        _exit(0)


@app.command(help="Show configuration, cache and tracker status")
def status(
    ctx: typer.Context,
    ping: bool = typer.Option(False, help="Also call the API health endpoint"),
) -> None:
    state = _get_state(ctx)
    config = state.ensure_config()
    runtime = state.ensure_runtime()
    _report_system_status(config)

    cache_stats = _run(runtime.store.stats())
    logger.info("\n=== Cache ===")
    logger.info(
        "Entries: {} (fresh={}, stale={}), size {} KB",
        cache_stats.total_entries,
        cache_stats.fresh_count,
        cache_stats.stale_count,
        cache_stats.total_size_kb,
    )

    tracker_stats = _run(runtime.tracker.stats())
    logger.info("\n=== Alert Tracker ===")
    logger.info("Current hash: {}", tracker_stats["currentHash"] or "none")
    logger.info("Seen titles: {}", tracker_stats["seenTitlesCount"])
    logger.info("Last poll: {} ({})", tracker_stats["lastPollAt"] or "never", tracker_stats["lastResult"])

    if ping:
        try:
            health = _run(runtime.client.check_health())
        except ApiError as exc:
            logger.error("API health check failed: {}", exc)
            _exit(1)
        logger.info("API health: {}", health.get("status", "ok"))


@cache_app.command("stats", help="Show cache entry counts and sizes")
def cache_stats(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format",
        callback=_normalize_format,
    ),
) -> None:
    stats = _run(_get_state(ctx).ensure_runtime().store.stats())

    if format == "json":
        _print_json(
            {
                "totalEntries": stats.total_entries,
                "freshCount": stats.fresh_count,
                "staleCount": stats.stale_count,
                "totalSizeKB": stats.total_size_kb,
                "totalSizeMB": stats.total_size_mb,
                "entries": [
                    {"key": entry.key, "sizeBytes": entry.size_bytes, "isStale": entry.is_stale}
                    for entry in stats.entries
                ],
            }
        )
        return

    logger.info(
        "Cache: {} entries ({} fresh, {} stale), {} MB",
        stats.total_entries,
        stats.fresh_count,
        stats.stale_count,
        stats.total_size_mb,
    )
    for entry in stats.entries:
        logger.info("  - {} ({} bytes){}", entry.key, entry.size_bytes, " [stale]" if entry.is_stale else "")


@cache_app.command("purge", help="Delete stale and unreadable cache entries")
def cache_purge(ctx: typer.Context) -> None:
    removed = _run(_get_state(ctx).ensure_runtime().store.purge_stale())
    logger.info("Purged {} stale cache entr(ies)", removed)


@cache_app.command("clear", help="Delete every cache entry")
def cache_clear(ctx: typer.Context) -> None:
    if not _run(_get_state(ctx).ensure_runtime().store.clear_all()):
        logger.error("Failed to clear the cache")
        _exit(1)
    logger.info("Cache cleared")


@alerts_app.command("poll", help="Check the alert digest once")
def alerts_poll(
    ctx: typer.Context,
    force: bool = typer.Option(False, help="Ignore the polling cooldown"),
) -> None:
    tracker = _get_state(ctx).ensure_runtime().tracker
    result = _run(tracker.check_for_new(force=force))

    if result.skipped:
        logger.info("Poll skipped: {}", result.reason)
    elif result.error:
        logger.error("Poll failed: {}", result.error)
        _exit(1)
    elif result.is_first_sync:
        logger.info("First sync complete; tracking hash {}", result.hash)
    elif result.has_new:
        logger.info("{} new alert(s):", result.new_count)
        for item in result.new_items:
            logger.info("  - {}", item.title)
    else:
        logger.info("No new alerts")


@alerts_app.command("stats", help="Show tracker statistics")
def alerts_stats(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format",
        callback=_normalize_format,
    ),
) -> None:
    stats = _run(_get_state(ctx).ensure_runtime().tracker.stats())
    if format == "json":
        _print_json(stats)
        return
    for name, value in stats.items():
        logger.info("{}: {}", name, value)


@alerts_app.command("reset", help="Forget the stored hash and seen titles")
def alerts_reset(ctx: typer.Context) -> None:
    if not _run(_get_state(ctx).ensure_runtime().tracker.reset()):
        logger.error("Failed to reset tracker state")
        _exit(1)
    logger.info("Tracker state reset")


@papers_app.command("search", help="Search and filter the cached papers dataset")
def papers_search(
    ctx: typer.Context,
    query: str = typer.Argument("", help="Search text; every word must match"),
    filters: list[str] = typer.Option(None, "--filter", help="Exact-match filter as KEY=VALUE (repeatable)"),
    page: int = typer.Option(1, help="Result page to show"),
    refresh: bool = typer.Option(False, help="Bypass the cache and fetch the full dataset"),
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format",
        callback=_normalize_format,
    ),
) -> None:
    criteria = _parse_filters(filters)
    runtime = _get_state(ctx).ensure_runtime()
    session = runtime.paper_session()

    async def _search() -> bool:
        loaded = await session.load(force_refresh=refresh)
        if loaded:
            session.search_query = query
            session.filters.update(criteria)
            session.run_query(page)
        await runtime.orchestrator.wait_for_refreshes()
        return loaded

    if not _run(_search()):
        logger.error("Could not load papers: {}", session.error)
        _exit(1)

    result = session.page
    if format == "json":
        _print_json({"data": [dict(record) for record in result.data], "pagination": result.pagination()})
        return

    status_info = session.status
    logger.info(
        "{} papers loaded (from_cache={}, stale={})",
        status_info.total_papers_loaded,
        status_info.from_cache,
        status_info.is_stale,
    )
    logger.info(
        "Page {}/{}: {} of {} matching papers",
        result.current_page,
        result.total_pages,
        len(result.data),
        result.total_records,
    )
    for record in result.data:
        logger.info(
            "  - {} {} {} [{}] {}",
            record.get("year", ""),
            record.get("subjectCode", ""),
            record.get("subjectName", ""),
            record.get("examType", ""),
            record.get("fileName", ""),
        )


@app.command(help="Run the background scheduler until interrupted")
def serve(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False,
        help="Set up the scheduler and report jobs without running them",
    ),
) -> None:
    state = _get_state(ctx)
    config = state.ensure_config()

    scheduler_service = SchedulerService(config, dry_run=dry_run)
    scheduler_service.setup_jobs()

    if dry_run:
        logger.info("[Dry Run] Scheduler will not be started.")
        scheduler_service.shutdown()
        return

    scheduler_service.start()
    if not scheduler_service.scheduler.running:
        scheduler_service.shutdown()
        _exit(1)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler")
    finally:
        scheduler_service.shutdown()


def _report_system_status(config: AppConfig) -> None:
    """Print configuration sections."""
    logger.info("=== General Configuration ===")
    logger.info("Data dir: {}", config.data_dir)
    logger.info("Logging level: {}", config.logging_level)

    logger.info("\n=== API ===")
    logger.info("Base URL: {}", config.api.base_url)
    logger.info("Timeout: {}s, Max retries: {}", config.api.timeout_seconds, config.api.max_retries)

    logger.info("\n=== Scheduler ===")
    if config.scheduler:
        logger.info("Enabled: {} (timezone {})", config.scheduler.enabled, config.scheduler.timezone)
        for job_id, job in (("poll", config.scheduler.poll_job), ("purge", config.scheduler.purge_job)):
            if job is not None:
                logger.info("  - {}: {} cron='{}' enabled={}", job_id, job.name, job.cron, job.enabled)
    else:
        logger.info("Not configured")


def main(argv: list[str] | None = None) -> int:
    """Entry point compatible with setuptools console scripts."""

    try:
        result = app(args=argv, standalone_mode=False)
    except typer.Exit as exc:  # pragma: no cover - Typer translates exit codes
        return exc.exit_code
    finally:
        _reset_logging()
    if isinstance(result, int):
        return result
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
