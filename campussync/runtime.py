"""Wire the cache, API client, tracker and papers session from configuration."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from campussync.api import CachedCampusApi, CampusApiClient
from campussync.cache import CacheStore, SyncOrchestrator
from campussync.config import AppConfig
from campussync.papers import PaperSession, SubjectDirectory
from campussync.tracker import DigestTracker, LoggingNotifier, Notifier, TrackerStateStore


@dataclass(slots=True)
class SyncRuntime:
    """Long-lived components shared by the CLI and the scheduler."""

    config: AppConfig
    client: CampusApiClient
    store: CacheStore
    orchestrator: SyncOrchestrator
    api: CachedCampusApi
    tracker_state: TrackerStateStore
    tracker: DigestTracker

    @classmethod
    def from_config(cls, config: AppConfig, *, notifier: Notifier | None = None) -> "SyncRuntime":
        client = CampusApiClient.from_config(config.api)
        store = CacheStore(config.cache_dir)
        orchestrator = SyncOrchestrator(store)
        tracker_state = TrackerStateStore(config.tracker_dir)
        tracker = DigestTracker.from_config(
            config.tracker,
            client,
            tracker_state,
            notifier or LoggingNotifier(),
        )
        logger.debug("Runtime ready (cache={}, tracker={})", config.cache_dir, config.tracker_dir)
        return cls(
            config=config,
            client=client,
            store=store,
            orchestrator=orchestrator,
            api=CachedCampusApi(client, orchestrator, config.cache),
            tracker_state=tracker_state,
            tracker=tracker,
        )

    def paper_session(self) -> PaperSession:
        papers = self.config.papers
        subjects = SubjectDirectory.from_file(papers.subject_names_file) if papers.subject_names_file else None
        return PaperSession(self.api, page_size=papers.page_size, subjects=subjects)

    def close(self) -> None:
        self.client.close()


__all__ = ["SyncRuntime"]
