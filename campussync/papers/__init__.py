"""Offline papers browsing on top of the cached dataset."""

from campussync.papers.session import INITIAL_FILTERS, PaperSession, SyncStatus
from campussync.papers.subjects import SubjectDirectory

__all__ = ["PaperSession", "SyncStatus", "INITIAL_FILTERS", "SubjectDirectory"]
