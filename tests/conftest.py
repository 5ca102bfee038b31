"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_paper(index: int, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": f"paper-{index}",
        "subjectCode": f"CSPC{20 + index % 5}",
        "department": "Computer Science",
        "deptCode": "CS",
        "category": "PYQ",
        "examType": "endsem",
        "year": 2015 + index % 10,
        "session": "Nov-Dec",
        "fileName": f"paper_{index}.pdf",
        "uploadedAt": f"2024-01-{1 + index % 28:02d}",
        "fileSizeKB": 100 + index,
    }
    record.update(overrides)
    return record


@pytest.fixture()
def papers() -> list[dict[str, Any]]:
    return [make_paper(index) for index in range(25)]
