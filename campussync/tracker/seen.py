"""Bounded, insertion-ordered set of previously observed alert titles."""

from __future__ import annotations

from typing import Iterable, Iterator

DEFAULT_MAX_SEEN_TITLES = 500


class SeenTitleSet:
    """Set of titles that never holds more than ``max_size`` members.

    When full, adding a new title evicts the oldest-inserted one. Adding a
    title that is already present keeps its original position.
    """

    __slots__ = ("max_size", "_titles")

    def __init__(self, titles: Iterable[str] = (), *, max_size: int = DEFAULT_MAX_SEEN_TITLES) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        # dict preserves insertion order and gives O(1) membership.
        self._titles: dict[str, None] = {}
        self.update(titles)

    def add(self, title: str) -> None:
        if title in self._titles:
            return
        self._titles[title] = None
        while len(self._titles) > self.max_size:
            oldest = next(iter(self._titles))
            del self._titles[oldest]

    def update(self, titles: Iterable[str]) -> None:
        for title in titles:
            self.add(title)

    def copy(self) -> "SeenTitleSet":
        return SeenTitleSet(self._titles, max_size=self.max_size)

    def to_list(self) -> list[str]:
        return list(self._titles)

    def __contains__(self, title: object) -> bool:
        return title in self._titles

    def __iter__(self) -> Iterator[str]:
        return iter(self._titles)

    def __len__(self) -> int:
        return len(self._titles)

    def __repr__(self) -> str:
        return f"SeenTitleSet(size={len(self)}, max_size={self.max_size})"


__all__ = ["SeenTitleSet", "DEFAULT_MAX_SEEN_TITLES"]
