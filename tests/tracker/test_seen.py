from __future__ import annotations

import pytest

from campussync.tracker import SeenTitleSet


def test_seen_set_keeps_most_recent_titles() -> None:
    seen = SeenTitleSet((f"title-{index}" for index in range(600)), max_size=500)

    assert len(seen) == 500
    assert "title-99" not in seen
    assert "title-100" in seen
    assert seen.to_list()[-1] == "title-599"


def test_re_adding_keeps_original_position() -> None:
    seen = SeenTitleSet(["a", "b"], max_size=2)
    seen.add("a")
    seen.add("c")

    assert seen.to_list() == ["b", "c"]


def test_copy_is_independent() -> None:
    seen = SeenTitleSet(["a"])
    clone = seen.copy()
    clone.add("b")

    assert "b" not in seen
    assert clone.max_size == seen.max_size


def test_max_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SeenTitleSet(max_size=0)
