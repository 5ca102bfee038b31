from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from campussync.config import AppConfig, BaseConfig, CacheConfig, ApiConfig, load_config


class ExampleConfig(BaseConfig):
    data_dir: Path
    feature_enabled: bool


def test_load_config_success(tmp_path: Path) -> None:
    sample = tmp_path / "config.toml"
    sample.write_text(
        """
        data_dir = "./cache"
        feature_enabled = true
        """.strip(),
        encoding="utf-8",
    )

    cfg = load_config(ExampleConfig, sample)

    assert cfg.data_dir == Path("./cache")
    assert cfg.feature_enabled is True


def test_load_config_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "missing.toml"
    with pytest.raises(FileNotFoundError):
        load_config(ExampleConfig, missing)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    sample = tmp_path / "config.toml"
    sample.write_text("[cache]\ndirectory = 'c'\nbogus = 1\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_config(AppConfig, sample)


def test_app_config_example_file() -> None:
    config_path = Path(__file__).resolve().parents[2] / "config" / "example.toml"
    cfg = load_config(AppConfig, config_path)

    assert cfg.data_dir == Path("./data")
    assert cfg.logging_level == "INFO"
    assert cfg.cache_dir == Path("./data") / "app_cache"
    assert cfg.tracker_dir == Path("./data") / "notification_tracker"

    assert cfg.api.page_limit == 50
    assert cfg.api.max_pages == 100
    assert cfg.tracker.cooldown_seconds == 300
    assert cfg.tracker.max_seen_titles == 500
    assert cfg.papers.page_size == 10

    assert cfg.scheduler is not None
    assert cfg.scheduler.poll_job is not None
    assert cfg.scheduler.poll_job.cron == "*/15 * * * *"
    assert cfg.scheduler.purge_job is not None


def test_cache_ttl_defaults_in_milliseconds() -> None:
    cfg = CacheConfig()

    assert cfg.ttl_ms("papers") == 10 * 60 * 1000
    assert cfg.ttl_ms("papers_all") == 60 * 60 * 1000
    assert cfg.ttl_ms("filters") == 24 * 60 * 60 * 1000


def test_api_base_url_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAMPUS_API_URL", "https://campus.example/api/v1/")
    cfg = ApiConfig(base_url="env:CAMPUS_API_URL")

    assert cfg.base_url == "https://campus.example/api/v1"


def test_api_base_url_missing_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CAMPUS_API_URL", raising=False)

    with pytest.raises(ValidationError, match="CAMPUS_API_URL"):
        ApiConfig(base_url="env:CAMPUS_API_URL")


def test_api_base_url_requires_http_scheme() -> None:
    with pytest.raises(ValidationError, match="http"):
        ApiConfig(base_url="campus.example/api")


@pytest.mark.parametrize(
    "cache_dir, tracker_dir",
    [
        ("", "notification_tracker"),
        (".", "notification_tracker"),
        ("state", "state"),
        ("state", "state/tracker"),
        ("state/cache", "state"),
    ],
)
def test_overlapping_state_directories_are_rejected(cache_dir: str, tracker_dir: str) -> None:
    with pytest.raises(ValidationError):
        AppConfig(cache={"directory": cache_dir}, tracker={"directory": tracker_dir})


def test_sibling_state_directories_are_accepted(tmp_path: Path) -> None:
    cfg = AppConfig(data_dir=tmp_path, cache={"directory": "state/cache"}, tracker={"directory": "state/tracker"})

    assert cfg.cache_dir == tmp_path / "state" / "cache"
    assert cfg.tracker_dir == tmp_path / "state" / "tracker"
