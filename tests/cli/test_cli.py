from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch

import pytest
import requests

from campussync.cli import main

from .utils import logger_to_stderr, write_config


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def _json_response(payload: Any) -> Mock:
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = payload
    return response


def _papers_response(records: list[dict[str, Any]]) -> Mock:
    return _json_response({"success": True, "data": records, "meta": {"pagination": {"hasMore": False}}})


def test_status_reports_sections(capsys, tmp_path):
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "status"])

    assert exit_code == 0
    captured = capsys.readouterr()
    assert "=== General Configuration ===" in captured.err
    assert "Base URL: http://api.test/v1" in captured.err
    assert "=== Cache ===" in captured.err
    assert "=== Alert Tracker ===" in captured.err


def test_missing_command_warns(capsys, tmp_path):
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file)])

    assert exit_code == 0
    assert "No command provided" in capsys.readouterr().err


def test_cache_stats_json_on_empty_cache(capsys, tmp_path):
    config_file = write_config(tmp_path)

    exit_code = main(["--config", str(config_file), "cache", "stats", "--format", "json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["totalEntries"] == 0
    assert payload["entries"] == []


@patch("campussync.api.client.requests.Session.get")
def test_papers_search_filters_locally(mock_get: Mock, capsys, tmp_path):
    mock_get.return_value = _papers_response(
        [
            {"id": "1", "subjectCode": "CSPC31", "deptCode": "CS", "department": "Computer Science", "year": 2023},
            {"id": "2", "subjectCode": "MEPC10", "deptCode": "ME", "department": "Mechanical", "year": 2022},
            {"id": "3", "subjectCode": "CSPC32", "deptCode": "CS", "department": "Computer Science", "year": 2021},
        ]
    )
    config_file = write_config(tmp_path)

    exit_code = main(
        ["--config", str(config_file), "papers", "search", "computer", "--filter", "deptCode=CS", "--format", "json"]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [record["id"] for record in payload["data"]] == ["1", "3"]
    assert payload["pagination"]["totalRecords"] == 2

    # The second search is answered from the on-disk cache.
    exit_code = main(["--config", str(config_file), "papers", "search", "mechanical", "--format", "json"])
    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [record["id"] for record in payload["data"]] == ["2"]
    assert mock_get.call_count == 1


@patch("campussync.api.client.requests.Session.get")
def test_papers_search_reports_load_failure(mock_get: Mock, capsys, tmp_path):
    mock_get.side_effect = requests.ConnectionError("offline")
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "papers", "search"])

    assert exit_code == 1
    assert "Could not load papers" in capsys.readouterr().err


@patch("campussync.api.client.requests.Session.get")
def test_alerts_poll_first_sync_then_stats(mock_get: Mock, capsys, tmp_path):
    def _route(url: str, **kwargs: Any) -> Mock:
        if url.endswith("/notifications/digest"):
            return _json_response({"success": True, "data": {"hash": "h1"}})
        return _json_response({"success": True, "data": {"items": [{"title": "Exam schedule"}]}})

    mock_get.side_effect = _route
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "alerts", "poll"])
    assert exit_code == 0
    assert "First sync complete" in capsys.readouterr().err

    exit_code = main(["--config", str(config_file), "alerts", "stats", "--format", "json"])
    assert exit_code == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["currentHash"] == "h1"
    assert stats["seenTitlesCount"] == 1

    exit_code = main(["--config", str(config_file), "alerts", "reset"])
    assert exit_code == 0
    assert not (tmp_path / "data" / "notification_tracker").exists()


@patch("campussync.api.client.requests.Session.get")
def test_alerts_poll_failure_exit_code(mock_get: Mock, capsys, tmp_path):
    mock_get.return_value = _json_response({"success": False, "message": "maintenance"})
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "alerts", "poll", "--force"])

    assert exit_code == 1
    assert "Server error: maintenance" in capsys.readouterr().err


def test_cache_purge_and_clear(capsys, tmp_path):
    config_file = write_config(tmp_path)
    cache_dir = tmp_path / "data" / "app_cache"
    cache_dir.mkdir(parents=True)
    (cache_dir / "stats.json").write_text(
        json.dumps({"data": 1, "cachedAt": 0, "expiresAt": 1, "ttlMs": 1}), encoding="utf-8"
    )
    (cache_dir / "broken.json").write_text("garbage", encoding="utf-8")

    with logger_to_stderr():
        assert main(["--config", str(config_file), "cache", "purge"]) == 0
    assert "Purged 2 stale cache entr(ies)" in capsys.readouterr().err
    assert list(cache_dir.iterdir()) == []

    assert main(["--config", str(config_file), "cache", "clear"]) == 0
    assert not cache_dir.exists()


def test_cli_serve_dry_run(capsys, tmp_path):
    config_file = write_config(
        tmp_path,
        extra="""
[scheduler]
enabled = true
timezone = "UTC"

[scheduler.poll_job]
enabled = true
name = "test-poll"
cron = "* * * * *"

[scheduler.purge_job]
enabled = true
name = "test-purge"
cron = "0 3 * * *"
""",
    )

    with logger_to_stderr():
        return_code = main(["--config", str(config_file), "serve", "--dry-run"])

    assert return_code == 0
    captured = capsys.readouterr()
    assert "Registering job 'poll'" in captured.err
    assert "Registering job 'purge'" in captured.err
    assert "[Dry Run] Jobs validated and registered." in captured.err
    assert "[Dry Run] Scheduler will not be started." in captured.err
