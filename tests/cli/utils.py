"""Shared helpers for CLI tests."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path

from loguru import logger


@contextmanager
def logger_to_stderr(level: str = "INFO"):
    """Temporarily route Loguru output to stderr for assertion."""

    handler_id = logger.add(sys.stderr, level=level)
    try:
        yield
    finally:
        logger.remove(handler_id)


def write_config(base_dir: Path, extra: str = "") -> Path:
    """Write a minimal config whose data directory lives under ``base_dir``."""

    data_dir = (base_dir / "data").as_posix()
    config_file = base_dir / "config.toml"
    config_file.write_text(
        f"""
data_dir = "{data_dir}"
logging_level = "INFO"

[api]
base_url = "http://api.test/v1"
max_retries = 0
retry_delay = 0
{extra}
"""
    )
    return config_file
