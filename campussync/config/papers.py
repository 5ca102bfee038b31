"""Configuration for the papers dataset session."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field

from .base import BaseConfig


class PapersConfig(BaseConfig):
    """Settings for the papers dataset session."""

    page_size: int = Field(10, description="Records per page in the papers list", ge=1, le=100)
    subject_names_file: Path | None = Field(
        None,
        description="JSON file mapping subject codes to names, used to enrich search text",
    )


__all__ = ["PapersConfig"]
