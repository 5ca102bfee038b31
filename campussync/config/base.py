"""Base configuration model and TOML loader."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

ConfigT = TypeVar("ConfigT", bound="BaseConfig")


class BaseConfig(BaseModel):
    """Base class for all configuration sections.

    Unknown keys are rejected so typos in the TOML file surface as
    validation errors instead of being silently ignored.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


def load_config(config_cls: type[ConfigT], path: Path | str) -> ConfigT:
    """Load ``path`` as TOML and validate it against ``config_cls``."""

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("rb") as handle:
        raw: dict[str, Any] = tomllib.load(handle)
    return config_cls.model_validate(raw)


__all__ = ["BaseConfig", "load_config"]
