"""Configuration for the remote campus API."""

from __future__ import annotations

import os

from pydantic import Field, field_validator

from .base import BaseConfig

_ENV_PREFIX = "env:"


class ApiConfig(BaseConfig):
    """HTTP endpoint, timeout and retry settings."""

    base_url: str = Field(
        "http://localhost:5001/api/v1",
        description="API base URL, or 'env:VAR_NAME' to read it from the environment",
    )
    timeout_seconds: float = Field(25.0, description="Per-request timeout", gt=0)
    max_retries: int = Field(2, description="Retries for transient network failures", ge=0)
    retry_delay: float = Field(1.0, description="Base delay for exponential backoff (seconds)", ge=0)

    # Full-dataset paging
    page_limit: int = Field(50, description="Records requested per page when fetching everything", ge=1)
    max_pages: int = Field(100, description="Safety cap on pages fetched in one dataset load", ge=1)

    @field_validator("base_url")
    @classmethod
    def _resolve_base_url(cls, value: str) -> str:
        """Expand ``env:VAR_NAME`` and require an http(s) URL without a trailing slash."""
        value = value.strip()
        if value.startswith(_ENV_PREFIX):
            var_name = value[len(_ENV_PREFIX) :]
            resolved = os.getenv(var_name, "").strip()
            if not resolved:
                raise ValueError(f"Environment variable '{var_name}' for the API base URL is not set or empty")
            value = resolved
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"API base URL must start with http:// or https://, got '{value}'")
        return value.rstrip("/")


__all__ = ["ApiConfig"]
