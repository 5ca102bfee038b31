"""Subject code to subject name lookup."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Mapping

from loguru import logger

_CODE_PATTERN = re.compile(r"^[A-Z]{2,6}\d{2,3}$", re.IGNORECASE)
_NAME_PATTERN = re.compile(r"^[a-zA-Z\s&\-,]+$")


class SubjectDirectory:
    """Case-insensitive mapping of subject codes (``CSPC20``) to names."""

    def __init__(self, names: Mapping[str, str] | None = None) -> None:
        self._names = {code.upper(): name for code, name in (names or {}).items() if name}

    @classmethod
    def from_file(cls, path: Path | str) -> "SubjectDirectory":
        """Load a JSON object of ``{"CODE": "Name"}`` pairs.

        A missing or malformed file yields an empty directory; search still
        works on subject codes alone.
        """
        source = Path(path)
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not load subject names from {}: {}", source, exc)
            return cls()
        if not isinstance(payload, dict):
            logger.warning("Subject names file {} is not a JSON object", source)
            return cls()
        return cls({str(code): str(name) for code, name in payload.items()})

    def get_name(self, code: str | None) -> str | None:
        if not code:
            return None
        return self._names.get(str(code).upper())

    def search_codes(self, query: str) -> list[str]:
        """Codes whose subject name contains ``query`` (case-insensitive)."""
        needle = (query or "").strip().lower()
        if len(needle) < 2:
            return []
        return [code for code, name in self._names.items() if needle in name.lower()]

    @staticmethod
    def looks_like_name(query: str | None) -> bool:
        if not query:
            return False
        trimmed = str(query).strip()
        if len(trimmed) < 3 or _CODE_PATTERN.match(trimmed):
            return False
        return " " in trimmed or (bool(_NAME_PATTERN.match(trimmed)) and len(trimmed) >= 4)

    def __len__(self) -> int:
        return len(self._names)


__all__ = ["SubjectDirectory"]
