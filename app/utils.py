"""Utility helpers for the catalog service."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Iterable


def first_non_empty(*values: Any) -> Any:
    """Return the first value that is neither ``None`` nor a blank string."""

    for value in values:
        if value is None:
            continue
        if isinstance(value, str):
            if value.strip():
                return value.strip()
            continue
        return value
    return None


def coerce_int(value: Any) -> int | None:
    """Return ``value`` as an ``int`` or ``None`` when it is not numeric."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def build_image_url(path: str | None, base_url: str) -> str | None:
    """Join a provider image path onto the configured image base URL."""

    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def as_code_list(value: Any) -> list[str]:
    """Normalise a provider country/language field to a list of codes."""

    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, Iterable):
        codes: list[str] = []
        for entry in value:
            if isinstance(entry, str) and entry.strip():
                codes.append(entry.strip())
            elif isinstance(entry, dict) and entry.get("iso_3166_1"):
                codes.append(str(entry["iso_3166_1"]))
        return codes
    return []


@lru_cache(maxsize=16)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def contains_script(text: str | None, pattern: str) -> bool:
    """Return ``True`` when ``text`` contains a character matching ``pattern``."""

    if not text:
        return False
    return _compile(pattern).search(text) is not None
