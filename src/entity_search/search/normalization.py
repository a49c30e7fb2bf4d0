"""Normalize source field values into index content."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
import re
from typing import Any


_WHITESPACE = re.compile(r"\s+")


def normalize_content(value: Any) -> str:
    """Convert a source field value into indexable text.

    Returns an empty string when the value yields nothing to index, which the
    indexing pipeline treats as "delete the record".
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return _WHITESPACE.sub(" ", value).strip()
    if isinstance(value, (bytes, bytearray)):
        return normalize_content(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return _join(value.values())
    if isinstance(value, Iterable):
        return _join(value)
    return normalize_content(str(value))


def _join(values: Iterable[Any]) -> str:
    parts = (normalize_content(item) for item in values)
    return " ".join(part for part in parts if part)
