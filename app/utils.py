"""Utility helpers for the home feed service."""

from __future__ import annotations

import re
import time
from datetime import date, datetime
from typing import Any, Hashable, Iterable, TypeVar


T = TypeVar("T", bound=Hashable)

IMDB_ID_RE = re.compile(r"(tt\d{5,}|imdbt\d+)", re.IGNORECASE)
TMDB_URL_RE = re.compile(r"themoviedb\.org/(?:movie|tv)/(\d+)", re.IGNORECASE)
YEAR_RE = re.compile(r"(19|20|21)\d{2}")
WHITESPACE_RE = re.compile(r"\s+")


def now_ms() -> int:
    """Return the current time as epoch milliseconds."""

    return int(time.time() * 1000)


def normalize_title(value: str | None) -> str:
    """Lower-case a title and collapse runs of whitespace."""

    if not value:
        return ""
    return WHITESPACE_RE.sub(" ", value.strip()).lower()


def normalize_imdb_id(value: str | None) -> str | None:
    """Return a lower-cased IMDb id, or ``None`` when the value is unusable."""

    if not value:
        return None
    raw = str(value).strip().lower()
    if raw.startswith("imdb:"):
        raw = raw[len("imdb:"):]
    match = IMDB_ID_RE.search(raw)
    return match.group(0).lower() if match else None


def normalize_tmdb_id(value: Any) -> str | None:
    """Return the numeric TMDB id from ``tmdb:123``, a URL or a bare number."""

    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    if raw.startswith("tmdb:"):
        raw = raw[len("tmdb:"):]
    match = TMDB_URL_RE.search(raw)
    if match:
        return match.group(1)
    if raw.isdigit():
        return raw
    return None


def parse_year(value: Any) -> str | None:
    """Extract a four digit year from free text."""

    if value is None:
        return None
    match = YEAR_RE.search(str(value))
    return match.group(0) if match else None


def parse_air_date(value: str | None) -> datetime | None:
    """Parse an ISO date or timestamp into a naive local datetime."""

    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed_date = date.fromisoformat(text[:10])
        except ValueError:
            return None
        return datetime(parsed_date.year, parsed_date.month, parsed_date.day)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def unique(values: Iterable[T | None]) -> list[T]:
    """Drop empty values and duplicates while keeping discovery order."""

    seen: set[T] = set()
    result: list[T] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
