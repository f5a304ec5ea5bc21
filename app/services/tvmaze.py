"""Next-episode air dates from the TVmaze API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..utils import normalize_imdb_id, normalize_tmdb_id, now_ms
from .caches import NextAirEntry, ProcessCaches

logger = logging.getLogger(__name__)


class TvmazeClient:
    """Resolves a show's next air date by IMDb id, then by TMDB id."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        caches: ProcessCaches,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._caches = caches

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any | None:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.info("TVmaze request to %s failed: %s", url, exc)
            return None
        if response.status_code != 200:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _lookup_show(self, key: str, value: str) -> dict[str, Any] | None:
        data = await self._get_json(
            f"{str(self._settings.tvmaze_api_url).rstrip('/')}/lookup/shows",
            params={key: value},
        )
        if isinstance(data, dict) and data.get("id"):
            return data
        return None

    async def _next_episode_airdate(self, show: dict[str, Any]) -> str | None:
        links = show.get("_links") or {}
        href = (links.get("nextepisode") or {}).get("href")
        if not href:
            return None
        episode = await self._get_json(href)
        if not isinstance(episode, dict):
            return None
        return episode.get("airdate") or episode.get("airstamp") or None

    async def next_airdate(
        self, *, imdb_id: str | None = None, tmdb_id: str | None = None
    ) -> str | None:
        """Return the ISO date of the next episode, or ``None`` if unknown."""

        normalized_imdb = normalize_imdb_id(imdb_id)
        normalized_tmdb = normalize_tmdb_id(tmdb_id)
        if normalized_imdb:
            cache_key = f"imdb:{normalized_imdb}"
        elif normalized_tmdb:
            cache_key = f"tmdb:{normalized_tmdb}"
        else:
            return None

        cached = self._caches.next_air.get(cache_key)
        ttl_ms = self._settings.tvmaze_cache_ttl_seconds * 1000
        if cached is not None and now_ms() - cached.cached_at < ttl_ms:
            return cached.airdate

        show: dict[str, Any] | None = None
        if normalized_imdb:
            show = await self._lookup_show("imdb", normalized_imdb)
        if show is None and normalized_tmdb:
            show = await self._lookup_show("tmdb", normalized_tmdb)

        airdate = await self._next_episode_airdate(show) if show else None
        self._caches.next_air[cache_key] = NextAirEntry(cached_at=now_ms(), airdate=airdate)
        return airdate
