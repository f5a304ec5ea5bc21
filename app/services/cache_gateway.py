"""Remote TTL cache for the merged home payload."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from ..config import HOME_CACHE_FILENAME, Settings
from ..utils import now_ms
from .cache_store import RemoteJsonStore, with_token

logger = logging.getLogger(__name__)

REQUIRED_ARRAYS: tuple[str, ...] = ("tvKr", "tvJp")


@dataclass(slots=True)
class CachedPayload:
    """A payload read back from the remote store."""

    payload: dict[str, Any]
    cached_at: int | None
    fresh: bool


def payload_timestamp(payload: dict[str, Any]) -> int | None:
    """Return the airing-rail timestamp, else the top-level ``updatedAt``."""

    rail = payload.get("airingRail")
    if isinstance(rail, dict):
        cached_at = rail.get("cachedAt")
        if isinstance(cached_at, (int, float)) and not isinstance(cached_at, bool):
            return int(cached_at)
    updated_at = payload.get("updatedAt")
    if isinstance(updated_at, (int, float)) and not isinstance(updated_at, bool):
        return int(updated_at)
    return None


class HomeCacheGateway:
    """Reads the cached home payload and writes rebuilt ones back."""

    def __init__(self, settings: Settings, store: RemoteJsonStore) -> None:
        self._settings = settings
        self._store = store

    def cache_url(self) -> str | None:
        """Return the cache URL, preferring the explicit override endpoint."""

        if not self._settings.home_cache_enabled:
            return None
        url = self._settings.home_cache_url or self._settings.cache_url_for(
            HOME_CACHE_FILENAME
        )
        if not url:
            return None
        return with_token(url, self._settings.home_cache_token)

    async def read(self, *, now: int | None = None) -> CachedPayload | None:
        url = self.cache_url()
        if not url:
            return None
        cached = await self._store.fetch_json(url)
        if not isinstance(cached, dict):
            return None
        if not all(isinstance(cached.get(key), list) for key in REQUIRED_ARRAYS):
            logger.info("Ignoring cached home payload with an unexpected shape")
            return None

        cached_at = payload_timestamp(cached)
        current = now if now is not None else now_ms()
        ttl_ms = self._settings.home_cache_ttl_seconds * 1000
        fresh = cached_at is not None and current - cached_at < ttl_ms
        return CachedPayload(payload=cached, cached_at=cached_at, fresh=fresh)

    def schedule_write(self, payload: dict[str, Any]) -> asyncio.Task[bool] | None:
        url = self.cache_url()
        if not url:
            return None
        return self._store.schedule_upload(url, payload)
