"""Client for the Douban and TMDB list endpoints of the surrounding app."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..source_models import DoubanHomeFeed, DoubanItem, TmdbHomeFeed, parse_records

logger = logging.getLogger(__name__)

FeedT = TypeVar("FeedT", bound=BaseModel)

DOUBAN_HOME_PATH = "/api/douban/home"
TMDB_HOME_PATH = "/api/imdb/list"
DOUBAN_TAG_PATH = "/api/douban"


@dataclass
class FeedResult(Generic[FeedT]):
    """Outcome of a top-level feed fetch."""

    data: FeedT | None
    status: int | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


class FeedClient:
    """Fetches the upstream lists; every failure degrades to "no data"."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._max_retries = 1

    def _origin(self, origin: str | None) -> str:
        configured = self._settings.upstream_origin
        resolved = str(configured) if configured is not None else (origin or "")
        return resolved.rstrip("/")

    async def _get(
        self, url: str, params: dict[str, Any] | None = None
    ) -> httpx.Response | None:
        attempt = 0
        while True:
            try:
                response = await self._client.get(
                    url, params=params, headers={"Cache-Control": "no-store"}
                )
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = 0.2 * attempt
                    logger.info(
                        "Transient error fetching %s (%s). Retrying in %.1fs",
                        url,
                        exc.__class__.__name__,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning("Failed to fetch %s: %s", url, exc)
                return None
            if 500 <= response.status_code < 600 and attempt < self._max_retries:
                attempt += 1
                logger.info(
                    "Upstream %s returned %s. Retrying", url, response.status_code
                )
                await asyncio.sleep(0.2 * attempt)
                continue
            return response

    async def _fetch_feed(
        self, origin: str | None, path: str, model: type[FeedT]
    ) -> FeedResult[FeedT]:
        url = f"{self._origin(origin)}{path}"
        response = await self._get(url)
        if response is None:
            return FeedResult(data=None, status=None)
        if response.status_code != 200:
            logger.warning("Feed %s returned %s", url, response.status_code)
            return FeedResult(data=None, status=response.status_code)
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Feed %s returned non-JSON content", url)
            return FeedResult(data=None, status=response.status_code)
        if not isinstance(payload, dict):
            logger.warning("Unexpected feed structure from %s", url)
            return FeedResult(data=None, status=response.status_code)
        try:
            data = model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Feed %s failed validation: %s", url, exc)
            return FeedResult(data=None, status=response.status_code)
        return FeedResult(data=data, status=response.status_code)

    async def fetch_douban_home(
        self, origin: str | None = None
    ) -> FeedResult[DoubanHomeFeed]:
        return await self._fetch_feed(origin, DOUBAN_HOME_PATH, DoubanHomeFeed)

    async def fetch_tmdb_home(
        self, origin: str | None = None
    ) -> FeedResult[TmdbHomeFeed]:
        return await self._fetch_feed(origin, TMDB_HOME_PATH, TmdbHomeFeed)

    async def fetch_tag_list(
        self, tag: str, origin: str | None = None
    ) -> list[DoubanItem]:
        """Return one Douban TV tag list, or an empty list on any failure."""

        url = f"{self._origin(origin)}{DOUBAN_TAG_PATH}"
        params = {"type": "tv", "tag": tag, "pageSize": 24, "pageStart": 0}
        response = await self._get(url, params=params)
        if response is None or response.status_code != 200:
            return []
        try:
            payload = response.json()
        except ValueError:
            return []
        if not isinstance(payload, dict):
            return []
        return parse_records(payload.get("list"), DoubanItem)
