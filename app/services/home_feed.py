"""High level orchestration of the merged home feed."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from ..config import Settings
from ..models import HomePayload
from ..source_models import DoubanHomeFeed, DoubanItem, TmdbHomeFeed
from ..utils import now_ms
from .airing import AiringRailBuilder
from .cache_gateway import HomeCacheGateway
from .feeds import FeedClient
from .mapper import map_douban_cards, map_tmdb_cards, map_tmdb_people
from .merge import merge_cards
from .omdb import RatingsEnricher
from .regions import (
    REGIONAL_TAGS,
    RegionalSplit,
    is_japanese_tv,
    is_korean_tv,
    split_from_tag_lists,
    split_tv_by_region,
)

logger = logging.getLogger(__name__)

CacheStatus = Literal["remote-hit", "miss"]


class UpstreamUnavailableError(RuntimeError):
    """Raised when neither top-level feed produced data."""

    def __init__(self, douban_status: int | None, tmdb_status: int | None):
        super().__init__("Failed to fetch upstream lists")
        self.douban_status = douban_status
        self.tmdb_status = tmdb_status

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "doubanStatus": self.douban_status,
            "tmdbStatus": self.tmdb_status,
        }


@dataclass(slots=True)
class HomeFeedResult:
    payload: dict[str, Any]
    cache_status: CacheStatus


class HomeFeedService:
    """Serves the merged home payload, rebuilding it when the cache is stale."""

    def __init__(
        self,
        settings: Settings,
        feed_client: FeedClient,
        cache_gateway: HomeCacheGateway,
        enricher: RatingsEnricher,
        airing_builder: AiringRailBuilder,
    ) -> None:
        self._settings = settings
        self._feeds = feed_client
        self._cache = cache_gateway
        self._enricher = enricher
        self._airing = airing_builder

    async def get_home(self, origin: str | None = None) -> HomeFeedResult:
        cached = await self._cache.read()
        if cached is not None and cached.fresh:
            logger.debug("Serving home feed from remote cache")
            return HomeFeedResult(payload=cached.payload, cache_status="remote-hit")

        payload = await self.build_payload(origin)
        data = payload.to_payload()
        self._cache.schedule_write(data)
        return HomeFeedResult(payload=data, cache_status="miss")

    async def _regional_split(
        self, douban: DoubanHomeFeed, origin: str | None
    ) -> RegionalSplit:
        tags = [definition.tag for definition in REGIONAL_TAGS]
        lists = await asyncio.gather(
            *(self._feeds.fetch_tag_list(tag, origin) for tag in tags)
        )
        tag_lists: dict[str, list[DoubanItem]] = dict(zip(tags, lists))
        if any(tag_lists.values()):
            return split_from_tag_lists(tag_lists)
        logger.info("Douban tag lists empty, splitting home TV list by region")
        return split_tv_by_region(douban.tv)

    async def build_payload(
        self, origin: str | None = None, *, now: datetime | None = None
    ) -> HomePayload:
        """Fetch every source and assemble a fresh payload."""

        douban_result, tmdb_result = await asyncio.gather(
            self._feeds.fetch_douban_home(origin),
            self._feeds.fetch_tmdb_home(origin),
        )
        if not douban_result.ok and not tmdb_result.ok:
            raise UpstreamUnavailableError(douban_result.status, tmdb_result.status)
        douban = douban_result.data or DoubanHomeFeed()
        tmdb = tmdb_result.data or TmdbHomeFeed()

        split = await self._regional_split(douban, origin)

        tmdb_movies = map_tmdb_cards(tmdb.movies)
        tmdb_tv = map_tmdb_cards(tmdb.tv)
        tmdb_kr = map_tmdb_cards(tmdb.kr_tv)
        tmdb_jp = map_tmdb_cards(tmdb.jp_tv)
        tmdb_now_playing = map_tmdb_cards(tmdb.now_playing)
        tmdb_on_air = map_tmdb_cards(tmdb.on_air)

        tmdb_tv_kr = merge_cards([card for card in tmdb_tv if is_korean_tv(card)], tmdb_kr)
        tmdb_tv_jp = merge_cards([card for card in tmdb_tv if is_japanese_tv(card)], tmdb_jp)

        movies = merge_cards(map_douban_cards(douban.movies, "movie"), tmdb_movies)
        movies = await self._enricher.enrich(movies)

        latest_tv = merge_cards(map_douban_cards(douban.latest_tv, "tv"), tmdb_on_air)
        airing_rail = await self._airing.build(
            [card for card in latest_tv if card.douban_id],
            [card for card in latest_tv if card.tmdb_id or card.imdb_id],
            now=now,
        )

        return HomePayload(
            movies=movies,
            tv_cn=merge_cards(map_douban_cards(split.cn, "tv"), tmdb_tv),
            tv_kr=merge_cards(map_douban_cards(split.kr, "tv"), tmdb_tv_kr),
            tv_jp=merge_cards(map_douban_cards(split.jp, "tv"), tmdb_tv_jp),
            tv_us=merge_cards(map_douban_cards(split.us, "tv"), tmdb_tv),
            variety=map_douban_cards(douban.variety, "show"),
            latest_movies=merge_cards(
                map_douban_cards(douban.latest_movies, "movie"), tmdb_now_playing
            ),
            latest_tv=latest_tv,
            tmdb_movies=tmdb_movies,
            tmdb_tv=tmdb_tv,
            tmdb_kr=tmdb_kr,
            tmdb_jp=tmdb_jp,
            tmdb_people=map_tmdb_people(tmdb.people),
            tmdb_now_playing=tmdb_now_playing,
            tmdb_on_air=tmdb_on_air,
            airing_rail=airing_rail,
            updated_at=now_ms(),
        )
