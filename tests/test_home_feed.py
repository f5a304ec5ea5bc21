"""End-to-end tests for the merged home feed service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Callable

import httpx
import pytest

from app.config import Settings
from app.services.airing import AiringRailBuilder
from app.services.bangumi import BangumiClient
from app.services.cache_gateway import HomeCacheGateway
from app.services.cache_store import RemoteJsonStore
from app.services.caches import ProcessCaches
from app.services.feeds import FeedClient
from app.services.home_feed import HomeFeedService, UpstreamUnavailableError
from app.services.omdb import OmdbClient, RatingsEnricher
from app.services.tvmaze import TvmazeClient
from app.utils import now_ms

ORIGIN = "https://app.example.com"
MINUTE = 60_000


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@asynccontextmanager
async def service_for(
    handler: Callable[[httpx.Request], httpx.Response], **overrides: Any
) -> AsyncIterator[tuple[HomeFeedService, RemoteJsonStore]]:
    settings = Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
    caches = ProcessCaches()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RemoteJsonStore(http_client)
        service = HomeFeedService(
            settings,
            FeedClient(settings, http_client),
            HomeCacheGateway(settings, store),
            RatingsEnricher(settings, OmdbClient(settings, http_client, store, caches)),
            AiringRailBuilder(
                settings,
                TvmazeClient(settings, http_client, caches),
                BangumiClient(settings, http_client),
            ),
        )
        yield service, store
        await store.drain()


def upstream_handler(
    douban: dict[str, Any] | None,
    tmdb: dict[str, Any] | None,
    *,
    airdate: str | None = None,
    requests: list[httpx.Request] | None = None,
    cached: dict[str, Any] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        host, path = request.url.host, request.url.path
        if host == "store.example.com":
            if request.method == "GET":
                return httpx.Response(200, json=cached) if cached else httpx.Response(404)
            return httpx.Response(200)
        if host == "app.example.com":
            if path == "/api/douban/home":
                return httpx.Response(200, json=douban) if douban else httpx.Response(500)
            if path == "/api/imdb/list":
                return httpx.Response(200, json=tmdb) if tmdb else httpx.Response(502)
            if path == "/api/douban":
                return httpx.Response(200, json={"list": []})
        if host == "api.tvmaze.com":
            if path == "/lookup/shows":
                return httpx.Response(
                    200,
                    json={"id": 1, "_links": {"nextepisode": {"href": "https://api.tvmaze.com/episodes/5"}}},
                )
            return httpx.Response(200, json={"id": 5, "airdate": airdate})
        if host == "api.bgm.tv":
            return httpx.Response(200, json=[])
        return httpx.Response(404)

    return handler


@pytest.mark.anyio("asyncio")
async def test_same_title_from_both_catalogs_becomes_one_airing_entry() -> None:
    handler = upstream_handler(
        {"latestTv": [{"id": "1", "title": "Show A", "region": "kr"}]},
        {"onAir": [{"tmdbId": "9", "title": "Show A", "originalLanguage": "ko"}]},
        airdate=date.today().isoformat(),
    )

    async with service_for(handler) as (service, _):
        result = await service.get_home(ORIGIN)

    payload = result.payload
    assert result.cache_status == "miss"
    assert len(payload["latestTv"]) == 1
    merged = payload["latestTv"][0]
    assert merged["douban_id"] == 1
    assert merged["tmdb_id"] == "9"
    rail = payload["airingRail"]
    assert rail["titleKey"] == "today"
    assert [item["title"] for item in rail["items"]] == ["Show A"]
    assert payload["tmdbOnAir"][0]["tmdb_id"] == "9"
    for key in ("tvCn", "tvKr", "tvJp", "tvUs", "movies", "variety", "updatedAt"):
        assert key in payload


@pytest.mark.anyio("asyncio")
async def test_regional_lists_merge_matching_tmdb_titles() -> None:
    handler = upstream_handler(
        {
            "tv": [
                {"id": "11", "title": "사랑", "year": "2024"},
                {"id": "12", "title": "Friends", "year": "1994"},
            ]
        },
        {
            "tv": [{"tmdbId": "21", "title": "Drama K", "mediaType": "tv", "originalLanguage": "ko"}],
            "krTv": [{"tmdbId": "22", "title": "Drama K2", "mediaType": "tv", "originCountry": ["KR"]}],
            "jpTv": [{"tmdbId": "23", "title": "Drama J", "mediaType": "tv"}],
        },
    )

    async with service_for(handler) as (service, _):
        payload = (await service.get_home(ORIGIN)).payload

    assert [item["title"] for item in payload["tvKr"]] == ["사랑", "Drama K", "Drama K2"]
    assert [item["title"] for item in payload["tvJp"]] == ["Drama J"]
    assert [item["title"] for item in payload["tvUs"]] == ["Friends", "Drama K"]
    assert [item["title"] for item in payload["tvCn"]] == ["Drama K"]


@pytest.mark.anyio("asyncio")
async def test_only_one_feed_failing_still_builds() -> None:
    handler = upstream_handler(None, {"movies": [{"tmdbId": 5, "title": "Movie"}]})

    async with service_for(handler) as (service, _):
        payload = (await service.get_home(ORIGIN)).payload

    assert [item["title"] for item in payload["movies"]] == ["Movie"]
    assert payload["latestTv"] == []


@pytest.mark.anyio("asyncio")
async def test_both_feeds_failing_raises() -> None:
    handler = upstream_handler(None, None)

    async with service_for(handler) as (service, _):
        with pytest.raises(UpstreamUnavailableError) as excinfo:
            await service.get_home(ORIGIN)

    assert excinfo.value.to_payload() == {
        "error": "Failed to fetch upstream lists",
        "doubanStatus": 500,
        "tmdbStatus": 502,
    }


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(("age_minutes", "expected"), [(5, "remote-hit"), (15, "miss")])
async def test_cached_payload_freshness_controls_rebuild(age_minutes: int, expected: str) -> None:
    requests: list[httpx.Request] = []
    cached = {
        "tvKr": [],
        "tvJp": [],
        "movies": [{"title": "From cache"}],
        "airingRail": {"titleKey": "week", "items": [], "cachedAt": now_ms() - age_minutes * MINUTE},
    }
    handler = upstream_handler(
        {"movies": [{"id": "3", "title": "Fresh"}]},
        {"tv": []},
        requests=requests,
        cached=cached,
    )

    async with service_for(handler, CONFIGJSON="https://store.example.com/config.json") as (
        service,
        _,
    ):
        result = await service.get_home(ORIGIN)

    assert result.cache_status == expected
    feed_calls = [request for request in requests if request.url.host == "app.example.com"]
    uploads = [request for request in requests if request.method == "PUT"]
    if expected == "remote-hit":
        assert result.payload["movies"][0]["title"] == "From cache"
        assert feed_calls == []
        assert uploads == []
    else:
        assert result.payload["movies"][0]["title"] == "Fresh"
        assert feed_calls
        assert len(uploads) == 1
