"""Tests for the upstream list client."""

from __future__ import annotations

import httpx
import pytest

from app.config import Settings
from app.services.feeds import FeedClient


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_douban_home_skips_invalid_entries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/douban/home"
        return httpx.Response(
            200,
            json={
                "movies": [
                    {"id": 1292052, "title": "The Shawshank Redemption", "rate": 9.7},
                    {"id": "broken"},
                    "not-a-record",
                ],
                "latestTv": [{"id": "2", "title": "Show", "card_subtitle": "2024 / 韩国"}],
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = FeedClient(Settings(_env_file=None), http_client)
        result = await client.fetch_douban_home("https://app.example.com")

    assert result.ok and result.status == 200
    assert result.data is not None
    assert [item.id for item in result.data.movies] == ["1292052"]
    assert result.data.movies[0].rate == "9.7"
    assert result.data.latest_tv[0].subtitle == "2024 / 韩国"
    assert result.data.variety == []


@pytest.mark.anyio("asyncio")
async def test_server_errors_are_retried_once() -> None:
    statuses = [503, 200]
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"onAir": [{"tmdbId": 9, "title": "Show"}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = FeedClient(Settings(_env_file=None), http_client)
        result = await client.fetch_tmdb_home("https://app.example.com")

    assert len(seen) == 2
    assert result.data is not None
    assert result.data.on_air[0].tmdb_id == "9"


@pytest.mark.anyio("asyncio")
async def test_failed_feed_reports_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "missing"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = FeedClient(Settings(_env_file=None), http_client)
        result = await client.fetch_douban_home("https://app.example.com")

    assert not result.ok
    assert result.status == 404


@pytest.mark.anyio("asyncio")
async def test_tag_list_uses_configured_origin() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"list": [{"id": "7", "title": "K"}]})

    settings = Settings(_env_file=None, UPSTREAM_ORIGIN="https://upstream.example.com")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        items = await FeedClient(settings, http_client).fetch_tag_list(
            "韩剧", "https://ignored.example.com"
        )

    assert [item.id for item in items] == ["7"]
    request = requests[0]
    assert request.url.host == "upstream.example.com"
    assert request.url.path == "/api/douban"
    assert request.url.params["tag"] == "韩剧"
    assert request.url.params["pageSize"] == "24"
    assert request.url.params["type"] == "tv"


@pytest.mark.anyio("asyncio")
async def test_tag_list_failure_is_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        items = await FeedClient(Settings(_env_file=None), http_client).fetch_tag_list(
            "美剧", "https://app.example.com"
        )

    assert items == []
