"""Tests for the remote home payload cache."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.config import Settings
from app.services.cache_gateway import HomeCacheGateway, payload_timestamp
from app.services.cache_store import RemoteJsonStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


NOW = 1_700_000_000_000
MINUTE = 60_000


def build_settings(**overrides: Any) -> Settings:
    base: dict[str, Any] = {"CONFIGJSON": "https://store.example.com/site/config.json"}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def cached_payload(age_minutes: int) -> dict[str, Any]:
    return {
        "tvKr": [],
        "tvJp": [],
        "movies": [{"title": "Heat"}],
        "airingRail": {"titleKey": "week", "items": [], "cachedAt": NOW - age_minutes * MINUTE},
        "updatedAt": NOW - age_minutes * MINUTE,
    }


def test_cache_url_resolution() -> None:
    store = RemoteJsonStore(httpx.AsyncClient())
    derived = HomeCacheGateway(build_settings(HOME_CACHE_TOKEN="t0k"), store)
    override = HomeCacheGateway(
        build_settings(HOME_CACHE_URL="https://blobs.example.com/home.json?token=own"), store
    )
    disabled = HomeCacheGateway(build_settings(HOME_CACHE_ENABLED=False), store)
    unconfigured = HomeCacheGateway(build_settings(CONFIGJSON=""), store)

    assert (
        derived.cache_url()
        == "https://store.example.com/site/posters/video_info/home-merged.json?token=t0k"
    )
    assert override.cache_url() == "https://blobs.example.com/home.json?token=own"
    assert disabled.cache_url() is None
    assert unconfigured.cache_url() is None


def test_payload_timestamp_prefers_rail() -> None:
    assert payload_timestamp({"airingRail": {"cachedAt": 5}, "updatedAt": 9}) == 5
    assert payload_timestamp({"updatedAt": 9}) == 9
    assert payload_timestamp({}) is None


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(("age", "fresh"), [(5, True), (15, False)])
async def test_read_reports_freshness(age: int, fresh: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=cached_payload(age))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        gateway = HomeCacheGateway(build_settings(), RemoteJsonStore(http_client))
        cached = await gateway.read(now=NOW)

    assert cached is not None
    assert cached.fresh is fresh
    assert cached.cached_at == NOW - age * MINUTE


@pytest.mark.anyio("asyncio")
async def test_read_rejects_payload_without_regional_lists() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = cached_payload(1)
        payload.pop("tvJp")
        return httpx.Response(200, json=payload)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        gateway = HomeCacheGateway(build_settings(), RemoteJsonStore(http_client))
        assert await gateway.read(now=NOW) is None


@pytest.mark.anyio("asyncio")
async def test_schedule_write_uploads_in_background() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RemoteJsonStore(http_client)
        gateway = HomeCacheGateway(build_settings(), store)
        task = gateway.schedule_write(cached_payload(0))
        assert task is not None
        await store.drain()

    assert [request.method for request in requests] == ["PUT"]
    assert requests[0].url.path == "/site/posters/video_info/home-merged.json"
