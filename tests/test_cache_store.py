"""Tests for the remote JSON blob store client."""

from __future__ import annotations

import httpx
import pytest

from app.services.cache_store import RemoteJsonStore, upload_endpoint, with_token


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def test_with_token_appends_once() -> None:
    url = "https://store.example.com/posters/video_info/home-merged.json"

    assert with_token(url, None) == url
    assert with_token(url, "abc") == f"{url}?token=abc"
    assert with_token(f"{url}?token=keep", "abc") == f"{url}?token=keep"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        (
            "https://store.example.com/app/posters/video_info/home-merged.json",
            "https://store.example.com/app/posters/poster.php",
        ),
        (
            "https://cache.example.com/blobs/home.json",
            "https://cache.example.com/blobs/posters/poster.php",
        ),
    ],
)
def test_upload_endpoint(url: str, expected: str) -> None:
    assert upload_endpoint(url) == expected


@pytest.mark.anyio("asyncio")
async def test_upload_falls_back_to_multipart_post() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "PUT":
            return httpx.Response(405)
        return httpx.Response(200, json={"ok": True})

    url = "https://store.example.com/posters/video_info/home-merged.json"
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        stored = await RemoteJsonStore(http_client).upload_json(url, {"tvKr": []})

    assert stored is True
    assert [request.method for request in requests] == ["PUT", "POST"]
    assert requests[1].url.path == "/posters/poster.php"
    body = requests[1].content
    assert b'name="fileToUpload"; filename="home-merged.json"' in body
    assert b'{"tvKr": []}' in body


@pytest.mark.anyio("asyncio")
async def test_failures_never_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    url = "https://store.example.com/posters/video_info/home-merged.json"
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RemoteJsonStore(http_client)
        assert await store.fetch_json(url) is None
        task = store.schedule_upload(url, {"tvKr": []})
        await store.drain()

    assert task.result() is False
