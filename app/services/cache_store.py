"""Best-effort client for the remote JSON blob store."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RESOURCE_SUFFIX_RE = re.compile(r"/posters/video_info/.+$")
UPLOAD_PATH = "/posters/poster.php"


def with_token(url: str, token: str | None) -> str:
    """Append ``token`` as a query parameter unless the URL already has one."""

    if not token:
        return url
    parsed = httpx.URL(url)
    if "token" in parsed.params:
        return url
    return str(parsed.copy_add_param("token", token))


def upload_endpoint(url: str) -> str:
    """Return the generic multipart upload endpoint serving ``url``."""

    parsed = httpx.URL(url)
    path = parsed.path
    if RESOURCE_SUFFIX_RE.search(path):
        base_path = RESOURCE_SUFFIX_RE.sub("", path)
    else:
        base_path = path.rsplit("/", 1)[0]
    return str(parsed.copy_with(path=f"{base_path.rstrip('/')}{UPLOAD_PATH}"))


def _filename(url: str, default: str = "home-merged.json") -> str:
    name = httpx.URL(url).path.rsplit("/", 1)[-1]
    return name or default


class RemoteJsonStore:
    """GET/PUT JSON blobs addressed by URL; failures never propagate."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._client = http_client
        self._pending: set[asyncio.Task[bool]] = set()

    async def fetch_json(self, url: str) -> Any | None:
        try:
            response = await self._client.get(
                url, headers={"Cache-Control": "no-store"}
            )
        except httpx.HTTPError as exc:
            logger.info("Remote cache read failed for %s: %s", url, exc)
            return None
        if response.status_code != 200:
            logger.debug(
                "Remote cache miss for %s (status %s)", url, response.status_code
            )
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Remote cache returned non-JSON content for %s", url)
            return None

    async def upload_json(self, url: str, data: Any) -> bool:
        """Store ``data`` at ``url``, falling back to the multipart endpoint."""

        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        try:
            response = await self._client.put(
                url, content=body, headers={"Content-Type": "application/json"}
            )
            if response.is_success:
                return True
            logger.info(
                "Remote cache PUT to %s returned %s, trying upload endpoint",
                url,
                response.status_code,
            )
        except httpx.HTTPError as exc:
            logger.info(
                "Remote cache PUT to %s failed (%s), trying upload endpoint",
                url,
                exc.__class__.__name__,
            )

        endpoint = upload_endpoint(url)
        files = {"fileToUpload": (_filename(url), body, "application/json")}
        try:
            response = await self._client.post(endpoint, files=files)
        except httpx.HTTPError as exc:
            logger.warning("Remote cache upload to %s failed: %s", endpoint, exc)
            return False
        if not response.is_success:
            logger.warning(
                "Remote cache upload to %s returned %s", endpoint, response.status_code
            )
            return False
        return True

    def schedule_upload(self, url: str, data: Any) -> asyncio.Task[bool]:
        """Upload in the background; the caller never awaits the result."""

        task = asyncio.create_task(self.upload_json(url, data))
        self._pending.add(task)
        task.add_done_callback(self._upload_finished)
        return task

    def _upload_finished(self, task: asyncio.Task[bool]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background cache upload crashed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for outstanding background uploads."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
