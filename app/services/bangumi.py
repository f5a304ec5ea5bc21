"""Weekly anime broadcast calendar from Bangumi."""

from __future__ import annotations

import logging

import httpx

from ..config import Settings
from ..source_models import BangumiDay, parse_records

logger = logging.getLogger(__name__)


class BangumiClient:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = http_client

    async def calendar(self) -> list[BangumiDay]:
        """Return the calendar, or an empty list when it cannot be fetched."""

        url = f"{str(self._settings.bangumi_api_url).rstrip('/')}/calendar"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            logger.info("Bangumi calendar unavailable: %s", exc)
            return []
        if response.status_code != 200:
            logger.info("Bangumi calendar returned %s", response.status_code)
            return []
        try:
            data = response.json()
        except ValueError:
            return []
        return parse_records(data, BangumiDay)
