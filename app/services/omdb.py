"""Ratings enrichment backed by the OMDb API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import (
    RECOGNISED_OUTLETS,
    CardItem,
    CardSources,
    EnrichmentCacheEntry,
    OutletRating,
    RatingContribution,
)
from ..utils import normalize_imdb_id, now_ms
from .cache_store import RemoteJsonStore, with_token
from .caches import ProcessCaches

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == NOT_AVAILABLE:
        return None
    return text


def build_contribution(data: dict[str, Any]) -> RatingContribution:
    """Normalise an OMDb title response into a rating contribution."""

    ratings: list[OutletRating] = []
    raw_ratings = data.get("Ratings")
    if isinstance(raw_ratings, list):
        for entry in raw_ratings:
            if not isinstance(entry, dict):
                continue
            source = _clean(entry.get("Source"))
            value = _clean(entry.get("Value"))
            if source in RECOGNISED_OUTLETS and value:
                ratings.append(OutletRating(source=source, value=value))

    return RatingContribution(
        imdb_rating=_clean(data.get("imdbRating")),
        imdb_votes=_clean(data.get("imdbVotes")),
        metascore=_clean(data.get("Metascore")),
        ratings=ratings,
        runtime=_clean(data.get("Runtime")),
        awards=_clean(data.get("Awards")),
        plot=_clean(data.get("Plot")),
        rated=_clean(data.get("Rated")),
    )


class OmdbClient:
    """Cache-then-network OMDb lookups keyed by IMDb id."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        store: RemoteJsonStore,
        caches: ProcessCaches,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._store = store
        self._caches = caches

    def _cache_url(self, imdb_id: str) -> str | None:
        if not self._settings.home_cache_enabled:
            return None
        url = self._settings.cache_url_for(f"omdb-{imdb_id}.json")
        if not url:
            return None
        return with_token(url, self._settings.home_cache_token)

    async def _load_remote(self, url: str) -> EnrichmentCacheEntry | None:
        raw = await self._store.fetch_json(url)
        if not isinstance(raw, dict):
            return None
        try:
            return EnrichmentCacheEntry.model_validate(raw)
        except ValidationError:
            logger.debug("Ignoring malformed OMDb cache entry at %s", url)
            return None

    async def fetch(self, imdb_id: str) -> RatingContribution | None:
        """Return the contribution for ``imdb_id`` from cache or OMDb."""

        normalized = normalize_imdb_id(imdb_id)
        if not normalized:
            return None
        ttl = self._settings.omdb_cache_ttl_seconds

        stale = self._caches.enrichment.get(normalized)
        if stale is not None and stale.is_fresh(now_ms(), ttl):
            return stale.data

        cache_url = self._cache_url(normalized)
        if cache_url:
            remote = await self._load_remote(cache_url)
            if remote is not None:
                if remote.is_fresh(now_ms(), ttl):
                    self._caches.enrichment[normalized] = remote
                    return remote.data
                if stale is None or remote.cached_at > stale.cached_at:
                    stale = remote

        fallback = stale.data if stale is not None else None
        api_key = self._settings.omdb_api_key
        if not api_key:
            logger.debug("OMDB_API_KEY not configured, serving cached data for %s", normalized)
            return fallback

        try:
            response = await self._client.get(
                str(self._settings.omdb_api_url),
                params={"i": normalized, "apikey": api_key, "plot": "short"},
            )
        except httpx.HTTPError as exc:
            logger.warning("OMDb lookup failed for %s: %s", normalized, exc)
            return fallback
        if response.status_code != 200:
            logger.warning("OMDb lookup for %s returned %s", normalized, response.status_code)
            return fallback
        try:
            data = response.json()
        except ValueError:
            logger.warning("OMDb returned non-JSON content for %s", normalized)
            return fallback
        if not isinstance(data, dict):
            return fallback

        contribution: RatingContribution | None = None
        if str(data.get("Response", "True")).lower() == "false":
            logger.info("OMDb has no record for %s: %s", normalized, data.get("Error"))
        else:
            contribution = build_contribution(data)

        entry = EnrichmentCacheEntry(cached_at=now_ms(), data=contribution)
        self._caches.enrichment[normalized] = entry
        if cache_url:
            self._store.schedule_upload(
                cache_url, entry.model_dump(mode="json", by_alias=True)
            )
        return contribution


class RatingsEnricher:
    """Attaches OMDb contributions to the first few distinct IMDb ids."""

    def __init__(self, settings: Settings, omdb_client: OmdbClient) -> None:
        self._settings = settings
        self._omdb = omdb_client

    @staticmethod
    def collect_ids(cards: Sequence[CardItem], limit: int) -> list[str]:
        ids: list[str] = []
        for card in cards:
            if len(ids) >= limit:
                break
            imdb_id = normalize_imdb_id(card.imdb_id)
            if imdb_id and imdb_id not in ids:
                ids.append(imdb_id)
        return ids

    async def enrich(
        self, cards: Sequence[CardItem], *, limit: int | None = None
    ) -> list[CardItem]:
        cap = self._settings.omdb_enrich_limit if limit is None else limit
        ids = self.collect_ids(cards, cap)
        if not ids:
            return list(cards)

        results = await asyncio.gather(
            *(self._omdb.fetch(imdb_id) for imdb_id in ids), return_exceptions=True
        )
        contributions: dict[str, RatingContribution] = {}
        for imdb_id, result in zip(ids, results):
            if isinstance(result, Exception):
                logger.warning("OMDb enrichment failed for %s: %s", imdb_id, result)
                continue
            if result is not None:
                contributions[imdb_id] = result

        enriched: list[CardItem] = []
        for card in cards:
            contribution = contributions.get(normalize_imdb_id(card.imdb_id) or "")
            if contribution is None:
                enriched.append(card)
                continue
            sources = (card.sources or CardSources()).model_copy(
                update={"omdb": contribution}
            )
            enriched.append(card.model_copy(update={"sources": sources}))
        return enriched
