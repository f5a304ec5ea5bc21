"""Pydantic models describing the merged home feed payload."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CardType = Literal["movie", "tv", "show", "person"]
RailTitleKey = Literal["today", "week"]

RECOGNISED_OUTLETS: tuple[str, ...] = (
    "Internet Movie Database",
    "Rotten Tomatoes",
    "Metacritic",
)


class OutletRating(BaseModel):
    """A single outlet score as reported by OMDb."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="Source")
    value: str = Field(alias="Value")


class RatingContribution(BaseModel):
    """Ratings and plot details attached to a card by the OMDb enrichment."""

    model_config = ConfigDict(populate_by_name=True)

    imdb_rating: str | None = Field(default=None, alias="imdbRating")
    imdb_votes: str | None = Field(default=None, alias="imdbVotes")
    metascore: str | None = None
    ratings: list[OutletRating] = Field(default_factory=list)
    runtime: str | None = None
    awards: str | None = None
    plot: str | None = None
    rated: str | None = None


class CardSources(BaseModel):
    """Per-source contributions nested under a card."""

    omdb: RatingContribution | None = None


class CardItem(BaseModel):
    """Canonical title record shared by every rail of the home feed.

    Fields left unset by a source stay ``None`` so the merge step can tell
    "no data" apart from an explicit empty string.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str
    title_en: str | None = None
    year: str | None = None
    douban_id: int | None = None
    imdb_id: str | None = None
    tmdb_id: str | None = None
    bangumi_id: int | None = None

    poster: str | None = None
    poster_alt: list[str] | None = Field(default=None, alias="posterAlt")
    poster_douban: str | None = Field(default=None, alias="posterDouban")
    poster_tmdb: str | None = Field(default=None, alias="posterTmdb")

    rate: str | None = None
    type: CardType | None = None
    original_language: str | None = Field(default=None, alias="originalLanguage")
    origin_country: list[str] | None = Field(default=None, alias="originCountry")
    cast: list[str] | None = None
    query: str | None = None

    source_name: str | None = None
    douban_url: str | None = Field(default=None, alias="doubanUrl")
    tmdb_url: str | None = Field(default=None, alias="tmdbUrl")

    sources: CardSources | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON shape served to clients."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AiringRail(BaseModel):
    """The "currently airing" promotional row."""

    model_config = ConfigDict(populate_by_name=True)

    title_key: RailTitleKey = Field(alias="titleKey")
    items: list[CardItem] = Field(default_factory=list)
    cached_at: int = Field(alias="cachedAt")


class EnrichmentCacheEntry(BaseModel):
    """Cached OMDb lookup result; ``data`` is ``None`` for known misses."""

    model_config = ConfigDict(populate_by_name=True)

    cached_at: int = Field(alias="cachedAt")
    data: RatingContribution | None = None

    def is_fresh(self, now_ms: int, ttl_seconds: int) -> bool:
        return now_ms - self.cached_at < ttl_seconds * 1000


class HomePayload(BaseModel):
    """Complete merged home feed, cached remotely as a single blob."""

    model_config = ConfigDict(populate_by_name=True)

    movies: list[CardItem] = Field(default_factory=list)
    tv_cn: list[CardItem] = Field(default_factory=list, alias="tvCn")
    tv_kr: list[CardItem] = Field(default_factory=list, alias="tvKr")
    tv_jp: list[CardItem] = Field(default_factory=list, alias="tvJp")
    tv_us: list[CardItem] = Field(default_factory=list, alias="tvUs")
    variety: list[CardItem] = Field(default_factory=list)
    latest_movies: list[CardItem] = Field(default_factory=list, alias="latestMovies")
    latest_tv: list[CardItem] = Field(default_factory=list, alias="latestTv")
    tmdb_movies: list[CardItem] = Field(default_factory=list, alias="tmdbMovies")
    tmdb_tv: list[CardItem] = Field(default_factory=list, alias="tmdbTv")
    tmdb_kr: list[CardItem] = Field(default_factory=list, alias="tmdbKr")
    tmdb_jp: list[CardItem] = Field(default_factory=list, alias="tmdbJp")
    tmdb_people: list[CardItem] = Field(default_factory=list, alias="tmdbPeople")
    tmdb_now_playing: list[CardItem] = Field(
        default_factory=list, alias="tmdbNowPlaying"
    )
    tmdb_on_air: list[CardItem] = Field(default_factory=list, alias="tmdbOnAir")
    airing_rail: AiringRail | None = Field(default=None, alias="airingRail")
    updated_at: int = Field(alias="updatedAt")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
