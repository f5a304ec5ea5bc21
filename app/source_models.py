"""Typed views of the raw records each upstream catalog returns."""

from __future__ import annotations

import logging
from typing import Any, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _SourceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DoubanItem(_SourceRecord):
    """A subject from a Douban list (home lists and tag lists)."""

    source: Literal["douban"] = "douban"
    id: str
    title: str
    poster: str | None = None
    rate: str = ""
    year: str = ""
    subtitle: str = Field(
        default="", validation_alias=AliasChoices("subtitle", "card_subtitle")
    )
    region: str | None = None

    @field_validator("id", "rate", "year", "subtitle", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value


class TmdbItem(_SourceRecord):
    """A movie or TV entry from the TMDB list endpoint."""

    source: Literal["tmdb"] = "tmdb"
    tmdb_id: str = Field(alias="tmdbId")
    title: str
    original_title: str | None = Field(default=None, alias="originalTitle")
    year: str | None = None
    poster: str | None = None
    media_type: str | None = Field(default=None, alias="mediaType")
    original_language: str | None = Field(default=None, alias="originalLanguage")
    origin_country: list[str] | None = Field(default=None, alias="originCountry")
    imdb_id: str | None = Field(default=None, alias="imdbId")
    douban_id: str | None = Field(default=None, alias="doubanId")
    cast: list[str] | None = None

    @field_validator("tmdb_id", "year", "douban_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class TmdbPerson(_SourceRecord):
    """A person entry from the TMDB list endpoint."""

    source: Literal["tmdb-person"] = "tmdb-person"
    tmdb_id: str = Field(alias="tmdbId")
    title: str
    poster: str | None = None


class BangumiImages(_SourceRecord):
    large: str | None = None
    common: str | None = None
    medium: str | None = None
    small: str | None = None
    grid: str | None = None

    def best(self) -> str | None:
        return self.large or self.common or self.medium or self.small or self.grid


class BangumiRating(_SourceRecord):
    score: float | None = None


class BangumiSubject(_SourceRecord):
    """An anime subject from the Bangumi broadcast calendar."""

    source: Literal["bangumi"] = "bangumi"
    id: int
    name: str | None = None
    name_cn: str | None = None
    images: BangumiImages | None = None
    rating: BangumiRating | None = None
    air_date: str | None = None


class BangumiWeekday(_SourceRecord):
    en: str = ""
    cn: str = ""
    ja: str = ""
    id: int | None = None


class BangumiDay(_SourceRecord):
    """One weekday of the Bangumi calendar."""

    weekday: BangumiWeekday = Field(default_factory=BangumiWeekday)
    items: list[BangumiSubject] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _drop_invalid_items(cls, value: object) -> object:
        return parse_records(value, BangumiSubject)


class DoubanHomeFeed(_SourceRecord):
    """Envelope returned by the Douban home feed endpoint."""

    movies: list[DoubanItem] = Field(default_factory=list)
    tv: list[DoubanItem] = Field(default_factory=list)
    variety: list[DoubanItem] = Field(default_factory=list)
    latest_movies: list[DoubanItem] = Field(default_factory=list, alias="latestMovies")
    latest_tv: list[DoubanItem] = Field(default_factory=list, alias="latestTv")

    @field_validator("*", mode="before")
    @classmethod
    def _drop_invalid_items(cls, value: object) -> object:
        return parse_records(value, DoubanItem)


class TmdbHomeFeed(_SourceRecord):
    """Envelope returned by the TMDB list endpoint."""

    movies: list[TmdbItem] = Field(default_factory=list)
    tv: list[TmdbItem] = Field(default_factory=list)
    kr_tv: list[TmdbItem] = Field(default_factory=list, alias="krTv")
    jp_tv: list[TmdbItem] = Field(default_factory=list, alias="jpTv")
    people: list[TmdbPerson] = Field(default_factory=list)
    now_playing: list[TmdbItem] = Field(default_factory=list, alias="nowPlaying")
    on_air: list[TmdbItem] = Field(default_factory=list, alias="onAir")

    @field_validator("people", mode="before")
    @classmethod
    def _drop_invalid_people(cls, value: object) -> object:
        return parse_records(value, TmdbPerson)

    @field_validator(
        "movies", "tv", "kr_tv", "jp_tv", "now_playing", "on_air", mode="before"
    )
    @classmethod
    def _drop_invalid_items(cls, value: object) -> object:
        return parse_records(value, TmdbItem)


def parse_records(raw: Any, model: type[ModelT]) -> list[ModelT]:
    """Validate each entry of ``raw`` individually, skipping invalid ones."""

    if not isinstance(raw, list):
        return []
    records: list[ModelT] = []
    for entry in raw:
        if isinstance(entry, model):
            records.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        try:
            records.append(model.model_validate(entry))
        except ValidationError as exc:
            logger.debug("Skipping invalid %s record: %s", model.__name__, exc)
    return records
