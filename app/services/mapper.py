"""Conversion of upstream source records into canonical cards."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from ..models import CardItem, CardType
from ..source_models import BangumiSubject, DoubanItem, TmdbItem, TmdbPerson
from ..utils import normalize_imdb_id, normalize_tmdb_id, parse_year

DOUBAN_SUBJECT_URL = "https://movie.douban.com/subject/{id}"
TMDB_TITLE_URL = "https://www.themoviedb.org/{media_type}/{id}"


def _card(**fields: Any) -> CardItem:
    # Only populated fields count as set, which the merge step relies on.
    return CardItem(**{name: value for name, value in fields.items() if value is not None})


def _one_decimal(score: float) -> str:
    return str(Decimal(str(score)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _positive_int(value: Any) -> int | None:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def map_douban_cards(
    items: Iterable[DoubanItem], card_type: CardType | None = None
) -> list[CardItem]:
    cards: list[CardItem] = []
    for item in items:
        poster = item.poster or None
        cards.append(
            _card(
                title=item.title,
                poster=poster,
                poster_alt=[poster] if poster else [],
                poster_douban=poster,
                douban_url=DOUBAN_SUBJECT_URL.format(id=item.id),
                rate=item.rate,
                year=item.year,
                douban_id=_positive_int(item.id),
                type=card_type,
                query=item.title,
                source_name="Douban",
            )
        )
    return cards


def map_tmdb_cards(items: Iterable[TmdbItem]) -> list[CardItem]:
    cards: list[CardItem] = []
    for item in items:
        tmdb_id = normalize_tmdb_id(item.tmdb_id)
        media_type = "tv" if item.media_type == "tv" else "movie"
        poster = item.poster or None
        cards.append(
            _card(
                title=item.title,
                title_en=item.original_title,
                poster=poster,
                poster_alt=[poster] if poster else [],
                poster_tmdb=poster,
                tmdb_url=(
                    TMDB_TITLE_URL.format(media_type=media_type, id=tmdb_id)
                    if tmdb_id
                    else None
                ),
                original_language=item.original_language,
                origin_country=item.origin_country,
                cast=item.cast or None,
                rate="",
                year=item.year,
                type=media_type,
                query=item.title,
                imdb_id=normalize_imdb_id(item.imdb_id),
                douban_id=_positive_int(item.douban_id) if item.douban_id else None,
                tmdb_id=tmdb_id,
                source_name="TMDB",
            )
        )
    return cards


def map_tmdb_people(items: Iterable[TmdbPerson]) -> list[CardItem]:
    return [
        _card(
            title=item.title,
            poster=item.poster or None,
            rate="",
            year="",
            type="person",
            query=item.title,
            tmdb_id=normalize_tmdb_id(item.tmdb_id),
            source_name="TMDB",
        )
        for item in items
    ]


def map_bangumi_cards(items: Iterable[BangumiSubject]) -> list[CardItem]:
    """Map Bangumi calendar subjects; the Chinese name is preferred."""

    cards: list[CardItem] = []
    for anime in items:
        title = anime.name_cn or anime.name
        if not title:
            continue
        poster = anime.images.best() if anime.images else None
        score = anime.rating.score if anime.rating else None
        cards.append(
            _card(
                title=title,
                poster=poster,
                poster_alt=[poster] if poster else [],
                rate=_one_decimal(score) if score else "",
                year=parse_year(anime.air_date) or "",
                bangumi_id=anime.id,
                type="tv",
                query=title,
                source_name="Bangumi",
            )
        )
    return cards
