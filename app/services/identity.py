"""Dedup key resolution for canonical title records."""

from __future__ import annotations

from ..models import CardItem
from ..utils import normalize_imdb_id, normalize_title


def primary_key(item: CardItem) -> str:
    if item.douban_id is not None and item.douban_id > 0:
        return f"primary:{item.douban_id}"
    return ""


def external_key(item: CardItem) -> str:
    imdb_id = normalize_imdb_id(item.imdb_id)
    return f"external:{imdb_id}" if imdb_id else ""


def title_key(item: CardItem) -> str:
    title = normalize_title(item.title)
    if not title:
        return ""
    return f"{title}__{item.year or ''}"


def card_key(item: CardItem) -> str:
    """Return the dedup key for ``item``.

    Douban ids win over IMDb ids, which win over the title/year fallback.
    The fallback can collide for remakes sharing a title and year.
    """

    return primary_key(item) or external_key(item) or title_key(item)


def card_keys(item: CardItem) -> list[str]:
    """Return every derivable key of ``item`` in precedence order."""

    return [
        key
        for key in (primary_key(item), external_key(item), title_key(item))
        if key
    ]


def conflicting_ids(left: CardItem, right: CardItem) -> bool:
    """True when both records carry different ids from the same catalog."""

    if left.douban_id and right.douban_id and left.douban_id != right.douban_id:
        return True
    left_imdb = normalize_imdb_id(left.imdb_id)
    right_imdb = normalize_imdb_id(right.imdb_id)
    if left_imdb and right_imdb and left_imdb != right_imdb:
        return True
    if left.tmdb_id and right.tmdb_id and left.tmdb_id != right.tmdb_id:
        return True
    return False
