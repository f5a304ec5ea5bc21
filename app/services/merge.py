"""Folding of cards that describe the same title into canonical records."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..models import CardItem
from ..utils import unique
from .identity import card_key, card_keys, conflicting_ids

logger = logging.getLogger(__name__)

# Fields where the first non-empty value seen is kept.
FIRST_WINS_FIELDS: tuple[str, ...] = (
    "rate",
    "year",
    "query",
    "source_name",
    "type",
    "douban_url",
    "tmdb_url",
    "title_en",
)
POSTER_FIELDS: frozenset[str] = frozenset(
    {"poster", "poster_alt", "poster_douban", "poster_tmdb"}
)


def _poster_union(*groups: Iterable[str | None]) -> list[str]:
    return unique(url for group in groups for url in group)


def _first_entry(item: CardItem) -> str | None:
    return item.poster_alt[0] if item.poster_alt else None


def _seed(item: CardItem) -> CardItem:
    alt = _poster_union(
        item.poster_alt or [],
        [item.poster, item.poster_douban, item.poster_tmdb],
    )
    return item.model_copy(update={"poster_alt": alt})


def _combine(existing: CardItem, incoming: CardItem) -> CardItem:
    merged_douban = existing.poster_douban or incoming.poster_douban
    merged_tmdb = existing.poster_tmdb or incoming.poster_tmdb
    poster = (
        existing.poster
        or incoming.poster
        or merged_douban
        or merged_tmdb
        or _first_entry(existing)
        or _first_entry(incoming)
    )
    alt = _poster_union(
        existing.poster_alt or [],
        incoming.poster_alt or [],
        [existing.poster, incoming.poster, merged_douban, merged_tmdb],
    )

    update: dict[str, Any] = {
        name: getattr(incoming, name)
        for name in incoming.model_fields_set
        if name not in POSTER_FIELDS
    }
    for name in FIRST_WINS_FIELDS:
        current = getattr(existing, name)
        if current:
            update[name] = current
        elif getattr(incoming, name):
            update[name] = getattr(incoming, name)
        else:
            update.pop(name, None)
    update.update(
        poster=poster,
        poster_alt=alt,
        poster_douban=merged_douban,
        poster_tmdb=merged_tmdb,
    )
    return existing.model_copy(update=update)


class CardMerger:
    """Accumulates cards, folding together those that resolve to one title.

    Each canonical record is indexed under its dedup key and under every
    other key it can derive. A card whose own key is unknown is folded into
    a record it reaches through another key, provided the two do not carry
    different ids from the same catalog.
    """

    def __init__(self) -> None:
        self._records: list[CardItem | None] = []
        self._index: dict[str, int] = {}

    def add(self, item: CardItem) -> None:
        key = card_key(item)
        if not key:
            logger.debug("Skipping card without a usable key: %r", item.title)
            return

        slot = self._index.get(key)
        if slot is None:
            for alias in card_keys(item):
                candidate = self._index.get(alias)
                if candidate is None:
                    continue
                if conflicting_ids(self._records[candidate], item):
                    continue
                slot = candidate
                break

        if slot is None:
            slot = len(self._records)
            self._records.append(_seed(item))
        else:
            self._records[slot] = _combine(self._records[slot], item)
            slot = self._absorb(slot)

        for alias in card_keys(self._records[slot]):
            self._index.setdefault(alias, slot)
        self._index.setdefault(key, slot)

    def _absorb(self, slot: int) -> int:
        """Fold records reachable through keys ``slot`` gained while merging.

        The earlier record absorbs the later one, as a second merge pass over
        the results would do. Returns the slot holding the combined record.
        """

        while True:
            record = self._records[slot]
            for alias in card_keys(record):
                other = self._index.get(alias)
                if other is None or other == slot:
                    continue
                first, second = sorted((slot, other))
                later = self._records[second]
                if alias != card_key(later) and conflicting_ids(
                    self._records[first], later
                ):
                    continue
                self._records[first] = _combine(self._records[first], later)
                self._records[second] = None
                for indexed, position in self._index.items():
                    if position == second:
                        self._index[indexed] = first
                slot = first
                break
            else:
                return slot

    def extend(self, items: Iterable[CardItem]) -> None:
        for item in items:
            self.add(item)

    def results(self) -> list[CardItem]:
        return [record for record in self._records if record is not None]


def merge_cards(base: Iterable[CardItem], extra: Iterable[CardItem]) -> list[CardItem]:
    """Merge ``extra`` into ``base`` keeping first-seen order.

    Protected fields (rating, year, type, source label, detail URLs) keep the
    first non-empty value; every other field the incoming source set
    overwrites the existing one. Posters follow a fallback chain and all seen
    URLs are kept in ``poster_alt``.
    """

    merger = CardMerger()
    merger.extend(base)
    merger.extend(extra)
    return merger.results()
