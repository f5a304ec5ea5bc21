"""Builder for the "airing today / this week" rail."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from ..config import Settings
from ..models import AiringRail, CardItem
from ..source_models import BangumiDay
from ..utils import parse_air_date
from .bangumi import BangumiClient
from .identity import card_keys
from .mapper import map_bangumi_cards
from .tvmaze import TvmazeClient

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True, slots=True)
class AiringWindow:
    """Day-aligned bounds relative to a reference time."""

    start: datetime
    end: datetime
    today_start: datetime
    today_end: datetime

    @classmethod
    def around(cls, now: datetime) -> "AiringWindow":
        today = datetime(now.year, now.month, now.day)
        return cls(
            start=today - timedelta(days=3),
            end=today + timedelta(days=7),
            today_start=today,
            today_end=today + timedelta(days=1),
        )

    def contains(self, value: datetime | None) -> bool:
        return value is not None and self.start <= value <= self.end

    def is_today(self, value: datetime | None) -> bool:
        return value is not None and self.today_start <= value < self.today_end


def interleave(
    queues: Sequence[Sequence[CardItem]], limit: int
) -> list[CardItem]:
    """Take one item per queue per round, skipping already seen titles."""

    seen: set[str] = set()
    combined: list[CardItem] = []
    depth = max((len(queue) for queue in queues), default=0)
    for cursor in range(depth):
        for queue in queues:
            if cursor >= len(queue):
                continue
            item = queue[cursor]
            keys = card_keys(item)
            if not keys or seen.intersection(keys):
                continue
            seen.update(keys)
            combined.append(item)
            if len(combined) >= limit:
                return combined
    return combined


class AiringRailBuilder:
    """Combines latest TV, on-air shows and the anime calendar into one rail."""

    def __init__(
        self,
        settings: Settings,
        tvmaze_client: TvmazeClient,
        bangumi_client: BangumiClient,
    ) -> None:
        self._settings = settings
        self._tvmaze = tvmaze_client
        self._bangumi = bangumi_client

    async def _resolve_airdates(self, candidates: Sequence[CardItem]) -> list[datetime | None]:
        results = await asyncio.gather(
            *(
                self._tvmaze.next_airdate(imdb_id=item.imdb_id, tmdb_id=item.tmdb_id)
                for item in candidates
            ),
            return_exceptions=True,
        )
        airdates: list[datetime | None] = []
        for item, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.warning("Next air date lookup failed for %s: %s", item.title, result)
                airdates.append(None)
                continue
            airdates.append(parse_air_date(result))
        return airdates

    @staticmethod
    def _anime_queue(calendar: Sequence[BangumiDay], now: datetime) -> tuple[list[CardItem], bool]:
        today_name = WEEKDAY_NAMES[now.weekday()]
        # Bangumi reports "Mon"; the full name is accepted as well.
        accepted = {today_name, today_name[:3]}
        today_items = next(
            (
                day.items
                for day in calendar
                if day.weekday.en.strip().lower() in accepted
            ),
            [],
        )
        today_cards = map_bangumi_cards(today_items)
        if today_cards:
            return today_cards, True
        week_cards = map_bangumi_cards(
            subject for day in calendar for subject in day.items
        )
        return week_cards, False

    async def build(
        self,
        latest: Sequence[CardItem],
        on_air: Sequence[CardItem],
        *,
        now: datetime | None = None,
    ) -> AiringRail:
        current = now or datetime.now()
        window = AiringWindow.around(current)
        limit = self._settings.airing_candidate_limit

        latest_candidates = list(latest[:limit])
        on_air_candidates = list(on_air[:limit])

        airdates, calendar = await asyncio.gather(
            self._resolve_airdates(on_air_candidates),
            self._bangumi.calendar(),
        )

        in_window = [
            item
            for item, airdate in zip(on_air_candidates, airdates)
            if window.contains(airdate)
        ]
        has_tv_today = any(window.is_today(airdate) for airdate in airdates)
        anime_cards, has_anime_today = self._anime_queue(calendar, current)

        items = interleave(
            [latest_candidates, in_window or on_air_candidates, anime_cards],
            self._settings.airing_rail_size,
        )
        return AiringRail(
            title_key="today" if has_tv_today or has_anime_today else "week",
            items=items,
            cached_at=int(current.timestamp() * 1000),
        )
