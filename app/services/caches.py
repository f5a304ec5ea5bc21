"""In-process caches shared by the upstream clients for the process lifetime."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import EnrichmentCacheEntry


@dataclass(slots=True)
class NextAirEntry:
    """Cached next-episode air date; ``airdate`` is ``None`` for misses."""

    cached_at: int
    airdate: str | None = None


@dataclass
class ProcessCaches:
    """Maps constructed once per process and handed to the clients.

    Concurrent first writes may race; either writer's fresh value is valid.
    """

    enrichment: dict[str, EnrichmentCacheEntry] = field(default_factory=dict)
    next_air: dict[str, NextAirEntry] = field(default_factory=dict)
