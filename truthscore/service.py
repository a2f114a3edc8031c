"""
Leaderboard service.

Runs the pipeline Provider -> Normalize -> Classify -> Aggregate behind
the cache, and answers view queries with FilterSortEngine. Each stage
returns new immutable values.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from .aggregator import Aggregator, Leaderboard, TraderEntry
from .cache import LeaderboardCache, LeaderboardSnapshot
from .config import Settings, settings as default_settings
from .filters import FilterSortEngine, LeaderboardPage
from .models import LeaderboardQuery
from .providers import HttpStatsProvider, PlatformStatsProvider, fetch_all_venues, merge_results
from .scoring import ScoreNormalizer

logger = logging.getLogger(__name__)


class LeaderboardService:
    """
    Entry point for building and querying the cross-venue leaderboard.

    Args:
        provider: Stats provider (HTTP provider if not provided).
        venues: Venue ids to fetch (settings.venues if not provided).
        config: Settings instance (uses global if not provided).
        cache: LeaderboardCache (built from config if not provided).
    """

    def __init__(
        self,
        provider: Optional[PlatformStatsProvider] = None,
        venues: Optional[list[str]] = None,
        config: Optional[Settings] = None,
        cache: Optional[LeaderboardCache] = None
    ):
        self.config = config or default_settings
        self.provider = provider or HttpStatsProvider(self.config)
        self.venues = [v.lower() for v in (venues or self.config.venues)]
        self.cache = cache or LeaderboardCache(ttl_seconds=self.config.cache_ttl_seconds)
        self.normalizer = ScoreNormalizer(self.config)
        self.aggregator = Aggregator()
        self.engine = FilterSortEngine()

    async def build(self) -> Leaderboard:
        """Run one uncached aggregation pass over every venue."""
        results = await fetch_all_venues(
            self.provider,
            self.venues,
            timeout=self.config.venue_timeout_seconds,
        )
        fan_in = merge_results(results)

        built_at = datetime.now(timezone.utc)
        scores = self.normalizer.normalize_all(list(fan_in.records), now=built_at)

        return self.aggregator.aggregate(
            scores,
            venues=fan_in.venues,
            failed_venues=fan_in.failed_venues,
            built_at=built_at,
        )

    async def snapshot(self, force: bool = False) -> LeaderboardSnapshot:
        """Get the current cached pass, building or refreshing as needed."""
        return await self.cache.get_or_build(self.venues, self.build, force=force)

    async def leaderboard(self, force: bool = False) -> Leaderboard:
        """Get the current leaderboard, from cache when available."""
        return (await self.snapshot(force=force)).leaderboard

    async def refresh(self) -> Leaderboard:
        """Rebuild now and replace the cached snapshot."""
        return await self.leaderboard(force=True)

    async def query(self, query: LeaderboardQuery, refresh: bool = False) -> LeaderboardPage:
        """
        Answer a leaderboard view query.

        Args:
            query: Filters, sort key and page window.
            refresh: Force a rebuild before answering.
        """
        snapshot = await self.snapshot(force=refresh)
        page = self.engine.apply(snapshot.leaderboard, query)
        return replace(
            page,
            cache_age_seconds=self.cache.age(snapshot),
            refreshing=self.cache.is_refreshing(self.venues),
        )

    async def summary(self) -> dict:
        """Top-of-board summary of the global view, with cache status."""
        snapshot = await self.snapshot()
        summary = snapshot.leaderboard.summary()
        summary["cache_age_seconds"] = round(self.cache.age(snapshot), 1)
        summary["refreshing"] = self.cache.is_refreshing(self.venues)
        return summary

    async def trader(self, address: str) -> Optional[TraderEntry]:
        """Get one trader's global entry, if present."""
        return (await self.leaderboard()).get(address)

    async def close(self) -> None:
        """Stop background refreshes and close the underlying provider."""
        self.cache.cancel_refreshes()
        await self.provider.close()
