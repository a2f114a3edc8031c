"""
Filtering, sorting and pagination of leaderboard views.

A platform filter is a mode switch: entries lacking the venue are
dropped and the rest show that venue's own score and tier instead of
the global best. Text and tier filters follow, then the visible set is
re-sorted and densely re-ranked before a page is cut.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .aggregator import Leaderboard, TraderEntry
from .config import VENUE_DISPLAY_NAMES
from .models import LeaderboardQuery
from .ranking import rank_entries
from .tiers import Tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardPage:
    """
    One page of a filtered, re-ranked leaderboard view.

    `total` counts the visible set after every filter. `scope_total` and
    `top_score` both describe the platform scope before search and tier
    filters.
    """
    entries: tuple
    total: int
    scope_total: int
    top_score: float
    offset: int
    limit: int
    query: LeaderboardQuery
    last_update: Optional[datetime] = None
    cache_age_seconds: float = 0.0
    refreshing: bool = False

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.entries) < self.total

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "data": [entry.to_dict() for entry in self.entries],
            "total": self.total,
            "offset": self.offset,
            "limit": self.limit,
            "has_more": self.has_more,
            "summary": {
                "top_score": self.top_score,
                "total_traders": self.scope_total,
            },
            "filters": {
                "platform": self.query.platform,
                "tier": self.query.tier,
                "search": self.query.search,
                "sortBy": self.query.sort_by,
            },
            "cache": {
                "last_update": self.last_update.isoformat() if self.last_update else None,
                "age_seconds": round(self.cache_age_seconds, 1),
                "refreshing": self.refreshing,
            },
        }


def resolve_venue(platform: str, venues: tuple) -> Optional[str]:
    """
    Map a platform filter value to a venue id.

    Accepts a venue id or its display name, case-insensitively.
    """
    wanted = platform.strip().lower()
    for venue in venues:
        if wanted == venue:
            return venue
        if wanted == VENUE_DISPLAY_NAMES.get(venue, "").lower():
            return venue
    return None


def venue_view(entry: TraderEntry, venue: str) -> Optional[TraderEntry]:
    """
    Re-express an entry with a single venue's numbers.

    Returns None when the trader is not active on the venue. The global
    entry is not modified.
    """
    breakdown = entry.breakdown_for(venue)
    if breakdown is None:
        return None
    stats = breakdown.stats
    return replace(
        entry,
        score=breakdown.composite_score,
        tier=Tier.from_score(breakdown.composite_score),
        win_rate=stats.raw_win_rate,
        total_predictions=stats.total_bets,
        resolved_bets=stats.resolved_bets,
        view=venue,
    )


def matches_search(entry: TraderEntry, search: str) -> bool:
    """Case-insensitive substring match on address or display name."""
    if not search:
        return True
    needle = search.lower()
    if needle in entry.address.lower():
        return True
    return bool(entry.display_name) and needle in entry.display_name.lower()


class FilterSortEngine:
    """Builds view-specific pages from a global Leaderboard."""

    def apply(self, leaderboard: Leaderboard, query: LeaderboardQuery) -> LeaderboardPage:
        """
        Filter, re-sort, re-rank and paginate.

        Args:
            leaderboard: Global leaderboard from the Aggregator.
            query: Filters, sort key and page window.

        Returns:
            LeaderboardPage whose ranks are relative to the visible set.
        """
        entries = list(leaderboard.entries)

        # 1. Platform: drop absent traders and switch to venue numbers
        if not query.is_global:
            all_venues = tuple(sorted({v for e in entries for v in e.platforms} | set(leaderboard.venues)))
            venue = resolve_venue(query.platform, all_venues)
            if venue is None:
                logger.debug(f"Unknown platform filter {query.platform!r}")
                entries = []
            else:
                entries = [
                    viewed for viewed in (venue_view(e, venue) for e in entries)
                    if viewed is not None
                ]
        scope_total = len(entries)
        top_score = max((e.score for e in entries), default=0.0)

        # 2. Free text
        entries = [e for e in entries if matches_search(e, query.search)]

        # 3. Tier, against whichever score is active
        if query.tier != "all":
            tier = Tier.parse(query.tier)
            if tier is None:
                logger.debug(f"Unknown tier filter {query.tier!r}")
                entries = []
            else:
                entries = [e for e in entries if e.tier is tier]

        # 4-5. Sort and dense re-rank over the visible set
        ranked = rank_entries(entries, sort_by=query.sort_by)

        # 6. Page window over contiguous ranks
        page = ranked[query.offset:query.offset + query.limit]

        return LeaderboardPage(
            entries=page,
            total=len(ranked),
            scope_total=scope_total,
            top_score=top_score,
            offset=query.offset,
            limit=query.limit,
            query=query,
            last_update=leaderboard.built_at,
        )
