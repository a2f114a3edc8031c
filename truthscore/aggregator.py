"""
Cross-venue aggregation.

Merges per-venue scores for the same wallet into one TraderEntry,
takes the best venue score as the headline (global) score, and ranks
the result. Entries are frozen value objects; every aggregation pass
builds a fresh, fully-ordered Leaderboard.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from .models import VenueStatRecord
from .ranking import rank_entries
from .scoring import NormalizedScore, ScoreBreakdown, describe_score
from .tiers import Tier
from .utils import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformBreakdown:
    """One venue's contribution to a trader entry."""
    venue: str
    stats: VenueStatRecord
    composite_score: float
    tier: Tier
    win_rate_lower_bound: float
    description: Optional[ScoreBreakdown] = None

    @classmethod
    def from_score(cls, score: NormalizedScore) -> "PlatformBreakdown":
        return cls(
            venue=score.venue,
            stats=score.record,
            composite_score=score.composite_score,
            tier=score.tier,
            win_rate_lower_bound=score.win_rate_lower_bound,
            description=describe_score(score),
        )

    def to_dict(self) -> dict:
        return {
            "venue": self.venue,
            "total_bets": self.stats.total_bets,
            "wins": self.stats.wins,
            "losses": self.stats.losses,
            "pending": self.stats.pending,
            "win_rate": round(self.stats.raw_win_rate * 100, 2),
            "win_rate_lower_bound": round(self.win_rate_lower_bound * 100, 2),
            "volume": str(self.stats.volume),
            "pnl": self.stats.pnl,
            "score": self.composite_score,
            "tier": self.tier.value,
            "description": asdict(self.description) if self.description else None,
        }


@dataclass(frozen=True)
class TraderEntry:
    """
    A trader's standing in one leaderboard view.

    `score`, `tier`, `win_rate` and `total_predictions` describe the
    active view: the best venue in the global view, or a single venue's
    numbers in a venue view. `global_score` is always the best venue score.
    """
    address: str
    display_name: Optional[str]
    platforms: frozenset
    platform_breakdown: tuple
    global_score: float
    score: float
    tier: Tier
    win_rate: float
    total_predictions: int
    resolved_bets: int
    view: str = "all"
    rank: int = 0
    percentile_rank: float = 0.0

    def breakdown_for(self, venue: str) -> Optional[PlatformBreakdown]:
        """Get the breakdown for one venue, if the trader is active there."""
        for item in self.platform_breakdown:
            if item.venue == venue:
                return item
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "rank": self.rank,
            "address": self.address,
            "display_name": self.display_name,
            "score": self.score,
            "global_score": self.global_score,
            "tier": self.tier.value,
            "win_rate": round(self.win_rate * 100, 2),
            "total_predictions": self.total_predictions,
            "resolved_bets": self.resolved_bets,
            "percentile_rank": self.percentile_rank,
            "platforms": sorted(self.platforms),
            "platform_breakdown": [item.to_dict() for item in self.platform_breakdown],
            "view": self.view,
        }


@dataclass(frozen=True)
class Leaderboard:
    """Immutable result of one aggregation pass, ranked by global score."""
    entries: tuple = ()
    venues: tuple = ()
    failed_venues: tuple = ()
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def top_score(self) -> float:
        return self.entries[0].score if self.entries else 0.0

    def get(self, address: str) -> Optional[TraderEntry]:
        """Look up an entry by address, case-insensitively."""
        key = normalize_address(address)
        for entry in self.entries:
            if entry.address == key:
                return entry
        return None

    def summary(self) -> dict:
        """Top-of-board summary."""
        tier_counts = {tier.value: 0 for tier in Tier}
        for entry in self.entries:
            tier_counts[entry.tier.value] += 1
        return {
            "total_traders": len(self.entries),
            "top_score": self.top_score,
            "venues": list(self.venues),
            "venue_count": len(self.venues),
            "failed_venues": list(self.failed_venues),
            "tier_counts": tier_counts,
            "built_at": self.built_at.isoformat(),
        }


def _best_first(score: NormalizedScore) -> tuple:
    return (-score.composite_score, -score.record.resolved_bets, score.venue)


class Aggregator:
    """
    Merges per-venue scores into ranked cross-venue entries.

    Grouping is by lower-cased address. When a venue reports the same
    address twice, the better-scoring row is kept.
    """

    def merge(self, scores: Iterable[NormalizedScore]) -> list[TraderEntry]:
        """
        Group scores by address and build unranked entries.

        Args:
            scores: Normalized scores from every venue in the pass.

        Returns:
            One entry per distinct address, in no particular order.
        """
        grouped: dict[str, dict[str, NormalizedScore]] = defaultdict(dict)

        for score in scores:
            per_venue = grouped[score.key]
            existing = per_venue.get(score.venue)
            if existing is not None:
                logger.debug(f"Duplicate {score.venue} row for {score.key}, keeping best")
                if _best_first(existing) <= _best_first(score):
                    continue
            per_venue[score.venue] = score

        return [self._build_entry(key, per_venue) for key, per_venue in grouped.items()]

    def _build_entry(self, key: str, per_venue: dict[str, NormalizedScore]) -> TraderEntry:
        by_score = sorted(per_venue.values(), key=_best_first)
        best = by_score[0]

        display_name = next(
            (s.record.display_name for s in by_score if s.record.display_name),
            None,
        )

        wins = sum(s.record.wins for s in by_score)
        resolved = sum(s.record.resolved_bets for s in by_score)
        total_bets = sum(s.record.total_bets for s in by_score)

        breakdown = tuple(
            PlatformBreakdown.from_score(per_venue[venue]) for venue in sorted(per_venue)
        )

        return TraderEntry(
            address=key,
            display_name=display_name,
            platforms=frozenset(per_venue),
            platform_breakdown=breakdown,
            global_score=best.composite_score,
            score=best.composite_score,
            tier=Tier.from_score(best.composite_score),
            win_rate=wins / resolved if resolved else 0.0,
            total_predictions=total_bets,
            resolved_bets=resolved,
        )

    def aggregate(
        self,
        scores: Iterable[NormalizedScore],
        venues: Iterable[str] = (),
        failed_venues: Iterable[str] = (),
        built_at: Optional[datetime] = None
    ) -> Leaderboard:
        """
        Merge and rank scores into a Leaderboard.

        Args:
            scores: Normalized scores from the successful venues.
            venues: Venue ids that contributed to this pass.
            failed_venues: Venue ids that were dropped from this pass.
            built_at: Timestamp of the pass.

        Returns:
            Leaderboard ranked by global score with dense ranks.
        """
        entries = rank_entries(self.merge(scores), sort_by="score")
        return Leaderboard(
            entries=entries,
            venues=tuple(sorted(venues)),
            failed_venues=tuple(sorted(failed_venues)),
            built_at=built_at or datetime.now(timezone.utc),
        )


def total_volume(entry: TraderEntry) -> Decimal:
    """Sum of venue-native volumes; units differ across venues."""
    return sum((item.stats.volume for item in entry.platform_breakdown), Decimal("0"))
