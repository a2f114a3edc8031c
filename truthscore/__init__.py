"""
TruthScore - cross-venue reputation scoring for prediction market traders.

Collects per-venue trader statistics, normalizes them into one
Wilson-bounded composite score, merges identities across venues and
serves filterable, re-rankable leaderboards.
"""

__version__ = "0.1.0"

from .aggregator import Aggregator, Leaderboard, PlatformBreakdown, TraderEntry
from .cache import LeaderboardCache
from .filters import FilterSortEngine, LeaderboardPage
from .models import LeaderboardQuery, SimulatedTradeSummary, VenueStatRecord
from .scoring import NormalizedScore, ScoreNormalizer, wilson_lower_bound
from .service import LeaderboardService
from .tiers import Tier

__all__ = [
    "Aggregator",
    "FilterSortEngine",
    "Leaderboard",
    "LeaderboardCache",
    "LeaderboardPage",
    "LeaderboardQuery",
    "LeaderboardService",
    "NormalizedScore",
    "PlatformBreakdown",
    "ScoreNormalizer",
    "SimulatedTradeSummary",
    "Tier",
    "TraderEntry",
    "VenueStatRecord",
    "wilson_lower_bound",
]
