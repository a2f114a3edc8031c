"""
Score normalization for venue statistics.

Turns one trader's raw statistics on one venue into a comparable
composite score on the 0-1300 scale:

- Win-rate confidence (60%): Wilson score lower bound of the win rate
- Volume (25%): log-scaled against a venue reference volume, saturating at 1
- Consistency (15%): sample-size activity curve blended with recency of
  the last trade

The Wilson lower bound penalizes small samples, so a 3-for-3 record
(~44%) cannot outrank a proven 650-for-1000 record (~62%).
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .config import Settings, settings as default_settings
from .models import VenueStatRecord
from .tiers import Tier

logger = logging.getLogger(__name__)


MAX_SCORE = 1300.0


def wilson_lower_bound(wins: int, total: int, z: float = 1.96) -> float:
    """
    Lower bound of the Wilson score interval for a win rate.

    Args:
        wins: Number of wins.
        total: Resolved bets (wins + losses).
        z: Z-score for the confidence level (1.96 for 95%).

    Returns:
        Lower bound in [0, 1]; 0 when there is no sample.
    """
    if total <= 0 or wins < 0 or wins > total:
        return 0.0

    p = wins / total
    denominator = 1 + z**2 / total
    center = p + z**2 / (2 * total)
    spread = z * math.sqrt(p * (1 - p) / total + z**2 / (4 * total**2))

    return max(0.0, (center - spread) / denominator)


def wilson_upper_bound(wins: int, total: int, z: float = 1.96) -> float:
    """Upper bound of the Wilson score interval, clamped to [0, 1]."""
    if total <= 0 or wins < 0 or wins > total:
        return 0.0

    p = wins / total
    denominator = 1 + z**2 / total
    center = p + z**2 / (2 * total)
    spread = z * math.sqrt(p * (1 - p) / total + z**2 / (4 * total**2))

    return min(1.0, (center + spread) / denominator)


@dataclass(frozen=True)
class NormalizedScore:
    """Scored view of one VenueStatRecord."""
    record: VenueStatRecord
    win_rate_lower_bound: float
    win_rate_upper_bound: float
    volume_component: float
    consistency_component: float
    composite_score: float
    tier: Tier
    eligible: bool = True
    reason: Optional[str] = None
    days_since_last_trade: Optional[int] = None

    @property
    def venue(self) -> str:
        return self.record.venue

    @property
    def address(self) -> str:
        return self.record.address

    @property
    def key(self) -> str:
        return self.record.key

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "venue": self.venue,
            "address": self.address,
            "win_rate_lower_bound": round(self.win_rate_lower_bound, 4),
            "win_rate_upper_bound": round(self.win_rate_upper_bound, 4),
            "volume_component": round(self.volume_component, 4),
            "consistency_component": round(self.consistency_component, 4),
            "composite_score": self.composite_score,
            "tier": self.tier.value,
            "eligible": self.eligible,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    """Human-readable explanation of a score."""
    skill: str
    confidence: str
    recency: str
    explanation: str


class ScoreNormalizer:
    """
    Converts raw venue statistics into NormalizedScore values.

    Pure and deterministic for a fixed `now`; the component curves are
    tunable through Settings.
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the normalizer.

        Args:
            config: Settings instance (uses global if not provided).
        """
        self.config = config or default_settings
        self.z = self.config.wilson_z

        total_weight = (
            self.config.weight_win_rate
            + self.config.weight_volume
            + self.config.weight_consistency
        )
        if not math.isclose(total_weight, 1.0, abs_tol=1e-9):
            raise ValueError(f"Score weights must sum to 1.0, got {total_weight}")

    def volume_component(self, volume: float, venue: str) -> float:
        """Log-scaled volume against the venue reference, in [0, 1]."""
        if volume <= 0:
            return 0.0
        reference = self.config.reference_volume(venue)
        if reference <= 0:
            return 1.0
        return min(1.0, math.log1p(volume) / math.log1p(reference))

    def activity_factor(self, resolved_bets: int) -> float:
        """Diminishing credit for sample size: 1 - e^(-n/scale)."""
        if resolved_bets <= 0:
            return 0.0
        return 1.0 - math.exp(-resolved_bets / self.config.activity_scale)

    def recency_factor(self, days_since: int) -> float:
        """
        Full credit within the grace period, linear decay to zero after.

        Args:
            days_since: Whole days since the last trade.
        """
        full = self.config.recency_full_days
        decay = self.config.recency_decay_days
        if days_since <= full:
            return 1.0
        if days_since >= decay:
            return 0.0
        return 1.0 - (days_since - full) / (decay - full)

    def consistency_component(
        self,
        resolved_bets: int,
        days_since: Optional[int]
    ) -> float:
        """Blend activity and recency; activity alone when recency is unknown."""
        activity = self.activity_factor(resolved_bets)
        if days_since is None:
            return activity
        return (activity + self.recency_factor(days_since)) / 2

    def normalize(
        self,
        record: VenueStatRecord,
        now: Optional[datetime] = None
    ) -> NormalizedScore:
        """
        Score a single venue record.

        Args:
            record: Raw venue statistics.
            now: Reference time for recency (defaults to current UTC time).

        Returns:
            NormalizedScore with components, composite score and tier.
        """
        resolved = record.resolved_bets

        days_since = None
        if record.last_trade_at is not None:
            now = now or datetime.now(timezone.utc)
            days_since = max(0, (now - record.last_trade_at).days)

        if record.total_bets == 0:
            return NormalizedScore(
                record=record,
                win_rate_lower_bound=0.0,
                win_rate_upper_bound=0.0,
                volume_component=0.0,
                consistency_component=0.0,
                composite_score=0.0,
                tier=Tier.BRONZE,
                eligible=False,
                reason="No bets recorded",
                days_since_last_trade=days_since,
            )

        lower = wilson_lower_bound(record.wins, resolved, self.z)
        upper = wilson_upper_bound(record.wins, resolved, self.z)
        volume = self.volume_component(float(record.volume), record.venue)
        consistency = self.consistency_component(resolved, days_since)

        weighted = (
            self.config.weight_win_rate * lower
            + self.config.weight_volume * volume
            + self.config.weight_consistency * consistency
        )
        composite = round(min(MAX_SCORE, max(0.0, MAX_SCORE * weighted)), 2)

        eligible = resolved >= self.config.min_resolved_bets
        reason = None
        if not eligible:
            reason = f"Need {self.config.min_resolved_bets}+ resolved bets (have {resolved})"

        return NormalizedScore(
            record=record,
            win_rate_lower_bound=lower,
            win_rate_upper_bound=upper,
            volume_component=volume,
            consistency_component=consistency,
            composite_score=composite,
            tier=Tier.from_score(composite),
            eligible=eligible,
            reason=reason,
            days_since_last_trade=days_since,
        )

    def normalize_all(
        self,
        records: list[VenueStatRecord],
        now: Optional[datetime] = None
    ) -> list[NormalizedScore]:
        """Score a batch of records against one reference time."""
        now = now or datetime.now(timezone.utc)
        return [self.normalize(record, now=now) for record in records]


def describe_score(score: NormalizedScore) -> ScoreBreakdown:
    """Get a human-readable breakdown of a normalized score."""
    if score.record.total_bets == 0:
        return ScoreBreakdown(
            skill="Not rated",
            confidence="N/A",
            recency="N/A",
            explanation=score.reason or "Insufficient data",
        )

    proven = score.win_rate_lower_bound * 100
    if proven >= 65:
        skill_level = "Elite"
    elif proven >= 58:
        skill_level = "Excellent"
    elif proven >= 54:
        skill_level = "Strong"
    elif proven >= 50:
        skill_level = "Good"
    elif proven >= 40:
        skill_level = "Unproven"
    else:
        skill_level = "No proven edge"

    resolved = score.record.resolved_bets
    activity = score.consistency_component * 100
    if resolved >= 500:
        confidence_level = "Very high"
    elif resolved >= 200:
        confidence_level = "High"
    elif resolved >= 100:
        confidence_level = "Moderate"
    elif resolved >= 30:
        confidence_level = "Low"
    else:
        confidence_level = "Very low"

    if score.days_since_last_trade is None:
        recency = "Unknown (no last trade time)"
    elif score.days_since_last_trade <= 7:
        recency = f"Very active (last trade {score.days_since_last_trade} days ago)"
    elif score.days_since_last_trade < 30:
        recency = f"Active (last trade {score.days_since_last_trade} days ago)"
    elif score.days_since_last_trade < 90:
        recency = f"Cooling off (last trade {score.days_since_last_trade} days ago)"
    else:
        recency = f"Inactive (last trade {score.days_since_last_trade} days ago)"

    return ScoreBreakdown(
        skill=f"{skill_level} ({proven:.1f}% proven win rate)",
        confidence=f"{confidence_level} ({resolved} resolved bets)",
        recency=recency,
        explanation=(
            f"{skill_level} performer with {confidence_level.lower()} confidence, "
            f"consistency {activity:.0f}%. Tier {score.tier.label}."
        ),
    )
