"""
Tests for the score normalization module.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from truthscore.config import Settings
from truthscore.models import VenueStatRecord
from truthscore.scoring import (
    MAX_SCORE,
    ScoreNormalizer,
    describe_score,
    wilson_lower_bound,
    wilson_upper_bound,
)
from truthscore.tiers import Tier


NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_record(**kwargs) -> VenueStatRecord:
    data = {"venue": "kalshi", "address": "0xabc"}
    data.update(kwargs)
    return VenueStatRecord(**data)


@pytest.fixture
def normalizer():
    """Normalizer with default weights and curves."""
    return ScoreNormalizer(Settings())


class TestWilsonBounds:
    """Tests for the Wilson score interval helpers."""

    def test_perfect_small_sample(self):
        """3-for-3 is heavily penalized."""
        assert wilson_lower_bound(3, 3) == pytest.approx(0.438, abs=0.001)

    def test_large_sample(self):
        assert wilson_lower_bound(650, 1000) == pytest.approx(0.621, abs=0.002)

    def test_zero_sample(self):
        assert wilson_lower_bound(0, 0) == 0.0
        assert wilson_upper_bound(0, 0) == 0.0

    def test_invalid_inputs(self):
        assert wilson_lower_bound(5, 3) == 0.0
        assert wilson_lower_bound(-1, 3) == 0.0

    def test_lower_bound_never_exceeds_raw_rate(self):
        for n in (1, 2, 5, 10, 50, 200, 1000):
            for wins in range(0, n + 1, max(1, n // 10)):
                lower = wilson_lower_bound(wins, n)
                assert lower <= wins / n + 1e-12
                if wins > 0:
                    assert lower < wins / n

    def test_lower_bound_approaches_raw_rate(self):
        """The gap shrinks as the sample grows."""
        gaps = [0.6 - wilson_lower_bound(6 * k, 10 * k) for k in (1, 10, 100, 1000, 100_000)]
        assert gaps == sorted(gaps, reverse=True)
        assert gaps[-1] < 0.002

    def test_bounds_are_ordered_and_clamped(self):
        for wins, n in [(0, 4), (2, 4), (4, 4), (30, 100)]:
            lower = wilson_lower_bound(wins, n)
            upper = wilson_upper_bound(wins, n)
            assert 0.0 <= lower <= wins / n <= upper <= 1.0


class TestComponents:
    """Tests for the volume and consistency curves."""

    def test_volume_zero(self, normalizer):
        assert normalizer.volume_component(0, "kalshi") == 0.0

    def test_volume_saturates_at_reference(self, normalizer):
        reference = normalizer.config.reference_volume("kalshi")
        assert normalizer.volume_component(reference, "kalshi") == pytest.approx(1.0)
        assert normalizer.volume_component(reference * 50, "kalshi") == 1.0

    def test_volume_is_monotonic(self, normalizer):
        values = [normalizer.volume_component(v, "kalshi") for v in (1, 10, 100, 1_000, 10_000)]
        assert values == sorted(values)
        assert all(0.0 < v < 1.0 for v in values)

    def test_venue_specific_reference(self, normalizer):
        """Play-money venues need more volume for the same credit."""
        assert normalizer.volume_component(50_000, "manifold") < normalizer.volume_component(50_000, "kalshi")

    def test_activity_factor(self, normalizer):
        assert normalizer.activity_factor(0) == 0.0
        scale = normalizer.config.activity_scale
        assert normalizer.activity_factor(int(scale)) == pytest.approx(1 - math.exp(-1))

    def test_recency_factor(self, normalizer):
        assert normalizer.recency_factor(0) == 1.0
        assert normalizer.recency_factor(7) == 1.0
        assert normalizer.recency_factor(90) == 0.0
        assert normalizer.recency_factor(400) == 0.0
        middle = [normalizer.recency_factor(d) for d in range(8, 90)]
        assert middle == sorted(middle, reverse=True)
        assert all(0.0 < v < 1.0 for v in middle)

    def test_consistency_without_recency_uses_activity(self, normalizer):
        assert normalizer.consistency_component(100, None) == normalizer.activity_factor(100)

    def test_consistency_blends_recency(self, normalizer):
        blended = normalizer.consistency_component(100, 0)
        assert blended == pytest.approx((normalizer.activity_factor(100) + 1.0) / 2)


class TestScoreNormalizer:
    """Tests for ScoreNormalizer.normalize."""

    def test_no_bets_scores_zero(self, normalizer):
        score = normalizer.normalize(make_record(total_bets=0, volume=5_000), now=NOW)
        assert score.composite_score == 0.0
        assert score.win_rate_lower_bound == 0.0
        assert score.tier is Tier.BRONZE
        assert not score.eligible

    def test_pending_only_has_no_win_rate_credit(self, normalizer):
        score = normalizer.normalize(make_record(total_bets=10), now=NOW)
        assert score.win_rate_lower_bound == 0.0
        assert score.composite_score == 0.0

    def test_composite_formula(self, normalizer):
        record = make_record(total_bets=100, wins=60, losses=40)
        score = normalizer.normalize(record, now=NOW)

        lower = wilson_lower_bound(60, 100)
        consistency = 1 - math.exp(-100 / normalizer.config.activity_scale)
        expected = round(MAX_SCORE * (0.60 * lower + 0.15 * consistency), 2)

        assert score.volume_component == 0.0
        assert score.composite_score == pytest.approx(expected)
        assert score.tier is Tier.from_score(score.composite_score)

    def test_score_is_bounded(self, normalizer):
        record = make_record(
            total_bets=100_000,
            wins=100_000,
            losses=0,
            volume=10**12,
            last_trade_at=NOW,
        )
        score = normalizer.normalize(record, now=NOW)
        assert 0.0 <= score.composite_score <= MAX_SCORE
        assert score.composite_score > 1290
        assert score.tier is Tier.DIAMOND

    def test_small_sample_does_not_outrank_proven_record(self, normalizer):
        lucky = normalizer.normalize(make_record(total_bets=3, wins=3, volume=1_000), now=NOW)
        proven = normalizer.normalize(
            make_record(total_bets=1000, wins=650, losses=350, volume=1_000),
            now=NOW,
        )
        assert proven.composite_score > lucky.composite_score

    def test_more_wins_scores_higher(self, normalizer):
        scores = [
            normalizer.normalize(make_record(total_bets=200, wins=w, losses=200 - w), now=NOW).composite_score
            for w in (60, 100, 140, 180)
        ]
        assert scores == sorted(scores)

    def test_stale_trader_scores_lower(self, normalizer):
        fresh = normalizer.normalize(make_record(total_bets=50, wins=30, losses=20, last_trade_at=NOW), now=NOW)
        stale = normalizer.normalize(
            make_record(total_bets=50, wins=30, losses=20, last_trade_at=NOW - timedelta(days=200)),
            now=NOW,
        )
        assert fresh.composite_score > stale.composite_score
        assert stale.days_since_last_trade == 200

    def test_malformed_record_gets_degraded_score(self, normalizer):
        record = make_record(total_bets="lots", wins="12", losses=-4, volume="n/a")
        score = normalizer.normalize(record, now=NOW)
        assert record.wins == 12
        assert record.losses == 0
        assert score.volume_component == 0.0
        assert score.composite_score > 0

    def test_eligibility_flag(self, normalizer):
        small = normalizer.normalize(make_record(total_bets=10, wins=8, losses=2), now=NOW)
        large = normalizer.normalize(make_record(total_bets=100, wins=60, losses=40), now=NOW)
        assert not small.eligible
        assert "resolved bets" in small.reason
        assert large.eligible
        assert large.reason is None

    def test_normalize_is_deterministic(self, normalizer):
        record = make_record(total_bets=80, wins=50, losses=25, volume=3_000, last_trade_at=NOW)
        assert normalizer.normalize(record, now=NOW) == normalizer.normalize(record, now=NOW)

    def test_normalize_all(self, normalizer):
        records = [make_record(address=f"0x{i}", total_bets=10, wins=i, losses=10 - i) for i in range(5)]
        scores = normalizer.normalize_all(records, now=NOW)
        assert [s.address for s in scores] == [r.address for r in records]

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            ScoreNormalizer(Settings(weight_win_rate=0.9))


class TestDescribeScore:
    """Tests for human-readable score breakdowns."""

    def test_unrated(self, normalizer):
        breakdown = describe_score(normalizer.normalize(make_record(), now=NOW))
        assert breakdown.skill == "Not rated"

    def test_rated(self, normalizer):
        score = normalizer.normalize(
            make_record(total_bets=600, wins=420, losses=180, last_trade_at=NOW - timedelta(days=2)),
            now=NOW,
        )
        breakdown = describe_score(score)
        assert breakdown.skill.startswith("Elite")
        assert breakdown.confidence.startswith("Very high")
        assert breakdown.recency.startswith("Very active")
        assert score.tier.label in breakdown.explanation
