"""
Tests for filtering, sorting and pagination of leaderboard views.
"""

from typing import Optional

import pytest

from truthscore.aggregator import Aggregator
from truthscore.filters import FilterSortEngine, matches_search, resolve_venue, venue_view
from truthscore.models import LeaderboardQuery, VenueStatRecord
from truthscore.scoring import NormalizedScore
from truthscore.tiers import Tier


def make_score(
    venue: str,
    address: str,
    composite: float,
    wins: int = 10,
    losses: int = 10,
    pending: int = 0,
    display_name: Optional[str] = None,
) -> NormalizedScore:
    record = VenueStatRecord(
        venue=venue,
        address=address,
        display_name=display_name,
        total_bets=wins + losses + pending,
        wins=wins,
        losses=losses,
    )
    return NormalizedScore(
        record=record,
        win_rate_lower_bound=0.5,
        win_rate_upper_bound=0.6,
        volume_component=0.0,
        consistency_component=0.0,
        composite_score=composite,
        tier=Tier.from_score(composite),
    )


@pytest.fixture
def engine():
    return FilterSortEngine()


@pytest.fixture
def board():
    """Global leaderboard across three venues."""
    scores = [
        make_score("venue1", "0xmulti", 500, wins=60, losses=40, display_name="MultiVenue"),
        make_score("venue2", "0xmulti", 700, wins=30, losses=10),
        make_score("venue3", "0xmulti", 300, wins=5, losses=15),
        make_score("venue1", "0xsolo", 650, wins=90, losses=10, pending=50),
        make_score("venue3", "0xthird", 320, wins=40, losses=10, display_name="ThirdWheel"),
        make_score("venue3", "0xfourth", 950, wins=12, losses=8),
        make_score("kalshi", "0xkalshi", 150, wins=1, losses=1),
    ]
    return Aggregator().aggregate(scores, venues=["venue1", "venue2", "venue3", "kalshi"])


class TestPlatformFilter:
    """Tests for the venue view switch."""

    def test_venue_view_uses_venue_score_and_tier(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="venue3"))
        entry = next(e for e in page.entries if e.address == "0xmulti")

        assert entry.score == 300
        assert entry.tier is Tier.SILVER
        assert entry.global_score == 700
        assert entry.view == "venue3"
        assert entry.win_rate == pytest.approx(0.25)
        assert entry.total_predictions == 20

    def test_drops_traders_not_on_venue(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="venue2"))
        assert [e.address for e in page.entries] == ["0xmulti"]
        assert page.scope_total == 1

    def test_ranks_relative_to_venue(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="venue3"))
        assert [e.address for e in page.entries] == ["0xfourth", "0xthird", "0xmulti"]
        assert [e.rank for e in page.entries] == [1, 2, 3]
        assert page.entries[0].percentile_rank == 100.0

    def test_round_trip_restores_global_ranking(self, engine, board):
        before = board.entries
        engine.apply(board, LeaderboardQuery(platform="venue3"))
        page = engine.apply(board, LeaderboardQuery(limit=100))

        assert board.entries == before
        assert page.entries == board.entries
        assert board.get("0xmulti").score == 700

    def test_display_name_matches_venue(self, engine):
        scores = [make_score("kalshi", "0xk", 400), make_score("sxbet", "0xs", 500)]
        board = Aggregator().aggregate(scores, venues=["kalshi", "sxbet"])
        page = engine.apply(board, LeaderboardQuery(platform="SX Bet"))
        assert [e.address for e in page.entries] == ["0xs"]

    def test_unknown_platform_is_empty(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="nowhere"))
        assert page.entries == ()
        assert page.total == 0
        assert page.top_score == 0.0

    def test_venue_view_helper(self, board):
        entry = board.get("0xsolo")
        assert venue_view(entry, "venue2") is None
        viewed = venue_view(entry, "venue1")
        assert viewed.total_predictions == 150
        assert viewed.resolved_bets == 100
        assert entry.view == "all"

    def test_resolve_venue(self):
        venues = ("kalshi", "manifold", "venue1")
        assert resolve_venue("KALSHI", venues) == "kalshi"
        assert resolve_venue("Manifold Markets", venues) == "manifold"
        assert resolve_venue("polymarket", venues) is None


class TestSearchAndTier:
    """Tests for free-text and tier filters."""

    def test_search_by_address(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(search="SOLO"))
        assert [e.address for e in page.entries] == ["0xsolo"]

    def test_search_by_display_name(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(search="wheel"))
        assert [e.address for e in page.entries] == ["0xthird"]
        assert page.entries[0].rank == 1

    def test_matches_search_empty(self, board):
        assert matches_search(board.entries[0], "")

    def test_tier_filter_global(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(tier="platinum"))
        assert [e.address for e in page.entries] == ["0xmulti", "0xsolo"]
        assert [e.rank for e in page.entries] == [1, 2]

    def test_tier_filter_uses_active_score(self, engine, board):
        """In a venue view, tier follows the venue score, not the global best."""
        page = engine.apply(board, LeaderboardQuery(platform="venue3", tier="silver"))
        assert {e.address for e in page.entries} == {"0xmulti", "0xthird"}

        page = engine.apply(board, LeaderboardQuery(platform="venue3", tier="platinum"))
        assert page.entries == ()

    def test_contradictory_filters_return_empty_page(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="kalshi", tier="diamond"))
        assert page.entries == ()
        assert page.total == 0
        assert page.scope_total == 1
        assert not page.has_more

    def test_unknown_tier_is_empty(self, engine, board):
        assert engine.apply(board, LeaderboardQuery(tier="mythril")).total == 0

    def test_summary_describes_platform_scope(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(platform="venue3", search="third"))
        assert [e.address for e in page.entries] == ["0xthird"]
        assert page.total == 1
        assert page.scope_total == 3
        assert page.top_score == 950

    def test_summary_ignores_tier_filter(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(tier="bronze"))
        assert [e.address for e in page.entries] == ["0xkalshi"]
        summary = page.to_dict()["summary"]
        assert summary == {"top_score": 950, "total_traders": 5}


class TestSorting:
    """Tests for sort keys."""

    def test_sort_by_win_rate(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(sort_by="winRate"))
        rates = [e.win_rate for e in page.entries]
        assert rates == sorted(rates, reverse=True)
        assert page.entries[0].address == "0xsolo"
        assert [e.rank for e in page.entries] == list(range(1, len(page.entries) + 1))

    def test_sort_by_predictions(self, engine, board):
        page = engine.apply(board, LeaderboardQuery(sortBy="predictions"))
        counts = [e.total_predictions for e in page.entries]
        assert counts == sorted(counts, reverse=True)
        assert page.entries[0].address == "0xmulti"

    def test_ties_use_resolved_bets_then_address(self, engine):
        scores = [
            make_score("venue1", "0xb", 400, wins=5, losses=5),
            make_score("venue1", "0xa", 400, wins=5, losses=5),
            make_score("venue1", "0xc", 400, wins=3, losses=3, pending=4),
        ]
        board = Aggregator().aggregate(scores)
        page = engine.apply(board, LeaderboardQuery(sort_by="predictions"))
        assert [e.address for e in page.entries] == ["0xa", "0xb", "0xc"]


class TestPagination:
    """Tests for page windows."""

    @pytest.fixture
    def big_board(self):
        scores = [make_score("venue1", f"0x{i:03d}", 1000 - i * 10) for i in range(45)]
        return Aggregator().aggregate(scores, venues=["venue1"])

    def test_page_boundaries_keep_rank_continuity(self, engine, big_board):
        first = engine.apply(big_board, LeaderboardQuery(offset=0, limit=20))
        second = engine.apply(big_board, LeaderboardQuery(offset=20, limit=20))
        third = engine.apply(big_board, LeaderboardQuery(offset=40, limit=20))

        assert first.entries[-1].rank == 20
        assert second.entries[0].rank == 21
        assert [e.rank for e in third.entries] == [41, 42, 43, 44, 45]
        assert first.has_more and second.has_more and not third.has_more
        assert first.total == second.total == third.total == 45

    def test_offset_past_end(self, engine, big_board):
        page = engine.apply(big_board, LeaderboardQuery(offset=100, limit=20))
        assert page.entries == ()
        assert page.total == 45

    def test_top_score_is_scope_wide(self, engine, big_board):
        page = engine.apply(big_board, LeaderboardQuery(offset=20, limit=5))
        assert page.top_score == 1000

    def test_to_dict(self, engine, big_board):
        data = engine.apply(big_board, LeaderboardQuery(limit=5)).to_dict()
        assert len(data["data"]) == 5
        assert data["total"] == 45
        assert data["summary"] == {"top_score": 1000, "total_traders": 45}
        assert data["filters"]["sortBy"] == "score"
