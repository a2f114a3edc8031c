"""
Sample data generator for testing and demonstration.

This module generates realistic venue statistics so the leaderboard
can be demonstrated without live provider endpoints. Output is seeded
and therefore repeatable.
"""

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import DEFAULT_VENUES
from .models import VenueStatRecord
from .providers import StaticStatsProvider


DISPLAY_NAMES = [
    "oracle_whale", "basedforecaster", "coinflipper", "deltaneutral",
    "superforecaster", "polyking", "yesnomaxi", "kellybettor",
    "calibrated", "longshotlarry", "fadethepublic", "sharpmoney",
]


def generate_wallet_address(rng: random.Random) -> str:
    """Generate a random Ethereum-style wallet address."""
    return "0x" + "".join(rng.choices(string.hexdigits.lower()[:16], k=40))


def generate_sample_records(
    venues: Optional[list[str]] = None,
    num_traders: int = 60,
    seed: int = 42,
    now: Optional[datetime] = None
) -> dict[str, list[VenueStatRecord]]:
    """
    Generate per-venue statistics for a shared pool of traders.

    Roughly a third of the traders are active on more than one venue,
    so the cross-venue merge has something to do.

    Args:
        venues: Venue ids (defaults to all known venues).
        num_traders: Size of the trader pool.
        seed: Random seed.
        now: Reference time for last-trade timestamps.

    Returns:
        Mapping of venue id to its records.
    """
    rng = random.Random(seed)
    venues = venues or list(DEFAULT_VENUES)
    now = now or datetime.now(timezone.utc)

    traders = []
    for i in range(num_traders):
        address = generate_wallet_address(rng)
        name = rng.choice(DISPLAY_NAMES) + str(i) if rng.random() < 0.5 else None
        skill = rng.betavariate(6, 5)  # centred a little above 50%
        spread = 1 + (rng.random() < 0.35) + (rng.random() < 0.1)
        home_venues = rng.sample(venues, k=min(spread, len(venues)))
        traders.append((address, name, skill, home_venues))

    records: dict[str, list[VenueStatRecord]] = {venue: [] for venue in venues}
    for address, name, skill, home_venues in traders:
        for venue in home_venues:
            total_bets = rng.randint(0, 1500)
            resolved = int(total_bets * rng.uniform(0.7, 1.0))
            wins = sum(1 for _ in range(resolved) if rng.random() < skill)
            records[venue].append(
                VenueStatRecord(
                    venue=venue,
                    # Mixed case on purpose: identity is case-insensitive
                    address=address.upper().replace("0X", "0x") if rng.random() < 0.2 else address,
                    display_name=name,
                    total_bets=total_bets,
                    wins=wins,
                    losses=resolved - wins,
                    volume=round(rng.lognormvariate(8, 2), 2),
                    raw_score=round(rng.uniform(0, 1000), 1),
                    pnl=round(rng.gauss(0, 2000), 2),
                    last_trade_at=now - timedelta(days=rng.randint(0, 120)),
                )
            )

    return records


def create_sample_provider(
    venues: Optional[list[str]] = None,
    num_traders: int = 60,
    seed: int = 42
) -> StaticStatsProvider:
    """Create an in-memory provider loaded with sample data."""
    return StaticStatsProvider(generate_sample_records(venues, num_traders=num_traders, seed=seed))
