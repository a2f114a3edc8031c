"""
Shared ordering for leaderboard entries.

Every ranking in the package uses the same total order: the active sort
value descending, then resolved bets descending, then address ascending.
Ranks are dense 1..N over whatever set is being ranked.
"""

from dataclasses import replace
from typing import Iterable, TypeVar

T = TypeVar("T")

SORT_ATTRIBUTES = {
    "score": "score",
    "winRate": "win_rate",
    "predictions": "total_predictions",
}


def sort_value(entry, sort_by: str) -> float:
    """Read the active sort value from an entry."""
    try:
        attribute = SORT_ATTRIBUTES[sort_by]
    except KeyError:
        raise ValueError(f"Unknown sort key: {sort_by}")
    return getattr(entry, attribute)


def order_key(entry, sort_by: str = "score") -> tuple:
    """Total-order key for sorted()."""
    return (-sort_value(entry, sort_by), -entry.resolved_bets, entry.address.lower())


def percentile_rank(rank: int, total: int) -> float:
    """
    Percentage of the ranked set at or below this rank.

    Rank 1 of N maps to 100; the last rank maps to 100/N.
    """
    if total <= 0 or rank < 1:
        return 0.0
    return round(100 * (1 - (rank - 1) / total), 2)


def rank_entries(entries: Iterable[T], sort_by: str = "score") -> tuple[T, ...]:
    """
    Sort entries and assign dense ranks and percentiles.

    Returns new entries; the inputs are left untouched.
    """
    ordered = sorted(entries, key=lambda entry: order_key(entry, sort_by))
    total = len(ordered)
    return tuple(
        replace(entry, rank=index, percentile_rank=percentile_rank(index, total))
        for index, entry in enumerate(ordered, start=1)
    )
