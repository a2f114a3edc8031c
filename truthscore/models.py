"""
Pydantic models for venue statistics and leaderboard queries.

These models represent the data returned by per-venue stats providers
and the query contract accepted by the leaderboard. Venue records are
frozen once validated; numeric garbage is zero-filled instead of
rejecting the record.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import settings
from .utils import normalize_address, parse_timestamp, safe_count, safe_decimal, safe_float

logger = logging.getLogger(__name__)


SortKey = Literal["score", "winRate", "predictions"]


def _pick(data: dict, *keys: str) -> Any:
    """Return the first key present in data (field name or alias)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


class VenueStatRecord(BaseModel):
    """One trader's raw statistics on one venue."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    venue: str
    address: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    total_bets: int = Field(default=0, alias="totalBets")
    wins: int = 0
    losses: int = 0
    volume: Decimal = Decimal("0")
    raw_score: float = Field(default=0.0, alias="rawScore")
    pnl: float = 0.0
    last_trade_at: Optional[datetime] = Field(default=None, alias="lastTradeAt")

    @model_validator(mode="before")
    @classmethod
    def _zero_fill_malformed(cls, data: Any) -> Any:
        """
        Coerce numeric fields before type validation.

        Negative or non-numeric counts, volume and raw score become 0.
        A total below wins + losses is raised to wins + losses.
        """
        if not isinstance(data, dict):
            return data

        wins = safe_count(_pick(data, "wins"))
        losses = safe_count(_pick(data, "losses"))
        total_bets = safe_count(_pick(data, "total_bets", "totalBets"))
        if total_bets < wins + losses:
            logger.debug(
                f"Record {data.get('address')!r}: total_bets {total_bets} "
                f"below resolved {wins + losses}, raising"
            )
            total_bets = wins + losses

        volume = safe_decimal(_pick(data, "volume"))
        if volume < 0:
            volume = Decimal("0")

        raw_score = max(0.0, safe_float(_pick(data, "raw_score", "rawScore")))

        display_name = _pick(data, "display_name", "displayName")
        if display_name is not None:
            display_name = str(display_name).strip() or None

        return {
            "venue": data.get("venue"),
            "address": data.get("address"),
            "display_name": display_name,
            "total_bets": total_bets,
            "wins": wins,
            "losses": losses,
            "volume": volume,
            "raw_score": raw_score,
            "pnl": safe_float(_pick(data, "pnl")),
            "last_trade_at": parse_timestamp(_pick(data, "last_trade_at", "lastTradeAt")),
        }

    @field_validator("venue")
    @classmethod
    def _normalize_venue(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("venue must not be blank")
        return value

    @field_validator("address")
    @classmethod
    def _require_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("address must not be blank")
        return value

    @property
    def key(self) -> str:
        """Case-insensitive identity key."""
        return normalize_address(self.address)

    @property
    def resolved_bets(self) -> int:
        return self.wins + self.losses

    @property
    def pending(self) -> int:
        """Bets placed but not yet resolved."""
        return self.total_bets - self.resolved_bets

    @property
    def raw_win_rate(self) -> float:
        """Wins over resolved bets, 0 when nothing has resolved."""
        if self.resolved_bets == 0:
            return 0.0
        return self.wins / self.resolved_bets


class SimulatedTradeSummary(BaseModel):
    """
    Precomputed counters from the simulated copy-trading feed.

    The counters are taken as-is; trades are never re-derived here.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    venue: str
    address: str = Field(alias="follower")
    trade_count: int = Field(default=0, alias="tradeCount")
    wins: int = 0
    losses: int = 0
    pending: int = 0
    volume: Decimal = Decimal("0")
    pnl: float = Field(default=0.0, alias="cumulativePnl")
    last_trade_at: Optional[datetime] = Field(default=None, alias="lastTradeAt")

    @field_validator("trade_count", "wins", "losses", "pending", mode="before")
    @classmethod
    def _coerce_counts(cls, value: Any) -> int:
        return safe_count(value)

    @field_validator("volume", mode="before")
    @classmethod
    def _coerce_volume(cls, value: Any) -> Decimal:
        volume = safe_decimal(value)
        return volume if volume >= 0 else Decimal("0")

    @field_validator("pnl", mode="before")
    @classmethod
    def _coerce_pnl(cls, value: Any) -> float:
        return safe_float(value)

    @field_validator("last_trade_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    def to_venue_record(self) -> VenueStatRecord:
        """Convert the summary into the venue record shape."""
        return VenueStatRecord(
            venue=self.venue,
            address=self.address,
            total_bets=max(self.trade_count, self.wins + self.losses + self.pending),
            wins=self.wins,
            losses=self.losses,
            volume=self.volume,
            pnl=self.pnl,
            last_trade_at=self.last_trade_at,
        )


class LeaderboardQuery(BaseModel):
    """Logical query contract for a leaderboard page."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    platform: str = "all"
    tier: str = "all"
    search: str = ""
    sort_by: SortKey = Field(default="score", alias="sortBy")
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default_factory=lambda: settings.page_size, ge=1)

    @field_validator("platform", "tier", mode="before")
    @classmethod
    def _default_all(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            return "all"
        return str(value).strip().lower()

    @field_validator("search", mode="before")
    @classmethod
    def _strip_search(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        if value > settings.max_page_size:
            raise ValueError(f"limit must be at most {settings.max_page_size}")
        return value

    @property
    def is_global(self) -> bool:
        return self.platform == "all"
