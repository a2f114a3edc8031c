"""
Configuration management for TruthScore.

Uses pydantic-settings to load configuration from environment variables
with sensible defaults for development.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VENUES = [
    "polymarket",
    "kalshi",
    "manifold",
    "metaculus",
    "azuro",
    "overtime",
    "limitless",
    "sxbet",
    "drift",
    "gnosis",
    "pancakeswap",
    "speedmarkets",
]

VENUE_DISPLAY_NAMES = {
    "polymarket": "Polymarket",
    "kalshi": "Kalshi",
    "manifold": "Manifold Markets",
    "metaculus": "Metaculus",
    "azuro": "Azuro",
    "overtime": "Overtime",
    "limitless": "Limitless",
    "sxbet": "SX Bet",
    "drift": "Drift BET",
    "gnosis": "Gnosis/Omen",
    "pancakeswap": "PancakeSwap Prediction",
    "speedmarkets": "Speed Markets",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="TRUTHSCORE_",
    )

    # Venues fetched on every aggregation pass
    venues: list[str] = Field(default_factory=lambda: list(DEFAULT_VENUES))

    # Stats provider (per-venue leaderboard endpoints)
    provider_base_url: str = "http://localhost:3000"
    venue_endpoint_template: str = "/api/{venue}-leaderboard"
    venue_fetch_limit: int = 100

    # Fan-out
    venue_timeout_seconds: float = 12.0
    max_retries: int = 3
    retry_backoff_seconds: float = 0.5

    # Cache epoch length, matches the UI polling cadence
    cache_ttl_seconds: int = 30

    # Pagination
    page_size: int = 20
    max_page_size: int = 100

    # Composite score weights (must sum to 1.0)
    wilson_z: float = 1.96
    weight_win_rate: float = 0.60
    weight_volume: float = 0.25
    weight_consistency: float = 0.15

    # Volume curve: log1p(volume) / log1p(reference)
    default_reference_volume: float = 100_000.0
    venue_reference_volumes: dict[str, float] = Field(
        default_factory=lambda: {
            "manifold": 1_000_000.0,  # mana
            "metaculus": 50_000.0,    # points
            "pancakeswap": 50_000.0,
        }
    )
    # Divisor applied to reported volume; polymarket reports USD x 1e18
    venue_volume_scales: dict[str, float] = Field(
        default_factory=lambda: {
            "polymarket": 1e18,
        }
    )

    # Consistency curve
    activity_scale: float = 200.0
    recency_full_days: int = 7
    recency_decay_days: int = 90

    # Informational eligibility threshold
    min_resolved_bets: int = 30

    # Web API
    web_host: str = "0.0.0.0"
    web_port: int = 8080

    # Logging
    log_level: str = "INFO"

    def reference_volume(self, venue: str) -> float:
        """Get the saturation volume for a venue."""
        return self.venue_reference_volumes.get(venue, self.default_reference_volume)

    def volume_scale(self, venue: str) -> float:
        """Get the divisor that brings a venue's reported volume to native units."""
        return self.venue_volume_scales.get(venue, 1.0)

    def venue_url(self, venue: str) -> str:
        """Build the stats endpoint URL for a venue."""
        path = self.venue_endpoint_template.format(venue=venue)
        return f"{self.provider_base_url.rstrip('/')}{path}"


# Global settings instance
settings = Settings()
