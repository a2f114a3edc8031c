"""
Per-venue statistics providers and the fan-out/fan-in around them.

Providers are untrusted and fail independently. Each venue is fetched
as its own task with its own timeout; every outcome, success or
failure, comes back as a VenueFetchResult and is only merged at the
single fan-in point (`merge_results`), which skips failed venues.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from .config import Settings, settings as default_settings
from .models import SimulatedTradeSummary, VenueStatRecord
from .utils import safe_decimal

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A venue's stats could not be fetched or decoded."""

    def __init__(self, message: str, venue: str, status_code: Optional[int] = None):
        self.message = message
        self.venue = venue
        self.status_code = status_code
        super().__init__(f"{venue}: {message}")


class PlatformStatsProvider(ABC):
    """Source of raw per-trader statistics for a venue."""

    @abstractmethod
    async def fetch_venue_stats(self, venue: str) -> list[VenueStatRecord]:
        """
        Fetch every trader's statistics for one venue.

        Raises:
            ProviderError: If the venue cannot be read.
        """

    async def close(self) -> None:
        """Release any held resources."""


def parse_venue_rows(venue: str, rows: Iterable[dict]) -> list[VenueStatRecord]:
    """
    Validate raw rows into records.

    Numeric garbage is zero-filled by the model; rows that cannot be
    keyed (no usable address) are dropped.
    """
    records = []
    dropped = 0
    for row in rows:
        if not isinstance(row, dict):
            dropped += 1
            continue
        try:
            records.append(VenueStatRecord.model_validate({**row, "venue": venue}))
        except ValidationError as e:
            dropped += 1
            logger.debug(f"Dropping {venue} row {row.get('address')!r}: {e.error_count()} errors")
    if dropped:
        logger.info(f"{venue}: dropped {dropped} unkeyable rows")
    return records


def _leaderboard_row(row: dict, volume_scale: float = 1.0) -> dict:
    """
    Map a venue leaderboard row onto VenueStatRecord field names.

    Reported volume is divided by `volume_scale` so venues that publish
    fixed-point amounts land in native units.
    """
    volume = row.get("volume", row.get("totalVolume"))
    if volume_scale != 1.0:
        volume = safe_decimal(volume) / Decimal(str(volume_scale))
    return {
        "address": row.get("address") or row.get("proxyWallet"),
        "displayName": row.get("displayName") or row.get("username") or row.get("userName"),
        "totalBets": row.get("totalBets", row.get("totalPredictions")),
        "wins": row.get("wins"),
        "losses": row.get("losses"),
        "volume": volume,
        "rawScore": row.get("rawScore", row.get("truthScore")),
        "pnl": row.get("pnl"),
        "lastTradeAt": row.get("lastTradeAt"),
    }


class HttpStatsProvider(PlatformStatsProvider):
    """
    Reads venue leaderboards over HTTP.

    Transient transport errors are retried; HTTP error statuses and
    undecodable payloads raise ProviderError straight away.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the provider.

        Args:
            config: Settings instance (uses global if not provided).
            transport: Optional httpx transport, for tests.
        """
        self.config = config or default_settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._get_json = retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(
                multiplier=self.config.retry_backoff_seconds,
                min=self.config.retry_backoff_seconds,
                max=5,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )(self._request_json)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.venue_timeout_seconds,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request_json(self, venue: str, url: str, params: dict) -> Any:
        """Single GET; retried on transport errors by the wrapper built in __init__."""
        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"HTTP error {e.response.status_code}",
                venue=venue,
                status_code=e.response.status_code,
            )
        except ValueError as e:
            raise ProviderError(f"Invalid JSON: {e}", venue=venue)

    async def fetch_venue_stats(self, venue: str) -> list[VenueStatRecord]:
        url = self.config.venue_url(venue)
        try:
            payload = await self._get_json(venue, url, {"limit": self.config.venue_fetch_limit})
        except httpx.TransportError as e:
            raise ProviderError(
                f"Transport error after {self.config.max_retries} attempts: {e}",
                venue=venue,
            ) from e

        if isinstance(payload, dict):
            if payload.get("success") is False:
                raise ProviderError(payload.get("error") or "Provider reported failure", venue=venue)
            rows = payload.get("data", [])
        else:
            rows = payload
        if not isinstance(rows, list):
            raise ProviderError("Unexpected payload shape", venue=venue)

        scale = self.config.volume_scale(venue)
        return parse_venue_rows(
            venue,
            (_leaderboard_row(r, volume_scale=scale) for r in rows if isinstance(r, dict)),
        )


class StaticStatsProvider(PlatformStatsProvider):
    """In-memory provider for demo data and tests."""

    def __init__(
        self,
        records: dict[str, list[VenueStatRecord]],
        failures: Optional[dict[str, Exception]] = None,
        delays: Optional[dict[str, float]] = None
    ):
        self.records = records
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: list[str] = []

    async def fetch_venue_stats(self, venue: str) -> list[VenueStatRecord]:
        self.calls.append(venue)
        if venue in self.delays:
            await asyncio.sleep(self.delays[venue])
        if venue in self.failures:
            raise self.failures[venue]
        if venue not in self.records:
            raise ProviderError("Unknown venue", venue=venue)
        return list(self.records[venue])


SummaryFeed = Callable[[str], Awaitable[list[SimulatedTradeSummary]]]


class SimulatedTradeProvider(PlatformStatsProvider):
    """
    Presents simulated-trade summaries as venue statistics.

    The feed returns precomputed counters per follower; they are
    converted, not recomputed.
    """

    def __init__(self, feed: SummaryFeed):
        self.feed = feed

    async def fetch_venue_stats(self, venue: str) -> list[VenueStatRecord]:
        summaries = await self.feed(venue)
        return [s.to_venue_record() for s in summaries if s.venue.lower() == venue]


class RoutingProvider(PlatformStatsProvider):
    """Dispatches each venue to its own provider."""

    def __init__(
        self,
        routes: dict[str, PlatformStatsProvider],
        default: Optional[PlatformStatsProvider] = None
    ):
        self.routes = routes
        self.default = default

    async def fetch_venue_stats(self, venue: str) -> list[VenueStatRecord]:
        provider = self.routes.get(venue, self.default)
        if provider is None:
            raise ProviderError("No provider configured", venue=venue)
        return await provider.fetch_venue_stats(venue)

    async def close(self) -> None:
        providers = {id(p): p for p in self.routes.values()}
        if self.default is not None:
            providers[id(self.default)] = self.default
        for provider in providers.values():
            await provider.close()


@dataclass(frozen=True)
class VenueFetchResult:
    """Outcome of one venue fetch task."""
    venue: str
    records: tuple = ()
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FanInResult:
    """Records from successful venues plus which venues were dropped."""
    records: tuple
    venues: tuple
    failed_venues: tuple

    @property
    def all_failed(self) -> bool:
        return not self.venues


async def fetch_venue(
    provider: PlatformStatsProvider,
    venue: str,
    timeout: float
) -> VenueFetchResult:
    """
    Fetch one venue under its own timeout.

    Never raises for provider failures; they are returned as a failed
    VenueFetchResult. Cancellation still propagates.
    """
    start = time.monotonic()
    try:
        records = await asyncio.wait_for(provider.fetch_venue_stats(venue), timeout=timeout)
    except asyncio.TimeoutError:
        elapsed = time.monotonic() - start
        return VenueFetchResult(venue=venue, error=f"timeout after {timeout}s", elapsed_seconds=elapsed)
    except Exception as e:
        elapsed = time.monotonic() - start
        return VenueFetchResult(venue=venue, error=str(e) or type(e).__name__, elapsed_seconds=elapsed)

    elapsed = time.monotonic() - start
    return VenueFetchResult(venue=venue, records=tuple(records), elapsed_seconds=elapsed)


async def fetch_all_venues(
    provider: PlatformStatsProvider,
    venues: Iterable[str],
    timeout: Optional[float] = None
) -> list[VenueFetchResult]:
    """
    Fan out one fetch task per venue and wait for all of them.

    Args:
        provider: Stats provider.
        venues: Venue ids to fetch.
        timeout: Per-venue timeout in seconds.

    Returns:
        One result per venue, in the order given.
    """
    timeout = timeout if timeout is not None else default_settings.venue_timeout_seconds
    venues = list(dict.fromkeys(venues))
    return list(await asyncio.gather(*(fetch_venue(provider, v, timeout) for v in venues)))


def merge_results(results: Iterable[VenueFetchResult]) -> FanInResult:
    """
    Single fan-in point: keep successful venues, drop failed ones.

    Records are ordered by venue id so the merge does not depend on
    completion order.
    """
    records = []
    venues = []
    failed = []

    for result in sorted(results, key=lambda r: r.venue):
        if result.ok:
            venues.append(result.venue)
            records.extend(result.records)
            logger.debug(f"{result.venue}: {len(result.records)} records in {result.elapsed_seconds:.2f}s")
        else:
            failed.append(result.venue)
            logger.warning(f"Venue {result.venue} dropped from this pass: {result.error}")

    if failed and not venues:
        logger.warning("No venue returned data; leaderboard will be empty")

    return FanInResult(records=tuple(records), venues=tuple(venues), failed_venues=tuple(failed))
