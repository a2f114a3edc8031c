"""
Time-boxed cache for aggregation passes.

A pass is stored as an immutable snapshot keyed by (venue set, epoch),
where the epoch is wall-clock time divided by the TTL. Snapshots are
swapped in wholesale, so readers never see a half-updated ranking.
Concurrent misses share one refresh. Once a venue set has a snapshot,
readers never wait on an expiry: the old snapshot is served while a
background task replaces it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional

from .aggregator import Leaderboard
from .config import settings

logger = logging.getLogger(__name__)


CacheKey = tuple  # (frozenset of venue ids, epoch)


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """A cached aggregation pass."""
    key: CacheKey
    leaderboard: Leaderboard
    stored_at: float

    @property
    def venues(self) -> frozenset:
        return self.key[0]

    @property
    def epoch(self) -> int:
        return self.key[1]


class LeaderboardCache:
    """
    Cache of the latest aggregation pass per venue set.

    Args:
        ttl_seconds: Epoch length (uses settings if not provided).
        clock: Time source returning seconds, for tests.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.clock = clock
        self._snapshots: dict[frozenset, LeaderboardSnapshot] = {}
        self._lock = asyncio.Lock()
        self._generation = 0
        self._refreshes: dict[frozenset, asyncio.Task] = {}
        self.hits = 0
        self.stale_hits = 0
        self.misses = 0

    def epoch(self) -> int:
        """Current cache epoch."""
        return int(self.clock() // self.ttl_seconds)

    def key_for(self, venues: Iterable[str]) -> CacheKey:
        return (frozenset(venues), self.epoch())

    def get(self, venues: Iterable[str]) -> Optional[LeaderboardSnapshot]:
        """Return the snapshot for this venue set if it is from the current epoch."""
        key = self.key_for(venues)
        snapshot = self._snapshots.get(key[0])
        if snapshot is not None and snapshot.key == key:
            return snapshot
        return None

    def latest(self, venues: Iterable[str]) -> Optional[LeaderboardSnapshot]:
        """Return the most recent snapshot for this venue set, fresh or not."""
        return self._snapshots.get(frozenset(venues))

    def put(self, venues: Iterable[str], leaderboard: Leaderboard) -> LeaderboardSnapshot:
        """Store a pass, replacing any previous snapshot for the venue set."""
        snapshot = LeaderboardSnapshot(
            key=self.key_for(venues),
            leaderboard=leaderboard,
            stored_at=self.clock(),
        )
        self._snapshots[snapshot.venues] = snapshot
        return snapshot

    def invalidate(self) -> None:
        """Drop every snapshot."""
        self._snapshots = {}

    def age(self, snapshot: LeaderboardSnapshot) -> float:
        """Seconds since the snapshot was stored."""
        return max(0.0, self.clock() - snapshot.stored_at)

    def is_refreshing(self, venues: Iterable[str]) -> bool:
        """Whether a background refresh is running for this venue set."""
        task = self._refreshes.get(frozenset(venues))
        return task is not None and not task.done()

    async def wait_for_refresh(self, venues: Iterable[str]) -> None:
        """Wait for the background refresh of this venue set, if any."""
        task = self._refreshes.get(frozenset(venues))
        if task is not None:
            await asyncio.wait([task])

    def cancel_refreshes(self) -> None:
        """Cancel every background refresh."""
        for task in list(self._refreshes.values()):
            task.cancel()

    async def get_or_build(
        self,
        venues: Iterable[str],
        builder: Callable[[], Awaitable[Leaderboard]],
        force: bool = False
    ) -> LeaderboardSnapshot:
        """
        Return a snapshot for the venue set, building one if needed.

        A snapshot from the current epoch is returned as is. An expired
        snapshot is returned immediately while one background task
        rebuilds it. Only a cold cache or `force` makes the caller wait
        for the build.

        Args:
            venues: Venue set the pass covers.
            builder: Coroutine factory producing a Leaderboard.
            force: Rebuild now even if the current epoch is cached.
        """
        venues = frozenset(venues)
        if not force:
            snapshot = self.get(venues)
            if snapshot is not None:
                self.hits += 1
                return snapshot

            stale = self.latest(venues)
            if stale is not None:
                self.stale_hits += 1
                self._schedule_refresh(venues, builder)
                return stale

        return await self._build(venues, builder, force)

    async def _build(
        self,
        venues: frozenset,
        builder: Callable[[], Awaitable[Leaderboard]],
        force: bool
    ) -> LeaderboardSnapshot:
        """Single-flight build; callers queued behind a build reuse its result."""
        generation = self._generation
        async with self._lock:
            snapshot = self.get(venues)
            if snapshot is not None and (not force or self._generation > generation):
                self.hits += 1
                return snapshot

            self.misses += 1
            logger.info(f"Refreshing leaderboard for {len(venues)} venues")
            leaderboard = await builder()
            snapshot = self.put(venues, leaderboard)
            self._generation += 1
            logger.info(
                f"Leaderboard refreshed: {len(leaderboard)} traders, "
                f"{len(leaderboard.failed_venues)} venues failed"
            )
            return snapshot

    def _schedule_refresh(
        self,
        venues: frozenset,
        builder: Callable[[], Awaitable[Leaderboard]]
    ) -> None:
        if self.is_refreshing(venues):
            return
        logger.debug(f"Serving stale leaderboard for {len(venues)} venues, refreshing in background")
        task = asyncio.get_running_loop().create_task(self._build(venues, builder, force=False))
        self._refreshes[venues] = task
        task.add_done_callback(partial(self._refresh_done, venues))

    def _refresh_done(self, venues: frozenset, task: asyncio.Task) -> None:
        if self._refreshes.get(venues) is task:
            del self._refreshes[venues]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background leaderboard refresh failed: {error}")
