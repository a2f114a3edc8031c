"""
Main entry point for TruthScore.

This module provides the CLI interface and the scheduled cache warmer
for the cross-venue leaderboard.

Usage:
    # Print one leaderboard page
    python -m truthscore.main --once

    # Filter to one venue and sort by win rate, using demo data
    python -m truthscore.main --once --sample --platform kalshi --sort winRate

    # Keep the cache warm on a schedule
    python -m truthscore.main --serve
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from .aggregator import total_volume
from .config import settings
from .filters import LeaderboardPage
from .models import LeaderboardQuery
from .sample_data import create_sample_provider
from .service import LeaderboardService
from .utils import format_volume, truncate_address

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class LeaderboardRefresher:
    """
    Keeps the leaderboard cache warm.

    Runs a refresh every cache epoch so readers rarely wait on a fan-out.
    """

    def __init__(self, service: LeaderboardService):
        """Initialize the refresher."""
        self.service = service
        self.scheduler: AsyncIOScheduler = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the schedule and block until stopped."""
        logger.info("=" * 60)
        logger.info("TruthScore leaderboard refresher starting")
        logger.info(f"Venues: {', '.join(self.service.venues)}")
        logger.info(f"Refresh interval: {settings.cache_ttl_seconds}s")
        logger.info("=" * 60)

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._run_refresh_job,
            trigger=IntervalTrigger(seconds=settings.cache_ttl_seconds),
            id="leaderboard_refresh",
            name="Leaderboard refresh",
            next_run_time=datetime.now(),  # Run immediately on start
            max_instances=1,
        )
        self.scheduler.start()
        logger.info("Scheduler started")

        await self._shutdown_event.wait()

    async def _run_refresh_job(self) -> None:
        """Execute one refresh."""
        try:
            await self.service.refresh()
        except Exception as e:
            logger.error(f"Refresh job failed: {e}")

    async def stop(self) -> None:
        """Stop the refresher gracefully."""
        logger.info("Shutting down...")

        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        await self.service.close()
        self._shutdown_event.set()

    def handle_signal(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        asyncio.get_event_loop().create_task(self.stop())


def print_page(page: LeaderboardPage) -> None:
    """Print a leaderboard page as a table."""
    scope = "All platforms" if page.query.is_global else page.query.platform
    print("\n" + "=" * 78)
    print(f"TruthScore Leaderboard - {scope} (sorted by {page.query.sort_by})")
    print("=" * 78)

    if not page.entries:
        print("  No traders match these filters.")
        print("=" * 78 + "\n")
        return

    print(f"  {'#':>4}  {'Trader':<18} {'Score':>8} {'Tier':<9} {'Win%':>6} {'Bets':>6} {'Pctl':>6}  Venues")
    print("-" * 78)
    for entry in page.entries:
        name = entry.display_name or truncate_address(entry.address)
        print(
            f"  {entry.rank:>4}  {name[:18]:<18} {entry.score:>8.1f} {entry.tier.label:<9} "
            f"{entry.win_rate * 100:>6.1f} {entry.total_predictions:>6} {entry.percentile_rank:>6.1f}  "
            f"{', '.join(sorted(entry.platforms))}"
        )
    print("-" * 78)

    leader = page.entries[0] if page.offset == 0 else None
    print(f"  Showing {page.offset + 1}-{page.offset + len(page.entries)} of {page.total}")
    print(f"  Top score: {page.top_score:.1f}   Traders in scope: {page.scope_total}")
    if leader is not None:
        print(f"  Leader volume: {format_volume(total_volume(leader))}")
    print("=" * 78 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="TruthScore - cross-venue prediction market reputation leaderboard"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Build the leaderboard once, print a page and exit"
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Refresh the cache on a schedule until interrupted"
    )
    parser.add_argument(
        "--sample",
        action="store_true",
        help="Use generated demo data instead of HTTP providers"
    )
    parser.add_argument("--platform", default="all", help="Venue id or 'all' (default: all)")
    parser.add_argument("--tier", default="all", help="Tier name or 'all' (default: all)")
    parser.add_argument("--search", default="", help="Address or display name substring")
    parser.add_argument(
        "--sort",
        default="score",
        choices=["score", "winRate", "predictions"],
        help="Sort key (default: score)"
    )
    parser.add_argument("--offset", type=int, default=0, help="Page offset (default: 0)")
    parser.add_argument("--limit", type=int, default=settings.page_size, help="Page size")
    args = parser.parse_args()

    configure_logging()

    try:
        query = LeaderboardQuery(
            platform=args.platform,
            tier=args.tier,
            search=args.search,
            sort_by=args.sort,
            offset=args.offset,
            limit=args.limit,
        )
    except ValidationError as e:
        parser.error(str(e))

    provider = create_sample_provider(settings.venues) if args.sample else None
    service = LeaderboardService(provider=provider)

    async def run():
        if args.serve:
            refresher = LeaderboardRefresher(service)
            for sig in (signal.SIGTERM, signal.SIGINT):
                signal.signal(sig, refresher.handle_signal)
            await refresher.start()
            return

        try:
            page = await service.query(query)
            print_page(page)
        finally:
            await service.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
