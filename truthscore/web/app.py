"""
FastAPI read-only API for the TruthScore leaderboard.

Serves leaderboard pages, the top-of-board summary and single trader
entries as JSON. All data comes from LeaderboardService; nothing here
mutates rankings.
"""

import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from ..config import settings
from ..models import LeaderboardQuery
from ..service import LeaderboardService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

_service: Optional[LeaderboardService] = None


def get_service() -> LeaderboardService:
    """Shared service instance, created on first use."""
    global _service
    if _service is None:
        _service = LeaderboardService()
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared service on shutdown."""
    yield
    if _service is not None:
        await _service.close()


app = FastAPI(title="TruthScore Leaderboard", docs_url="/docs", lifespan=lifespan)


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


@app.get("/api/leaderboard")
async def api_leaderboard(
    platform: str = Query(default="all"),
    tier: str = Query(default="all"),
    search: str = Query(default=""),
    sort_by: Literal["score", "winRate", "predictions"] = Query(default="score", alias="sortBy"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.page_size, ge=1, le=settings.max_page_size),
    refresh: bool = Query(default=False),
    service: LeaderboardService = Depends(get_service),
):
    """Filtered, sorted and paginated leaderboard view."""
    query = LeaderboardQuery(
        platform=platform,
        tier=tier,
        search=search,
        sort_by=sort_by,
        offset=offset,
        limit=limit,
    )
    page = await service.query(query, refresh=refresh)
    return {"success": True, **page.to_dict()}


@app.get("/api/leaderboard/summary")
async def api_summary(service: LeaderboardService = Depends(get_service)):
    """Top-of-board summary for the global view."""
    return await service.summary()


@app.get("/api/traders/{address}")
async def api_trader(address: str, service: LeaderboardService = Depends(get_service)):
    """One trader's cross-venue entry with per-venue breakdown."""
    entry = await service.trader(address)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Trader {address} not found")
    return entry.to_dict()
