"""Read-only cache statistics surface plus the administrative reset."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["metrics"])


class CacheStatsResponse(BaseModel):
    """Snapshot of the process-wide cache counters."""

    requests_total: int
    cache_hits: int
    hit_rate: float
    tokens_cached: int
    tokens_total: int
    estimated_cost: float
    estimated_cost_saved: float


@router.get("/metrics/cache", response_model=CacheStatsResponse)
async def cache_stats(request: Request) -> CacheStatsResponse:
    """Point-in-time cache effectiveness figures for external polling."""
    snapshot = request.app.state.service.accountant.snapshot()
    return CacheStatsResponse(**snapshot.to_dict())


@router.post("/admin/cache-stats/reset", response_model=CacheStatsResponse)
async def reset_cache_stats(request: Request) -> CacheStatsResponse:
    """Clear the counters. Returns the totals as they were before the reset."""
    before = request.app.state.service.accountant.reset()
    return CacheStatsResponse(**before.to_dict())
