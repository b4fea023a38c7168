from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import verify_admin_api_key
from app.core.config import settings
from app.core.rate_limit import get_registry
from app.schemas.rate_limit import RateLimitStatsResponse, SweepResponse

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_api_key)],
)


@router.get("/rate-limits", response_model=RateLimitStatsResponse)
def rate_limit_stats(request: Request) -> RateLimitStatsResponse:
    """Per-policy limiter counters. Keys themselves are never exposed."""

    return RateLimitStatsResponse(
        enabled=settings.app.rate_limit_enabled,
        policies=get_registry(request).stats(),
    )


@router.post("/rate-limits/sweep", response_model=SweepResponse)
def sweep_rate_limits(request: Request) -> SweepResponse:
    return SweepResponse(removed_keys=get_registry(request).sweep())
