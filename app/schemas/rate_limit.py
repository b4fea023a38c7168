"""Pydantic schemas for limiter administration."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field


class LimiterStats(BaseModel):
    max_requests: int = Field(..., description="Admitted attempts allowed per window.")
    window_ms: int = Field(..., description="Window length in milliseconds.")
    tracked_keys: int = Field(..., description="Keys currently holding history.")
    admitted_in_window: int = Field(
        ..., description="Admitted attempts still inside the window, all keys."
    )
    saturated_keys: int = Field(..., description="Keys whose budget is exhausted.")


class RateLimitStatsResponse(BaseModel):
    enabled: bool
    policies: Dict[str, LimiterStats]


class SweepResponse(BaseModel):
    removed_keys: Dict[str, int] = Field(
        ..., description="Idle keys removed per policy."
    )
