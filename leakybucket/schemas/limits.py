"""Pydantic schemas for limiter decision responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LimitDecisionResponse(BaseModel):
    """Outcome of consuming one unit from a key's bucket."""

    allowed: bool = Field(..., description="Whether the action may proceed now.")
    limit: int = Field(..., description="Bucket capacity (burst).")
    remaining: int = Field(..., description="Units left in the bucket after this decision.")
    wait_seconds: float = Field(
        ...,
        description="Seconds to wait before retrying; 0 when allowed.",
        ge=0,
    )
    retry_after_seconds: int | None = Field(
        default=None,
        description="wait_seconds rounded up to whole seconds (null when allowed).",
    )


class LimiterConfigResponse(BaseModel):
    """Process-wide limiter configuration."""

    rate: int = Field(..., description="Units restored per interval.")
    interval_seconds: float = Field(..., description="Refill period in seconds.")
    burst: int = Field(..., description="Bucket capacity.")
    backend: str = Field(..., description="Name of the state backend in use.")
