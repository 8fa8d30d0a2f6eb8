from fastapi import APIRouter, Depends, Response

from leakybucket.core.limiter import Limiter
from leakybucket.core.rate_limit import get_limiter, rate_limit_headers
from leakybucket.schemas.limits import LimitDecisionResponse, LimiterConfigResponse

router = APIRouter(tags=["Limits"])


@router.post("/limits/{key}/consume", response_model=LimitDecisionResponse)
def consume_unit(
    key: str,
    response: Response,
    limiter: Limiter = Depends(get_limiter),
) -> LimitDecisionResponse:
    """Consume one unit from the bucket for ``key``.

    Always returns 200 with the decision so callers can use the limiter as a
    service; a denial carries ``allowed=false`` and a positive wait.

    Raises:
        StorageError: Backend failure, rendered as 503 by the exception handlers.
    """
    result = limiter.consume(key)
    response.headers.update(rate_limit_headers(result))
    return LimitDecisionResponse(
        allowed=result.allowed,
        limit=result.limit,
        remaining=result.remaining,
        wait_seconds=result.wait_seconds,
        retry_after_seconds=result.retry_after_seconds,
    )


@router.get("/limits/config", response_model=LimiterConfigResponse)
def limiter_config(limiter: Limiter = Depends(get_limiter)) -> LimiterConfigResponse:
    """Return the configuration shared by every bucket."""
    return LimiterConfigResponse(
        rate=limiter.rate,
        interval_seconds=limiter.interval_ns / 1_000_000_000,
        burst=limiter.burst,
        backend=limiter.backend.name,
    )
