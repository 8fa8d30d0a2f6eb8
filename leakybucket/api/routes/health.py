from __future__ import annotations

from fastapi import APIRouter

from leakybucket.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check; reports which state backend is configured."""

    return {"status": "ok", "backend": settings.limiter.backend}
