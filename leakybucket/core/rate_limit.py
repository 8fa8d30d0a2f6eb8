"""Rate limiting dependency for FastAPI routes.

This module wires the leaky-bucket limiter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: storage is chosen by settings (memory or redis) behind
  AbstractBackend.
- One limiter per process, rebuilt only when its configuration changes.

Key strategy:
- One bucket per API key (X-API-Key header).
- If the header is missing, fall back to client IP.
"""

from __future__ import annotations

import logging
import threading
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from leakybucket.core.config import settings
from leakybucket.core.limiter import Limiter, RateLimitResult
from leakybucket.core.logging import hash_key

logger = logging.getLogger(__name__)


_limiter: Limiter | None = None
_limiter_config: tuple | None = None
_limiter_lock = threading.Lock()


def _config_fingerprint() -> tuple:
    cfg = settings.limiter
    return (
        cfg.rate,
        cfg.interval_seconds,
        cfg.burst,
        cfg.backend,
        cfg.redis_url,
        cfg.key_prefix,
        cfg.key_ttl_seconds,
        cfg.lock_timeout_seconds,
        cfg.lock_blocking_timeout_seconds,
        cfg.socket_timeout_seconds,
    )


def get_limiter() -> Limiter:
    """Return the process-wide limiter instance.

    The instance is cached in-module so bucket state survives across
    requests. If configuration changes (primarily in tests), the limiter
    and its backend are rebuilt.
    """

    global _limiter, _limiter_config

    config = _config_fingerprint()
    with _limiter_lock:
        if _limiter is None or _limiter_config != config:
            if _limiter is not None:
                _limiter.backend.close()
            _limiter = Limiter.from_settings(settings.limiter)
            _limiter_config = config
        return _limiter


def reset_limiter() -> None:
    """Drop the cached limiter so the next request builds a fresh one."""

    global _limiter, _limiter_config

    with _limiter_lock:
        if _limiter is not None:
            _limiter.backend.close()
        _limiter = None
        _limiter_config = None


def build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the namespaced limiter key for the current request."""

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Render a decision as Retry-After / X-RateLimit-* headers."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the leaky-bucket limit.

    Declared sync so FastAPI runs it in the threadpool; backend I/O and the
    per-key lock may block.

    Raises:
        HTTPException: 429 Too Many Requests when the bucket is empty.
        StorageError: When the backend fails (mapped to 503 by the handlers).
    """

    if not settings.limiter.enabled:
        return

    limiter = get_limiter()
    key = build_rate_limit_key(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    result = limiter.consume(key)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": hash_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    logger.warning(
        "rate_limit.denied",
        extra={
            "key_type": key_type,
            "key_hash": hash_key(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "wait_s": result.wait_seconds,
        },
    )

    headers = rate_limit_headers(result) if settings.limiter.include_headers else None

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers,
    )
