"""Application factory for the limiter HTTP service.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI

from leakybucket.api.routes import health_router, limits_router
from leakybucket.core.config import settings
from leakybucket.core.exception_handlers import setup_exception_handlers
from leakybucket.core.logging import configure_logging
from leakybucket.core.middleware import request_id_middleware
from leakybucket.core.rate_limit import enforce_rate_limit


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Leaky Bucket Limiter",
        description=(
            "Per-key leaky-bucket admission. Buckets hold up to `burst` units, "
            "drain one unit per admitted action and refill at `rate` units per "
            "`interval`."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(limits_router, prefix="/v1")

    @app.get("/v1/ping", tags=["Demo"], dependencies=[Depends(enforce_rate_limit)])
    def ping() -> dict:
        """Rate-limited demo endpoint keyed by X-API-Key or client IP."""
        return {"pong": True}

    return app
