"""Application factory for FastAPI app.

Centralizes app construction (logging, middleware, handlers, routers) so tests
can build an app around their own Limiter and store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI

from quotagate.adapters.rate_limit.redis import RedisCounterStore, create_redis_client
from quotagate.api.routes import health_router, quota_router
from quotagate.core.builder import LimiterBuilder
from quotagate.core.config import Settings, settings as default_settings
from quotagate.core.exception_handlers import setup_exception_handlers
from quotagate.core.limiter import Limiter
from quotagate.core.logging import configure_logging
from quotagate.core.middleware import request_id_middleware
from quotagate.core.rate_limit import RateLimitMiddleware

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    limiter: Limiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; the global settings if omitted.
        limiter: Pre-built limiter. When omitted and rate limiting is enabled,
            one is built from settings around a Redis store, and the Redis
            client is closed on shutdown.

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationAppError: If the rate limit settings are invalid.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    redis_client = None
    if limiter is None and cfg.limiter.enabled:
        redis_client = create_redis_client(cfg.redis)
        limiter = LimiterBuilder.from_settings(
            RedisCounterStore(redis_client), cfg.limiter
        ).build()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="quotagate",
        description=(
            "Fixed-window request admission control backed by a shared Redis "
            "counter. Metered responses carry X-RateLimit-Limit, "
            "X-RateLimit-Remaining and X-RateLimit-Reset; denials answer 429 "
            "with Retry-After."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware order: LAST added runs FIRST, so the request id is set
    # before the limiter logs anything.
    if limiter is not None:
        app.add_middleware(RateLimitMiddleware, limiter=limiter)
        logger.info(
            "rate_limit.configured",
            extra={
                "limit": limiter.config.limit,
                "window_s": limiter.config.period_seconds,
                "key_sources": [s.value for s in limiter.config.resolver.sources],
                "unresolved_key_policy": limiter.config.unresolved_key_policy.value,
                "store_error_policy": limiter.config.store_error_policy.value,
            },
        )
    app.middleware("http")(
        partial(request_id_middleware, header_name=cfg.log.request_id_header)
    )

    setup_exception_handlers(app)

    app.include_router(quota_router, prefix="/v1")
    app.include_router(health_router)

    return app
