"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated instances with their own limiters, clock and provider.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from app.adapters.auth.base import AbstractAuthProvider
from app.adapters.auth.factory import create_auth_provider
from app.adapters.rate_limit.in_memory import monotonic_ms
from app.api.routes import admin_router, auth_router, health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import (
    AUTH_POLICY,
    RateLimiterRegistry,
    policies_from_settings,
    run_sweeper,
)
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    interval = settings.app.rate_limit_sweep_interval_seconds
    sweeper: asyncio.Task | None = None
    if interval > 0:
        sweeper = asyncio.create_task(run_sweeper(app.state.rate_limiters, interval))
        logger.info("rate_limit.sweeper_started", extra={"interval_s": interval})
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper


def create_app(
    *,
    auth_provider: AbstractAuthProvider | None = None,
    clock: Callable[[], float] = monotonic_ms,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        auth_provider: Identity provider; built from settings when omitted.
        clock: Millisecond clock shared by every rate limiter.

    Returns:
        Configured FastAPI app.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Watchlist Guard API",
        description=(
            "Authentication endpoints for the watchlist app, protected by "
            "per-client sliding-window rate limits."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_lifespan,
    )

    registry = RateLimiterRegistry.from_policies(policies_from_settings(), clock=clock)
    app.state.rate_limiters = registry
    app.state.auth_service = AuthService(
        provider=auth_provider or create_auth_provider(),
        limiter=registry.get(AUTH_POLICY),
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(auth_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
