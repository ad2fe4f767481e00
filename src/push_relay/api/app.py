"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from push_relay import __version__
from push_relay.api.middleware.cors import setup_cors
from push_relay.api.routes import router
from push_relay.config.settings import AppConfig
from push_relay.context import RelayContext
from push_relay.errors.relay_errors import RelayError
from push_relay.metrics.collector import RelayMetrics
from push_relay.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from push_relay.push.provider import PushProvider
    from push_relay.stream.client import Connector

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Builds the relay context (registry, dispatcher, stream client) on
    startup and shuts it down on exit. An undecodable snapshot aborts
    startup.
    """
    context = RelayContext(
        app.state.config,
        provider=app.state.provider,
        connector=app.state.connector,
        metrics=app.state.metrics,
    )
    try:
        await context.initialize()
        app.state.context = context
        logger.info("Push relay started")
        yield
    finally:
        await context.close()
        app.state.context = None
        logger.info("Push relay shut down")


def create_app(
    *,
    config: AppConfig | None = None,
    provider: PushProvider | None = None,
    connector: Connector | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
        provider: Push provider override (defaults to Expo).
        connector: Websocket connector override for the event stream.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="push-relay",
        version=__version__,
        description="Account activity push notification relay",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.provider = provider
    app.state.connector = connector
    app.state.metrics = RelayMetrics()
    app.state.context = None

    # -- Middleware --
    setup_cors(app)
    if config.metrics.enabled:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    # -- Error handlers --
    @app.exception_handler(RelayError)
    async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(app.state.metrics.registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    app.include_router(router)

    return app
