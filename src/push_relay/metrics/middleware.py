"""Prometheus HTTP request metrics middleware for FastAPI.

Tracks:
- ``push_relay_http_requests_total`` (counter) by method, route, status
- ``push_relay_http_request_duration_seconds`` (histogram) by method, route

Routes are labelled by their template (``/subscription/{device_token}``),
never by the concrete path, so device tokens don't become label values.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

_UNMATCHED = "<unmatched>"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", _UNMATCHED)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that records request count and duration."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "push_relay_http_requests",
            "HTTP requests handled",
            ("method", "route", "status_code"),
            registry=registry,
        )
        self._latency = Histogram(
            "push_relay_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "route"),
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        """Time the request and count it by route template."""
        start = time.monotonic()
        response: Response = await call_next(request)
        elapsed = time.monotonic() - start

        route = _route_template(request)
        self._requests.labels(request.method, route, str(response.status_code)).inc()
        self._latency.labels(request.method, route).observe(elapsed)
        return response
