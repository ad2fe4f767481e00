"""Prometheus metrics for push-relay."""

from __future__ import annotations

from push_relay.metrics.collector import MetricsCollector, RelayMetrics
from push_relay.metrics.middleware import PrometheusMiddleware

__all__ = ["MetricsCollector", "PrometheusMiddleware", "RelayMetrics"]
