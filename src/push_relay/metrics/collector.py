"""Metrics collector — Prometheus counters, gauges, histograms.

- ``push_relay_stats_total`` gauge-vec (subscriptions, addresses)
- ``push_relay_notifications_total`` counter by result
- ``push_relay_send_histogram``
- ``push_relay_stream_frames_total`` counter by event
- ``push_relay_stream_frames_dropped_total``
- ``push_relay_stream_reconnects_total``
- ``push_relay_snapshot_save_failures_total``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "push_relay"

_STAT_LABELS = ("entity",)


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`RelayMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class RelayMetrics:
    """High-level relay metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._stats = self._collector.gauge(
            f"{_PREFIX}_stats_total",
            "Entity counts in the subscription registry",
            _STAT_LABELS,
        )
        self._notifications = self._collector.counter(
            f"{_PREFIX}_notifications",
            "Push notifications attempted, by result",
            ("result",),
        )
        self._send = self._collector.histogram(
            f"{_PREFIX}_send_histogram",
            "Duration of push provider send calls",
        )
        self._frames = self._collector.counter(
            f"{_PREFIX}_stream_frames",
            "Event-stream frames received, by event name",
            ("event",),
        )
        self._frames_dropped = self._collector.counter(
            f"{_PREFIX}_stream_frames_dropped",
            "Event-stream frames dropped as malformed",
        )
        self._reconnects = self._collector.counter(
            f"{_PREFIX}_stream_reconnects",
            "Event-stream reconnect attempts scheduled",
        )
        self._save_failures = self._collector.counter(
            f"{_PREFIX}_snapshot_save_failures",
            "Failed snapshot writes",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Stat setters --

    def set_subscription_count(self, count: int) -> None:
        """Set the current number of device subscriptions."""
        self._stats.labels(entity="subscriptions").set(count)

    def set_address_count(self, count: int) -> None:
        """Set the current number of monitored addresses."""
        self._stats.labels(entity="addresses").set(count)

    # -- Counters --

    def record_notification(self, *, success: bool) -> None:
        self._notifications.labels(result="success" if success else "failure").inc()

    def record_frame(self, event: str) -> None:
        self._frames.labels(event=event).inc()

    def record_frame_dropped(self) -> None:
        self._frames_dropped.inc()

    def record_reconnect(self) -> None:
        self._reconnects.inc()

    def record_save_failure(self) -> None:
        self._save_failures.inc()

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_send(self) -> Iterator[None]:
        """Track the duration of a push provider call."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._send.observe(time.monotonic() - start)
