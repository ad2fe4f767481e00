"""Event stream — resilient websocket client for the upstream collector."""

from __future__ import annotations

from push_relay.stream.client import ConnectionState, EventStreamClient
from push_relay.stream.events import APP_RECEIPT_EVENT, AppReceipt, StreamFrame

__all__ = [
    "APP_RECEIPT_EVENT",
    "AppReceipt",
    "ConnectionState",
    "EventStreamClient",
    "StreamFrame",
]
