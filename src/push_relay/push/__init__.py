"""Push delivery — Expo provider and per-device notification dispatch."""

from __future__ import annotations

from push_relay.push.dispatcher import (
    NotificationDispatcher,
    NotificationPayload,
    NotificationResult,
)
from push_relay.push.provider import ExpoPushProvider, PushMessage, PushProvider, PushTicket

__all__ = [
    "ExpoPushProvider",
    "NotificationDispatcher",
    "NotificationPayload",
    "NotificationResult",
    "PushMessage",
    "PushProvider",
    "PushTicket",
]
