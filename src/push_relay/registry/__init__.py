"""Subscription registry — address to device index with snapshot persistence.

Provides:
- ``Subscription`` — one device's watched addresses and push token
- ``SnapshotStore`` — full-file JSON snapshot of the subscription set
- ``SubscriptionRegistry`` — bidirectional index with reassignment rules
"""

from __future__ import annotations

from push_relay.registry.models import Subscription
from push_relay.registry.service import SubscriptionRegistry
from push_relay.registry.store import SnapshotStore

__all__ = [
    "SnapshotStore",
    "Subscription",
    "SubscriptionRegistry",
]
