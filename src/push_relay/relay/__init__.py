"""Relay — application logic between the event stream and the dispatcher."""

from __future__ import annotations

from push_relay.relay.receipts import ReceiptRelay, build_payload

__all__ = ["ReceiptRelay", "build_payload"]
