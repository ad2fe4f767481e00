"""Receipt relay — turns collector receipts into push notifications.

Only successful ``message`` and ``transfer`` receipts that target a
watched address produce notifications. Everything else is dropped.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from push_relay.push.dispatcher import NotificationPayload
from push_relay.stream.events import APP_RECEIPT_EVENT, AppReceipt
from push_relay.utils.address import to_display_address

if TYPE_CHECKING:
    from push_relay.push.dispatcher import NotificationDispatcher, NotificationResult
    from push_relay.registry.service import SubscriptionRegistry
    from push_relay.stream.events import StreamFrame

logger = logging.getLogger(__name__)

TOKEN_SYMBOL = "LIB"
TOKEN_DECIMALS = 18


def parse_amount(value: Any) -> int | None:
    """Read an on-chain integer amount.

    Accepts ints, decimal or ``0x`` hex strings, and the serialized big-int
    form ``{"dataType": "bi", "value": "<hex>"}``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, dict) and value.get("dataType") == "bi":
        try:
            return int(str(value.get("value", "")), 16)
        except ValueError:
            return None
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            return None
    return None


def format_amount(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Format a base-unit amount as a plain decimal string (``1500000000000000000`` → ``1.5``)."""
    try:
        value = (Decimal(amount) / (Decimal(10) ** decimals)).normalize()
    except InvalidOperation:
        return ""
    return format(value, "f")


def build_payload(receipt: AppReceipt) -> NotificationPayload | None:
    """Build the notification for *receipt*, or None if it isn't notifiable."""
    sender = to_display_address(receipt.from_)

    if receipt.type == "message":
        title = "📬 New Message"
        body = f"📧 You have a new message from {sender}."
    elif receipt.type == "transfer":
        info = receipt.additional_info or {}
        raw = parse_amount(info.get("amount"))
        amount = format_amount(raw) if raw is not None else ""
        title = "💳 Payment Received"
        body = f"💰 You received {amount} {TOKEN_SYMBOL} from {sender}."
    else:
        return None

    sent_at = datetime.fromtimestamp(receipt.timestamp / 1000, tz=UTC)
    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": receipt.type,
            "from": sender,
            "timestamp": sent_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        },
    )


class ReceiptRelay:
    """Stream handler routing receipts to subscribed devices."""

    def __init__(self, registry: SubscriptionRegistry, dispatcher: NotificationDispatcher) -> None:
        self._registry = registry
        self._dispatcher = dispatcher

    async def handle_frame(self, frame: StreamFrame) -> None:
        """Entry point registered with ``EventStreamClient.on_data``."""
        if frame.event != APP_RECEIPT_EVENT:
            logger.info("Received unknown event: %s", frame.event)
            return

        try:
            receipt = AppReceipt.model_validate_json(frame.data)
        except ValidationError as exc:
            logger.warning("Dropping undecodable receipt: %s", exc)
            return

        await self.process_receipt(receipt)

    async def process_receipt(self, receipt: AppReceipt) -> dict[str, NotificationResult]:
        """Notify every device watching the receipt's recipient."""
        if not receipt.success or not receipt.to:
            return {}

        devices = self._registry.get_devices_for_address(receipt.to)
        if not devices:
            return {}

        payload = build_payload(receipt)
        if payload is None:
            logger.debug("No notification for %s receipt %s", receipt.type, receipt.tx_id)
            return {}

        results = await self._dispatcher.send_many(devices, payload)
        logger.info(
            "Sent %d notifications for %s to %s",
            sum(1 for r in results.values() if r.success),
            receipt.type,
            to_display_address(receipt.to),
        )
        return results
