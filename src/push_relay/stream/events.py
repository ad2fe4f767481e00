"""Event types carried on the collector stream.

Every frame is an envelope ``{"event": str, "data": str}`` where ``data``
is a JSON document whose schema belongs to the event type.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

APP_RECEIPT_EVENT = "/data/appReceipt"


class StreamFrame(BaseModel):
    """Inbound frame envelope."""

    model_config = ConfigDict(frozen=True)

    event: str
    data: str


class AppReceipt(BaseModel):
    """Application receipt for a processed transaction."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tx_id: str = Field(alias="txId")
    timestamp: int
    success: bool
    reason: str | None = None
    from_: str = Field(alias="from")
    to: str | None = None
    type: str
    transaction_fee: Any = Field(default=None, alias="transactionFee")
    additional_info: dict[str, Any] | None = Field(default=None, alias="additionalInfo")
