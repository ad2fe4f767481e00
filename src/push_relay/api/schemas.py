"""API request/response Pydantic schemas.

Field names are snake_case in Python and camelCase on the wire
(``deviceToken``, ``expoPushToken``, ``monitoredAddresses``...).
Request fields are all optional so the routes can report missing values
with their own error codes instead of a generic 422.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        """Dump for a JSON response body."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SubscribeRequest(CamelModel):
    """POST /subscribe."""

    device_token: str | None = None
    addresses: Any = None
    expo_push_token: str | None = None


class TestNotificationRequest(CamelModel):
    """POST /test-notification."""

    __test__ = False

    device_token: str | None = None
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ActionResponse(CamelModel):
    """Generic success acknowledgement."""

    success: bool = True
    message: str
    timestamp: datetime
    device_token: str | None = None
    address_count: int | None = None
    result: dict[str, Any] | None = None


class SubscriptionInfo(CamelModel):
    """GET /subscription/{deviceToken}."""

    device_token: str
    addresses: list[str]
    has_expo_push_token: bool
    timestamp: datetime | None = None


class SubscriptionListResponse(CamelModel):
    """GET /subscriptions."""

    subscriptions: list[SubscriptionInfo]
    total: int
    timestamp: datetime


class StreamStatus(CamelModel):
    state: str
    connected: bool
    reconnect_attempts: int
    gave_up: bool


class HealthResponse(CamelModel):
    """GET /health."""

    status: str
    timestamp: datetime
    subscriptions: int
    monitored_addresses: int
    last_save_ok: bool
    stream: StreamStatus | None = None


class BroadcastResponse(CamelModel):
    """GET /broadcast."""

    success: bool = True
    message: str
    sent: int
    failed: int
    timestamp: datetime
