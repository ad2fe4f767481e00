"""HTTP routes — subscription management, health and test notifications."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from push_relay.api.dependencies import get_context
from push_relay.api.schemas import (
    ActionResponse,
    BroadcastResponse,
    HealthResponse,
    StreamStatus,
    SubscribeRequest,
    SubscriptionInfo,
    SubscriptionListResponse,
    TestNotificationRequest,
)
from push_relay.context import RelayContext  # noqa: TC001
from push_relay.errors.definitions import (
    ErrInvalidAddress,
    ErrInvalidPushToken,
    ErrMissingAddresses,
    ErrMissingDeviceToken,
    ErrSubscriptionNotFound,
)
from push_relay.push.dispatcher import NotificationPayload
from push_relay.push.provider import is_expo_push_token
from push_relay.registry.models import Subscription  # noqa: TC001
from push_relay.utils.address import UNSUBSCRIBE_ALL_ADDRESS, is_account_address

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])

Context = Annotated[RelayContext, Depends(get_context)]


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _info(sub: Subscription, *, timestamp: datetime | None = None) -> SubscriptionInfo:
    return SubscriptionInfo(
        device_token=sub.device_token,
        addresses=sorted(sub.addresses),
        has_expo_push_token=sub.has_push_token,
        timestamp=timestamp,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", tags=["base"])
async def health(ctx: Context) -> dict[str, Any]:
    registry = ctx.registry
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        subscriptions=registry.subscription_count,
        monitored_addresses=registry.address_count,
        last_save_ok=registry.last_save_ok,
        stream=StreamStatus.model_validate(ctx.stream.status()),
    ).to_json()


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


@router.post("/subscribe")
async def subscribe(body: SubscribeRequest, ctx: Context) -> dict[str, Any]:
    """Subscribe a device to a set of addresses.

    A request containing the all-zero address removes the device's
    subscription instead.
    """
    if not body.device_token:
        raise ErrMissingDeviceToken
    addresses = body.addresses
    if not isinstance(addresses, list) or not addresses:
        raise ErrMissingAddresses
    if not all(is_account_address(a) for a in addresses):
        raise ErrInvalidAddress

    if any(a.lower() == UNSUBSCRIBE_ALL_ADDRESS for a in addresses):
        await ctx.registry.remove_subscription(body.device_token)
        return ActionResponse(
            message="Subscription removed successfully",
            device_token=body.device_token,
            timestamp=_now(),
        ).to_json()

    if not is_expo_push_token(body.expo_push_token):
        raise ErrInvalidPushToken

    sub = await ctx.registry.add_subscription(
        body.device_token, addresses, body.expo_push_token
    )
    logger.info("Subscription added for device %s: %s", sub.device_token, ", ".join(addresses))
    return ActionResponse(
        message="Subscription added successfully",
        device_token=sub.device_token,
        address_count=len(addresses),
        timestamp=_now(),
    ).to_json()


@router.get("/subscription/{device_token}")
async def get_subscription(device_token: str, ctx: Context) -> dict[str, Any]:
    sub = ctx.registry.get_subscription(device_token)
    if sub is None:
        raise ErrSubscriptionNotFound
    return _info(sub, timestamp=_now()).to_json()


@router.delete("/subscription/{device_token}")
async def delete_subscription(device_token: str, ctx: Context) -> dict[str, Any]:
    """Remove a device's subscription. Succeeds whether or not one existed."""
    removed = await ctx.registry.remove_subscription(device_token)
    return ActionResponse(
        message="Subscription removed successfully" if removed else "No subscription to remove",
        device_token=device_token,
        timestamp=_now(),
    ).to_json()


@router.get("/subscriptions")
async def list_subscriptions(ctx: Context) -> dict[str, Any]:
    """List every subscription (debugging aid)."""
    subs = [_info(sub) for sub in ctx.registry.list_subscriptions()]
    return SubscriptionListResponse(
        subscriptions=subs,
        total=len(subs),
        timestamp=_now(),
    ).to_json()


# ---------------------------------------------------------------------------
# Test notifications
# ---------------------------------------------------------------------------


@router.post("/test-notification", tags=["testing"])
async def test_notification(body: TestNotificationRequest, ctx: Context) -> dict[str, Any]:
    if not body.device_token:
        raise ErrMissingDeviceToken

    result = await ctx.dispatcher.send_notification(
        body.device_token,
        NotificationPayload(
            title=body.title or "Test Notification",
            body=body.body or "This is a test notification",
            data=body.data if body.data is not None else {"test": True},
        ),
    )
    return ActionResponse(
        message="Test notification sent",
        result=result.to_dict(),
        timestamp=_now(),
    ).to_json()


@router.get("/broadcast", tags=["testing"])
async def broadcast(ctx: Context) -> dict[str, Any]:
    """Send a test notification to every subscribed device."""
    now = _now()
    results = await ctx.dispatcher.broadcast(
        NotificationPayload(
            title="⏰ Test Notification",
            body=f"Ping from server at {now:%H:%M:%S}",
            data={"type": "server-test", "timestamp": now.isoformat()},
        )
    )
    failed = sum(1 for r in results.values() if not r.success)
    return BroadcastResponse(
        message="Broadcast notification sent to all subscribed devices",
        sent=len(results) - failed,
        failed=failed,
        timestamp=now,
    ).to_json()
