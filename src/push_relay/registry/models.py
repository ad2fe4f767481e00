"""Subscription record and its snapshot schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


@dataclass
class Subscription:
    """A device's watched addresses.

    Attributes:
        device_token: Client-supplied device identifier (unique key).
        addresses: Normalized addresses; never empty while registered.
        push_token: Expo push token, or None if not yet deliverable.
        created_at: Creation time, never modified.
    """

    device_token: str
    addresses: set[str] = field(default_factory=set)
    push_token: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def has_push_token(self) -> bool:
        return bool(self.push_token)


# ---------------------------------------------------------------------------
# Snapshot file schema
# ---------------------------------------------------------------------------


class SubscriptionRecord(BaseModel):
    """One entry of the ``subscriptions`` map in the snapshot file."""

    model_config = ConfigDict(populate_by_name=True)

    addresses: list[str]
    expo_push_token: str | None = Field(default=None, alias="expoPushToken")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_subscription(cls, sub: Subscription) -> SubscriptionRecord:
        return cls(
            addresses=sorted(sub.addresses),
            expo_push_token=sub.push_token,
            created_at=sub.created_at,
        )

    def to_subscription(self, device_token: str) -> Subscription:
        return Subscription(
            device_token=device_token,
            addresses={a.lower() for a in self.addresses},
            push_token=self.expo_push_token,
            created_at=self.created_at,
        )


class Snapshot(BaseModel):
    """Top-level snapshot document."""

    model_config = ConfigDict(populate_by_name=True)

    subscriptions: dict[str, SubscriptionRecord] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=utc_now, alias="lastUpdated")
