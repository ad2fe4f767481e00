"""Subscription registry — the address → device index.

Two maps are kept in lockstep:

- ``_subscriptions``: device token → :class:`Subscription`
- ``_address_index``: address → set of device tokens

After every public mutation the index is exactly the inverse of the
subscription set, no index entry is empty and no subscription has an
empty address set.

Each mutation runs to completion without yielding to the event loop and
only then awaits the snapshot write, so other coroutines never observe a
half-applied change.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from push_relay.errors.relay_errors import StoreError
from push_relay.registry.models import Subscription, utc_now
from push_relay.utils.address import normalize_address

if TYPE_CHECKING:
    from collections.abc import Iterable

    from push_relay.metrics.collector import RelayMetrics
    from push_relay.registry.store import SnapshotStore

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Bidirectional address/device index with snapshot persistence.

    Usage::

        registry = SubscriptionRegistry(SnapshotStore("subscriptions.json"))
        await registry.load()
        await registry.add_subscription("dev1", ["0xAA"], "ExponentPushToken[x]")
        registry.get_devices_for_address("0xaa")  # frozenset({"dev1"})
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        *,
        metrics: RelayMetrics | None = None,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._subscriptions: dict[str, Subscription] = {}
        self._address_index: dict[str, set[str]] = {}
        self._last_save_ok = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def subscription_count(self) -> int:
        """Number of devices with a subscription."""
        return len(self._subscriptions)

    @property
    def address_count(self) -> int:
        """Number of distinct addresses watched by at least one device."""
        return len(self._address_index)

    @property
    def last_save_ok(self) -> bool:
        """Whether the most recent snapshot write succeeded."""
        return self._last_save_ok

    def get_devices_for_address(self, address: str) -> frozenset[str]:
        """Return the device tokens subscribed to *address* (empty if none)."""
        return frozenset(self._address_index.get(normalize_address(address), ()))

    def get_subscription(self, device_token: str) -> Subscription | None:
        """Return the subscription for *device_token*, if any."""
        return self._subscriptions.get(device_token)

    def list_subscriptions(self) -> list[Subscription]:
        """Return every subscription, in registration order."""
        return list(self._subscriptions.values())

    def address_index(self) -> dict[str, frozenset[str]]:
        """Return a read-only copy of the address → devices index."""
        return {addr: frozenset(devs) for addr, devs in self._address_index.items()}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Replace in-memory state with the stored snapshot and rebuild the index.

        Raises:
            SnapshotError: If the snapshot exists but is undecodable.
        """
        if self._store is None:
            return
        self._subscriptions = await self._store.load()
        self._rebuild_index()
        self._update_gauges()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_subscription(
        self,
        device_token: str,
        addresses: Iterable[str],
        push_token: str | None,
    ) -> Subscription:
        """Subscribe *device_token* to *addresses*, replacing any prior subscription.

        Addresses already claimed by a different device holding the same
        push token are taken away from that device first; a device left
        with no addresses is dropped.

        Raises:
            ValueError: If *addresses* is empty.
        """
        normalized = {normalize_address(a) for a in addresses}
        if not normalized:
            msg = "addresses must not be empty"
            raise ValueError(msg)

        self._reassign(device_token, normalized, push_token)
        self._discard(device_token)

        sub = Subscription(
            device_token=device_token,
            addresses=normalized,
            push_token=push_token,
            created_at=utc_now(),
        )
        self._subscriptions[device_token] = sub
        for address in normalized:
            self._address_index.setdefault(address, set()).add(device_token)

        logger.info("Subscribed device %s to %d addresses", device_token, len(normalized))
        await self._persist()
        return sub

    async def remove_subscription(self, device_token: str) -> bool:
        """Drop *device_token*'s subscription.

        Returns:
            True if a subscription was removed, False if there was none.
        """
        if not self._discard(device_token):
            return False
        logger.info("Removed subscription for device %s", device_token)
        await self._persist()
        return True

    # ------------------------------------------------------------------
    # Internal helpers (never await)
    # ------------------------------------------------------------------

    def _reassign(self, device_token: str, addresses: set[str], push_token: str | None) -> None:
        if not push_token:
            return
        for address in addresses:
            holders = self._address_index.get(address)
            if not holders:
                continue
            for other in list(holders):
                if other == device_token:
                    continue
                other_sub = self._subscriptions.get(other)
                if other_sub is None or other_sub.push_token != push_token:
                    continue
                logger.info(
                    "Reassigning address %s from device %s to %s", address, other, device_token
                )
                other_sub.addresses.discard(address)
                holders.discard(other)
                if not other_sub.addresses:
                    del self._subscriptions[other]
            if not holders:
                del self._address_index[address]

    def _discard(self, device_token: str) -> bool:
        sub = self._subscriptions.pop(device_token, None)
        if sub is None:
            return False
        for address in sub.addresses:
            devices = self._address_index.get(address)
            if devices is None:
                continue
            devices.discard(device_token)
            if not devices:
                del self._address_index[address]
        return True

    def _rebuild_index(self) -> None:
        self._address_index = {}
        for token, sub in self._subscriptions.items():
            for address in sub.addresses:
                self._address_index.setdefault(address, set()).add(token)

    def _update_gauges(self) -> None:
        if self._metrics is not None:
            self._metrics.set_subscription_count(self.subscription_count)
            self._metrics.set_address_count(self.address_count)

    async def _persist(self) -> None:
        self._update_gauges()
        if self._store is None:
            return
        try:
            await self._store.save(self._subscriptions)
        except StoreError:
            # In-memory state stays authoritative until the next successful write.
            self._last_save_ok = False
            if self._metrics is not None:
                self._metrics.record_save_failure()
            logger.exception("Snapshot save failed; registry and snapshot diverge")
        else:
            self._last_save_ok = True
