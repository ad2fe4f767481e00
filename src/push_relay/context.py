"""RelayContext — the one object owning registry, dispatcher and stream client.

Built once at startup and handed to the HTTP layer (``app.state``) and the
stream callback; there is no module-level service state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from push_relay.metrics.collector import RelayMetrics
from push_relay.push.dispatcher import NotificationDispatcher
from push_relay.push.provider import ExpoPushProvider
from push_relay.registry.service import SubscriptionRegistry
from push_relay.registry.store import SnapshotStore
from push_relay.relay.receipts import ReceiptRelay
from push_relay.stream.client import EventStreamClient

if TYPE_CHECKING:
    from push_relay.config.settings import AppConfig
    from push_relay.push.provider import PushProvider
    from push_relay.stream.client import Connector

logger = logging.getLogger(__name__)

_ERR_NOT_INITIALIZED = "Relay context not initialized. Call initialize() first."


class RelayContext:
    """Owns every relay component and their lifecycle.

    Usage::

        ctx = RelayContext(config)
        await ctx.initialize()   # loads the snapshot, connects the stream
        ...
        await ctx.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        provider: PushProvider | None = None,
        connector: Connector | None = None,
        metrics: RelayMetrics | None = None,
    ) -> None:
        self._config = config
        self._provider: PushProvider = provider or ExpoPushProvider(config.push)
        self._connector = connector
        self._metrics = metrics or RelayMetrics()
        self._initialized = False

        self._registry: SubscriptionRegistry | None = None
        self._dispatcher: NotificationDispatcher | None = None
        self._relay: ReceiptRelay | None = None
        self._stream: EventStreamClient | None = None

    async def initialize(self) -> None:
        """Load subscriptions, connect the push provider and start the stream.

        Raises:
            RuntimeError: If already initialized.
            SnapshotError: If the stored snapshot is undecodable.
        """
        if self._initialized:
            msg = "Relay context already initialized"
            raise RuntimeError(msg)

        store = SnapshotStore(
            self._config.store.path,
            write_timeout=self._config.store.write_timeout,
        )
        self._registry = SubscriptionRegistry(store, metrics=self._metrics)
        await self._registry.load()

        await self._provider.connect()
        self._dispatcher = NotificationDispatcher(
            self._registry,
            self._provider,
            timeout=self._config.push.timeout + 5.0,
            metrics=self._metrics,
        )
        self._relay = ReceiptRelay(self._registry, self._dispatcher)

        self._stream = EventStreamClient.from_config(
            self._config.stream, connector=self._connector, metrics=self._metrics
        )
        self._stream.on_data(self._relay.handle_frame)
        if self._config.enable_stream:
            self._stream.connect()

        self._initialized = True
        logger.info(
            "Relay ready: %d subscriptions, %d monitored addresses",
            self._registry.subscription_count,
            self._registry.address_count,
        )

    async def close(self) -> None:
        """Stop the stream and release the provider. Idempotent."""
        if not self._initialized:
            return

        if self._stream is not None:
            await self._stream.disconnect()
            self._stream = None
        await self._provider.close()

        self._relay = None
        self._dispatcher = None
        self._registry = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the context is initialized."""
        return self._initialized

    @property
    def metrics(self) -> RelayMetrics:
        """Return the metrics collector."""
        return self._metrics

    @property
    def registry(self) -> SubscriptionRegistry:
        """Return the subscription registry.

        Raises:
            RuntimeError: If not initialized.
        """
        if self._registry is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._registry

    @property
    def dispatcher(self) -> NotificationDispatcher:
        """Return the notification dispatcher.

        Raises:
            RuntimeError: If not initialized.
        """
        if self._dispatcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._dispatcher

    @property
    def relay(self) -> ReceiptRelay:
        """Return the receipt relay."""
        if self._relay is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._relay

    @property
    def stream(self) -> EventStreamClient:
        """Return the event-stream client."""
        if self._stream is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._stream
