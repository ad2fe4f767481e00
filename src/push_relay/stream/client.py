"""Event-stream client — one reconnecting websocket to the collector.

Lifecycle::

    DISCONNECTED → CONNECTING → OPEN
    OPEN --close/error--> DISCONNECTED --delay--> CONNECTING ...

Reconnects use a fixed delay and a bounded attempt budget. When the
budget is spent the client stays DISCONNECTED for good and ``gave_up``
turns True; only a successful open resets the counter.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import functools
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from push_relay.stream.events import StreamFrame

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from push_relay.config.settings import StreamConfig
    from push_relay.metrics.collector import RelayMetrics

    DataHandler = Callable[[StreamFrame], Awaitable[None]]
    Connector = Callable[[str], Awaitable[Any]]

logger = logging.getLogger(__name__)

# Errors raised while opening or reading a connection. All of them end in
# the close/reconnect path, none reach the caller.
_TRANSPORT_ERRORS = (OSError, TimeoutError, WebSocketException)


class ConnectionState(enum.StrEnum):
    """Transport state reported by :meth:`EventStreamClient.get_connection_state`."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    UNKNOWN = "UNKNOWN"


class EventStreamClient:
    """Single-connection websocket subscriber with bounded fixed-delay retry.

    Usage::

        client = EventStreamClient("ws://localhost:4444", max_reconnect_attempts=5)
        client.on_data(handle_frame)
        client.connect()
        ...
        await client.disconnect()
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        open_timeout: float = 10.0,
        verbose: bool = False,
        connector: Connector | None = None,
        metrics: RelayMetrics | None = None,
    ) -> None:
        self._url = url
        self._reconnect_delay = reconnect_delay
        self._max_attempts = max_reconnect_attempts
        self._verbose = verbose
        self._connector = connector or functools.partial(ws_connect, open_timeout=open_timeout)
        self._metrics = metrics

        self._handler: DataHandler | None = None
        self._ws: Any = None
        self._conn_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._attempts = 0
        self._gave_up = False
        self._closing = False

    @classmethod
    def from_config(
        cls,
        config: StreamConfig,
        *,
        connector: Connector | None = None,
        metrics: RelayMetrics | None = None,
    ) -> EventStreamClient:
        """Build a client from ``StreamConfig``."""
        return cls(
            config.url,
            reconnect_delay=config.reconnect_delay,
            max_reconnect_attempts=config.max_reconnect_attempts,
            open_timeout=config.open_timeout,
            verbose=config.verbose,
            connector=connector,
            metrics=metrics,
        )

    # ------------------------------------------------------------------
    # Properties / queries
    # ------------------------------------------------------------------

    @property
    def url(self) -> str:
        """Return the event source URL."""
        return self._url

    @property
    def reconnect_attempts(self) -> int:
        """Reconnects scheduled since the last successful open."""
        return self._attempts

    @property
    def gave_up(self) -> bool:
        """Whether the retry budget is exhausted (terminal failure)."""
        return self._gave_up

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect timer is currently scheduled."""
        return self._reconnect_task is not None

    def is_connected(self) -> bool:
        """Return True if the websocket is open."""
        return self.get_connection_state() == ConnectionState.OPEN

    def get_connection_state(self) -> ConnectionState:
        """Return the current transport state."""
        if self._ws is None:
            if self._conn_task is not None and not self._conn_task.done():
                return ConnectionState.CONNECTING
            return ConnectionState.DISCONNECTED
        state = getattr(self._ws, "state", None)
        name = getattr(state, "name", None)
        try:
            return ConnectionState(name)
        except ValueError:
            return ConnectionState.UNKNOWN

    def status(self) -> dict[str, Any]:
        """Summarize the connection for health reporting."""
        return {
            "state": self.get_connection_state().value,
            "connected": self.is_connected(),
            "reconnectAttempts": self._attempts,
            "gaveUp": self._gave_up,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on_data(self, handler: DataHandler | None) -> None:
        """Set the frame handler, replacing any previous one."""
        self._handler = handler

    def connect(self) -> None:
        """Start a connection attempt unless one is already live or in flight.

        Starting from idle, including after the client gave up, resets the
        reconnect counter.

        Must be called from within a running event loop.
        """
        self._closing = False
        idle = self._reconnect_task is None and (
            self._conn_task is None or self._conn_task.done()
        )
        if idle:
            self._attempts = 0
            self._gave_up = False
        self._open()

    async def disconnect(self) -> None:
        """Close the connection and cancel any pending reconnect."""
        self._closing = True

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        if self._ws is not None:
            logger.info("Shutting down event-stream subscriber")
            with contextlib.suppress(*_TRANSPORT_ERRORS):
                await self._ws.close()

        task = self._conn_task
        self._conn_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._ws = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self) -> None:
        if self._conn_task is not None and not self._conn_task.done():
            return
        if self._verbose:
            logger.info("Connecting to collector server at %s", self._url)
        self._conn_task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            ws = await self._connector(self._url)
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Connection to %s failed: %s", self._url, exc)
            self._handle_close()
            return

        self._ws = ws
        self._handle_open()
        try:
            async for raw in ws:
                await self._handle_message(raw)
        except ConnectionClosed as exc:
            logger.warning("Connection to %s closed: %s", self._url, exc)
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Connection to %s errored: %s", self._url, exc)
        else:
            logger.info("Connection to %s closed", self._url)
        finally:
            self._ws = None
        self._handle_close()

    def _handle_open(self) -> None:
        logger.info("Connected to collector server at %s", self._url)
        self._attempts = 0
        self._gave_up = False

    def _handle_close(self) -> None:
        self._ws = None
        if self._closing:
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None:
            return
        if self._attempts >= self._max_attempts:
            if not self._gave_up:
                self._gave_up = True
                logger.error(
                    "Max reconnection attempts (%d) reached for %s. Giving up.",
                    self._max_attempts,
                    self._url,
                )
            return

        self._attempts += 1
        if self._metrics is not None:
            self._metrics.record_reconnect()
        logger.warning(
            "Reconnecting to %s in %.1fs (%d/%d)",
            self._url,
            self._reconnect_delay,
            self._attempts,
            self._max_attempts,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_later())

    async def _reconnect_later(self) -> None:
        try:
            await asyncio.sleep(self._reconnect_delay)
        finally:
            self._reconnect_task = None
        self._open()

    async def _handle_message(self, raw: str | bytes) -> None:
        try:
            frame = StreamFrame.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Dropping malformed frame from %s: %s", self._url, exc)
            if self._metrics is not None:
                self._metrics.record_frame_dropped()
            return

        if self._verbose:
            logger.info("Received %s frame (%d bytes)", frame.event, len(frame.data))
        if self._metrics is not None:
            self._metrics.record_frame(frame.event)

        handler = self._handler
        if handler is None:
            return
        try:
            await handler(frame)
        except Exception:
            logger.exception("Data handler failed for %s frame", frame.event)
