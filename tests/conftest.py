"""Shared test fixtures for the push-relay test suite."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import pytest
from websockets.protocol import State

from push_relay.push.provider import PushProvider, PushTicket
from push_relay.registry.store import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from push_relay.push.provider import PushMessage

PUSH_A = "ExponentPushToken[aaaaaaaaaaaaaaaaaaaaaa]"
PUSH_B = "ExponentPushToken[bbbbbbbbbbbbbbbbbbbbbb]"
ADDR_1 = "ab" * 32
ADDR_2 = "cd" * 32
ADDR_3 = "ef" * 32


class FakeProvider(PushProvider):
    """Records sends; tokens listed in ``fail`` raise, in ``reject`` get error tickets."""

    def __init__(
        self,
        *,
        fail: dict[str, BaseException] | None = None,
        reject: set[str] | None = None,
    ) -> None:
        self.sent: list[tuple[str, PushMessage]] = []
        self.fail = fail or {}
        self.reject = reject or set()
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def send(self, push_token: str, message: PushMessage) -> PushTicket:
        self.sent.append((push_token, message))
        if push_token in self.fail:
            raise self.fail[push_token]
        if push_token in self.reject:
            return PushTicket(
                status="error",
                message="not registered",
                details={"error": "DeviceNotRegistered"},
            )
        return PushTicket(status="ok", id=f"ticket-{len(self.sent)}")


class SlowFirstWriteStore(SnapshotStore):
    """Snapshot store whose first file write stalls in the writer thread."""

    def __init__(self, path: Any, *, delay: float, write_timeout: float = 5.0) -> None:
        super().__init__(path, write_timeout=write_timeout)
        self.delay = delay
        self.writes = 0

    def _write(self, data: str) -> None:
        self.writes += 1
        if self.writes == 1:
            time.sleep(self.delay)
        super()._write(data)


class FakeConnection:
    """Stand-in for a websockets client connection.

    Yields the queued messages, then either stays open until ``close()``
    (``hold=True``) or ends as if the server closed the socket.
    """

    def __init__(self, messages: list[Any] | None = None, *, hold: bool = True) -> None:
        self._messages = list(messages or [])
        self._hold = hold
        self._closed = asyncio.Event()
        self.state = State.OPEN

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message
        if self._hold:
            await self._closed.wait()
        self.state = State.CLOSED

    async def close(self) -> None:
        self.state = State.CLOSED
        self._closed.set()


class FakeConnector:
    """Connector returning queued outcomes; raises ``OSError`` once they run out."""

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0
        self.urls: list[str] = []

    async def __call__(self, url: str) -> Any:
        self.calls += 1
        self.urls.append(url)
        outcome = self._outcomes.pop(0) if self._outcomes else OSError("connection refused")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            msg = "condition not met before timeout"
            raise AssertionError(msg)
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "subscriptions.json"


@pytest.fixture
def app_config(snapshot_path):
    """Provide a test AppConfig with the stream disabled and a temp snapshot."""
    from push_relay.config.settings import AppConfig, StoreConfig, StreamConfig

    return AppConfig(
        debug=True,
        enable_stream=False,
        store=StoreConfig(path=str(snapshot_path)),
        stream=StreamConfig(reconnect_delay=0, max_reconnect_attempts=2),
    )
