"""Tests for EventStreamClient — reconnect budget, frame handling, shutdown."""

from __future__ import annotations

import asyncio
import json

from push_relay.config.settings import StreamConfig
from push_relay.metrics.collector import RelayMetrics
from push_relay.stream.client import ConnectionState, EventStreamClient
from push_relay.stream.events import StreamFrame

from ..conftest import FakeConnection, FakeConnector, wait_until

URL = "ws://collector.test:4444"


def _frame(event: str = "/data/appReceipt", data: str = "{}") -> str:
    return json.dumps({"event": event, "data": data})


def _client(connector: FakeConnector, **kwargs) -> EventStreamClient:
    kwargs.setdefault("reconnect_delay", 0)
    kwargs.setdefault("max_reconnect_attempts", 2)
    return EventStreamClient(URL, connector=connector, **kwargs)


class TestConnectionState:
    def test_enum_values(self) -> None:
        assert ConnectionState.OPEN == "OPEN"
        assert {s.value for s in ConnectionState} == {
            "DISCONNECTED",
            "CONNECTING",
            "OPEN",
            "CLOSING",
            "CLOSED",
            "UNKNOWN",
        }

    def test_initially_disconnected(self) -> None:
        client = _client(FakeConnector())
        assert client.get_connection_state() == ConnectionState.DISCONNECTED
        assert client.is_connected() is False
        assert client.gave_up is False

    def test_from_config(self) -> None:
        cfg = StreamConfig(host="collector", port=9000, max_reconnect_attempts=7)
        client = EventStreamClient.from_config(cfg)
        assert client.url == "ws://collector:9000/"
        assert client.status()["reconnectAttempts"] == 0


class TestReconnectBudget:
    async def test_three_closes_with_two_attempts_gives_up(self) -> None:
        connector = FakeConnector()  # every attempt is refused
        client = _client(connector, max_reconnect_attempts=2)

        client.connect()
        await wait_until(lambda: client.gave_up)

        assert connector.calls == 3
        assert client.reconnect_attempts == 2
        assert client.reconnect_pending is False
        await asyncio.sleep(0.05)
        assert connector.calls == 3
        assert client.get_connection_state() == ConnectionState.DISCONNECTED
        assert client.status()["gaveUp"] is True

    async def test_manual_connect_after_giving_up_restores_budget(self) -> None:
        connector = FakeConnector()
        client = _client(connector, max_reconnect_attempts=2)

        client.connect()
        await wait_until(lambda: client.gave_up)
        assert connector.calls == 3

        client.connect()
        assert client.gave_up is False
        assert client.reconnect_attempts == 0
        await wait_until(lambda: client.gave_up)

        assert connector.calls == 6
        assert client.reconnect_attempts == 2

    async def test_zero_budget_never_retries(self) -> None:
        connector = FakeConnector()
        client = _client(connector, max_reconnect_attempts=0)
        client.connect()
        await wait_until(lambda: client.gave_up)
        assert connector.calls == 1

    async def test_successful_open_resets_counter(self) -> None:
        conn = FakeConnection()
        connector = FakeConnector(OSError("refused"), conn)
        client = _client(connector)

        client.connect()
        await wait_until(client.is_connected)

        assert connector.calls == 2
        assert client.reconnect_attempts == 0
        assert client.get_connection_state() == ConnectionState.OPEN
        await client.disconnect()

    async def test_server_close_triggers_reconnect(self) -> None:
        first = FakeConnection(hold=False)
        second = FakeConnection()
        connector = FakeConnector(first, second)
        client = _client(connector)

        client.connect()
        await wait_until(lambda: connector.calls == 2 and client.is_connected())
        assert client.reconnect_attempts == 0
        await client.disconnect()

    async def test_reconnect_metric(self) -> None:
        metrics = RelayMetrics()
        client = _client(FakeConnector(), metrics=metrics)
        client.connect()
        await wait_until(lambda: client.gave_up)
        assert metrics.registry.get_sample_value("push_relay_stream_reconnects_total") == 2

    async def test_connect_while_live_is_noop(self) -> None:
        connector = FakeConnector(FakeConnection())
        client = _client(connector)
        client.connect()
        await wait_until(client.is_connected)
        client.connect()
        await asyncio.sleep(0.01)
        assert connector.calls == 1
        await client.disconnect()


class TestDisconnect:
    async def test_disconnect_cancels_pending_reconnect(self) -> None:
        connector = FakeConnector()
        client = _client(connector, reconnect_delay=10, max_reconnect_attempts=5)

        client.connect()
        await wait_until(lambda: client.reconnect_pending)
        await client.disconnect()

        assert client.reconnect_pending is False
        await asyncio.sleep(0.05)
        assert connector.calls == 1

    async def test_disconnect_does_not_reconnect(self) -> None:
        conn = FakeConnection()
        connector = FakeConnector(conn)
        client = _client(connector)

        client.connect()
        await wait_until(client.is_connected)
        await client.disconnect()
        await asyncio.sleep(0.05)

        assert connector.calls == 1
        assert conn.state.name == "CLOSED"
        assert client.get_connection_state() == ConnectionState.DISCONNECTED
        assert client.reconnect_attempts == 0

    async def test_disconnect_when_idle(self) -> None:
        client = _client(FakeConnector())
        await client.disconnect()
        assert client.get_connection_state() == ConnectionState.DISCONNECTED


class TestFrames:
    async def test_frames_forwarded_to_handler(self) -> None:
        received: list[StreamFrame] = []

        async def handler(frame: StreamFrame) -> None:
            received.append(frame)

        connector = FakeConnector(FakeConnection([_frame(data='{"a": 1}'), _frame("/other")]))
        client = _client(connector)
        client.on_data(handler)
        client.connect()
        await wait_until(lambda: len(received) == 2)

        assert received[0].event == "/data/appReceipt"
        assert received[0].data == '{"a": 1}'
        assert received[1].event == "/other"
        await client.disconnect()

    async def test_malformed_frames_dropped(self) -> None:
        received: list[StreamFrame] = []
        metrics = RelayMetrics()

        async def handler(frame: StreamFrame) -> None:
            received.append(frame)

        messages = [
            "not json at all",
            json.dumps({"event": "/x"}),
            json.dumps(["event", "data"]),
            _frame("/ok").encode(),
        ]
        client = _client(FakeConnector(FakeConnection(messages)), metrics=metrics)
        client.on_data(handler)
        client.connect()
        await wait_until(lambda: len(received) == 1)

        assert received[0].event == "/ok"
        assert client.is_connected()
        assert metrics.registry.get_sample_value("push_relay_stream_frames_dropped_total") == 3
        await client.disconnect()

    async def test_on_data_replaces_previous_handler(self) -> None:
        first: list[str] = []
        second: list[str] = []

        async def handler_one(frame: StreamFrame) -> None:
            first.append(frame.event)

        async def handler_two(frame: StreamFrame) -> None:
            second.append(frame.event)

        client = _client(FakeConnector(FakeConnection([_frame("/e")])))
        client.on_data(handler_one)
        client.on_data(handler_two)
        client.connect()
        await wait_until(lambda: second == ["/e"])

        assert first == []
        await client.disconnect()

    async def test_handler_error_does_not_break_stream(self) -> None:
        seen: list[str] = []

        async def handler(frame: StreamFrame) -> None:
            seen.append(frame.event)
            if frame.event == "/boom":
                raise RuntimeError("handler failed")

        client = _client(FakeConnector(FakeConnection([_frame("/boom"), _frame("/after")])))
        client.on_data(handler)
        client.connect()
        await wait_until(lambda: seen == ["/boom", "/after"])

        assert client.is_connected()
        await client.disconnect()

    async def test_no_handler_is_fine(self) -> None:
        client = _client(FakeConnector(FakeConnection([_frame()])))
        client.connect()
        await wait_until(client.is_connected)
        await asyncio.sleep(0.01)
        await client.disconnect()
