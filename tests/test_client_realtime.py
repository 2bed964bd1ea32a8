from __future__ import annotations

import asyncio
import contextlib
import json

import httpx

from dinedesk.client.realtime import (
    MAX_ATTEMPTS_ERROR,
    SESSION_EXPIRED_ERROR,
    BackoffPolicy,
    ConnectionState,
    HttpEventSource,
    RealtimeConnection,
)
from dinedesk.schemas import RealtimeEventType
from dinedesk.sse import SSEDecoder, format_event, iter_data

HEARTBEAT = json.dumps({"type": "heartbeat", "timestamp": "2024-05-10T12:00:00"})
CONNECTED = json.dumps({"type": "connected", "message": "Real-time connection established"})


class ScriptedSource:
    """Each connect() consumes one step: an exception to fail with, or payloads to stream."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.attempts = 0

    @contextlib.asynccontextmanager
    async def connect(self):
        self.attempts += 1
        step = self.steps.pop(0) if self.steps else ConnectionError("connection refused")
        if isinstance(step, Exception):
            raise step
        yield self._frames(step)

    async def _frames(self, payloads):
        for payload in payloads:
            yield payload


class HangingSource:
    @contextlib.asynccontextmanager
    async def connect(self):
        yield self._frames()

    async def _frames(self):
        yield CONNECTED
        await asyncio.Event().wait()


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_backoff_doubles_until_attempts_run_out():
    sleep = RecordingSleep()
    source = ScriptedSource()

    async def scenario():
        connection = RealtimeConnection(source, BackoffPolicy(), sleep=sleep)
        connection.connect()
        await connection.wait_closed()
        return connection

    connection = asyncio.run(scenario())
    assert sleep.delays == [1, 2, 4, 8, 16]
    assert source.attempts == 6
    assert connection.state == ConnectionState.gave_up
    assert connection.error == MAX_ATTEMPTS_ERROR
    assert connection.reconnect_attempts == 5
    assert not connection.is_connected


def test_backoff_delay_is_capped():
    policy = BackoffPolicy(base_delay=1, max_delay=5, max_attempts=5)
    assert [policy.delay(attempt) for attempt in range(5)] == [1, 2, 4, 5, 5]


def test_successful_open_resets_attempts():
    sleep = RecordingSleep()
    source = ScriptedSource(ConnectionError("boom"), [CONNECTED])

    async def scenario():
        connection = RealtimeConnection(source, BackoffPolicy(), sleep=sleep)
        connection.connect()
        await connection.wait_closed()
        event = await asyncio.wait_for(connection.next_event(), timeout=1)
        return connection, event

    connection, event = asyncio.run(scenario())
    assert sleep.delays == [1, 1, 2, 4, 8, 16]
    assert event.type == RealtimeEventType.connected
    assert connection.state == ConnectionState.gave_up


def test_malformed_payloads_are_dropped():
    source = ScriptedSource(["not json", json.dumps({"type": "mystery"}), HEARTBEAT])

    async def scenario():
        connection = RealtimeConnection(source, BackoffPolicy(max_attempts=0), sleep=RecordingSleep())
        connection.connect()
        await connection.wait_closed()
        first = await asyncio.wait_for(connection.next_event(), timeout=1)
        return connection, first

    connection, first = asyncio.run(scenario())
    assert first.type == RealtimeEventType.heartbeat
    assert connection.last_event == first
    assert connection.error == MAX_ATTEMPTS_ERROR


def test_disconnect_resets_state():
    async def scenario():
        connection = RealtimeConnection(HangingSource(), sleep=RecordingSleep())
        connection.connect()
        event = await asyncio.wait_for(connection.next_event(), timeout=1)
        connected = connection.is_connected
        await connection.disconnect()
        return connection, event, connected

    connection, event, connected = asyncio.run(scenario())
    assert event.message == "Real-time connection established"
    assert connected
    assert connection.state == ConnectionState.disconnected
    assert connection.reconnect_attempts == 0
    assert connection.error is None
    assert connection.last_event is None


def test_http_source_reads_frames_with_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers.get("x-session-token")
        seen["path"] = request.url.path
        body = format_event(json.loads(CONNECTED)) + ": keep-alive\n\n" + format_event(json.loads(HEARTBEAT))
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    source = HttpEventSource("http://dinedesk.test/", "tok-1", transport=httpx.MockTransport(handler))

    async def scenario():
        async with source.connect() as frames:
            return [json.loads(data)["type"] async for data in frames]

    assert asyncio.run(scenario()) == ["connected", "heartbeat"]
    assert seen == {"token": "tok-1", "path": "/api/orders/realtime"}


def test_http_source_server_error_counts_as_failure():
    source = HttpEventSource(
        "http://dinedesk.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "Unavailable"})),
    )
    sleep = RecordingSleep()

    async def scenario():
        connection = RealtimeConnection(source, BackoffPolicy(max_attempts=1), sleep=sleep)
        connection.connect()
        await connection.wait_closed()
        return connection

    connection = asyncio.run(scenario())
    assert sleep.delays == [1]
    assert connection.state == ConnectionState.gave_up


def test_decoder_joins_data_lines_and_skips_other_fields():
    decoder = SSEDecoder()
    lines = ['data: {"a":1}', "", ": comment", "event: ping", "data: one", "data:two", "", ""]
    assert [data for data in map(decoder.feed, lines) if data is not None] == ['{"a":1}', "one\ntwo"]


def test_iter_data_handles_crlf():
    async def lines():
        for line in ["data: first\r\n", "\r\n", "id: 7", "data: second", ""]:
            yield line

    async def collect():
        return [data async for data in iter_data(lines())]

    assert asyncio.run(collect()) == ["first", "second"]


def test_rejected_session_stops_reconnecting_and_reports_expiry():
    source = HttpEventSource(
        "http://dinedesk.test",
        "revoked-token",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "Authentication required"})),
    )
    sleep = RecordingSleep()
    expired = []

    async def scenario():
        connection = RealtimeConnection(
            source, BackoffPolicy(), sleep=sleep, on_unauthorized=lambda: expired.append(True)
        )
        connection.connect()
        await connection.wait_closed()
        return connection

    connection = asyncio.run(scenario())
    assert sleep.delays == []
    assert expired == [True]
    assert connection.state == ConnectionState.gave_up
    assert connection.error == SESSION_EXPIRED_ERROR
