"""Client side of the order event stream with reconnection and exponential backoff."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, Awaitable, Callable, Optional, Protocol

import httpx
from pydantic import ValidationError

from .. import schemas
from ..sse import MEDIA_TYPE, iter_data
from .api import TOKEN_HEADER

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_ERROR = "Max reconnection attempts reached"
SESSION_EXPIRED_ERROR = "Session expired"
STREAM_PATH = "/api/orders/realtime"


class ConnectionState(str, enum.Enum):
    disconnected = "disconnected"
    connecting = "connecting"
    connected = "connected"
    gave_up = "gave_up"


@dataclass(frozen=True)
class BackoffPolicy:
    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 5

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * 2**attempt, self.max_delay)

    @classmethod
    def from_settings(cls, settings) -> "BackoffPolicy":
        return cls(
            base_delay=settings.RECONNECT_BASE_DELAY,
            max_delay=settings.RECONNECT_MAX_DELAY,
            max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
        )


class EventSource(Protocol):
    """Opens one stream. Entering the context means the stream is open;
    iterating yields raw ``data`` payloads until the server ends the stream."""

    def connect(self) -> AsyncContextManager[AsyncIterator[str]]:
        ...


class HttpEventSource:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        path: str = STREAM_PATH,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.path = path
        # No read timeout: heartbeats keep the stream alive.
        self.timeout = httpx.Timeout(connect_timeout, read=None)
        self.transport = transport

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncIterator[str]]:
        headers = {"Accept": MEDIA_TYPE}
        if self.token:
            headers[TOKEN_HEADER] = self.token
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            async with client.stream("GET", self.path, headers=headers) as response:
                response.raise_for_status()
                yield iter_data(response.aiter_lines())


Sleep = Callable[[float], Awaitable[None]]


class RealtimeConnection:
    def __init__(
        self,
        source: EventSource,
        policy: BackoffPolicy = BackoffPolicy(),
        *,
        sleep: Sleep = asyncio.sleep,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ) -> None:
        self.source = source
        self.policy = policy
        self._sleep = sleep
        self.on_unauthorized = on_unauthorized
        self.state = ConnectionState.disconnected
        self.error: Optional[str] = None
        self.reconnect_attempts = 0
        self.last_event: Optional[schemas.RealtimeEvent] = None
        self._events: asyncio.Queue[schemas.RealtimeEvent] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.connected

    def connect(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self.state = ConnectionState.connecting
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def disconnect(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.state = ConnectionState.disconnected
        self.reconnect_attempts = 0
        self.error = None
        self.last_event = None

    async def wait_closed(self) -> None:
        """Wait until the connection has given up (or was disconnected)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def next_event(self) -> schemas.RealtimeEvent:
        return await self._events.get()

    def __aiter__(self) -> "RealtimeConnection":
        return self

    async def __anext__(self) -> schemas.RealtimeEvent:
        return await self.next_event()

    async def _run(self) -> None:
        while True:
            self.state = ConnectionState.connecting
            try:
                async with self.source.connect() as frames:
                    self._on_open()
                    async for data in frames:
                        self._on_message(data)
                reason = "Stream closed by server"
            except asyncio.CancelledError:
                raise
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == httpx.codes.UNAUTHORIZED:
                    self._on_session_expired()
                    return
                reason = str(exc)
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
            logger.warning("Realtime stream lost: %s", reason)
            self.state = ConnectionState.disconnected
            self.error = reason

            if self.reconnect_attempts >= self.policy.max_attempts:
                self.state = ConnectionState.gave_up
                self.error = MAX_ATTEMPTS_ERROR
                logger.error("Giving up on realtime stream after %d attempts", self.reconnect_attempts)
                return

            delay = self.policy.delay(self.reconnect_attempts)
            self.reconnect_attempts += 1
            logger.info("Reconnecting in %.1fs (attempt %d/%d)", delay, self.reconnect_attempts, self.policy.max_attempts)
            await self._sleep(delay)

    def _on_open(self) -> None:
        self.state = ConnectionState.connected
        self.reconnect_attempts = 0
        self.error = None
        logger.info("Realtime stream connected")

    def _on_session_expired(self) -> None:
        # Retrying with the same token cannot succeed.
        self.state = ConnectionState.gave_up
        self.error = SESSION_EXPIRED_ERROR
        logger.warning("Realtime stream rejected the session; not reconnecting")
        if self.on_unauthorized is not None:
            self.on_unauthorized()

    def _on_message(self, data: str) -> None:
        try:
            event = schemas.RealtimeEvent.model_validate_json(data)
        except ValidationError as exc:
            logger.warning("Dropping malformed realtime payload: %s", exc)
            return
        self.last_event = event
        self._events.put_nowait(event)
