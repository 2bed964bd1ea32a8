"""Relay of committed order changes to server-sent-event subscribers.

Every connection gets its own change feed subscription. Order and order item
row changes are turned into full order snapshots by re-reading the order
(with its items) so that consumers can replace their copy wholesale.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from . import schemas
from .api.serializers import order as serialize_order
from .changefeed import ChangeEvent, ChangeFeed, ChangeKind
from .services import orders as order_service
from .sse import format_event

logger = logging.getLogger(__name__)

WATCHED_TABLES = ("orders", "order_items")
DISCONNECT_CHECK_SECONDS = 1.0

DisconnectProbe = Callable[[], Awaitable[bool]]


class OrderRelay:
    def __init__(
        self,
        feed: ChangeFeed,
        session_factory: sessionmaker,
        heartbeat_interval: float = 30.0,
    ) -> None:
        self.feed = feed
        self.session_factory = session_factory
        self.heartbeat_interval = heartbeat_interval

    def _load_order(self, order_id: str) -> Optional[schemas.OrderOut]:
        db = self.session_factory()
        try:
            order = order_service.get_order(db, order_id)
            return serialize_order(order) if order is not None else None
        finally:
            db.close()

    async def fetch_order(self, order_id: str) -> Optional[schemas.OrderOut]:
        try:
            order = await run_in_threadpool(self._load_order, order_id)
        except Exception:
            logger.exception("Failed to re-fetch order %s for the realtime stream", order_id)
            return None
        if order is None:
            logger.warning("Order %s vanished before it could be relayed", order_id)
        return order

    async def translate(self, change: ChangeEvent) -> Optional[schemas.RealtimeEvent]:
        if change.table == "orders":
            order_id = change.row_value("id")
            if change.kind == ChangeKind.delete:
                return schemas.RealtimeEvent(type=schemas.RealtimeEventType.order_delete, order_id=order_id)
            order = await self.fetch_order(order_id)
            if order is None:
                return None
            return schemas.RealtimeEvent(
                type=schemas.RealtimeEventType.order_update, event=change.kind, order=order
            )

        if change.table == "order_items":
            order = await self.fetch_order(change.row_value("order_id"))
            if order is None:
                return None
            return schemas.RealtimeEvent(
                type=schemas.RealtimeEventType.order_item_update,
                event=change.kind,
                order=order,
                item_id=change.row_value("id"),
            )

        return None

    async def stream(self, is_disconnected: Optional[DisconnectProbe] = None) -> AsyncIterator[str]:
        subscription = self.feed.subscribe(WATCHED_TABLES)
        loop = asyncio.get_running_loop()
        logger.info("Realtime client connected (%d subscribers)", self.feed.subscriber_count)
        try:
            yield format_event(
                schemas.RealtimeEvent(
                    type=schemas.RealtimeEventType.connected,
                    message="Real-time connection established",
                ).to_wire()
            )

            next_heartbeat = loop.time() + self.heartbeat_interval
            while True:
                if is_disconnected is not None and await is_disconnected():
                    break

                wait = max(0.0, min(next_heartbeat - loop.time(), DISCONNECT_CHECK_SECONDS))
                try:
                    change = await asyncio.wait_for(subscription.get(), timeout=wait)
                except asyncio.TimeoutError:
                    change = None

                if change is not None:
                    event = await self.translate(change)
                    if event is not None:
                        yield format_event(event.to_wire())

                # Fixed schedule: traffic does not push the next heartbeat back.
                if loop.time() >= next_heartbeat:
                    yield format_event(
                        schemas.RealtimeEvent(type=schemas.RealtimeEventType.heartbeat).to_wire()
                    )
                    next_heartbeat += self.heartbeat_interval
        finally:
            subscription.close()
            logger.info("Realtime client disconnected (%d subscribers)", self.feed.subscriber_count)
