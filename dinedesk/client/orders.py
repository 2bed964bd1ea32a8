"""Client-side order state: the reducer, alerts and the sync loop feeding it."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

import httpx

from .. import models, schemas
from ..changefeed import ChangeKind
from ..rules import TERMINAL_STATUSES, is_valid_transition
from .api import ApiError, DineDeskClient
from .notifications import AlertKind, LoggingNotifier, Notifier, OrderAlert
from .realtime import RealtimeConnection, Sleep

logger = logging.getLogger(__name__)

EventType = schemas.RealtimeEventType


class InvalidTransition(ValueError):
    pass


class OrderStore:
    """Single source of truth for the orders shown to staff.

    Orders are kept newest first. Snapshots from the relay replace the stored
    copy wholesale, so applying the same event twice leaves the store as it was.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        *,
        notice_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.notice_seconds = notice_seconds
        self._clock = clock
        self._orders: List[schemas.OrderOut] = []
        self._notice: Optional[Tuple[schemas.OrderOut, float]] = None

    @property
    def orders(self) -> List[schemas.OrderOut]:
        return list(self._orders)

    def __len__(self) -> int:
        return len(self._orders)

    def get(self, order_id: str) -> Optional[schemas.OrderOut]:
        return next((order for order in self._orders if order.id == order_id), None)

    def find_item(self, item_id: str) -> Tuple[Optional[schemas.OrderOut], Optional[schemas.OrderItemOut]]:
        for order in self._orders:
            for item in order.order_items:
                if item.id == item_id:
                    return order, item
        return None, None

    def _index(self, order_id: str) -> Optional[int]:
        for index, order in enumerate(self._orders):
            if order.id == order_id:
                return index
        return None

    def load(self, orders: List[schemas.OrderOut]) -> None:
        self._orders = list(orders)

    def replace(self, order: schemas.OrderOut) -> List[OrderAlert]:
        """Store a snapshot returned by a mutation call.

        Goes through the same status check as relay events, so confirming an
        order from this board raises the kitchen alert once, whichever of the
        response and the relay event lands first.
        """
        index = self._index(order.id)
        if index is None:
            self._orders.insert(0, order)
            return []
        return self._dispatch(self._swap(index, order))

    def _swap(self, index: int, order: schemas.OrderOut) -> List[OrderAlert]:
        previous = self._orders[index]
        self._orders[index] = order
        if previous.status == models.OrderStatus.pending and order.status == models.OrderStatus.confirmed:
            return [OrderAlert.for_order(AlertKind.kitchen_alert, order)]
        return []

    def _dispatch(self, alerts: List[OrderAlert]) -> List[OrderAlert]:
        for alert in alerts:
            self.notifier.notify(alert)
        return alerts

    def remove(self, order_id: str) -> None:
        self._orders = [order for order in self._orders if order.id != order_id]

    @property
    def new_order_notice(self) -> Optional[schemas.OrderOut]:
        if self._notice is None:
            return None
        order, expires_at = self._notice
        if self._clock() >= expires_at:
            self._notice = None
            return None
        return order

    def apply(self, event: schemas.RealtimeEvent) -> List[OrderAlert]:
        alerts: List[OrderAlert] = []

        if event.type == EventType.order_delete:
            if event.order_id:
                self.remove(event.order_id)
            return alerts

        if event.type not in (EventType.order_update, EventType.order_item_update) or event.order is None:
            return alerts

        order = event.order
        index = self._index(order.id)
        if index is None:
            if event.type != EventType.order_update or event.event != ChangeKind.insert:
                # Unknown order and not an insert: the next poll brings it in.
                logger.debug("Ignoring %s for unknown order %s", event.type.value, order.id)
                return alerts
            self._orders.insert(0, order)
            self._notice = (order, self._clock() + self.notice_seconds)
            alerts.append(OrderAlert.for_order(AlertKind.new_order, order))
        else:
            alerts.extend(self._swap(index, order))
        return self._dispatch(alerts)

    def todays_orders(self, today: Optional[date] = None) -> List[schemas.OrderOut]:
        today = today or datetime.utcnow().date()
        return [order for order in self._orders if order.created_at.date() == today]

    def by_status(self, status: models.OrderStatus, today: Optional[date] = None) -> List[schemas.OrderOut]:
        return [order for order in self.todays_orders(today) if order.status == status]


class OrderSync:
    """Keeps an :class:`OrderStore` current from three sources.

    The initial fetch fills the store, relay events are reduced into it as
    they arrive, and while the stream is not connected the full list is
    re-fetched every ``poll_interval`` seconds.
    """

    def __init__(
        self,
        client: DineDeskClient,
        connection: RealtimeConnection,
        store: OrderStore,
        *,
        poll_interval: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.connection = connection
        self.store = store
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._tasks: List[asyncio.Task] = []
        self.error: Optional[str] = None

    async def start(self) -> None:
        await self.refresh()
        self.connection.connect()
        loop = asyncio.get_running_loop()
        self._tasks = [loop.create_task(self._consume()), loop.create_task(self._poll())]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.connection.disconnect()

    async def refresh(self) -> None:
        self.store.load(await self.client.list_orders())
        self.error = None

    async def _consume(self) -> None:
        async for event in self.connection:
            self.store.apply(event)

    async def _poll(self) -> None:
        while True:
            await self._sleep(self.poll_interval)
            if self.connection.is_connected:
                continue
            try:
                await self.refresh()
            except (ApiError, httpx.HTTPError) as exc:
                self.error = str(exc)
                logger.warning("Order poll failed: %s", exc)

    # ---- Mutations ----

    def _require(self, order_id: str) -> schemas.OrderOut:
        order = self.store.get(order_id)
        if order is None:
            raise KeyError(order_id)
        return order

    def _require_open_item(self, item_id: str) -> schemas.OrderItemOut:
        order, item = self.store.find_item(item_id)
        if order is None or item is None:
            raise KeyError(item_id)
        if order.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Order {order.id} is {order.status.value}")
        return item

    async def update_order_status(self, order_id: str, status: models.OrderStatus) -> schemas.OrderOut:
        current = self._require(order_id)
        if not is_valid_transition(current.status, status):
            raise InvalidTransition(f"Cannot move order from {current.status.value} to {status.value}")
        order = await self.client.update_order_status(order_id, status)
        self.store.replace(order)
        return order

    async def cancel_order(self, order_id: str, reason: str) -> schemas.OrderOut:
        current = self._require(order_id)
        if not is_valid_transition(current.status, models.OrderStatus.cancelled):
            raise InvalidTransition(f"Cannot cancel a {current.status.value} order")
        order = await self.client.cancel_order(order_id, reason)
        self.store.replace(order)
        return order

    async def update_payment_status(self, order_id: str, payment_status: models.PaymentStatus) -> schemas.OrderOut:
        self._require(order_id)
        order = await self.client.update_payment_status(order_id, payment_status)
        self.store.replace(order)
        return order

    async def update_item_status(self, item_id: str, status: models.ItemStatus) -> schemas.OrderOut:
        self._require_open_item(item_id)
        order = await self.client.update_item_status(item_id, status)
        self.store.replace(order)
        return order

    async def complete_item_unit(self, item_id: str) -> schemas.OrderOut:
        item = self._require_open_item(item_id)
        if item.completed_quantity >= item.quantity:
            return self._require(item.order_id)
        order = await self.client.complete_item_unit(item_id)
        self.store.replace(order)
        return order

    async def update_all_order_items(self, order_id: str, status: models.ItemStatus) -> schemas.OrderOut:
        current = self._require(order_id)
        if current.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Order {order_id} is {current.status.value}")
        order = await self.client.update_all_order_items(order_id, status)
        self.store.replace(order)
        return order
