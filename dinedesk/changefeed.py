"""Row-level change notifications for committed writes.

Service functions call :func:`record_change` while they mutate rows. The
changes ride on the session until it commits, then every subscriber whose
table filter matches receives them in order. A rollback throws them away.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PENDING_KEY = "pending_changes"
FEED_KEY = "change_feed"


class ChangeKind(str, enum.Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    def row_value(self, key: str) -> Any:
        return self.new.get(key) or self.old.get(key)


class Subscription:
    """Queue of change events delivered on the subscriber's event loop."""

    def __init__(self, feed: "ChangeFeed", tables: frozenset[str], loop: asyncio.AbstractEventLoop) -> None:
        self._feed = feed
        self.tables = tables
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.closed = False

    def wants(self, change: ChangeEvent) -> bool:
        return not self.closed and change.table in self.tables

    def deliver(self, change: ChangeEvent) -> None:
        try:
            self._loop.call_soon_threadsafe(self._put, change)
        except RuntimeError:
            # Loop already shut down; nobody is listening any more.
            self.close()

    def _put(self, change: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(change)

    async def get(self) -> ChangeEvent:
        return await self._queue.get()

    def get_nowait(self) -> Optional[ChangeEvent]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._unsubscribe(self)


class ChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, tables: Iterable[str]) -> Subscription:
        subscription = Subscription(self, frozenset(tables), asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscribed to %s", sorted(subscription.tables))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.wants(change)]
        for subscription in targets:
            subscription.deliver(change)


def record_change(
    db: Session,
    table: str,
    kind: ChangeKind,
    *,
    new: Optional[Dict[str, Any]] = None,
    old: Optional[Dict[str, Any]] = None,
) -> None:
    db.info.setdefault(PENDING_KEY, []).append(
        ChangeEvent(table=table, kind=kind, new=dict(new or {}), old=dict(old or {}))
    )


@event.listens_for(Session, "after_commit")
def _publish_pending(session: Session) -> None:
    pending = session.info.pop(PENDING_KEY, [])
    feed: Optional[ChangeFeed] = session.info.get(FEED_KEY)
    if not pending or feed is None:
        return
    for change in pending:
        feed.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard_pending(session: Session, previous_transaction) -> None:
    session.info.pop(PENDING_KEY, None)
