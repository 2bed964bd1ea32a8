"""Order lifecycle rules shared by the service layer and the client gate."""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable

from .models import ItemStatus, OrderStatus

FINISHED_ITEM_STATUSES: FrozenSet[ItemStatus] = frozenset({ItemStatus.ready, ItemStatus.completed})
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.completed, OrderStatus.cancelled})

_LIFECYCLE = (
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.preparing,
    OrderStatus.ready,
    OrderStatus.completed,
)

# Forward moves may skip steps; cancelling is open until the order is terminal.
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    status: frozenset(
        set(_LIFECYCLE[index + 1 :])
        | ({OrderStatus.cancelled} if status not in TERMINAL_STATUSES else set())
    )
    for index, status in enumerate(_LIFECYCLE)
}
ALLOWED_TRANSITIONS[OrderStatus.cancelled] = frozenset()


def derive_order_status(status: OrderStatus, item_statuses: Iterable[ItemStatus]) -> OrderStatus:
    """Status an order should have after one of its items changed.

    A ``preparing`` order whose items are all ready or completed becomes
    ``ready``; every other combination keeps the current status. Calling it
    again on the result is a no-op.
    """
    if status != OrderStatus.preparing:
        return status
    statuses = list(item_statuses)
    if statuses and all(item in FINISHED_ITEM_STATUSES for item in statuses):
        return OrderStatus.ready
    return status


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS[current]


def next_status(current: OrderStatus) -> OrderStatus | None:
    if current in TERMINAL_STATUSES:
        return None
    return _LIFECYCLE[_LIFECYCLE.index(current) + 1]
