from __future__ import annotations

import asyncio

import pytest

from dinedesk import models, schemas
from dinedesk.changefeed import ChangeKind
from dinedesk.core.errors import NotFound, ValidationFailed
from dinedesk.services import orders as order_service

from conftest import place_order


def test_checkout_totals_match_line_items(db_session, menu):
    order = place_order(db_session, menu, tikka=2, lassi=1)

    assert order.status == models.OrderStatus.pending
    assert order.payment_status == models.PaymentStatus.pending
    assert [item.total_price for item in order.order_items] == [300.0, 80.0]
    assert order.total_amount == 380.0
    assert order.order_items[0].menu_item.name == "Paneer Tikka"


def test_checkout_rejects_unknown_menu_items(db_session, menu):
    payload = schemas.OrderCreate(
        customer_name="Asha",
        customer_phone="1",
        items=[schemas.CheckoutItem(menu_item_id="missing", quantity=1, unit_price=10)],
    )
    with pytest.raises(ValidationFailed) as exc:
        order_service.create_order(db_session, payload)
    assert exc.value.details == ["missing"]
    assert order_service.list_orders(db_session) == []


def test_checkout_publishes_order_and_item_inserts(feed, db_session, menu):
    async def scenario():
        subscription = feed.subscribe(["orders", "order_items"])
        place_order(db_session, menu)
        changes = [await asyncio.wait_for(subscription.get(), timeout=1) for _ in range(3)]
        subscription.close()
        return changes

    changes = asyncio.run(scenario())
    assert [(c.table, c.kind) for c in changes] == [
        ("orders", ChangeKind.insert),
        ("order_items", ChangeKind.insert),
        ("order_items", ChangeKind.insert),
    ]


def test_completing_units_caps_at_quantity(db_session, menu):
    order = place_order(db_session, menu, tikka=2, lassi=0)
    item = order.order_items[0]

    order_service.complete_item_unit(db_session, item)
    item = order_service.require_order_item(db_session, item.id)
    assert item.completed_quantity == 1
    assert item.item_status == models.ItemStatus.pending

    order_service.complete_item_unit(db_session, item)
    order_service.complete_item_unit(db_session, item)
    item = order_service.require_order_item(db_session, item.id)
    assert item.completed_quantity == 2
    assert item.item_status == models.ItemStatus.completed


def test_finishing_every_item_advances_preparing_order_once(feed, db_session, menu):
    order = place_order(db_session, menu, tikka=1, lassi=1)
    order = order_service.update_order_status(db_session, order, models.OrderStatus.preparing)
    first, second = order.order_items

    async def scenario():
        subscription = feed.subscribe(["orders"])
        order_service.update_item_status(db_session, first, models.ItemStatus.ready)
        updated = order_service.update_item_status(db_session, second, models.ItemStatus.completed)
        order_service.complete_item_unit(db_session, order_service.require_order_item(db_session, second.id))
        await asyncio.sleep(0)
        changes = []
        while (change := subscription.get_nowait()) is not None:
            changes.append(change)
        subscription.close()
        return updated, changes

    updated, changes = asyncio.run(scenario())
    assert updated.status == models.OrderStatus.ready
    advances = [c for c in changes if c.new.get("status") == "ready"]
    assert len(advances) == 1


def test_items_do_not_advance_orders_that_are_not_preparing(db_session, menu):
    order = place_order(db_session, menu, tikka=1, lassi=0)
    updated = order_service.update_all_order_items(db_session, order, models.ItemStatus.ready)
    assert updated.status == models.OrderStatus.pending


def test_marking_order_ready_marks_every_item_ready(db_session, menu):
    order = place_order(db_session, menu)
    updated = order_service.update_order_status(db_session, order, models.OrderStatus.ready)
    assert {item.item_status for item in updated.order_items} == {models.ItemStatus.ready}


def test_cancel_stamps_reason_and_time(db_session, menu):
    order = place_order(db_session, menu)
    cancelled = order_service.cancel_order(db_session, order, "Customer left")
    assert cancelled.status == models.OrderStatus.cancelled
    assert cancelled.cancelled_reason == "Customer left"
    assert cancelled.cancelled_at is not None


def test_payment_status_update(db_session, menu):
    order = place_order(db_session, menu)
    paid = order_service.update_payment_status(db_session, order, models.PaymentStatus.paid)
    assert paid.payment_status == models.PaymentStatus.paid


def test_list_orders_newest_first_with_status_filter(db_session, menu):
    first = place_order(db_session, menu)
    second = place_order(db_session, menu)
    order_service.update_order_status(db_session, second, models.OrderStatus.confirmed)

    ids = [order.id for order in order_service.list_orders(db_session)]
    assert set(ids) == {first.id, second.id}
    confirmed = order_service.list_orders(db_session, status=models.OrderStatus.confirmed)
    assert [order.id for order in confirmed] == [second.id]


def test_delete_order_removes_items(db_session, menu):
    order = place_order(db_session, menu)
    item_id = order.order_items[0].id
    order_service.delete_order(db_session, order)

    assert order_service.get_order(db_session, order.id) is None
    with pytest.raises(NotFound):
        order_service.require_order_item(db_session, item_id)
