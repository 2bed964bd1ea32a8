from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from dinedesk import models, schemas
from dinedesk.core.errors import DeductionFailedError, InsufficientStockError, ValidationFailed
from dinedesk.schemas import StockStatus
from dinedesk.services import inventory as inventory_service
from dinedesk.services import orders as order_service

from conftest import place_order


def _stock(db, item_id):
    db.expire_all()
    return db.get(models.InventoryItem, item_id).current_stock


def test_classify_stock():
    assert inventory_service.classify_stock(5, 10) == StockStatus.low_stock
    assert inventory_service.classify_stock(0, 10) == StockStatus.out_of_stock
    assert inventory_service.classify_stock(-1, 0) == StockStatus.out_of_stock
    assert inventory_service.classify_stock(10, 5) == StockStatus.in_stock
    # Stock equal to the minimum already counts as low.
    assert inventory_service.classify_stock(10, 10) == StockStatus.low_stock


def test_deduction_aggregates_shared_ingredients(db_session, menu):
    order = place_order(db_session, menu, tikka=2, lassi=1)

    result = inventory_service.deduct_for_order(db_session, order.id)

    assert result.success is True
    assert result.deductions[menu.paneer] == pytest.approx(0.4)
    assert result.deductions[menu.yogurt] == pytest.approx(0.35)
    assert _stock(db_session, menu.paneer) == pytest.approx(0.6)
    assert _stock(db_session, menu.yogurt) == pytest.approx(1.65)


def test_insufficient_stock_lists_every_shortfall_and_changes_nothing(db_session, menu):
    order = place_order(db_session, menu, tikka=6, lassi=8)

    with pytest.raises(InsufficientStockError) as exc:
        inventory_service.deduct_for_order(db_session, order.id)

    assert exc.value.status_code == 400
    assert exc.value.to_payload()["error"] == "Insufficient stock"
    assert sorted(exc.value.shortfalls) == ["Paneer (need 1.2, have 1)", "Yogurt (need 2.3, have 2)"]
    assert _stock(db_session, menu.paneer) == pytest.approx(1.0)
    assert _stock(db_session, menu.yogurt) == pytest.approx(2.0)


def test_order_without_mapped_inventory_needs_no_deduction(db_session, menu):
    payload = schemas.OrderCreate(
        customer_name="Ravi",
        customer_phone="2",
        items=[schemas.CheckoutItem(menu_item_id=menu.chai, quantity=3, unit_price=40)],
    )
    order = order_service.create_order(db_session, payload)

    result = inventory_service.deduct_for_order(db_session, order.id)
    assert result.message == "No inventory deductions needed"
    assert result.deductions == {}


def test_order_id_is_required(db_session):
    with pytest.raises(ValidationFailed) as exc:
        inventory_service.deduct_for_order(db_session, None)
    assert exc.value.message == "Order ID is required"


def test_failed_commit_rolls_back_every_deduction(db_session, menu, monkeypatch):
    order = place_order(db_session, menu, tikka=1, lassi=1)

    def broken_commit():
        raise OperationalError("UPDATE inventory_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)
    with pytest.raises(DeductionFailedError) as exc:
        inventory_service.deduct_for_order(db_session, order.id)

    assert exc.value.status_code == 500
    assert exc.value.to_payload() == {"error": "Some inventory deductions failed"}
    assert _stock(db_session, menu.paneer) == pytest.approx(1.0)
    assert _stock(db_session, menu.yogurt) == pytest.approx(2.0)


def test_overview_reports_alerts_value_and_counts(db_session, menu):
    paneer = db_session.get(models.InventoryItem, menu.paneer)
    yogurt = db_session.get(models.InventoryItem, menu.yogurt)
    inventory_service.update_inventory_item(db_session, paneer, schemas.InventoryItemUpdate(current_stock=0.2))
    inventory_service.update_inventory_item(db_session, yogurt, schemas.InventoryItemUpdate(current_stock=0))

    overview = inventory_service.inventory_overview(db_session)

    assert overview.total_value == pytest.approx(80.0)
    assert overview.low_stock_count == 1
    assert overview.out_of_stock_count == 1
    statuses = {item.name: item.status for item in overview.items}
    assert statuses == {"Paneer": StockStatus.low_stock, "Yogurt": StockStatus.out_of_stock}


def test_restock_adds_quantity_and_stamps_time(db_session, menu):
    paneer = db_session.get(models.InventoryItem, menu.paneer)
    restocked = inventory_service.restock_item(db_session, paneer, 2.5)
    assert restocked.current_stock == pytest.approx(3.5)
    assert restocked.last_restocked is not None

    with pytest.raises(ValidationFailed):
        inventory_service.restock_item(db_session, restocked, 0)


def test_create_and_delete_inventory_item(db_session):
    item = inventory_service.create_inventory_item(
        db_session, schemas.InventoryItemCreate(name="Saffron", unit="g", current_stock=10, cost_per_unit=25)
    )
    assert inventory_service.serialize_inventory_item(item).status == StockStatus.in_stock

    inventory_service.delete_inventory_item(db_session, item)
    assert inventory_service.get_inventory_item(db_session, item.id) is None
