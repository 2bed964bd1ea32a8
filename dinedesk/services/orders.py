from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..changefeed import ChangeKind, record_change
from ..core.errors import NotFound, ValidationFailed
from ..rules import derive_order_status

logger = logging.getLogger(__name__)


def _order_row(order: models.Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "customer_name": order.customer_name,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "total_amount": order.total_amount,
    }


def _item_row(item: models.OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "item_status": item.item_status.value,
        "quantity": item.quantity,
        "completed_quantity": item.completed_quantity,
    }


def _order_query():
    return select(models.Order).options(
        selectinload(models.Order.order_items).selectinload(models.OrderItem.menu_item)
    )


def create_order(db: Session, payload: schemas.OrderCreate) -> models.Order:
    """Checkout: persist a pending order and its lines from the cart payload.

    Prices come from the cart (trust model); totals are recomputed here so
    ``total_amount`` always equals the sum of the line totals.
    """
    menu_ids = {item.menu_item_id for item in payload.items}
    known = set(db.scalars(select(models.MenuItem.id).where(models.MenuItem.id.in_(menu_ids))).all())
    missing = sorted(menu_ids - known)
    if missing:
        raise ValidationFailed("Unknown menu items", details=missing)

    order = models.Order(
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        notes=payload.notes,
        status=models.OrderStatus.pending,
    )
    db.add(order)
    db.flush()

    total = 0.0
    for position, line in enumerate(payload.items):
        line_total = round(line.unit_price * line.quantity, 2)
        item = models.OrderItem(
            order_id=order.id,
            menu_item_id=line.menu_item_id,
            position=position,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line_total,
            notes=line.notes,
        )
        order.order_items.append(item)
        total += line_total

    order.total_amount = round(total, 2)
    db.flush()

    record_change(db, "orders", ChangeKind.insert, new=_order_row(order))
    for item in order.order_items:
        record_change(db, "order_items", ChangeKind.insert, new=_item_row(item))
    db.commit()
    logger.info("Order %s placed by %s total=%.2f", order.id, order.customer_name, order.total_amount)
    return get_order(db, order.id)


def list_orders(db: Session, *, status: models.OrderStatus | None = None) -> Sequence[models.Order]:
    stmt = _order_query().order_by(models.Order.created_at.desc())
    if status:
        stmt = stmt.where(models.Order.status == status)
    return db.scalars(stmt).unique().all()


def get_order(db: Session, order_id: str) -> models.Order | None:
    return db.scalars(_order_query().where(models.Order.id == order_id)).first()


def require_order(db: Session, order_id: str) -> models.Order:
    order = get_order(db, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def require_order_item(db: Session, item_id: str) -> models.OrderItem:
    item = db.get(models.OrderItem, item_id)
    if item is None:
        raise NotFound("Order item not found")
    return item


def update_order_status(db: Session, order: models.Order, status: models.OrderStatus) -> models.Order:
    # Transitions are gated by the client; the server records what it is told.
    old = _order_row(order)
    now = datetime.utcnow()
    order.status = status
    order.updated_at = now
    if status == models.OrderStatus.cancelled:
        order.cancelled_at = now
    record_change(db, "orders", ChangeKind.update, new=_order_row(order), old=old)

    if status == models.OrderStatus.ready:
        for item in order.order_items:
            if item.item_status != models.ItemStatus.ready:
                item.item_status = models.ItemStatus.ready
                record_change(db, "order_items", ChangeKind.update, new=_item_row(item))

    db.commit()
    logger.info("Order %s status %s -> %s", order.id, old["status"], status.value)
    return get_order(db, order.id)


def update_payment_status(
    db: Session, order: models.Order, payment_status: models.PaymentStatus
) -> models.Order:
    old = _order_row(order)
    order.payment_status = payment_status
    order.updated_at = datetime.utcnow()
    record_change(db, "orders", ChangeKind.update, new=_order_row(order), old=old)
    db.commit()
    return get_order(db, order.id)


def cancel_order(db: Session, order: models.Order, reason: str) -> models.Order:
    # Inventory and payment side effects are left as they are.
    old = _order_row(order)
    now = datetime.utcnow()
    order.status = models.OrderStatus.cancelled
    order.cancelled_at = now
    order.cancelled_reason = reason
    order.updated_at = now
    record_change(db, "orders", ChangeKind.update, new=_order_row(order), old=old)
    db.commit()
    logger.info("Order %s cancelled: %s", order.id, reason)
    return get_order(db, order.id)


def update_item_status(db: Session, item: models.OrderItem, status: models.ItemStatus) -> models.Order:
    item.item_status = status
    record_change(db, "order_items", ChangeKind.update, new=_item_row(item))
    _apply_derived_status(db, item.order)
    db.commit()
    return get_order(db, item.order_id)


def complete_item_unit(db: Session, item: models.OrderItem) -> models.Order:
    """Mark one more unit of a line as done.

    ``completed_quantity`` is capped at ``quantity``; the line flips to
    ``completed`` once the two are equal.
    """
    if item.completed_quantity < item.quantity:
        item.completed_quantity += 1
    if item.completed_quantity >= item.quantity:
        item.completed_quantity = item.quantity
        item.item_status = models.ItemStatus.completed
    record_change(db, "order_items", ChangeKind.update, new=_item_row(item))
    _apply_derived_status(db, item.order)
    db.commit()
    return get_order(db, item.order_id)


def update_all_order_items(db: Session, order: models.Order, status: models.ItemStatus) -> models.Order:
    for item in order.order_items:
        item.item_status = status
        record_change(db, "order_items", ChangeKind.update, new=_item_row(item))
    _apply_derived_status(db, order)
    db.commit()
    return get_order(db, order.id)


def delete_order(db: Session, order: models.Order) -> None:
    old = _order_row(order)
    db.delete(order)
    record_change(db, "orders", ChangeKind.delete, old=old)
    db.commit()
    logger.warning("Order %s deleted", old["id"])


def _apply_derived_status(db: Session, order: models.Order) -> None:
    derived = derive_order_status(order.status, [item.item_status for item in order.order_items])
    if derived == order.status:
        return
    old = _order_row(order)
    order.status = derived
    order.updated_at = datetime.utcnow()
    record_change(db, "orders", ChangeKind.update, new=_order_row(order), old=old)
    logger.info("Order %s advanced to %s after all items finished", order.id, derived.value)
