from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..core.errors import DeductionFailedError, InsufficientStockError, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def classify_stock(current_stock: float, minimum_stock: float) -> schemas.StockStatus:
    if current_stock <= 0:
        return schemas.StockStatus.out_of_stock
    if current_stock <= minimum_stock:
        return schemas.StockStatus.low_stock
    return schemas.StockStatus.in_stock


def list_inventory_items(db: Session) -> Sequence[models.InventoryItem]:
    stmt = select(models.InventoryItem).order_by(models.InventoryItem.name.asc())
    return db.scalars(stmt).all()


def get_inventory_item(db: Session, item_id: str) -> models.InventoryItem | None:
    return db.get(models.InventoryItem, item_id)


def require_inventory_item(db: Session, item_id: str) -> models.InventoryItem:
    item = get_inventory_item(db, item_id)
    if item is None:
        raise NotFound("Inventory item not found")
    return item


def build_alerts(items: Iterable[models.InventoryItem]) -> List[schemas.InventoryAlert]:
    alerts: List[schemas.InventoryAlert] = []
    for item in items:
        status = classify_stock(item.current_stock, item.minimum_stock)
        if status == schemas.StockStatus.in_stock:
            continue
        alerts.append(
            schemas.InventoryAlert(
                id=item.id,
                name=item.name,
                current_stock=item.current_stock,
                minimum_stock=item.minimum_stock,
                status=status,
            )
        )
    return alerts


def inventory_value(items: Iterable[models.InventoryItem]) -> float:
    return round(sum(item.current_stock * item.cost_per_unit for item in items), 2)


def inventory_overview(db: Session) -> schemas.InventoryOverview:
    items = list_inventory_items(db)
    alerts = build_alerts(items)
    return schemas.InventoryOverview(
        items=[serialize_inventory_item(item) for item in items],
        alerts=alerts,
        total_value=inventory_value(items),
        low_stock_count=sum(1 for alert in alerts if alert.status == schemas.StockStatus.low_stock),
        out_of_stock_count=sum(1 for alert in alerts if alert.status == schemas.StockStatus.out_of_stock),
    )


def serialize_inventory_item(item: models.InventoryItem) -> schemas.InventoryItemOut:
    base = schemas.InventoryItemOut.model_validate(item, from_attributes=True)
    return base.model_copy(update={"status": classify_stock(item.current_stock, item.minimum_stock)})


def create_inventory_item(db: Session, payload: schemas.InventoryItemCreate) -> models.InventoryItem:
    item = models.InventoryItem(**payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_inventory_item(
    db: Session, item: models.InventoryItem, payload: schemas.InventoryItemUpdate
) -> models.InventoryItem:
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def delete_inventory_item(db: Session, item: models.InventoryItem) -> None:
    db.delete(item)
    db.commit()


def restock_item(db: Session, item: models.InventoryItem, quantity: float) -> models.InventoryItem:
    if quantity <= 0:
        raise ValidationFailed("Restock quantity must be positive")
    item.current_stock += quantity
    item.last_restocked = datetime.utcnow()
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Restocked %s by %s %s (now %s)", item.name, quantity, item.unit, item.current_stock)
    return item


def add_menu_requirement(
    db: Session, menu_item: models.MenuItem, payload: schemas.RequirementCreate
) -> models.MenuItemInventory:
    require_inventory_item(db, payload.inventory_item_id)
    requirement = models.MenuItemInventory(
        menu_item_id=menu_item.id,
        inventory_item_id=payload.inventory_item_id,
        quantity_required=payload.quantity_required,
    )
    db.add(requirement)
    db.commit()
    db.refresh(requirement)
    return requirement


def required_inventory(db: Session, order_id: str) -> Dict[str, float]:
    """Total quantity of each inventory item consumed by an order.

    Lines that share an ingredient add up into a single requirement.
    """
    stmt = (
        select(models.OrderItem)
        .where(models.OrderItem.order_id == order_id)
        .options(selectinload(models.OrderItem.menu_item).selectinload(models.MenuItem.inventory_requirements))
    )
    deductions: Dict[str, float] = defaultdict(float)
    for line in db.scalars(stmt).all():
        for requirement in line.menu_item.inventory_requirements:
            deductions[requirement.inventory_item_id] += requirement.quantity_required * line.quantity
    return dict(deductions)


def deduct_for_order(db: Session, order_id: str) -> schemas.DeductResult:
    if not order_id:
        raise ValidationFailed("Order ID is required")

    deductions = required_inventory(db, order_id)
    if not deductions:
        return schemas.DeductResult(message="No inventory deductions needed", deductions={})

    stmt = select(models.InventoryItem).where(models.InventoryItem.id.in_(tuple(deductions)))
    items = db.scalars(stmt.with_for_update()).all()

    shortfalls = [
        f"{item.name} (need {_fmt(deductions[item.id])}, have {_fmt(item.current_stock)})"
        for item in items
        if item.current_stock < deductions[item.id]
    ]
    if shortfalls:
        logger.info("Deduction for order %s rejected: %s", order_id, shortfalls)
        raise InsufficientStockError(shortfalls)

    # All rows change in one transaction: either every deduction lands or none does.
    try:
        for item in items:
            item.current_stock = item.current_stock - deductions[item.id]
            db.add(item)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Inventory deduction for order %s failed: %s", order_id, exc)
        raise DeductionFailedError() from exc

    logger.info("Deducted inventory for order %s: %s", order_id, deductions)
    return schemas.DeductResult(message="Inventory deducted successfully", deductions=deductions)


def _fmt(value: float) -> str:
    return f"{value:g}"
