from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models
from ..core.errors import NotFound


def active_categories(db: Session) -> Sequence[models.Category]:
    stmt = (
        select(models.Category)
        .where(models.Category.is_active.is_(True))
        .order_by(models.Category.display_order.asc(), models.Category.name.asc())
    )
    return db.scalars(stmt).all()


def available_items(db: Session, category_id: str | None = None) -> Sequence[models.MenuItem]:
    stmt = select(models.MenuItem).where(models.MenuItem.is_available.is_(True))
    if category_id:
        stmt = stmt.where(models.MenuItem.category_id == category_id)
    stmt = stmt.order_by(models.MenuItem.display_order.asc(), models.MenuItem.name.asc())
    return db.scalars(stmt).all()


def require_menu_item(db: Session, menu_item_id: str) -> models.MenuItem:
    item = db.get(models.MenuItem, menu_item_id)
    if item is None:
        raise NotFound("Menu item not found")
    return item


def require_category(db: Session, category_id: str) -> models.Category:
    category = db.get(models.Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    return category
