from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import models, schemas
from .changefeed import ChangeFeed
from .config import get_settings
from .core.logging import configure_logging
from .database import Base, build_engine, build_session_factory
from .services import auth as auth_service
from .services import roles as role_service

logger = logging.getLogger(__name__)

DEMO_OWNER_EMAIL = "owner@dinedesk.example"
DEMO_OWNER_PASSWORD = "change-me-now"

MENU = {
    "Starters": [
        ("Paneer Tikka", 220.0, {"Paneer": 0.15, "Yogurt": 0.05}),
        ("Veg Samosa", 80.0, {"Flour": 0.1, "Potato": 0.12}),
    ],
    "Mains": [
        ("Butter Chicken", 350.0, {"Chicken": 0.25, "Butter": 0.04, "Tomato": 0.1}),
        ("Dal Makhani", 240.0, {"Lentils": 0.15, "Butter": 0.03}),
        ("Veg Biryani", 260.0, {"Basmati Rice": 0.2, "Potato": 0.05}),
    ],
    "Breads": [
        ("Butter Naan", 60.0, {"Flour": 0.12, "Butter": 0.01}),
    ],
    "Drinks": [
        ("Mango Lassi", 120.0, {"Yogurt": 0.2, "Mango Pulp": 0.1}),
        ("Masala Chai", 50.0, {}),
    ],
}

# name -> (unit, current_stock, minimum_stock, cost_per_unit)
INVENTORY = {
    "Paneer": ("kg", 8, 2, 380.0),
    "Yogurt": ("kg", 12, 3, 90.0),
    "Flour": ("kg", 40, 10, 45.0),
    "Potato": ("kg", 25, 5, 30.0),
    "Chicken": ("kg", 15, 4, 260.0),
    "Butter": ("kg", 6, 2, 520.0),
    "Tomato": ("kg", 20, 5, 40.0),
    "Lentils": ("kg", 18, 4, 110.0),
    "Basmati Rice": ("kg", 30, 8, 120.0),
    "Mango Pulp": ("l", 5, 2, 180.0),
}


def seed(db: Session) -> None:
    role_service.ensure_system_roles(db)

    if db.scalars(select(models.RestaurantSettings)).first() is None:
        db.add(models.RestaurantSettings(restaurant_name="DineDesk Kitchen", tagline="Fresh from our tandoor"))
        db.commit()

    if db.scalars(select(models.UserProfile)).first() is None:
        auth_service.create_user(
            db,
            schemas.UserCreate(email=DEMO_OWNER_EMAIL, password=DEMO_OWNER_PASSWORD, role=models.UserRole.owner),
        )

    if db.scalars(select(models.Category)).first() is not None:
        logger.info("Menu already seeded; skipping.")
        return

    stock = {}
    for name, (unit, current, minimum, cost) in INVENTORY.items():
        stock[name] = models.InventoryItem(
            name=name, unit=unit, current_stock=current, minimum_stock=minimum, cost_per_unit=cost
        )
    db.add_all(stock.values())

    for position, (category_name, dishes) in enumerate(MENU.items()):
        category = models.Category(name=category_name, display_order=position)
        db.add(category)
        for order, (dish, price, recipe) in enumerate(dishes):
            item = models.MenuItem(category=category, name=dish, price=price, display_order=order)
            for ingredient, quantity in recipe.items():
                item.inventory_requirements.append(
                    models.MenuItemInventory(inventory_item=stock[ingredient], quantity_required=quantity)
                )
            db.add(item)

    db.commit()
    logger.info("Seeded %d categories and %d inventory items", len(MENU), len(INVENTORY))


def main() -> None:
    configure_logging()
    engine = build_engine(get_settings().DATABASE_URL)
    Base.metadata.create_all(engine)
    db: Session = build_session_factory(engine, ChangeFeed())()
    try:
        seed(db)
        print(f"Seed complete. Owner login: {DEMO_OWNER_EMAIL} / {DEMO_OWNER_PASSWORD}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
