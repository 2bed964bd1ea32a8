from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from dinedesk import models, schemas
from dinedesk.changefeed import ChangeFeed
from dinedesk.config import Settings
from dinedesk.database import Base, build_engine, build_session_factory
from dinedesk.main import create_app
from dinedesk.services import auth as auth_service
from dinedesk.services import orders as order_service

PASSWORD = "correct-horse-battery"


def seed_menu(db: Session) -> SimpleNamespace:
    mains = models.Category(name="Mains", display_order=0)
    drinks = models.Category(name="Drinks", display_order=1)
    tikka = models.MenuItem(category=mains, name="Paneer Tikka", price=150.0)
    lassi = models.MenuItem(category=drinks, name="Mango Lassi", price=80.0)
    chai = models.MenuItem(category=drinks, name="Masala Chai", price=40.0, display_order=1)
    hidden = models.MenuItem(category=mains, name="Seasonal Special", price=300.0, is_available=False)
    paneer = models.InventoryItem(name="Paneer", unit="kg", current_stock=1.0, minimum_stock=0.2, cost_per_unit=400.0)
    yogurt = models.InventoryItem(name="Yogurt", unit="kg", current_stock=2.0, minimum_stock=0.5, cost_per_unit=90.0)
    tikka.inventory_requirements.append(models.MenuItemInventory(inventory_item=paneer, quantity_required=0.2))
    tikka.inventory_requirements.append(models.MenuItemInventory(inventory_item=yogurt, quantity_required=0.05))
    lassi.inventory_requirements.append(models.MenuItemInventory(inventory_item=yogurt, quantity_required=0.25))
    db.add_all([mains, drinks, tikka, lassi, chai, hidden, paneer, yogurt])
    db.commit()
    return SimpleNamespace(
        mains=mains.id,
        drinks=drinks.id,
        tikka=tikka.id,
        lassi=lassi.id,
        chai=chai.id,
        hidden=hidden.id,
        paneer=paneer.id,
        yogurt=yogurt.id,
    )


def checkout_payload(menu: SimpleNamespace, tikka: int = 2, lassi: int = 1) -> schemas.OrderCreate:
    items = []
    if tikka:
        items.append(schemas.CheckoutItem(menu_item_id=menu.tikka, quantity=tikka, unit_price=150.0))
    if lassi:
        items.append(schemas.CheckoutItem(menu_item_id=menu.lassi, quantity=lassi, unit_price=80.0))
    return schemas.OrderCreate(customer_name="Asha", customer_phone="+91-98000-00001", items=items)


def place_order(db: Session, menu: SimpleNamespace, **kwargs) -> models.Order:
    return order_service.create_order(db, checkout_payload(menu, **kwargs))


@pytest.fixture()
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture()
def session_factory(feed):
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine, feed)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(session_factory) -> Session:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def menu(db_session) -> SimpleNamespace:
    return seed_menu(db_session)


@pytest.fixture()
def app():
    settings = Settings(DATABASE_URL="sqlite:///:memory:", LOG_LEVEL="WARNING")
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture()
def client(app) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def app_db(app) -> Session:
    db = app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def app_menu(app_db) -> SimpleNamespace:
    return seed_menu(app_db)


def make_user(db: Session, email: str, role: models.UserRole) -> models.UserProfile:
    return auth_service.create_user(db, schemas.UserCreate(email=email, password=PASSWORD, role=role))


def login_headers(db: Session, email: str) -> dict:
    session = auth_service.login(db, email, PASSWORD)
    return {"X-Session-Token": session.session_token}


@pytest.fixture()
def owner_headers(app_db) -> dict:
    make_user(app_db, "owner@example.com", models.UserRole.owner)
    return login_headers(app_db, "owner@example.com")


@pytest.fixture()
def staff_headers(app_db) -> dict:
    make_user(app_db, "staff@example.com", models.UserRole.staff)
    return login_headers(app_db, "staff@example.com")


def order_snapshot(
    order_id: str = "o-1",
    status: models.OrderStatus = models.OrderStatus.pending,
    item_status: models.ItemStatus = models.ItemStatus.pending,
    created_at: datetime = datetime(2024, 5, 10, 9, 30),
    total: float = 380.0,
) -> schemas.OrderOut:
    """An order as the client sees it, without touching the database."""
    return schemas.OrderOut(
        id=order_id,
        customer_name="Asha",
        customer_phone="+91-98000-00001",
        status=status,
        payment_status=models.PaymentStatus.pending,
        total_amount=total,
        created_at=created_at,
        updated_at=created_at,
        order_items=[
            schemas.OrderItemOut(
                id=f"{order_id}-i1",
                order_id=order_id,
                menu_item_id="m-1",
                quantity=2,
                unit_price=150.0,
                total_price=300.0,
                item_status=item_status,
            )
        ],
    )
