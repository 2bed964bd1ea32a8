from __future__ import annotations

from fastapi import FastAPI

from . import analytics, auth, inventory, menu, order_items, orders, realtime, roles, settings, users


def register_routers(app: FastAPI) -> None:
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(roles.router)
    app.include_router(menu.router)
    # Before the orders router so that /realtime is not taken for an order id.
    app.include_router(realtime.router)
    app.include_router(orders.router)
    app.include_router(order_items.router)
    app.include_router(inventory.router)
    app.include_router(analytics.router)
    app.include_router(settings.router)
