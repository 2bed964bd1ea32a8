"""Service functions for the DineDesk API. Each takes an open ``Session``."""

from . import analytics, auth, inventory, menu, orders, roles, settings

__all__ = [
    "analytics",
    "auth",
    "inventory",
    "menu",
    "orders",
    "roles",
    "settings",
]
