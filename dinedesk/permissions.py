"""Capability keys and the per-role permission matrix."""

from __future__ import annotations

import enum
from typing import Dict

from pydantic import BaseModel

from .models import UserRole


class Capability(str, enum.Enum):
    dashboard = "dashboard"
    orders = "orders"
    menu = "menu"
    inventory = "inventory"
    analytics = "analytics"
    users = "users"
    settings = "settings"


class Permissions(BaseModel):
    dashboard: bool = False
    orders: bool = False
    menu: bool = False
    inventory: bool = False
    analytics: bool = False
    users: bool = False
    settings: bool = False

    class Config:
        frozen = True

    def allows(self, capability: Capability) -> bool:
        if capability is Capability.dashboard:
            return self.dashboard
        if capability is Capability.orders:
            return self.orders
        if capability is Capability.menu:
            return self.menu
        if capability is Capability.inventory:
            return self.inventory
        if capability is Capability.analytics:
            return self.analytics
        if capability is Capability.users:
            return self.users
        if capability is Capability.settings:
            return self.settings
        raise ValueError(f"Unknown capability {capability!r}")

    @classmethod
    def from_mapping(cls, data: Dict[str, bool] | None) -> "Permissions":
        data = data or {}
        return cls(**{cap.value: bool(data.get(cap.value, False)) for cap in Capability})


DEFAULT_PERMISSIONS: Dict[UserRole, Permissions] = {
    UserRole.owner: Permissions(
        dashboard=True, orders=True, menu=True, inventory=True, analytics=True, users=True, settings=True
    ),
    UserRole.manager: Permissions(
        dashboard=True, orders=True, menu=True, inventory=True, analytics=True, users=False, settings=False
    ),
    UserRole.staff: Permissions(dashboard=True, orders=True),
}
