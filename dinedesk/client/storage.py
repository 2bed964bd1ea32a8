"""Client-side persisted state: a JSON key/value file, the cart and the session token."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .. import schemas

logger = logging.getLogger(__name__)

CART_KEY = "cart"
SESSION_KEY = "session_token"


class LocalStore:
    def __init__(self, path: str | Path = ".dinedesk/state.json") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable state file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _persist(self) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2))
        tmp.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._persist()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._persist()

    def clear(self) -> None:
        self._data = {}
        self._persist()


@dataclass
class CartItem:
    id: str
    name: str
    price: float
    quantity: int = 1
    category: Optional[str] = None


class Cart:
    """Shopping cart persisted as a JSON array of line items."""

    def __init__(self, store: LocalStore) -> None:
        self.store = store
        self.items: List[CartItem] = [self._coerce(raw) for raw in store.get(CART_KEY, [])]

    @staticmethod
    def _coerce(raw: Dict[str, Any]) -> CartItem:
        return CartItem(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            price=float(raw.get("price", 0)),
            quantity=int(raw.get("quantity", 1)),
            category=raw.get("category"),
        )

    def _save(self) -> None:
        self.store.set(CART_KEY, [asdict(item) for item in self.items])

    def _find(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def add(self, menu_item: schemas.MenuItemOut | Dict[str, Any], category: Optional[str] = None) -> None:
        if isinstance(menu_item, schemas.MenuItemOut):
            menu_item = {"id": menu_item.id, "name": menu_item.name, "price": menu_item.price}
        existing = self._find(str(menu_item["id"]))
        if existing is not None:
            existing.quantity += 1
        else:
            self.items.append(self._coerce({**menu_item, "quantity": 1, "category": category}))
        self._save()

    def remove(self, item_id: str) -> None:
        existing = self._find(item_id)
        if existing is None:
            return
        existing.quantity -= 1
        if existing.quantity <= 0:
            self.items.remove(existing)
        self._save()

    def set_quantity(self, item_id: str, quantity: int) -> None:
        existing = self._find(item_id)
        if existing is None:
            return
        if quantity <= 0:
            self.items.remove(existing)
        else:
            existing.quantity = quantity
        self._save()

    @property
    def total(self) -> float:
        return round(sum(item.price * item.quantity for item in self.items), 2)

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_checkout(self, customer_name: str, customer_phone: str, notes: Optional[str] = None) -> schemas.OrderCreate:
        return schemas.OrderCreate(
            customer_name=customer_name,
            customer_phone=customer_phone,
            notes=notes,
            items=[
                schemas.CheckoutItem(menu_item_id=item.id, quantity=item.quantity, unit_price=item.price)
                for item in self.items
            ],
        )

    def clear(self) -> None:
        self.items = []
        self._save()


def load_session_token(store: LocalStore) -> Optional[str]:
    return store.get(SESSION_KEY)


def save_session_token(store: LocalStore, token: Optional[str]) -> None:
    if token:
        store.set(SESSION_KEY, token)
    else:
        store.remove(SESSION_KEY)
