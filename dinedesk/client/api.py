from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .. import models, schemas
from ..config import get_settings

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Session-Token"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, details: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


class SessionExpired(ApiError):
    pass


class DineDeskClient:
    """Async HTTP client for the DineDesk API.

    A 401 clears the held token, fires ``on_unauthorized`` and raises
    :class:`SessionExpired`.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.on_unauthorized = on_unauthorized
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings=None, **kwargs) -> "DineDeskClient":
        settings = settings or get_settings()
        return cls(settings.API_BASE_URL, **kwargs)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "DineDeskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, *, expect_session: bool = True, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers[TOKEN_HEADER] = self.token
        resp = await self._http.request(method, path, headers=headers, **kwargs)
        logger.debug("%s %s -> %s", method, path, resp.status_code)

        if resp.status_code == httpx.codes.UNAUTHORIZED and expect_session:
            self.token = None
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise SessionExpired(resp.status_code, _error_message(resp))
        if resp.is_error:
            body = _json_or_none(resp) or {}
            details = body.get("details") if isinstance(body, dict) else None
            raise ApiError(resp.status_code, _error_message(resp), details)
        if resp.status_code == httpx.codes.NO_CONTENT:
            return None
        return resp.json()

    # ---- Auth ----
    async def login(self, email: str, password: str) -> schemas.SessionOut:
        data = await self._request(
            "POST",
            "/api/auth/login",
            json={"email": email, "password": password},
            expect_session=False,
        )
        session = schemas.SessionOut.model_validate(data)
        self.token = session.session_token
        return session

    async def logout(self) -> None:
        if self.token:
            await self._request("POST", "/api/auth/logout")
        self.token = None

    async def me(self) -> schemas.UserOut:
        return schemas.UserOut.model_validate(await self._request("GET", "/api/auth/me"))

    # ---- Menu & checkout ----
    async def get_menu(self) -> schemas.MenuOut:
        return schemas.MenuOut.model_validate(await self._request("GET", "/api/menu"))

    async def checkout(self, payload: schemas.OrderCreate) -> schemas.OrderOut:
        data = await self._request("POST", "/api/orders", json=payload.model_dump(mode="json"))
        return schemas.OrderOut.model_validate(data)

    # ---- Orders ----
    async def list_orders(self, status: Optional[models.OrderStatus] = None) -> List[schemas.OrderOut]:
        params = {"status": status.value} if status else None
        data = await self._request("GET", "/api/orders", params=params)
        return [schemas.OrderOut.model_validate(row) for row in data]

    async def get_order(self, order_id: str) -> schemas.OrderOut:
        return schemas.OrderOut.model_validate(await self._request("GET", f"/api/orders/{order_id}"))

    async def update_order_status(self, order_id: str, status: models.OrderStatus) -> schemas.OrderOut:
        data = await self._request("PATCH", f"/api/orders/{order_id}/status", json={"status": status.value})
        return schemas.OrderOut.model_validate(data)

    async def update_payment_status(self, order_id: str, payment_status: models.PaymentStatus) -> schemas.OrderOut:
        data = await self._request(
            "PATCH", f"/api/orders/{order_id}/payment", json={"payment_status": payment_status.value}
        )
        return schemas.OrderOut.model_validate(data)

    async def cancel_order(self, order_id: str, reason: str) -> schemas.OrderOut:
        data = await self._request("POST", f"/api/orders/{order_id}/cancel", json={"reason": reason})
        return schemas.OrderOut.model_validate(data)

    async def update_all_order_items(self, order_id: str, status: models.ItemStatus) -> schemas.OrderOut:
        data = await self._request("PATCH", f"/api/orders/{order_id}/items", json={"item_status": status.value})
        return schemas.OrderOut.model_validate(data)

    async def update_item_status(self, item_id: str, status: models.ItemStatus) -> schemas.OrderOut:
        data = await self._request(
            "PATCH", f"/api/order-items/{item_id}/status", json={"item_status": status.value}
        )
        return schemas.OrderOut.model_validate(data)

    async def complete_item_unit(self, item_id: str) -> schemas.OrderOut:
        data = await self._request("POST", f"/api/order-items/{item_id}/complete-unit")
        return schemas.OrderOut.model_validate(data)

    # ---- Inventory & analytics ----
    async def inventory(self) -> schemas.InventoryOverview:
        return schemas.InventoryOverview.model_validate(await self._request("GET", "/api/inventory"))

    async def deduct_inventory(self, order_id: str) -> schemas.DeductResult:
        data = await self._request("POST", "/api/inventory/deduct", json={"orderId": order_id})
        return schemas.DeductResult.model_validate(data)

    async def analytics(self, period: str = "7", metric: str = "all") -> Dict[str, Any]:
        return await self._request("GET", "/api/analytics", params={"period": period, "metric": metric})

    # ---- Settings & roles ----
    async def restaurant_settings(self) -> schemas.RestaurantSettingsOut:
        return schemas.RestaurantSettingsOut.model_validate(await self._request("GET", "/api/restaurant-settings"))

    async def update_restaurant_settings(
        self, payload: schemas.RestaurantSettingsUpdate
    ) -> schemas.RestaurantSettingsOut:
        data = await self._request(
            "PUT", "/api/restaurant-settings", json=payload.model_dump(mode="json", exclude_unset=True)
        )
        return schemas.RestaurantSettingsOut.model_validate(data)

    async def roles(self) -> List[schemas.RoleOut]:
        return [schemas.RoleOut.model_validate(row) for row in await self._request("GET", "/api/roles")]

    async def update_role(self, payload: schemas.RoleUpdate) -> schemas.RoleOut:
        data = await self._request("PUT", "/api/roles", json=payload.model_dump(mode="json", exclude_unset=True))
        return schemas.RoleOut.model_validate(data)


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_message(resp: httpx.Response) -> str:
    body = _json_or_none(resp)
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str):
            return message
    return f"HTTP {resp.status_code}"
