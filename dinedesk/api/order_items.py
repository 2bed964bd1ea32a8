from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from .. import models, schemas
from ..permissions import Capability
from ..services import orders as order_service
from .dependencies import DbSession, require_capability
from .serializers import order as serialize_order

router = APIRouter(prefix="/api/order-items", tags=["Orders"])

OrdersUser = Annotated[models.UserProfile, Depends(require_capability(Capability.orders))]


@router.patch("/{item_id}/status", response_model=schemas.OrderOut)
def update_item_status(item_id: str, payload: schemas.ItemStatusUpdate, db: DbSession, _: OrdersUser):
    item = order_service.require_order_item(db, item_id)
    return serialize_order(order_service.update_item_status(db, item, payload.item_status))


@router.post("/{item_id}/complete-unit", response_model=schemas.OrderOut)
def complete_unit(item_id: str, db: DbSession, _: OrdersUser):
    item = order_service.require_order_item(db, item_id)
    return serialize_order(order_service.complete_item_unit(db, item))
