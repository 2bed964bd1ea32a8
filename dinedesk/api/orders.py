from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from .. import models, schemas
from ..permissions import Capability
from ..services import orders as order_service
from .dependencies import DbSession, require_capability
from .serializers import order as serialize_order

router = APIRouter(prefix="/api/orders", tags=["Orders"])

OrdersUser = Annotated[models.UserProfile, Depends(require_capability(Capability.orders))]


@router.post("", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def checkout(payload: schemas.OrderCreate, db: DbSession):
    return serialize_order(order_service.create_order(db, payload))


@router.get("", response_model=List[schemas.OrderOut])
def list_orders(
    db: DbSession,
    _: OrdersUser,
    status_filter: Optional[models.OrderStatus] = Query(None, alias="status"),
):
    return [serialize_order(order) for order in order_service.list_orders(db, status=status_filter)]


@router.get("/{order_id}", response_model=schemas.OrderOut)
def get_order(order_id: str, db: DbSession):
    # Public so the order confirmation page can poll it.
    return serialize_order(order_service.require_order(db, order_id))


@router.patch("/{order_id}/status", response_model=schemas.OrderOut)
def update_status(order_id: str, payload: schemas.OrderStatusUpdate, db: DbSession, _: OrdersUser):
    order = order_service.require_order(db, order_id)
    return serialize_order(order_service.update_order_status(db, order, payload.status))


@router.patch("/{order_id}/payment", response_model=schemas.OrderOut)
def update_payment(order_id: str, payload: schemas.PaymentStatusUpdate, db: DbSession, _: OrdersUser):
    order = order_service.require_order(db, order_id)
    return serialize_order(order_service.update_payment_status(db, order, payload.payment_status))


@router.post("/{order_id}/cancel", response_model=schemas.OrderOut)
def cancel(order_id: str, payload: schemas.OrderCancel, db: DbSession, _: OrdersUser):
    order = order_service.require_order(db, order_id)
    return serialize_order(order_service.cancel_order(db, order, payload.reason))


@router.patch("/{order_id}/items", response_model=schemas.OrderOut)
def update_all_items(order_id: str, payload: schemas.ItemStatusUpdate, db: DbSession, _: OrdersUser):
    order = order_service.require_order(db, order_id)
    return serialize_order(order_service.update_all_order_items(db, order, payload.item_status))


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: str, db: DbSession, _: OrdersUser):
    order = order_service.require_order(db, order_id)
    order_service.delete_order(db, order)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
