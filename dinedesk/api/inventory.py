from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Response, status

from .. import models, schemas
from ..permissions import Capability
from ..services import inventory as inventory_service
from .dependencies import DbSession, require_capability

router = APIRouter(prefix="/api/inventory", tags=["Inventory"])

InventoryUser = Annotated[models.UserProfile, Depends(require_capability(Capability.inventory))]
OrdersUser = Annotated[models.UserProfile, Depends(require_capability(Capability.orders))]


@router.get("", response_model=schemas.InventoryOverview)
def overview(db: DbSession, _: InventoryUser):
    return inventory_service.inventory_overview(db)


@router.post("", response_model=schemas.InventoryItemOut, status_code=status.HTTP_201_CREATED)
def create_item(payload: schemas.InventoryItemCreate, db: DbSession, _: InventoryUser):
    item = inventory_service.create_inventory_item(db, payload)
    return inventory_service.serialize_inventory_item(item)


@router.patch("/{item_id}", response_model=schemas.InventoryItemOut)
def update_item(item_id: str, payload: schemas.InventoryItemUpdate, db: DbSession, _: InventoryUser):
    item = inventory_service.require_inventory_item(db, item_id)
    item = inventory_service.update_inventory_item(db, item, payload)
    return inventory_service.serialize_inventory_item(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(item_id: str, db: DbSession, _: InventoryUser):
    item = inventory_service.require_inventory_item(db, item_id)
    inventory_service.delete_inventory_item(db, item)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/restock", response_model=schemas.InventoryItemOut)
def restock(item_id: str, payload: schemas.RestockRequest, db: DbSession, _: InventoryUser):
    item = inventory_service.require_inventory_item(db, item_id)
    item = inventory_service.restock_item(db, item, payload.quantity)
    return inventory_service.serialize_inventory_item(item)


@router.post("/deduct", response_model=schemas.DeductResult)
def deduct(db: DbSession, _: OrdersUser, payload: Optional[schemas.DeductRequest] = None):
    order_id = payload.order_id if payload is not None else None
    return inventory_service.deduct_for_order(db, order_id)
