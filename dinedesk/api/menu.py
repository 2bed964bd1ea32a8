from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from .. import models, schemas
from ..permissions import Capability
from ..services import inventory as inventory_service
from ..services import menu as menu_service
from .dependencies import DbSession, require_capability

router = APIRouter(prefix="/api/menu", tags=["Menu"])


@router.get("", response_model=schemas.MenuOut)
def get_menu(db: DbSession):
    return schemas.MenuOut(
        categories=[schemas.CategoryOut.model_validate(c, from_attributes=True) for c in menu_service.active_categories(db)],
        menu_items=[schemas.MenuItemOut.model_validate(i, from_attributes=True) for i in menu_service.available_items(db)],
    )


@router.get("/categories/{category_id}/items", response_model=List[schemas.MenuItemOut])
def category_items(category_id: str, db: DbSession):
    menu_service.require_category(db, category_id)
    return menu_service.available_items(db, category_id)


@router.post(
    "/items/{menu_item_id}/requirements",
    response_model=schemas.RequirementOut,
    status_code=status.HTTP_201_CREATED,
)
def add_requirement(
    menu_item_id: str,
    payload: schemas.RequirementCreate,
    db: DbSession,
    _: Annotated[models.UserProfile, Depends(require_capability(Capability.menu))],
):
    menu_item = menu_service.require_menu_item(db, menu_item_id)
    return inventory_service.add_menu_requirement(db, menu_item, payload)
