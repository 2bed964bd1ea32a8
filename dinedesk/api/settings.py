from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from .. import models, schemas
from ..permissions import Capability
from ..services import settings as settings_service
from .dependencies import DbSession, require_capability

router = APIRouter(prefix="/api/restaurant-settings", tags=["Settings"])


@router.get("", response_model=schemas.RestaurantSettingsOut)
def get_settings(db: DbSession):
    return settings_service.require_active_settings(db)


@router.put("", response_model=schemas.RestaurantSettingsOut)
def update_settings(
    payload: schemas.RestaurantSettingsUpdate,
    db: DbSession,
    _: Annotated[models.UserProfile, Depends(require_capability(Capability.settings))],
):
    return settings_service.update_settings(db, payload)
