from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends

from .. import models, schemas
from ..permissions import Capability
from ..services import roles as role_service
from .dependencies import DbSession, require_capability

router = APIRouter(prefix="/api/roles", tags=["Roles"])

UsersAdmin = Annotated[models.UserProfile, Depends(require_capability(Capability.users))]


@router.get("", response_model=List[schemas.RoleOut])
def list_roles(db: DbSession, _: UsersAdmin):
    return role_service.list_roles(db)


@router.put("", response_model=schemas.RoleOut)
def update_role(payload: schemas.RoleUpdate, db: DbSession, _: UsersAdmin):
    return role_service.update_role(db, payload)
