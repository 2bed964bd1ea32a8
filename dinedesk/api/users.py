from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from .. import models, schemas
from ..core.errors import PermissionDenied
from ..permissions import Capability
from ..services import auth as auth_service
from .dependencies import DbSession, require_capability
from .serializers import user as serialize_user

router = APIRouter(prefix="/api/users", tags=["Users"])

UsersAdmin = Annotated[models.UserProfile, Depends(require_capability(Capability.users))]


def _require_owner(admin: models.UserProfile, action: str) -> None:
    if admin.role != models.UserRole.owner:
        raise PermissionDenied(f"Only owners can {action}")


@router.get("", response_model=List[schemas.UserOut])
def list_users(db: DbSession, _: UsersAdmin):
    return [serialize_user(user) for user in auth_service.list_users(db)]


@router.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: schemas.UserCreate, db: DbSession, admin: UsersAdmin):
    _require_owner(admin, "create users")
    return serialize_user(auth_service.create_user(db, payload, created_by=admin.id))


@router.patch("/{user_id}", response_model=schemas.UserOut)
def update_user(user_id: str, payload: schemas.UserUpdate, db: DbSession, admin: UsersAdmin):
    if payload.role == models.UserRole.owner:
        _require_owner(admin, "grant the owner role")
    user = auth_service.require_user(db, user_id)
    return serialize_user(auth_service.update_user(db, user, payload))


@router.post("/{user_id}/deactivate", response_model=schemas.UserOut)
def deactivate_user(user_id: str, db: DbSession, _: UsersAdmin):
    user = auth_service.require_user(db, user_id)
    return serialize_user(auth_service.deactivate_user(db, user))
