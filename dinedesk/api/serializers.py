from __future__ import annotations

from .. import models, schemas
from ..permissions import Permissions


def order(order: models.Order) -> schemas.OrderOut:
    return schemas.OrderOut.model_validate(order, from_attributes=True)


def user(user: models.UserProfile) -> schemas.UserOut:
    return schemas.UserOut(
        id=user.id,
        email=user.email,
        role=user.role,
        permissions=Permissions.from_mapping(user.permissions),
        is_active=user.is_active,
        created_by=user.created_by,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def session(session: models.UserSession) -> schemas.SessionOut:
    return schemas.SessionOut(
        session_token=session.session_token,
        expires_at=session.expires_at,
        user=user(session.user),
    )
