from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..core.errors import NotFound, ValidationFailed
from ..permissions import DEFAULT_PERMISSIONS, Permissions

logger = logging.getLogger(__name__)

SYSTEM_ROLE_DESCRIPTIONS = {
    models.UserRole.owner: "Full access including users and restaurant settings",
    models.UserRole.manager: "Runs the floor, menu, inventory and reports",
    models.UserRole.staff: "Takes and serves orders",
}


def _role_out(role: models.Role, user_count: int) -> schemas.RoleOut:
    return schemas.RoleOut(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=Permissions.from_mapping(role.permissions),
        user_count=user_count,
        is_system=role.is_system,
    )


def _user_count(db: Session, role_name: str) -> int:
    if role_name not in models.UserRole.__members__:
        return 0
    stmt = select(func.count(models.UserProfile.id)).where(models.UserProfile.role == models.UserRole(role_name))
    return db.scalar(stmt) or 0


def list_roles(db: Session) -> List[schemas.RoleOut]:
    counts = dict(
        db.execute(
            select(models.UserProfile.role, func.count(models.UserProfile.id)).group_by(models.UserProfile.role)
        ).all()
    )
    roles = db.scalars(select(models.Role).order_by(models.Role.name.asc())).all()
    out = []
    for role in roles:
        try:
            key = models.UserRole(role.name)
        except ValueError:
            key = None
        out.append(_role_out(role, counts.get(key, 0)))
    return out


def update_role(db: Session, payload: schemas.RoleUpdate) -> schemas.RoleOut:
    if not payload.id or payload.permissions is None:
        raise ValidationFailed("Role ID and permissions are required")

    role = db.get(models.Role, payload.id)
    if role is None:
        raise NotFound("Role not found")

    role.permissions = payload.permissions.model_dump()
    if "description" in payload.model_fields_set:
        role.description = payload.description
    role.updated_at = datetime.utcnow()
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info("Role %s permissions updated", role.name)

    return _role_out(role, _user_count(db, role.name))


def ensure_system_roles(db: Session) -> None:
    existing = set(db.scalars(select(models.Role.name)).all())
    created = []
    for role, permissions in DEFAULT_PERMISSIONS.items():
        if role.value in existing:
            continue
        db.add(
            models.Role(
                name=role.value,
                description=SYSTEM_ROLE_DESCRIPTIONS[role],
                permissions=permissions.model_dump(),
                is_system=True,
            )
        )
        created.append(role.value)
    if created:
        db.commit()
        logger.info("Created system roles: %s", created)
