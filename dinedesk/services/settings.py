from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..core.errors import NotFound

logger = logging.getLogger(__name__)


def get_active_settings(db: Session) -> models.RestaurantSettings | None:
    stmt = (
        select(models.RestaurantSettings)
        .where(models.RestaurantSettings.is_active.is_(True))
        .order_by(models.RestaurantSettings.created_at.asc())
    )
    return db.scalars(stmt).first()


def require_active_settings(db: Session) -> models.RestaurantSettings:
    record = get_active_settings(db)
    if record is None:
        raise NotFound("Restaurant settings not found")
    return record


def update_settings(db: Session, payload: schemas.RestaurantSettingsUpdate) -> models.RestaurantSettings:
    record = require_active_settings(db)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(record, field, value)
    record.updated_at = datetime.utcnow()
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Restaurant settings updated: %s", sorted(changes))
    return record
