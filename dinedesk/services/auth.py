"""Password login, opaque session tokens and user administration."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from .. import models, schemas
from ..core.errors import AuthenticationFailed, NotFound, ValidationFailed
from ..permissions import DEFAULT_PERMISSIONS

logger = logging.getLogger(__name__)

HASH_METHOD = "pbkdf2:sha256"
DEFAULT_SESSION_TTL = timedelta(hours=24)


def hash_password(password: str) -> str:
    return generate_password_hash(password, method=HASH_METHOD)


def verify_password(password: str, encoded: str) -> bool:
    return check_password_hash(encoded, password)


def login(
    db: Session, email: str, password: str, *, ttl: timedelta = DEFAULT_SESSION_TTL
) -> models.UserSession:
    stmt = select(models.UserProfile).where(
        models.UserProfile.email == email.strip().lower(),
        models.UserProfile.is_active.is_(True),
    )
    user = db.scalars(stmt).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationFailed("Invalid email or password")

    cleanup_expired_sessions(db)
    # One live session per user.
    db.execute(delete(models.UserSession).where(models.UserSession.user_id == user.id))

    now = datetime.utcnow()
    session = models.UserSession(
        user_id=user.id,
        session_token=secrets.token_urlsafe(32),
        expires_at=now + ttl,
    )
    user.last_login = now
    db.add_all([session, user])
    db.commit()
    db.refresh(session)
    logger.info("User %s logged in", user.email)
    return session


def logout(db: Session, token: str) -> None:
    db.execute(delete(models.UserSession).where(models.UserSession.session_token == token))
    db.commit()


def verify_session(db: Session, token: str | None) -> models.UserProfile | None:
    if not token:
        return None
    stmt = (
        select(models.UserProfile)
        .join(models.UserSession, models.UserSession.user_id == models.UserProfile.id)
        .where(
            models.UserSession.session_token == token,
            models.UserSession.expires_at > datetime.utcnow(),
            models.UserProfile.is_active.is_(True),
        )
    )
    return db.scalars(stmt).first()


def cleanup_expired_sessions(db: Session) -> int:
    result = db.execute(delete(models.UserSession).where(models.UserSession.expires_at <= datetime.utcnow()))
    db.commit()
    if result.rowcount:
        logger.info("Removed %d expired sessions", result.rowcount)
    return result.rowcount or 0


def create_user(db: Session, payload: schemas.UserCreate, created_by: str | None = None) -> models.UserProfile:
    permissions = payload.permissions or DEFAULT_PERMISSIONS[payload.role]
    user = models.UserProfile(
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password),
        role=payload.role,
        permissions=permissions.model_dump(),
        created_by=created_by,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationFailed("A user with this email already exists") from exc
    db.refresh(user)
    logger.info("User %s created with role %s", user.email, user.role.value)
    return user


def list_users(db: Session) -> Sequence[models.UserProfile]:
    stmt = select(models.UserProfile).order_by(models.UserProfile.created_at.desc())
    return db.scalars(stmt).all()


def require_user(db: Session, user_id: str) -> models.UserProfile:
    user = db.get(models.UserProfile, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def update_user(db: Session, user: models.UserProfile, payload: schemas.UserUpdate) -> models.UserProfile:
    changes = payload.model_dump(exclude_unset=True)
    if "role" in changes and changes["role"] is not None:
        user.role = changes["role"]
    if "permissions" in changes and payload.permissions is not None:
        user.permissions = payload.permissions.model_dump()
    if "is_active" in changes and changes["is_active"] is not None:
        user.is_active = changes["is_active"]
        if not user.is_active:
            db.execute(delete(models.UserSession).where(models.UserSession.user_id == user.id))
    user.updated_at = datetime.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user: models.UserProfile) -> models.UserProfile:
    return update_user(db, user, schemas.UserUpdate(is_active=False))
