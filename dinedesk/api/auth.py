from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, status

from .. import schemas
from ..config import get_settings
from ..services import auth as auth_service
from .dependencies import CurrentUser, DbSession, SessionToken
from .serializers import session as serialize_session
from .serializers import user as serialize_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=schemas.SessionOut)
def login(payload: schemas.LoginRequest, db: DbSession):
    ttl = timedelta(hours=get_settings().SESSION_TTL_HOURS)
    session = auth_service.login(db, payload.email, payload.password, ttl=ttl)
    return serialize_session(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(db: DbSession, token: SessionToken):
    if token:
        auth_service.logout(db, token)


@router.get("/me", response_model=schemas.UserOut)
def me(user: CurrentUser):
    return serialize_user(user)
