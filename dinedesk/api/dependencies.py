from __future__ import annotations

from typing import Annotated, Callable, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models
from ..database import get_db
from ..permissions import Capability, Permissions
from ..services import auth as auth_service

DbSession = Annotated[Session, Depends(get_db)]


def get_session_token(
    x_session_token: Optional[str] = Header(None),
    token: Optional[str] = Query(None, description="For EventSource clients that cannot set headers."),
) -> Optional[str]:
    return x_session_token or token


SessionToken = Annotated[Optional[str], Depends(get_session_token)]


def authorize(db: Session, token: Optional[str], capability: Optional[Capability] = None) -> models.UserProfile:
    user = auth_service.verify_session(db, token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    if capability is not None and not Permissions.from_mapping(user.permissions).allows(capability):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing '{capability.value}' permission")
    return user


def get_current_user(db: DbSession, token: SessionToken) -> models.UserProfile:
    return authorize(db, token)


CurrentUser = Annotated[models.UserProfile, Depends(get_current_user)]


def require_capability(capability: Capability) -> Callable[..., models.UserProfile]:
    def dependency(db: DbSession, token: SessionToken) -> models.UserProfile:
        return authorize(db, token, capability)

    return dependency
