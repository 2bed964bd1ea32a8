from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from dinedesk import models, schemas
from dinedesk.core.errors import AuthenticationFailed, ValidationFailed
from dinedesk.permissions import Permissions
from dinedesk.services import auth as auth_service

from conftest import PASSWORD, login_headers, make_user


def test_password_hash_round_trip():
    encoded = auth_service.hash_password("s3cret-pass")
    assert encoded.startswith("pbkdf2:sha256")
    assert "s3cret-pass" not in encoded
    assert auth_service.verify_password("s3cret-pass", encoded)
    assert not auth_service.verify_password("wrong", encoded)
    assert not auth_service.verify_password("s3cret-pass", "garbage")


def test_login_replaces_previous_session(db_session):
    make_user(db_session, "chef@example.com", models.UserRole.staff)

    first = auth_service.login(db_session, "chef@example.com", PASSWORD)
    first_token = first.session_token
    second = auth_service.login(db_session, "chef@example.com", PASSWORD)

    assert auth_service.verify_session(db_session, first_token) is None
    user = auth_service.verify_session(db_session, second.session_token)
    assert user.email == "chef@example.com"
    assert user.last_login is not None


def test_login_rejects_bad_credentials_and_inactive_users(db_session):
    user = make_user(db_session, "chef@example.com", models.UserRole.staff)

    with pytest.raises(AuthenticationFailed):
        auth_service.login(db_session, "chef@example.com", "not-the-password")

    auth_service.deactivate_user(db_session, user)
    with pytest.raises(AuthenticationFailed) as exc:
        auth_service.login(db_session, "chef@example.com", PASSWORD)
    assert exc.value.message == "Invalid email or password"


def test_expired_sessions_are_invalid_and_cleaned_up(db_session):
    make_user(db_session, "chef@example.com", models.UserRole.staff)
    session = auth_service.login(db_session, "chef@example.com", PASSWORD, ttl=timedelta(hours=-1))

    assert auth_service.verify_session(db_session, session.session_token) is None
    assert auth_service.cleanup_expired_sessions(db_session) == 1


def test_login_sweeps_other_expired_sessions(db_session):
    make_user(db_session, "chef@example.com", models.UserRole.staff)
    make_user(db_session, "cook@example.com", models.UserRole.staff)
    stale = auth_service.login(db_session, "chef@example.com", PASSWORD, ttl=timedelta(hours=-1))
    stale_token = stale.session_token

    auth_service.login(db_session, "cook@example.com", PASSWORD)

    remaining = db_session.scalars(select(models.UserSession.session_token)).all()
    assert stale_token not in remaining
    assert len(remaining) == 1


def test_new_users_get_role_defaults_and_unique_email(db_session):
    manager = make_user(db_session, "Manager@Example.com", models.UserRole.manager)
    assert manager.email == "manager@example.com"
    assert manager.permissions["inventory"] is True
    assert manager.permissions["users"] is False

    with pytest.raises(ValidationFailed):
        make_user(db_session, "manager@example.com", models.UserRole.staff)


def test_login_and_me_endpoints(client, app_db):
    make_user(app_db, "owner@example.com", models.UserRole.owner)

    bad = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope"})
    assert bad.status_code == 401
    assert bad.json() == {"error": "Invalid email or password"}

    response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert response.status_code == 200
    token = response.json()["session_token"]
    headers = {"X-Session-Token": token}

    me = client.get("/api/auth/me", headers=headers).json()
    assert me["role"] == "owner"
    assert me["permissions"]["settings"] is True
    assert "password_hash" not in me

    assert client.get("/api/auth/me", params={"token": token}).status_code == 200

    assert client.post("/api/auth/logout", headers=headers).status_code == 204
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_user_management_endpoints(client, app_db, owner_headers):
    created = client.post(
        "/api/users",
        json={"email": "cook@example.com", "password": PASSWORD, "role": "staff"},
        headers=owner_headers,
    )
    assert created.status_code == 201
    cook = created.json()
    assert cook["permissions"]["orders"] is True
    assert cook["created_by"] is not None

    cook_headers = login_headers(app_db, "cook@example.com")
    assert client.get("/api/users", headers=cook_headers).status_code == 403

    users = client.get("/api/users", headers=owner_headers).json()
    assert {user["email"] for user in users} == {"owner@example.com", "cook@example.com"}

    promoted = client.patch(
        f"/api/users/{cook['id']}", json={"role": "manager"}, headers=owner_headers
    ).json()
    assert promoted["role"] == "manager"

    deactivated = client.post(f"/api/users/{cook['id']}/deactivate", headers=owner_headers).json()
    assert deactivated["is_active"] is False
    assert client.get("/api/auth/me", headers=cook_headers).status_code == 401


def test_only_owners_create_users_or_grant_owner(client, app_db):
    auth_service.create_user(
        app_db,
        schemas.UserCreate(
            email="floor@example.com",
            password=PASSWORD,
            role=models.UserRole.manager,
            permissions=Permissions(dashboard=True, orders=True, users=True),
        ),
    )
    manager_headers = login_headers(app_db, "floor@example.com")

    escalated = client.post(
        "/api/users",
        json={"email": "boss@example.com", "password": PASSWORD, "role": "owner"},
        headers=manager_headers,
    )
    assert escalated.status_code == 403
    assert escalated.json() == {"error": "Only owners can create users"}

    staff = make_user(app_db, "cook@example.com", models.UserRole.staff)
    promoted = client.patch(f"/api/users/{staff.id}", json={"role": "owner"}, headers=manager_headers)
    assert promoted.status_code == 403

    # Managers with the users capability still run the roster.
    listed = client.get("/api/users", headers=manager_headers)
    assert listed.status_code == 200
    assert "boss@example.com" not in {user["email"] for user in listed.json()}
