"""Auth module tests — password login, JWT claims, sessions, refresh rotation, RBAC."""

from __future__ import annotations

import hashlib
import uuid

from jose import jwt
from sqlalchemy import select

from hrms.auth.dependencies import has_permission, has_role
from hrms.auth.models import RoleAssignment, UserSession
from hrms.auth.service import hash_password, verify_password
from hrms.common.constants import PERMISSIONS, UserRole
from hrms.config import settings
from hrms.core_hr.models import Employee
from tests.conftest import TestSessionFactory, _make_employee, create_access_token

PASSWORD = "correct-horse-battery"


async def _seed_login_user(db, *, role: UserRole | None = None, is_active: bool = True) -> dict:
    data = _make_employee(staff_id="0042", first_name="Mya", last_name="Thandar",
                          password_hash=hash_password(PASSWORD))
    data["is_active"] = is_active
    db.add(Employee(**data))
    if role is not None:
        db.add(RoleAssignment(employee_id=data["id"], role=role, is_active=True))
    await db.flush()
    return data


async def _login(client, email: str, password: str = PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


# ── Passwords ───────────────────────────────────────────────────────


def test_password_hash_roundtrip():
    hashed = hash_password(PASSWORD)
    assert hashed != PASSWORD
    assert verify_password(PASSWORD, hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password(PASSWORD, None)


# ── Login ───────────────────────────────────────────────────────────


async def test_login_returns_token_pair_and_user(client, db):
    user = await _seed_login_user(db, role=UserRole.hr_admin)

    resp = await _login(client, user["email"])

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.JWT_EXPIRY_HOURS * 3600
    assert data["user"]["staff_id"] == "0042"
    assert data["user"]["display_name"] == "Mya Thandar"
    assert data["user"]["organization"] == "SMRU"
    assert data["user"]["role"] == "hr_admin"

    payload = jwt.decode(data["access_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == str(user["id"])
    assert payload["role"] == "hr_admin"
    assert payload["type"] == "access"


async def test_login_email_is_case_insensitive(client, db):
    user = await _seed_login_user(db)
    resp = await _login(client, user["email"].upper())
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["role"] == "employee"


async def test_login_wrong_password(client, db):
    user = await _seed_login_user(db)
    resp = await _login(client, user["email"], "not-the-password")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Invalid email or password."


async def test_login_unknown_email_same_error(client):
    resp = await _login(client, "nobody@smru.ac.th")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Invalid email or password."


async def test_login_inactive_employee_rejected(client, db):
    user = await _seed_login_user(db, is_active=False)
    resp = await _login(client, user["email"])
    assert resp.status_code == 403


async def test_login_missing_password_is_422(client):
    resp = await client.post("/api/v1/auth/login", json={"email": "someone@smru.ac.th"})
    assert resp.status_code == 422
    assert "password" in resp.json()["errors"]


async def test_login_persists_hashed_session(client, db):
    user = await _seed_login_user(db)
    token = (await _login(client, user["email"])).json()["data"]["access_token"]

    async with TestSessionFactory() as session:
        row = (await session.execute(
            select(UserSession).where(UserSession.employee_id == user["id"])
        )).scalars().first()
    assert row is not None
    assert row.token_hash == hashlib.sha256(token.encode()).hexdigest()
    assert row.is_revoked is False


# ── Authenticated requests ──────────────────────────────────────────


async def test_me_returns_profile_and_permissions(client, test_employee, auth_headers):
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == str(test_employee["id"])
    assert data["role"] == "employee"
    assert data["permissions"] == PERMISSIONS[UserRole.employee]


async def test_token_without_session_rejected(client, test_employee):
    token = create_access_token(test_employee["id"])
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Session invalid or expired."


async def test_expired_token_rejected(client, test_employee):
    token = create_access_token(test_employee["id"], expired=True)
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token has expired."


async def test_logout_revokes_session(client, db):
    user = await _seed_login_user(db)
    token = (await _login(client, user["email"])).json()["data"]["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    resp = await client.post("/api/v1/auth/logout", headers=headers)
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


# ── Refresh rotation ────────────────────────────────────────────────


async def test_refresh_rotates_tokens(client, db):
    user = await _seed_login_user(db)
    tokens = (await _login(client, user["email"])).json()["data"]

    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    fresh = resp.json()["data"]
    assert fresh["access_token"] != tokens["access_token"]
    assert fresh["refresh_token"] != tokens["refresh_token"]

    # The old access token's session was consumed.
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert resp.status_code == 401
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {fresh['access_token']}"})
    assert resp.status_code == 200


async def test_refresh_reuse_revokes_everything(client, db):
    user = await _seed_login_user(db)
    tokens = (await _login(client, user["email"])).json()["data"]

    first = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200
    fresh = first.json()["data"]

    replay = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 403
    assert "reuse" in replay.json()["detail"].lower()

    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {fresh['access_token']}"})
    assert resp.status_code == 401


async def test_access_token_cannot_refresh(client, db):
    user = await _seed_login_user(db)
    tokens = (await _login(client, user["email"])).json()["data"]
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert resp.status_code == 403


# ── RBAC ────────────────────────────────────────────────────────────


def test_role_hierarchy():
    assert has_role(UserRole.system_admin, UserRole.hr_admin)
    assert has_role(UserRole.hr_admin, UserRole.manager)
    assert not has_role(UserRole.manager, UserRole.hr_admin)
    assert not has_role(UserRole.employee, UserRole.manager)


def test_permission_matrix():
    assert has_permission(UserRole.employee, "leave:request")
    assert not has_permission(UserRole.employee, "payroll:read")
    assert has_permission(UserRole.manager, "leave:approve")
    assert has_permission(UserRole.hr_admin, "personnel_action:approve")
    assert has_permission(UserRole.system_admin, "system:manage_users")
    assert not has_permission(UserRole.hr_admin, "system:manage_users")


async def test_admin_roles_requires_system_admin(client, hr_headers):
    resp = await client.get("/api/v1/admin/roles", headers=hr_headers)
    assert resp.status_code == 403


async def test_admin_assigns_role(client, db, test_employee, admin_headers):
    resp = await client.put(
        "/api/v1/admin/roles",
        json={"employee_id": str(test_employee["id"]), "role": "manager"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "manager"

    resp = await client.get("/api/v1/admin/roles", headers=admin_headers)
    roles = {row["staff_id"]: row["role"] for row in resp.json()["data"]}
    assert roles["0001"] == "manager"


async def test_admin_assign_unknown_employee_404(client, admin_headers):
    resp = await client.put(
        "/api/v1/admin/roles",
        json={"employee_id": str(uuid.uuid4()), "role": "manager"},
        headers=admin_headers,
    )
    assert resp.status_code == 404
