"""Auth router — password login, token refresh, logout, current user profile."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import _extract_bearer, get_current_user
from hrms.auth.schemas import (
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    TokenResponse,
    UserInfo,
)
from hrms.auth.service import (
    authenticate,
    create_session,
    get_highest_role,
    refresh_access_token,
    revoke_session,
)
from hrms.common.audit import create_audit_entry
from hrms.common.constants import PERMISSIONS, UserRole
from hrms.common.rate_limit import LOGIN_LIMIT, REFRESH_LIMIT, limiter
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db

router = APIRouter(prefix="", tags=["auth"])


def _user_info(employee: Employee, role: UserRole) -> UserInfo:
    employee.ensure_display_name()
    return UserInfo(
        id=employee.id,
        staff_id=employee.staff_id,
        display_name=employee.display_name,
        email=employee.email,
        organization=employee.organization.value,
        role=role.value,
    )


# ── POST /login — email + password ──────────────────────────────────

@router.post("/login")
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    employee = await authenticate(db, body.email, body.password)
    role = await get_highest_role(db, employee.id)

    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    access_token, refresh_token, expires_in = await create_session(
        db, employee, role, ip, user_agent,
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        new_values={"ip": ip, "user_agent": user_agent},
        ip_address=ip,
        user_agent=user_agent,
    )

    token = TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=_user_info(employee, role),
    )
    return success_response(token, "Login successful.")


# ── POST /refresh — Rotate token pair ──────────────────────────────

@router.post("/refresh")
@limiter.limit(REFRESH_LIMIT)
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access, refresh, expires_in = await refresh_access_token(db, body.refresh_token)
    return success_response(
        RefreshResponse(access_token=access, refresh_token=refresh, expires_in=expires_in),
        "Token refreshed.",
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, _extract_bearer(request))

    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    return success_response(None, "Logged out successfully.")


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me")
async def me(
    request: Request,
    employee: Employee = Depends(get_current_user),
):
    role: UserRole = request.state.user_role
    info = _user_info(employee, role)
    return success_response(
        MeResponse(**info.model_dump(), permissions=PERMISSIONS.get(role, [])),
        "Profile retrieved successfully.",
    )
