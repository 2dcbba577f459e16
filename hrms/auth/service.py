"""Auth service — password login, JWT management, session lifecycle, roles."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.models import RoleAssignment, UserSession
from hrms.common.constants import UserRole
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.config import settings
from hrms.core_hr.models import Employee

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Role priority — higher index = higher privilege
_ROLE_PRIORITY: list[UserRole] = [
    UserRole.employee,
    UserRole.manager,
    UserRole.hr_admin,
    UserRole.system_admin,
]


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


async def authenticate(db: AsyncSession, email: str, password: str) -> Employee:
    """Return the active employee matching the credentials.

    The same error is raised for unknown email, wrong password and inactive
    accounts so the response does not reveal which accounts exist.
    """
    result = await db.execute(select(Employee).where(Employee.email == email.lower()))
    employee = result.scalars().first()
    if employee is None or not employee.is_active or not verify_password(password, employee.password_hash):
        raise ForbiddenException(detail="Invalid email or password.")
    return employee


# ── Roles ───────────────────────────────────────────────────────────

async def get_highest_role(db: AsyncSession, employee_id: uuid.UUID) -> UserRole:
    """Return the highest active role for an employee (default: employee)."""
    result = await db.execute(
        select(RoleAssignment.role).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.is_active.is_(True),
        ),
    )
    roles = [row[0] for row in result.all()]
    if not roles:
        return UserRole.employee

    # Return the role with the highest priority
    best = UserRole.employee
    for role in roles:
        if _ROLE_PRIORITY.index(role) > _ROLE_PRIORITY.index(best):
            best = role
    return best


async def assign_role(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole,
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> Employee:
    """Replace the employee's active role assignment with *role*."""
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True))
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))

    # Deactivate all existing role assignments
    existing = await db.execute(
        select(RoleAssignment).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.is_active.is_(True),
        )
    )
    for assignment in existing.scalars().all():
        assignment.is_active = False
        assignment.revoked_at = datetime.now(timezone.utc)

    if role != UserRole.employee:
        db.add(
            RoleAssignment(
                employee_id=employee_id,
                role=role,
                assigned_by=actor_id,
                is_active=True,
            )
        )
    await db.flush()
    return employee


# ── JWT helpers ─────────────────────────────────────────────────────

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _create_access_token(employee_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def _create_refresh_token(employee_id: uuid.UUID) -> str:
    payload = {
        "sub": str(employee_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # Unique ID — ensures each refresh token is distinct
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    employee: Employee,
    role: UserRole,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create JWT pair and persist session.  Returns (access_token, refresh_token, expires_in)."""
    access_token, expires_in = _create_access_token(employee.id, role)
    refresh_token = _create_refresh_token(employee.id)

    session = UserSession(
        employee_id=employee.id,
        token_hash=_hash_token(access_token),
        refresh_token_hash=_hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
    )
    db.add(session)
    await db.flush()

    return access_token, refresh_token, expires_in


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
) -> tuple[str, str, int]:
    """Validate refresh token, rotate it, and issue new token pair.

    Returns (new_access_token, new_refresh_token, expires_in).

    Each refresh token can only be used once. If a previously used
    (revoked) refresh token is presented, ALL sessions for that user
    are revoked.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise ForbiddenException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise ForbiddenException(detail="Invalid token type.")

    # Look up the session by refresh token hash
    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == _hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()

    if session is None:
        raise ForbiddenException(detail="Invalid refresh token.")

    if session.is_revoked:
        # A previously consumed refresh token was replayed.
        await _revoke_all_user_sessions(db, session.employee_id)
        await db.commit()  # Persist revocations BEFORE raising (avoid rollback)
        raise ForbiddenException(
            detail="Refresh token reuse detected. All sessions revoked for security.",
        )

    # Invalidate the old session (consume the refresh token)
    session.is_revoked = True
    await db.flush()

    # Issue new token pair
    employee = await _get_active_employee(db, uuid.UUID(payload["sub"]))
    role = await get_highest_role(db, employee.id)
    return await create_session(db, employee, role, session.ip_address, session.user_agent)


# ── Revoke ──────────────────────────────────────────────────────────

async def _revoke_all_user_sessions(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> None:
    """Revoke ALL active sessions for an employee."""
    result = await db.execute(
        select(UserSession).where(
            UserSession.employee_id == employee_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.is_revoked = True
    await db.flush()


async def revoke_session(db: AsyncSession, token: str) -> None:
    """Mark the session owning *token* as revoked."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == _hash_token(token)),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


# ── Internal helpers ────────────────────────────────────────────────

async def _get_active_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException(entity_type="Employee", entity_id=str(employee_id))
    return employee
