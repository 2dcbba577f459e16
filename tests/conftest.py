"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, employees, grants, funding, payroll, ...).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import hashlib
import tempfile
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from hrms.common.constants import (
    EmployeeStatus,
    EmploymentType,
    Organization,
    UserRole,
)
from hrms.config import settings
from hrms.database import Base, get_db
from hrms.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrms.auth.models  # noqa: F401
import hrms.common.audit  # noqa: F401
import hrms.core_hr.models  # noqa: F401
import hrms.employment.models  # noqa: F401
import hrms.funding.models  # noqa: F401
import hrms.grants.models  # noqa: F401
import hrms.leave.models  # noqa: F401
import hrms.notifications.models  # noqa: F401
import hrms.payroll.models  # noqa: F401
import hrms.personnel_actions.models  # noqa: F401
import hrms.recruitment.models  # noqa: F401
import hrms.resignations.models  # noqa: F401
import hrms.tax.models  # noqa: F401
import hrms.travel.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite file, one connection per session) ─────────
# Sessions only see each other's committed rows, as with PostgreSQL.

TEST_DATABASE_PATH = os.path.join(tempfile.gettempdir(), f"hrms-test-{os.getpid()}.sqlite3")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DATABASE_PATH}"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=NullPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrms.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app, db) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app.

    Rows a test stages through ``db`` are committed before each request so
    the app's own session can see them.
    """

    async def _commit_staged(request):
        await db.commit()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        event_hooks={"request": [_commit_staged]},
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_work_location(*, name: str = "Mae Sot Clinic") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        address="Mae Sot, Tak",
        is_active=True,
    )


def _make_department(*, name: str = "Clinical") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=f"{name} department",
        is_active=True,
    )


def _make_position(
    *,
    department_id: uuid.UUID,
    title: str = "Medic",
    reports_to_id: uuid.UUID | None = None,
    is_manager: bool = False,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        title=title,
        department_id=department_id,
        reports_to_id=reports_to_id,
        level=1,
        is_manager=is_manager,
        is_active=True,
    )


def _make_employee(
    *,
    staff_id: str | None = None,
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
    organization: Organization = Organization.SMRU,
    status: EmployeeStatus = EmployeeStatus.local_id,
    password_hash: str | None = None,
) -> dict:
    staff_id = staff_id or f"0{uuid.uuid4().hex[:5].upper()}"
    return dict(
        id=uuid.uuid4(),
        staff_id=staff_id,
        organization=organization,
        first_name=first_name,
        last_name=last_name,
        display_name=f"{first_name} {last_name}",
        status=status,
        email=email or f"{staff_id.lower()}@smru.ac.th",
        has_spouse=False,
        number_of_children=0,
        eligible_parents_count=0,
        password_hash=password_hash,
        is_active=True,
    )


def _make_employment(
    *,
    employee_id: uuid.UUID,
    start_date: date = date(2025, 1, 1),
    pass_probation_date: date | None = date(2025, 4, 1),
    probation_salary: Decimal | None = Decimal("20000"),
    pass_probation_salary: Decimal = Decimal("25000"),
    department_id: uuid.UUID | None = None,
    position_id: uuid.UUID | None = None,
    work_location_id: uuid.UUID | None = None,
    health_welfare: bool = False,
    pvd: bool = False,
    saving_fund: bool = False,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_id=employee_id,
        employment_type=EmploymentType.full_time,
        department_id=department_id,
        position_id=position_id,
        work_location_id=work_location_id,
        start_date=start_date,
        pass_probation_date=pass_probation_date,
        probation_salary=probation_salary,
        pass_probation_salary=pass_probation_salary,
        health_welfare=health_welfare,
        pvd=pvd,
        saving_fund=saving_fund,
        is_active=True,
    )


@pytest.fixture
async def test_location(db) -> dict:
    from hrms.core_hr.models import WorkLocation

    data = _make_work_location()
    db.add(WorkLocation(**data))
    await db.commit()
    return data


@pytest.fixture
async def test_department(db) -> dict:
    from hrms.core_hr.models import Department

    data = _make_department()
    db.add(Department(**data))
    await db.commit()
    return data


@pytest.fixture
async def test_position(db, test_department) -> dict:
    from hrms.core_hr.models import Position

    data = _make_position(department_id=test_department["id"])
    db.add(Position(**data))
    await db.commit()
    return data


@pytest.fixture
async def test_employee(db) -> dict:
    """Insert an active SMRU employee (role: employee)."""
    from hrms.core_hr.models import Employee

    data = _make_employee(staff_id="0001", first_name="Aye", last_name="Min")
    db.add(Employee(**data))
    await db.commit()
    return data


@pytest.fixture
async def hr_employee(db) -> dict:
    """Insert the HR administrator's employee row."""
    from hrms.core_hr.models import Employee

    data = _make_employee(staff_id="HR01", first_name="Hana", last_name="Rattana")
    db.add(Employee(**data))
    await db.commit()
    return data


@pytest.fixture
async def test_employment(db, test_employee, test_department, test_position, test_location) -> dict:
    """Active employment of ``test_employee``: 20,000 on probation, 25,000 after 2025-04-01."""
    from hrms.employment.models import Employment

    data = _make_employment(
        employee_id=test_employee["id"],
        department_id=test_department["id"],
        position_id=test_position["id"],
        work_location_id=test_location["id"],
    )
    db.add(Employment(**data))
    await db.commit()
    return data


async def _create_grant(
    db: AsyncSession,
    *,
    code: str,
    organization: Organization = Organization.SMRU,
    is_hub_grant: bool = False,
    positions: int = 2,
):
    """Grant with one budgeted position of *positions* slots (created through the service)."""
    from hrms.grants.schemas import GrantCreate, GrantItemFields
    from hrms.grants.service import GrantService

    grant = await GrantService.create_grant(
        db,
        GrantCreate(
            code=code,
            name=f"Grant {code}",
            organization=organization,
            is_hub_grant=is_hub_grant,
            start_date=date(2024, 1, 1),
            end_date=date(2027, 12, 31),
            items=[
                GrantItemFields(
                    grant_position="Medic",
                    grant_salary=Decimal("25000"),
                    grant_benefit=Decimal("2000"),
                    grant_level_of_effort=Decimal("1"),
                    grant_position_number=positions,
                    budgetline_code=f"BL-{code}",
                ),
            ],
        ),
    )
    items = await GrantService.list_items_for_grant(db, grant.id)
    return grant, items[0]


@pytest.fixture
async def test_grant(db):
    """``(grant, item)`` — project grant of SMRU with a 2-slot Medic line."""
    grant = await _create_grant(db, code="S0031")
    await db.commit()
    return grant


@pytest.fixture
async def hub_grants(db):
    """``{org: (grant, item)}`` — the hub grant of each organization."""
    grants = {
        Organization.SMRU: await _create_grant(db, code="S0000", is_hub_grant=True, positions=50),
        Organization.BHF: await _create_grant(
            db, code="B0000", organization=Organization.BHF, is_hub_grant=True, positions=50,
        ),
    }
    await db.commit()
    return grants


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def auth_headers_for(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
) -> dict[str, str]:
    """Bearer headers backed by a persisted, unrevoked session."""
    from hrms.auth.models import UserSession

    token = create_access_token(employee_id, role)
    db.add(UserSession(
        id=uuid.uuid4(),
        employee_id=employee_id,
        token_hash=hashlib.sha256(token.encode()).hexdigest(),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
    ))
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def auth_headers(db, test_employee) -> dict[str, str]:
    """Headers of ``test_employee`` with the plain employee role."""
    return await auth_headers_for(db, test_employee["id"])


@pytest.fixture
async def hr_headers(db, hr_employee) -> dict[str, str]:
    """Headers of ``hr_employee`` with the hr_admin role."""
    return await auth_headers_for(db, hr_employee["id"], UserRole.hr_admin)


@pytest.fixture
async def admin_headers(db, hr_employee) -> dict[str, str]:
    """Headers of ``hr_employee`` with the system_admin role."""
    return await auth_headers_for(db, hr_employee["id"], UserRole.system_admin)
