"""Core HR ORM models: WorkLocation, Department, Position, Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import (
    EmployeeStatus,
    GenderType,
    MaritalStatus,
    Organization,
    enum_values,
)
from hrms.database import Base

if TYPE_CHECKING:
    from hrms.auth.models import RoleAssignment, UserSession
    from hrms.employment.models import Employment


# ═════════════════════════════════════════════════════════════════════
# WorkLocation
# ═════════════════════════════════════════════════════════════════════


class WorkLocation(Base):
    """Work site (clinic, office, field station)."""

    __tablename__ = "work_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<WorkLocation {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    positions: Mapped[list[Position]] = relationship(back_populates="department")

    def __repr__(self) -> str:
        return f"<Department {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Position
# ═════════════════════════════════════════════════════════════════════


class Position(Base):
    """Job position within a department; ``reports_to_id`` forms the supervisor chain."""

    __tablename__ = "positions"
    __table_args__ = (
        sa.UniqueConstraint("title", "department_id", name="uq_position_title_department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=False,
    )
    reports_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id"),
    )
    level: Mapped[int] = mapped_column(sa.Integer, default=1)
    is_manager: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Department] = relationship(back_populates="positions")
    reports_to: Mapped[Optional[Position]] = relationship(remote_side=[id])

    def __repr__(self) -> str:
        return f"<Position {self.title!r}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Core employee record — also the authenticated principal."""

    __tablename__ = "employees"

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Identifiers ─────────────────────────────────────────────────
    staff_id: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    organization: Mapped[Organization] = mapped_column(
        sa.Enum(Organization, name="organization", create_type=False),
        nullable=False,
    )

    # ── Name ────────────────────────────────────────────────────────
    initial: Mapped[Optional[str]] = mapped_column(sa.String(10))
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    display_name: Mapped[Optional[str]] = mapped_column(sa.String(255))

    # ── Demographics ────────────────────────────────────────────────
    gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type", create_type=False),
    )
    date_of_birth: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(
            EmployeeStatus,
            name="employee_status",
            create_type=False,
            values_callable=enum_values,
        ),
        nullable=False,
        default=EmployeeStatus.local_id,
    )
    nationality: Mapped[Optional[str]] = mapped_column(sa.String(100))

    # ── Contact ─────────────────────────────────────────────────────
    email: Mapped[Optional[str]] = mapped_column(sa.String(255), unique=True)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30))

    # ── Tax-relevant family data ────────────────────────────────────
    marital_status: Mapped[Optional[MaritalStatus]] = mapped_column(
        sa.Enum(MaritalStatus, name="marital_status", create_type=False),
    )
    has_spouse: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    number_of_children: Mapped[int] = mapped_column(sa.Integer, default=0)
    eligible_parents_count: Mapped[int] = mapped_column(sa.Integer, default=0)

    # ── Auth / status ───────────────────────────────────────────────
    password_hash: Mapped[Optional[str]] = mapped_column(sa.String(255))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)

    # ── Audit ───────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )

    # ── Relationships ───────────────────────────────────────────────
    employments: Mapped[list[Employment]] = relationship(
        "Employment",
        back_populates="employee",
        foreign_keys="Employment.employee_id",
        order_by="Employment.start_date.desc()",
    )
    sessions: Mapped[list[UserSession]] = relationship(
        "UserSession", back_populates="employee", cascade="all, delete-orphan",
    )
    role_assignments: Mapped[list[RoleAssignment]] = relationship(
        "RoleAssignment",
        back_populates="employee",
        foreign_keys="RoleAssignment.employee_id",
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def ensure_display_name(self) -> None:
        """Populate ``display_name`` from first/last name when empty."""
        if not self.display_name:
            self.display_name = self.full_name

    def __repr__(self) -> str:
        return f"<Employee {self.staff_id} {self.full_name!r}>"
