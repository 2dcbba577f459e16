"""Employment ORM models: Employment, EmploymentHistory, ProbationRecord."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import (
    EmploymentType,
    PayMethod,
    ProbationEventType,
    ProbationStatus,
    enum_values,
)
from hrms.database import Base

if TYPE_CHECKING:
    from hrms.core_hr.models import Department, Employee, Position, WorkLocation
    from hrms.funding.models import EmployeeFundingAllocation


# ═════════════════════════════════════════════════════════════════════
# Employment
# ═════════════════════════════════════════════════════════════════════


class Employment(Base, AuditMixin):
    """Terms of one employee's engagement: placement, salary tiers, probation."""

    __tablename__ = "employments"
    __table_args__ = (
        sa.Index("ix_employments_employee_id", "employee_id"),
        sa.Index("ix_employments_pass_probation_date", "pass_probation_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    employment_type: Mapped[EmploymentType] = mapped_column(
        sa.Enum(
            EmploymentType,
            name="employment_type",
            create_type=False,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    pay_method: Mapped[Optional[PayMethod]] = mapped_column(
        sa.Enum(PayMethod, name="pay_method", create_type=False, values_callable=enum_values),
    )

    # ── Placement ───────────────────────────────────────────────────
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id"),
    )
    work_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("work_locations.id"),
    )

    # ── Dates ───────────────────────────────────────────────────────
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    pass_probation_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Salary tiers ────────────────────────────────────────────────
    probation_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    pass_probation_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    probation_status: Mapped[Optional[ProbationStatus]] = mapped_column(
        sa.Enum(ProbationStatus, name="probation_status", create_type=False),
    )

    # ── Benefit flags ───────────────────────────────────────────────
    health_welfare: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    pvd: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    saving_fund: Mapped[bool] = mapped_column(sa.Boolean, default=False)

    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)

    # ── Relationships ───────────────────────────────────────────────
    employee: Mapped[Employee] = relationship(
        "Employee", back_populates="employments", foreign_keys=[employee_id],
    )
    department: Mapped[Optional[Department]] = relationship("Department")
    position: Mapped[Optional[Position]] = relationship("Position")
    work_location: Mapped[Optional[WorkLocation]] = relationship("WorkLocation")
    funding_allocations: Mapped[list[EmployeeFundingAllocation]] = relationship(
        "EmployeeFundingAllocation",
        back_populates="employment",
        foreign_keys="EmployeeFundingAllocation.employment_id",
        passive_deletes=True,
    )

    def salary_on(self, on_date: date) -> Decimal:
        """Salary tier in force on *on_date* (probation until the pass date)."""
        if (
            self.probation_salary is not None
            and self.pass_probation_date is not None
            and on_date < self.pass_probation_date
        ):
            return Decimal(self.probation_salary)
        return Decimal(self.pass_probation_salary)

    def __repr__(self) -> str:
        return f"<Employment {self.id} employee={self.employee_id} start={self.start_date}>"


# ═════════════════════════════════════════════════════════════════════
# EmploymentHistory
# ═════════════════════════════════════════════════════════════════════


class EmploymentHistory(Base):
    """Append-only log of changes applied to an employment."""

    __tablename__ = "employment_histories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    change_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    change_reason: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    changes: Mapped[Optional[dict]] = mapped_column(JSONB)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )


# ═════════════════════════════════════════════════════════════════════
# ProbationRecord
# ═════════════════════════════════════════════════════════════════════


class ProbationRecord(Base):
    """One probation event (initial, extension, passed, failed); one active per employment."""

    __tablename__ = "probation_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    event_type: Mapped[ProbationEventType] = mapped_column(
        sa.Enum(ProbationEventType, name="probation_event_type", create_type=False),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    decision_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    probation_start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    probation_end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    previous_end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    extension_number: Mapped[int] = mapped_column(sa.Integer, default=0)
    decision_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    evaluation_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
