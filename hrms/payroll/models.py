"""Payroll ORM models: BenefitSetting, Payroll, InterOrganizationAdvance, BulkPayrollBatch."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import BatchStatus, BenefitSettingType, Organization
from hrms.database import Base

if TYPE_CHECKING:
    from hrms.employment.models import Employment
    from hrms.funding.models import EmployeeFundingAllocation


def _money(nullable: bool = False):
    return mapped_column(sa.Numeric(12, 2), nullable=nullable, default=Decimal("0"))


# ═════════════════════════════════════════════════════════════════════
# BenefitSetting
# ═════════════════════════════════════════════════════════════════════


class BenefitSetting(Base):
    """Global benefit rates and amounts (PVD, social security, health welfare)."""

    __tablename__ = "benefit_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    setting_key: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    setting_value: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    setting_type: Mapped[BenefitSettingType] = mapped_column(
        sa.Enum(BenefitSettingType, name="benefit_setting_type", create_type=False),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )


# ═════════════════════════════════════════════════════════════════════
# Payroll
# ═════════════════════════════════════════════════════════════════════


class Payroll(Base, AuditMixin):
    """One month of pay for one funding allocation."""

    __tablename__ = "payrolls"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_funding_allocation_id", "pay_period_date",
            name="uq_payroll_allocation_period",
        ),
        sa.Index("ix_payrolls_employment_period", "employment_id", "pay_period_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employments.id"), nullable=False,
    )
    employee_funding_allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employee_funding_allocations.id"), nullable=False,
    )
    pay_period_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    # ── Earnings ────────────────────────────────────────────────────
    gross_salary: Mapped[Decimal] = _money()
    gross_salary_by_fte: Mapped[Decimal] = _money()
    compensation_refund: Mapped[Decimal] = _money()
    thirteen_month_salary: Mapped[Decimal] = _money()
    thirteen_month_salary_accrued: Mapped[Decimal] = _money()
    salary_bonus: Mapped[Decimal] = _money()

    # ── Contributions / deductions ──────────────────────────────────
    pvd: Mapped[Decimal] = _money()
    saving_fund: Mapped[Decimal] = _money()
    employer_social_security: Mapped[Decimal] = _money()
    employee_social_security: Mapped[Decimal] = _money()
    employer_health_welfare: Mapped[Decimal] = _money()
    employee_health_welfare: Mapped[Decimal] = _money()
    tax: Mapped[Decimal] = _money()

    # ── Totals ──────────────────────────────────────────────────────
    net_salary: Mapped[Decimal] = _money()
    total_salary: Mapped[Decimal] = _money()
    total_pvd: Mapped[Decimal] = _money()
    total_saving_fund: Mapped[Decimal] = _money()
    total_income: Mapped[Decimal] = _money()
    employer_contribution: Mapped[Decimal] = _money()
    total_deduction: Mapped[Decimal] = _money()

    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    employment: Mapped[Employment] = relationship("Employment")
    allocation: Mapped[EmployeeFundingAllocation] = relationship("EmployeeFundingAllocation")
    advances: Mapped[list[InterOrganizationAdvance]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
    )


# ═════════════════════════════════════════════════════════════════════
# InterOrganizationAdvance
# ═════════════════════════════════════════════════════════════════════


class InterOrganizationAdvance(Base, AuditMixin):
    """Money one organization fronts for another's payroll via its hub grant."""

    __tablename__ = "inter_organization_advances"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    payroll_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("payrolls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_organization: Mapped[Organization] = mapped_column(
        sa.Enum(Organization, name="organization", create_type=False), nullable=False,
    )
    to_organization: Mapped[Organization] = mapped_column(
        sa.Enum(Organization, name="organization", create_type=False), nullable=False,
    )
    via_grant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("grants.id"), nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    advance_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    settlement_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    payroll: Mapped[Payroll] = relationship(back_populates="advances")

    @property
    def is_settled(self) -> bool:
        return self.settlement_date is not None


# ═════════════════════════════════════════════════════════════════════
# BulkPayrollBatch
# ═════════════════════════════════════════════════════════════════════


class BulkPayrollBatch(Base):
    """Progress record of a background payroll run for one pay period."""

    __tablename__ = "bulk_payroll_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    pay_period: Mapped[str] = mapped_column(sa.String(7), nullable=False)  # YYYY-MM
    filters: Mapped[Optional[dict]] = mapped_column(JSONB)
    total_employees: Mapped[int] = mapped_column(sa.Integer, default=0)
    total_payrolls: Mapped[int] = mapped_column(sa.Integer, default=0)
    processed_payrolls: Mapped[int] = mapped_column(sa.Integer, default=0)
    successful_payrolls: Mapped[int] = mapped_column(sa.Integer, default=0)
    failed_payrolls: Mapped[int] = mapped_column(sa.Integer, default=0)
    advances_created: Mapped[int] = mapped_column(sa.Integer, default=0)
    status: Mapped[BatchStatus] = mapped_column(
        sa.Enum(BatchStatus, name="batch_status", create_type=False),
        nullable=False,
        default=BatchStatus.pending,
    )
    errors: Mapped[Optional[list]] = mapped_column(JSONB)
    summary: Mapped[Optional[dict]] = mapped_column(JSONB)
    current_employee: Mapped[Optional[str]] = mapped_column(sa.String(255))
    current_allocation: Mapped[Optional[str]] = mapped_column(sa.String(255))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    @property
    def progress_percentage(self) -> float:
        if not self.total_payrolls:
            return 0.0
        return round(self.processed_payrolls / self.total_payrolls * 100, 2)
