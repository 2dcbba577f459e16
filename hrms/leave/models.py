"""Leave ORM models: LeaveType, Holiday, LeaveBalance, LeaveRequest, LeaveRequestItem."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import LeaveStatus
from hrms.database import Base


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    default_duration: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False, default=Decimal("0"))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    requires_attachment: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class Holiday(Base):
    """Public holiday; excluded from working-day counts while active."""

    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    # Unannotated: a ``date`` annotation here would resolve to this attribute
    date = mapped_column(sa.Date, unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type_id", "year", name="uq_leave_balance"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False, default=Decimal("0"))
    used_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False, default=Decimal("0"))
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    leave_type: Mapped[LeaveType] = relationship()

    @property
    def remaining_days(self) -> Decimal:
        return Decimal(self.total_days or 0) - Decimal(self.used_days or 0)


class LeaveRequest(Base, AuditMixin):
    """A leave request spanning one or more leave types (one item per type)."""

    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
        default=LeaveStatus.pending,
    )

    # ── Approvals ───────────────────────────────────────────────────
    supervisor_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    supervisor_approved_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    hr_site_admin_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    hr_site_admin_approved_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    attachment_notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    items: Mapped[list[LeaveRequestItem]] = relationship(
        back_populates="leave_request",
        cascade="all, delete-orphan",
    )


class LeaveRequestItem(Base):
    __tablename__ = "leave_request_items"
    __table_args__ = (
        sa.UniqueConstraint("leave_request_id", "leave_type_id", name="uq_leave_request_item_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)

    leave_request: Mapped[LeaveRequest] = relationship(back_populates="items")
