"""Funding ORM model: EmployeeFundingAllocation."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import AllocationStatus, AllocationType, SalaryType
from hrms.database import Base

if TYPE_CHECKING:
    from hrms.employment.models import Employment
    from hrms.grants.models import GrantItem, PositionSlot


class EmployeeFundingAllocation(Base, AuditMixin):
    """FTE share of an employment's salary charged to one grant item."""

    __tablename__ = "employee_funding_allocations"
    __table_args__ = (
        sa.Index("ix_efa_employment_status", "employment_id", "status"),
        sa.Index("ix_efa_grant_item_status", "grant_item_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False, index=True,
    )
    employment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
    )
    grant_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("grant_items.id"), nullable=False,
    )
    position_slot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("position_slots.id", ondelete="SET NULL"),
    )
    allocation_type: Mapped[AllocationType] = mapped_column(
        sa.Enum(AllocationType, name="allocation_type", create_type=False),
        nullable=False,
        default=AllocationType.grant,
    )
    # Stored as a fraction (0.6 == 60 %)
    fte: Mapped[Decimal] = mapped_column(sa.Numeric(5, 4), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    salary_type: Mapped[SalaryType] = mapped_column(
        sa.Enum(SalaryType, name="salary_type", create_type=False),
        nullable=False,
    )
    status: Mapped[AllocationStatus] = mapped_column(
        sa.Enum(AllocationStatus, name="allocation_status", create_type=False),
        nullable=False,
        default=AllocationStatus.active,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    employment: Mapped[Employment] = relationship(
        "Employment", back_populates="funding_allocations", foreign_keys=[employment_id],
    )
    grant_item: Mapped[GrantItem] = relationship("GrantItem")
    position_slot: Mapped[Optional[PositionSlot]] = relationship("PositionSlot")

    @property
    def fte_percent(self) -> Decimal:
        return (Decimal(self.fte) * 100).quantize(Decimal("0.01"))

    def is_active_on(self, on_date: date) -> bool:
        return (
            self.status == AllocationStatus.active
            and self.start_date <= on_date
            and (self.end_date is None or self.end_date >= on_date)
        )

    def __repr__(self) -> str:
        return f"<EmployeeFundingAllocation {self.id} fte={self.fte} status={self.status.value}>"
