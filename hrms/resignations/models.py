"""Resignation ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import AcknowledgementStatus
from hrms.database import Base

if TYPE_CHECKING:
    from hrms.core_hr.models import Employee


class Resignation(Base, AuditMixin):
    """An employee's notice of resignation, pending until HR acknowledges or rejects it.

    Department and position are copied from the employee's active
    employment when the notice is filed without them.
    """

    __tablename__ = "resignations"
    __table_args__ = (
        sa.CheckConstraint("last_working_date >= resignation_date", name="ck_resignations_dates"),
        sa.Index("ix_resignations_status_date", "acknowledgement_status", "resignation_date"),
        sa.Index("ix_resignations_employee", "employee_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL")
    )
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id")
    )
    resignation_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    last_working_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    reason_details: Mapped[Optional[str]] = mapped_column(sa.Text)
    acknowledgement_status: Mapped[AcknowledgementStatus] = mapped_column(
        sa.Enum(AcknowledgementStatus, name="acknowledgement_status", create_type=False),
        nullable=False,
        default=AcknowledgementStatus.pending,
    )
    acknowledged_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL")
    )
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    employee: Mapped[Employee] = relationship("Employee", foreign_keys=[employee_id], lazy="joined")

    @property
    def notice_period_days(self) -> int:
        return (self.last_working_date - self.resignation_date).days

    def days_left_on(self, today: date) -> int:
        return max(0, (self.last_working_date - today).days)

    def overdue_on(self, today: date) -> bool:
        """Still pending although the last working day has passed."""
        return (
            self.acknowledgement_status == AcknowledgementStatus.pending
            and self.last_working_date < today
        )

    def __repr__(self) -> str:
        return f"<Resignation {self.id} employee={self.employee_id} last_day={self.last_working_date}>"
