"""Travel request ORM model."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.audit import AuditMixin
from hrms.common.constants import Accommodation, Transportation, TravelStatus
from hrms.database import Base


class TravelRequest(Base, AuditMixin):
    """
    Request to travel for work.

    Status is derived from the two flags: supervisor approval moves it to
    ``supervisor_approved``; HR acknowledgement completes it.
    """

    __tablename__ = "travel_requests"
    __table_args__ = (
        sa.Index("ix_travel_requests_employee_dates", "employee_id", "start_date"),
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
        UUID(as_uuid=True), sa.ForeignKey("departments.id")
    )
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id")
    )

    destination: Mapped[Optional[str]] = mapped_column(sa.String(200))
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    to_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    purpose: Mapped[Optional[str]] = mapped_column(sa.Text)
    grant: Mapped[Optional[str]] = mapped_column(sa.String(50))

    transportation: Mapped[Optional[Transportation]] = mapped_column(
        sa.Enum(Transportation, name="travel_transportation", create_type=False)
    )
    transportation_other_text: Mapped[Optional[str]] = mapped_column(sa.String(200))
    accommodation: Mapped[Optional[Accommodation]] = mapped_column(
        sa.Enum(Accommodation, name="travel_accommodation", create_type=False)
    )
    accommodation_other_text: Mapped[Optional[str]] = mapped_column(sa.String(200))
    request_by_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Approvals ───────────────────────────────────────────────────
    supervisor_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    supervisor_approved_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    hr_acknowledged: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    hr_acknowledgement_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    @property
    def status(self) -> TravelStatus:
        if self.hr_acknowledged:
            return TravelStatus.completed
        if self.supervisor_approved:
            return TravelStatus.supervisor_approved
        return TravelStatus.pending
