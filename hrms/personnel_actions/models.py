"""Personnel action ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.audit import AuditMixin
from hrms.common.constants import (
    PERSONNEL_ACTION_FORM_NUMBER,
    PersonnelActionStatus,
    PersonnelActionSubtype,
    PersonnelActionType,
    PersonnelApprovalType,
    TransferType,
)
from hrms.database import Base


class PersonnelAction(Base, AuditMixin):
    """
    An HR change to an employment (appointment, increment, transfer, ...).

    The ``current_*`` columns freeze the employment as it was when the action
    was raised; the ``new_*`` columns hold the requested change, applied
    once all four approvals are in.
    """

    __tablename__ = "personnel_actions"
    __table_args__ = (
        sa.Index("ix_personnel_actions_employment", "employment_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    form_number: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=PERSONNEL_ACTION_FORM_NUMBER
    )
    reference_number: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    employment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employments.id", ondelete="CASCADE"), nullable=False
    )

    # ── Snapshot of the employment when the action was raised ───────
    current_employee_no: Mapped[Optional[str]] = mapped_column(sa.String(50))
    current_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id")
    )
    current_position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id")
    )
    current_work_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("work_locations.id")
    )
    current_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    current_employment_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Action ──────────────────────────────────────────────────────
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    action_type: Mapped[PersonnelActionType] = mapped_column(
        sa.Enum(PersonnelActionType, name="personnel_action_type", create_type=False),
        nullable=False,
    )
    action_subtype: Mapped[Optional[PersonnelActionSubtype]] = mapped_column(
        sa.Enum(PersonnelActionSubtype, name="personnel_action_subtype", create_type=False)
    )
    is_transfer: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    transfer_type: Mapped[Optional[TransferType]] = mapped_column(
        sa.Enum(TransferType, name="personnel_transfer_type", create_type=False)
    )

    # ── Requested change ────────────────────────────────────────────
    new_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id")
    )
    new_position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id")
    )
    new_work_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("work_locations.id")
    )
    new_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    new_work_schedule: Mapped[Optional[str]] = mapped_column(sa.String(100))
    new_report_to: Mapped[Optional[str]] = mapped_column(sa.String(150))
    new_pay_plan: Mapped[Optional[str]] = mapped_column(sa.String(100))
    new_phone_ext: Mapped[Optional[str]] = mapped_column(sa.String(20))
    new_email: Mapped[Optional[str]] = mapped_column(sa.String(255))

    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    change_details: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Approvals ───────────────────────────────────────────────────
    dept_head_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    coo_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    hr_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    accountant_approved: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    implemented_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    @property
    def approvals(self) -> dict[str, bool]:
        return {t.value: bool(getattr(self, f"{t.value}_approved")) for t in PersonnelApprovalType}

    @property
    def is_fully_approved(self) -> bool:
        return all(self.approvals.values())

    @property
    def status(self) -> PersonnelActionStatus:
        if self.implemented_at is not None:
            return PersonnelActionStatus.implemented
        if self.is_fully_approved:
            return PersonnelActionStatus.fully_approved
        if any(self.approvals.values()):
            return PersonnelActionStatus.partial_approved
        return PersonnelActionStatus.pending
