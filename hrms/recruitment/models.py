"""Recruitment ORM models: Interview, JobOffer."""

from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.audit import AuditMixin
from hrms.common.constants import HiredStatus, InterviewMode, InterviewStatus, OfferStatus
from hrms.database import Base


class Interview(Base, AuditMixin):
    __tablename__ = "interviews"
    __table_args__ = (
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_interviews_score_range"),
        sa.Index("ix_interviews_candidate_name", "candidate_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    candidate_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    job_position: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    interviewer_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    interview_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    start_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    end_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    interview_mode: Mapped[Optional[InterviewMode]] = mapped_column(
        sa.Enum(InterviewMode, name="interview_mode", create_type=False)
    )
    interview_status: Mapped[InterviewStatus] = mapped_column(
        sa.Enum(InterviewStatus, name="interview_status", create_type=False),
        nullable=False,
        default=InterviewStatus.scheduled,
    )
    hired_status: Mapped[HiredStatus] = mapped_column(
        sa.Enum(HiredStatus, name="hired_status", create_type=False),
        nullable=False,
        default=HiredStatus.pending,
    )
    score: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    feedback: Mapped[Optional[str]] = mapped_column(sa.Text)
    reference_info: Mapped[Optional[str]] = mapped_column(sa.Text)


class JobOffer(Base, AuditMixin):
    """An offer letter made to a candidate, identified by ``YYYYMMDD-SMRU-BHF-NNNN``."""

    __tablename__ = "job_offers"
    __table_args__ = (
        sa.CheckConstraint("probation_salary >= 0", name="ck_job_offers_probation_salary"),
        sa.CheckConstraint("post_probation_salary >= 0", name="ck_job_offers_post_probation_salary"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    custom_offer_id: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    offer_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    candidate_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    position_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    probation_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    post_probation_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    acceptance_deadline: Mapped[date] = mapped_column(sa.Date, nullable=False)
    acceptance_status: Mapped[OfferStatus] = mapped_column(
        sa.Enum(OfferStatus, name="offer_status", create_type=False),
        nullable=False,
        default=OfferStatus.pending,
    )
    note: Mapped[Optional[str]] = mapped_column(sa.Text)
