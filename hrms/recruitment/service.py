"""Interview and job offer services."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import JOB_OFFER_ID_TAG, HiredStatus, InterviewStatus, OfferStatus
from hrms.common.exceptions import NotFoundException, ValidationException
from hrms.common.filters import apply_filters, apply_search
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employment.probation import local_today
from hrms.recruitment.models import Interview, JobOffer
from hrms.recruitment.schemas import InterviewCreate, InterviewUpdate, JobOfferCreate, JobOfferUpdate

_FIELDS = [
    "candidate_name", "phone", "job_position", "interviewer_name", "interview_date",
    "start_time", "end_time", "interview_mode", "interview_status", "hired_status",
    "score", "feedback", "reference_info",
]


class InterviewService:

    @staticmethod
    async def list_interviews(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        interview_status: Optional[InterviewStatus] = None,
        hired_status: Optional[HiredStatus] = None,
        job_position: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(Interview).order_by(Interview.interview_date.desc(), Interview.start_time)
        query = apply_filters(query, Interview, {
            "interview_status": interview_status,
            "hired_status": hired_status,
            "job_position__ilike": job_position,
            "interview_date__from": date_from,
            "interview_date__to": date_to,
        })
        query = apply_search(query, Interview, search, ["candidate_name", "job_position", "interviewer_name"])
        return await paginate(db, query, pagination, model=Interview)

    @staticmethod
    async def get_interview(db: AsyncSession, interview_id: uuid.UUID) -> Interview:
        interview = await db.get(Interview, interview_id)
        if interview is None:
            raise NotFoundException("Interview", str(interview_id))
        return interview

    @staticmethod
    async def by_candidate(db: AsyncSession, candidate_name: str) -> list[Interview]:
        """All interviews of a candidate, matched case-insensitively on the full name."""
        result = await db.execute(
            select(Interview)
            .where(func.lower(Interview.candidate_name) == candidate_name.strip().lower())
            .order_by(Interview.interview_date.desc())
        )
        interviews = list(result.scalars().all())
        if not interviews:
            raise NotFoundException("Interview", candidate_name)
        return interviews

    @staticmethod
    async def create_interview(
        db: AsyncSession,
        data: InterviewCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Interview:
        interview = Interview(**data.model_dump(), created_by=actor_id, updated_by=actor_id)
        db.add(interview)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="interview",
            entity_id=interview.id,
            actor_id=actor_id,
            new_values=snapshot(interview, _FIELDS),
        )
        return interview

    @staticmethod
    async def update_interview(
        db: AsyncSession,
        interview_id: uuid.UUID,
        data: InterviewUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Interview:
        interview = await InterviewService.get_interview(db, interview_id)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_time", interview.start_time)
        end = changes.get("end_time", interview.end_time)
        if start and end and end <= start:
            raise ValidationException({"end_time": ["end_time must be after start_time."]})

        old = snapshot(interview, _FIELDS)
        for field, value in changes.items():
            setattr(interview, field, value)
        interview.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="interview",
            entity_id=interview.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(interview, _FIELDS),
        )
        return interview

    @staticmethod
    async def delete_interview(
        db: AsyncSession,
        interview_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        interview = await InterviewService.get_interview(db, interview_id)
        old = snapshot(interview, _FIELDS)
        await db.delete(interview)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="interview",
            entity_id=interview_id,
            actor_id=actor_id,
            old_values=old,
        )


# ═════════════════════════════════════════════════════════════════════
# JOB OFFERS
# ═════════════════════════════════════════════════════════════════════

_OFFER_FIELDS = [
    "custom_offer_id", "offer_date", "candidate_name", "position_name", "probation_salary",
    "post_probation_salary", "acceptance_deadline", "acceptance_status", "note",
]


class JobOfferService:

    @staticmethod
    async def list_offers(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        acceptance_status: Optional[OfferStatus] = None,
        position_name: Optional[str] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(JobOffer).order_by(JobOffer.offer_date.desc(), JobOffer.custom_offer_id.desc())
        query = apply_filters(query, JobOffer, {
            "acceptance_status": acceptance_status,
            "position_name__ilike": position_name,
        })
        query = apply_search(query, JobOffer, search, ["custom_offer_id", "candidate_name", "position_name"])
        return await paginate(db, query, pagination, model=JobOffer)

    @staticmethod
    async def get_offer(db: AsyncSession, offer_id: uuid.UUID) -> JobOffer:
        offer = await db.get(JobOffer, offer_id)
        if offer is None:
            raise NotFoundException("JobOffer", str(offer_id))
        return offer

    @staticmethod
    async def get_by_custom_id(db: AsyncSession, custom_offer_id: str) -> JobOffer:
        offer = (await db.execute(
            select(JobOffer).where(JobOffer.custom_offer_id == custom_offer_id)
        )).scalar_one_or_none()
        if offer is None:
            raise NotFoundException("JobOffer", custom_offer_id)
        return offer

    @staticmethod
    async def next_custom_offer_id(db: AsyncSession, day: date) -> str:
        """``YYYYMMDD-SMRU-BHF-NNNN``, numbered per creation day from the highest live id."""
        prefix = f"{day:%Y%m%d}-{JOB_OFFER_ID_TAG}-"
        latest = (await db.execute(
            select(func.max(JobOffer.custom_offer_id)).where(JobOffer.custom_offer_id.like(f"{prefix}%"))
        )).scalar_one()
        sequence = int(latest[len(prefix):]) if latest else 0
        return f"{prefix}{sequence + 1:04d}"

    @staticmethod
    async def create_offer(
        db: AsyncSession,
        data: JobOfferCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> JobOffer:
        offer = JobOffer(
            **data.model_dump(),
            custom_offer_id=await JobOfferService.next_custom_offer_id(db, today or local_today()),
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(offer)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="job_offer",
            entity_id=offer.id,
            actor_id=actor_id,
            new_values=snapshot(offer, _OFFER_FIELDS),
        )
        return offer

    @staticmethod
    async def update_offer(
        db: AsyncSession,
        offer_id: uuid.UUID,
        data: JobOfferUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> JobOffer:
        offer = await JobOfferService.get_offer(db, offer_id)
        changes = data.model_dump(exclude_unset=True)

        offer_date = changes.get("offer_date") or offer.offer_date
        deadline = changes.get("acceptance_deadline") or offer.acceptance_deadline
        if deadline < offer_date:
            raise ValidationException({
                "acceptance_deadline": ["acceptance_deadline must be on or after offer_date."],
            })

        old = snapshot(offer, _OFFER_FIELDS)
        for field, value in changes.items():
            if value is not None:
                setattr(offer, field, value)
        offer.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="job_offer",
            entity_id=offer.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(offer, _OFFER_FIELDS),
        )
        return offer

    @staticmethod
    async def delete_offer(
        db: AsyncSession,
        offer_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        offer = await JobOfferService.get_offer(db, offer_id)
        old = snapshot(offer, _OFFER_FIELDS)
        await db.delete(offer)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="job_offer",
            entity_id=offer_id,
            actor_id=actor_id,
            old_values=old,
        )
