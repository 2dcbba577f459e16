"""Interview and job offer routers."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import HiredStatus, InterviewStatus, OfferStatus
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.recruitment.schemas import (
    InterviewCreate,
    InterviewResponse,
    InterviewUpdate,
    JobOfferCreate,
    JobOfferResponse,
    JobOfferUpdate,
)
from hrms.recruitment.service import InterviewService, JobOfferService

router = APIRouter(prefix="", tags=["interviews"])
offers_router = APIRouter(prefix="", tags=["job-offers"])

_can_read = require_permission("interview:read")
_can_edit = require_permission("interview:edit")
_can_read_offers = require_permission("job_offer:read")
_can_edit_offers = require_permission("job_offer:edit")


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_interviews(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    interview_status: Optional[InterviewStatus] = Query(None),
    hired_status: Optional[HiredStatus] = Query(None),
    job_position: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Candidate, position or interviewer"),
):
    result = await InterviewService.list_interviews(
        db,
        pagination,
        interview_status=interview_status,
        hired_status=hired_status,
        job_position=job_position,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return success_response(
        [InterviewResponse.model_validate(i) for i in result.data],
        "Interviews retrieved successfully.",
        pagination=result.pagination,
    )


# ── GET /by-candidate/{name} ────────────────────────────────────────
# NOTE: /by-candidate MUST be defined before /{interview_id}

@router.get("/by-candidate/{candidate_name}")
async def interviews_by_candidate(
    candidate_name: str,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    interviews = await InterviewService.by_candidate(db, candidate_name)
    return success_response(
        [InterviewResponse.model_validate(i) for i in interviews],
        "Interviews retrieved successfully.",
    )


@router.post("", status_code=201)
async def create_interview(
    body: InterviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    interview = await InterviewService.create_interview(db, body, actor_id=current_user.id)
    return success_response(InterviewResponse.model_validate(interview), "Interview created successfully.")


@router.get("/{interview_id}")
async def get_interview(
    interview_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    interview = await InterviewService.get_interview(db, interview_id)
    return success_response(InterviewResponse.model_validate(interview), "Interview retrieved successfully.")


@router.put("/{interview_id}")
async def update_interview(
    interview_id: uuid.UUID,
    body: InterviewUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    interview = await InterviewService.update_interview(db, interview_id, body, actor_id=current_user.id)
    return success_response(InterviewResponse.model_validate(interview), "Interview updated successfully.")


@router.delete("/{interview_id}")
async def delete_interview(
    interview_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await InterviewService.delete_interview(db, interview_id, actor_id=current_user.id)
    return success_response(None, "Interview deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# Job offers
# ═════════════════════════════════════════════════════════════════════


@offers_router.get("")
async def list_job_offers(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read_offers),
    pagination: PaginationParams = Depends(),
    acceptance_status: Optional[OfferStatus] = Query(None),
    position_name: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Offer id, candidate or position"),
):
    result = await JobOfferService.list_offers(
        db,
        pagination,
        acceptance_status=acceptance_status,
        position_name=position_name,
        search=search,
    )
    return success_response(
        [JobOfferResponse.model_validate(o) for o in result.data],
        "Job offers retrieved successfully.",
        pagination=result.pagination,
    )


# NOTE: /by-offer-id MUST be defined before /{offer_id}

@offers_router.get("/by-offer-id/{custom_offer_id}")
async def job_offer_by_custom_id(
    custom_offer_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read_offers),
):
    offer = await JobOfferService.get_by_custom_id(db, custom_offer_id)
    return success_response(JobOfferResponse.model_validate(offer), "Job offer retrieved successfully.")


@offers_router.post("", status_code=201)
async def create_job_offer(
    body: JobOfferCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit_offers),
):
    offer = await JobOfferService.create_offer(db, body, actor_id=current_user.id)
    return success_response(JobOfferResponse.model_validate(offer), "Job offer created successfully.")


@offers_router.get("/{offer_id}")
async def get_job_offer(
    offer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read_offers),
):
    offer = await JobOfferService.get_offer(db, offer_id)
    return success_response(JobOfferResponse.model_validate(offer), "Job offer retrieved successfully.")


@offers_router.put("/{offer_id}")
async def update_job_offer(
    offer_id: uuid.UUID,
    body: JobOfferUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit_offers),
):
    offer = await JobOfferService.update_offer(db, offer_id, body, actor_id=current_user.id)
    return success_response(JobOfferResponse.model_validate(offer), "Job offer updated successfully.")


@offers_router.delete("/{offer_id}")
async def delete_job_offer(
    offer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit_offers),
):
    await JobOfferService.delete_offer(db, offer_id, actor_id=current_user.id)
    return success_response(None, "Job offer deleted successfully.")
