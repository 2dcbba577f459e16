"""Resignation router."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import AcknowledgementStatus
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.employment.probation import local_today
from hrms.resignations.schemas import (
    AcknowledgeRequest,
    ResignationCreate,
    ResignationResponse,
    ResignationUpdate,
)
from hrms.resignations.service import ResignationService

router = APIRouter(prefix="", tags=["resignations"])

_can_read = require_permission("resignation:read")
_can_edit = require_permission("resignation:edit")


@router.get("")
async def list_resignations(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    acknowledgement_status: Optional[AcknowledgementStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    reason: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, description="Staff id, employee name or reason"),
):
    result = await ResignationService.list_resignations(
        db,
        pagination,
        acknowledgement_status=acknowledgement_status,
        department_id=department_id,
        reason=reason,
        search=search,
    )
    today = local_today()
    return success_response(
        [ResignationResponse.build(r, today) for r in result.data],
        "Resignations retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("", status_code=201)
async def create_resignation(
    body: ResignationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    today = local_today()
    resignation = await ResignationService.create_resignation(db, body, today=today, actor_id=current_user.id)
    return success_response(ResignationResponse.build(resignation, today), "Resignation created successfully.")


@router.get("/{resignation_id}")
async def get_resignation(
    resignation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    resignation = await ResignationService.get_resignation(db, resignation_id)
    return success_response(
        ResignationResponse.build(resignation, local_today()), "Resignation retrieved successfully.",
    )


@router.put("/{resignation_id}")
async def update_resignation(
    resignation_id: uuid.UUID,
    body: ResignationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    today = local_today()
    resignation = await ResignationService.update_resignation(
        db, resignation_id, body, today=today, actor_id=current_user.id,
    )
    return success_response(ResignationResponse.build(resignation, today), "Resignation updated successfully.")


@router.put("/{resignation_id}/acknowledge")
async def acknowledge_resignation(
    resignation_id: uuid.UUID,
    body: AcknowledgeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    resignation = await ResignationService.acknowledge(db, resignation_id, body.action, actor_id=current_user.id)
    verb = "acknowledged" if resignation.acknowledgement_status == AcknowledgementStatus.acknowledged else "rejected"
    return success_response(
        ResignationResponse.build(resignation, local_today()), f"Resignation {verb} successfully.",
    )


@router.delete("/{resignation_id}")
async def delete_resignation(
    resignation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await ResignationService.delete_resignation(db, resignation_id, actor_id=current_user.id)
    return success_response(None, "Resignation deleted successfully.")
