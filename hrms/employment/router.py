"""Employment router — employments, change history, probation actions.

Routes:
    /employments                              — List, create
    /employments/probation/process            — Run the daily probation job on demand
    /employments/{id}                         — Get (with allocations), update, delete
    /employments/{id}/history                 — Change log
    /employments/{id}/probation-records       — Probation events
    /employments/{id}/probation/{extend|pass|fail}
    /employments/{id}/funding-allocations     — Allocations of the employment
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission, require_role
from hrms.common.constants import AllocationStatus, EmploymentType, UserRole
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.employment.probation import ProbationService, local_today
from hrms.employment.schemas import (
    EmploymentCreate,
    EmploymentHistoryResponse,
    EmploymentResponse,
    EmploymentUpdate,
    ProbationExtendRequest,
    ProbationFailRequest,
    ProbationPassRequest,
    ProbationProcessRequest,
    ProbationRecordResponse,
)
from hrms.employment.service import EmploymentService
from hrms.funding.schemas import FundingAllocationResponse
from hrms.funding.service import FundingAllocationService

router = APIRouter(prefix="", tags=["employments"])

_can_read = require_permission("employment:read")
_can_edit = require_permission("employment:edit")


# ── GET /employments ────────────────────────────────────────────────

@router.get("")
async def list_employments(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    result = await EmploymentService.list_employments(
        db,
        pagination,
        employee_id=employee_id,
        department_id=department_id,
        employment_type=employment_type,
        is_active=is_active,
    )
    return success_response(
        [EmploymentResponse.model_validate(e) for e in result.data],
        "Employments retrieved successfully.",
        pagination=result.pagination,
    )


# ── POST /employments ───────────────────────────────────────────────

@router.post("", status_code=201)
async def create_employment(
    body: EmploymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Create an employment; an initial probation record is opened with it."""
    employment = await EmploymentService.create_employment(db, body, actor_id=current_user.id)
    detail = await EmploymentService.get_detail(db, employment.id)
    return success_response(detail, "Employment created successfully.")


# ── POST /employments/probation/process ─────────────────────────────
# NOTE: MUST be defined before the /{employment_id} routes.

@router.post("/probation/process")
async def process_probation(
    body: Optional[ProbationProcessRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    """Run the probation transition job for a date (default: today)."""
    run_date = (body.run_date if body else None) or local_today()
    result = await ProbationService.process_transitions(db, run_date)
    return success_response(result, f"Probation transitions processed for {run_date.isoformat()}.")


# ── GET /employments/{id} ───────────────────────────────────────────

@router.get("/{employment_id}")
async def get_employment(
    employment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    detail = await EmploymentService.get_detail(db, employment_id)
    return success_response(detail, "Employment retrieved successfully.")


# ── PUT /employments/{id} ───────────────────────────────────────────

@router.put("/{employment_id}")
async def update_employment(
    employment_id: uuid.UUID,
    body: EmploymentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Update employment terms; salary changes reprice the active allocations."""
    await EmploymentService.update_employment(db, employment_id, body, actor_id=current_user.id)
    detail = await EmploymentService.get_detail(db, employment_id)
    return success_response(detail, "Employment updated successfully.")


# ── DELETE /employments/{id} ────────────────────────────────────────

@router.delete("/{employment_id}")
async def delete_employment(
    employment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await EmploymentService.delete_employment(db, employment_id, actor_id=current_user.id)
    return success_response(None, "Employment deleted successfully.")


# ── GET /employments/{id}/history ───────────────────────────────────

@router.get("/{employment_id}/history")
async def employment_history(
    employment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    entries = await EmploymentService.list_history(db, employment_id)
    return success_response(
        [EmploymentHistoryResponse.model_validate(e) for e in entries],
        "Employment history retrieved successfully.",
    )


# ── GET /employments/{id}/probation-records ─────────────────────────

@router.get("/{employment_id}/probation-records")
async def probation_records(
    employment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    records = await EmploymentService.list_probation_records(db, employment_id)
    return success_response(
        [ProbationRecordResponse.model_validate(r) for r in records],
        "Probation records retrieved successfully.",
    )


# ═════════════════════════════════════════════════════════════════════
# Probation actions
# ═════════════════════════════════════════════════════════════════════


@router.post("/{employment_id}/probation/extend")
async def extend_probation(
    employment_id: uuid.UUID,
    body: ProbationExtendRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    record = await ProbationService.extend(db, employment_id, body, actor_id=current_user.id)
    return success_response(ProbationRecordResponse.model_validate(record), "Probation extended successfully.")


@router.post("/{employment_id}/probation/pass")
async def pass_probation(
    employment_id: uuid.UUID,
    body: Optional[ProbationPassRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await ProbationService.pass_probation(
        db,
        employment_id,
        reason=body.reason if body else None,
        actor_id=current_user.id,
        today=local_today(),
    )
    detail = await EmploymentService.get_detail(db, employment_id)
    return success_response(detail, "Probation passed successfully.")


@router.post("/{employment_id}/probation/fail")
async def fail_probation(
    employment_id: uuid.UUID,
    body: ProbationFailRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await ProbationService.fail_probation(db, employment_id, body, actor_id=current_user.id)
    detail = await EmploymentService.get_detail(db, employment_id)
    return success_response(detail, "Probation marked as failed.")


# ── GET /employments/{id}/funding-allocations ───────────────────────

@router.get("/{employment_id}/funding-allocations")
async def employment_allocations(
    employment_id: uuid.UUID,
    status: Optional[AllocationStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    await EmploymentService.get_employment(db, employment_id)
    allocations = await FundingAllocationService.list_for_employment(db, employment_id, status=status)
    return success_response(
        [FundingAllocationResponse.model_validate(a) for a in allocations],
        "Funding allocations retrieved successfully.",
    )
