"""Travel request router — options, CRUD, supervisor approval, HR acknowledgement."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import has_permission, require_permission, require_role
from hrms.common.constants import TravelStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.travel.schemas import (
    TravelAcknowledgeRequest,
    TravelApprovalRequest,
    TravelRequestCreate,
    TravelRequestResponse,
    TravelRequestUpdate,
)
from hrms.travel.service import TravelRequestService, travel_options

router = APIRouter(prefix="", tags=["travel"])

_can_read = require_permission("travel:read")
_can_request = require_permission("travel:request")
_can_approve = require_permission("travel:approve")
_is_hr = require_role(UserRole.hr_admin)


def _is_approver(request: Request) -> bool:
    return has_permission(request.state.user_role, "travel:approve")


def _ensure_own(request: Request, current_user: Employee, employee_id: uuid.UUID) -> None:
    if employee_id != current_user.id and not _is_approver(request):
        raise ForbiddenException(detail="You can only access your own travel requests.")


# ── GET /options ────────────────────────────────────────────────────
# NOTE: /options MUST be defined before /{request_id}

@router.get("/options")
async def get_options(current_user: Employee = Depends(_can_read)):
    return success_response(travel_options(), "Travel request options retrieved successfully.")


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_travel_requests(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[TravelStatus] = Query(None),
    destination: Optional[str] = Query(None),
):
    if not _is_approver(request):
        employee_id = current_user.id
    result = await TravelRequestService.list_requests(
        db, pagination, employee_id=employee_id, status=status, destination=destination,
    )
    return success_response(
        [TravelRequestResponse.model_validate(t) for t in result.data],
        "Travel requests retrieved successfully.",
        pagination=result.pagination,
    )


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", status_code=201)
async def create_travel_request(
    request: Request,
    body: TravelRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_request),
):
    employee_id = body.employee_id or current_user.id
    _ensure_own(request, current_user, employee_id)
    travel = await TravelRequestService.create_request(
        db, body, employee_id=employee_id, actor_id=current_user.id,
    )
    return success_response(TravelRequestResponse.model_validate(travel), "Travel request created successfully.")


# ── GET /{request_id} ───────────────────────────────────────────────

@router.get("/{request_id}")
async def get_travel_request(
    request_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    travel = await TravelRequestService.get_request(db, request_id)
    _ensure_own(request, current_user, travel.employee_id)
    return success_response(TravelRequestResponse.model_validate(travel), "Travel request retrieved successfully.")


# ── PUT /{request_id} ───────────────────────────────────────────────

@router.put("/{request_id}")
async def update_travel_request(
    request_id: uuid.UUID,
    body: TravelRequestUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_request),
):
    travel = await TravelRequestService.get_request(db, request_id)
    _ensure_own(request, current_user, travel.employee_id)
    travel = await TravelRequestService.update_request(db, request_id, body, actor_id=current_user.id)
    return success_response(TravelRequestResponse.model_validate(travel), "Travel request updated successfully.")


# ── DELETE /{request_id} ────────────────────────────────────────────

@router.delete("/{request_id}")
async def delete_travel_request(
    request_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_request),
):
    travel = await TravelRequestService.get_request(db, request_id)
    if not _is_approver(request) and (travel.employee_id != current_user.id or travel.supervisor_approved):
        raise ForbiddenException(detail="You can only delete your own travel requests before approval.")
    await TravelRequestService.delete_request(db, request_id, actor_id=current_user.id)
    return success_response(None, "Travel request deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# Approvals
# ═════════════════════════════════════════════════════════════════════


@router.post("/{request_id}/approve")
async def approve_travel_request(
    request_id: uuid.UUID,
    body: TravelApprovalRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_approve),
):
    """Supervisor decision on a travel request."""
    travel = await TravelRequestService.approve(db, request_id, body, actor_id=current_user.id)
    return success_response(
        TravelRequestResponse.model_validate(travel),
        "Travel request approved." if body.approved else "Travel request approval withdrawn.",
    )


@router.post("/{request_id}/acknowledge")
async def acknowledge_travel_request(
    request_id: uuid.UUID,
    body: TravelAcknowledgeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_is_hr),
):
    """HR acknowledgement; only possible after supervisor approval."""
    travel = await TravelRequestService.acknowledge(db, request_id, body, actor_id=current_user.id)
    return success_response(TravelRequestResponse.model_validate(travel), "Travel request acknowledged.")
