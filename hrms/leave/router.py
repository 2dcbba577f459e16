"""Leave router — working days, types, holidays, balances, requests, approvals.

Employees without ``leave:approve`` only see and act on their own requests.
Configuration endpoints and requests filed for someone else require
``leave:configure``.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import has_permission, require_permission
from hrms.common.constants import LeaveApprovalType, LeaveStatus
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.leave.schemas import (
    HolidayCreate,
    HolidayResponse,
    LeaveApprovalRequest,
    LeaveBalanceInitialize,
    LeaveBalanceResponse,
    LeaveBalanceSet,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from hrms.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])

_can_read = require_permission("leave:read")
_can_request = require_permission("leave:request")
_can_approve = require_permission("leave:approve")
_can_configure = require_permission("leave:configure")


def _sees_all(request: Request) -> bool:
    return has_permission(request.state.user_role, "leave:approve")


def _ensure_own(request: Request, current_user: Employee, employee_id: uuid.UUID) -> None:
    if employee_id != current_user.id and not _sees_all(request):
        raise ForbiddenException(detail="You can only access your own leave records.")


# ── GET /working-days ───────────────────────────────────────────────

@router.get("/working-days")
async def working_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    """Working days between two dates, excluding weekends and active holidays."""
    result = await LeaveService.working_days(db, start_date, end_date)
    return success_response(result, "Working days calculated successfully.")


# ═════════════════════════════════════════════════════════════════════
# Types
# ═════════════════════════════════════════════════════════════════════


@router.get("/types")
async def list_leave_types(
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    types = await LeaveService.list_types(db, is_active=is_active)
    return success_response([LeaveTypeResponse.model_validate(t) for t in types], "Leave types retrieved successfully.")


@router.post("/types", status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    leave_type = await LeaveService.create_type(db, body, actor_id=current_user.id)
    return success_response(LeaveTypeResponse.model_validate(leave_type), "Leave type created successfully.")


@router.put("/types/{leave_type_id}")
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    leave_type = await LeaveService.update_type(db, leave_type_id, body, actor_id=current_user.id)
    return success_response(LeaveTypeResponse.model_validate(leave_type), "Leave type updated successfully.")


# ═════════════════════════════════════════════════════════════════════
# Holidays
# ═════════════════════════════════════════════════════════════════════


@router.get("/holidays")
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    holidays = await LeaveService.list_holidays(db, year=year)
    return success_response([HolidayResponse.model_validate(h) for h in holidays], "Holidays retrieved successfully.")


@router.post("/holidays", status_code=201)
async def create_holiday(
    body: HolidayCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    holiday = await LeaveService.create_holiday(db, body, actor_id=current_user.id)
    return success_response(HolidayResponse.model_validate(holiday), "Holiday created successfully.")


@router.delete("/holidays/{holiday_id}")
async def delete_holiday(
    holiday_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    await LeaveService.delete_holiday(db, holiday_id, actor_id=current_user.id)
    return success_response(None, "Holiday deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


@router.get("/balances")
async def list_balances(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    leave_type_id: Optional[uuid.UUID] = Query(None),
):
    if not _sees_all(request):
        employee_id = current_user.id
    result = await LeaveService.list_balances(
        db, pagination, employee_id=employee_id, year=year, leave_type_id=leave_type_id,
    )
    return success_response(
        [LeaveBalanceResponse.model_validate(b) for b in result.data],
        "Leave balances retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("/balances")
async def set_balance(
    body: LeaveBalanceSet,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    balance, created = await LeaveService.set_balance(db, body, actor_id=current_user.id)
    return success_response(
        LeaveBalanceResponse.model_validate(balance),
        "Leave balance created successfully." if created else "Leave balance updated successfully.",
    )


@router.post("/balances/initialize")
async def initialize_balances(
    body: LeaveBalanceInitialize,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    """Create missing balances for every active employee and active leave type."""
    result = await LeaveService.initialize_balances(db, body.year, actor_id=current_user.id)
    return success_response(result, f"{result['created']} leave balance(s) initialized for {body.year}.")


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


@router.get("/requests")
async def list_requests(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
):
    if not _sees_all(request):
        employee_id = current_user.id
    result = await LeaveService.list_requests(
        db,
        pagination,
        employee_id=employee_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        leave_type_id=leave_type_id,
    )
    return success_response(
        [LeaveRequestResponse.model_validate(r) for r in result.data],
        "Leave requests retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("/requests", status_code=201)
async def create_request(
    request: Request,
    body: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_request),
):
    employee_id = body.employee_id or current_user.id
    role = request.state.user_role
    if (employee_id != current_user.id or body.status != LeaveStatus.pending) and not has_permission(
        role, "leave:configure"
    ):
        raise ForbiddenException(
            detail="Filing leave for another employee or as already approved requires 'leave:configure'."
        )
    leave_request = await LeaveService.create_request(
        db, body, employee_id=employee_id, actor_id=current_user.id,
    )
    return success_response(LeaveRequestResponse.model_validate(leave_request), "Leave request created successfully.")


@router.get("/statistics")
async def leave_statistics(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee_id: Optional[uuid.UUID] = Query(None),
):
    if not _sees_all(request):
        employee_id = current_user.id
    stats = await LeaveService.statistics(db, year=year, employee_id=employee_id)
    return success_response(stats, "Leave statistics retrieved successfully.")


@router.get("/requests/{request_id}")
async def get_request(
    request_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    leave_request = await LeaveService.get_request(db, request_id)
    _ensure_own(request, current_user, leave_request.employee_id)
    return success_response(LeaveRequestResponse.model_validate(leave_request), "Leave request retrieved successfully.")


@router.put("/requests/{request_id}")
async def update_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_configure),
):
    leave_request = await LeaveService.update_request(db, request_id, body, actor_id=current_user.id)
    return success_response(LeaveRequestResponse.model_validate(leave_request), "Leave request updated successfully.")


@router.post("/requests/{request_id}/approve")
async def approve_request(
    request_id: uuid.UUID,
    body: LeaveApprovalRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_approve),
):
    if body.approval_type == LeaveApprovalType.hr_site_admin and not has_permission(
        request.state.user_role, "leave:configure"
    ):
        raise ForbiddenException(detail="HR site admin approval requires 'leave:configure'.")
    leave_request = await LeaveService.approve_request(db, request_id, body, actor_id=current_user.id)
    return success_response(
        LeaveRequestResponse.model_validate(leave_request),
        f"Leave request {leave_request.status.value}.",
    )


@router.delete("/requests/{request_id}")
async def delete_request(
    request_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_request),
):
    leave_request = await LeaveService.get_request(db, request_id)
    if not has_permission(request.state.user_role, "leave:configure"):
        if leave_request.employee_id != current_user.id or leave_request.status != LeaveStatus.pending:
            raise ForbiddenException(detail="You can only delete your own pending leave requests.")
    await LeaveService.delete_request(db, request_id, actor_id=current_user.id)
    return success_response(None, "Leave request deleted successfully.")
