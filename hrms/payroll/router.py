"""Payroll routers — payrolls, bulk batches, inter-organization advances, benefit settings.

Routes:
    /payrolls                           — List, create (per employment and month)
    /payrolls/calculate                 — Preview without saving
    /payrolls/statistics                — Totals over a pay period range
    /payrolls/bulk/preview              — Dry run of a bulk batch
    /payrolls/bulk/create               — Queue a bulk batch (background)
    /payrolls/bulk/status/{batch_id}    — Batch progress
    /payrolls/bulk/errors/{batch_id}    — Batch error report (xlsx)
    /payrolls/{id}                      — Get, update, delete
    /inter-organization-advances        — List
    /inter-organization-advances/{id}   — Get, update (settlement)
    /benefit-settings                   — List, create
    /benefit-settings/{id}              — Get, update
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import Organization
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.excel.workbook import XLSX_MEDIA_TYPE
from hrms.payroll.schemas import (
    AdvanceResponse,
    AdvanceUpdate,
    BenefitSettingCreate,
    BenefitSettingResponse,
    BenefitSettingUpdate,
    BulkPayrollBatchResponse,
    BulkPayrollRequest,
    PayrollCalculateRequest,
    PayrollCreate,
    PayrollResponse,
    PayrollUpdate,
)
from hrms.payroll.service import (
    BenefitSettingService,
    BulkPayrollService,
    InterOrganizationAdvanceService,
    PayrollService,
)

router = APIRouter(prefix="", tags=["payroll"])
advances_router = APIRouter(prefix="", tags=["payroll"])
benefit_settings_router = APIRouter(prefix="", tags=["payroll"])

_can_read = require_permission("payroll:read")
_can_edit = require_permission("payroll:edit")


# ═════════════════════════════════════════════════════════════════════
# /payrolls
# ═════════════════════════════════════════════════════════════════════


@router.get("")
async def list_payrolls(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    employment_id: Optional[uuid.UUID] = Query(None),
    organization: Optional[Organization] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    period_from: Optional[date] = Query(None),
    period_to: Optional[date] = Query(None),
):
    result = await PayrollService.list_payrolls(
        db,
        pagination,
        employee_id=employee_id,
        employment_id=employment_id,
        organization=organization,
        department_id=department_id,
        period_from=period_from,
        period_to=period_to,
    )
    return success_response(
        [PayrollResponse.model_validate(p) for p in result.data],
        "Payrolls retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("", status_code=201)
async def create_payroll(
    body: PayrollCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    payrolls, advances = await PayrollService.create_for_employment(db, body, actor_id=current_user.id)
    return success_response(
        {
            "payrolls": [PayrollResponse.model_validate(p) for p in payrolls],
            "advances": [AdvanceResponse.model_validate(a) for a in advances],
        },
        f"{len(payrolls)} payroll(s) created successfully.",
    )


# NOTE: static paths MUST be defined before /{payroll_id}
@router.post("/calculate")
async def calculate_payroll(
    body: PayrollCalculateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    result = await PayrollService.calculate(db, body)
    return success_response(result, "Payroll calculated successfully.")


@router.get("/statistics")
async def payroll_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    period_from: Optional[date] = Query(None, alias="from"),
    period_to: Optional[date] = Query(None, alias="to"),
):
    stats = await PayrollService.statistics(db, period_from=period_from, period_to=period_to)
    return success_response(stats, "Payroll statistics retrieved successfully.")


# ── Bulk ────────────────────────────────────────────────────────────

@router.post("/bulk/preview")
async def bulk_preview(
    body: BulkPayrollRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    result = await BulkPayrollService.preview(db, body)
    return success_response(result, "Bulk payroll preview generated successfully.")


@router.post("/bulk/create", status_code=202)
async def bulk_create(
    body: BulkPayrollRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    batch = await BulkPayrollService.create_batch(db, body, actor_id=current_user.id)
    # The worker opens its own session; the batch row must be visible to it
    await db.commit()
    background_tasks.add_task(BulkPayrollService.process_batch, batch.id)
    return success_response(
        BulkPayrollBatchResponse.model_validate(batch),
        "Bulk payroll batch created. Processing has started.",
    )


@router.get("/bulk/status/{batch_id}")
async def bulk_status(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    batch = await BulkPayrollService.get_batch(db, batch_id)
    return success_response(BulkPayrollBatchResponse.model_validate(batch), "Batch status retrieved successfully.")


@router.get("/bulk/errors/{batch_id}")
async def bulk_errors(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    filename, content = await BulkPayrollService.errors_report(db, batch_id)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Single payroll ──────────────────────────────────────────────────

@router.get("/{payroll_id}")
async def get_payroll(
    payroll_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    payroll = await PayrollService.get_payroll(db, payroll_id)
    advances = await PayrollService.advances_for(db, payroll.id)
    return success_response(
        {
            **PayrollResponse.model_validate(payroll).model_dump(),
            "advances": [AdvanceResponse.model_validate(a) for a in advances],
        },
        "Payroll retrieved successfully.",
    )


@router.put("/{payroll_id}")
async def update_payroll(
    payroll_id: uuid.UUID,
    body: PayrollUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    payroll = await PayrollService.update_payroll(db, payroll_id, body, actor_id=current_user.id)
    return success_response(PayrollResponse.model_validate(payroll), "Payroll updated successfully.")


@router.delete("/{payroll_id}")
async def delete_payroll(
    payroll_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await PayrollService.delete_payroll(db, payroll_id, actor_id=current_user.id)
    return success_response(None, "Payroll deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# /inter-organization-advances
# ═════════════════════════════════════════════════════════════════════


@advances_router.get("")
async def list_advances(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    organization: Optional[Organization] = Query(None),
    is_settled: Optional[bool] = Query(None),
    payroll_id: Optional[uuid.UUID] = Query(None),
):
    result = await InterOrganizationAdvanceService.list_advances(
        db, pagination, organization=organization, is_settled=is_settled, payroll_id=payroll_id,
    )
    return success_response(
        [AdvanceResponse.model_validate(a) for a in result.data],
        "Advances retrieved successfully.",
        pagination=result.pagination,
    )


@advances_router.get("/{advance_id}")
async def get_advance(
    advance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    advance = await InterOrganizationAdvanceService.get_advance(db, advance_id)
    return success_response(AdvanceResponse.model_validate(advance), "Advance retrieved successfully.")


@advances_router.put("/{advance_id}")
async def update_advance(
    advance_id: uuid.UUID,
    body: AdvanceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    advance = await InterOrganizationAdvanceService.update_advance(db, advance_id, body, actor_id=current_user.id)
    return success_response(AdvanceResponse.model_validate(advance), "Advance updated successfully.")


# ═════════════════════════════════════════════════════════════════════
# /benefit-settings
# ═════════════════════════════════════════════════════════════════════


@benefit_settings_router.get("")
async def list_benefit_settings(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    is_active: Optional[bool] = Query(None),
):
    settings = await BenefitSettingService.list_settings(db, is_active=is_active)
    return success_response(
        [BenefitSettingResponse.model_validate(s) for s in settings],
        "Benefit settings retrieved successfully.",
    )


@benefit_settings_router.post("", status_code=201)
async def create_benefit_setting(
    body: BenefitSettingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    setting = await BenefitSettingService.create_setting(db, body, actor_id=current_user.id)
    return success_response(BenefitSettingResponse.model_validate(setting), "Benefit setting created successfully.")


@benefit_settings_router.get("/{setting_id}")
async def get_benefit_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    setting = await BenefitSettingService.get_setting(db, setting_id)
    return success_response(BenefitSettingResponse.model_validate(setting), "Benefit setting retrieved successfully.")


@benefit_settings_router.put("/{setting_id}")
async def update_benefit_setting(
    setting_id: uuid.UUID,
    body: BenefitSettingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    setting = await BenefitSettingService.update_setting(db, setting_id, body, actor_id=current_user.id)
    return success_response(BenefitSettingResponse.model_validate(setting), "Benefit setting updated successfully.")
