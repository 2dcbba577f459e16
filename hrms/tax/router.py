"""Tax routers — brackets, settings, calculations.

Routes:
    /tax-brackets                       — List, create
    /tax-brackets/calculate/{income}    — Progressive tax on an annual taxable income
    /tax-brackets/{id}                  — Get, update, delete
    /tax-settings                       — List, create
    /tax-settings/by-year/{year}        — All settings of a year
    /tax-settings/value/{key}           — One setting of a year
    /tax-settings/bulk-update           — Update several settings
    /tax-settings/{id}                  — Get, update, delete
    /tax-settings/{id}/toggle           — Flip ``is_selected``
    /tax-calculations/income-tax        — Taxable income → tax
    /tax-calculations/payroll           — Full employee calculation (logged)
"""


import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.tax.schemas import (
    EmployeeTaxRequest,
    IncomeTaxRequest,
    TaxBracketCreate,
    TaxBracketResponse,
    TaxBracketUpdate,
    TaxSettingBulkUpdate,
    TaxSettingCreate,
    TaxSettingResponse,
    TaxSettingUpdate,
)
from hrms.tax.service import TaxBracketService, TaxCalculationService, TaxSettingService

brackets_router = APIRouter(prefix="", tags=["tax"])
settings_router = APIRouter(prefix="", tags=["tax"])
calculations_router = APIRouter(prefix="", tags=["tax"])

_can_read = require_permission("tax:read")
_can_edit = require_permission("tax:edit")


# ═════════════════════════════════════════════════════════════════════
# /tax-brackets
# ═════════════════════════════════════════════════════════════════════


@brackets_router.get("")
async def list_brackets(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    is_active: Optional[bool] = Query(None),
):
    result = await TaxBracketService.list_brackets(db, pagination, year=year, is_active=is_active)
    return success_response(
        [TaxBracketResponse.model_validate(b) for b in result.data],
        "Tax brackets retrieved successfully.",
        pagination=result.pagination,
    )


@brackets_router.post("", status_code=201)
async def create_bracket(
    body: TaxBracketCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    bracket = await TaxBracketService.create_bracket(db, body, actor_id=current_user.id)
    return success_response(TaxBracketResponse.model_validate(bracket), "Tax bracket created successfully.")


# NOTE: MUST be defined before /{bracket_id}
@brackets_router.get("/calculate/{income}")
async def calculate_bracket_tax(
    income: Decimal = Path(..., ge=0),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    """Progressive tax only; no deductions or allowances are applied."""
    result = await TaxCalculationService.calculate_income_tax(db, income, year)
    return success_response(result, "Tax calculated successfully.")


@brackets_router.get("/{bracket_id}")
async def get_bracket(
    bracket_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    bracket = await TaxBracketService.get_bracket(db, bracket_id)
    return success_response(TaxBracketResponse.model_validate(bracket), "Tax bracket retrieved successfully.")


@brackets_router.put("/{bracket_id}")
async def update_bracket(
    bracket_id: uuid.UUID,
    body: TaxBracketUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    bracket = await TaxBracketService.update_bracket(db, bracket_id, body, actor_id=current_user.id)
    return success_response(TaxBracketResponse.model_validate(bracket), "Tax bracket updated successfully.")


@brackets_router.delete("/{bracket_id}")
async def delete_bracket(
    bracket_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await TaxBracketService.delete_bracket(db, bracket_id, actor_id=current_user.id)
    return success_response(None, "Tax bracket deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# /tax-settings
# ═════════════════════════════════════════════════════════════════════


@settings_router.get("")
async def list_settings(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    is_selected: Optional[bool] = Query(None),
):
    result = await TaxSettingService.list_settings(db, pagination, year=year, is_selected=is_selected)
    return success_response(
        [TaxSettingResponse.model_validate(s) for s in result.data],
        "Tax settings retrieved successfully.",
        pagination=result.pagination,
    )


@settings_router.post("", status_code=201)
async def create_setting(
    body: TaxSettingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    setting = await TaxSettingService.create_setting(db, body, actor_id=current_user.id)
    return success_response(TaxSettingResponse.model_validate(setting), "Tax setting created successfully.")


# NOTE: static paths MUST be defined before /{setting_id}
@settings_router.get("/by-year/{year}")
async def settings_by_year(
    year: int = Path(..., ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    settings = await TaxSettingService.by_year(db, year)
    return success_response(
        [TaxSettingResponse.model_validate(s) for s in settings],
        f"Tax settings for {year} retrieved successfully.",
    )


@settings_router.get("/value/{key}")
async def setting_value(
    key: str,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    setting = await TaxSettingService.get_value(db, key, year)
    return success_response(
        {
            "setting_key": setting.setting_key,
            "setting_value": str(setting.setting_value),
            "effective_year": setting.effective_year,
            "is_selected": setting.is_selected,
        },
        "Tax setting value retrieved successfully.",
    )


@settings_router.post("/bulk-update")
async def bulk_update_settings(
    body: TaxSettingBulkUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    updated = await TaxSettingService.bulk_update(db, body, actor_id=current_user.id)
    return success_response(
        [TaxSettingResponse.model_validate(s) for s in updated],
        f"{len(updated)} tax setting(s) updated successfully.",
    )


@settings_router.get("/{setting_id}")
async def get_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    setting = await TaxSettingService.get_setting(db, setting_id)
    return success_response(TaxSettingResponse.model_validate(setting), "Tax setting retrieved successfully.")


@settings_router.put("/{setting_id}")
async def update_setting(
    setting_id: uuid.UUID,
    body: TaxSettingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    setting = await TaxSettingService.update_setting(db, setting_id, body, actor_id=current_user.id)
    return success_response(TaxSettingResponse.model_validate(setting), "Tax setting updated successfully.")


@settings_router.patch("/{setting_id}/toggle")
async def toggle_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    setting = await TaxSettingService.toggle(db, setting_id, actor_id=current_user.id)
    state = "selected" if setting.is_selected else "deselected"
    return success_response(TaxSettingResponse.model_validate(setting), f"Tax setting {state}.")


@settings_router.delete("/{setting_id}")
async def delete_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await TaxSettingService.delete_setting(db, setting_id, actor_id=current_user.id)
    return success_response(None, "Tax setting deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# /tax-calculations
# ═════════════════════════════════════════════════════════════════════


@calculations_router.post("/income-tax")
async def calculate_income_tax(
    body: IncomeTaxRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    result = await TaxCalculationService.calculate_income_tax(db, body.taxable_income, body.year)
    return success_response(result, "Income tax calculated successfully.")


@calculations_router.post("/payroll")
async def calculate_payroll_tax(
    body: EmployeeTaxRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    """Annual and monthly tax for a monthly gross, with deductions and allowances."""
    result = await TaxCalculationService.calculate_for_request(db, body, actor_id=current_user.id)
    return success_response(result, "Payroll tax calculated successfully.")
