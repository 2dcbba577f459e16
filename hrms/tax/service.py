"""Tax service — brackets, settings, and the employee income tax calculation.

Calculation order (annual figures):
    income  = monthly gross × months worked this year
    taxable = income − employment deduction − allowances − social security − provident fund
    tax     = Σ over brackets of (min(taxable, upper) − already taxed) × rate

Only settings flagged ``is_selected`` take part in a calculation.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import EmployeeStatus
from hrms.common.exceptions import ConflictError, NotFoundException, ValidationException
from hrms.common.money import ZERO, round_money, to_decimal
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.tax.defaults import THAI_2025_BRACKETS, THAI_2025_SETTINGS
from hrms.tax.models import TaxBracket, TaxCalculationLog, TaxSetting
from hrms.tax.schemas import (
    BracketTax,
    EmployeeTaxRequest,
    EmployeeTaxResult,
    IncomeTaxResult,
    TaxBracketCreate,
    TaxBracketUpdate,
    TaxSettingBulkUpdate,
    TaxSettingCreate,
    TaxSettingUpdate,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
TWELVE = Decimal("12")

_BRACKET_FIELDS = ["min_income", "max_income", "tax_rate", "bracket_order", "effective_year", "is_active"]
_SETTING_FIELDS = ["setting_key", "setting_value", "setting_type", "effective_year", "is_selected"]


# ═════════════════════════════════════════════════════════════════════
# Pure calculation
# ═════════════════════════════════════════════════════════════════════


class TaxConfig:
    """Brackets and selected settings of one tax year."""

    def __init__(self, year: int, brackets: list[TaxBracket], settings: dict[str, Decimal]) -> None:
        self.year = year
        self.brackets = sorted(brackets, key=lambda b: b.bracket_order)
        self.settings = settings

    def is_selected(self, key: str) -> bool:
        return key in self.settings

    def value(self, key: str, default: Decimal = ZERO) -> Decimal:
        return self.settings.get(key, default)


def progressive_tax(taxable: Decimal, brackets: list[TaxBracket]) -> tuple[Decimal, list[BracketTax]]:
    """Annual tax on *taxable* income and the per-bracket slices that produced it."""
    taxable = to_decimal(taxable)
    total = ZERO
    processed = ZERO
    rows: list[BracketTax] = []
    for bracket in brackets:
        if processed >= taxable:
            break
        upper = taxable if bracket.max_income is None else min(taxable, to_decimal(bracket.max_income))
        portion = upper - processed
        if portion <= 0:
            continue
        tax = portion * to_decimal(bracket.tax_rate) / HUNDRED
        total += tax
        processed += portion
        rows.append(BracketTax(
            bracket_order=bracket.bracket_order,
            min_income=bracket.min_income,
            max_income=bracket.max_income,
            tax_rate=bracket.tax_rate,
            taxable_in_bracket=round_money(portion),
            tax_amount=round_money(tax),
        ))
    return round_money(total), rows


def income_tax(config: TaxConfig, taxable: Decimal) -> IncomeTaxResult:
    taxable = round_money(taxable)
    annual, rows = progressive_tax(taxable, config.brackets)
    return IncomeTaxResult(
        tax_year=config.year,
        taxable_income=taxable,
        annual_tax=annual,
        monthly_tax=round_money(annual / TWELVE),
        effective_rate=round_money(annual / taxable * HUNDRED) if taxable > 0 else ZERO,
        brackets=rows,
    )


def _provident_fund(config: TaxConfig, annual_income: Decimal, status: Optional[EmployeeStatus]) -> tuple[Optional[str], Decimal]:
    if status == EmployeeStatus.local_id:
        label, rate_key, max_key = "PVD Fund", "PVD_FUND_RATE", "PVD_FUND_MAX"
    elif status == EmployeeStatus.local_non_id:
        label, rate_key, max_key = "Saving Fund", "SAVING_FUND_RATE", "SAVING_FUND_MAX"
    else:
        return None, ZERO
    if not config.is_selected(rate_key):
        return label, ZERO
    amount = annual_income * config.value(rate_key) / HUNDRED
    if config.is_selected(max_key):
        amount = min(amount, config.value(max_key))
    return label, amount


def calculate_employee_tax(
    config: TaxConfig,
    monthly_gross: Decimal,
    *,
    employee_status: Optional[EmployeeStatus] = None,
    has_spouse: bool = False,
    children: int = 0,
    eligible_parents: int = 0,
    months_working: int = 12,
) -> EmployeeTaxResult:
    """Full personal income tax for a monthly gross salary."""
    monthly_gross = to_decimal(monthly_gross)
    annual_income = monthly_gross * months_working

    deduction = ZERO
    if config.is_selected("EMPLOYMENT_DEDUCTION_RATE"):
        deduction = annual_income * config.value("EMPLOYMENT_DEDUCTION_RATE") / HUNDRED
        if config.is_selected("EMPLOYMENT_DEDUCTION_MAX"):
            deduction = min(deduction, config.value("EMPLOYMENT_DEDUCTION_MAX"))

    allowances: dict[str, Decimal] = {}
    if config.is_selected("PERSONAL_ALLOWANCE"):
        allowances["PERSONAL_ALLOWANCE"] = config.value("PERSONAL_ALLOWANCE")
    if has_spouse and config.is_selected("SPOUSE_ALLOWANCE"):
        allowances["SPOUSE_ALLOWANCE"] = config.value("SPOUSE_ALLOWANCE")
    if children > 0 and config.is_selected("CHILD_ALLOWANCE"):
        allowances["CHILD_ALLOWANCE"] = config.value("CHILD_ALLOWANCE")
    if children > 1 and config.is_selected("CHILD_ALLOWANCE_SUBSEQUENT"):
        allowances["CHILD_ALLOWANCE_SUBSEQUENT"] = config.value("CHILD_ALLOWANCE_SUBSEQUENT") * (children - 1)
    if eligible_parents > 0 and config.is_selected("PARENT_ALLOWANCE"):
        allowances["PARENT_ALLOWANCE"] = config.value("PARENT_ALLOWANCE") * eligible_parents
    allowance_total = sum(allowances.values(), ZERO)

    ssf_monthly = ZERO
    if config.is_selected("SSF_RATE"):
        ssf_monthly = monthly_gross * config.value("SSF_RATE") / HUNDRED
        if config.is_selected("SSF_MAX_MONTHLY"):
            ssf_monthly = min(ssf_monthly, config.value("SSF_MAX_MONTHLY"))
    ssf_monthly = round_money(ssf_monthly)
    ssf_annual = ssf_monthly * 12

    pf_type, pf_annual = _provident_fund(config, annual_income, employee_status)

    total_deductions = deduction + allowance_total + ssf_annual + pf_annual
    taxable = max(ZERO, annual_income - total_deductions)
    base = income_tax(config, taxable)

    return EmployeeTaxResult(
        **base.model_dump(),
        gross_salary=round_money(monthly_gross),
        months_working=months_working,
        annual_income=round_money(annual_income),
        employment_deduction=round_money(deduction),
        allowances={k: round_money(v) for k, v in allowances.items()},
        personal_allowances_total=round_money(allowance_total),
        social_security_monthly=ssf_monthly,
        social_security_annual=round_money(ssf_annual),
        provident_fund_type=pf_type,
        provident_fund_annual=round_money(pf_annual),
        total_deductions=round_money(total_deductions),
        net_salary=round_money(monthly_gross - base.monthly_tax - ssf_monthly),
    )


# ═════════════════════════════════════════════════════════════════════
# TaxCalculationService
# ═════════════════════════════════════════════════════════════════════


class TaxCalculationService:
    """Loads a tax year's configuration and runs calculations against it."""

    @staticmethod
    async def _resolve_year(db: AsyncSession, model, year: int, *conditions) -> Optional[int]:
        """*year* when it has rows, else the latest earlier year that does, else the latest overall."""
        has_rows = (
            await db.execute(
                select(func.count()).select_from(model).where(model.effective_year == year, *conditions)
            )
        ).scalar_one()
        if has_rows:
            return year
        earlier = (
            await db.execute(select(func.max(model.effective_year)).where(model.effective_year < year, *conditions))
        ).scalar_one()
        if earlier is not None:
            return earlier
        return (await db.execute(select(func.max(model.effective_year)).where(*conditions))).scalar_one()

    @staticmethod
    async def load_config(db: AsyncSession, year: Optional[int] = None) -> TaxConfig:
        year = year or date.today().year
        bracket_year = await TaxCalculationService._resolve_year(
            db, TaxBracket, year, TaxBracket.is_active.is_(True),
        )
        brackets: list[TaxBracket] = []
        if bracket_year is not None:
            result = await db.execute(
                select(TaxBracket)
                .where(TaxBracket.effective_year == bracket_year, TaxBracket.is_active.is_(True))
                .order_by(TaxBracket.bracket_order)
            )
            brackets = list(result.scalars().all())
        if bracket_year is not None and bracket_year != year:
            logger.warning("No tax brackets for %s; using %s", year, bracket_year)

        setting_year = await TaxCalculationService._resolve_year(db, TaxSetting, year)
        settings: dict[str, Decimal] = {}
        if setting_year is not None:
            result = await db.execute(
                select(TaxSetting).where(
                    TaxSetting.effective_year == setting_year,
                    TaxSetting.is_selected.is_(True),
                )
            )
            settings = {s.setting_key: to_decimal(s.setting_value) for s in result.scalars().all()}
        return TaxConfig(year, brackets, settings)

    @staticmethod
    async def calculate_income_tax(db: AsyncSession, taxable: Decimal, year: Optional[int] = None) -> IncomeTaxResult:
        config = await TaxCalculationService.load_config(db, year)
        return income_tax(config, taxable)

    @staticmethod
    async def calculate_for_request(
        db: AsyncSession,
        data: EmployeeTaxRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeTaxResult:
        """Employee tax with personal data read from the employee when ``employee_id`` is given.

        Explicit request values take precedence over the stored ones. The
        result is logged.
        """
        status, spouse, children, parents = data.employee_status, data.has_spouse, data.children, data.eligible_parents
        if data.employee_id is not None:
            employee = await db.get(Employee, data.employee_id)
            if employee is None:
                raise NotFoundException("Employee", str(data.employee_id))
            status = status or employee.status
            spouse = employee.has_spouse if spouse is None else spouse
            children = employee.number_of_children if children is None else children
            parents = employee.eligible_parents_count if parents is None else parents

        config = await TaxCalculationService.load_config(db, data.year)
        result = calculate_employee_tax(
            config,
            data.gross_salary,
            employee_status=status,
            has_spouse=bool(spouse),
            children=children or 0,
            eligible_parents=parents or 0,
            months_working=data.months_working_this_year,
        )
        db.add(TaxCalculationLog(
            employee_id=data.employee_id,
            tax_year=config.year,
            gross_salary=result.gross_salary,
            taxable_income=result.taxable_income,
            annual_tax=result.annual_tax,
            monthly_tax=result.monthly_tax,
            breakdown=result.model_dump(mode="json"),
            calculated_by=actor_id,
        ))
        await db.flush()
        return result


# ═════════════════════════════════════════════════════════════════════
# TaxBracketService
# ═════════════════════════════════════════════════════════════════════


class TaxBracketService:
    """CRUD for tax brackets; ranges within a year may not overlap."""

    @staticmethod
    async def list_brackets(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        year: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = select(TaxBracket).order_by(TaxBracket.effective_year.desc(), TaxBracket.bracket_order)
        if year is not None:
            query = query.where(TaxBracket.effective_year == year)
        if is_active is not None:
            query = query.where(TaxBracket.is_active.is_(is_active))
        return await paginate(db, query, pagination, model=TaxBracket)

    @staticmethod
    async def get_bracket(db: AsyncSession, bracket_id: uuid.UUID) -> TaxBracket:
        bracket = await db.get(TaxBracket, bracket_id)
        if bracket is None:
            raise NotFoundException("TaxBracket", str(bracket_id))
        return bracket

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        year: int,
        min_income: Decimal,
        max_income: Optional[Decimal],
        bracket_order: int,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(TaxBracket).where(TaxBracket.effective_year == year)
        if exclude_id is not None:
            query = query.where(TaxBracket.id != exclude_id)
        errors: dict[str, list[str]] = {}
        for other in (await db.execute(query)).scalars().all():
            other_max = other.max_income
            # Brackets share boundaries: [min, max) ranges
            starts_before_other_ends = other_max is None or min_income < other_max
            ends_after_other_starts = max_income is None or max_income > other.min_income
            if starts_before_other_ends and ends_after_other_starts:
                errors["min_income"] = [
                    f"Income range overlaps bracket #{other.bracket_order} "
                    f"({other.min_income} - {other_max if other_max is not None else 'and above'})."
                ]
            if other.bracket_order == bracket_order:
                errors["bracket_order"] = [f"Bracket order {bracket_order} is already used for {year}."]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def create_bracket(
        db: AsyncSession,
        data: TaxBracketCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaxBracket:
        await TaxBracketService._check_overlap(
            db, data.effective_year, data.min_income, data.max_income, data.bracket_order,
        )
        bracket = TaxBracket(**data.model_dump())
        db.add(bracket)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="tax_bracket",
            entity_id=bracket.id,
            actor_id=actor_id,
            new_values=snapshot(bracket, _BRACKET_FIELDS),
        )
        return bracket

    @staticmethod
    async def update_bracket(
        db: AsyncSession,
        bracket_id: uuid.UUID,
        data: TaxBracketUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaxBracket:
        bracket = await TaxBracketService.get_bracket(db, bracket_id)
        changes = data.model_dump(exclude_unset=True)
        old = snapshot(bracket, _BRACKET_FIELDS)

        min_income = changes.get("min_income", bracket.min_income)
        max_income = changes.get("max_income", bracket.max_income)
        if max_income is not None and max_income <= min_income:
            raise ValidationException({"max_income": ["max_income must be greater than min_income."]})
        await TaxBracketService._check_overlap(
            db,
            changes.get("effective_year", bracket.effective_year),
            min_income,
            max_income,
            changes.get("bracket_order", bracket.bracket_order),
            exclude_id=bracket.id,
        )

        for field, value in changes.items():
            setattr(bracket, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="tax_bracket",
            entity_id=bracket.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(bracket, _BRACKET_FIELDS),
        )
        return bracket

    @staticmethod
    async def delete_bracket(db: AsyncSession, bracket_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> None:
        bracket = await TaxBracketService.get_bracket(db, bracket_id)
        old = snapshot(bracket, _BRACKET_FIELDS)
        await db.delete(bracket)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="tax_bracket",
            entity_id=bracket_id,
            actor_id=actor_id,
            old_values=old,
        )


# ═════════════════════════════════════════════════════════════════════
# TaxSettingService
# ═════════════════════════════════════════════════════════════════════


class TaxSettingService:
    """CRUD for tax settings."""

    @staticmethod
    async def list_settings(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        year: Optional[int] = None,
        is_selected: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = select(TaxSetting).order_by(TaxSetting.effective_year.desc(), TaxSetting.setting_key)
        if year is not None:
            query = query.where(TaxSetting.effective_year == year)
        if is_selected is not None:
            query = query.where(TaxSetting.is_selected.is_(is_selected))
        return await paginate(db, query, pagination, model=TaxSetting)

    @staticmethod
    async def by_year(db: AsyncSession, year: int) -> list[TaxSetting]:
        result = await db.execute(
            select(TaxSetting).where(TaxSetting.effective_year == year).order_by(TaxSetting.setting_key)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_setting(db: AsyncSession, setting_id: uuid.UUID) -> TaxSetting:
        setting = await db.get(TaxSetting, setting_id)
        if setting is None:
            raise NotFoundException("TaxSetting", str(setting_id))
        return setting

    @staticmethod
    async def get_value(db: AsyncSession, key: str, year: Optional[int] = None) -> TaxSetting:
        year = year or date.today().year
        result = await db.execute(
            select(TaxSetting).where(TaxSetting.setting_key == key, TaxSetting.effective_year == year)
        )
        setting = result.scalars().first()
        if setting is None:
            raise NotFoundException("TaxSetting", f"{key}/{year}")
        return setting

    @staticmethod
    async def create_setting(
        db: AsyncSession,
        data: TaxSettingCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaxSetting:
        exists = (
            await db.execute(
                select(TaxSetting.id).where(
                    TaxSetting.setting_key == data.setting_key,
                    TaxSetting.effective_year == data.effective_year,
                )
            )
        ).first()
        if exists:
            raise ConflictError("setting_key", f"{data.setting_key}/{data.effective_year}")

        setting = TaxSetting(**data.model_dump())
        db.add(setting)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="tax_setting",
            entity_id=setting.id,
            actor_id=actor_id,
            new_values=snapshot(setting, _SETTING_FIELDS),
        )
        return setting

    @staticmethod
    async def update_setting(
        db: AsyncSession,
        setting_id: uuid.UUID,
        data: TaxSettingUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaxSetting:
        setting = await TaxSettingService.get_setting(db, setting_id)
        old = snapshot(setting, _SETTING_FIELDS)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(setting, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="tax_setting",
            entity_id=setting.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(setting, _SETTING_FIELDS),
        )
        return setting

    @staticmethod
    async def toggle(db: AsyncSession, setting_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> TaxSetting:
        setting = await TaxSettingService.get_setting(db, setting_id)
        return await TaxSettingService.update_setting(
            db, setting_id, TaxSettingUpdate(is_selected=not setting.is_selected), actor_id=actor_id,
        )

    @staticmethod
    async def bulk_update(
        db: AsyncSession,
        data: TaxSettingBulkUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[TaxSetting]:
        updated: list[TaxSetting] = []
        for item in data.settings:
            changes = TaxSettingUpdate(**item.model_dump(exclude={"id"}, exclude_none=True))
            updated.append(await TaxSettingService.update_setting(db, item.id, changes, actor_id=actor_id))
        return updated

    @staticmethod
    async def delete_setting(db: AsyncSession, setting_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> None:
        setting = await TaxSettingService.get_setting(db, setting_id)
        old = snapshot(setting, _SETTING_FIELDS)
        await db.delete(setting)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="tax_setting",
            entity_id=setting_id,
            actor_id=actor_id,
            old_values=old,
        )


async def seed_tax_year(db: AsyncSession, year: int) -> tuple[int, int]:
    """Copy the Thai 2025 brackets and settings into *year* where that year has none.

    Returns ``(brackets_added, settings_added)``.
    """
    has_brackets = (
        await db.execute(select(TaxBracket.id).where(TaxBracket.effective_year == year).limit(1))
    ).first()
    brackets_added = 0
    if not has_brackets:
        for order, (min_income, max_income, rate, description) in enumerate(THAI_2025_BRACKETS, start=1):
            db.add(TaxBracket(
                min_income=min_income,
                max_income=max_income,
                tax_rate=rate,
                bracket_order=order,
                effective_year=year,
                description=description,
                is_active=True,
            ))
            brackets_added += 1

    result = await db.execute(select(TaxSetting.setting_key).where(TaxSetting.effective_year == year))
    present = set(result.scalars().all())
    settings_added = 0
    for key, (value, setting_type, description) in THAI_2025_SETTINGS.items():
        if key in present:
            continue
        db.add(TaxSetting(
            setting_key=key,
            setting_value=value,
            setting_type=setting_type,
            description=description,
            effective_year=year,
            is_selected=True,
        ))
        settings_added += 1

    await db.flush()
    logger.info("Seeded tax year %d: %d bracket(s), %d setting(s)", year, brackets_added, settings_added)
    return brackets_added, settings_added
