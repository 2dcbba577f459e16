"""Payroll service — per-employment payroll, bulk batches, advances, benefit settings.

A payroll row is written per funding allocation in force on the pay date.
Pay period dates are normalized to the last day of their month, so one
allocation has at most one payroll per month.

When the grant paying an allocation belongs to another organization than
the employee, the grant's organization advances the net salary through its
hub grant and an ``InterOrganizationAdvance`` records it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import AllocationStatus, BatchStatus, Organization
from hrms.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrms.common.money import ZERO, round_money
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.database import async_session_factory
from hrms.employment.models import Employment
from hrms.excel.workbook import build_workbook, workbook_bytes
from hrms.funding.models import EmployeeFundingAllocation
from hrms.grants.models import GrantItem
from hrms.grants.service import GrantService
from hrms.notifications import events
from hrms.notifications.service import notify_payroll_batch_finished
from hrms.payroll.calculator import (
    BENEFIT_DEFAULTS,
    BenefitRates,
    PayrollCalculation,
    apply_totals,
    calculate_allocation_payroll,
    month_bounds,
)
from hrms.payroll.models import BenefitSetting, BulkPayrollBatch, InterOrganizationAdvance, Payroll
from hrms.payroll.schemas import (
    AdvanceUpdate,
    BenefitSettingCreate,
    BenefitSettingUpdate,
    BulkPayrollFilters,
    BulkPayrollRequest,
    PayrollCalculateRequest,
    PayrollCreate,
    PayrollUpdate,
)
from hrms.tax.service import TaxCalculationService

logger = logging.getLogger(__name__)

_PAYROLL_FIELDS = [
    "employment_id", "employee_funding_allocation_id", "pay_period_date",
    "gross_salary_by_fte", "salary_bonus", "tax", "net_salary", "total_income", "notes",
]
_ADVANCE_FIELDS = ["from_organization", "to_organization", "amount", "advance_date", "settlement_date", "notes"]
_BENEFIT_FIELDS = ["setting_key", "setting_value", "setting_type", "is_active"]


def period_end(pay_date: date) -> date:
    return month_bounds(pay_date)[1]


def parse_pay_period(pay_period: str) -> date:
    """``YYYY-MM`` → last day of that month."""
    year, month = (int(p) for p in pay_period.split("-"))
    return period_end(date(year, month, 1))


def _allocation_label(allocation: EmployeeFundingAllocation) -> str:
    item = allocation.grant_item
    return f"{item.grant.code} / {item.grant_position} ({allocation.fte_percent}%)"


def _needs_advance(employee: Employee, allocation: EmployeeFundingAllocation) -> bool:
    return allocation.grant_item.grant.organization != employee.organization


# ═════════════════════════════════════════════════════════════════════
# PayrollService
# ═════════════════════════════════════════════════════════════════════


class PayrollService:
    """Calculation and persistence of monthly payrolls."""

    # ── Inputs ──────────────────────────────────────────────────────

    @staticmethod
    async def load_rates(db: AsyncSession) -> BenefitRates:
        result = await db.execute(select(BenefitSetting).where(BenefitSetting.is_active.is_(True)))
        return BenefitRates({s.setting_key: s.setting_value for s in result.scalars().all()})

    @staticmethod
    async def _load_employment(db: AsyncSession, employment_id: uuid.UUID) -> Employment:
        result = await db.execute(
            select(Employment)
            .options(selectinload(Employment.employee))
            .where(Employment.id == employment_id)
        )
        employment = result.scalar_one_or_none()
        if employment is None:
            raise NotFoundException("Employment", str(employment_id))
        return employment

    @staticmethod
    async def allocations_for_period(
        db: AsyncSession,
        employment_id: uuid.UUID,
        pay_date: date,
    ) -> list[EmployeeFundingAllocation]:
        """Allocations in force on *pay_date*: started, not yet ended, not inactive."""
        result = await db.execute(
            select(EmployeeFundingAllocation)
            .options(selectinload(EmployeeFundingAllocation.grant_item).selectinload(GrantItem.grant))
            .where(
                EmployeeFundingAllocation.employment_id == employment_id,
                EmployeeFundingAllocation.start_date <= pay_date,
                (EmployeeFundingAllocation.end_date.is_(None)) | (EmployeeFundingAllocation.end_date >= pay_date),
                EmployeeFundingAllocation.status != AllocationStatus.inactive,
            )
            .order_by(EmployeeFundingAllocation.start_date, EmployeeFundingAllocation.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _existing_allocation_ids(
        db: AsyncSession,
        allocation_ids: list[uuid.UUID],
        pay_date: date,
    ) -> set[uuid.UUID]:
        if not allocation_ids:
            return set()
        result = await db.execute(
            select(Payroll.employee_funding_allocation_id).where(
                Payroll.employee_funding_allocation_id.in_(allocation_ids),
                Payroll.pay_period_date == pay_date,
            )
        )
        return set(result.scalars().all())

    # ── Calculation ─────────────────────────────────────────────────

    @staticmethod
    async def calculate(db: AsyncSession, data: PayrollCalculateRequest) -> dict[str, Any]:
        """Preview the payroll of an employment for a month; nothing is written."""
        pay_date = period_end(data.pay_period_date)
        employment = await PayrollService._load_employment(db, data.employment_id)
        allocations = await PayrollService.allocations_for_period(db, employment.id, pay_date)
        if not allocations:
            raise ValidationException(
                {"employment_id": ["Employment has no active funding allocation on the pay date."]}
            )
        rates = await PayrollService.load_rates(db)
        tax_config = await TaxCalculationService.load_config(db, pay_date.year)
        employee = employment.employee

        rows = []
        for allocation in allocations:
            calc = calculate_allocation_payroll(
                employee, employment, allocation, pay_date, rates=rates, tax_config=tax_config,
            )
            rows.append({
                **calc.model_dump(),
                "grant_code": allocation.grant_item.grant.code,
                "grant_organization": allocation.grant_item.grant.organization,
                "needs_advance": _needs_advance(employee, allocation),
            })

        return {
            "employment_id": employment.id,
            "employee_id": employee.id,
            "staff_id": employee.staff_id,
            "employee_name": employee.full_name,
            "organization": employee.organization,
            "pay_period_date": pay_date,
            "allocations": rows,
            "total_gross_by_fte": round_money(sum((r["gross_salary_by_fte"] for r in rows), ZERO)),
            "total_net_salary": round_money(sum((r["net_salary"] for r in rows), ZERO)),
        }

    # ── Persistence ─────────────────────────────────────────────────

    @staticmethod
    async def _persist(
        db: AsyncSession,
        employment: Employment,
        calc: PayrollCalculation,
        *,
        notes: Optional[str],
        actor_id: Optional[uuid.UUID],
    ) -> Payroll:
        payroll = Payroll(
            employment_id=employment.id,
            employee_funding_allocation_id=calc.allocation_id,
            notes=notes,
            created_by=actor_id,
            updated_by=actor_id,
            **calc.payroll_values(),
        )
        db.add(payroll)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="payroll",
            entity_id=payroll.id,
            actor_id=actor_id,
            new_values=snapshot(payroll, _PAYROLL_FIELDS),
        )
        return payroll

    @staticmethod
    async def create_advance_if_needed(
        db: AsyncSession,
        employee: Employee,
        allocation: EmployeeFundingAllocation,
        payroll: Payroll,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Optional[InterOrganizationAdvance]:
        grant = allocation.grant_item.grant
        if grant.organization == employee.organization:
            return None

        hub = await GrantService.hub_grant_for(db, grant.organization)
        if hub is None:
            logger.error(
                "No hub grant for %s; advance skipped for payroll %s",
                grant.organization.value, payroll.id,
            )
            return None

        advance = InterOrganizationAdvance(
            payroll_id=payroll.id,
            from_organization=grant.organization,
            to_organization=employee.organization,
            via_grant_id=hub.id,
            amount=payroll.net_salary,
            advance_date=payroll.pay_period_date,
            notes=f"Hub grant advance: {grant.code} → {hub.code} for {employee.staff_id}",
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(advance)
        await db.flush()
        logger.info(
            "Advance %s: %s → %s amount=%s payroll=%s",
            advance.id, grant.organization.value, employee.organization.value, advance.amount, payroll.id,
        )
        return advance

    @staticmethod
    async def create_for_employment(
        db: AsyncSession,
        data: PayrollCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[Payroll], list[InterOrganizationAdvance]]:
        """Write one payroll per allocation in force, plus any advances, in the caller's transaction."""
        pay_date = period_end(data.pay_period_date)
        employment = await PayrollService._load_employment(db, data.employment_id)
        allocations = await PayrollService.allocations_for_period(db, employment.id, pay_date)
        if not allocations:
            raise ValidationException(
                {"employment_id": ["Employment has no active funding allocation on the pay date."]}
            )
        if await PayrollService._existing_allocation_ids(db, [a.id for a in allocations], pay_date):
            raise ConflictError("pay_period_date", pay_date.isoformat())

        rates = await PayrollService.load_rates(db)
        tax_config = await TaxCalculationService.load_config(db, pay_date.year)
        employee = employment.employee

        payrolls: list[Payroll] = []
        advances: list[InterOrganizationAdvance] = []
        for allocation in allocations:
            calc = calculate_allocation_payroll(
                employee, employment, allocation, pay_date, rates=rates, tax_config=tax_config,
            )
            payroll = await PayrollService._persist(db, employment, calc, notes=data.notes, actor_id=actor_id)
            payrolls.append(payroll)
            advance = await PayrollService.create_advance_if_needed(
                db, employee, allocation, payroll, actor_id=actor_id,
            )
            if advance is not None:
                advances.append(advance)

        logger.info(
            "Created %d payroll(s) for employment %s period %s",
            len(payrolls), employment.id, pay_date.isoformat(),
        )
        return payrolls, advances

    # ── CRUD ────────────────────────────────────────────────────────

    @staticmethod
    async def list_payrolls(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        employment_id: Optional[uuid.UUID] = None,
        organization: Optional[Organization] = None,
        department_id: Optional[uuid.UUID] = None,
        period_from: Optional[date] = None,
        period_to: Optional[date] = None,
    ) -> PaginatedResponse:
        query = select(Payroll).order_by(Payroll.pay_period_date.desc(), Payroll.created_at.desc())
        if employment_id is not None:
            query = query.where(Payroll.employment_id == employment_id)
        # Employment-level filters as subqueries so the count query keeps a single FROM
        if employee_id is not None:
            query = query.where(
                Payroll.employment_id.in_(select(Employment.id).where(Employment.employee_id == employee_id))
            )
        if department_id is not None:
            query = query.where(
                Payroll.employment_id.in_(select(Employment.id).where(Employment.department_id == department_id))
            )
        if organization is not None:
            query = query.where(
                Payroll.employment_id.in_(
                    select(Employment.id)
                    .join(Employee, Employee.id == Employment.employee_id)
                    .where(Employee.organization == organization)
                )
            )
        if period_from is not None:
            query = query.where(Payroll.pay_period_date >= period_from)
        if period_to is not None:
            query = query.where(Payroll.pay_period_date <= period_to)
        return await paginate(db, query, pagination, model=Payroll)

    @staticmethod
    async def get_payroll(db: AsyncSession, payroll_id: uuid.UUID) -> Payroll:
        payroll = await db.get(Payroll, payroll_id)
        if payroll is None:
            raise NotFoundException("Payroll", str(payroll_id))
        return payroll

    @staticmethod
    async def advances_for(db: AsyncSession, payroll_id: uuid.UUID) -> list[InterOrganizationAdvance]:
        result = await db.execute(
            select(InterOrganizationAdvance).where(InterOrganizationAdvance.payroll_id == payroll_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def update_payroll(
        db: AsyncSession,
        payroll_id: uuid.UUID,
        data: PayrollUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Payroll:
        payroll = await PayrollService.get_payroll(db, payroll_id)
        old = snapshot(payroll, _PAYROLL_FIELDS)
        updates = data.model_dump(exclude_unset=True)
        if "notes" in updates:
            payroll.notes = updates["notes"]
        if updates.get("salary_bonus") is not None:
            payroll.salary_bonus = round_money(updates["salary_bonus"])
        apply_totals(payroll)
        payroll.updated_by = actor_id
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="payroll",
            entity_id=payroll.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(payroll, _PAYROLL_FIELDS),
        )
        return payroll

    @staticmethod
    async def delete_payroll(
        db: AsyncSession,
        payroll_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        result = await db.execute(
            select(Payroll).options(selectinload(Payroll.advances)).where(Payroll.id == payroll_id)
        )
        payroll = result.scalar_one_or_none()
        if payroll is None:
            raise NotFoundException("Payroll", str(payroll_id))
        old = snapshot(payroll, _PAYROLL_FIELDS)
        await db.delete(payroll)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="payroll",
            entity_id=payroll_id,
            actor_id=actor_id,
            old_values=old,
        )

    @staticmethod
    async def statistics(
        db: AsyncSession,
        *,
        period_from: Optional[date] = None,
        period_to: Optional[date] = None,
    ) -> dict[str, Any]:
        """Counts and sums over a pay period range, overall and per employee organization."""
        columns = (
            func.count(Payroll.id),
            func.count(func.distinct(Payroll.employment_id)),
            func.coalesce(func.sum(Payroll.gross_salary_by_fte), 0),
            func.coalesce(func.sum(Payroll.net_salary), 0),
            func.coalesce(func.sum(Payroll.tax), 0),
            func.coalesce(func.sum(Payroll.employee_social_security + Payroll.employer_social_security), 0),
            func.coalesce(func.sum(Payroll.pvd + Payroll.saving_fund), 0),
        )
        conditions = []
        if period_from is not None:
            conditions.append(Payroll.pay_period_date >= period_from)
        if period_to is not None:
            conditions.append(Payroll.pay_period_date <= period_to)

        def _row(values) -> dict[str, Any]:
            count, employees, gross, net, tax, ss, funds = values
            return {
                "payroll_count": count,
                "employment_count": employees,
                "total_gross": round_money(gross),
                "total_net": round_money(net),
                "total_tax": round_money(tax),
                "total_social_security": round_money(ss),
                "total_pvd_saving_fund": round_money(funds),
            }

        overall = (await db.execute(select(*columns).where(*conditions))).one()
        by_org = await db.execute(
            select(Employee.organization, *columns)
            .select_from(Payroll)
            .join(Employment, Employment.id == Payroll.employment_id)
            .join(Employee, Employee.id == Employment.employee_id)
            .where(*conditions)
            .group_by(Employee.organization)
        )
        return {
            "period_from": period_from,
            "period_to": period_to,
            **_row(overall),
            "by_organization": {org.value: _row(rest) for org, *rest in by_org.all()},
        }


# ═════════════════════════════════════════════════════════════════════
# BulkPayrollService
# ═════════════════════════════════════════════════════════════════════


class BulkPayrollService:
    """Payroll for many employments at once, processed in the background."""

    @staticmethod
    async def employments_for(
        db: AsyncSession,
        filters: BulkPayrollFilters,
        pay_date: date,
    ) -> list[Employment]:
        first, last = month_bounds(pay_date)
        query = (
            select(Employment)
            .join(Employee, Employee.id == Employment.employee_id)
            .options(selectinload(Employment.employee))
            .where(
                Employment.is_active.is_(True),
                Employee.is_active.is_(True),
                Employment.start_date <= last,
                (Employment.end_date.is_(None)) | (Employment.end_date >= first),
            )
            .order_by(Employee.staff_id)
        )
        if filters.organizations:
            query = query.where(Employee.organization.in_(filters.organizations))
        if filters.department_ids:
            query = query.where(Employment.department_id.in_(filters.department_ids))
        if filters.employment_types:
            query = query.where(Employment.employment_type.in_(filters.employment_types))
        if filters.grant_ids:
            funded = (
                select(EmployeeFundingAllocation.employment_id)
                .join(GrantItem, GrantItem.id == EmployeeFundingAllocation.grant_item_id)
                .where(GrantItem.grant_id.in_(filters.grant_ids))
            )
            query = query.where(Employment.id.in_(funded))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def preview(db: AsyncSession, data: BulkPayrollRequest) -> dict[str, Any]:
        """Dry run over the filtered employments: what a batch would create."""
        pay_date = parse_pay_period(data.pay_period)
        employments = await BulkPayrollService.employments_for(db, data.filters, pay_date)
        rates = await PayrollService.load_rates(db)
        tax_config = await TaxCalculationService.load_config(db, pay_date.year)

        employees: list[dict[str, Any]] = []
        warnings: list[str] = []
        total_payrolls = already_processed = advances_needed = 0
        total_gross = total_net = ZERO
        for employment in employments:
            employee = employment.employee
            allocations = await PayrollService.allocations_for_period(db, employment.id, pay_date)
            if not allocations:
                warnings.append(f"{employee.full_name} ({employee.staff_id}) has no active funding allocation.")
                continue
            existing = await PayrollService._existing_allocation_ids(db, [a.id for a in allocations], pay_date)
            rows = []
            for allocation in allocations:
                if allocation.id in existing:
                    already_processed += 1
                    continue
                calc = calculate_allocation_payroll(
                    employee, employment, allocation, pay_date, rates=rates, tax_config=tax_config,
                )
                needs_advance = _needs_advance(employee, allocation)
                advances_needed += int(needs_advance)
                total_payrolls += 1
                total_gross += calc.gross_salary_by_fte
                total_net += calc.net_salary
                rows.append({
                    "allocation_id": allocation.id,
                    "allocation": _allocation_label(allocation),
                    "fte": calc.fte,
                    "gross_salary_by_fte": calc.gross_salary_by_fte,
                    "total_deduction": calc.total_deduction,
                    "net_salary": calc.net_salary,
                    "needs_advance": needs_advance,
                })
            employees.append({
                "employment_id": employment.id,
                "staff_id": employee.staff_id,
                "name": employee.full_name,
                "organization": employee.organization,
                "allocations": rows,
            })

        return {
            "pay_period": data.pay_period,
            "filters": data.filters.model_dump(mode="json"),
            "summary": {
                "total_employees": len(employees),
                "total_payrolls": total_payrolls,
                "already_processed": already_processed,
                "advances_needed": advances_needed,
                "total_gross_salary": round_money(total_gross),
                "total_net_salary": round_money(total_net),
            },
            "warnings": warnings,
            "employees": employees,
        }

    @staticmethod
    async def create_batch(
        db: AsyncSession,
        data: BulkPayrollRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BulkPayrollBatch:
        batch = BulkPayrollBatch(
            pay_period=data.pay_period,
            filters=data.filters.model_dump(mode="json"),
            status=BatchStatus.pending,
            total_employees=0,
            total_payrolls=0,
            processed_payrolls=0,
            successful_payrolls=0,
            failed_payrolls=0,
            advances_created=0,
            errors=[],
            created_by=actor_id,
        )
        db.add(batch)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="bulk_payroll_batch",
            entity_id=batch.id,
            actor_id=actor_id,
            new_values={"pay_period": data.pay_period, "filters": batch.filters},
        )
        logger.info("Bulk payroll batch %s queued for %s", batch.id, data.pay_period)
        return batch

    @staticmethod
    async def get_batch(db: AsyncSession, batch_id: uuid.UUID) -> BulkPayrollBatch:
        batch = await db.get(BulkPayrollBatch, batch_id)
        if batch is None:
            raise NotFoundException("BulkPayrollBatch", str(batch_id))
        return batch

    @staticmethod
    async def errors_report(db: AsyncSession, batch_id: uuid.UUID) -> tuple[str, bytes]:
        """Excel workbook listing the failed allocations of a batch."""
        batch = await BulkPayrollService.get_batch(db, batch_id)
        if not batch.errors:
            raise BusinessRuleException("This batch has no errors to report.")
        wb = build_workbook(
            "Errors",
            ["Employment ID", "Employee", "Allocation", "Error"],
            [
                (e.get("employment_id", "N/A"), e.get("employee", "Unknown"), e.get("allocation", "N/A"), e.get("error"))
                for e in batch.errors
            ],
        )
        return f"bulk_payroll_errors_{batch.pay_period}_{batch.id}.xlsx", workbook_bytes(wb)

    # ── Background processing ───────────────────────────────────────

    @staticmethod
    async def process_batch(
        batch_id: uuid.UUID,
        session_factory: Optional[async_sessionmaker] = None,
    ) -> None:
        """Run a queued batch in its own session.

        Each allocation is written inside a savepoint; a failure is recorded
        on the batch and processing moves on. Progress is committed and
        published after every allocation.
        """
        factory = session_factory or async_session_factory
        async with factory() as db:
            batch = await db.get(BulkPayrollBatch, batch_id)
            if batch is None:
                logger.error("Bulk payroll batch %s not found", batch_id)
                return
            batch.status = BatchStatus.processing
            await db.commit()
            await events.publish_payroll_progress(batch)

            try:
                await BulkPayrollService._run(db, batch)
            except Exception as exc:
                await db.rollback()
                logger.exception("Bulk payroll batch %s failed", batch_id)
                batch = await db.get(BulkPayrollBatch, batch_id)
                batch.status = BatchStatus.failed
                batch.completed_at = datetime.now(timezone.utc)
                batch.errors = [*(batch.errors or []), {"error": f"Batch aborted: {exc}"}]
                await notify_payroll_batch_finished(db, batch)
                await db.commit()
                await events.publish_payroll_progress(batch)
                raise

    @staticmethod
    async def _run(db: AsyncSession, batch: BulkPayrollBatch) -> None:
        pay_date = parse_pay_period(batch.pay_period)
        filters = BulkPayrollFilters.model_validate(batch.filters or {})
        employments = await BulkPayrollService.employments_for(db, filters, pay_date)

        work: list[tuple[Employment, list[EmployeeFundingAllocation]]] = []
        for employment in employments:
            allocations = await PayrollService.allocations_for_period(db, employment.id, pay_date)
            if allocations:
                work.append((employment, allocations))

        batch.total_employees = len(work)
        batch.total_payrolls = sum(len(allocations) for _, allocations in work)
        await db.commit()

        rates = await PayrollService.load_rates(db)
        tax_config = await TaxCalculationService.load_config(db, pay_date.year)
        errors: list[dict[str, Any]] = list(batch.errors or [])
        skipped = 0
        total_gross = total_net = ZERO
        actor_id = batch.created_by

        for employment, allocations in work:
            employee = employment.employee
            existing = await PayrollService._existing_allocation_ids(db, [a.id for a in allocations], pay_date)
            for allocation in allocations:
                batch.current_employee = f"{employee.full_name} ({employee.staff_id})"
                batch.current_allocation = _allocation_label(allocation)
                if allocation.id in existing:
                    skipped += 1
                else:
                    try:
                        async with db.begin_nested():
                            calc = calculate_allocation_payroll(
                                employee, employment, allocation, pay_date, rates=rates, tax_config=tax_config,
                            )
                            payroll = await PayrollService._persist(
                                db, employment, calc, notes=f"Bulk payroll {batch.pay_period}", actor_id=actor_id,
                            )
                            advance = await PayrollService.create_advance_if_needed(
                                db, employee, allocation, payroll, actor_id=actor_id,
                            )
                    except Exception as exc:
                        logger.warning(
                            "Batch %s: payroll failed for employment %s allocation %s: %s",
                            batch.id, employment.id, allocation.id, exc,
                        )
                        batch.failed_payrolls += 1
                        errors.append({
                            "employment_id": str(employment.id),
                            "employee": batch.current_employee,
                            "allocation": batch.current_allocation,
                            "error": str(exc),
                        })
                        batch.errors = list(errors)
                    else:
                        batch.successful_payrolls += 1
                        batch.advances_created += int(advance is not None)
                        total_gross += calc.gross_salary_by_fte
                        total_net += calc.net_salary

                batch.processed_payrolls += 1
                await db.commit()
                await events.publish_payroll_progress(batch)

        batch.status = BatchStatus.completed
        batch.completed_at = datetime.now(timezone.utc)
        batch.current_employee = None
        batch.current_allocation = None
        batch.summary = {
            "skipped_existing": skipped,
            "total_gross_salary": str(round_money(total_gross)),
            "total_net_salary": str(round_money(total_net)),
        }
        await notify_payroll_batch_finished(db, batch)
        await db.commit()
        await events.publish_payroll_progress(batch)
        logger.info(
            "Bulk payroll batch %s completed: %d ok, %d failed, %d skipped",
            batch.id, batch.successful_payrolls, batch.failed_payrolls, skipped,
        )


# ═════════════════════════════════════════════════════════════════════
# InterOrganizationAdvanceService
# ═════════════════════════════════════════════════════════════════════


class InterOrganizationAdvanceService:

    @staticmethod
    async def list_advances(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        organization: Optional[Organization] = None,
        is_settled: Optional[bool] = None,
        payroll_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = select(InterOrganizationAdvance).order_by(InterOrganizationAdvance.advance_date.desc())
        if organization is not None:
            query = query.where(
                (InterOrganizationAdvance.from_organization == organization)
                | (InterOrganizationAdvance.to_organization == organization)
            )
        if is_settled is True:
            query = query.where(InterOrganizationAdvance.settlement_date.is_not(None))
        elif is_settled is False:
            query = query.where(InterOrganizationAdvance.settlement_date.is_(None))
        if payroll_id is not None:
            query = query.where(InterOrganizationAdvance.payroll_id == payroll_id)
        return await paginate(db, query, pagination, model=InterOrganizationAdvance)

    @staticmethod
    async def get_advance(db: AsyncSession, advance_id: uuid.UUID) -> InterOrganizationAdvance:
        advance = await db.get(InterOrganizationAdvance, advance_id)
        if advance is None:
            raise NotFoundException("InterOrganizationAdvance", str(advance_id))
        return advance

    @staticmethod
    async def update_advance(
        db: AsyncSession,
        advance_id: uuid.UUID,
        data: AdvanceUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> InterOrganizationAdvance:
        advance = await InterOrganizationAdvanceService.get_advance(db, advance_id)
        updates = data.model_dump(exclude_unset=True)
        settlement = updates.get("settlement_date")
        if settlement is not None and settlement < advance.advance_date:
            raise ValidationException(
                {"settlement_date": ["Settlement date cannot be before the advance date."]}
            )
        old = snapshot(advance, _ADVANCE_FIELDS)
        for field, value in updates.items():
            setattr(advance, field, value)
        advance.updated_by = actor_id
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="inter_organization_advance",
            entity_id=advance.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(advance, _ADVANCE_FIELDS),
        )
        return advance


# ═════════════════════════════════════════════════════════════════════
# BenefitSettingService
# ═════════════════════════════════════════════════════════════════════


class BenefitSettingService:

    @staticmethod
    async def list_settings(db: AsyncSession, *, is_active: Optional[bool] = None) -> list[BenefitSetting]:
        query = select(BenefitSetting).order_by(BenefitSetting.setting_key)
        if is_active is not None:
            query = query.where(BenefitSetting.is_active.is_(is_active))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_setting(db: AsyncSession, setting_id: uuid.UUID) -> BenefitSetting:
        setting = await db.get(BenefitSetting, setting_id)
        if setting is None:
            raise NotFoundException("BenefitSetting", str(setting_id))
        return setting

    @staticmethod
    async def create_setting(
        db: AsyncSession,
        data: BenefitSettingCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BenefitSetting:
        existing = await db.execute(select(BenefitSetting.id).where(BenefitSetting.setting_key == data.setting_key))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("setting_key", data.setting_key)
        setting = BenefitSetting(**data.model_dump())
        db.add(setting)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="benefit_setting",
            entity_id=setting.id,
            actor_id=actor_id,
            new_values=snapshot(setting, _BENEFIT_FIELDS),
        )
        return setting

    @staticmethod
    async def update_setting(
        db: AsyncSession,
        setting_id: uuid.UUID,
        data: BenefitSettingUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BenefitSetting:
        setting = await BenefitSettingService.get_setting(db, setting_id)
        old = snapshot(setting, _BENEFIT_FIELDS)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "description":
                setattr(setting, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="benefit_setting",
            entity_id=setting.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(setting, _BENEFIT_FIELDS),
        )
        return setting

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        """Insert any missing default benefit setting; returns the number added."""
        result = await db.execute(select(BenefitSetting.setting_key))
        present = set(result.scalars().all())
        added = 0
        for key, (value, setting_type, description) in BENEFIT_DEFAULTS.items():
            if key in present:
                continue
            db.add(BenefitSetting(
                setting_key=key,
                setting_value=Decimal(value),
                setting_type=setting_type,
                description=description,
                is_active=True,
            ))
            added += 1
        await db.flush()
        return added
