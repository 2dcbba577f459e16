"""Employment service — employment terms, change history, probation dates."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot, to_audit_value
from hrms.common.constants import EmploymentType, ProbationStatus
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.config import settings
from hrms.core_hr.models import Department, Employee, Position, WorkLocation
from hrms.employment.history import record_history
from hrms.employment.models import Employment, EmploymentHistory, ProbationRecord
from hrms.employment.probation import ProbationService
from hrms.employment.schemas import (
    EmploymentCreate,
    EmploymentDetail,
    EmploymentResponse,
    EmploymentUpdate,
)
from hrms.funding.models import EmployeeFundingAllocation
from hrms.funding.schemas import FundingAllocationResponse
from hrms.funding.service import FundingAllocationService
from hrms.payroll.models import Payroll

logger = logging.getLogger(__name__)

_SALARY_FIELDS = ("probation_salary", "pass_probation_salary", "pass_probation_date")

_AUDIT_FIELDS = [
    "employee_id", "employment_type", "pay_method", "department_id", "position_id",
    "work_location_id", "start_date", "end_date", "pass_probation_date",
    "probation_salary", "pass_probation_salary", "probation_status",
    "health_welfare", "pvd", "saving_fund", "is_active",
]


def calculate_pass_probation_date(start_date: date, months: Optional[int] = None) -> date:
    """``start_date`` plus the probation length; the day is clamped to the month end."""
    return start_date + relativedelta(months=months if months is not None else settings.PROBATION_MONTHS)


class EmploymentService:
    """Async CRUD for employments."""

    # ── Queries ─────────────────────────────────────────────────────

    @staticmethod
    async def list_employments(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        employment_type: Optional[EmploymentType] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = select(Employment).order_by(Employment.start_date.desc())
        query = apply_filters(
            query,
            Employment,
            {
                "employee_id": employee_id,
                "department_id": department_id,
                "employment_type": employment_type,
                "is_active": is_active,
            },
        )
        return await paginate(db, query, pagination, model=Employment)

    @staticmethod
    async def get_employment(db: AsyncSession, employment_id: uuid.UUID) -> Employment:
        employment = await db.get(Employment, employment_id)
        if employment is None:
            raise NotFoundException("Employment", str(employment_id))
        return employment

    @staticmethod
    async def get_detail(db: AsyncSession, employment_id: uuid.UUID) -> EmploymentDetail:
        employment = await EmploymentService.get_employment(db, employment_id)
        allocations = await FundingAllocationService.list_for_employment(db, employment.id)
        # Built from the base schema so the lazy relationship is never touched
        base = EmploymentResponse.model_validate(employment)
        return EmploymentDetail(
            **base.model_dump(),
            funding_allocations=[FundingAllocationResponse.model_validate(a) for a in allocations],
        )

    @staticmethod
    async def list_history(db: AsyncSession, employment_id: uuid.UUID) -> list[EmploymentHistory]:
        await EmploymentService.get_employment(db, employment_id)
        result = await db.execute(
            select(EmploymentHistory)
            .where(EmploymentHistory.employment_id == employment_id)
            .order_by(EmploymentHistory.created_at, EmploymentHistory.change_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_probation_records(db: AsyncSession, employment_id: uuid.UUID) -> list[ProbationRecord]:
        await EmploymentService.get_employment(db, employment_id)
        result = await db.execute(
            select(ProbationRecord)
            .where(ProbationRecord.employment_id == employment_id)
            .order_by(ProbationRecord.extension_number, ProbationRecord.event_date, ProbationRecord.created_at)
        )
        return list(result.scalars().all())

    # ── Validation helpers ──────────────────────────────────────────

    @staticmethod
    async def _check_references(db: AsyncSession, values: dict[str, Any]) -> None:
        errors: dict[str, list[str]] = {}
        for field, model, label in (
            ("department_id", Department, "department"),
            ("position_id", Position, "position"),
            ("work_location_id", WorkLocation, "work location"),
        ):
            ref_id = values.get(field)
            if ref_id is not None and await db.get(model, ref_id) is None:
                errors[field] = [f"The selected {label} does not exist."]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: Optional[date],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(Employment).where(
            Employment.employee_id == employee_id,
            or_(Employment.end_date.is_(None), Employment.end_date >= start_date),
        )
        if end_date is not None:
            query = query.where(Employment.start_date <= end_date)
        if exclude_id is not None:
            query = query.where(Employment.id != exclude_id)
        if (await db.execute(query)).scalar_one():
            raise ValidationException({
                "start_date": ["The employee already has an employment overlapping this period."]
            })

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employment(
        db: AsyncSession,
        data: EmploymentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employment:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(data.employee_id))
        if not employee.is_active:
            raise BusinessRuleException("Cannot create an employment for an inactive employee.")

        values = data.model_dump()
        await EmploymentService._check_references(db, values)
        await EmploymentService._check_overlap(db, employee.id, data.start_date, data.end_date)

        if values["probation_salary"] is None:
            values["probation_salary"] = data.pass_probation_salary
        if values["pass_probation_date"] is None:
            values["pass_probation_date"] = calculate_pass_probation_date(data.start_date)

        employment = Employment(
            **values,
            probation_status=ProbationStatus.ongoing,
            is_active=True,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(employment)
        await db.flush()

        await ProbationService.create_initial_record(db, employment)
        await record_history(
            db,
            employment,
            reason="Initial employment",
            changes=snapshot(employment, _AUDIT_FIELDS),
            actor_id=actor_id,
            change_date=employment.start_date,
        )
        await create_audit_entry(
            db,
            action="create",
            entity_type="employment",
            entity_id=employment.id,
            actor_id=actor_id,
            new_values=snapshot(employment, _AUDIT_FIELDS),
        )
        logger.info("Employment %s created for employee %s", employment.id, employee.staff_id)
        return employment

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employment(
        db: AsyncSession,
        employment_id: uuid.UUID,
        data: EmploymentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employment:
        employment = await EmploymentService.get_employment(db, employment_id)
        changes = data.model_dump(exclude_unset=True)
        reason = changes.pop("change_reason", None) or "Employment updated"
        changes = {k: v for k, v in changes.items() if getattr(employment, k) != v}
        if not changes:
            return employment

        start = changes.get("start_date", employment.start_date)
        end = changes.get("end_date", employment.end_date)
        pass_date = changes.get("pass_probation_date", employment.pass_probation_date)
        errors: dict[str, list[str]] = {}
        if end is not None and end < start:
            errors["end_date"] = ["end_date must be on or after start_date."]
        if pass_date is not None and pass_date <= start:
            errors["pass_probation_date"] = ["pass_probation_date must be after start_date."]
        if changes.get("pvd", employment.pvd) and changes.get("saving_fund", employment.saving_fund):
            errors["saving_fund"] = ["pvd and saving_fund cannot both be enabled."]
        if errors:
            raise ValidationException(errors)

        await EmploymentService._check_references(db, changes)
        if "start_date" in changes or "end_date" in changes:
            await EmploymentService._check_overlap(db, employment.employee_id, start, end, exclude_id=employment.id)

        diff: dict[str, Any] = {}
        for field, value in changes.items():
            diff[field] = {"old": to_audit_value(getattr(employment, field)), "new": to_audit_value(value)}
            setattr(employment, field, value)
        employment.updated_by = actor_id
        await db.flush()

        if any(field in changes for field in _SALARY_FIELDS):
            await FundingAllocationService.recompute_amounts(db, employment)

        await record_history(db, employment, reason=reason, changes=diff, actor_id=actor_id)
        await create_audit_entry(
            db,
            action="update",
            entity_type="employment",
            entity_id=employment.id,
            actor_id=actor_id,
            old_values={k: v["old"] for k, v in diff.items()},
            new_values={k: v["new"] for k, v in diff.items()},
        )
        return employment

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_employment(
        db: AsyncSession,
        employment_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        employment = await EmploymentService.get_employment(db, employment_id)
        payrolls = (
            await db.execute(
                select(func.count()).select_from(Payroll).where(Payroll.employment_id == employment.id)
            )
        ).scalar_one()
        if payrolls:
            raise BusinessRuleException(
                f"Employment has {payrolls} payroll record(s) and cannot be deleted."
            )

        old = snapshot(employment, _AUDIT_FIELDS)
        for model in (EmployeeFundingAllocation, EmploymentHistory, ProbationRecord):
            await db.execute(delete(model).where(model.employment_id == employment.id))
        await db.delete(employment)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="employment",
            entity_id=employment_id,
            actor_id=actor_id,
            old_values=old,
        )
