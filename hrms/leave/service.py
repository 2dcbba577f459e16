"""Leave service layer — working days, types, holidays, balances, requests, approvals.

Business logic:
  - Working days exclude Saturdays, Sundays and active holidays
  - A request carries one item per leave type; its total is the sum of items
  - Balances are charged per item, against the year of the request's start date
  - Entering ``approved`` checks and deducts; leaving it restores
  - A request becomes ``approved`` once both supervisor and HR site admin
    approve; any rejection declines it
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import LeaveApprovalType, LeaveStatus
from hrms.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.core_hr.service import EmployeeService
from hrms.employment.probation import local_today
from hrms.leave.models import Holiday, LeaveBalance, LeaveRequest, LeaveRequestItem, LeaveType
from hrms.leave.schemas import (
    HolidayCreate,
    HolidayResponse,
    LeaveApprovalRequest,
    LeaveBalanceSet,
    LeaveRequestCreate,
    LeaveRequestItemIn,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeUpdate,
    WorkingDaysResponse,
)
from hrms.notifications.service import notify_leave_decision, notify_leave_request

logger = logging.getLogger(__name__)

ZERO_DAYS = Decimal("0")

_REQUEST_FIELDS = [
    "employee_id", "start_date", "end_date", "total_days", "status",
    "supervisor_approved", "hr_site_admin_approved",
]
_ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)

# name -> (default_duration, requires_attachment, description)
DEFAULT_LEAVE_TYPES: dict[str, tuple[Decimal, bool, str]] = {
    "Annual Leave": (Decimal("26"), False, "Annual vacation"),
    "Unpaid Leave": (Decimal("0"), False, "Unpaid leave, up to 30 days"),
    "Traditional day-off": (Decimal("13"), False, "Traditional day-off; specify the day"),
    "Sick": (Decimal("30"), False, "Sick leave; state the illness"),
    "Maternity leave": (Decimal("98"), False, "Maternity or paternity leave"),
    "Compassionate": (Decimal("5"), False, "Death or severe illness of a close relative"),
    "Career development training": (Decimal("14"), False, "External training"),
    "Personal leave": (Decimal("3"), False, "Personal business; please specify"),
    "Military leave": (Decimal("60"), False, "Military service"),
    "Sterilization leave": (Decimal("0"), True, "Attach a medical certificate"),
    "Other": (Decimal("0"), False, "Other"),
}


def count_working_days(start: date, end: date, holidays: Iterable[date]) -> tuple[int, int, list[date]]:
    """``(working_days, weekend_days, excluded_dates)`` for *start*..*end* inclusive.

    A holiday falling on a weekend counts as a weekend day only.
    """
    holiday_set = set(holidays)
    working = weekend = 0
    excluded: list[date] = []
    current = start
    while current <= end:
        if current.weekday() >= 5:
            weekend += 1
            excluded.append(current)
        elif current in holiday_set:
            excluded.append(current)
        else:
            working += 1
        current += timedelta(days=1)
    return working, weekend, excluded


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: calendar, types, holidays, balances, requests."""

    # ─────────────────────────────────────────────────────────────────
    # Working days & holidays
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _holidays_between(db: AsyncSession, start: date, end: date) -> list[Holiday]:
        result = await db.execute(
            select(Holiday)
            .where(Holiday.is_active.is_(True), Holiday.date >= start, Holiday.date <= end)
            .order_by(Holiday.date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def working_days(db: AsyncSession, start: date, end: date) -> WorkingDaysResponse:
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        holidays = await LeaveService._holidays_between(db, start, end)
        working, weekend, excluded = count_working_days(start, end, [h.date for h in holidays])
        weekday_holidays = [h for h in holidays if h.date.weekday() < 5]
        return WorkingDaysResponse(
            start_date=start,
            end_date=end,
            calendar_days=(end - start).days + 1,
            working_days=working,
            weekend_days=weekend,
            holiday_days=len(weekday_holidays),
            excluded_dates=excluded,
            holidays=[HolidayResponse.model_validate(h) for h in holidays],
        )

    @staticmethod
    async def list_holidays(db: AsyncSession, *, year: Optional[int] = None) -> list[Holiday]:
        query = select(Holiday).order_by(Holiday.date)
        if year is not None:
            query = query.where(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def create_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Holiday:
        existing = await db.execute(select(Holiday.id).where(Holiday.date == data.date))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("date", data.date.isoformat())
        holiday = Holiday(**data.model_dump())
        db.add(holiday)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values={"name": holiday.name, "date": holiday.date.isoformat()},
        )
        return holiday

    @staticmethod
    async def delete_holiday(db: AsyncSession, holiday_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> None:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))
        old = {"name": holiday.name, "date": holiday.date.isoformat()}
        await db.delete(holiday)
        await db.flush()
        await create_audit_entry(
            db, action="delete", entity_type="holiday", entity_id=holiday_id, actor_id=actor_id, old_values=old,
        )

    # ─────────────────────────────────────────────────────────────────
    # Leave types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_types(db: AsyncSession, *, is_active: Optional[bool] = None) -> list[LeaveType]:
        query = select(LeaveType).order_by(LeaveType.name)
        if is_active is not None:
            query = query.where(LeaveType.is_active.is_(is_active))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _check_type_name(db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).scalars().first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveType:
        await LeaveService._check_type_name(db, data.name)
        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=snapshot(leave_type, ["name", "default_duration", "requires_attachment", "is_active"]),
        )
        return leave_type

    @staticmethod
    async def update_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveType:
        leave_type = await LeaveService.get_type(db, leave_type_id)
        fields = ["name", "default_duration", "requires_attachment", "is_active"]
        old = snapshot(leave_type, fields)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("name") and updates["name"] != leave_type.name:
            await LeaveService._check_type_name(db, updates["name"], exclude_id=leave_type.id)
        for field, value in updates.items():
            if value is not None or field == "description":
                setattr(leave_type, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(leave_type, fields),
        )
        return leave_type

    @staticmethod
    async def seed_default_types(db: AsyncSession) -> int:
        """Insert any missing default leave type; returns the number added."""
        present = {name.lower() for name in (await db.execute(select(LeaveType.name))).scalars().all()}
        added = 0
        for name, (duration, requires_attachment, description) in DEFAULT_LEAVE_TYPES.items():
            if name.lower() in present:
                continue
            db.add(LeaveType(
                name=name,
                default_duration=duration,
                requires_attachment=requires_attachment,
                description=description,
                is_active=True,
            ))
            added += 1
        await db.flush()
        return added

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = select(LeaveBalance).order_by(LeaveBalance.year.desc(), LeaveBalance.employee_id)
        if employee_id is not None:
            query = query.where(LeaveBalance.employee_id == employee_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        if leave_type_id is not None:
            query = query.where(LeaveBalance.leave_type_id == leave_type_id)
        return await paginate(db, query, pagination, model=LeaveBalance)

    @staticmethod
    async def _balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def set_balance(
        db: AsyncSession,
        data: LeaveBalanceSet,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> tuple[LeaveBalance, bool]:
        """Create the balance or overwrite its total; returns ``(balance, created)``."""
        await EmployeeService.get_employee_or_404(db, data.employee_id)
        await LeaveService.get_type(db, data.leave_type_id)
        balance = await LeaveService._balance(db, data.employee_id, data.leave_type_id, data.year)
        created = balance is None
        old = None if created else {"total_days": str(balance.total_days)}
        if created:
            balance = LeaveBalance(
                employee_id=data.employee_id,
                leave_type_id=data.leave_type_id,
                year=data.year,
                total_days=data.total_days,
                used_days=ZERO_DAYS,
            )
            db.add(balance)
        else:
            if data.total_days < Decimal(balance.used_days):
                raise ValidationException(
                    {"total_days": [f"Total cannot be below the {balance.used_days} day(s) already used."]}
                )
            balance.total_days = data.total_days
        await db.flush()
        await create_audit_entry(
            db,
            action="create" if created else "update",
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            old_values=old,
            new_values={"total_days": str(balance.total_days), "year": balance.year},
        )
        return balance, created

    @staticmethod
    async def initialize_balances(
        db: AsyncSession,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> dict[str, int]:
        """Give every active employee a balance of each active type at its default duration.

        Existing balances are left untouched.
        """
        employee_ids = (
            await db.execute(select(Employee.id).where(Employee.is_active.is_(True)))
        ).scalars().all()
        leave_types = await LeaveService.list_types(db, is_active=True)
        existing = {
            (e, t)
            for e, t in (
                await db.execute(
                    select(LeaveBalance.employee_id, LeaveBalance.leave_type_id).where(LeaveBalance.year == year)
                )
            ).all()
        }

        created = skipped = 0
        for employee_id in employee_ids:
            for leave_type in leave_types:
                if (employee_id, leave_type.id) in existing:
                    skipped += 1
                    continue
                db.add(LeaveBalance(
                    employee_id=employee_id,
                    leave_type_id=leave_type.id,
                    year=year,
                    total_days=leave_type.default_duration,
                    used_days=ZERO_DAYS,
                ))
                created += 1
        await db.flush()
        logger.info("Initialized %d leave balance(s) for %s, %d already present", created, year, skipped)
        return {
            "year": year,
            "employees": len(employee_ids),
            "leave_types": len(leave_types),
            "created": created,
            "skipped": skipped,
        }

    @staticmethod
    async def _deduct(db: AsyncSession, request: LeaveRequest, items: list[LeaveRequestItem]) -> None:
        """Charge each item against its balance; all-or-nothing."""
        year = request.start_date.year
        errors: dict[str, list[str]] = {}
        balances: list[tuple[LeaveBalance, Decimal]] = []
        for idx, item in enumerate(items):
            balance = await LeaveService._balance(db, request.employee_id, item.leave_type_id, year)
            days = Decimal(item.days)
            if balance is None:
                errors[f"items.{idx}.leave_type_id"] = [f"No leave balance for {year}."]
            elif balance.remaining_days < days:
                errors[f"items.{idx}.days"] = [
                    f"Insufficient balance: {balance.remaining_days} day(s) remaining, {days} requested."
                ]
            else:
                balances.append((balance, days))
        if errors:
            raise ValidationException(errors)
        for balance, days in balances:
            balance.used_days = Decimal(balance.used_days) + days

    @staticmethod
    async def _restore(db: AsyncSession, request: LeaveRequest, items: list[LeaveRequestItem]) -> None:
        year = request.start_date.year
        for item in items:
            balance = await LeaveService._balance(db, request.employee_id, item.leave_type_id, year)
            if balance is None:
                logger.warning(
                    "No %s balance to restore for leave request %s type %s", year, request.id, item.leave_type_id,
                )
                continue
            balance.used_days = max(Decimal(balance.used_days) - Decimal(item.days), ZERO_DAYS)

    # ─────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.items))
            .where(LeaveRequest.id == request_id)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return request

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.items))
            .order_by(LeaveRequest.start_date.desc())
        )
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if date_from is not None:
            query = query.where(LeaveRequest.end_date >= date_from)
        if date_to is not None:
            query = query.where(LeaveRequest.start_date <= date_to)
        if leave_type_id is not None:
            query = query.where(
                LeaveRequest.id.in_(
                    select(LeaveRequestItem.leave_request_id).where(LeaveRequestItem.leave_type_id == leave_type_id)
                )
            )
        return await paginate(db, query, pagination, model=LeaveRequest)

    @staticmethod
    async def _check_items(db: AsyncSession, items: list[LeaveRequestItemIn]) -> None:
        errors: dict[str, list[str]] = {}
        for idx, item in enumerate(items):
            leave_type = await db.get(LeaveType, item.leave_type_id)
            if leave_type is None or not leave_type.is_active:
                errors[f"items.{idx}.leave_type_id"] = ["Leave type does not exist or is inactive."]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(_ACTIVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).scalar_one():
            raise ValidationException(
                {"start_date": ["The employee already has a pending or approved leave overlapping these dates."]}
            )

    @staticmethod
    async def create_request(
        db: AsyncSession,
        data: LeaveRequestCreate,
        *,
        employee_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        if data.status not in _ACTIVE_STATUSES:
            raise ValidationException({"status": ["A new request must be pending or approved."]})
        await EmployeeService.get_employee_or_404(db, employee_id)
        await LeaveService._check_items(db, data.items)
        await LeaveService._check_overlap(db, employee_id, data.start_date, data.end_date)

        request = LeaveRequest(
            employee_id=employee_id,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=sum((i.days for i in data.items), ZERO_DAYS),
            reason=data.reason,
            status=data.status,
            attachment_notes=data.attachment_notes,
            supervisor_approved=False,
            hr_site_admin_approved=False,
            created_by=actor_id,
            updated_by=actor_id,
            items=[LeaveRequestItem(leave_type_id=i.leave_type_id, days=i.days) for i in data.items],
        )
        if request.status == LeaveStatus.approved:
            await LeaveService._deduct(db, request, request.items)
        db.add(request)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor_id,
            new_values=snapshot(request, _REQUEST_FIELDS),
        )

        if request.status == LeaveStatus.pending:
            supervisor_id = await EmployeeService.supervisor_of(db, employee_id)
            if supervisor_id is not None:
                await notify_leave_request(db, request, supervisor_id)
            else:
                logger.info("No supervisor found for employee %s; leave request %s not routed", employee_id, request.id)
        return await LeaveService.get_request(db, request.id)

    @staticmethod
    async def update_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        request = await LeaveService.get_request(db, request_id)
        old = snapshot(request, _REQUEST_FIELDS)
        updates = data.model_dump(exclude_unset=True)
        was_approved = request.status == LeaveStatus.approved

        start = updates.get("start_date") or request.start_date
        end = updates.get("end_date") or request.end_date
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        new_status = updates.get("status") or request.status
        dates_changed = (start, end) != (request.start_date, request.end_date)
        reactivated = request.status not in _ACTIVE_STATUSES
        if new_status in _ACTIVE_STATUSES and (dates_changed or reactivated):
            await LeaveService._check_overlap(db, request.employee_id, start, end, exclude_id=request.id)
        if data.items is not None:
            await LeaveService._check_items(db, data.items)

        # Restore against the old dates and items before anything changes
        if was_approved:
            await LeaveService._restore(db, request, request.items)

        request.start_date, request.end_date = start, end
        for field in ("reason", "attachment_notes"):
            if field in updates:
                setattr(request, field, updates[field])
        if data.items is not None:
            # Old items must be gone before re-inserting the same types
            request.items.clear()
            await db.flush()
            request.items.extend(LeaveRequestItem(leave_type_id=i.leave_type_id, days=i.days) for i in data.items)
            request.total_days = sum((i.days for i in data.items), ZERO_DAYS)
        request.status = new_status
        request.updated_by = actor_id

        if new_status == LeaveStatus.approved:
            await LeaveService._deduct(db, request, request.items)

        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(request, _REQUEST_FIELDS),
        )
        if new_status != old["status"] and new_status in (LeaveStatus.approved, LeaveStatus.declined):
            await notify_leave_decision(db, request)
        return await LeaveService.get_request(db, request.id)

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: LeaveApprovalRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        request = await LeaveService.get_request(db, request_id)
        if request.status != LeaveStatus.pending:
            raise BusinessRuleException(
                f"Only pending requests can be approved or rejected; this one is {request.status.value}."
            )
        old = snapshot(request, _REQUEST_FIELDS)
        today = local_today()

        if data.approval_type == LeaveApprovalType.supervisor:
            request.supervisor_approved = data.approved
            request.supervisor_approved_date = today
        else:
            request.hr_site_admin_approved = data.approved
            request.hr_site_admin_approved_date = today

        if not data.approved:
            request.status = LeaveStatus.declined
        elif request.supervisor_approved and request.hr_site_admin_approved:
            await LeaveService._deduct(db, request, request.items)
            request.status = LeaveStatus.approved
        request.updated_by = actor_id

        await db.flush()
        await create_audit_entry(
            db,
            action="approve" if data.approved else "reject",
            entity_type="leave_request",
            entity_id=request.id,
            actor_id=actor_id,
            old_values=old,
            new_values={**snapshot(request, _REQUEST_FIELDS), "approval_type": data.approval_type.value},
        )
        if request.status != LeaveStatus.pending:
            await notify_leave_decision(db, request)
        logger.info(
            "Leave request %s: %s %s -> %s",
            request.id, data.approval_type.value, "approved" if data.approved else "rejected", request.status.value,
        )
        return request

    @staticmethod
    async def delete_request(db: AsyncSession, request_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> None:
        request = await LeaveService.get_request(db, request_id)
        old = snapshot(request, _REQUEST_FIELDS)
        if request.status == LeaveStatus.approved:
            await LeaveService._restore(db, request, request.items)
        await db.delete(request)
        await db.flush()
        await create_audit_entry(
            db, action="delete", entity_type="leave_request", entity_id=request_id, actor_id=actor_id, old_values=old,
        )

    # ─────────────────────────────────────────────────────────────────
    # Statistics
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def statistics(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> dict[str, Any]:
        year = year or local_today().year
        first, last = date(year, 1, 1), date(year, 12, 31)
        conditions = [LeaveRequest.start_date >= first, LeaveRequest.start_date <= last]
        if employee_id is not None:
            conditions.append(LeaveRequest.employee_id == employee_id)

        by_status = await db.execute(
            select(LeaveRequest.status, func.count(), func.coalesce(func.sum(LeaveRequest.total_days), 0))
            .where(*conditions)
            .group_by(LeaveRequest.status)
        )
        status_rows = {s.value: {"count": c, "days": Decimal(d)} for s, c, d in by_status.all()}

        by_type = await db.execute(
            select(LeaveType.name, func.coalesce(func.sum(LeaveRequestItem.days), 0))
            .select_from(LeaveRequestItem)
            .join(LeaveRequest, LeaveRequest.id == LeaveRequestItem.leave_request_id)
            .join(LeaveType, LeaveType.id == LeaveRequestItem.leave_type_id)
            .where(*conditions, LeaveRequest.status == LeaveStatus.approved)
            .group_by(LeaveType.name)
        )

        return {
            "year": year,
            "total_requests": sum(r["count"] for r in status_rows.values()),
            "by_status": {
                s.value: status_rows.get(s.value, {"count": 0, "days": ZERO_DAYS}) for s in LeaveStatus
            },
            "approved_days_by_type": {name: Decimal(days) for name, days in by_type.all()},
        }
