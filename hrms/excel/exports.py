"""Spreadsheet exports: employee list, grant item reference list, interview and leave reports."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import EmployeeStatus, LeaveStatus, Organization
from hrms.common.exceptions import ValidationException
from hrms.common.filters import apply_filters
from hrms.core_hr.models import Department, Employee, WorkLocation
from hrms.employment.models import Employment
from hrms.excel.workbook import build_workbook, workbook_bytes
from hrms.grants.service import GrantService
from hrms.leave.models import LeaveBalance, LeaveRequest, LeaveRequestItem, LeaveType
from hrms.recruitment.models import Interview

EMPLOYEE_EXPORT_HEADERS = [
    "staff_id", "organization", "initial", "first_name", "last_name", "gender",
    "date_of_birth", "status", "nationality", "email", "phone", "marital_status",
    "has_spouse", "number_of_children", "eligible_parents_count", "is_active",
]

GRANT_ITEM_HEADERS = [
    "grant_item_id", "grant_code", "grant_name", "organization", "grant_position",
    "budgetline_code", "grant_position_number", "available",
]


async def export_employees(
    db: AsyncSession,
    *,
    organization: Optional[Organization] = None,
    status: Optional[EmployeeStatus] = None,
) -> bytes:
    """Employees in import-template column order, so the file can be edited and re-uploaded."""
    query = select(Employee).order_by(Employee.staff_id)
    query = apply_filters(query, Employee, {"organization": organization, "status": status})
    employees = (await db.execute(query)).scalars().all()

    def _yes_no(value: bool) -> str:
        return "yes" if value else "no"

    rows = [
        (
            e.staff_id, e.organization, e.initial, e.first_name, e.last_name, e.gender,
            e.date_of_birth, e.status, e.nationality, e.email, e.phone, e.marital_status,
            _yes_no(e.has_spouse), e.number_of_children, e.eligible_parents_count, _yes_no(e.is_active),
        )
        for e in employees
    ]
    return workbook_bytes(build_workbook("Employees", EMPLOYEE_EXPORT_HEADERS, rows))


async def export_grant_items(db: AsyncSession) -> bytes:
    rows = [
        tuple(r[h] for h in GRANT_ITEM_HEADERS)
        for r in await GrantService.item_reference_rows(db)
    ]
    return workbook_bytes(build_workbook("Grant Items", GRANT_ITEM_HEADERS, rows))


# ── Reports ─────────────────────────────────────────────────────────

INTERVIEW_REPORT_HEADERS = [
    "Candidate Name", "Phone", "Position Applied", "Interview Date", "Start Time", "End Time",
    "Interview Mode", "Interviewer", "Status", "Hired Status", "Score", "Feedback", "Reference Info",
]


def _check_period(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationException({"end_date": ["end_date must be on or after start_date."]})


async def export_interview_report(db: AsyncSession, start_date: date, end_date: date) -> bytes:
    """Interviews held between the two dates (inclusive), earliest first."""
    _check_period(start_date, end_date)
    query = (
        select(Interview)
        .where(Interview.interview_date.between(start_date, end_date))
        .order_by(Interview.interview_date, Interview.start_time, Interview.candidate_name)
    )
    rows = [
        (
            i.candidate_name, i.phone, i.job_position, i.interview_date, i.start_time, i.end_time,
            i.interview_mode, i.interviewer_name, i.interview_status, i.hired_status, i.score,
            i.feedback, i.reference_info,
        )
        for i in (await db.execute(query)).scalars().all()
    ]
    return workbook_bytes(build_workbook("Interview Report", INTERVIEW_REPORT_HEADERS, rows))


async def export_leave_report(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    *,
    work_location_id: Optional[uuid.UUID] = None,
    department_id: Optional[uuid.UUID] = None,
) -> bytes:
    """Per employee and leave type: approved days starting in the period and days remaining.

    Remaining days come from the balance of the period's starting year; an
    employee without a balance shows the leave type's default entitlement.
    """
    _check_period(start_date, end_date)

    query = (
        select(Employee, Department.name, WorkLocation.name)
        .join(Employment, (Employment.employee_id == Employee.id) & Employment.is_active.is_(True))
        .outerjoin(Department, Department.id == Employment.department_id)
        .outerjoin(WorkLocation, WorkLocation.id == Employment.work_location_id)
        .order_by(Employee.staff_id, Employment.start_date.desc())
    )
    query = apply_filters(query, Employment, {
        "work_location_id": work_location_id,
        "department_id": department_id,
    })
    employees: dict[uuid.UUID, tuple[Employee, Optional[str], Optional[str]]] = {}
    for employee, department, location in (await db.execute(query)).all():
        employees.setdefault(employee.id, (employee, department, location))

    leave_types = (await db.execute(
        select(LeaveType).where(LeaveType.is_active.is_(True)).order_by(LeaveType.name)
    )).scalars().all()

    used: dict[tuple[uuid.UUID, uuid.UUID], Decimal] = {}
    remaining: dict[tuple[uuid.UUID, uuid.UUID], Decimal] = {}
    if employees:
        used_rows = await db.execute(
            select(LeaveRequest.employee_id, LeaveRequestItem.leave_type_id, func.sum(LeaveRequestItem.days))
            .join(LeaveRequestItem, LeaveRequestItem.leave_request_id == LeaveRequest.id)
            .where(
                LeaveRequest.employee_id.in_(list(employees)),
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date.between(start_date, end_date),
            )
            .group_by(LeaveRequest.employee_id, LeaveRequestItem.leave_type_id)
        )
        used = {(emp_id, type_id): Decimal(days) for emp_id, type_id, days in used_rows.all()}
        balances = (await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id.in_(list(employees)),
                LeaveBalance.year == start_date.year,
            )
        )).scalars().all()
        remaining = {(b.employee_id, b.leave_type_id): b.remaining_days for b in balances}

    headers = ["Staff ID", "Employee Name", "Organization", "Department", "Work Location"]
    for leave_type in leave_types:
        headers += [f"{leave_type.name} Used", f"{leave_type.name} Remaining"]

    rows = []
    for employee, department, location in employees.values():
        row: list = [employee.staff_id, employee.full_name, employee.organization, department, location]
        for leave_type in leave_types:
            key = (employee.id, leave_type.id)
            row += [used.get(key, Decimal("0")), remaining.get(key, leave_type.default_duration)]
        rows.append(row)
    return workbook_bytes(build_workbook("Leave Report", headers, rows))
