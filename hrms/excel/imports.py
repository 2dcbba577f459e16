"""Spreadsheet imports for employees, employments, grants and funding allocations.

Every row (every staff member for funding allocations) is applied inside
its own savepoint: a row that fails validation or a business rule is rolled
back and reported as ``{"row": n, "errors": {...}}`` while the rest of the
file is still applied.
"""

from __future__ import annotations

import logging
import uuid
import zipfile
from collections.abc import Awaitable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.exceptions import AppException, BusinessRuleException, ValidationException
from hrms.core_hr.models import Department, Employee, Position, WorkLocation
from hrms.core_hr.schemas import EmployeeCreate, EmployeeUpdate
from hrms.core_hr.service import EmployeeService
from hrms.employment.models import Employment
from hrms.employment.schemas import EmploymentCreate, EmploymentUpdate
from hrms.employment.service import EmploymentService
from hrms.excel.templates import TEMPLATE_COLUMNS
from hrms.excel.workbook import read_rows
from hrms.funding.schemas import AllocationItemIn, FundingAllocationBatchCreate, FundingAllocationReplace
from hrms.funding.service import FundingAllocationService
from hrms.grants.models import Grant, GrantItem
from hrms.grants.schemas import GrantCreate, GrantItemCreate, GrantItemFields, GrantItemUpdate, GrantUpdate
from hrms.grants.service import GrantService
from hrms.notifications.service import notify_import_completed

logger = logging.getLogger(__name__)

IMPORT_KINDS = tuple(TEMPLATE_COLUMNS)

# Columns read as text even when Excel stores them as numbers
_TEXT_COLUMNS = {"staff_id", "phone", "grant_code", "budgetline_code", "grant_item_id", "initial"}


# ── Cell helpers ────────────────────────────────────────────────────

def _clean(record: dict[str, Any]) -> dict[str, Any]:
    """Drop empty cells, turn Excel datetimes into dates and numeric ids into text."""
    values: dict[str, Any] = {}
    for key, value in record.items():
        if value is None or (isinstance(value, str) and not value):
            continue
        if isinstance(value, datetime):
            value = value.date()
        if key in _TEXT_COLUMNS and isinstance(value, (int, float)):
            value = str(int(value)) if float(value).is_integer() else str(value)
        values[key] = value
    return values


def _pick(values: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {k: values[k] for k in keys if k in values}


def _fraction(value: Any) -> Any:
    """Level of effort given either as a 0-1 fraction or as a percentage."""
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return value
    return number / 100 if number > 1 else number


def _validation_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "row"
        errors.setdefault(field, []).append(err["msg"])
    return errors


def _app_errors(exc: AppException) -> dict[str, list[str]]:
    return exc.errors or {"row": [exc.detail]}


def _unchanged(obj: Any, values: dict[str, Any]) -> bool:
    return all(getattr(obj, field, None) == value for field, value in values.items())


def _new_summary() -> dict[str, Any]:
    return {"created": 0, "updated": 0, "skipped": 0, "errors": []}


async def _apply(
    db: AsyncSession,
    summary: dict[str, Any],
    row_numbers: list[int],
    work: Awaitable[str],
) -> None:
    """Run *work* in a savepoint and count its outcome, or record its errors against the rows."""
    try:
        async with db.begin_nested():
            outcome = await work
    except ValidationError as exc:
        errors = _validation_errors(exc)
    except AppException as exc:
        errors = _app_errors(exc)
    else:
        summary[outcome] += 1
        return
    for row in row_numbers:
        summary["errors"].append({"row": row, "errors": errors})


# ── Employees ───────────────────────────────────────────────────────

async def _employee_by_staff_id(db: AsyncSession, staff_id: str) -> Optional[Employee]:
    result = await db.execute(select(Employee).where(Employee.staff_id == staff_id))
    return result.scalars().first()


async def _upsert_employee(db: AsyncSession, values: dict[str, Any], actor_id: Optional[uuid.UUID]) -> str:
    existing = await _employee_by_staff_id(db, str(values.get("staff_id", "")))
    if existing is None:
        await EmployeeService.create_employee(db, EmployeeCreate(**values), actor_id=actor_id)
        return "created"
    data = EmployeeUpdate(**values)
    changes = data.model_dump(exclude_unset=True)
    if _unchanged(existing, changes):
        return "skipped"
    await EmployeeService.update_employee(db, existing.id, data, actor_id=actor_id)
    return "updated"


# ── Employments ─────────────────────────────────────────────────────

class _References:
    """Name lookups for departments, positions and work locations."""

    def __init__(self) -> None:
        self.departments: dict[str, uuid.UUID] = {}
        self.locations: dict[str, uuid.UUID] = {}
        self.positions: dict[tuple[Optional[uuid.UUID], str], uuid.UUID] = {}
        self.position_titles: dict[str, uuid.UUID] = {}

    @classmethod
    async def load(cls, db: AsyncSession) -> "_References":
        refs = cls()
        for dept_id, name in (await db.execute(select(Department.id, Department.name))).all():
            refs.departments[name.lower()] = dept_id
        for loc_id, name in (await db.execute(select(WorkLocation.id, WorkLocation.name))).all():
            refs.locations[name.lower()] = loc_id
        for pos_id, dept_id, title in (
            await db.execute(select(Position.id, Position.department_id, Position.title))
        ).all():
            refs.positions[(dept_id, title.lower())] = pos_id
            refs.position_titles.setdefault(title.lower(), pos_id)
        return refs

    def resolve(self, values: dict[str, Any]) -> dict[str, Any]:
        errors: dict[str, list[str]] = {}
        resolved: dict[str, Any] = {}
        if "department" in values:
            dept_id = self.departments.get(str(values["department"]).lower())
            if dept_id is None:
                errors["department"] = [f"Unknown department '{values['department']}'."]
            resolved["department_id"] = dept_id
        if "work_location" in values:
            loc_id = self.locations.get(str(values["work_location"]).lower())
            if loc_id is None:
                errors["work_location"] = [f"Unknown work location '{values['work_location']}'."]
            resolved["work_location_id"] = loc_id
        if "position" in values:
            title = str(values["position"]).lower()
            if resolved.get("department_id") is not None:
                pos_id = self.positions.get((resolved["department_id"], title))
            else:
                pos_id = self.position_titles.get(title)
            if pos_id is None:
                errors["position"] = [f"Unknown position '{values['position']}'."]
            resolved["position_id"] = pos_id
        if errors:
            raise ValidationException(errors)
        return resolved


_EMPLOYMENT_FIELDS = (
    "employment_type", "pay_method", "start_date", "end_date", "pass_probation_date",
    "probation_salary", "pass_probation_salary", "health_welfare", "pvd", "saving_fund",
)


async def _upsert_employment(
    db: AsyncSession,
    values: dict[str, Any],
    refs: _References,
    actor_id: Optional[uuid.UUID],
) -> str:
    staff_id = values.get("staff_id")
    employee = await _employee_by_staff_id(db, str(staff_id)) if staff_id else None
    if employee is None:
        raise ValidationException({"staff_id": [f"No employee with staff id '{staff_id}'."]})

    fields = _pick(values, *_EMPLOYMENT_FIELDS) | refs.resolve(values)
    start_date = fields.get("start_date")
    existing = None
    if isinstance(start_date, date):
        result = await db.execute(
            select(Employment).where(Employment.employee_id == employee.id, Employment.start_date == start_date)
        )
        existing = result.scalars().first()

    if existing is None:
        await EmploymentService.create_employment(
            db, EmploymentCreate(employee_id=employee.id, **fields), actor_id=actor_id,
        )
        return "created"
    data = EmploymentUpdate(**fields, change_reason="Spreadsheet import")
    if _unchanged(existing, data.model_dump(exclude_unset=True, exclude={"change_reason"})):
        return "skipped"
    await EmploymentService.update_employment(db, existing.id, data, actor_id=actor_id)
    return "updated"


# ── Grants ──────────────────────────────────────────────────────────

_GRANT_HEADER_COLUMNS = {
    "grant_code": "code",
    "grant_name": "name",
    "organization": "organization",
    "description": "description",
    "start_date": "start_date",
    "end_date": "end_date",
    "is_hub_grant": "is_hub_grant",
}
_ITEM_COLUMNS = (
    "grant_position", "budgetline_code", "grant_salary", "grant_benefit",
    "grant_level_of_effort", "grant_position_number",
)


async def _upsert_grant_row(
    db: AsyncSession,
    values: dict[str, Any],
    seen_codes: set[str],
    actor_id: Optional[uuid.UUID],
) -> str:
    """Create or update the row's grant (once per file) and upsert its item."""
    header = {target: values[source] for source, target in _GRANT_HEADER_COLUMNS.items() if source in values}
    code = header.get("code")
    if not code:
        raise ValidationException({"grant_code": ["grant_code is required."]})

    outcome = "skipped"
    grant = (await db.execute(select(Grant).where(Grant.code == code))).scalars().first()
    if grant is None:
        grant = await GrantService.create_grant(db, GrantCreate(**header), actor_id=actor_id)
        outcome = "created"
    elif code not in seen_codes:
        update = GrantUpdate(**{k: v for k, v in header.items() if k != "code"})
        if not _unchanged(grant, update.model_dump(exclude_unset=True)):
            await GrantService.update_grant(db, grant.id, update, actor_id=actor_id)
            outcome = "updated"
    seen_codes.add(code)

    if "grant_position" in values:
        item_values = _pick(values, *_ITEM_COLUMNS)
        if "grant_level_of_effort" in item_values:
            item_values["grant_level_of_effort"] = _fraction(item_values["grant_level_of_effort"])
        fields = GrantItemFields(**item_values)
        query = select(GrantItem).where(
            GrantItem.grant_id == grant.id,
            GrantItem.grant_position == fields.grant_position,
        )
        if fields.budgetline_code is None:
            query = query.where(GrantItem.budgetline_code.is_(None))
        else:
            query = query.where(GrantItem.budgetline_code == fields.budgetline_code)
        item = (await db.execute(query)).scalars().first()
        if item is None:
            await GrantService.create_item(
                db, GrantItemCreate(grant_id=grant.id, **fields.model_dump()), actor_id=actor_id,
            )
        else:
            changes = fields.model_dump(include=set(item_values))
            if _unchanged(item, changes):
                return outcome
            await GrantService.update_item(db, item.id, GrantItemUpdate(**changes), actor_id=actor_id)
        if outcome == "skipped":
            outcome = "updated"
    return outcome


# ── Funding allocations ─────────────────────────────────────────────

async def _apply_allocations(
    db: AsyncSession,
    staff_id: str,
    entries: list[dict[str, Any]],
    actor_id: Optional[uuid.UUID],
) -> str:
    """Give the staff member's current employment exactly the allocation set listed in the file."""
    employee = await _employee_by_staff_id(db, staff_id)
    if employee is None:
        raise ValidationException({"staff_id": [f"No employee with staff id '{staff_id}'."]})
    employment = await EmployeeService.current_employment(db, employee.id)
    if employment is None:
        raise BusinessRuleException(f"Staff {staff_id} has no active employment.")

    items = [AllocationItemIn(**_pick(e, "grant_item_id", "fte")) for e in entries]
    effective_date = next((e["effective_date"] for e in entries if "effective_date" in e), None)

    active = await FundingAllocationService.active_for_employment(db, employment.id)
    if not active:
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(employment_id=employment.id, effective_date=effective_date, allocations=items),
            actor_id=actor_id,
        )
        return "created"

    current = sorted((a.grant_item_id, a.fte_percent) for a in active)
    wanted = sorted((i.grant_item_id, Decimal(i.fte).quantize(Decimal("0.01"))) for i in items)
    if current == wanted:
        return "skipped"
    await FundingAllocationService.replace_for_employment(
        db,
        employment.id,
        FundingAllocationReplace(effective_date=effective_date, allocations=items),
        actor_id=actor_id,
    )
    return "updated"


# ── Entry point ─────────────────────────────────────────────────────

class ImportService:
    """Applies an uploaded workbook and notifies the uploader."""

    @staticmethod
    def parse(kind: str, content: bytes) -> list[tuple[int, dict[str, Any]]]:
        try:
            headers, rows = read_rows(content)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError) as exc:
            raise ValidationException({"file": [f"The file is not a readable .xlsx workbook ({exc})."]}) from exc
        required = [c.name for c in TEMPLATE_COLUMNS[kind] if c.required]
        missing = [name for name in required if name not in headers]
        if missing:
            raise ValidationException({"file": [f"Missing required column(s): {', '.join(missing)}."]})
        return rows

    @staticmethod
    async def run(
        db: AsyncSession,
        kind: str,
        content: bytes,
        *,
        actor_id: uuid.UUID,
    ) -> dict[str, Any]:
        rows = [(n, _clean(r)) for n, r in ImportService.parse(kind, content)]
        summary = _new_summary()

        if kind == "employees":
            for row_number, values in rows:
                await _apply(db, summary, [row_number], _upsert_employee(db, values, actor_id))

        elif kind == "employments":
            refs = await _References.load(db)
            for row_number, values in rows:
                await _apply(db, summary, [row_number], _upsert_employment(db, values, refs, actor_id))

        elif kind == "grants":
            seen_codes: set[str] = set()
            for row_number, values in rows:
                await _apply(db, summary, [row_number], _upsert_grant_row(db, values, seen_codes, actor_id))

        elif kind == "funding-allocations":
            groups: dict[str, list[tuple[int, dict[str, Any]]]] = {}
            for row_number, values in rows:
                staff_id = values.get("staff_id")
                if not staff_id:
                    summary["errors"].append({"row": row_number, "errors": {"staff_id": ["staff_id is required."]}})
                    continue
                groups.setdefault(str(staff_id), []).append((row_number, values))
            for staff_id, entries in groups.items():
                await _apply(
                    db,
                    summary,
                    [n for n, _ in entries],
                    _apply_allocations(db, staff_id, [v for _, v in entries], actor_id),
                )

        else:
            raise ValidationException({"type": [f"Unknown import type '{kind}'."]})

        summary["errors"].sort(key=lambda e: e["row"])
        logger.info(
            "%s import: %d created, %d updated, %d skipped, %d row error(s)",
            kind, summary["created"], summary["updated"], summary["skipped"], len(summary["errors"]),
        )
        await notify_import_completed(db, actor_id, kind.replace("-", "_"), summary)
        return summary
