"""Import templates: column definitions and workbook generation."""

from __future__ import annotations

from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import (
    EmployeeStatus,
    EmploymentType,
    GenderType,
    MaritalStatus,
    Organization,
    PayMethod,
)
from hrms.common.exceptions import NotFoundException
from hrms.excel.workbook import add_sheet, build_workbook, workbook_bytes
from hrms.grants.service import GrantService


class Column(NamedTuple):
    name: str
    required: bool
    hint: str


def _choices(enum_cls) -> str:
    return "One of: " + ", ".join(member.value for member in enum_cls)


_DATE = "Date (YYYY-MM-DD)"
_YES_NO = "yes / no"

TEMPLATE_COLUMNS: dict[str, list[Column]] = {
    "employees": [
        Column("staff_id", True, "Unique staff number; existing staff are updated"),
        Column("organization", True, _choices(Organization)),
        Column("initial", False, "Mr. / Ms. / Dr. ..."),
        Column("first_name", True, "Text"),
        Column("last_name", False, "Text"),
        Column("gender", False, _choices(GenderType)),
        Column("date_of_birth", False, _DATE),
        Column("status", False, _choices(EmployeeStatus)),
        Column("nationality", False, "Text"),
        Column("email", False, "Valid e-mail, unique"),
        Column("phone", False, "Text"),
        Column("marital_status", False, _choices(MaritalStatus)),
        Column("has_spouse", False, _YES_NO),
        Column("number_of_children", False, "Whole number 0-20"),
        Column("eligible_parents_count", False, "Whole number 0-4"),
    ],
    "employments": [
        Column("staff_id", True, "Existing staff number"),
        Column("employment_type", True, _choices(EmploymentType)),
        Column("pay_method", False, _choices(PayMethod)),
        Column("department", False, "Department name"),
        Column("position", False, "Position title within the department"),
        Column("work_location", False, "Work location name"),
        Column("start_date", True, _DATE + "; staff id + start date identify the employment"),
        Column("end_date", False, _DATE),
        Column("pass_probation_date", False, _DATE + "; defaults to start date + probation months"),
        Column("probation_salary", False, "Amount"),
        Column("pass_probation_salary", True, "Amount"),
        Column("health_welfare", False, _YES_NO),
        Column("pvd", False, _YES_NO),
        Column("saving_fund", False, _YES_NO),
    ],
    "grants": [
        Column("grant_code", True, "Grant code; rows sharing a code belong to one grant"),
        Column("grant_name", True, "Text"),
        Column("organization", True, _choices(Organization)),
        Column("description", False, "Text"),
        Column("start_date", False, _DATE),
        Column("end_date", False, _DATE),
        Column("is_hub_grant", False, _YES_NO + "; at most one hub grant per organization"),
        Column("grant_position", False, "Budgeted position; leave empty for a grant without items"),
        Column("budgetline_code", False, "Text"),
        Column("grant_salary", False, "Amount"),
        Column("grant_benefit", False, "Amount"),
        Column("grant_level_of_effort", False, "0-1 or percent (e.g. 75)"),
        Column("grant_position_number", False, "Number of slots, default 1"),
    ],
    "funding-allocations": [
        Column("staff_id", True, "Staff number with an active employment"),
        Column("grant_item_id", True, "Id from the Grant Items sheet"),
        Column("fte", True, "Percent; the rows of one staff member must total 100"),
        Column("effective_date", False, _DATE + "; defaults to today or the employment start"),
    ],
}


def template_filename(kind: str) -> str:
    return f"{kind.replace('-', '_')}_import_template.xlsx"


async def build_template(db: AsyncSession, kind: str) -> bytes:
    """Workbook with the import sheet, an instructions sheet and, for funding, the grant item list."""
    columns = TEMPLATE_COLUMNS.get(kind)
    if columns is None:
        raise NotFoundException("Template", kind)

    wb = build_workbook(
        kind.replace("-", " ").title(),
        [c.name for c in columns],
        [],
        notes=[("Required. " if c.required else "") + c.hint for c in columns],
    )
    add_sheet(
        wb,
        "Instructions",
        ["column", "required", "format"],
        [(c.name, "yes" if c.required else "no", c.hint) for c in columns],
    )
    if kind == "funding-allocations":
        rows = await GrantService.item_reference_rows(db)
        add_sheet(
            wb,
            "Grant Items",
            ["grant_item_id", "grant_code", "grant_position", "budgetline_code", "available"],
            [
                (r["grant_item_id"], r["grant_code"], r["grant_position"], r["budgetline_code"], r["available"])
                for r in rows
            ],
        )
    return workbook_bytes(wb)
