"""Spreadsheet tests — workbook reading, templates, row-level imports, exports."""

from __future__ import annotations

import io
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook
from sqlalchemy import select

from hrms.common.constants import LeaveApprovalType, Organization
from hrms.common.exceptions import ValidationException
from hrms.core_hr.models import Employee
from hrms.excel.exports import export_interview_report, export_leave_report
from hrms.excel.imports import ImportService
from hrms.excel.templates import TEMPLATE_COLUMNS, build_template
from hrms.excel.workbook import XLSX_MEDIA_TYPE, read_rows, workbook_bytes
from hrms.funding.service import FundingAllocationService
from hrms.grants.models import Grant, GrantItem
from hrms.leave.schemas import LeaveApprovalRequest, LeaveBalanceSet, LeaveRequestCreate, LeaveRequestItemIn, LeaveTypeCreate
from hrms.leave.service import LeaveService
from hrms.notifications.models import Notification
from hrms.recruitment.schemas import InterviewCreate
from hrms.recruitment.service import InterviewService


def _xlsx(headers: list[str], *rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(list(row))
    return workbook_bytes(wb)


EMPLOYEE_HEADERS = ["Staff ID", "Organization", "First Name", "Last Name", "Has Spouse"]


# ═════════════════════════════════════════════════════════════════════
# WORKBOOK / TEMPLATES
# ═════════════════════════════════════════════════════════════════════


class TestWorkbook:

    def test_headers_normalised_and_blank_rows_dropped(self):
        content = _xlsx(
            EMPLOYEE_HEADERS,
            ["0501", "SMRU", "Thida", None, "yes"],
            [None] * 5,
            ["0502", "BHF", "Moe"],
        )
        headers, rows = read_rows(content)
        assert headers == ["staff_id", "organization", "first_name", "last_name", "has_spouse"]
        assert [n for n, _ in rows] == [2, 4]
        assert rows[0][1]["first_name"] == "Thida"

    async def test_template_guidance_row_is_skipped(self, db):
        content = await build_template(db, "employees")
        headers, rows = read_rows(content)
        assert headers == [c.name for c in TEMPLATE_COLUMNS["employees"]]
        assert rows == []

    async def test_funding_template_lists_grant_items(self, db, test_grant):
        _, item = test_grant
        wb = load_workbook(io.BytesIO(await build_template(db, "funding-allocations")))
        assert wb.sheetnames == ["Funding Allocations", "Instructions", "Grant Items"]
        assert wb["Grant Items"]["A2"].value == str(item.id)

    def test_unreadable_file(self):
        with pytest.raises(ValidationException) as exc:
            ImportService.parse("employees", b"not a workbook")
        assert "file" in exc.value.errors

    def test_missing_required_column(self):
        with pytest.raises(ValidationException) as exc:
            ImportService.parse("employees", _xlsx(["staff_id", "first_name"], ["0501", "Thida"]))
        assert exc.value.errors["file"] == ["Missing required column(s): organization."]


# ═════════════════════════════════════════════════════════════════════
# IMPORTS
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeImport:

    async def test_rows_applied_independently(self, db, hr_employee, test_employee):
        content = _xlsx(
            EMPLOYEE_HEADERS,
            ["0501", "SMRU", "Thida", "Oo", "yes"],
            ["0502", "NOWHERE", "Moe", None, None],
            ["0001", "SMRU", "Aye", "Min", None],
            ["0001", "SMRU", "Aye", "Min Thu", None],
        )
        summary = await ImportService.run(db, "employees", content, actor_id=hr_employee["id"])

        assert (summary["created"], summary["updated"], summary["skipped"]) == (1, 1, 1)
        assert [e["row"] for e in summary["errors"]] == [3]
        assert "organization" in summary["errors"][0]["errors"]

        created = (await db.execute(select(Employee).where(Employee.staff_id == "0501"))).scalar_one()
        assert created.has_spouse is True

        titles = (await db.execute(
            select(Notification.title).where(Notification.recipient_id == hr_employee["id"])
        )).scalars().all()
        assert titles == ["Import Completed"]

    async def test_numeric_staff_id_read_as_text(self, db, hr_employee):
        content = _xlsx(["staff_id", "organization", "first_name"], [777, "BHF", "Naw"])
        summary = await ImportService.run(db, "employees", content, actor_id=hr_employee["id"])
        assert summary["created"] == 1
        assert (await db.execute(select(Employee).where(Employee.staff_id == "777"))).scalar_one()


class TestGrantImport:

    async def test_rows_sharing_code_build_one_grant(self, db, hr_employee):
        headers = [
            "grant_code", "grant_name", "organization",
            "grant_position", "grant_level_of_effort", "grant_position_number",
        ]
        content = _xlsx(
            headers,
            ["S0100", "Nutrition", "SMRU", "Nurse", 75, 2],
            ["S0100", "Nutrition", "SMRU", "Driver", 0.5, 1],
        )
        summary = await ImportService.run(db, "grants", content, actor_id=hr_employee["id"])
        assert summary["errors"] == []
        assert summary["created"] == 1

        grant = (await db.execute(select(Grant).where(Grant.code == "S0100"))).scalar_one()
        items = (await db.execute(
            select(GrantItem).where(GrantItem.grant_id == grant.id).order_by(GrantItem.grant_position)
        )).scalars().all()
        assert [(i.grant_position, Decimal(i.grant_level_of_effort)) for i in items] == [
            ("Driver", Decimal("0.5")),
            ("Nurse", Decimal("0.75")),
        ]

        # Same file again changes nothing
        again = await ImportService.run(db, "grants", content, actor_id=hr_employee["id"])
        assert (again["created"], again["updated"], again["skipped"]) == (0, 0, 2)


class TestFundingImport:

    async def test_allocations_grouped_per_staff_member(
        self, db, hr_employee, test_employment, test_grant, hub_grants,
    ):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        content = _xlsx(
            ["staff_id", "grant_item_id", "fte"],
            ["0001", str(item.id), 60],
            ["0001", str(hub_item.id), 40],
            ["9999", str(item.id), 100],
        )
        summary = await ImportService.run(db, "funding-allocations", content, actor_id=hr_employee["id"])

        assert summary["created"] == 1
        assert summary["errors"] == [{"row": 4, "errors": {"staff_id": ["No employee with staff id '9999'."]}}]
        active = await FundingAllocationService.active_for_employment(db, test_employment["id"])
        assert sorted(a.fte_percent for a in active) == [Decimal("40.00"), Decimal("60.00")]

        again = await ImportService.run(db, "funding-allocations", content, actor_id=hr_employee["id"])
        assert again["skipped"] == 1

    async def test_bad_total_rejects_all_rows_of_that_staff(self, db, hr_employee, test_employment, test_grant):
        _, item = test_grant
        content = _xlsx(["staff_id", "grant_item_id", "fte"], ["0001", str(item.id), 80])
        summary = await ImportService.run(db, "funding-allocations", content, actor_id=hr_employee["id"])

        assert summary["created"] == 0
        assert [e["row"] for e in summary["errors"]] == [2]
        assert await FundingAllocationService.active_for_employment(db, test_employment["id"]) == []


# ═════════════════════════════════════════════════════════════════════
# HTTP
# ═════════════════════════════════════════════════════════════════════


class TestSpreadsheetEndpoints:

    async def test_upload(self, client, hr_headers):
        content = _xlsx(EMPLOYEE_HEADERS, ["0501", "SMRU", "Thida", "Oo", "no"])
        resp = await client.post(
            "/api/v1/uploads/employees",
            files={"file": ("staff.xlsx", content, XLSX_MEDIA_TYPE)},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["created"] == 1
        assert resp.json()["message"].startswith("Import finished: 1 created")

    async def test_upload_rejects_other_extensions(self, client, hr_headers):
        resp = await client.post(
            "/api/v1/uploads/employees",
            files={"file": ("staff.csv", b"staff_id\n0501", "text/csv")},
            headers=hr_headers,
        )
        assert resp.status_code == 422

    async def test_unknown_import_kind(self, client, hr_headers):
        resp = await client.post(
            "/api/v1/uploads/payrolls",
            files={"file": ("x.xlsx", b"", XLSX_MEDIA_TYPE)},
            headers=hr_headers,
        )
        assert resp.status_code == 404

    async def test_template_download(self, client, hr_headers):
        resp = await client.get("/api/v1/downloads/templates/employments", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == XLSX_MEDIA_TYPE
        assert 'filename="employments_import_template.xlsx"' in resp.headers["content-disposition"]

    async def test_employee_export(self, client, hr_headers, test_employee):
        resp = await client.get("/api/v1/downloads/employees", params={"organization": "SMRU"}, headers=hr_headers)
        ws = load_workbook(io.BytesIO(resp.content)).active
        staff_ids = [row[0] for row in ws.iter_rows(min_row=2, values_only=True)]
        assert staff_ids == ["0001", "HR01"]

    async def test_employee_cannot_import(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/uploads/employees",
            files={"file": ("staff.xlsx", _xlsx(EMPLOYEE_HEADERS), XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )
        assert resp.status_code == 403


class TestReports:

    async def test_interview_report_covers_period(self, db):
        for name, day in (("Saw Eh", date(2025, 5, 20)), ("Naw Htoo", date(2025, 5, 12)), ("Mu Paw", date(2025, 6, 2))):
            await InterviewService.create_interview(
                db, InterviewCreate(candidate_name=name, job_position="Medic", interview_date=day),
            )

        content = await export_interview_report(db, date(2025, 5, 1), date(2025, 5, 31))
        ws = load_workbook(io.BytesIO(content)).active
        assert ws.title == "Interview Report"
        assert [c.value for c in ws[1]][:3] == ["Candidate Name", "Phone", "Position Applied"]
        assert [row[0] for row in ws.iter_rows(min_row=2, values_only=True)] == ["Naw Htoo", "Saw Eh"]

    async def test_reversed_period_rejected(self, db):
        with pytest.raises(ValidationException) as exc:
            await export_interview_report(db, date(2025, 5, 31), date(2025, 5, 1))
        assert "end_date" in exc.value.errors

    async def test_leave_report_used_and_remaining(self, db, test_employee, test_employment, hr_employee):
        annual = await LeaveService.create_type(db, LeaveTypeCreate(name="Annual Leave", default_duration=Decimal("26")))
        await LeaveService.create_type(db, LeaveTypeCreate(name="Sick", default_duration=Decimal("30")))
        await LeaveService.set_balance(db, LeaveBalanceSet(
            employee_id=test_employee["id"], leave_type_id=annual.id, year=2025, total_days=Decimal("10"),
        ))
        request = await LeaveService.create_request(
            db,
            LeaveRequestCreate(
                start_date=date(2025, 3, 3),
                end_date=date(2025, 3, 5),
                items=[LeaveRequestItemIn(leave_type_id=annual.id, days=Decimal("3"))],
            ),
            employee_id=test_employee["id"],
        )
        for approval_type in (LeaveApprovalType.supervisor, LeaveApprovalType.hr_site_admin):
            await LeaveService.approve_request(
                db, request.id, LeaveApprovalRequest(approval_type=approval_type, approved=True),
            )

        content = await export_leave_report(db, date(2025, 1, 1), date(2025, 12, 31))
        ws = load_workbook(io.BytesIO(content)).active
        assert [c.value for c in ws[1]] == [
            "Staff ID", "Employee Name", "Organization", "Department", "Work Location",
            "Annual Leave Used", "Annual Leave Remaining", "Sick Used", "Sick Remaining",
        ]
        # hr_employee has no active employment
        assert list(ws.iter_rows(min_row=2, values_only=True)) == [
            ("0001", "Aye Min", "SMRU", "Clinical", "Mae Sot Clinic", 3, 7, 0, 30),
        ]

    async def test_leave_report_endpoint_filters_by_department(
        self, client, hr_headers, test_employment, test_department,
    ):
        params = {"start_date": "2025-01-01", "end_date": "2025-12-31"}
        resp = await client.get(
            "/api/v1/downloads/reports/leaves",
            params={**params, "department_id": str(test_department["id"])},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == XLSX_MEDIA_TYPE
        assert 'filename="leave_report_20250101_to_20251231.xlsx"' in resp.headers["content-disposition"]
        ws = load_workbook(io.BytesIO(resp.content)).active
        assert [row[0] for row in ws.iter_rows(min_row=2, values_only=True)] == ["0001"]

        resp = await client.get(
            "/api/v1/downloads/reports/leaves",
            params={**params, "department_id": "00000000-0000-0000-0000-000000000001"},
            headers=hr_headers,
        )
        assert load_workbook(io.BytesIO(resp.content)).active.max_row == 1

    async def test_employee_cannot_download_reports(self, client, auth_headers):
        resp = await client.get(
            "/api/v1/downloads/reports/interviews",
            params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
            headers=auth_headers,
        )
        assert resp.status_code == 403
