"""Excel download and upload routes."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import EmployeeStatus, Organization
from hrms.common.exceptions import NotFoundException, ValidationException
from hrms.common.rate_limit import UPLOAD_LIMIT, limiter
from hrms.common.responses import success_response
from hrms.config import settings
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.employment.probation import local_today
from hrms.excel.exports import (
    export_employees,
    export_grant_items,
    export_interview_report,
    export_leave_report,
)
from hrms.excel.imports import IMPORT_KINDS, ImportService
from hrms.excel.templates import build_template, template_filename
from hrms.excel.workbook import XLSX_MEDIA_TYPE

downloads_router = APIRouter(prefix="", tags=["downloads"])
uploads_router = APIRouter(prefix="", tags=["uploads"])

_can_export = require_permission("export:run")
_can_import = require_permission("import:run")


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ═════════════════════════════════════════════════════════════════════
# Downloads
# ═════════════════════════════════════════════════════════════════════


@downloads_router.get("/templates/{kind}")
async def download_template(
    kind: str,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_import),
):
    """Blank import workbook with a guidance row and an instructions sheet."""
    content = await build_template(db, kind)
    return _xlsx(content, template_filename(kind))


@downloads_router.get("/employees")
async def download_employees(
    organization: Optional[Organization] = Query(None),
    status: Optional[EmployeeStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_export),
):
    content = await export_employees(db, organization=organization, status=status)
    return _xlsx(content, f"employees_{local_today():%Y%m%d}.xlsx")


@downloads_router.get("/grant-items")
async def download_grant_items(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_export),
):
    """Grant items with their ids and free slots, for filling in funding allocation imports."""
    content = await export_grant_items(db)
    return _xlsx(content, "grant_items_reference.xlsx")


@downloads_router.get("/reports/interviews")
async def download_interview_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_export),
):
    content = await export_interview_report(db, start_date, end_date)
    return _xlsx(content, f"interview_report_{start_date:%Y%m%d}_to_{end_date:%Y%m%d}.xlsx")


@downloads_router.get("/reports/leaves")
async def download_leave_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    work_location_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_export),
):
    """Leave taken and remaining per employee and leave type over a period."""
    content = await export_leave_report(
        db, start_date, end_date, work_location_id=work_location_id, department_id=department_id,
    )
    return _xlsx(content, f"leave_report_{start_date:%Y%m%d}_to_{end_date:%Y%m%d}.xlsx")


# ═════════════════════════════════════════════════════════════════════
# Uploads
# ═════════════════════════════════════════════════════════════════════


@uploads_router.post("/{kind}")
@limiter.limit(UPLOAD_LIMIT)
async def upload_workbook(
    request: Request,
    kind: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_import),
):
    if kind not in IMPORT_KINDS:
        raise NotFoundException("Import", kind)
    if not (file.filename or "").lower().endswith(".xlsx"):
        raise ValidationException({"file": ["Only .xlsx files are accepted."]})
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise ValidationException({"file": [f"The file exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit."]})

    # Captured up front: a rolled-back row may expire the current user's row
    actor_id = current_user.id
    summary = await ImportService.run(db, kind, content, actor_id=actor_id)
    return success_response(
        summary,
        f"Import finished: {summary['created']} created, {summary['updated']} updated, "
        f"{summary['skipped']} skipped, {len(summary['errors'])} error(s).",
    )
