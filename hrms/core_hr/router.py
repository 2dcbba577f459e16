"""Core HR router — Employee, Department, Position, WorkLocation endpoints.

Routes:
    /employees                       — List, create employees
    /employees/by-staff-id/{staff}   — Lookup by staff id
    /employees/{id}                  — Get, update, deactivate employee
    /departments, /positions, /work-locations — reference data
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_permission
from hrms.common.constants import EmployeeStatus, GenderType, Organization
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    PositionCreate,
    PositionResponse,
    PositionUpdate,
    WorkLocationCreate,
    WorkLocationResponse,
    WorkLocationUpdate,
)
from hrms.core_hr.service import (
    DepartmentService,
    EmployeeService,
    PositionService,
    WorkLocationService,
)
from hrms.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])
positions_router = APIRouter(prefix="", tags=["positions"])
locations_router = APIRouter(prefix="", tags=["work-locations"])

_can_read = require_permission("employee:read")
_can_edit = require_permission("employee:edit")


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /employees — List employees ─────────────────────────────────

@employees_router.get("")
async def list_employees(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by staff id, name or email"),
    organization: Optional[Organization] = Query(None),
    status: Optional[EmployeeStatus] = Query(None),
    gender: Optional[GenderType] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    """List employees with pagination, search, and filtering."""
    result = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        organization=organization,
        status=status,
        gender=gender,
        is_active=is_active,
    )
    return success_response(
        [EmployeeResponse.model_validate(emp) for emp in result.data],
        "Employees retrieved successfully.",
        pagination=result.pagination,
    )


# ── GET /employees/by-staff-id/{staff_id} ──────────────────────────
# NOTE: This MUST be defined before /employees/{employee_id}.

@employees_router.get("/by-staff-id/{staff_id}")
async def get_employee_by_staff_id(
    staff_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    detail = await EmployeeService.get_by_staff_id(db, staff_id)
    return success_response(detail, "Employee retrieved successfully.")


# ── GET /employees/{id} ─────────────────────────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    """Retrieve the employee profile with a summary of the current employment."""
    detail = await EmployeeService.get_employee(db, employee_id)
    return success_response(detail, "Employee retrieved successfully.")


# ── POST /employees — Create employee ──────────────────────────────

@employees_router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Create a new employee record. Duplicate staff id or email → 409."""
    employee = await EmployeeService.create_employee(db, body, actor_id=current_user.id)
    detail = await EmployeeService.get_employee(db, employee.id)
    return success_response(detail, "Employee created successfully.")


# ── PUT /employees/{id} — Update employee ──────────────────────────

@employees_router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    employee = await EmployeeService.update_employee(db, employee_id, body, actor_id=current_user.id)
    detail = await EmployeeService.get_employee(db, employee.id)
    return success_response(detail, "Employee updated successfully.")


# ── DELETE /employees/{id} — Deactivate employee ───────────────────

@employees_router.delete("/{employee_id}")
async def delete_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Soft delete: the employee is deactivated, history is kept."""
    await EmployeeService.delete_employee(db, employee_id, actor_id=current_user.id)
    return success_response(None, "Employee deleted successfully.")


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(None),
):
    departments = await DepartmentService.list_departments(db, is_active=is_active)
    return success_response(
        [DepartmentResponse.model_validate(d) for d in departments],
        "Departments retrieved successfully.",
    )


@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    dept = await DepartmentService.get_department(db, department_id)
    return success_response(DepartmentResponse.model_validate(dept), "Department retrieved successfully.")


@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    dept = await DepartmentService.create_department(db, body, actor_id=current_user.id)
    return success_response(DepartmentResponse.model_validate(dept), "Department created successfully.")


@departments_router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    dept = await DepartmentService.update_department(db, department_id, body, actor_id=current_user.id)
    return success_response(DepartmentResponse.model_validate(dept), "Department updated successfully.")


# ═════════════════════════════════════════════════════════════════════
# Position Endpoints
# ═════════════════════════════════════════════════════════════════════


@positions_router.get("")
async def list_positions(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    department_id: Optional[uuid.UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    positions = await PositionService.list_positions(db, department_id=department_id, is_active=is_active)
    return success_response(
        [PositionResponse.model_validate(p) for p in positions],
        "Positions retrieved successfully.",
    )


@positions_router.get("/{position_id}")
async def get_position(
    position_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    position = await PositionService.get_position(db, position_id)
    return success_response(PositionResponse.model_validate(position), "Position retrieved successfully.")


@positions_router.post("", status_code=201)
async def create_position(
    body: PositionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    position = await PositionService.create_position(db, body, actor_id=current_user.id)
    return success_response(PositionResponse.model_validate(position), "Position created successfully.")


@positions_router.put("/{position_id}")
async def update_position(
    position_id: uuid.UUID,
    body: PositionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    position = await PositionService.update_position(db, position_id, body, actor_id=current_user.id)
    return success_response(PositionResponse.model_validate(position), "Position updated successfully.")


# ═════════════════════════════════════════════════════════════════════
# Work Location Endpoints
# ═════════════════════════════════════════════════════════════════════


@locations_router.get("")
async def list_locations(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(None),
):
    locations = await WorkLocationService.list_locations(db, is_active=is_active)
    return success_response(
        [WorkLocationResponse.model_validate(loc) for loc in locations],
        "Work locations retrieved successfully.",
    )


@locations_router.get("/{location_id}")
async def get_location(
    location_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    location = await WorkLocationService.get_location(db, location_id)
    return success_response(WorkLocationResponse.model_validate(location), "Work location retrieved successfully.")


@locations_router.post("", status_code=201)
async def create_location(
    body: WorkLocationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    location = await WorkLocationService.create_location(db, body, actor_id=current_user.id)
    return success_response(WorkLocationResponse.model_validate(location), "Work location created successfully.")


@locations_router.put("/{location_id}")
async def update_location(
    location_id: uuid.UUID,
    body: WorkLocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    location = await WorkLocationService.update_location(db, location_id, body, actor_id=current_user.id)
    return success_response(WorkLocationResponse.model_validate(location), "Work location updated successfully.")
