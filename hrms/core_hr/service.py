"""Core HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from hrms.common.pagination
  - ``apply_filters / apply_search`` from hrms.common.filters
  - ``create_audit_entry`` from hrms.common.audit
  - ``publish_employee_action`` from hrms.notifications.events
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.service import hash_password
from hrms.common.audit import create_audit_entry, to_audit_value
from hrms.common.constants import EmployeeStatus, GenderType, Organization
from hrms.common.exceptions import BusinessRuleException, ConflictError, NotFoundException
from hrms.common.filters import apply_filters, apply_search
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Department, Employee, Position, WorkLocation
from hrms.core_hr.schemas import (
    DepartmentCreate,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeUpdate,
    PositionCreate,
    PositionUpdate,
    WorkLocationCreate,
    WorkLocationUpdate,
)
from hrms.employment.models import Employment
from hrms.notifications.events import publish_employee_action


async def _performer_name(db: AsyncSession, actor_id: Optional[uuid.UUID]) -> Optional[str]:
    if actor_id is None:
        return None
    actor = await db.get(Employee, actor_id)
    return actor.full_name if actor else None


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        organization: Optional[Organization] = None,
        status: Optional[EmployeeStatus] = None,
        gender: Optional[GenderType] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""

        query = select(Employee).order_by(Employee.staff_id)

        filters: dict[str, Any] = {
            "organization": organization,
            "status": status,
            "gender": gender,
            "is_active": is_active,
        }
        query = apply_filters(query, Employee, filters)

        if search:
            query = apply_search(
                query,
                Employee,
                search,
                ["staff_id", "first_name", "last_name", "email"],
            )

        return await paginate(db, query, pagination, model=Employee)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee_or_404(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def current_employment(db: AsyncSession, employee_id: uuid.UUID) -> Optional[Employment]:
        """Latest active employment of the employee, if any."""
        result = await db.execute(
            select(Employment)
            .where(Employment.employee_id == employee_id, Employment.is_active.is_(True))
            .order_by(Employment.start_date.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def supervisor_of(db: AsyncSession, employee_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Employee holding the position the employee's current position reports to."""
        employment = await EmployeeService.current_employment(db, employee_id)
        if employment is None or employment.position_id is None:
            return None
        position = await db.get(Position, employment.position_id)
        if position is None or position.reports_to_id is None:
            return None
        result = await db.execute(
            select(Employment.employee_id)
            .where(
                Employment.position_id == position.reports_to_id,
                Employment.is_active.is_(True),
                Employment.employee_id != employee_id,
            )
            .order_by(Employment.start_date.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeDetail:
        """Load employee detail including a summary of the current employment."""
        employee = await EmployeeService.get_employee_or_404(db, employee_id)
        return await EmployeeService._detail(db, employee)

    @staticmethod
    async def get_by_staff_id(db: AsyncSession, staff_id: str) -> EmployeeDetail:
        result = await db.execute(select(Employee).where(Employee.staff_id == staff_id))
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", staff_id)
        return await EmployeeService._detail(db, employee)

    @staticmethod
    async def _detail(db: AsyncSession, employee: Employee) -> EmployeeDetail:
        employee.ensure_display_name()
        detail = EmployeeDetail.model_validate(employee)

        employment = await EmployeeService.current_employment(db, employee.id)
        if employment is not None:
            detail.current_employment = {
                "id": str(employment.id),
                "employment_type": employment.employment_type.value,
                "start_date": to_audit_value(employment.start_date),
                "end_date": to_audit_value(employment.end_date),
                "pass_probation_date": to_audit_value(employment.pass_probation_date),
                "probation_status": to_audit_value(employment.probation_status),
                "department_id": to_audit_value(employment.department_id),
                "position_id": to_audit_value(employment.position_id),
                "work_location_id": to_audit_value(employment.work_location_id),
                "pass_probation_salary": to_audit_value(employment.pass_probation_salary),
            }
        return detail

    # ── Uniqueness checks ───────────────────────────────────────────

    @staticmethod
    async def _ensure_unique(
        db: AsyncSession,
        *,
        staff_id: Optional[str],
        email: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if staff_id:
            q = select(Employee.id).where(Employee.staff_id == staff_id)
            if exclude_id:
                q = q.where(Employee.id != exclude_id)
            if (await db.execute(q)).first():
                raise ConflictError("staff_id", staff_id)
        if email:
            q = select(Employee.id).where(func.lower(Employee.email) == email.lower())
            if exclude_id:
                q = q.where(Employee.id != exclude_id)
            if (await db.execute(q)).first():
                raise ConflictError("email", email)

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Create a new employee record."""

        await EmployeeService._ensure_unique(db, staff_id=data.staff_id, email=data.email)

        values = data.model_dump(exclude={"password"})
        employee = Employee(
            **values,
            password_hash=hash_password(data.password) if data.password else None,
            created_by=actor_id,
            updated_by=actor_id,
        )
        employee.ensure_display_name()

        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json", exclude={"password"}),
        )
        publish_employee_action(db, employee, "created", await _performer_name(db, actor_id))
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial-update an existing employee."""

        employee = await EmployeeService.get_employee_or_404(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        password = changes.pop("password", None)
        if not changes and not password:
            return employee

        await EmployeeService._ensure_unique(
            db,
            staff_id=changes.get("staff_id"),
            email=changes.get("email"),
            exclude_id=employee.id,
        )

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_values[field] = to_audit_value(getattr(employee, field, None))
            setattr(employee, field, value)
        if password:
            employee.password_hash = hash_password(password)

        if "display_name" not in changes and any(k in changes for k in ("first_name", "last_name")):
            employee.display_name = employee.full_name

        employee.updated_at = datetime.now(timezone.utc)
        employee.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={k: to_audit_value(v) for k, v in changes.items()},
        )
        publish_employee_action(db, employee, "updated", await _performer_name(db, actor_id))
        return employee

    # ── Delete (deactivate) ─────────────────────────────────────────

    @staticmethod
    async def delete_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Deactivate an employee; refused while an active employment exists."""

        employee = await EmployeeService.get_employee_or_404(db, employee_id)
        if await EmployeeService.current_employment(db, employee.id) is not None:
            raise BusinessRuleException(
                "Employee has an active employment. End the employment before deleting the employee."
            )

        employee.is_active = False
        employee.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        publish_employee_action(db, employee, "deleted", await _performer_name(db, actor_id))
        return employee


# ═════════════════════════════════════════════════════════════════════
# Reference data: departments, positions, work locations
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Async CRUD for departments."""

    @staticmethod
    async def list_departments(db: AsyncSession, *, is_active: Optional[bool] = None) -> list[Department]:
        query = select(Department).order_by(Department.name)
        if is_active is not None:
            query = query.where(Department.is_active == is_active)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> Department:
        dept = await db.get(Department, department_id)
        if dept is None:
            raise NotFoundException("Department", str(department_id))
        return dept

    @staticmethod
    async def _check_name(db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        q = select(Department.id).where(Department.name == name)
        if exclude_id:
            q = q.where(Department.id != exclude_id)
        if (await db.execute(q)).first():
            raise ConflictError("name", name)

    @staticmethod
    async def create_department(
        db: AsyncSession, data: DepartmentCreate, *, actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        await DepartmentService._check_name(db, data.name)
        dept = Department(**data.model_dump())
        db.add(dept)
        await db.flush()
        await create_audit_entry(
            db, action="create", entity_type="department", entity_id=dept.id,
            actor_id=actor_id, new_values=data.model_dump(mode="json"),
        )
        return dept

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        dept = await DepartmentService.get_department(db, department_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            await DepartmentService._check_name(db, changes["name"], exclude_id=dept.id)
        old_values = {k: to_audit_value(getattr(dept, k)) for k in changes}
        for field, value in changes.items():
            setattr(dept, field, value)
        await db.flush()
        await create_audit_entry(
            db, action="update", entity_type="department", entity_id=dept.id,
            actor_id=actor_id, old_values=old_values, new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return dept


class PositionService:
    """Async CRUD for positions (the ``reports_to`` chain drives supervisor lookup)."""

    @staticmethod
    async def list_positions(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
    ) -> list[Position]:
        query = select(Position).order_by(Position.level, Position.title)
        query = apply_filters(query, Position, {"department_id": department_id, "is_active": is_active})
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_position(db: AsyncSession, position_id: uuid.UUID) -> Position:
        position = await db.get(Position, position_id)
        if position is None:
            raise NotFoundException("Position", str(position_id))
        return position

    @staticmethod
    async def _validate(
        db: AsyncSession,
        *,
        title: str,
        department_id: uuid.UUID,
        reports_to_id: Optional[uuid.UUID],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        await DepartmentService.get_department(db, department_id)
        if reports_to_id is not None:
            if exclude_id is not None and reports_to_id == exclude_id:
                raise BusinessRuleException("A position cannot report to itself.")
            await PositionService.get_position(db, reports_to_id)
        q = select(Position.id).where(Position.title == title, Position.department_id == department_id)
        if exclude_id:
            q = q.where(Position.id != exclude_id)
        if (await db.execute(q)).first():
            raise ConflictError("title", title)

    @staticmethod
    async def create_position(
        db: AsyncSession, data: PositionCreate, *, actor_id: Optional[uuid.UUID] = None,
    ) -> Position:
        await PositionService._validate(
            db, title=data.title, department_id=data.department_id, reports_to_id=data.reports_to_id,
        )
        position = Position(**data.model_dump())
        db.add(position)
        await db.flush()
        await create_audit_entry(
            db, action="create", entity_type="position", entity_id=position.id,
            actor_id=actor_id, new_values=data.model_dump(mode="json"),
        )
        return position

    @staticmethod
    async def update_position(
        db: AsyncSession,
        position_id: uuid.UUID,
        data: PositionUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Position:
        position = await PositionService.get_position(db, position_id)
        changes = data.model_dump(exclude_unset=True)
        await PositionService._validate(
            db,
            title=changes.get("title", position.title),
            department_id=changes.get("department_id", position.department_id),
            reports_to_id=changes.get("reports_to_id", position.reports_to_id),
            exclude_id=position.id,
        )
        old_values = {k: to_audit_value(getattr(position, k)) for k in changes}
        for field, value in changes.items():
            setattr(position, field, value)
        await db.flush()
        await create_audit_entry(
            db, action="update", entity_type="position", entity_id=position.id,
            actor_id=actor_id, old_values=old_values, new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return position


class WorkLocationService:
    """Async CRUD for work locations."""

    @staticmethod
    async def list_locations(db: AsyncSession, *, is_active: Optional[bool] = None) -> list[WorkLocation]:
        query = select(WorkLocation).order_by(WorkLocation.name)
        if is_active is not None:
            query = query.where(WorkLocation.is_active == is_active)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_location(db: AsyncSession, location_id: uuid.UUID) -> WorkLocation:
        location = await db.get(WorkLocation, location_id)
        if location is None:
            raise NotFoundException("WorkLocation", str(location_id))
        return location

    @staticmethod
    async def _check_name(db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        q = select(WorkLocation.id).where(WorkLocation.name == name)
        if exclude_id:
            q = q.where(WorkLocation.id != exclude_id)
        if (await db.execute(q)).first():
            raise ConflictError("name", name)

    @staticmethod
    async def create_location(
        db: AsyncSession, data: WorkLocationCreate, *, actor_id: Optional[uuid.UUID] = None,
    ) -> WorkLocation:
        await WorkLocationService._check_name(db, data.name)
        location = WorkLocation(**data.model_dump())
        db.add(location)
        await db.flush()
        await create_audit_entry(
            db, action="create", entity_type="work_location", entity_id=location.id,
            actor_id=actor_id, new_values=data.model_dump(mode="json"),
        )
        return location

    @staticmethod
    async def update_location(
        db: AsyncSession,
        location_id: uuid.UUID,
        data: WorkLocationUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> WorkLocation:
        location = await WorkLocationService.get_location(db, location_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            await WorkLocationService._check_name(db, changes["name"], exclude_id=location.id)
        old_values = {k: to_audit_value(getattr(location, k)) for k in changes}
        for field, value in changes.items():
            setattr(location, field, value)
        await db.flush()
        await create_audit_entry(
            db, action="update", entity_type="work_location", entity_id=location.id,
            actor_id=actor_id, old_values=old_values, new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return location
