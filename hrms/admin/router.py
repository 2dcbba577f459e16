"""Admin router — role management.

All endpoints require the system_admin role.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_role
from hrms.auth.schemas import EmployeeRoleOut, RoleAssignRequest
from hrms.auth.service import assign_role, get_highest_role
from hrms.common.audit import create_audit_entry
from hrms.common.constants import PERMISSIONS, UserRole
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.notifications.events import publish_permissions_updated

router = APIRouter(prefix="", tags=["admin"])

_admin_dep = require_role(UserRole.system_admin)


def _role_out(employee: Employee, role: UserRole) -> EmployeeRoleOut:
    employee.ensure_display_name()
    return EmployeeRoleOut(
        employee_id=employee.id,
        staff_id=employee.staff_id,
        display_name=employee.display_name,
        email=employee.email,
        role=role.value,
    )


# ═══════════════════════════════════════════════════════════════════
# ROLES
# ═══════════════════════════════════════════════════════════════════

@router.get("/roles")
async def list_roles(
    _user: Employee = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """List all active employees with their effective role."""
    result = await db.execute(
        select(Employee).where(Employee.is_active.is_(True)).order_by(Employee.staff_id)
    )
    out = []
    for employee in result.scalars().all():
        out.append(_role_out(employee, await get_highest_role(db, employee.id)))
    return success_response(out, "Roles retrieved successfully.")


@router.put("/roles")
async def update_role(
    body: RoleAssignRequest,
    current_user: Employee = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Assign a role to an employee and push the new permissions to their private channel."""
    previous = await get_highest_role(db, body.employee_id)
    employee = await assign_role(db, body.employee_id, body.role, actor_id=current_user.id)

    await create_audit_entry(
        db,
        action="assign_role",
        entity_type="employee",
        entity_id=employee.id,
        actor_id=current_user.id,
        old_values={"role": previous.value},
        new_values={"role": body.role.value},
    )
    publish_permissions_updated(db, employee.id, body.role.value, PERMISSIONS.get(body.role, []))

    return success_response(_role_out(employee, body.role), "Role assigned successfully.")
