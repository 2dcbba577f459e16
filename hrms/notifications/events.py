"""Domain events pushed through the broadcaster (no persistence).

Events describing database changes are queued on the session and only
delivered once its transaction commits; a rollback discards them.
Payroll progress is published immediately.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from hrms.common.constants import (
    EMPLOYEE_ACTIONS_CHANNEL,
    PAYROLL_BULK_CHANNEL_PREFIX,
    USER_CHANNEL_PREFIX,
)
from hrms.notifications.broadcast import broadcaster

_PENDING_EVENTS = "hrms.pending_events"


def user_channel(employee_id: uuid.UUID | str) -> str:
    return f"{USER_CHANNEL_PREFIX}{employee_id}"


def payroll_batch_channel(batch_id: uuid.UUID | str) -> str:
    return f"{PAYROLL_BULK_CHANNEL_PREFIX}{batch_id}"


# ── Publish on commit ───────────────────────────────────────────────


def publish_on_commit(db: AsyncSession, channel: str, event_name: str, data: dict[str, Any]) -> None:
    """Queue an event on *db*'s innermost transaction or savepoint."""
    session = db.sync_session
    transaction = session.get_nested_transaction() or session.get_transaction()
    session.info.setdefault(_PENDING_EVENTS, []).append((transaction, channel, event_name, data))


def pending_events(db: AsyncSession) -> list[tuple[str, str, dict[str, Any]]]:
    return [item[1:] for item in db.sync_session.info.get(_PENDING_EVENTS, ())]


def _inside(transaction, ancestor) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


@event.listens_for(Session, "after_commit")
def _deliver_pending(session: Session) -> None:
    # Also fires when a savepoint is released; only the outer commit delivers.
    if session.in_nested_transaction():
        return
    for _, channel, event_name, data in session.info.pop(_PENDING_EVENTS, ()):
        broadcaster.publish_nowait(channel, event_name, data)


@event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back(session: Session, previous_transaction) -> None:
    pending = session.info.get(_PENDING_EVENTS)
    if pending:
        pending[:] = [item for item in pending if not _inside(item[0], previous_transaction)]


# ── Domain events ───────────────────────────────────────────────────


def publish_to_user(db: AsyncSession, employee_id: uuid.UUID, event_name: str, data: dict[str, Any]) -> None:
    publish_on_commit(db, user_channel(employee_id), event_name, data)


def publish_employee_action(
    db: AsyncSession,
    employee,  # hrms.core_hr.models.Employee
    action: str,
    performer: Optional[str],
) -> None:
    """Announce an employee create/update/delete on the public channel."""
    name = employee.full_name
    message = (
        f"Employee {name} (Staff ID: {employee.staff_id}) has been {action} "
        f"by {performer or 'System'}."
    )
    publish_on_commit(
        db,
        EMPLOYEE_ACTIONS_CHANNEL,
        "employee.action",
        {
            "employee_id": str(employee.id),
            "staff_id": employee.staff_id,
            "employee_name": name,
            "action": action,
            "performed_by": performer or "System",
            "message": message,
        },
    )


async def publish_payroll_progress(batch) -> int:  # hrms.payroll.models.BulkPayrollBatch
    return await broadcaster.publish(
        payroll_batch_channel(batch.id),
        "payroll.progress",
        {
            "batchId": str(batch.id),
            "processed": batch.processed_payrolls,
            "total": batch.total_payrolls,
            "status": batch.status.value,
            "currentEmployee": batch.current_employee,
            "currentAllocation": batch.current_allocation,
            "stats": {
                "successful": batch.successful_payrolls,
                "failed": batch.failed_payrolls,
                "advances_created": batch.advances_created,
            },
        },
    )


def publish_permissions_updated(
    db: AsyncSession, employee_id: uuid.UUID, role: str, permissions: list[str],
) -> None:
    publish_to_user(
        db,
        employee_id,
        "permissions.updated",
        {"employee_id": str(employee_id), "role": role, "permissions": permissions},
    )
