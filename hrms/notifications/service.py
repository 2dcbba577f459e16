"""Notification service — CRUD operations and cross-module helper dispatchers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import NotificationCategory, NotificationType
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.notifications import events
from hrms.notifications.models import Notification
from hrms.notifications.schemas import NotificationResponse


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        category: NotificationCategory = NotificationCategory.general,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush it; it reaches the recipient's channel on commit."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            category=category,
            title=title,
            message=message,
            data=data,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
        )
        db.add(notification)
        await db.flush()

        events.publish_to_user(
            db,
            recipient_id,
            "notification.created",
            NotificationResponse.model_validate(notification).model_dump(mode="json"),
        )
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        category: Optional[NotificationCategory] = None,
    ) -> tuple[PaginatedResponse, int]:
        """Return ``(page, unread_count)`` for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)
        if category is not None:
            query = query.where(Notification.category == category)

        page = await paginate(db, query, pagination)

        # Unread count (always unfiltered — for the badge)
        unread = await NotificationService.get_unread_count(db, employee_id)
        return page, unread

    @staticmethod
    async def _get_owned(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only manage your own notifications.")
        return notification

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await NotificationService._get_owned(db, notification_id, employee_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> None:
        notification = await NotificationService._get_owned(db, notification_id, employee_id)
        await db.delete(notification)
        await db.flush()

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Cross-module helper dispatchers ─────────────────────────────────
# Imported by leave / travel / personnel action / employment services.
# They accept the ORM object directly to avoid tight schema coupling.


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # hrms.leave.models.LeaveRequest
    approver_id: uuid.UUID,
) -> Notification:
    """Notify the supervisor that a new leave request needs review."""
    return await NotificationService.create_notification(
        db,
        recipient_id=approver_id,
        type=NotificationType.action_required,
        category=NotificationCategory.leave,
        title="New Leave Request",
        message=(
            f"A leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} ({leave_request.total_days} day(s)) "
            f"requires your approval."
        ),
        action_url=f"/leaves/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_decision(
    db: AsyncSession,
    leave_request,  # hrms.leave.models.LeaveRequest
) -> Notification:
    """Notify the employee about the current state of their leave request."""
    approved = leave_request.status.value == "approved"
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval if approved else NotificationType.alert,
        category=NotificationCategory.leave,
        title=f"Leave Request {leave_request.status.value.title()}",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} is now {leave_request.status.value}."
        ),
        action_url=f"/leaves/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_travel_update(
    db: AsyncSession,
    travel_request,  # hrms.travel.models.TravelRequest
    title: str,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=travel_request.employee_id,
        type=NotificationType.approval,
        category=NotificationCategory.travel,
        title=title,
        message=(
            f"Your travel request to {travel_request.destination} "
            f"({travel_request.start_date} to {travel_request.to_date}) was updated: {title.lower()}."
        ),
        action_url=f"/travel-requests/{travel_request.id}",
        entity_type="travel_request",
        entity_id=travel_request.id,
    )


async def notify_personnel_action_implemented(
    db: AsyncSession,
    action,  # hrms.personnel_actions.models.PersonnelAction
    recipient_id: uuid.UUID,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=recipient_id,
        type=NotificationType.info,
        category=NotificationCategory.personnel_action,
        title="Personnel Action Implemented",
        message=(
            f"Personnel action {action.reference_number} "
            f"({action.action_type.value}) has been fully approved and applied."
        ),
        action_url=f"/personnel-actions/{action.id}",
        entity_type="personnel_action",
        entity_id=action.id,
    )


async def notify_probation_passed(
    db: AsyncSession,
    employment,  # hrms.employment.models.Employment
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=employment.employee_id,
        type=NotificationType.info,
        category=NotificationCategory.probation,
        title="Probation Completed",
        message=(
            f"Your probation period ended on {employment.pass_probation_date}. "
            "Your funding allocations now use the post-probation salary."
        ),
        entity_type="employment",
        entity_id=employment.id,
    )


async def notify_resignation_decision(
    db: AsyncSession,
    resignation,  # hrms.resignations.models.Resignation
) -> Notification:
    status = resignation.acknowledgement_status.value
    return await NotificationService.create_notification(
        db,
        recipient_id=resignation.employee_id,
        type=NotificationType.info if status == "acknowledged" else NotificationType.alert,
        category=NotificationCategory.resignation,
        title=f"Resignation {status.title()}",
        message=(
            f"Your resignation with last working day {resignation.last_working_date} "
            f"has been {status}."
        ),
        action_url=f"/resignations/{resignation.id}",
        entity_type="resignation",
        entity_id=resignation.id,
    )


async def notify_import_completed(
    db: AsyncSession,
    recipient_id: uuid.UUID,
    import_type: str,
    summary: dict[str, Any],
) -> Notification:
    message = (
        f"{import_type.replace('_', ' ').title()} import finished: "
        f"{summary['created']} created, {summary['updated']} updated, "
        f"{len(summary['errors'])} row(s) with errors."
    )
    notification = await NotificationService.create_notification(
        db,
        recipient_id=recipient_id,
        type=NotificationType.alert if summary["errors"] else NotificationType.info,
        category=NotificationCategory.import_,
        title="Import Completed",
        message=message,
        data={k: summary[k] for k in ("created", "updated", "skipped")},
    )
    events.publish_to_user(
        db,
        recipient_id,
        "import.completed",
        {"import_type": import_type, **{k: summary[k] for k in ("created", "updated", "skipped")},
         "error_count": len(summary["errors"])},
    )
    return notification


async def notify_payroll_batch_finished(
    db: AsyncSession,
    batch,  # hrms.payroll.models.BulkPayrollBatch
) -> Optional[Notification]:
    if batch.created_by is None:
        return None
    return await NotificationService.create_notification(
        db,
        recipient_id=batch.created_by,
        type=NotificationType.alert if batch.failed_payrolls else NotificationType.info,
        category=NotificationCategory.payroll,
        title="Bulk Payroll Finished",
        message=(
            f"Bulk payroll for {batch.pay_period} {batch.status.value}: "
            f"{batch.successful_payrolls} succeeded, {batch.failed_payrolls} failed, "
            f"{batch.advances_created} advance(s) created."
        ),
        action_url=f"/payrolls/bulk/status/{batch.id}",
        entity_type="bulk_payroll_batch",
        entity_id=batch.id,
    )
