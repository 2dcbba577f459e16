"""Notification endpoints — list, mark read, unread count, delete — and the realtime WebSocket."""


import asyncio
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.exceptions import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms.auth.dependencies import get_current_user, has_permission, resolve_access_token
from hrms.common.constants import (
    EMPLOYEE_ACTIONS_CHANNEL,
    PAYROLL_BULK_CHANNEL_PREFIX,
    USER_CHANNEL_PREFIX,
    NotificationCategory,
    NotificationType,
    UserRole,
)
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import async_session_factory, get_db, session_scope
from hrms.notifications.broadcast import broadcaster
from hrms.notifications.events import user_channel
from hrms.notifications.schemas import NotificationResponse
from hrms.notifications.service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["notifications"])
ws_router = APIRouter(prefix="", tags=["realtime"])


# ── GET / — list current user's notifications ───────────────────────

@router.get("")
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    category: Optional[NotificationCategory] = Query(default=None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    page, unread = await NotificationService.get_notifications(
        db,
        employee_id=employee.id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
        category=category,
    )
    body = success_response(
        [NotificationResponse.model_validate(n) for n in page.data],
        "Notifications retrieved successfully.",
        pagination=page.pagination,
    )
    body["pagination"]["unread"] = unread
    return body


# ── GET /unread-count — badge count ─────────────────────────────────
# NOTE: This route MUST be registered before /{notification_id}
# to avoid FastAPI treating "unread-count" as a UUID path parameter.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the number of unread notifications (for header badge)."""
    count = await NotificationService.get_unread_count(db, employee.id)
    return success_response({"count": count}, "Unread count retrieved successfully.")


# ── PUT /read-all — bulk mark all as read ───────────────────────────

@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the authenticated user."""
    count = await NotificationService.mark_all_read(db, employee.id)
    return success_response({"count": count}, "All notifications marked as read.")


# ── PUT /{notification_id}/read — mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return success_response(
        NotificationResponse.model_validate(notification),
        "Notification marked as read.",
    )


# ── DELETE /{notification_id} ───────────────────────────────────────

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, employee.id)
    return success_response(None, "Notification deleted.")


# ═════════════════════════════════════════════════════════════════════
# Realtime
# ═════════════════════════════════════════════════════════════════════


def can_subscribe(employee: Employee, role: UserRole, channel: str) -> bool:
    """Channel authorization: private user channels for their owner only."""
    if channel == EMPLOYEE_ACTIONS_CHANNEL:
        return True
    if channel.startswith(USER_CHANNEL_PREFIX):
        return channel == user_channel(employee.id)
    if channel.startswith(PAYROLL_BULK_CHANNEL_PREFIX):
        return has_permission(role, "payroll:read")
    return False


async def authenticate_socket(
    token: str,
    session_factory: async_sessionmaker = async_session_factory,
) -> Optional[tuple[Employee, UserRole]]:
    """Resolve a socket's token in a short-lived session; ``None`` when invalid.

    The session is closed before the socket starts streaming, so open
    sockets never hold a pooled connection.
    """
    async with session_scope(session_factory) as db:
        try:
            return await resolve_access_token(db, token)
        except HTTPException:
            return None


# ── WS /ws?token=&channel= ──────────────────────────────────────────

@ws_router.websocket("/ws")
async def realtime(
    websocket: WebSocket,
    token: str = Query(...),
    channel: str = Query(...),
):
    """Stream broadcaster events of one channel to the client as JSON frames."""
    resolved = await authenticate_socket(token)
    if resolved is None:
        await websocket.close(code=4401)
        return
    employee, role = resolved

    if not can_subscribe(employee, role, channel):
        logger.warning("Employee %s denied subscription to %s", employee.id, channel)
        await websocket.close(code=4403)
        return

    await websocket.accept()
    async with broadcaster.subscription(channel) as queue:
        await websocket.send_json({"event": "subscribed", "channel": channel})

        async def _forward() -> None:
            while True:
                await websocket.send_json(await queue.get())

        sender = asyncio.create_task(_forward())
        try:
            while True:
                if await websocket.receive_text() == "ping":
                    await websocket.send_json({"event": "pong", "channel": channel})
        except WebSocketDisconnect:
            logger.debug("WebSocket for %s on %s disconnected", employee.id, channel)
        finally:
            sender.cancel()
            for outcome in await asyncio.gather(sender, return_exceptions=True):
                if not isinstance(outcome, asyncio.CancelledError):
                    logger.debug("WebSocket sender for %s on %s stopped: %r", employee.id, channel, outcome)
