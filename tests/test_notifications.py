"""Notification tests — broadcaster fan-out, channel authorization, inbox endpoints."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from hrms.common.constants import (
    EMPLOYEE_ACTIONS_CHANNEL,
    NotificationCategory,
    NotificationType,
    UserRole,
)
from hrms.core_hr.models import Employee
from tests.conftest import TestSessionFactory, auth_headers_for
from hrms.notifications.broadcast import Broadcaster, broadcaster
from hrms.notifications.events import payroll_batch_channel, pending_events, user_channel
from hrms.database import get_db
from hrms.notifications.router import authenticate_socket, can_subscribe
from hrms.notifications.service import NotificationService, notify_import_completed

BASE = "/api/v1/notifications"


async def _notify(db, recipient_id, title: str = "Hello", **kwargs):
    return await NotificationService.create_notification(
        db, recipient_id=recipient_id, title=title, message=f"{title} message", **kwargs,
    )


# ═════════════════════════════════════════════════════════════════════
# BROADCASTER
# ═════════════════════════════════════════════════════════════════════


class TestBroadcaster:

    async def test_fan_out_to_channel_subscribers(self):
        hub = Broadcaster()
        first, second, other = hub.subscribe("a"), hub.subscribe("a"), hub.subscribe("b")

        assert await hub.publish("a", "ping", {"n": 1}) == 2
        message = first.get_nowait()
        assert (message["channel"], message["event"], message["data"]) == ("a", "ping", {"n": 1})
        assert second.qsize() == 1
        assert other.empty()

    async def test_full_queue_drops_oldest(self):
        hub = Broadcaster(queue_size=2)
        queue = hub.subscribe("a")
        for n in range(3):
            await hub.publish("a", "tick", {"n": n})
        assert [queue.get_nowait()["data"]["n"] for _ in range(2)] == [1, 2]

    async def test_subscription_context_unsubscribes(self):
        hub = Broadcaster()
        async with hub.subscription("a"):
            assert hub.subscriber_count("a") == 1
        assert hub.subscriber_count("a") == 0
        assert await hub.publish("a", "late", {}) == 0

    async def test_created_notification_pushed_to_owner_on_commit(self, db, test_employee):
        async with broadcaster.subscription(user_channel(test_employee["id"])) as queue:
            notification = await _notify(db, test_employee["id"], title="Payslip ready")
            assert queue.empty()
            await db.commit()
            message = await asyncio.wait_for(queue.get(), timeout=1)
        assert message["event"] == "notification.created"
        assert message["data"]["id"] == str(notification.id)
        assert message["data"]["title"] == "Payslip ready"

    async def test_rolled_back_notification_never_pushed(self, db, test_employee):
        async with broadcaster.subscription(user_channel(test_employee["id"])) as queue:
            await _notify(db, test_employee["id"], title="Never sent")
            await db.rollback()
            await db.commit()
            assert queue.empty()
        assert pending_events(db) == []

    async def test_savepoint_rollback_drops_only_its_events(self, db, test_employee):
        async with broadcaster.subscription(user_channel(test_employee["id"])) as queue:
            await _notify(db, test_employee["id"], title="Kept")
            with pytest.raises(RuntimeError):
                async with db.begin_nested():
                    await _notify(db, test_employee["id"], title="Dropped")
                    raise RuntimeError("row failed")
            assert [e[2]["title"] for e in pending_events(db)] == ["Kept"]
            await db.commit()
            titles = [queue.get_nowait()["data"]["title"] for _ in range(queue.qsize())]
        assert titles == ["Kept"]

    async def test_released_savepoint_waits_for_outer_commit(self, db, test_employee):
        async with broadcaster.subscription(user_channel(test_employee["id"])) as queue:
            async with db.begin_nested():
                await _notify(db, test_employee["id"], title="Row imported")
            assert queue.empty()
            await db.commit()
            titles = [queue.get_nowait()["data"]["title"] for _ in range(queue.qsize())]
        assert titles == ["Row imported"]

    async def test_import_completed_pushed_after_commit(self, db, test_employee):
        summary = {"created": 2, "updated": 1, "skipped": 0, "errors": []}
        async with broadcaster.subscription(user_channel(test_employee["id"])) as queue:
            await notify_import_completed(db, test_employee["id"], "employees", summary)
            assert queue.empty()
            await db.commit()
            events = [queue.get_nowait()["event"] for _ in range(queue.qsize())]
        assert events == ["notification.created", "import.completed"]


class TestChannelAuthorization:

    @pytest.fixture
    def employee(self):
        return Employee(id=uuid.uuid4(), staff_id="0001", first_name="Aye")

    def test_public_channel(self, employee):
        assert can_subscribe(employee, UserRole.employee, EMPLOYEE_ACTIONS_CHANNEL)

    def test_private_channel_owner_only(self, employee):
        assert can_subscribe(employee, UserRole.employee, user_channel(employee.id))
        assert not can_subscribe(employee, UserRole.system_admin, user_channel(uuid.uuid4()))

    def test_payroll_progress_needs_payroll_read(self, employee):
        channel = payroll_batch_channel(uuid.uuid4())
        assert not can_subscribe(employee, UserRole.manager, channel)
        assert can_subscribe(employee, UserRole.hr_admin, channel)

    def test_unknown_channel(self, employee):
        assert not can_subscribe(employee, UserRole.system_admin, "private-admin")


class TestSocketAuthentication:

    async def test_valid_token_resolves_employee_and_role(self, db, hr_employee):
        headers = await auth_headers_for(db, hr_employee["id"], UserRole.hr_admin)
        token = headers["Authorization"].removeprefix("Bearer ")

        resolved = await authenticate_socket(token, TestSessionFactory)

        assert resolved is not None
        employee, role = resolved
        assert employee.id == hr_employee["id"]
        assert role is UserRole.hr_admin

    async def test_invalid_token_is_none(self):
        assert await authenticate_socket("nope", TestSessionFactory) is None

    async def test_socket_route_holds_no_request_session(self, app):
        route = next(r for r in app.routes if r.path == "/api/v1/ws")
        assert get_db not in {dep.call for dep in route.dependant.dependencies}


# ═════════════════════════════════════════════════════════════════════
# INBOX
# ═════════════════════════════════════════════════════════════════════


class TestInbox:

    async def test_list_with_unread_count(self, client, db, auth_headers, test_employee, hr_employee):
        await _notify(db, test_employee["id"], title="One")
        await _notify(db, test_employee["id"], title="Two", type=NotificationType.alert)
        await _notify(db, hr_employee["id"], title="Not mine")

        resp = await client.get(BASE, headers=auth_headers)
        body = resp.json()
        assert sorted(n["title"] for n in body["data"]) == ["One", "Two"]
        assert body["pagination"]["unread"] == 2

        resp = await client.get(BASE, params={"type": "alert"}, headers=auth_headers)
        assert [n["title"] for n in resp.json()["data"]] == ["Two"]

    async def test_category_filter(self, client, db, auth_headers, test_employee):
        await _notify(db, test_employee["id"], title="Leave", category=NotificationCategory.leave)
        await _notify(db, test_employee["id"], title="Travel", category=NotificationCategory.travel)

        resp = await client.get(BASE, params={"category": "travel"}, headers=auth_headers)
        assert [n["title"] for n in resp.json()["data"]] == ["Travel"]

    async def test_mark_read_and_read_all(self, client, db, auth_headers, test_employee):
        first = await _notify(db, test_employee["id"])
        await _notify(db, test_employee["id"])
        await _notify(db, test_employee["id"])

        resp = await client.put(f"{BASE}/{first.id}/read", headers=auth_headers)
        assert resp.json()["data"]["is_read"] is True

        resp = await client.get(f"{BASE}/unread-count", headers=auth_headers)
        assert resp.json()["data"]["count"] == 2

        resp = await client.put(f"{BASE}/read-all", headers=auth_headers)
        assert resp.json()["data"]["count"] == 2
        resp = await client.get(f"{BASE}/unread-count", headers=auth_headers)
        assert resp.json()["data"]["count"] == 0

    async def test_cannot_touch_someone_elses(self, client, db, auth_headers, hr_employee):
        theirs = await _notify(db, hr_employee["id"])
        assert (await client.put(f"{BASE}/{theirs.id}/read", headers=auth_headers)).status_code == 403
        assert (await client.delete(f"{BASE}/{theirs.id}", headers=auth_headers)).status_code == 403

    async def test_delete(self, client, db, auth_headers, test_employee):
        mine = await _notify(db, test_employee["id"])
        assert (await client.delete(f"{BASE}/{mine.id}", headers=auth_headers)).status_code == 200
        assert (await client.delete(f"{BASE}/{mine.id}", headers=auth_headers)).status_code == 404

    async def test_requires_authentication(self, client):
        resp = await client.get(BASE)
        assert resp.status_code == 401
