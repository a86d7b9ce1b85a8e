"""
Tests for the in-process real-time channel and the WebSocket feed
"""
import asyncio
import gc
from datetime import timedelta

import pytest
from fastapi import WebSocketDisconnect

from hrtrack.core.deps import get_publisher
from hrtrack.main import app
from hrtrack.services.realtime import ConnectionManager, stop_task
from hrtrack.utils.datetime_utils import get_work_date, now_utc


def test_publish_reaches_every_session_of_recipient():
    async def scenario():
        manager = ConnectionManager()
        first = manager.subscribe(5)
        second = manager.subscribe(5)
        other = manager.subscribe(6)

        assert manager.publish(5, "new-notification", {"id": 1}) == 2

        for queue in (first, second):
            message = await asyncio.wait_for(queue.get(), timeout=1)
            assert message == {"event": "new-notification", "data": {"id": 1}}
        assert other.empty()

    asyncio.run(scenario())


def test_publish_without_subscribers_is_a_noop():
    assert ConnectionManager().publish(42, "new-notification", {}) == 0


def test_unsubscribe_removes_session():
    async def scenario():
        manager = ConnectionManager()
        queue = manager.subscribe(5)
        manager.unsubscribe(5, queue)
        assert manager.connection_count(5) == 0
        assert manager.publish(5, "new-notification", {}) == 0

    asyncio.run(scenario())


def test_stop_task_reaps_a_failed_sender():
    reported = []

    async def failing_send():
        raise RuntimeError("client went away")

    async def scenario():
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: reported.append(context))
        task = asyncio.create_task(failing_send())
        await asyncio.sleep(0)
        assert task.done()

        await stop_task(task)
        del task
        gc.collect()

    asyncio.run(scenario())
    assert reported == []


def test_stop_task_cancels_a_running_sender():
    async def scenario():
        task = asyncio.create_task(asyncio.Queue().get())
        await asyncio.sleep(0)
        await stop_task(task)
        return task.cancelled()

    assert asyncio.run(scenario())


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/notifications/ws?token=not-a-jwt"):
            pass


def test_websocket_receives_leave_decision(client, employee_headers, admin_headers, test_employee):
    employee_id = test_employee.id
    token = employee_headers["Authorization"].split(" ", 1)[1]
    start = (get_work_date(now_utc()) + timedelta(days=3)).isoformat()
    leave_id = client.post(
        "/api/v1/leaves",
        json={"start_date": start, "end_date": start, "reason": "Medical appointment", "leave_type": "SICK_LEAVE"},
        headers=employee_headers,
    ).json()["id"]

    # deliver through the application's own channel
    app.dependency_overrides.pop(get_publisher, None)

    with client.websocket_connect(f"/api/v1/notifications/ws?token={token}") as ws:
        response = client.patch(f"/api/v1/admin/leaves/{leave_id}", json={"status": "APPROVED"}, headers=admin_headers)
        assert response.status_code == 200

        message = ws.receive_json()

    assert message["event"] == "new-notification"
    assert message["data"]["user_id"] == employee_id
    assert message["data"]["type"] == "LEAVE_APPROVAL"
    assert message["data"]["related_id"] == leave_id
    assert message["data"]["metadata"]["status"] == "APPROVED"
