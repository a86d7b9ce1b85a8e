"""
Notification endpoints: list, mark read, and the live WebSocket feed.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from hrtrack.core.deps import get_db, get_current_user, resolve_employee
from hrtrack.models.employee import Employee
from hrtrack.schemas.notification import NotificationListResponse, NotificationOut
from hrtrack.services import notification_service
from hrtrack.services.realtime import stop_task

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(notification_service.DEFAULT_LIST_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Newest notifications of the caller"""
    return {
        "items": notification_service.list_notifications(db, current_user.id, limit),
        "unread_count": notification_service.count_unread(db, current_user.id),
    }


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """404 unless the notification belongs to the caller"""
    return notification_service.mark_read(db, notification_id, current_user.id)


@router.websocket("/ws")
async def notifications_ws(
    websocket: WebSocket,
    token: str = Query(...),
    db: Session = Depends(get_db),
):
    """
    Live feed of the caller's notifications.

    Authenticates with `?token=<JWT>` and then pushes `{"event": "new-notification", "data": {...}}`
    messages. Anything the client sends is ignored.
    """
    try:
        employee_id = resolve_employee(db, token).id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # the socket outlives the request; do not hold a connection for it
        db.close()

    manager = websocket.app.state.realtime
    # subscribe before accepting so nothing published after the handshake is missed
    queue = manager.subscribe(employee_id)
    sender = None

    async def _pump():
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    try:
        await websocket.accept()
        logger.info("live feed connected: employee_id=%s", employee_id)
        sender = asyncio.create_task(_pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if sender is not None:
            await stop_task(sender)
        manager.unsubscribe(employee_id, queue)
        logger.info("live feed disconnected: employee_id=%s", employee_id)
