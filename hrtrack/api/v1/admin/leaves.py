"""
Admin leave endpoints: list, today's absences and the approve/reject decision.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hrtrack.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrtrack.core.deps import get_db, get_notification_emitter, require_admin
from hrtrack.models.employee import Employee
from hrtrack.models.leave import LeaveStatus
from hrtrack.schemas.leave import LeaveDecisionRequest, LeaveListResponse, LeaveOut, TodayLeavesResponse
from hrtrack.services import leave_service
from hrtrack.services.notification_service import NotificationEmitter
from hrtrack.utils.datetime_utils import now_utc

router = APIRouter()


@router.get("", response_model=LeaveListResponse)
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    return leave_service.list_leaves(db, status, employee_id, page, limit)


@router.get("/today", response_model=TodayLeavesResponse)
async def list_today_leaves(
    department: Optional[str] = Query(None, description="Department name (case-insensitive substring)"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """Approved leave covering today, with a per-department breakdown."""
    return leave_service.list_today_leaves(db, now_utc(), department, page, limit)


@router.patch("/{leave_id}", response_model=LeaveOut)
async def decide_leave(
    leave_id: int,
    body: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Approve or reject a pending request.

    The employee is notified; 409 when the request was already decided.
    """
    return leave_service.decide_leave(db, leave_id, body.status, current_user, emitter, now_utc())
