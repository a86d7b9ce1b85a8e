"""
Leave endpoints for the requesting employee
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hrtrack.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrtrack.core.deps import get_db, get_current_user
from hrtrack.models.employee import Employee
from hrtrack.models.leave import LeaveStatus
from hrtrack.schemas.leave import LeaveApplyRequest, LeaveListResponse, LeaveOut, LeaveStatsResponse
from hrtrack.services import leave_service
from hrtrack.utils.datetime_utils import get_work_date, now_utc

router = APIRouter()


@router.post("", response_model=LeaveOut, status_code=201)
async def apply_leave(
    body: LeaveApplyRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Apply for leave

    Start may be today but not earlier. Overlapping a PENDING or APPROVED request is a 409.
    """
    return leave_service.apply_leave(
        db,
        current_user.id,
        body.start_date,
        body.end_date,
        body.reason,
        body.leave_type,
        now_utc(),
    )


@router.get("/my", response_model=LeaveListResponse)
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return leave_service.list_my_leaves(db, current_user.id, status, page, limit)


@router.get("/stats", response_model=LeaveStatsResponse)
async def leave_stats(
    year: Optional[int] = Query(None, ge=1970, le=9999, description="Calendar year; defaults to the current one"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Count and total days per status for the caller's requests starting in `year`."""
    year = year or get_work_date(now_utc()).year
    return LeaveStatsResponse(year=year, stats=leave_service.get_leave_stats(db, current_user.id, year))
