"""
Attendance endpoints: check-in, breaks and check-out for the caller's current day.
Every call reads the clock once and hands that instant to the service.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hrtrack.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrtrack.core.deps import get_db, get_current_user
from hrtrack.models.employee import Employee
from hrtrack.schemas.attendance import (
    AttendanceListResponse,
    AttendanceOut,
    StartBreakRequest,
    TodayAttendanceResponse,
)
from hrtrack.services import attendance_service
from hrtrack.utils.datetime_utils import get_work_date, now_utc

router = APIRouter()


@router.post("/check-in", response_model=AttendanceOut, status_code=201)
async def check_in(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Start today's attendance. 409 if a record already exists for today."""
    return attendance_service.check_in(db, current_user.id, now_utc())


@router.post("/check-out", response_model=AttendanceOut)
async def check_out(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Close today's attendance.

    Refused while a break is open; the break must be ended first.
    """
    return attendance_service.check_out(db, current_user.id, now_utc())


@router.post("/break/start", response_model=AttendanceOut)
async def start_break(
    body: Optional[StartBreakRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    payload = body or StartBreakRequest()
    return attendance_service.start_break(db, current_user.id, now_utc(), payload.break_type)


@router.post("/break/end", response_model=AttendanceOut)
async def end_break(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return attendance_service.end_break(db, current_user.id, now_utc())


@router.get("/today", response_model=TodayAttendanceResponse)
async def today(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Today's record (null before check-in) and the derived state."""
    now = now_utc()
    record = attendance_service.get_today_record(db, current_user.id, now)
    return TodayAttendanceResponse(
        state=attendance_service.get_attendance_state(record),
        work_date=get_work_date(now),
        attendance=AttendanceOut.model_validate(record) if record is not None else None,
    )


@router.get("/history", response_model=AttendanceListResponse)
async def history(
    from_date: Optional[date] = Query(None, alias="from", description="First work date (inclusive)"),
    to_date: Optional[date] = Query(None, alias="to", description="Last work date (inclusive)"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """The caller's own records, newest first."""
    return attendance_service.list_history(db, current_user.id, from_date, to_date, page, limit)
