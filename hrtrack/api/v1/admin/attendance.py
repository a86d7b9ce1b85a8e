"""
Admin attendance endpoints: today's board, filtered history, one employee's day and
per-department presence.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hrtrack.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrtrack.core.deps import get_db, require_admin
from hrtrack.core.errors import NotFound
from hrtrack.models.employee import Employee
from hrtrack.schemas.attendance import (
    AdminAttendanceListResponse,
    AdminAttendanceOut,
    DepartmentAttendanceOut,
)
from hrtrack.services import attendance_service, report_service
from hrtrack.services.employee_service import get_employee
from hrtrack.utils.datetime_utils import get_work_date, now_utc

router = APIRouter()


@router.get("/today", response_model=List[AdminAttendanceOut])
async def list_today(
    department_id: Optional[int] = Query(None, description="Restrict to one department"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """Every record of today's work date, earliest check-in first."""
    return attendance_service.admin_list_today(db, now_utc(), department_id)


@router.get("", response_model=AdminAttendanceListResponse)
async def list_attendance(
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    employee_id: Optional[int] = Query(None),
    department_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    return attendance_service.admin_list(
        db, from_date, to_date, page, limit,
        employee_id=employee_id, department_id=department_id,
    )


@router.get("/employees/{employee_id}", response_model=AdminAttendanceOut)
async def employee_day(
    employee_id: int,
    day: Optional[date] = Query(None, description="Work date; defaults to today"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """One employee's record for a day. 404 when the employee has no record that day."""
    get_employee(db, employee_id)
    record = attendance_service.get_employee_day(db, employee_id, day or get_work_date(now_utc()))
    if record is None:
        raise NotFound("No attendance record for that day")
    return record


@router.get("/departments", response_model=List[DepartmentAttendanceOut])
async def department_summary(
    day: Optional[date] = Query(None, description="Work date; defaults to today"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    return report_service.get_department_attendance_summary(db, day or get_work_date(now_utc()))
