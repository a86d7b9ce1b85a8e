"""
Report service - read-only aggregates over attendance and leave records
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session, selectinload

from hrtrack.models.attendance import AttendanceRecord, AttendanceStatus
from hrtrack.models.department import Department
from hrtrack.models.employee import Employee
from hrtrack.models.leave import LeaveRequest, LeaveStatus
from hrtrack.services.employee_service import get_employee
from hrtrack.utils.datetime_utils import get_work_date

logger = logging.getLogger(__name__)

HISTORY_DAYS = 7


def _round_half_up(value: Optional[float]) -> int:
    if value is None:
        return 0
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_employee_overview(db: Session, employee_id: int, now: datetime) -> Dict[str, Any]:
    """
    Profile view of one employee: today's record, the last week of records and an
    attendance rate since the join date.

    Raises:
        NotFound: unknown employee
    """
    employee = get_employee(db, employee_id)
    today = get_work_date(now)

    history: List[AttendanceRecord] = (
        db.query(AttendanceRecord)
        .options(selectinload(AttendanceRecord.breaks))
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date >= today - timedelta(days=HISTORY_DAYS),
            AttendanceRecord.work_date <= today,
        )
        .order_by(AttendanceRecord.work_date.desc())
        .all()
    )
    today_record = next((r for r in history if r.work_date == today), None)

    present_days = sum(
        1 for r in history
        if r.status == AttendanceStatus.PRESENT or (r.check_in_at is not None and r.check_out_at is not None)
    )
    total_days = max((today - employee.join_date).days + 1, 0)
    attendance_rate = _round_half_up(present_days * 100 / total_days) if total_days > 0 else 0

    return {
        "employee": employee,
        "today": today_record,
        "history": history,
        "stats": {
            "total_days": total_days,
            "present_days": present_days,
            "attendance_rate": attendance_rate,
        },
    }


def _month_bounds(day: date):
    first = day.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


def get_employee_stats(db: Session, employee_id: int, now: datetime) -> Dict[str, Any]:
    """
    Current-month attendance and current-year approved leave for one employee.

    Raises:
        NotFound: unknown employee
    """
    get_employee(db, employee_id)
    today = get_work_date(now)
    month_start, month_end = _month_bounds(today)

    present, absent, avg_working = (
        db.query(
            func.count(AttendanceRecord.id).filter(AttendanceRecord.status == AttendanceStatus.PRESENT),
            func.count(AttendanceRecord.id).filter(AttendanceRecord.status == AttendanceStatus.ABSENT),
            func.avg(AttendanceRecord.working_minutes).filter(AttendanceRecord.check_out_at.isnot(None)),
        )
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date >= month_start,
            AttendanceRecord.work_date <= month_end,
        )
        .one()
    )

    approved: List[LeaveRequest] = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.APPROVED,
            LeaveRequest.start_date >= date(today.year, 1, 1),
            LeaveRequest.start_date <= date(today.year, 12, 31),
        )
        .all()
    )

    return {
        "month": month_start.strftime("%Y-%m"),
        "year": today.year,
        "attendance": {
            "total_present": present or 0,
            "total_absent": absent or 0,
            "avg_working_minutes": _round_half_up(avg_working),
        },
        "leaves": {
            "total_leaves": len(approved),
            "total_leave_days": sum(leave.total_days for leave in approved),
        },
    }


def get_department_attendance_summary(db: Session, day: date) -> List[Dict[str, Any]]:
    """Active headcount and checked-in count per active department for `day`."""
    rows = (
        db.query(
            Department.id,
            Department.name,
            func.count(func.distinct(Employee.id)),
            func.count(func.distinct(AttendanceRecord.employee_id)),
        )
        .outerjoin(Employee, and_(Employee.department_id == Department.id, Employee.active.is_(True)))
        .outerjoin(
            AttendanceRecord,
            and_(
                AttendanceRecord.employee_id == Employee.id,
                AttendanceRecord.work_date == day,
                AttendanceRecord.check_in_at.isnot(None),
            ),
        )
        .filter(Department.active.is_(True))
        .group_by(Department.id, Department.name)
        .order_by(Department.name)
        .all()
    )
    return [
        {
            "department_id": dept_id,
            "department_name": name,
            "total_employees": headcount,
            "present": present,
            "absent": headcount - present,
        }
        for dept_id, name, headcount, present in rows
    ]
