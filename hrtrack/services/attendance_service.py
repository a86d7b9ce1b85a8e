"""
Attendance service: check-in, breaks and check-out for one employee-day, plus read views.

Every mutating operation receives `now` once and derives the work date from it once.
Timestamps are stored in UTC; the work date is the local calendar date (settings.APP_TIMEZONE).
"""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Dict, Any

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from hrtrack.core.errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    BreakAlreadyActive,
    BreakInProgress,
    InvalidRange,
    NoActiveBreak,
    NotCheckedIn,
)
from hrtrack.models.attendance import (
    AttendanceBreak,
    AttendanceRecord,
    AttendanceState,
    AttendanceStatus,
    BreakType,
)
from hrtrack.models.employee import Employee
from hrtrack.utils.datetime_utils import ensure_utc, get_work_date, minutes_between
from hrtrack.utils.pagination import paginate

logger = logging.getLogger(__name__)


def sum_break_minutes(breaks: Iterable[AttendanceBreak]) -> int:
    """Total of all closed break durations. Open breaks contribute nothing."""
    return sum(b.duration_minutes or 0 for b in breaks if b.ended_at is not None)


def get_attendance_state(record: Optional[AttendanceRecord]) -> AttendanceState:
    """Derive the state machine position of an employee-day from its record."""
    if record is None or record.check_in_at is None:
        return AttendanceState.NOT_STARTED
    if record.check_out_at is not None:
        return AttendanceState.CHECKED_OUT
    if record.open_break is not None:
        return AttendanceState.ON_BREAK
    return AttendanceState.CHECKED_IN


def _record_for_day(db: Session, employee_id: int, work_date: date, lock: bool = False) -> Optional[AttendanceRecord]:
    query = (
        db.query(AttendanceRecord)
        .options(selectinload(AttendanceRecord.breaks))
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date == work_date,
        )
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def check_in(db: Session, employee_id: int, now: datetime) -> AttendanceRecord:
    """
    Start the employee-day.

    Raises:
        AlreadyCheckedIn: a record already exists for today (including a concurrent insert
            rejected by the (employee_id, work_date) unique constraint)
    """
    work_date = get_work_date(now)

    if _record_for_day(db, employee_id, work_date) is not None:
        raise AlreadyCheckedIn()

    record = AttendanceRecord(
        employee_id=employee_id,
        work_date=work_date,
        check_in_at=ensure_utc(now),
        status=AttendanceStatus.PRESENT,
        total_break_minutes=0,
        working_minutes=0,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("check_in lost race: employee_id=%s work_date=%s", employee_id, work_date)
        raise AlreadyCheckedIn()
    db.refresh(record)

    logger.info("check_in: employee_id=%s work_date=%s record_id=%s", employee_id, work_date, record.id)
    return record


def start_break(
    db: Session,
    employee_id: int,
    now: datetime,
    break_type: BreakType = BreakType.SHORT_BREAK,
) -> AttendanceRecord:
    """
    Open a break on today's record.

    Raises:
        NotCheckedIn, AlreadyCheckedOut, BreakAlreadyActive
    """
    work_date = get_work_date(now)
    record = _record_for_day(db, employee_id, work_date, lock=True)

    if record is None or record.check_in_at is None:
        raise NotCheckedIn()
    if record.check_out_at is not None:
        raise AlreadyCheckedOut()
    if record.open_break is not None:
        raise BreakAlreadyActive()

    db.add(AttendanceBreak(
        attendance_id=record.id,
        started_at=ensure_utc(now),
        break_type=break_type,
    ))
    try:
        db.commit()
    except IntegrityError:
        # partial unique index: another request opened a break first
        db.rollback()
        raise BreakAlreadyActive()
    db.refresh(record)

    logger.info(
        "break start: employee_id=%s record_id=%s break_type=%s",
        employee_id, record.id, break_type.value,
    )
    return record


def end_break(db: Session, employee_id: int, now: datetime) -> AttendanceRecord:
    """
    Close the open break and recompute the record's total from all breaks.

    Raises:
        NotCheckedIn, NoActiveBreak
    """
    work_date = get_work_date(now)
    record = _record_for_day(db, employee_id, work_date, lock=True)

    if record is None or record.check_in_at is None:
        raise NotCheckedIn()

    active = record.open_break
    if active is None:
        raise NoActiveBreak()

    ended_at = ensure_utc(now)
    duration = minutes_between(active.started_at, ended_at)

    # compare-and-swap on the open break so two concurrent end calls cannot both close it
    closed = (
        db.query(AttendanceBreak)
        .filter(AttendanceBreak.id == active.id, AttendanceBreak.ended_at.is_(None))
        .update(
            {AttendanceBreak.ended_at: ended_at, AttendanceBreak.duration_minutes: duration},
            synchronize_session=False,
        )
    )
    if closed == 0:
        db.rollback()
        raise NoActiveBreak()

    # the bulk update bypassed the identity map
    db.expire(active)
    db.expire(record, ["breaks"])
    record.total_break_minutes = sum_break_minutes(record.breaks)
    db.commit()
    db.refresh(record)

    logger.info(
        "break end: employee_id=%s record_id=%s duration=%s total_break_minutes=%s",
        employee_id, record.id, duration, record.total_break_minutes,
    )
    return record


def check_out(db: Session, employee_id: int, now: datetime) -> AttendanceRecord:
    """
    Close the employee-day and derive working minutes.

    An open break refuses the check-out; it is never closed automatically.

    Raises:
        NotCheckedIn, AlreadyCheckedOut, BreakInProgress
    """
    work_date = get_work_date(now)
    record = _record_for_day(db, employee_id, work_date, lock=True)

    if record is None or record.check_in_at is None:
        raise NotCheckedIn()
    if record.check_out_at is not None:
        raise AlreadyCheckedOut()
    if record.open_break is not None:
        raise BreakInProgress()

    check_out_at = ensure_utc(now)
    working_minutes = minutes_between(record.check_in_at, check_out_at) - record.total_break_minutes
    if working_minutes < 0:
        logger.warning(
            "negative working time: record_id=%s check_in_at=%s check_out_at=%s total_break_minutes=%s",
            record.id, record.check_in_at, check_out_at, record.total_break_minutes,
        )

    open_break_exists = exists().where(
        AttendanceBreak.attendance_id == record.id,
        AttendanceBreak.ended_at.is_(None),
    )
    updated = (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.id == record.id,
            AttendanceRecord.check_out_at.is_(None),
            ~open_break_exists,
        )
        .update(
            {
                AttendanceRecord.check_out_at: check_out_at,
                AttendanceRecord.working_minutes: working_minutes,
            },
            synchronize_session=False,
        )
    )
    if updated == 0:
        # state changed between the read and the write; report what it changed to
        db.rollback()
        db.refresh(record)
        if record.check_out_at is not None:
            raise AlreadyCheckedOut()
        raise BreakInProgress()

    db.commit()
    db.refresh(record)

    logger.info(
        "check_out: employee_id=%s record_id=%s working_minutes=%s total_break_minutes=%s",
        employee_id, record.id, record.working_minutes, record.total_break_minutes,
    )
    return record


# --- Read views ---


def get_today_record(db: Session, employee_id: int, now: datetime) -> Optional[AttendanceRecord]:
    """Today's record for the employee, or None before check-in."""
    return _record_for_day(db, employee_id, get_work_date(now))


def get_employee_day(db: Session, employee_id: int, day: date) -> Optional[AttendanceRecord]:
    """Record of one employee for a given calendar date."""
    return _record_for_day(db, employee_id, day)


def _validate_range(from_date: Optional[date], to_date: Optional[date]) -> None:
    if from_date is not None and to_date is not None and from_date > to_date:
        raise InvalidRange("from must be less than or equal to to")


def list_history(
    db: Session,
    employee_id: int,
    from_date: Optional[date],
    to_date: Optional[date],
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """Own attendance history, newest first."""
    _validate_range(from_date, to_date)
    query = (
        db.query(AttendanceRecord)
        .options(selectinload(AttendanceRecord.breaks))
        .filter(AttendanceRecord.employee_id == employee_id)
    )
    if from_date is not None:
        query = query.filter(AttendanceRecord.work_date >= from_date)
    if to_date is not None:
        query = query.filter(AttendanceRecord.work_date <= to_date)
    return paginate(query.order_by(AttendanceRecord.work_date.desc()), page, limit)


def admin_list_today(
    db: Session,
    now: datetime,
    department_id: Optional[int] = None,
) -> List[AttendanceRecord]:
    """All records for today's work date, earliest check-in first."""
    query = (
        db.query(AttendanceRecord)
        .options(
            selectinload(AttendanceRecord.breaks),
            joinedload(AttendanceRecord.employee).joinedload(Employee.department),
        )
        .join(Employee, AttendanceRecord.employee_id == Employee.id)
        .filter(AttendanceRecord.work_date == get_work_date(now))
    )
    if department_id is not None:
        query = query.filter(Employee.department_id == department_id)
    return query.order_by(AttendanceRecord.check_in_at.asc()).all()


def admin_list(
    db: Session,
    from_date: Optional[date],
    to_date: Optional[date],
    page: int,
    limit: int,
    employee_id: Optional[int] = None,
    department_id: Optional[int] = None,
) -> Dict[str, Any]:
    """All employees' records with optional date range, employee and department filters."""
    _validate_range(from_date, to_date)
    query = (
        db.query(AttendanceRecord)
        .options(
            selectinload(AttendanceRecord.breaks),
            joinedload(AttendanceRecord.employee).joinedload(Employee.department),
        )
        .join(Employee, AttendanceRecord.employee_id == Employee.id)
    )
    if from_date is not None:
        query = query.filter(AttendanceRecord.work_date >= from_date)
    if to_date is not None:
        query = query.filter(AttendanceRecord.work_date <= to_date)
    if employee_id is not None:
        query = query.filter(AttendanceRecord.employee_id == employee_id)
    if department_id is not None:
        query = query.filter(Employee.department_id == department_id)
    query = query.order_by(AttendanceRecord.work_date.desc(), AttendanceRecord.check_in_at.asc())
    return paginate(query, page, limit)
