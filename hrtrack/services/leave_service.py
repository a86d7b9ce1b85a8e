"""
Leave service - business logic for leave requests and their approval
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from hrtrack.core.errors import AlreadyDecided, InvalidRange, NotFound, OverlappingRequest, PastDate
from hrtrack.models.department import Department
from hrtrack.models.employee import Employee
from hrtrack.models.leave import BLOCKING_LEAVE_STATUSES, DECISION_STATUSES, LeaveRequest, LeaveStatus, LeaveType
from hrtrack.models.notification import NotificationType
from hrtrack.services.notification_service import NotificationEmitter
from hrtrack.utils.datetime_utils import ensure_utc, get_work_date
from hrtrack.utils.pagination import paginate

logger = logging.getLogger(__name__)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Closed-interval overlap of two inclusive date ranges."""
    return a_start <= b_end and b_start <= a_end


def validate_overlap(db: Session, employee_id: int, start_date: date, end_date: date) -> None:
    """
    Reject a range that intersects one of the employee's PENDING or APPROVED requests.

    REJECTED requests never block a new application.

    Raises:
        OverlappingRequest
    """
    overlapping = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(BLOCKING_LEAVE_STATUSES),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        .first()
    )
    if overlapping is not None:
        logger.info(
            "leave overlap: employee_id=%s new=%s..%s existing_id=%s (%s..%s, %s)",
            employee_id, start_date, end_date, overlapping.id,
            overlapping.start_date, overlapping.end_date, overlapping.status.value,
        )
        raise OverlappingRequest()


def apply_leave(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    reason: str,
    leave_type: LeaveType,
    now: datetime,
) -> LeaveRequest:
    """
    Create a PENDING leave request.

    The employee row is locked before the overlap check so two concurrent applications of the
    same employee are serialized. SQLite ignores FOR UPDATE; there a narrow race between
    check and insert remains.

    Raises:
        InvalidRange: start_date is after end_date
        PastDate: start_date is before today's work date
        OverlappingRequest: intersects a PENDING or APPROVED request
        NotFound: unknown employee
    """
    if start_date > end_date:
        raise InvalidRange()

    today = get_work_date(now)
    if start_date < today:
        raise PastDate()

    employee = db.query(Employee).filter(Employee.id == employee_id).with_for_update().first()
    if employee is None:
        raise NotFound("Employee not found")

    validate_overlap(db, employee_id, start_date, end_date)

    leave = LeaveRequest(
        employee_id=employee_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason,
        leave_type=leave_type,
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave applied: id=%s employee_id=%s %s..%s type=%s",
        leave.id, employee_id, start_date, end_date, leave_type.value,
    )
    return leave


def _decision_message(leave: LeaveRequest, decision: LeaveStatus) -> str:
    verb = "approved" if decision == LeaveStatus.APPROVED else "rejected"
    return (
        f"Your leave request from {leave.start_date.isoformat()} "
        f"to {leave.end_date.isoformat()} has been {verb}."
    )


def decide_leave(
    db: Session,
    leave_request_id: int,
    decision: LeaveStatus,
    admin: Employee,
    emitter: NotificationEmitter,
    now: datetime,
) -> LeaveRequest:
    """
    Move a PENDING request to APPROVED or REJECTED and notify the employee.

    The decision is irreversible. The status change is a conditional UPDATE on
    status = PENDING, so of two concurrent decisions only one wins.

    Raises:
        NotFound: no such request
        AlreadyDecided: request is not PENDING
        ValueError: decision is not APPROVED or REJECTED
    """
    if decision not in DECISION_STATUSES:
        raise ValueError("Status can only be APPROVED or REJECTED")

    leave = (
        db.query(LeaveRequest)
        .options(joinedload(LeaveRequest.employee))
        .filter(LeaveRequest.id == leave_request_id)
        .first()
    )
    if leave is None:
        raise NotFound("No leave found with that ID")
    if leave.status != LeaveStatus.PENDING:
        raise AlreadyDecided()

    updated = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == leave_request_id, LeaveRequest.status == LeaveStatus.PENDING)
        .update(
            {
                LeaveRequest.status: decision,
                LeaveRequest.approved_by_id: admin.id,
                LeaveRequest.decided_at: ensure_utc(now),
            },
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        raise AlreadyDecided()
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave decided: id=%s employee_id=%s status=%s by admin_id=%s",
        leave.id, leave.employee_id, decision.value, admin.id,
    )

    approved = decision == LeaveStatus.APPROVED
    emitter.notify(
        db,
        recipient_id=leave.employee_id,
        title="Leave Approved" if approved else "Leave Rejected",
        message=_decision_message(leave, decision),
        type=NotificationType.LEAVE_APPROVAL if approved else NotificationType.LEAVE_REJECTION,
        related_id=leave.id,
        metadata={
            "leave_id": leave.id,
            "start_date": leave.start_date,
            "end_date": leave.end_date,
            "leave_type": leave.leave_type,
            "status": decision,
        },
        extra_payload={
            "employee": {"name": leave.employee.name, "email": leave.employee.email},
        },
        now=now,
    )
    return leave


# --- Read views ---


def _leave_query(db: Session):
    return db.query(LeaveRequest).options(
        joinedload(LeaveRequest.employee).joinedload(Employee.department),
        joinedload(LeaveRequest.approved_by),
    )


def list_my_leaves(
    db: Session,
    employee_id: int,
    status: Optional[LeaveStatus],
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """The employee's own requests, newest first."""
    query = _leave_query(db).filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    query = query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    return paginate(query, page, limit)


def list_leaves(
    db: Session,
    status: Optional[LeaveStatus],
    employee_id: Optional[int],
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """All requests for admins, newest first."""
    query = _leave_query(db)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    query = query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    return paginate(query, page, limit)


def list_today_leaves(
    db: Session,
    now: datetime,
    department: Optional[str],
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """
    APPROVED requests covering today's work date.

    `department` is a case-insensitive substring of the department name. The result carries a
    per-department breakdown (requests and distinct employees) over the whole filtered set.
    """
    today = get_work_date(now)
    filters = [
        LeaveRequest.status == LeaveStatus.APPROVED,
        LeaveRequest.start_date <= today,
        LeaveRequest.end_date >= today,
    ]
    if department:
        filters.append(Department.name.ilike(f"%{department}%"))

    query = (
        _leave_query(db)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .outerjoin(Department, Employee.department_id == Department.id)
        .filter(*filters)
        .order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc())
    )
    result = paginate(query, page, limit)

    breakdown_rows = (
        db.query(
            Department.name,
            func.count(LeaveRequest.id),
            func.count(func.distinct(LeaveRequest.employee_id)),
        )
        .select_from(LeaveRequest)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .outerjoin(Department, Employee.department_id == Department.id)
        .filter(*filters)
        .group_by(Department.name)
        .order_by(Department.name)
        .all()
    )
    result["department_breakdown"] = [
        {"department": name, "count": count, "employee_count": employee_count}
        for name, count, employee_count in breakdown_rows
    ]
    return result


def get_leave_stats(db: Session, employee_id: int, year: int) -> Dict[LeaveStatus, Dict[str, int]]:
    """
    Count and inclusive day total per status for requests starting in `year`.

    Every status is present in the result, zeroed when the employee has no such request.
    """
    leaves: List[LeaveRequest] = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.start_date <= date(year, 12, 31),
        )
        .all()
    )

    stats = {s: {"count": 0, "total_days": 0} for s in LeaveStatus}
    for leave in leaves:
        stats[leave.status]["count"] += 1
        stats[leave.status]["total_days"] += leave.total_days
    return stats
