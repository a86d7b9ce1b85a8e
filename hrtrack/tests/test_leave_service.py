"""
Tests for the leave workflow (service level, explicit clock)
"""
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import Session

from hrtrack.core.errors import AlreadyDecided, InvalidRange, NotFound, OverlappingRequest, PastDate
from hrtrack.models.department import Department
from hrtrack.models.leave import LeaveRequest, LeaveStatus, LeaveType
from hrtrack.models.notification import Notification, NotificationType
from hrtrack.schemas.leave import LeaveOut
from hrtrack.services import leave_service, notification_service
from hrtrack.services.notification_service import NotificationEmitter
from hrtrack.utils.datetime_utils import iso_local, local_tz

from conftest import RecordingPublisher, make_employee

NOW = datetime(2025, 3, 1, 10, 0, tzinfo=local_tz())
REASON = "Family function out of town"


def apply(db, employee, start, end, leave_type=LeaveType.CASUAL_LEAVE, now=NOW):
    return leave_service.apply_leave(db, employee.id, start, end, REASON, leave_type, now)


def test_apply_creates_pending_request(db: Session, test_employee):
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    assert leave.status == LeaveStatus.PENDING
    assert leave.total_days == 3
    assert leave.approved_by_id is None
    assert leave.decided_at is None


def test_start_after_end_is_invalid_range(db: Session, test_employee):
    with pytest.raises(InvalidRange):
        apply(db, test_employee, date(2025, 3, 12), date(2025, 3, 10))


def test_start_before_today_is_past_date(db: Session, test_employee):
    with pytest.raises(PastDate):
        apply(db, test_employee, date(2025, 2, 28), date(2025, 3, 2))


def test_start_today_is_allowed(db: Session, test_employee):
    leave = apply(db, test_employee, date(2025, 3, 1), date(2025, 3, 1))
    assert leave.total_days == 1


def test_overlapping_application_rejected(db: Session, test_employee):
    """10..12 then 12..14 share the 12th."""
    apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    with pytest.raises(OverlappingRequest):
        apply(db, test_employee, date(2025, 3, 12), date(2025, 3, 14))

    assert db.query(LeaveRequest).count() == 1


@pytest.mark.parametrize("start,end", [
    (date(2025, 3, 8), date(2025, 3, 10)),    # touches start
    (date(2025, 3, 11), date(2025, 3, 11)),   # inside
    (date(2025, 3, 5), date(2025, 3, 20)),    # encloses
])
def test_overlap_is_closed_interval(db: Session, test_employee, start, end):
    assert leave_service.ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), start, end)
    apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    with pytest.raises(OverlappingRequest):
        apply(db, test_employee, start, end)


def test_adjacent_ranges_do_not_overlap(db: Session, test_employee):
    assert not leave_service.ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 13), date(2025, 3, 14))
    apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    leave = apply(db, test_employee, date(2025, 3, 13), date(2025, 3, 14))
    assert leave.status == LeaveStatus.PENDING


def test_rejected_request_does_not_block(db: Session, test_employee, test_admin):
    emitter = NotificationEmitter(RecordingPublisher())
    first = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    leave_service.decide_leave(db, first.id, LeaveStatus.REJECTED, test_admin, emitter, NOW)

    again = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    assert again.status == LeaveStatus.PENDING


def test_other_employees_do_not_block(db: Session, test_employee, test_department):
    colleague = make_employee(db, "EMP002", department_id=test_department.id)
    apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    leave = apply(db, colleague, date(2025, 3, 10), date(2025, 3, 12))
    assert leave.employee_id == colleague.id


def test_approve_persists_and_notifies(db: Session, test_employee, test_admin):
    publisher = RecordingPublisher()
    emitter = NotificationEmitter(publisher)
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    decided = leave_service.decide_leave(db, leave.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    assert decided.status == LeaveStatus.APPROVED
    assert decided.approved_by_id == test_admin.id
    assert decided.decided_at is not None

    notification = db.query(Notification).one()
    assert notification.user_id == test_employee.id
    assert notification.type == NotificationType.LEAVE_APPROVAL
    assert notification.title == "Leave Approved"
    assert notification.related_id == leave.id
    assert "2025-03-10" in notification.message and "2025-03-12" in notification.message
    assert "approved" in notification.message
    assert notification.meta_json["status"] == "APPROVED"
    assert notification.meta_json["leave_type"] == "CASUAL_LEAVE"
    assert notification.meta_json["start_date"] == "2025-03-10"

    assert len(publisher.events) == 1
    recipient, event_name, payload = publisher.events[0]
    assert recipient == test_employee.id
    assert event_name == "new-notification"
    assert payload["id"] == notification.id
    assert payload["employee"]["name"] == test_employee.name


def test_reject_uses_rejection_type(db: Session, test_employee, test_admin):
    emitter = NotificationEmitter(RecordingPublisher())
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    leave_service.decide_leave(db, leave.id, LeaveStatus.REJECTED, test_admin, emitter, NOW)

    notification = db.query(Notification).one()
    assert notification.type == NotificationType.LEAVE_REJECTION
    assert notification.title == "Leave Rejected"
    assert "rejected" in notification.message


def test_second_decision_fails_and_changes_nothing(db: Session, test_employee, test_admin):
    publisher = RecordingPublisher()
    emitter = NotificationEmitter(publisher)
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    leave_service.decide_leave(db, leave.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    with pytest.raises(AlreadyDecided):
        leave_service.decide_leave(db, leave.id, LeaveStatus.REJECTED, test_admin, emitter, NOW)

    db.refresh(leave)
    assert leave.status == LeaveStatus.APPROVED
    assert db.query(Notification).count() == 1
    assert len(publisher.events) == 1


def test_decide_unknown_request_is_not_found(db: Session, test_admin):
    emitter = NotificationEmitter(RecordingPublisher())
    with pytest.raises(NotFound):
        leave_service.decide_leave(db, 9999, LeaveStatus.APPROVED, test_admin, emitter, NOW)


def test_decision_survives_publisher_failure(db: Session, test_employee, test_admin):
    emitter = NotificationEmitter(RecordingPublisher(fail=True))
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    decided = leave_service.decide_leave(db, leave.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    assert decided.status == LeaveStatus.APPROVED
    assert db.query(Notification).count() == 1


def test_leave_stats_counts_inclusive_days(db: Session, test_employee, test_admin):
    emitter = NotificationEmitter(RecordingPublisher())
    a = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))
    b = apply(db, test_employee, date(2025, 4, 1), date(2025, 4, 1))
    apply(db, test_employee, date(2025, 5, 5), date(2025, 5, 9))
    leave_service.decide_leave(db, a.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)
    leave_service.decide_leave(db, b.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    stats = leave_service.get_leave_stats(db, test_employee.id, 2025)

    assert stats[LeaveStatus.APPROVED] == {"count": 2, "total_days": 4}
    assert stats[LeaveStatus.PENDING] == {"count": 1, "total_days": 5}
    assert stats[LeaveStatus.REJECTED] == {"count": 0, "total_days": 0}
    assert leave_service.get_leave_stats(db, test_employee.id, 2024)[LeaveStatus.APPROVED]["count"] == 0


def test_today_leaves_with_department_breakdown(db: Session, test_employee, test_admin, test_department):
    sales = Department(name="Sales", active=True)
    db.add(sales)
    db.commit()
    seller = make_employee(db, "EMP003", department_id=sales.id)
    emitter = NotificationEmitter(RecordingPublisher())

    covering = apply(db, test_employee, date(2025, 3, 1), date(2025, 3, 3))
    seller_leave = apply(db, seller, date(2025, 3, 1), date(2025, 3, 1))
    future = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 10))
    apply(db, test_employee, date(2025, 3, 20), date(2025, 3, 20))  # stays pending
    for leave in (covering, seller_leave, future):
        leave_service.decide_leave(db, leave.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    result = leave_service.list_today_leaves(db, NOW, None, 1, 10)
    assert {leave.id for leave in result["items"]} == {covering.id, seller_leave.id}
    assert result["total"] == 2
    breakdown = {row["department"]: row for row in result["department_breakdown"]}
    assert breakdown["Engineering"]["count"] == 1
    assert breakdown["Sales"]["employee_count"] == 1

    filtered = leave_service.list_today_leaves(db, NOW, "sal", 1, 10)
    assert [leave.id for leave in filtered["items"]] == [seller_leave.id]
    assert [row["department"] for row in filtered["department_breakdown"]] == ["Sales"]


def test_decision_timestamps_keep_the_given_instant(db: Session, test_employee, test_admin):
    """A local-zone clock is stored as the same instant, not shifted by the zone offset."""
    publisher = RecordingPublisher()
    emitter = NotificationEmitter(publisher)
    leave = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 12))

    decided = leave_service.decide_leave(db, leave.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)

    assert LeaveOut.model_validate(decided).model_dump(mode="json")["decided_at"] == iso_local(NOW)
    assert publisher.events[0][2]["created_at"] == iso_local(NOW)
    assert iso_local(NOW) == "2025-03-01T10:00:00+05:30"


def test_notifications_order_by_instant_across_clock_zones(db: Session, test_employee, test_admin):
    emitter = NotificationEmitter(RecordingPublisher())
    first = apply(db, test_employee, date(2025, 3, 10), date(2025, 3, 10))
    second = apply(db, test_employee, date(2025, 3, 11), date(2025, 3, 11))

    # 10:00 local, then 05:00 UTC (10:30 local): the second decision is the newer one
    leave_service.decide_leave(db, first.id, LeaveStatus.APPROVED, test_admin, emitter, NOW)
    later_utc = datetime(2025, 3, 1, 5, 0, tzinfo=timezone.utc)
    leave_service.decide_leave(db, second.id, LeaveStatus.REJECTED, test_admin, emitter, later_utc)

    newest = notification_service.list_notifications(db, test_employee.id)
    assert [n.related_id for n in newest] == [second.id, first.id]
