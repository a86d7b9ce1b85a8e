"""
Tests for the attendance state machine (service level, explicit clock)
"""
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrtrack.core.errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    BreakAlreadyActive,
    BreakInProgress,
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
from hrtrack.services import attendance_service
from hrtrack.utils.datetime_utils import local_tz


def at(hour, minute=0, second=0, day=10):
    """Local wall-clock instant on 2025-03-<day>."""
    return datetime(2025, 3, day, hour, minute, second, tzinfo=local_tz())


def test_check_in_creates_present_record(db: Session, test_employee):
    record = attendance_service.check_in(db, test_employee.id, at(9))

    assert record.work_date == at(9).date()
    assert record.status == AttendanceStatus.PRESENT
    assert record.check_out_at is None
    assert record.total_break_minutes == 0
    assert attendance_service.get_attendance_state(record) == AttendanceState.CHECKED_IN


def test_full_day_scenario(db: Session, test_employee):
    """09:00 in, 10:00-10:15 short break, 18:00 out."""
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10), BreakType.SHORT_BREAK)
    record = attendance_service.end_break(db, test_employee.id, at(10, 15))
    assert record.total_break_minutes == 15

    record = attendance_service.check_out(db, test_employee.id, at(18))

    assert record.total_break_minutes == 15
    assert record.working_minutes == 525
    assert attendance_service.get_attendance_state(record) == AttendanceState.CHECKED_OUT


def test_second_check_in_same_day_rejected(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))

    with pytest.raises(AlreadyCheckedIn):
        attendance_service.check_in(db, test_employee.id, at(12))

    assert db.query(AttendanceRecord).count() == 1


def test_check_in_next_day_creates_new_record(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.check_out(db, test_employee.id, at(17))

    record = attendance_service.check_in(db, test_employee.id, at(9, day=11))

    assert record.work_date == at(9, day=11).date()
    assert db.query(AttendanceRecord).count() == 2


def test_racing_check_in_hits_unique_constraint(db: Session, test_employee, monkeypatch):
    """A check-in that passed the existence check but lost the insert race reports AlreadyCheckedIn."""
    attendance_service.check_in(db, test_employee.id, at(9))
    monkeypatch.setattr(attendance_service, "_record_for_day", lambda *args, **kwargs: None)

    with pytest.raises(AlreadyCheckedIn):
        attendance_service.check_in(db, test_employee.id, at(9, 0, 1))

    assert db.query(AttendanceRecord).count() == 1


def test_break_before_check_in_rejected(db: Session, test_employee):
    with pytest.raises(NotCheckedIn):
        attendance_service.start_break(db, test_employee.id, at(10))
    with pytest.raises(NotCheckedIn):
        attendance_service.end_break(db, test_employee.id, at(10))
    with pytest.raises(NotCheckedIn):
        attendance_service.check_out(db, test_employee.id, at(18))


def test_second_open_break_rejected(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10))

    with pytest.raises(BreakAlreadyActive):
        attendance_service.start_break(db, test_employee.id, at(10, 5), BreakType.LUNCH_BREAK)

    open_breaks = db.query(AttendanceBreak).filter(AttendanceBreak.ended_at.is_(None)).count()
    assert open_breaks == 1


def test_open_break_index_rejects_concurrent_insert(db: Session, test_employee):
    """The partial unique index keeps a second open break out even when inserted directly."""
    record = attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10))

    db.add(AttendanceBreak(attendance_id=record.id, started_at=at(10, 1), break_type=BreakType.COFFEE_BREAK))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_end_break_without_open_break_rejected(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))

    with pytest.raises(NoActiveBreak):
        attendance_service.end_break(db, test_employee.id, at(10))


def test_check_out_refused_while_on_break(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10))
    attendance_service.end_break(db, test_employee.id, at(10, 10))
    attendance_service.start_break(db, test_employee.id, at(13))

    with pytest.raises(BreakInProgress):
        attendance_service.check_out(db, test_employee.id, at(18))

    record = attendance_service.get_today_record(db, test_employee.id, at(18))
    assert record.check_out_at is None
    assert record.open_break is not None
    assert attendance_service.get_attendance_state(record) == AttendanceState.ON_BREAK


def test_break_after_check_out_rejected(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.check_out(db, test_employee.id, at(17))

    with pytest.raises(AlreadyCheckedOut):
        attendance_service.start_break(db, test_employee.id, at(17, 30))
    with pytest.raises(AlreadyCheckedOut):
        attendance_service.check_out(db, test_employee.id, at(18))


def test_total_break_minutes_is_sum_of_closed_breaks(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    spans = [((10, 0), (10, 15)), ((13, 0), (13, 45)), ((16, 0), (16, 7, 40))]

    expected = 0
    for start, end in spans:
        attendance_service.start_break(db, test_employee.id, at(*start))
        record = attendance_service.end_break(db, test_employee.id, at(*end))
        expected = sum(b.duration_minutes for b in record.breaks)
        assert record.total_break_minutes == expected

    # 15 + 45 + 8 (7m40s rounds up)
    assert expected == 68


def test_end_break_recomputes_from_all_breaks(db: Session, test_employee):
    """A drifted total is corrected on the next end_break."""
    record = attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10))
    attendance_service.end_break(db, test_employee.id, at(10, 20))

    db.query(AttendanceRecord).filter(AttendanceRecord.id == record.id).update({"total_break_minutes": 999})
    db.commit()

    attendance_service.start_break(db, test_employee.id, at(12))
    record = attendance_service.end_break(db, test_employee.id, at(12, 30))

    assert record.total_break_minutes == 50


def test_durations_round_half_away_from_zero(db: Session, test_employee):
    attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(10))
    record = attendance_service.end_break(db, test_employee.id, at(10, 4, 30))
    assert record.breaks[0].duration_minutes == 5

    attendance_service.start_break(db, test_employee.id, at(11))
    record = attendance_service.end_break(db, test_employee.id, at(11, 4, 29))
    assert record.breaks[1].duration_minutes == 4


def test_negative_working_minutes_are_kept(db: Session, test_employee, caplog):
    """Break time exceeding the span yields negative working time; logged, not rejected."""
    record = attendance_service.check_in(db, test_employee.id, at(9))
    attendance_service.start_break(db, test_employee.id, at(9, 10))
    attendance_service.end_break(db, test_employee.id, at(9, 40))
    db.query(AttendanceRecord).filter(AttendanceRecord.id == record.id).update({"total_break_minutes": 120})
    db.commit()

    with caplog.at_level("WARNING"):
        record = attendance_service.check_out(db, test_employee.id, at(10))

    assert record.working_minutes == 60 - 120
    assert "negative working time" in caplog.text


def test_today_is_resolved_in_business_timezone(db: Session, test_employee):
    """00:30 local is still the new local day even though it is the previous day in UTC."""
    now = at(0, 30, day=11)
    record = attendance_service.check_in(db, test_employee.id, now)

    assert now.astimezone(timezone.utc).date() == date(2025, 3, 10)
    assert record.work_date == date(2025, 3, 11)


def test_state_of_missing_record_is_not_started():
    assert attendance_service.get_attendance_state(None) == AttendanceState.NOT_STARTED


def test_sum_break_minutes_ignores_open_breaks():
    closed = AttendanceBreak(started_at=at(10), ended_at=at(10, 15), duration_minutes=15)
    still_open = AttendanceBreak(started_at=at(11))

    assert attendance_service.sum_break_minutes([closed, still_open]) == 15
    assert attendance_service.sum_break_minutes([]) == 0
