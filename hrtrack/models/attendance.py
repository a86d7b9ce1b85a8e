"""
Attendance record and break models (one record per employee per work date, breaks as ordered child rows).
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Boolean,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text
import enum
from hrtrack.db.base import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    ON_LEAVE = "ON_LEAVE"


class BreakType(str, enum.Enum):
    SHORT_BREAK = "SHORT_BREAK"
    LUNCH_BREAK = "LUNCH_BREAK"
    COFFEE_BREAK = "COFFEE_BREAK"


class AttendanceState(str, enum.Enum):
    """Derived position of an employee-day in the check-in/break/check-out state machine."""
    NOT_STARTED = "NOT_STARTED"
    CHECKED_IN = "CHECKED_IN"
    ON_BREAK = "ON_BREAK"
    CHECKED_OUT = "CHECKED_OUT"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)  # local calendar date (APP_TIMEZONE)
    check_in_at = Column(DateTime(timezone=True), nullable=True)  # UTC
    check_out_at = Column(DateTime(timezone=True), nullable=True)  # UTC
    total_break_minutes = Column(Integer, nullable=False, default=0)
    working_minutes = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.ABSENT)
    is_check_in_reminder_sent = Column(Boolean, nullable=False, default=False)
    is_check_out_reminder_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_work_date"),
    )

    employee = relationship("Employee", backref="attendance_records")
    breaks = relationship(
        "AttendanceBreak",
        back_populates="record",
        order_by="AttendanceBreak.id",
        cascade="all, delete-orphan",
    )

    @property
    def open_break(self):
        return next((b for b in self.breaks if b.ended_at is None), None)


class AttendanceBreak(Base):
    __tablename__ = "attendance_breaks"

    id = Column(Integer, primary_key=True, index=True)
    attendance_id = Column(Integer, ForeignKey("attendance_records.id"), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)  # UTC
    ended_at = Column(DateTime(timezone=True), nullable=True)  # UTC
    duration_minutes = Column(Integer, nullable=True)
    break_type = Column(SQLEnum(BreakType), nullable=False, default=BreakType.SHORT_BREAK)

    __table_args__ = (
        # At most one open break per record
        Index(
            "uq_attendance_breaks_one_open",
            "attendance_id",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
    )

    record = relationship("AttendanceRecord", back_populates="breaks")
