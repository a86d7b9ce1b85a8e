"""
Leave request model
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Text,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from hrtrack.db.base import Base


class LeaveType(str, enum.Enum):
    SICK_LEAVE = "SICK_LEAVE"
    CASUAL_LEAVE = "CASUAL_LEAVE"
    EARNED_LEAVE = "EARNED_LEAVE"
    MATERNITY_LEAVE = "MATERNITY_LEAVE"
    PATERNITY_LEAVE = "PATERNITY_LEAVE"
    OTHER = "OTHER"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Statuses that block a new request for an overlapping range
BLOCKING_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)

# A decision moves PENDING into one of these and never back
DECISION_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED})


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING)
    approved_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    approved_by = relationship("Employee", foreign_keys=[approved_by_id])

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
    )

    @property
    def total_days(self) -> int:
        """Inclusive number of calendar days covered by the request."""
        return (self.end_date - self.start_date).days + 1
