"""
Database models
"""
from hrtrack.models.department import Department
from hrtrack.models.employee import Employee, Role
from hrtrack.models.attendance import (
    AttendanceRecord,
    AttendanceBreak,
    AttendanceStatus,
    AttendanceState,
    BreakType,
)
from hrtrack.models.leave import LeaveRequest, LeaveType, LeaveStatus
from hrtrack.models.notification import Notification, NotificationType

__all__ = [
    "Department",
    "Employee",
    "Role",
    "AttendanceRecord",
    "AttendanceBreak",
    "AttendanceStatus",
    "AttendanceState",
    "BreakType",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
    "Notification",
    "NotificationType",
]
