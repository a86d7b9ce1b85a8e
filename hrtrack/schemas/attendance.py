"""
Attendance schemas. All datetimes are serialized in the business timezone.
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer

from hrtrack.models.attendance import AttendanceState, AttendanceStatus, BreakType
from hrtrack.schemas.employee import EmployeeRef
from hrtrack.utils.datetime_utils import format_minutes, iso_local


class StartBreakRequest(BaseModel):
    """Schema for break-start request"""
    break_type: BreakType = Field(default=BreakType.SHORT_BREAK, description="Kind of break")


class BreakOut(BaseModel):
    """One break of an attendance record"""
    id: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    break_type: BreakType

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("started_at", "ended_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_local(dt)


class AttendanceOut(BaseModel):
    """Schema for attendance record output"""
    id: int
    employee_id: int
    work_date: date
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    total_break_minutes: int
    working_minutes: int
    status: AttendanceStatus
    breaks: List[BreakOut] = []

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("check_in_at", "check_out_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_local(dt)

    @computed_field
    @property
    def total_break_time(self) -> str:
        return format_minutes(self.total_break_minutes)

    @computed_field
    @property
    def working_time(self) -> str:
        # working minutes are only final once checked out
        return format_minutes(self.working_minutes if self.check_out_at is not None else 0)


class AdminAttendanceOut(AttendanceOut):
    """Attendance record with the owning employee"""
    employee: Optional[EmployeeRef] = None


class TodayAttendanceResponse(BaseModel):
    """Today's record for the caller plus the derived state"""
    state: AttendanceState
    work_date: date
    attendance: Optional[AttendanceOut] = None


class AttendanceListResponse(BaseModel):
    """Schema for paged attendance list response"""
    items: List[AttendanceOut]
    total: int
    page: int
    pages: int


class AdminAttendanceListResponse(BaseModel):
    """Schema for paged admin attendance list response"""
    items: List[AdminAttendanceOut]
    total: int
    page: int
    pages: int


class DepartmentAttendanceOut(BaseModel):
    """Headcount and presence for one department on one day"""
    department_id: int
    department_name: str
    total_employees: int
    present: int
    absent: int
