"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from hrtrack.models.leave import LeaveType, LeaveStatus
from hrtrack.schemas.employee import EmployeeRef
from hrtrack.utils.datetime_utils import iso_local


class LeaveApplyRequest(BaseModel):
    """Schema for applying leave"""
    leave_type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave (inclusive)")
    reason: str = Field(..., min_length=10, max_length=1000, description="Reason for leave")

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        return v.strip() if isinstance(v, str) else v


class LeaveDecisionRequest(BaseModel):
    """Schema for an admin decision on a pending request"""
    status: LeaveStatus = Field(..., description="APPROVED or REJECTED")

    @field_validator("status")
    @classmethod
    def check_decision(cls, v: LeaveStatus) -> LeaveStatus:
        if v == LeaveStatus.PENDING:
            raise ValueError("Status can only be APPROVED or REJECTED")
        return v


class LeaveOut(BaseModel):
    """Schema for leave output"""
    id: int
    employee_id: int
    employee: Optional[EmployeeRef] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatus
    approved_by_id: Optional[int] = None
    approved_by: Optional[EmployeeRef] = None
    decided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("decided_at", "created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_local(dt)


class LeaveListResponse(BaseModel):
    """Schema for paged leave list response"""
    items: List[LeaveOut]
    total: int
    page: int
    pages: int


class DepartmentLeaveCount(BaseModel):
    """Employees on leave today within one department"""
    department: Optional[str] = None
    count: int
    employee_count: int


class TodayLeavesResponse(BaseModel):
    """Approved leave covering today, with a per-department breakdown"""
    items: List[LeaveOut]
    total: int
    page: int
    pages: int
    department_breakdown: List[DepartmentLeaveCount]


class LeaveStatusStats(BaseModel):
    """Count and inclusive day total for one status"""
    count: int = 0
    total_days: int = 0


class LeaveStatsResponse(BaseModel):
    """Per-status leave totals for one employee and year"""
    year: int
    stats: Dict[LeaveStatus, LeaveStatusStats]
