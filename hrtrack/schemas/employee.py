"""
Employee schemas
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, field_serializer, ConfigDict

from hrtrack.core.security import validate_password
from hrtrack.models.employee import Role
from hrtrack.utils.datetime_utils import iso_local


class EmployeeCreate(BaseModel):
    """Schema for creating an employee"""
    emp_code: str = Field(..., min_length=1, max_length=50, description="Employee code (unique)")
    name: str = Field(..., min_length=1, max_length=200, description="Employee name")
    email: Optional[str] = Field(None, description="Employee email")
    role: Role = Field(default=Role.EMPLOYEE, description="Employee role")
    department_id: Optional[int] = Field(None, description="Department ID")
    position: Optional[str] = Field(None, max_length=200, description="Job title")
    join_date: date = Field(..., description="Employee join date")
    password: str = Field(..., description="Initial password")
    active: bool = Field(default=True, description="Employee active status")

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v):
        """Normalize and validate password"""
        return validate_password(v)


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee. Unknown fields (including password) are ignored."""
    name: Optional[str] = Field(None, min_length=1, max_length=200, description="Employee name")
    email: Optional[str] = Field(None, description="Employee email")
    role: Optional[Role] = Field(None, description="Employee role")
    department_id: Optional[int] = Field(None, description="Department ID")
    position: Optional[str] = Field(None, max_length=200, description="Job title")
    active: Optional[bool] = Field(None, description="Employee active status")


class DepartmentRef(BaseModel):
    """Minimal department for profile"""
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class EmployeeRef(BaseModel):
    """Minimal employee for nested output"""
    id: int
    emp_code: str
    name: str
    department: Optional[DepartmentRef] = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeOut(BaseModel):
    """Schema for employee output. Datetimes in the business timezone."""
    id: int
    emp_code: str
    name: str
    email: Optional[str] = None
    role: Role
    department_id: Optional[int] = None
    department: Optional[DepartmentRef] = None
    position: Optional[str] = None
    join_date: date
    active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_local(dt)


class EmployeeListResponse(BaseModel):
    """Schema for employee list response"""
    items: List[EmployeeOut]
    total: int
    page: int
    pages: int
