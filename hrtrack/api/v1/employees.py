"""
Employee endpoints (admin)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hrtrack.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrtrack.core.deps import get_db, require_admin
from hrtrack.models.employee import Employee, Role
from hrtrack.schemas.attendance import AttendanceOut
from hrtrack.schemas.employee import EmployeeCreate, EmployeeListResponse, EmployeeOut, EmployeeUpdate
from hrtrack.services import employee_service, report_service
from hrtrack.utils.datetime_utils import now_utc

router = APIRouter()


@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    search: Optional[str] = Query(None, description="Name, code or email substring"),
    department_id: Optional[int] = Query(None),
    role: Optional[Role] = Query(None),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    return employee_service.list_employees(
        db, page, limit,
        search=search, department_id=department_id, role=role, active=active,
    )


@router.post("", response_model=EmployeeOut, status_code=201)
async def create_employee(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    return employee_service.create_employee(db, employee_data, current_user.id)


@router.get("/{employee_id}")
async def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """
    Employee profile with today's record, the last week of attendance and an attendance rate
    since joining.
    """
    overview = report_service.get_employee_overview(db, employee_id, now_utc())
    return {
        "employee": EmployeeOut.model_validate(overview["employee"]).model_dump(mode="json"),
        "today": (
            AttendanceOut.model_validate(overview["today"]).model_dump(mode="json")
            if overview["today"] is not None else None
        ),
        "history": [AttendanceOut.model_validate(r).model_dump(mode="json") for r in overview["history"]],
        "stats": overview["stats"],
    }


@router.get("/{employee_id}/stats")
async def get_employee_stats(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """Current-month attendance and current-year approved leave."""
    return report_service.get_employee_stats(db, employee_id, now_utc())


@router.patch("/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    employee_id: int,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """Update profile fields; the password cannot be changed through this endpoint."""
    return employee_service.update_employee(db, employee_id, employee_data, current_user.id)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin),
):
    """
    Deactivate an employee

    The record and its history are kept; the employee can no longer log in.
    Returns 204 No Content, 404 for an unknown id.
    """
    employee_service.deactivate_employee(db, employee_id, current_user.id)
    return None
