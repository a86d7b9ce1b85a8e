"""
Employee service - business logic for employee management and login
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from hrtrack.core.errors import NotFound
from hrtrack.core.security import hash_password, verify_password
from hrtrack.models.department import Department
from hrtrack.models.employee import Employee, Role
from hrtrack.schemas.employee import EmployeeCreate, EmployeeUpdate
from hrtrack.utils.datetime_utils import get_work_date, now_utc
from hrtrack.utils.pagination import paginate

logger = logging.getLogger(__name__)


def _check_department(db: Session, department_id: int) -> None:
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Department with id {department_id} not found"
        )
    if not department.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Department with id {department_id} is inactive"
        )


def create_employee(db: Session, employee_data: EmployeeCreate, actor_id: int) -> Employee:
    """
    Create a new employee

    Args:
        db: Database session
        employee_data: Employee creation data
        actor_id: ID of the admin creating the employee

    Returns:
        Created Employee instance

    Raises:
        HTTPException: If emp_code/email is taken or the department is unusable
    """
    existing = db.query(Employee).filter(Employee.emp_code == employee_data.emp_code).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee with emp_code '{employee_data.emp_code}' already exists"
        )

    if employee_data.email:
        if db.query(Employee).filter(Employee.email == employee_data.email).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Employee with email '{employee_data.email}' already exists"
            )

    if employee_data.department_id is not None:
        _check_department(db, employee_data.department_id)

    employee = Employee(
        emp_code=employee_data.emp_code,
        name=employee_data.name,
        email=employee_data.email,
        role=employee_data.role.value,
        department_id=employee_data.department_id,
        position=employee_data.position,
        join_date=employee_data.join_date,
        password_hash=hash_password(employee_data.password),
        active=employee_data.active,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)

    logger.info("employee created: id=%s emp_code=%s by actor_id=%s", employee.id, employee.emp_code, actor_id)
    return employee


def get_employee(db: Session, employee_id: int) -> Employee:
    """Raises NotFound for an unknown id."""
    employee = (
        db.query(Employee)
        .options(joinedload(Employee.department))
        .filter(Employee.id == employee_id)
        .first()
    )
    if employee is None:
        raise NotFound("Employee not found")
    return employee


def update_employee(db: Session, employee_id: int, employee_data: EmployeeUpdate, actor_id: int) -> Employee:
    """
    Update profile fields of an employee

    Only fields present in the request are applied. The password is never changed here.

    Raises:
        NotFound: unknown employee
        HTTPException: If the email is taken or the department is unusable
    """
    employee = get_employee(db, employee_id)
    update_dict = employee_data.model_dump(exclude_unset=True)

    email = update_dict.get("email")
    if email and email != employee.email:
        taken = (
            db.query(Employee)
            .filter(Employee.email == email, Employee.id != employee_id)
            .first()
        )
        if taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Employee with email '{email}' already exists"
            )

    if update_dict.get("department_id") is not None:
        _check_department(db, update_dict["department_id"])

    if "role" in update_dict and update_dict["role"] is not None:
        update_dict["role"] = update_dict["role"].value

    for field, value in update_dict.items():
        if field in ("name", "role", "active") and value is None:
            continue
        setattr(employee, field, value)

    db.commit()
    db.refresh(employee)

    logger.info(
        "employee updated: id=%s fields=%s by actor_id=%s",
        employee.id, sorted(update_dict), actor_id,
    )
    return employee


def deactivate_employee(db: Session, employee_id: int, actor_id: int) -> Employee:
    """
    Deactivate an employee instead of deleting it

    Attendance, leave and notification history stay intact; the account can no longer log in
    and its tokens are refused. Deactivating an inactive employee is a no-op.

    Raises:
        NotFound: unknown employee
        HTTPException: 400 when an admin tries to deactivate their own account
    """
    employee = get_employee(db, employee_id)
    if employee.id == actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account"
        )

    if employee.active:
        employee.active = False
        db.commit()
        db.refresh(employee)
        logger.info("employee deactivated: id=%s emp_code=%s by actor_id=%s", employee.id, employee.emp_code, actor_id)
    return employee


def list_employees(
    db: Session,
    page: int,
    limit: int,
    search: Optional[str] = None,
    department_id: Optional[int] = None,
    role: Optional[Role] = None,
    active: Optional[bool] = None,
) -> Dict[str, Any]:
    """Employees ordered by name, with optional name/code/email search."""
    query = db.query(Employee).options(joinedload(Employee.department))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Employee.name.ilike(pattern),
            Employee.emp_code.ilike(pattern),
            Employee.email.ilike(pattern),
        ))
    if department_id is not None:
        query = query.filter(Employee.department_id == department_id)
    if role is not None:
        query = query.filter(Employee.role == role.value)
    if active is not None:
        query = query.filter(Employee.active == active)
    return paginate(query.order_by(Employee.name.asc(), Employee.id.asc()), page, limit)


def authenticate(db: Session, emp_code: str, password: str) -> Optional[Employee]:
    """Return the active employee matching the credentials, or None."""
    employee = db.query(Employee).filter(Employee.emp_code == emp_code).first()
    if employee is None or not employee.password_hash:
        return None
    if not verify_password(password, employee.password_hash):
        return None
    if not employee.active:
        logger.info("login refused for inactive employee: emp_code=%s", emp_code)
        return None
    return employee


def ensure_initial_admin(db: Session, emp_code: str, password: str) -> Optional[Employee]:
    """
    Create the bootstrap admin when no admin exists yet.

    Returns:
        The created admin, or None when one already existed
    """
    if db.query(Employee).filter(Employee.role == Role.ADMIN.value).first() is not None:
        return None

    admin = Employee(
        emp_code=emp_code,
        name="Administrator",
        role=Role.ADMIN.value,
        join_date=get_work_date(now_utc()),
        password_hash=hash_password(password),
        active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.warning("initial admin created: emp_code=%s; change its password", emp_code)
    return admin
