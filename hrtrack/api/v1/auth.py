"""
Authentication endpoints
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from hrtrack.core.deps import get_db, get_current_user
from hrtrack.core.security import create_access_token
from hrtrack.models.employee import Employee
from hrtrack.schemas.auth import LoginRequest, TokenResponse
from hrtrack.schemas.employee import EmployeeOut
from hrtrack.services.employee_service import authenticate

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Validates emp_code and password, rejects inactive employees.
    """
    employee = authenticate(db, login_data.emp_code, login_data.password)
    if employee is None:
        logger.info("failed login: emp_code=%s", login_data.emp_code)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid employee code or password"
        )

    # JWT 'sub' claim must be a string
    token_data = {
        "sub": str(employee.id),
        "emp_code": employee.emp_code,
        "role": employee.role,
    }
    return TokenResponse(access_token=create_access_token(data=token_data))


@router.get("/me", response_model=EmployeeOut)
async def me(current_user: Employee = Depends(get_current_user)):
    """Profile of the authenticated employee"""
    return current_user
