"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from hrtrack.db.session import SessionLocal
from hrtrack.core.security import employee_id_from_token
from hrtrack.models.employee import Employee, Role
from hrtrack.services.notification_service import NotificationEmitter
from hrtrack.services.realtime import Publisher


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_employee(db: Session, token: str) -> Employee:
    """
    Map a bearer token to an active employee

    Raises:
        HTTPException: 401 for a bad token or unknown user, 403 for an inactive one
    """
    try:
        employee_id = employee_id_from_token(token)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Get current authenticated user from JWT token
    """
    return resolve_employee(db, credentials.credentials)


def require_roles(*allowed_roles: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: Employee = Depends(require_roles(Role.ADMIN))):
            ...
    """
    allowed = {r.value for r in allowed_roles}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user
    return role_checker


require_admin = require_roles(Role.ADMIN)


def get_publisher(request: Request) -> Publisher:
    """Real-time channel created at application start."""
    return request.app.state.realtime


def get_notification_emitter(publisher: Publisher = Depends(get_publisher)) -> NotificationEmitter:
    return NotificationEmitter(publisher)
