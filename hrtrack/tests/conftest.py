"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time; provide test values before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-hrtrack-tests")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_TIMEZONE", "Asia/Kolkata")

from datetime import date  # noqa: E402
from typing import Any, Dict, List, Tuple  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hrtrack.main import app  # noqa: E402
from hrtrack.db.base import Base  # noqa: E402
from hrtrack.core.deps import get_db, get_publisher  # noqa: E402
from hrtrack.core.security import hash_password  # noqa: E402

# Import all models to ensure they're registered with Base.metadata
from hrtrack.models import (  # noqa: E402, F401
    Department,
    Employee,
    Role,
    AttendanceRecord,
    AttendanceBreak,
    LeaveRequest,
    Notification,
)


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "testpass123"


class RecordingPublisher:
    """Publisher double that keeps every event it was asked to deliver."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[Tuple[int, str, Dict[str, Any]]] = []

    def publish(self, recipient_id: int, event_name: str, payload: Dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("channel down")
        self.events.append((recipient_id, event_name, payload))
        return 1


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture(scope="function")
def client(db, publisher):
    """Test client fixture with database and real-time channel overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_department(db: Session):
    """Create a test department"""
    dept = Department(name="Engineering", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


def make_employee(db: Session, emp_code: str, role: Role = Role.EMPLOYEE, department_id=None, **kwargs) -> Employee:
    employee = Employee(
        emp_code=emp_code,
        name=kwargs.pop("name", f"Employee {emp_code}"),
        email=kwargs.pop("email", f"{emp_code.lower()}@example.com"),
        role=role.value,
        department_id=department_id,
        password_hash=hash_password(PASSWORD),
        join_date=kwargs.pop("join_date", date(2024, 1, 1)),
        active=kwargs.pop("active", True),
        **kwargs,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@pytest.fixture
def test_employee(db: Session, test_department):
    """Create a test employee"""
    return make_employee(db, "EMP001", department_id=test_department.id, name="Test Employee")


@pytest.fixture
def test_admin(db: Session, test_department):
    """Create a test admin"""
    return make_employee(db, "ADM001", role=Role.ADMIN, department_id=test_department.id, name="Test Admin")


def get_auth_token(client, emp_code, password=PASSWORD):
    """Helper to get auth token"""
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": emp_code, "password": password}
    )
    return response.json()["access_token"]


def auth_headers(client, emp_code, password=PASSWORD) -> Dict[str, str]:
    return {"Authorization": f"Bearer {get_auth_token(client, emp_code, password)}"}


@pytest.fixture
def employee_headers(client, test_employee):
    return auth_headers(client, test_employee.emp_code)


@pytest.fixture
def admin_headers(client, test_admin):
    return auth_headers(client, test_admin.emp_code)
