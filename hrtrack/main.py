"""
hrtrack backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from hrtrack.api.router import api_router
from hrtrack.core.config import settings
from hrtrack.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    storage_exception_handler,
    generic_exception_handler,
)
from hrtrack.core.logging import setup_logging
from hrtrack.db.session import SessionLocal, init_db
from hrtrack.services.employee_service import ensure_initial_admin
from hrtrack.services.realtime import ConnectionManager

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


# Create FastAPI app
app = FastAPI(
    title="hrtrack Backend",
    description="Attendance and leave management",
    version=settings.VERSION or "1.0.0"
)

# Real-time channel; handed to the notification emitter through deps.get_publisher
app.state.realtime = ConnectionManager()

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s, APP_TIMEZONE: %s", masked, settings.APP_TIMEZONE)


@app.on_event("startup")
def create_tables() -> None:
    """SQLite deployments get their schema on startup; other backends are migrated externally."""
    if settings.DATABASE_URL.startswith("sqlite"):
        init_db()


@app.on_event("startup")
def bootstrap_initial_admin() -> None:
    """
    Create the initial admin user when none exists, so the system always has one.
    """
    db = SessionLocal()
    try:
        created = ensure_initial_admin(db, settings.INITIAL_ADMIN_CODE, settings.INITIAL_ADMIN_PASSWORD)
        if created is None:
            logger.info("Admin user already exists, skipping initial bootstrap")
        else:
            logger.info("Employee Code: %s", created.emp_code)
            logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    except OperationalError as e:
        # Database not ready yet (tables might not exist)
        db.rollback()
        logger.warning("Database not ready, skipping initial bootstrap: %s", e)
    finally:
        db.close()
