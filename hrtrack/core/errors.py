"""
Central error handling for the hrtrack backend

Domain errors are HTTPException subclasses so services can raise them directly and the
shared handler renders them in the same JSON envelope as any other HTTP error.
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class DomainError(HTTPException):
    """Caller error raised by the attendance and leave workflows."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "DOMAIN_ERROR"
    message = "Request cannot be processed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.message)


class AlreadyCheckedIn(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_CHECKED_IN"
    message = "You have already checked in today"


class NotCheckedIn(DomainError):
    code = "NOT_CHECKED_IN"
    message = "You have not checked in today"


class AlreadyCheckedOut(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_CHECKED_OUT"
    message = "You have already checked out today"


class BreakInProgress(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "BREAK_IN_PROGRESS"
    message = "Please end your break before checking out"


class BreakAlreadyActive(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "BREAK_ALREADY_ACTIVE"
    message = "You are already on a break"


class NoActiveBreak(DomainError):
    code = "NO_ACTIVE_BREAK"
    message = "You are not currently on a break"


class InvalidRange(DomainError):
    code = "INVALID_RANGE"
    message = "Start date cannot be after end date"


class PastDate(DomainError):
    code = "PAST_DATE"
    message = "Cannot apply for leave in the past"


class OverlappingRequest(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "OVERLAPPING_REQUEST"
    message = "You already have a leave request for this period"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class AlreadyDecided(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_DECIDED"
    message = "Leave request has already been processed"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException (including DomainError) with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "status_code": exc.status_code,
            "code": getattr(exc, "code", None),
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from hrtrack.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "code": "VALIDATION_ERROR",
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # ctx may carry exception instances (e.g. ValueError from validators), stringify them for JSON
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (v if isinstance(v, (str, int, float, bool, type(None))) else str(v))
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "code": "VALIDATION_ERROR",
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle storage-layer failures (connectivity, unexpected constraint violations).

    These are infrastructure errors: logged with traceback and surfaced as an opaque 500.
    """
    logger.error("Storage failure on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "code": "STORAGE_FAILURE",
            "detail": "Storage failure",
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from hrtrack.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=exc)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "code": "INTERNAL_ERROR",
                "detail": "Internal server error",
                "path": str(request.url.path)
            }
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "code": "INTERNAL_ERROR",
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": "".join(traceback.format_exception(exc)) if settings.APP_ENV == "local" else None
        }
    )
