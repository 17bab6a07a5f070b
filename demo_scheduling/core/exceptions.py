# demo_scheduling/core/exceptions.py
"""
Typed errors for the scheduling service and their FastAPI handlers.

Every rejection the service can produce is an AppError subclass carrying:
- a stable ``reason`` (e.g. ``Full``, ``AlreadySignedUp``) the frontend branches on
- an HTTP status code
- an error category for logging
- an optional ``Retry-After`` hint for transient failures
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from demo_scheduling.core.config import settings

logger = logging.getLogger(__name__)


class ErrorCategory:
    """Error categories for structured error handling"""
    NOT_FOUND = "not_found_error"
    AUTHORIZATION = "authorization_error"
    ADMISSION = "admission_error"
    INVALID_STATE = "invalid_state_error"
    VALIDATION = "validation_error"
    CONFLICT = "conflict_error"
    BUSY = "busy_error"
    DATABASE = "database_error"


class AppError(Exception):
    """Base application error with structured information"""

    reason = "Error"

    def __init__(
        self,
        message: str,
        category: str,
        status_code: int,
        details: Optional[dict] = None,
        retry_after: Optional[int] = None,
    ):
        self.message = message
        self.category = category
        self.status_code = status_code
        self.details = details or {}
        self.retry_after = retry_after
        super().__init__(self.message)


# ==================== Not found ====================

class SessionNotFoundError(AppError):
    reason = "SessionNotFound"

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Demo session {session_id} not found",
            category=ErrorCategory.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"session_id": session_id},
        )


class SignupNotFoundError(AppError):
    reason = "SignupNotFound"

    def __init__(self, signup_id: str):
        super().__init__(
            message=f"Demo signup {signup_id} not found",
            category=ErrorCategory.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"signup_id": signup_id},
        )


class ForbiddenError(AppError):
    reason = "Forbidden"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            status_code=status.HTTP_403_FORBIDDEN,
        )


# ==================== Admission rejections ====================

class SessionInactiveError(AppError):
    reason = "SessionInactive"

    def __init__(self, session_id: str):
        super().__init__(
            message="This demo session is not open for signups",
            category=ErrorCategory.ADMISSION,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"session_id": session_id},
        )


class SessionCancelledError(AppError):
    reason = "SessionCancelled"

    def __init__(self, session_id: str):
        super().__init__(
            message="This demo session has been cancelled",
            category=ErrorCategory.ADMISSION,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"session_id": session_id},
        )


class AlreadySignedUpError(AppError):
    reason = "AlreadySignedUp"

    def __init__(self, session_id: str, student_id: str):
        super().__init__(
            message="Student already holds a signup for this session",
            category=ErrorCategory.ADMISSION,
            status_code=status.HTTP_409_CONFLICT,
            details={"session_id": session_id, "student_id": student_id},
        )


class SessionFullError(AppError):
    reason = "Full"

    def __init__(self, session_id: str, max_scheduled: int):
        super().__init__(
            message="This demo session is full",
            category=ErrorCategory.ADMISSION,
            status_code=status.HTTP_409_CONFLICT,
            details={"session_id": session_id, "max_scheduled": max_scheduled},
        )


# ==================== Lifecycle ====================

class InvalidStateError(AppError):
    reason = "InvalidState"

    def __init__(self, message: str, current_status: Optional[str] = None):
        details = {"current_status": current_status} if current_status else {}
        super().__init__(
            message=message,
            category=ErrorCategory.INVALID_STATE,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class InvalidTransitionError(AppError):
    reason = "InvalidTransition"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            message=f"Cannot move a signup from '{from_status}' to '{to_status}'",
            category=ErrorCategory.INVALID_STATE,
            status_code=status.HTTP_409_CONFLICT,
            details={"from_status": from_status, "to_status": to_status},
        )


class InvalidRatingError(AppError):
    reason = "InvalidRating"

    def __init__(self, message: str, rating: Optional[int] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"rating": rating},
        )


# ==================== Concurrency ====================

class CapacityConflictError(AppError):
    reason = "CapacityConflict"

    def __init__(self, session_id: str, requested: int, signup_count: int):
        super().__init__(
            message=(
                f"Cannot reduce capacity to {requested}: "
                f"{signup_count} students are already signed up"
            ),
            category=ErrorCategory.CONFLICT,
            status_code=status.HTTP_409_CONFLICT,
            details={
                "session_id": session_id,
                "requested_max_scheduled": requested,
                "signup_count": signup_count,
            },
        )


class ConflictError(AppError):
    """A concurrent write changed the data; the client should re-fetch and retry."""

    reason = "Conflict"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFLICT,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class BusyError(AppError):
    reason = "Busy"

    def __init__(self, retry_after: int, **resource_ids: str):
        super().__init__(
            message="The demo session is busy. Please try again shortly.",
            category=ErrorCategory.BUSY,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=resource_ids,
            retry_after=retry_after,
        )


# ==================== Handlers ====================

def handle_app_error(error: AppError, request: Request) -> JSONResponse:
    """Render an AppError as a structured JSON response."""
    log = logger.warning if error.status_code >= 500 else logger.info
    log(
        f"Request rejected: {error.reason}",
        extra={
            "category": error.category,
            "reason": error.reason,
            "status_code": error.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": error.details,
        },
    )

    response_data = {
        "error": {
            "category": error.category,
            "reason": error.reason,
            "message": error.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
            **error.details,
        }
    }

    headers = {}
    if error.retry_after:
        headers["Retry-After"] = str(error.retry_after)

    return JSONResponse(
        status_code=error.status_code,
        content=response_data,
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """FastAPI exception handler for AppError"""
    return handle_app_error(exc, request)


def handle_database_error(error: SQLAlchemyError, request: Request) -> JSONResponse:
    """
    Render database errors that escaped the service layer.

    Lock waits that exhaust the driver timeout surface as OperationalError
    (e.g. SQLite "database is locked"); they are reported as ``Busy`` so the
    client retries. Constraint violations are reported as ``Conflict``.
    """
    is_busy = isinstance(error, OperationalError)
    is_integrity_error = isinstance(error, IntegrityError)

    if is_busy:
        category, reason, code = ErrorCategory.BUSY, BusyError.reason, status.HTTP_503_SERVICE_UNAVAILABLE
        message = "The database is busy. Please try again shortly."
    elif is_integrity_error:
        category, reason, code = ErrorCategory.CONFLICT, ConflictError.reason, status.HTTP_409_CONFLICT
        message = "The request conflicted with a concurrent change. Refresh and try again."
    else:
        category, reason, code = ErrorCategory.DATABASE, "DatabaseError", status.HTTP_500_INTERNAL_SERVER_ERROR
        message = "Database operation failed. Please try again."

    logger.error(
        f"Database error: {type(error).__name__}",
        extra={
            "error": str(error),
            "path": request.url.path,
            "method": request.method,
            "is_busy": is_busy,
            "is_integrity_error": is_integrity_error,
        },
        exc_info=True,
    )

    headers = {}
    if is_busy:
        headers["Retry-After"] = str(settings.BUSY_RETRY_AFTER_SECONDS)

    return JSONResponse(
        status_code=code,
        content={
            "error": {
                "category": category,
                "reason": reason,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
                "type": type(error).__name__,
            }
        },
        headers=headers,
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """FastAPI exception handler for SQLAlchemyError"""
    return handle_database_error(exc, request)
