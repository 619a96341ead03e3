"""
Error taxonomy for the access control and time tracking services.

Services raise these exceptions; main.py registers handlers that turn them
into JSON responses. Soft conditions (heartbeat on an ended session, a
repeated end, a failed offline-sync entry) are reported as status payloads
and never raised.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVARIANT_VIOLATION = "invariant_violation"
    SESSION_ALREADY_ACTIVE = "session_already_active"
    INVALID_SESSION_TIME = "invalid_session_time"
    SESSION_TOO_LONG = "session_too_long"


class WorkTrackError(Exception):
    """Base exception for domain failures"""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotAuthenticatedError(WorkTrackError):
    def __init__(self, message: str = "Not authenticated", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorType.NOT_AUTHENTICATED, status.HTTP_401_UNAUTHORIZED, details)


class AuthorizationError(WorkTrackError):
    def __init__(self, message: str = "Not authorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorType.FORBIDDEN, status.HTTP_403_FORBIDDEN, details)


class NotFoundError(WorkTrackError):
    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} not found: {entity_id}"
        details = {"entity": entity}
        if entity_id is not None:
            details["id"] = entity_id
        super().__init__(message, ErrorType.NOT_FOUND, status.HTTP_404_NOT_FOUND, details)


class InvariantViolationError(WorkTrackError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INVARIANT_VIOLATION,
        status_code: int = status.HTTP_409_CONFLICT,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_type, status_code, details)


class SessionAlreadyActiveError(InvariantViolationError):
    def __init__(self, session_id: Optional[str] = None):
        super().__init__(
            "You have an active session. Please complete it first.",
            ErrorType.SESSION_ALREADY_ACTIVE,
            status.HTTP_409_CONFLICT,
            {"session_id": session_id} if session_id else None
        )


class InvalidSessionTimeError(InvariantViolationError):
    def __init__(self, session_id: str):
        super().__init__(
            "Invalid session time",
            ErrorType.INVALID_SESSION_TIME,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"session_id": session_id}
        )


class SessionTooLongError(InvariantViolationError):
    def __init__(self, duration: int, limit: int):
        super().__init__(
            "Session too long (max 24 hours)",
            ErrorType.SESSION_TOO_LONG,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"duration": duration, "limit": limit}
        )


async def _handle_worktrack_error(request: Request, exc: WorkTrackError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.error_type.value} - {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, NotAuthenticatedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "type": exc.error_type.value,
            "details": exc.details
        },
        headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkTrackError, _handle_worktrack_error)
