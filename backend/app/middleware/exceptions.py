"""Error responses for the Threadline API.

Every error leaves the API in one envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}

Production rule rejections carry their ``ErrorKind`` value as the code
(``InvalidTransition``, ``StationInactive`` ...) and map onto HTTP as:

    NotFound                                   → 404
    InvalidTransition, InvalidState,
    ConcurrentModification, StationInactive    → 409
    every other kind                           → 422

Framework, validation and database failures keep upper-case codes
(``HTTP_401``, ``VALIDATION_ERROR``, ``DUPLICATE_RECORD`` ...).
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.production.errors import DomainError, ErrorKind
from app.services.production.repository import ConcurrentModificationError

logger = logging.getLogger(__name__)

DOMAIN_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
    ErrorKind.STATION_INACTIVE: status.HTTP_409_CONFLICT,
}

# Substring of the driver message → (code, message)
_INTEGRITY_CODES = (
    ("unique", "DUPLICATE_RECORD", "A station code or checkpoint name with this value already exists"),
    ("foreign key", "FOREIGN_KEY_VIOLATION", "Referenced job or station does not exist"),
    ("not null", "NULL_VALUE_NOT_ALLOWED", "Required field is missing"),
)


class ThreadlineException(Exception):
    """An error that already knows its HTTP status and envelope code."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(message)


class ResourceNotFoundError(ThreadlineException):
    """Lookup miss outside the scheduler (stations, templates)."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} {identifier} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorKind.NOT_FOUND.value,
            details={"resource": resource.lower(), "id": identifier},
        )


class DomainRuleError(ThreadlineException):
    """A scheduler command came back with a failed ``Result``."""

    def __init__(self, error: DomainError):
        self.kind = error.kind
        super().__init__(
            message=error.message,
            status_code=DOMAIN_STATUS.get(error.kind, status.HTTP_422_UNPROCESSABLE_ENTITY),
            error_code=error.kind.value,
            details=dict(error.details) or None,
        )

    @classmethod
    def from_error(cls, error: DomainError) -> "DomainRuleError":
        return cls(error)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: dict | list | None = None,
) -> JSONResponse:
    body = {"code": error_code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


async def threadline_exception_handler(
    request: Request,
    exc: ThreadlineException,
) -> JSONResponse:
    """Domain rejections log at info, other application errors at warning."""
    level = logging.INFO if isinstance(exc, DomainRuleError) else logging.WARNING
    logger.log(level, "%s rejected: %s %s", _where(request), exc.error_code, exc.message)
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def concurrent_modification_handler(
    request: Request,
    exc: ConcurrentModificationError,
) -> JSONResponse:
    """A stale job write that escaped the scheduler's own mapping."""
    logger.warning("%s lost a concurrent update on job %s", _where(request), exc.job_id)
    return create_error_response(
        status_code=status.HTTP_409_CONFLICT,
        message=str(exc),
        error_code=ErrorKind.CONCURRENT_MODIFICATION.value,
        details={"job_id": exc.job_id},
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException | StarletteHTTPException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s failed: HTTP %d %s", _where(request), exc.status_code, exc.detail)
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info("%s invalid payload: %s", _where(request), [e["field"] for e in errors])
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    driver_message = str(getattr(exc, "orig", exc)).lower()
    logger.warning("%s integrity error: %s", _where(request), driver_message)

    for needle, code, message in _INTEGRITY_CODES:
        if needle in driver_message:
            break
    else:
        code, message = "INTEGRITY_ERROR", "Database constraint violation"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    logger.error("%s database unavailable: %s", _where(request), exc)
    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.exception("%s unhandled %s", _where(request), type(exc).__name__)
    # Internals stay in the log
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(ThreadlineException, threadline_exception_handler)
    app.add_exception_handler(ConcurrentModificationError, concurrent_modification_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
