"""Domain errors for the booking core.

Every failure a caller can see maps to a stable code, an HTTP status and a
message that is safe to display.
"""

from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from eventbook.core.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    NOT_RESERVED = "NOT_RESERVED"
    FULL = "FULL"
    CONFLICT = "CONFLICT"
    UNDERFLOW = "UNDERFLOW"
    INVALID = "INVALID"


class BookingError(Exception):
    """Base domain error with code, HTTP status and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class Unauthenticated(BookingError):
    code = ErrorCode.UNAUTHENTICATED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(BookingError):
    code = ErrorCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class NotFound(BookingError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class AlreadyReserved(BookingError):
    code = ErrorCode.ALREADY_RESERVED
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already booked this event"


class NotReserved(BookingError):
    code = ErrorCode.NOT_RESERVED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "You have not booked this event"


class EventFull(BookingError):
    code = ErrorCode.FULL
    status_code = status.HTTP_409_CONFLICT
    default_message = "Event is fully booked"


class Conflict(BookingError):
    code = ErrorCode.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "Request conflicts with the current state of the resource"


class InvalidRequest(BookingError):
    code = ErrorCode.INVALID
    status_code = status.HTTP_400_BAD_REQUEST


class LedgerUnderflow(BookingError):
    """A release would take an event's reserved count below zero.

    This is an invariant breach, not a business outcome: it is logged as a
    defect and the caller only sees a generic internal error.
    """

    code = ErrorCode.UNDERFLOW
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Reserved count underflow"

    def __init__(self, event_id: int) -> None:
        super().__init__(f"Reserved count underflow on event {event_id}")
        self.event_id = event_id


INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_payload(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, LedgerUnderflow):
        logger.error("ledger_underflow_defect", event_id=exc.event_id, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=error_payload(INTERNAL_ERROR_MESSAGE))

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.message),
        headers=headers,
    )


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_payload("Validation failed", errors=jsonable_encoder(exc.errors())),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(INTERNAL_ERROR_MESSAGE),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
