"""
Typed failures for the reservation and cancellation paths.

The booking protocols raise these inside their transaction so the
transaction rolls back, then hand them back to the caller as values.
The HTTP layer turns them into responses with ``to_http_exception``.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NOT_BOOKABLE = "NOT_BOOKABLE"
    INSUFFICIENT_SEATS = "INSUFFICIENT_SEATS"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    FORBIDDEN = "FORBIDDEN"
    NOT_CANCELLABLE = "NOT_CANCELLABLE"
    EVENT_ALREADY_STARTED = "EVENT_ALREADY_STARTED"
    BUSY = "BUSY"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class BookingError(Exception):
    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    default_message = "Booking operation failed"

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class NotFound(BookingError):
    code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"


class NotBookable(BookingError):
    code = ErrorCode.NOT_BOOKABLE
    default_message = "Event is not open for booking"


class InsufficientSeats(BookingError):
    code = ErrorCode.INSUFFICIENT_SEATS
    default_message = "Not enough seats available"


class DuplicateBooking(BookingError):
    code = ErrorCode.DUPLICATE_BOOKING
    default_message = "You already have an active booking for this event"


class Forbidden(BookingError):
    code = ErrorCode.FORBIDDEN
    default_message = "You are not allowed to perform this action"


class NotCancellable(BookingError):
    code = ErrorCode.NOT_CANCELLABLE
    default_message = "Only confirmed bookings can be cancelled"


class EventAlreadyStarted(BookingError):
    code = ErrorCode.EVENT_ALREADY_STARTED
    default_message = "Cannot cancel a booking for an event that has started"


class Busy(BookingError):
    code = ErrorCode.BUSY
    default_message = "The event is busy, please retry"


class InvariantViolation(BookingError):
    code = ErrorCode.INVARIANT_VIOLATION
    default_message = "Seat inventory is inconsistent"


class InvalidOperation(BookingError):
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid operation"


ERROR_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_BOOKABLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_CANCELLABLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_ALREADY_STARTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INSUFFICIENT_SEATS: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    ErrorCode.BUSY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INVARIANT_VIOLATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(error: BookingError) -> HTTPException:
    headers = {"Retry-After": "1"} if error.code is ErrorCode.BUSY else None
    if error.code is ErrorCode.INVARIANT_VIOLATION:
        # details stay in the critical log record
        detail = {"code": error.code.value, "message": "Internal Server Error"}
    else:
        detail = error.to_dict()
    return HTTPException(
        status_code=ERROR_STATUS_CODES[error.code], detail=detail, headers=headers
    )
