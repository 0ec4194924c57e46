"""
Seat reservation and cancellation.

Both operations run as one transaction that starts by locking the event row
(``SELECT ... FOR UPDATE``; ``BEGIN IMMEDIATE`` on SQLite), so concurrent
reservations and cancellations for the same event are serialized while
different events proceed independently.

Callers get ``(booking, None)`` on success or ``(None, error)`` where
``error`` is a :class:`~eventbook.core.errors.BookingError`. Failures never
leave partial writes behind: every check raises inside the transaction, the
transaction rolls back, and the error is returned here.
"""

import logging
import uuid
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.db_utils import db_transaction, execute_with_retry, is_retryable_error
from eventbook.core.errors import (
    BookingError,
    Busy,
    DuplicateBooking,
    EventAlreadyStarted,
    Forbidden,
    InsufficientSeats,
    InvalidOperation,
    InvariantViolation,
    NotBookable,
    NotCancellable,
    NotFound,
)
from eventbook.core.settings import settings
from eventbook.crud import booking as booking_crud
from eventbook.crud import event as event_crud
from eventbook.middleware.monitoring import BOOKING_OPERATIONS
from eventbook.models.booking import Booking, BookingStatus
from eventbook.models.user import UserRole
from eventbook.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

BookingResult = Tuple[Optional[Booking], Optional[BookingError]]

_CENTS = Decimal("0.01")


def _is_active_booking_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "uq_bookings_active_user_event" in message or (
        "unique" in message and "bookings.user_id" in message
    )


async def _run(operation: str, attempt: Callable[[], Awaitable[Booking]]) -> BookingResult:
    try:
        booking = await execute_with_retry(
            attempt,
            max_attempts=settings.booking.LOCK_MAX_ATTEMPTS,
            backoff=settings.booking.LOCK_RETRY_BACKOFF,
        )
    except BookingError as e:
        BOOKING_OPERATIONS.labels(operation=operation, outcome=e.code.value).inc()
        logger.info("%s rejected: %s (%s)", operation, e.code.value, e.message)
        return None, e
    except DBAPIError as e:
        if not is_retryable_error(e):
            raise
        BOOKING_OPERATIONS.labels(operation=operation, outcome=Busy.code.value).inc()
        logger.warning("%s gave up after lock contention: %s", operation, e.orig)
        return None, Busy()

    BOOKING_OPERATIONS.labels(operation=operation, outcome="success").inc()
    return booking, None


async def reserve(
    db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID, seat_count: int
) -> BookingResult:
    """Reserve ``seat_count`` seats of ``event_id`` for ``user_id``."""
    if not 1 <= seat_count <= settings.booking.MAX_SEATS_PER_BOOKING:
        error = InvalidOperation(
            f"Number of seats must be between 1 and {settings.booking.MAX_SEATS_PER_BOOKING}"
        )
        BOOKING_OPERATIONS.labels(operation="reserve", outcome=error.code.value).inc()
        return None, error

    async def attempt() -> Booking:
        async with db_transaction(db):
            return await _reserve_locked(db, user_id, event_id, seat_count)

    return await _run("reserve", attempt)


async def _reserve_locked(
    db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID, seat_count: int
) -> Booking:
    event = await event_crud.lock_event(db, event_id)
    if event is None:
        raise NotFound("Event not found", event_id=event_id)

    now = utcnow()
    if not event.is_active:
        raise NotBookable("Event is not active", event_id=event_id)
    if as_utc(event.date_time) <= now:
        raise NotBookable("Cannot book past events", event_id=event_id)

    if seat_count > event.available_seats:
        raise InsufficientSeats(
            f"Only {event.available_seats} seats available",
            available=event.available_seats,
            requested=seat_count,
        )

    active = await booking_crud.count_active_bookings(
        db, user_id=user_id, event_id=event_id
    )
    if active > 0:
        raise DuplicateBooking(event_id=event_id)

    booking = Booking(
        user_id=user_id,
        event_id=event_id,
        number_of_seats=seat_count,
        total_amount=(Decimal(event.price) * seat_count).quantize(_CENTS),
        status=BookingStatus.CONFIRMED,
        booking_date=now,
    )
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError as e:
        if _is_active_booking_conflict(e):
            raise DuplicateBooking(event_id=event_id) from e
        raise

    event.available_seats -= seat_count
    await db.flush()

    logger.info(
        "Reserved %d seats for event %s (booking %s, %d left)",
        seat_count,
        event_id,
        booking.id,
        event.available_seats,
    )
    return booking


async def cancel(
    db: AsyncSession, actor_id: uuid.UUID, actor_role: UserRole, booking_id: uuid.UUID
) -> BookingResult:
    """Cancel a confirmed booking and return its seats to the event."""

    async def attempt() -> Booking:
        async with db_transaction(db):
            return await _cancel_locked(db, actor_id, actor_role, booking_id)

    return await _run("cancel", attempt)


async def _cancel_locked(
    db: AsyncSession, actor_id: uuid.UUID, actor_role: UserRole, booking_id: uuid.UUID
) -> Booking:
    found = await booking_crud.get_booking(db, booking_id)
    if found is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    if actor_role != UserRole.ADMIN and found.user_id != actor_id:
        raise Forbidden("Not authorized to cancel this booking", booking_id=booking_id)

    # event first, then booking: same lock order as reserve
    event = await event_crud.lock_event(db, found.event_id)
    booking = await booking_crud.lock_booking(db, booking_id)
    if event is None or booking is None:
        raise NotFound("Booking not found", booking_id=booking_id)

    if booking.status != BookingStatus.CONFIRMED:
        raise NotCancellable(
            f"Booking is already {booking.status.value}", booking_id=booking_id
        )

    now = utcnow()
    if as_utc(event.date_time) <= now:
        raise EventAlreadyStarted(booking_id=booking_id)

    restored = event.available_seats + booking.number_of_seats
    if restored > event.total_seats:
        logger.critical(
            "Cancelling booking %s would raise event %s to %d available seats "
            "out of %d; refusing",
            booking_id,
            event.id,
            restored,
            event.total_seats,
            extra={
                "booking_id": str(booking_id),
                "event_id": str(event.id),
                "available_seats": event.available_seats,
                "number_of_seats": booking.number_of_seats,
                "total_seats": event.total_seats,
            },
        )
        raise InvariantViolation(booking_id=booking_id, event_id=event.id)

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now
    event.available_seats = restored
    await db.flush()

    logger.info(
        "Cancelled booking %s, returned %d seats to event %s",
        booking_id,
        booking.number_of_seats,
        event.id,
    )
    return booking
