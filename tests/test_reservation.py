import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, select, update

from eventbook.core.errors import ErrorCode
from eventbook.crud import booking as booking_crud
from eventbook.models import Booking, BookingStatus
from eventbook.services import booking_service


async def _booking_count(session_factory, event_id) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(Booking.id)).filter(Booking.event_id == event_id)
        )
        return int(result.scalar_one())


async def test_reserve_decrements_available_seats(db, make_user, make_event, seats_left):
    user = await make_user()
    event = await make_event(total_seats=10)

    booking, error = await booking_service.reserve(db, user.id, event.id, 3)

    assert error is None
    assert booking is not None
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.number_of_seats == 3
    assert booking.user_id == user.id
    assert booking.total_amount == Decimal("75.00")
    assert await seats_left(event.id) == 7


async def test_reserve_unknown_event(db, make_user):
    user = await make_user()

    booking, error = await booking_service.reserve(db, user.id, uuid.uuid4(), 1)

    assert booking is None
    assert error.code == ErrorCode.NOT_FOUND


async def test_reserve_inactive_event(db, make_user, make_event, seats_left):
    user = await make_user()
    event = await make_event(is_active=False)

    booking, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert booking is None
    assert error.code == ErrorCode.NOT_BOOKABLE
    assert await seats_left(event.id) == 10


async def test_reserve_past_event(db, make_user, make_event):
    user = await make_user()
    event = await make_event(starts_in=timedelta(hours=-1))

    _, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert error.code == ErrorCode.NOT_BOOKABLE


async def test_reserve_more_than_available(
    db, make_user, make_event, seats_left, session_factory
):
    user = await make_user()
    event = await make_event(total_seats=10, available_seats=2)

    booking, error = await booking_service.reserve(db, user.id, event.id, 3)

    assert booking is None
    assert error.code == ErrorCode.INSUFFICIENT_SEATS
    assert error.context["available"] == 2
    assert await seats_left(event.id) == 2
    assert await _booking_count(session_factory, event.id) == 0


async def test_reserve_exact_remaining_seats(db, make_user, make_event, seats_left):
    user = await make_user()
    event = await make_event(total_seats=10, available_seats=4)

    _, error = await booking_service.reserve(db, user.id, event.id, 4)

    assert error is None
    assert await seats_left(event.id) == 0


async def test_reserve_sold_out_event(db, make_user, make_event):
    user = await make_user()
    event = await make_event(total_seats=5, available_seats=0)

    _, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert error.code == ErrorCode.INSUFFICIENT_SEATS


async def test_second_active_booking_is_rejected(
    db, make_user, make_event, seats_left, session_factory
):
    user = await make_user()
    event = await make_event(total_seats=10)

    _, first_error = await booking_service.reserve(db, user.id, event.id, 2)
    booking, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert first_error is None
    assert booking is None
    assert error.code == ErrorCode.DUPLICATE_BOOKING
    assert await seats_left(event.id) == 8
    assert await _booking_count(session_factory, event.id) == 1


async def test_unique_index_rejects_duplicate_missed_by_the_check(
    db, make_user, make_event, seats_left, session_factory, monkeypatch
):
    user = await make_user()
    event = await make_event(total_seats=10)
    _, first_error = await booking_service.reserve(db, user.id, event.id, 2)

    async def no_active_bookings(*args, **kwargs):
        return 0

    monkeypatch.setattr(booking_crud, "count_active_bookings", no_active_bookings)

    booking, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert first_error is None
    assert booking is None
    assert error.code == ErrorCode.DUPLICATE_BOOKING
    assert await seats_left(event.id) == 8
    assert await _booking_count(session_factory, event.id) == 1


async def test_pending_booking_blocks_another_reservation(
    db, make_user, make_event, seats_left, session_factory
):
    user = await make_user()
    event = await make_event(total_seats=10)
    first, _ = await booking_service.reserve(db, user.id, event.id, 2)
    first_id = first.id
    async with session_factory() as session:
        await session.execute(
            update(Booking)
            .where(Booking.id == first_id)
            .values(status=BookingStatus.PENDING)
        )
        await session.commit()

    booking, error = await booking_service.reserve(db, user.id, event.id, 1)

    assert booking is None
    assert error.code == ErrorCode.DUPLICATE_BOOKING
    assert await seats_left(event.id) == 8
    assert await _booking_count(session_factory, event.id) == 1


async def test_rebooking_after_cancellation_is_allowed(
    db, make_user, make_event, seats_left
):
    user = await make_user()
    event = await make_event(total_seats=10)

    first, _ = await booking_service.reserve(db, user.id, event.id, 2)
    _, cancel_error = await booking_service.cancel(db, user.id, user.role, first.id)
    second, error = await booking_service.reserve(db, user.id, event.id, 5)

    assert cancel_error is None
    assert error is None
    assert second.id != first.id
    assert await seats_left(event.id) == 5


async def test_seat_count_out_of_range(db, make_user, make_event, seats_left):
    user = await make_user()
    event = await make_event(total_seats=20)

    for seats in (0, 11, -1):
        booking, error = await booking_service.reserve(db, user.id, event.id, seats)
        assert booking is None
        assert error.code == ErrorCode.VALIDATION_ERROR

    assert await seats_left(event.id) == 20


async def test_insufficient_seats_reported_before_duplicate(
    db, make_user, make_event
):
    user = await make_user()
    event = await make_event(total_seats=3)

    await booking_service.reserve(db, user.id, event.id, 2)
    _, error = await booking_service.reserve(db, user.id, event.id, 2)

    assert error.code == ErrorCode.INSUFFICIENT_SEATS
