"""
Concurrent reservations each run on their own session and connection, the
way separate requests would, and must never oversell an event.
"""
import asyncio

from sqlalchemy import func, select

from eventbook.core.errors import ErrorCode
from eventbook.models import ACTIVE_STATUSES, Booking
from eventbook.services import booking_service, inventory


async def _reserve_in_own_session(session_factory, user_id, event_id, seats):
    async with session_factory() as session:
        return await booking_service.reserve(session, user_id, event_id, seats)


async def test_no_overselling_under_concurrency(
    session_factory, make_user, make_event, seats_left
):
    event = await make_event(total_seats=5)
    users = [await make_user() for _ in range(12)]

    results = await asyncio.gather(
        *[_reserve_in_own_session(session_factory, u.id, event.id, 1) for u in users]
    )

    successes = [booking for booking, error in results if error is None]
    failures = [error for booking, error in results if error is not None]
    assert len(successes) == 5
    assert len(failures) == 7
    assert all(error.code == ErrorCode.INSUFFICIENT_SEATS for error in failures)
    assert await seats_left(event.id) == 0

    async with session_factory() as session:
        snapshot = await inventory.get_inventory(session, event.id)
    assert snapshot.booked_seats == 5
    assert snapshot.consistent


async def test_same_user_racing_gets_one_booking(
    session_factory, make_user, make_event, seats_left
):
    event = await make_event(total_seats=50)
    user = await make_user()

    results = await asyncio.gather(
        *[
            _reserve_in_own_session(session_factory, user.id, event.id, 2)
            for _ in range(6)
        ]
    )

    successes = [booking for booking, error in results if error is None]
    failures = [error for booking, error in results if error is not None]
    assert len(successes) == 1
    assert all(error.code == ErrorCode.DUPLICATE_BOOKING for error in failures)
    assert await seats_left(event.id) == 48

    async with session_factory() as session:
        result = await session.execute(
            select(func.count(Booking.id)).filter(
                Booking.user_id == user.id, Booking.status.in_(ACTIVE_STATUSES)
            )
        )
    assert result.scalar_one() == 1


async def test_reserves_and_cancels_interleaved(
    session_factory, make_user, make_event, seats_left
):
    event = await make_event(total_seats=8)
    holders = [await make_user() for _ in range(4)]
    newcomers = [await make_user() for _ in range(4)]

    held = []
    for user in holders:
        booking, error = await _reserve_in_own_session(
            session_factory, user.id, event.id, 2
        )
        assert error is None
        held.append((user, booking))
    assert await seats_left(event.id) == 0

    async def cancel(user, booking):
        async with session_factory() as session:
            return await booking_service.cancel(session, user.id, user.role, booking.id)

    await asyncio.gather(
        *[cancel(user, booking) for user, booking in held],
        *[
            _reserve_in_own_session(session_factory, u.id, event.id, 2)
            for u in newcomers
        ],
    )

    async with session_factory() as session:
        snapshot = await inventory.get_inventory(session, event.id)
    assert snapshot.consistent
    assert 0 <= snapshot.available_seats <= snapshot.total_seats
