import uuid

import pytest
from sqlalchemy import update

from eventbook import tasks
from eventbook.core.errors import InvalidOperation
from eventbook.crud import event as event_crud
from eventbook.models import Event
from eventbook.services import booking_service, inventory


async def test_snapshot_derives_booked_seats(db, make_user, make_event, session_factory):
    event = await make_event(total_seats=20)
    for seats in (2, 5):
        user = await make_user()
        _, error = await booking_service.reserve(db, user.id, event.id, seats)
        assert error is None

    async with session_factory() as session:
        snapshot = await inventory.get_inventory(session, event.id)

    assert snapshot.total_seats == 20
    assert snapshot.available_seats == 13
    assert snapshot.booked_seats == 7
    assert snapshot.consistent
    assert snapshot.as_dict()["consistent"] is True


async def test_cancelled_bookings_are_not_counted(db, make_user, make_event, session_factory):
    event = await make_event(total_seats=10)
    user = await make_user()
    booking, _ = await booking_service.reserve(db, user.id, event.id, 4)
    await booking_service.cancel(db, user.id, user.role, booking.id)

    async with session_factory() as session:
        snapshot = await inventory.get_inventory(session, event.id)

    assert snapshot.booked_seats == 0
    assert snapshot.available_seats == 10


async def test_unknown_event_has_no_snapshot(db):
    assert await inventory.get_inventory(db, uuid.uuid4()) is None


async def test_reconcile_reports_only_drifted_events(
    db, make_user, make_event, session_factory, caplog
):
    healthy = await make_event(total_seats=10)
    drifted = await make_event(total_seats=10)
    user = await make_user()
    await booking_service.reserve(db, user.id, drifted.id, 3)
    async with session_factory() as session:
        await session.execute(
            update(Event).where(Event.id == drifted.id).values(available_seats=9)
        )
        await session.commit()

    async with session_factory() as session:
        inconsistent = await inventory.reconcile_inventory(session)

    assert [snap.event_id for snap in inconsistent] == [drifted.id]
    assert healthy.id not in {snap.event_id for snap in inconsistent}
    assert any(
        record.levelname == "CRITICAL" and "mismatch" in record.getMessage()
        for record in caplog.records
    )


async def test_reconcile_task_summary(database, make_event, monkeypatch):
    await make_event(total_seats=5)
    await make_event(total_seats=7)
    monkeypatch.setattr(tasks, "db_manager", database)

    summary = await tasks._reconcile()

    assert summary == {"checked": 2, "inconsistent": []}


async def test_reconcile_task_reads_inventory_once(
    database, make_event, session_factory, monkeypatch
):
    await make_event(total_seats=5)
    drifted = await make_event(total_seats=7)
    async with session_factory() as session:
        await session.execute(
            update(Event).where(Event.id == drifted.id).values(available_seats=3)
        )
        await session.commit()
    monkeypatch.setattr(tasks, "db_manager", database)

    calls = []
    real_get_all = inventory.get_all_inventories

    async def counting_get_all(db):
        calls.append(db)
        return await real_get_all(db)

    monkeypatch.setattr(inventory, "get_all_inventories", counting_get_all)

    summary = await tasks._reconcile()

    assert summary == {"checked": 2, "inconsistent": [str(drifted.id)]}
    assert len(calls) == 1


async def test_capacity_increase_keeps_booked_seats(db, make_user, make_event):
    event = await make_event(total_seats=10)
    user = await make_user()
    await booking_service.reserve(db, user.id, event.id, 4)

    locked = await event_crud.lock_event(db, event.id)
    await inventory.change_capacity(db, locked, 15)
    await db.commit()

    assert locked.total_seats == 15
    assert locked.available_seats == 11


async def test_capacity_cannot_drop_below_booked(db, make_user, make_event, seats_left):
    event = await make_event(total_seats=10)
    user = await make_user()
    await booking_service.reserve(db, user.id, event.id, 6)

    locked = await event_crud.lock_event(db, event.id)
    with pytest.raises(InvalidOperation):
        await inventory.change_capacity(db, locked, 5)
    await db.rollback()

    assert await seats_left(event.id) == 4
