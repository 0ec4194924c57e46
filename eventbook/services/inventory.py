"""
Seat inventory accessors.

``get_inventory`` derives the booked seat count from the booking ledger so the
stored ``available_seats`` can be checked against it. Nothing here is on the
reservation path; the protocols mutate ``available_seats`` directly.
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.functions import coalesce

from eventbook.core.errors import InvalidOperation, InvariantViolation
from eventbook.crud import booking as booking_crud
from eventbook.models.booking import ACTIVE_STATUSES, Booking
from eventbook.models.event import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventorySnapshot:
    event_id: uuid.UUID
    total_seats: int
    available_seats: int
    booked_seats: int

    @property
    def consistent(self) -> bool:
        return self.available_seats + self.booked_seats == self.total_seats

    def as_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "consistent": self.consistent}


async def get_inventory(
    db: AsyncSession, event_id: uuid.UUID
) -> Optional[InventorySnapshot]:
    result = await db.execute(
        select(Event.total_seats, Event.available_seats).filter(Event.id == event_id)
    )
    row = result.first()
    if row is None:
        return None
    booked = await booking_crud.sum_active_seats(db, event_id)
    return InventorySnapshot(
        event_id=event_id,
        total_seats=row.total_seats,
        available_seats=row.available_seats,
        booked_seats=booked,
    )


async def get_all_inventories(db: AsyncSession) -> List[InventorySnapshot]:
    booked = coalesce(
        func.sum(
            case(
                (Booking.status.in_(ACTIVE_STATUSES), Booking.number_of_seats),
                else_=0,
            )
        ),
        0,
    )
    result = await db.execute(
        select(Event.id, Event.total_seats, Event.available_seats, booked)
        .outerjoin(Booking, Booking.event_id == Event.id)
        .group_by(Event.id, Event.total_seats, Event.available_seats)
    )
    return [
        InventorySnapshot(
            event_id=event_id,
            total_seats=total,
            available_seats=available,
            booked_seats=int(booked_seats),
        )
        for event_id, total, available, booked_seats in result.all()
    ]


async def reconcile_inventory(
    db: AsyncSession, snapshots: Optional[List[InventorySnapshot]] = None
) -> List[InventorySnapshot]:
    """
    Return every inconsistent event, logging each one. Read-only.

    Pass ``snapshots`` already taken from ``get_all_inventories`` to skip
    querying again.
    """
    if snapshots is None:
        snapshots = await get_all_inventories(db)
    inconsistent = [snap for snap in snapshots if not snap.consistent]
    for snap in inconsistent:
        logger.critical(
            "Seat inventory mismatch for event %s",
            snap.event_id,
            extra={"inventory": {k: str(v) for k, v in snap.as_dict().items()}},
        )
    return inconsistent


async def change_capacity(db: AsyncSession, event: Event, new_total: int) -> Event:
    """Resize a locked event. The caller owns the transaction and the row lock."""
    booked = event.total_seats - event.available_seats
    if booked < 0:
        logger.critical(
            "Event %s has more available seats than capacity (%d > %d)",
            event.id,
            event.available_seats,
            event.total_seats,
        )
        raise InvariantViolation(event_id=event.id)
    if new_total < booked:
        raise InvalidOperation(
            f"Total seats cannot be less than the {booked} seats already booked",
            booked=booked,
        )
    event.total_seats = new_total
    event.available_seats = new_total - booked
    return event
