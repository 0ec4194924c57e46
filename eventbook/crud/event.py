import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.functions import coalesce

from eventbook.models.booking import Booking
from eventbook.models.event import Event
from eventbook.schemas.event import EventCreate

SORTABLE_FIELDS = {
    "date_time": Event.date_time,
    "price": Event.price,
    "title": Event.title,
    "created_at": Event.created_at,
}


def parse_sort(sort: Optional[str]) -> List[Any]:
    """Turn ``"-price,date_time"`` into ORDER BY clauses, ignoring unknown fields."""
    clauses = []
    for raw in (sort or "").split(","):
        name = raw.strip()
        descending = name.startswith("-")
        column = SORTABLE_FIELDS.get(name.lstrip("-"))
        if column is not None:
            clauses.append(column.desc() if descending else column.asc())
    return clauses or [Event.date_time.asc()]


async def get_event(
    db: AsyncSession, event_id: uuid.UUID, active_only: bool = False
) -> Optional[Event]:
    query = select(Event).filter(Event.id == event_id)
    if active_only:
        query = query.filter(Event.is_active.is_(True))
    result = await db.execute(query)
    return result.scalars().first()


async def lock_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[Event]:
    """Load the event row with an exclusive row lock held until the transaction ends."""
    result = await db.execute(
        select(Event)
        .filter(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_events_filtered(
    db: AsyncSession,
    *,
    offset: int = 0,
    limit: int = 10,
    location: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
) -> Tuple[List[Event], int]:
    filters: List[Any] = [Event.is_active.is_(True)]
    if location:
        filters.append(Event.location.ilike(f"%{location}%"))
    if date_from is not None:
        filters.append(Event.date_time >= date_from)
    if date_to is not None:
        filters.append(Event.date_time <= date_to)
    if min_price is not None:
        filters.append(Event.price >= Decimal(str(min_price)))
    if max_price is not None:
        filters.append(Event.price <= Decimal(str(max_price)))
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Event.title.ilike(pattern),
                Event.description.ilike(pattern),
                Event.location.ilike(pattern),
            )
        )

    total_result = await db.execute(select(func.count(Event.id)).filter(and_(*filters)))
    total = total_result.scalar_one()

    query = (
        select(Event)
        .filter(and_(*filters))
        .order_by(*parse_sort(sort))
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_event(db: AsyncSession, *, event: EventCreate) -> Event:
    db_event = Event(
        title=event.title,
        description=event.description,
        date_time=event.date_time,
        location=event.location,
        total_seats=event.total_seats,
        available_seats=event.total_seats,
        price=event.price,
        is_active=True,
    )
    db.add(db_event)
    await db.commit()
    await db.refresh(db_event)
    return db_event


def apply_event_fields(db_event: Event, update_data: Dict[str, Any]) -> Event:
    """Copy plain attributes. Seat counts are handled by the inventory module."""
    for field in ("title", "description", "date_time", "location", "price", "is_active"):
        if field in update_data:
            setattr(db_event, field, update_data[field])
    return db_event


async def count_bookings(db: AsyncSession, event_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Booking.id)).filter(Booking.event_id == event_id)
    )
    return int(result.scalar_one())


async def get_event_stats(db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(
        select(
            func.count(Event.id),
            coalesce(func.sum(case((Event.is_active.is_(True), 1), else_=0)), 0),
            coalesce(func.sum(Event.total_seats), 0),
            coalesce(func.sum(Event.available_seats), 0),
            coalesce(func.avg(Event.price), 0),
        )
    )
    total, active, seats, available, avg_price = result.one()
    return {
        "total_events": int(total),
        "active_events": int(active),
        "total_seats": int(seats),
        "available_seats": int(available),
        "booked_seats": int(seats) - int(available),
        "average_price": round(float(avg_price), 2),
    }
