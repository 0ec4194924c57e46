import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.functions import coalesce

from eventbook.models.booking import ACTIVE_STATUSES, Booking, BookingStatus


async def get_booking(
    db: AsyncSession, booking_id: uuid.UUID, with_event: bool = False
) -> Optional[Booking]:
    query = select(Booking).filter(Booking.id == booking_id)
    if with_event:
        query = query.options(selectinload(Booking.event))
    result = await db.execute(query)
    return result.scalars().first()


async def lock_booking(db: AsyncSession, booking_id: uuid.UUID) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .filter(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def count_active_bookings(
    db: AsyncSession, *, user_id: uuid.UUID, event_id: uuid.UUID
) -> int:
    result = await db.execute(
        select(func.count(Booking.id)).filter(
            Booking.user_id == user_id,
            Booking.event_id == event_id,
            Booking.status.in_(ACTIVE_STATUSES),
        )
    )
    return int(result.scalar_one())


async def sum_active_seats(db: AsyncSession, event_id: uuid.UUID) -> int:
    result = await db.execute(
        select(coalesce(func.sum(Booking.number_of_seats), 0)).filter(
            Booking.event_id == event_id, Booking.status.in_(ACTIVE_STATUSES)
        )
    )
    return int(result.scalar_one())


async def _paginate(
    db: AsyncSession, filters: List[Any], offset: int, limit: int
) -> Tuple[List[Booking], int]:
    count_query = select(func.count(Booking.id))
    query = select(Booking).options(selectinload(Booking.event))
    if filters:
        count_query = count_query.filter(and_(*filters))
        query = query.filter(and_(*filters))
    total = (await db.execute(count_query)).scalar_one()
    query = query.order_by(Booking.booking_date.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_user_bookings(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    offset: int = 0,
    limit: int = 10,
    status_filter: Optional[BookingStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[Booking], int]:
    filters: List[Any] = [Booking.user_id == user_id]
    if status_filter:
        filters.append(Booking.status == status_filter)
    if start_date is not None:
        filters.append(Booking.booking_date >= start_date)
    if end_date is not None:
        filters.append(Booking.booking_date <= end_date)
    return await _paginate(db, filters, offset, limit)


async def get_bookings_with_pagination(
    db: AsyncSession,
    *,
    offset: int = 0,
    limit: int = 10,
    status_filter: Optional[BookingStatus] = None,
    user_id_filter: Optional[uuid.UUID] = None,
    event_id_filter: Optional[uuid.UUID] = None,
) -> Tuple[List[Booking], int]:
    filters: List[Any] = []
    if status_filter:
        filters.append(Booking.status == status_filter)
    if user_id_filter:
        filters.append(Booking.user_id == user_id_filter)
    if event_id_filter:
        filters.append(Booking.event_id == event_id_filter)
    return await _paginate(db, filters, offset, limit)


async def get_booking_stats(db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(
        select(
            Booking.status,
            func.count(Booking.id),
            coalesce(func.sum(Booking.number_of_seats), 0),
            coalesce(func.sum(Booking.total_amount), 0),
            coalesce(func.avg(Booking.total_amount), 0),
        )
        .group_by(Booking.status)
        .order_by(Booking.status)
    )
    by_status = [
        {
            "status": status,
            "count": int(count),
            "total_seats": int(seats),
            "total_revenue": round(float(revenue), 2),
            "average_amount": round(float(average), 2),
        }
        for status, count, seats, revenue, average in result.all()
    ]
    total_bookings = sum(row["count"] for row in by_status)
    total_revenue = round(sum(row["total_revenue"] for row in by_status), 2)
    return {
        "by_status": by_status,
        "total_bookings": total_bookings,
        "total_seats": sum(row["total_seats"] for row in by_status),
        "total_revenue": total_revenue,
        "average_booking_value": (
            round(total_revenue / total_bookings, 2) if total_bookings else 0.0
        ),
    }
