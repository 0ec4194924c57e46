import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api import deps
from eventbook.core.db_utils import PaginatedResponse, PaginationParams
from eventbook.core.errors import to_http_exception
from eventbook.crud import booking as booking_crud
from eventbook.crud import user as user_crud
from eventbook.models.booking import BookingStatus
from eventbook.models.user import User
from eventbook.schemas.booking import Booking, BookingCreate, BookingStats, BookingWithEvent
from eventbook.services import booking_service, event_service

router = APIRouter()


@router.post(
    "/", response_model=Booking, status_code=status.HTTP_201_CREATED
)  # type: ignore[misc]
async def create_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_in: BookingCreate,
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Reserve seats for an event. One active booking per user and event.
    """
    booking, error = await booking_service.reserve(
        db, current_user.id, booking_in.event_id, booking_in.number_of_seats
    )
    if error is not None:
        raise to_http_exception(error)
    await event_service.invalidate_event(booking_in.event_id)
    return booking


@router.get("/my-bookings", response_model=PaginatedResponse[BookingWithEvent])  # type: ignore[misc]
async def read_my_bookings(
    db: AsyncSession = Depends(deps.get_db),
    pagination: PaginationParams = Depends(deps.get_pagination),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, description="Booked at or after"),
    end_date: Optional[datetime] = Query(None, description="Booked at or before"),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Bookings of the current user, newest first.
    """
    bookings, total = await booking_crud.get_user_bookings(
        db,
        current_user.id,
        offset=pagination.offset,
        limit=pagination.limit,
        status_filter=status_filter,
        start_date=start_date,
        end_date=end_date,
    )
    return PaginatedResponse[BookingWithEvent].create(
        [BookingWithEvent.model_validate(b) for b in bookings], total, pagination
    )


@router.get("/all", response_model=PaginatedResponse[BookingWithEvent])  # type: ignore[misc]
async def read_all_bookings(
    db: AsyncSession = Depends(deps.get_db),
    pagination: PaginationParams = Depends(deps.get_pagination),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    event_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    All bookings (Admin Only).
    """
    bookings, total = await booking_crud.get_bookings_with_pagination(
        db,
        offset=pagination.offset,
        limit=pagination.limit,
        status_filter=status_filter,
        user_id_filter=user_id,
        event_id_filter=event_id,
    )
    return PaginatedResponse[BookingWithEvent].create(
        [BookingWithEvent.model_validate(b) for b in bookings], total, pagination
    )


@router.get("/stats", response_model=BookingStats)  # type: ignore[misc]
async def read_booking_stats(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    Booking counts, seats and revenue per status (Admin Only).
    """
    return await booking_crud.get_booking_stats(db)


@router.get("/{booking_id}", response_model=BookingWithEvent)  # type: ignore[misc]
async def read_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: uuid.UUID,
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Get booking by ID. Only the owner or an admin may see it.
    """
    booking = await booking_crud.get_booking(db, booking_id, with_event=True)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.user_id != current_user.id and not user_crud.is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this booking",
        )
    return BookingWithEvent.model_validate(booking)


@router.patch("/{booking_id}/cancel", response_model=Booking)  # type: ignore[misc]
async def cancel_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: uuid.UUID,
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Cancel a confirmed booking before the event starts.
    """
    booking, error = await booking_service.cancel(
        db, current_user.id, current_user.role, booking_id
    )
    if error is not None:
        raise to_http_exception(error)
    await event_service.invalidate_event(booking.event_id)
    return booking
