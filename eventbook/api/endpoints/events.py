import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api import deps
from eventbook.core.db_utils import PaginatedResponse, PaginationParams
from eventbook.crud import event as event_crud
from eventbook.models.user import User
from eventbook.schemas.event import Event as EventSchema
from eventbook.schemas.event import EventCreate, EventInventory, EventStats, EventUpdate
from eventbook.services import event_service, inventory

router = APIRouter()


@router.get(
    "/",
    response_model=PaginatedResponse[EventSchema],
    summary="List Events with Filters",
)  # type: ignore[misc]
async def read_events(
    db: AsyncSession = Depends(deps.get_db),
    pagination: PaginationParams = Depends(deps.get_pagination),
    location: Optional[str] = Query(None, description="Case-insensitive location match"),
    date_from: Optional[datetime] = Query(None, description="Events starting at or after"),
    date_to: Optional[datetime] = Query(None, description="Events starting at or before"),
    min_price: Optional[float] = Query(None, ge=0, description="Minimum ticket price"),
    max_price: Optional[float] = Query(None, ge=0, description="Maximum ticket price"),
    search: Optional[str] = Query(None, description="Search title, description and location"),
    sort: Optional[str] = Query(
        None, description="Comma separated fields, prefix with - for descending"
    ),
) -> Any:
    """
    **Browse Active Events**

    Paginated list of active events. Results are cached per filter set and
    invalidated whenever any event or its seat inventory changes.

    **Query Parameters:**
    - `page`, `limit` (int): Pagination, `limit` is capped at 100
    - `location` (string, optional): Filter by venue
    - `date_from`, `date_to` (datetime, optional): Start time window
    - `min_price`, `max_price` (float, optional): Price range
    - `search` (string, optional): Free text search
    - `sort` (string, optional): e.g. `-price,date_time` (fields: date_time, price, title, created_at)

    **Example Requests:**
    ```bash
    GET /api/v1/events/?location=berlin&max_price=100
    GET /api/v1/events/?page=2&limit=20&sort=-price
    ```
    """
    filters = {
        "location": location,
        "date_from": date_from,
        "date_to": date_to,
        "min_price": min_price,
        "max_price": max_price,
        "search": search,
        "sort": sort,
    }
    return await event_service.get_events_list_cached(db, pagination, filters)


@router.get("/stats", response_model=EventStats, summary="Event Statistics")  # type: ignore[misc]
async def read_event_stats(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    Capacity and pricing totals across all events (Admin Only).
    """
    return await event_crud.get_event_stats(db)


@router.get("/{event_id}", response_model=EventSchema, summary="Get Event Details")  # type: ignore[misc]
async def read_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: uuid.UUID,
) -> Any:
    """
    **Get Event by ID**

    Returns an active event including its current seat availability.

    **Errors:**
    - `404`: Event not found or no longer active
    """
    event = await event_service.get_event_by_id_cached(db, event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


@router.get(
    "/{event_id}/inventory",
    response_model=EventInventory,
    summary="Seat Inventory Check",
)  # type: ignore[misc]
async def read_event_inventory(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: uuid.UUID,
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    Compares the stored available seats with the seats held by active
    bookings (Admin Only).
    """
    snapshot = await inventory.get_inventory(db, event_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return snapshot.as_dict()


@router.post(
    "/",
    response_model=EventSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Create New Event",
)  # type: ignore[misc]
async def create_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_in: EventCreate,
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    **Create New Event** (Admin Only)

    **Request Body:**
    - `title` (string, 3-200 characters)
    - `description` (string, 10-2000 characters)
    - `date_time` (datetime): Must be in the future
    - `location` (string, 3-200 characters)
    - `total_seats` (integer, 1-100000): Available seats start at this value
    - `price` (decimal, >= 0, 2 decimal places)

    **Example Request:**
    ```json
    {
        "title": "Tech Conference",
        "description": "Annual technology conference",
        "date_time": "2030-06-15T09:00:00Z",
        "location": "Convention Center",
        "total_seats": 500,
        "price": 299.99
    }
    ```

    **Errors:**
    - `403`: Admin privileges required
    - `422`: Invalid event data
    """
    return await event_service.create_event(db, event_in)


@router.patch("/{event_id}", response_model=EventSchema, summary="Update Event")  # type: ignore[misc]
async def update_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: uuid.UUID,
    event_in: EventUpdate,
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    **Update Event** (Admin Only)

    Partial update. Changing `total_seats` keeps the seats already booked
    and recomputes the available seats; it cannot drop below the booked count.

    **Errors:**
    - `400`: New capacity is below the seats already booked
    - `404`: Event not found
    """
    return await event_service.update_event(db, event_id, event_in)


@router.delete(
    "/{event_id}",
    response_model=EventSchema,
    responses={204: {"description": "Event deleted"}},
    summary="Delete Event",
)  # type: ignore[misc]
async def delete_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: uuid.UUID,
    current_user: User = Depends(deps.get_current_admin_user),
) -> Any:
    """
    **Delete Event** (Admin Only)

    Events without bookings are removed (`204`). Events that have bookings
    are deactivated instead and returned (`200`).
    """
    deactivated = await event_service.delete_event(db, event_id)
    if deactivated is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return deactivated
