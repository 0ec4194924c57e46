import hashlib
import json
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.db_utils import PaginatedResponse, PaginationParams, db_transaction
from eventbook.core.errors import NotFound
from eventbook.core.settings import settings
from eventbook.crud import event as event_crud
from eventbook.schemas.event import Event, EventCreate, EventUpdate
from eventbook.services import inventory
from eventbook.utils.cache import bump_version, cache_get, get_version, invalidate_cache

EVENTS_LIST_VERSION_KEY = "events_list_version"


def _event_key(event_id: uuid.UUID) -> str:
    return f"event:{event_id}"


async def invalidate_event(event_id: uuid.UUID) -> None:
    """Drop the cached event and every cached event list."""
    await invalidate_cache(_event_key(event_id))
    await bump_version(EVENTS_LIST_VERSION_KEY)


async def get_event_by_id_cached(
    db: AsyncSession, event_id: uuid.UUID
) -> Optional[Event]:
    """
    Reads an active event from the cache if available, otherwise from the database.
    """

    async def db_loader() -> Optional[Event]:
        event_obj = await event_crud.get_event(db, event_id, active_only=True)
        if event_obj:
            return Event.model_validate(event_obj)
        return None

    return await cache_get(
        key=_event_key(event_id),
        ttl=settings.scalability.CACHE_TTL,
        db_loader=db_loader,
        serializer=lambda pyd: pyd.model_dump_json(),
        deserializer=lambda s: Event.model_validate_json(s),
    )


async def get_events_list_cached(
    db: AsyncSession, pagination: PaginationParams, filters: Dict[str, Any]
) -> PaginatedResponse[Event]:
    """
    Gets a cached page of events. Caching is versioned so that any event
    change invalidates every cached page at once.
    """
    version = await get_version(EVENTS_LIST_VERSION_KEY)
    filters_json = json.dumps(
        {**filters, "page": pagination.page, "limit": pagination.limit},
        sort_keys=True,
        default=str,
    )
    filters_hash = hashlib.sha256(filters_json.encode()).hexdigest()
    key = f"events_list:v{version}:{filters_hash}"

    async def db_loader() -> PaginatedResponse[Event]:
        events, total = await event_crud.get_events_filtered(
            db, offset=pagination.offset, limit=pagination.limit, **filters
        )
        return PaginatedResponse[Event].create(
            [Event.model_validate(e) for e in events], total, pagination
        )

    return await cache_get(
        key=key,
        ttl=settings.scalability.CACHE_TTL,
        db_loader=db_loader,
        serializer=lambda page: page.model_dump_json(),
        deserializer=lambda s: PaginatedResponse[Event].model_validate_json(s),
    )


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    event_obj = await event_crud.create_event(db, event=event_data)
    await bump_version(EVENTS_LIST_VERSION_KEY)
    return Event.model_validate(event_obj)


async def update_event(
    db: AsyncSession, event_id: uuid.UUID, event_data: EventUpdate
) -> Event:
    """
    Applies a partial update. A capacity change goes through the inventory
    module under the event row lock, like a reservation would.
    """
    update_data = event_data.model_dump(exclude_unset=True)
    async with db_transaction(db):
        event_obj = await event_crud.lock_event(db, event_id)
        if event_obj is None:
            raise NotFound("Event not found", event_id=event_id)
        event_crud.apply_event_fields(event_obj, update_data)
        if update_data.get("total_seats") is not None:
            await inventory.change_capacity(db, event_obj, update_data["total_seats"])
        await db.flush()
        await db.refresh(event_obj)
        result = Event.model_validate(event_obj)

    await invalidate_event(event_id)
    return result


async def delete_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[Event]:
    """
    Hard-deletes an event nobody has booked. Once any booking exists the event
    is deactivated instead and returned; ``None`` means it was removed.
    """
    async with db_transaction(db):
        event_obj = await event_crud.lock_event(db, event_id)
        if event_obj is None:
            raise NotFound("Event not found", event_id=event_id)
        if await event_crud.count_bookings(db, event_id) == 0:
            await db.delete(event_obj)
            result = None
        else:
            event_obj.is_active = False
            await db.flush()
            await db.refresh(event_obj)
            result = Event.model_validate(event_obj)

    await invalidate_event(event_id)
    return result
