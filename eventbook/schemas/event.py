import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventbook.utils.dates import as_utc, utcnow


def _require_future(value: datetime) -> datetime:
    value = as_utc(value)
    if value <= utcnow():
        raise ValueError("Event date must be in the future")
    return value


class EventBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    date_time: datetime
    location: str = Field(..., min_length=3, max_length=200)
    total_seats: int = Field(..., ge=1, le=100000)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)


class EventCreate(EventBase):
    @field_validator("date_time")
    @classmethod
    def date_in_future(cls, v: datetime) -> datetime:
        return _require_future(v)


class EventUpdate(BaseModel):
    """Partial update. ``available_seats`` follows ``total_seats`` and is not accepted."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    date_time: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=3, max_length=200)
    total_seats: Optional[int] = Field(None, ge=1, le=100000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(
        "title", "description", "date_time", "location", "total_seats", "price", "is_active"
    )
    @classmethod
    def not_null(cls, v: Any) -> Any:
        # omit a field to leave it unchanged; every column is NOT NULL
        if v is None:
            raise ValueError("Field may be omitted but not set to null")
        return v

    @field_validator("date_time")
    @classmethod
    def date_in_future(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _require_future(v) if v is not None else v


class Event(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    date_time: datetime
    location: str
    total_seats: int
    available_seats: int
    price: float
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EventInventory(BaseModel):
    event_id: uuid.UUID
    total_seats: int
    available_seats: int
    booked_seats: int
    consistent: bool


class EventStats(BaseModel):
    total_events: int
    active_events: int
    total_seats: int
    available_seats: int
    booked_seats: int
    average_price: float
