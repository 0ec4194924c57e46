import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from eventbook.models.booking import BookingStatus

from .event import Event


class BookingCreate(BaseModel):
    event_id: uuid.UUID
    number_of_seats: int = Field(
        1, ge=1, le=10, description="Seats to reserve, between 1 and 10."
    )


class Booking(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_id: uuid.UUID
    number_of_seats: int
    total_amount: float
    status: BookingStatus
    booking_date: datetime
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingWithEvent(Booking):
    event: Event


class BookingStatusStats(BaseModel):
    status: BookingStatus
    count: int
    total_seats: int
    total_revenue: float
    average_amount: float


class BookingStats(BaseModel):
    by_status: List[BookingStatusStats]
    total_bookings: int
    total_seats: int
    total_revenue: float
    average_booking_value: float
