import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking


class Event(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    location: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    # only the booking protocols and capacity changes write this column
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", back_populates="event", passive_deletes=True
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_events_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_events_available_non_negative"),
        CheckConstraint(
            "available_seats <= total_seats", name="ck_events_available_within_total"
        ),
        CheckConstraint("price >= 0", name="ck_events_price_non_negative"),
        Index("idx_event_active_date", "is_active", "date_time"),
        Index("idx_event_price_date", "price", "date_time"),
    )
