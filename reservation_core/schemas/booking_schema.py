"""Booking records, inbound booking requests and booking events."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from reservation_core.schemas.pricing_schema import PricingBreakdown
from reservation_core.schemas.time_schema import TimeInterval


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that occupy a resource for conflict purposes
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class BookingRequest(BaseModel):
    """Validated booking request handed over by the HTTP layer."""
    menu_id: int
    date: date
    start: time
    end: Optional[time] = None
    resource_id: Optional[int] = None
    customer_id: Optional[int] = None
    option_ids: list[int] = Field(default_factory=list)
    customer_notes: Optional[str] = None


class Booking(BaseModel):
    """Persisted booking."""
    id: Optional[int] = None
    booking_number: str = ""
    store_id: int
    menu_id: int
    resource_id: Optional[int] = None
    customer_id: Optional[int] = None
    interval: TimeInterval
    status: BookingStatus = BookingStatus.CONFIRMED
    total_price: int = 0
    pricing: Optional[PricingBreakdown] = None
    option_ids: list[int] = Field(default_factory=list)
    customer_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def date(self):
        return self.interval.date


class BookingEventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"


class BookingEvent(BaseModel):
    """Notification payload handed to the outbound notification collaborator."""
    type: BookingEventType
    booking: Booking
    occurred_at: datetime
    actor_id: Optional[str] = None
