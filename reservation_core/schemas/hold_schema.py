"""Hold lease records and hold statistics."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from reservation_core.schemas.time_schema import TimeInterval


class LeaseState(str, Enum):
    """Lifecycle of a hold lease. The last three are terminal."""
    CREATED = "created"
    EXTENDED = "extended"
    RELEASED = "released"
    EXPIRED = "expired"
    CONSUMED_BY_BOOKING = "consumed_by_booking"


class HoldLease(BaseModel):
    """Exclusive, self-expiring reservation of a resource interval."""
    token: str
    store_id: int
    resource_id: int
    interval: TimeInterval
    menu_id: int
    customer_id: Optional[int] = None
    created_at: datetime
    expires_at: datetime
    state: LeaseState = LeaseState.CREATED

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    @property
    def date(self):
        return self.interval.date


class HoldStats(BaseModel):
    """Per-store, per-date hold counters for the admin dashboard."""
    total_created: int = 0
    total_extended: int = 0
    total_released: int = 0
    total_converted: int = 0
    total_expired: int = 0

    @property
    def conversion_rate(self) -> float:
        return self.total_converted / self.total_created if self.total_created else 0.0
