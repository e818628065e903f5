"""Store settings and business-calendar overrides."""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from reservation_core.config import settings
from reservation_core.schemas.time_schema import DailyHours
from reservation_core.utils import day_name


class Store(BaseModel):
    """Tenant store as seen by the booking core."""
    id: int
    name: str = ""
    business_hours: dict[str, Optional[DailyHours]] = Field(default_factory=dict)
    booking_window_days: int = settings.availability.default_booking_window_days
    hold_duration_seconds: int = settings.hold.duration_seconds
    auto_approval: bool = True
    is_active: bool = True
    # Hours, dates and the booking window are wall-clock times in this zone
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    def local_time(self, moment: datetime) -> datetime:
        """``moment`` as wall-clock time at the store."""
        return moment.astimezone(ZoneInfo(self.timezone))

    def weekly_hours(self, day: date) -> Optional[DailyHours]:
        """Regular hours for the weekday of ``day``; None when closed."""
        return self.business_hours.get(day_name(day))


class BusinessCalendarEntry(BaseModel):
    """Per-date override of the weekly schedule (holiday or special hours)."""
    store_id: int
    date: date
    is_closed: bool = False
    special_hours: Optional[DailyHours] = None
    note: Optional[str] = None
