"""Schedulable resources: staff, rooms, equipment, vehicles."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from reservation_core.schemas.time_schema import DailyHours, TimeInterval
from reservation_core.utils import day_name


class ResourceType(str, Enum):
    STAFF = "staff"
    ROOM = "room"
    EQUIPMENT = "equipment"
    VEHICLE = "vehicle"


class Resource(BaseModel):
    """
    A bookable unit owned by a store.

    ``working_hours`` maps lowercase weekday names to a window or None
    (not working). An empty table means the resource follows store hours.
    """
    id: int
    store_id: int
    name: str = ""
    type: ResourceType = ResourceType.STAFF
    working_hours: dict[str, Optional[DailyHours]] = Field(default_factory=dict)
    hourly_rate_diff: int = 0
    nomination_fee: int = 0
    is_active: bool = True

    def is_working_on(self, day: date) -> bool:
        if not self.working_hours:
            return True
        return self.working_hours.get(day_name(day)) is not None

    def hours_on(self, day: date) -> Optional[DailyHours]:
        """Working window for ``day``; None when unrestricted or not working."""
        return self.working_hours.get(day_name(day))

    def covers(self, interval: TimeInterval) -> bool:
        """True if the interval lies inside this resource's working hours."""
        if not self.working_hours:
            return True
        hours = self.hours_on(interval.date)
        return hours is not None and hours.contains(interval)
