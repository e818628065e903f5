"""Slot and availability-summary shapes returned to the HTTP collaborator."""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field


class Slot(BaseModel):
    """A bookable start time with the resources free for the whole duration."""
    start: time
    end: time
    available_resources: list[int] = Field(default_factory=list)
    menu_duration: int


class DayAvailability(BaseModel):
    """Summary of one calendar day for month views."""
    date: date
    available: bool
    slots_count: int = 0
    first_available: Optional[time] = None
    last_available: Optional[time] = None


class NextAvailableSlot(BaseModel):
    date: date
    slot: Slot


class ResourceUtilization(BaseModel):
    """Booked and held minutes against a resource's working minutes for a day."""
    resource_id: int
    working_minutes: int = 0
    booked_minutes: int = 0
    held_minutes: int = 0

    @property
    def utilization_rate(self) -> float:
        if not self.working_minutes:
            return 0.0
        return min(1.0, (self.booked_minutes + self.held_minutes) / self.working_minutes)
