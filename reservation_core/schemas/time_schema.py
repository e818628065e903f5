"""Same-day time intervals and opening-hour windows."""

from datetime import date, time

from pydantic import BaseModel, ConfigDict, model_validator

from reservation_core.utils import add_minutes, to_minutes


class TimeInterval(BaseModel):
    """Half-open ``[start, end)`` interval on a single date."""

    model_config = ConfigDict(frozen=True)

    date: date
    start: time
    end: time

    @model_validator(mode="after")
    def _start_before_end(self) -> "TimeInterval":
        if self.start >= self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")
        return self

    @classmethod
    def from_start(cls, day: date, start: time, duration_minutes: int) -> "TimeInterval":
        return cls(date=day, start=start, end=add_minutes(start, duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)

    def label(self) -> str:
        return f"{self.date.isoformat()} {self.start:%H:%M}-{self.end:%H:%M}"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Half-open overlap test; touching intervals (a.end == b.start) do not overlap."""
    return a.date == b.date and a.start < b.end and b.start < a.end


class DailyHours(BaseModel):
    """Opening window for one day. A missing entry means closed."""

    model_config = ConfigDict(frozen=True)

    open: time
    close: time

    @model_validator(mode="after")
    def _open_before_close(self) -> "DailyHours":
        if self.open >= self.close:
            raise ValueError(f"Opening time {self.open} must be before closing time {self.close}")
        return self

    @property
    def minutes(self) -> int:
        return to_minutes(self.close) - to_minutes(self.open)

    def contains(self, interval: TimeInterval) -> bool:
        return self.open <= interval.start and interval.end <= self.close
