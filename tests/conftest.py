"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest

from reservation_core.booking.events import InMemoryEventPublisher
from reservation_core.bootstrap import build_core
from reservation_core.schemas.booking_schema import Booking, BookingRequest, BookingStatus
from reservation_core.schemas.menu_schema import Menu, MenuOption
from reservation_core.schemas.resource_schema import Resource
from reservation_core.schemas.store_schema import Store
from reservation_core.schemas.time_schema import DailyHours, TimeInterval
from reservation_core.store.catalog import InMemoryCatalog
from reservation_core.store.lease_store import InMemoryLeaseStore
from reservation_core.utils import parse_time

STORE_ID = 1
MENU_ID = 10
OPTION_ID = 100
RESOURCE_ID = 20

# Monday 2025-07-07 06:00 UTC; bookings go on Tuesday 2025-07-08
NOW = datetime(2025, 7, 7, 6, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
DAY = date(2025, 7, 8)
SUNDAY = date(2025, 7, 13)

OPEN_HOURS = DailyHours(open=time(9, 0), close=time(18, 0))


class FakeClock:
    """Controllable clock shared by the lease store and the core."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_store(**overrides) -> Store:
    fields = dict(
        id=STORE_ID,
        name="Test Salon",
        business_hours={
            day: OPEN_HOURS
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
        },
    )
    fields.update(overrides)
    return Store(**fields)


def make_menu(**overrides) -> Menu:
    fields = dict(
        id=MENU_ID,
        store_id=STORE_ID,
        name="Cut",
        base_price=3000,
        base_duration=60,
        options=[MenuOption(id=OPTION_ID, menu_id=MENU_ID, name="Treatment", price=500)],
    )
    fields.update(overrides)
    return Menu(**fields)


def make_resource(resource_id: int = RESOURCE_ID, **overrides) -> Resource:
    fields = dict(
        id=resource_id,
        store_id=STORE_ID,
        name=f"Stylist {resource_id}",
        hourly_rate_diff=1000,
        nomination_fee=300,
    )
    fields.update(overrides)
    return Resource(**fields)


def make_interval(start: str = "10:00", end: str = "11:00", day: date = DAY) -> TimeInterval:
    return TimeInterval(date=day, start=parse_time(start), end=parse_time(end))


def make_request(
    start: str = "10:00",
    end: Optional[str] = None,
    day: date = DAY,
    resource_id: Optional[int] = RESOURCE_ID,
    option_ids: Optional[list[int]] = None,
) -> BookingRequest:
    return BookingRequest(
        menu_id=MENU_ID,
        date=day,
        start=parse_time(start),
        end=parse_time(end) if end else None,
        resource_id=resource_id,
        option_ids=option_ids or [],
    )


def make_booking(
    start: str = "10:00",
    end: str = "11:00",
    resource_id: Optional[int] = RESOURCE_ID,
    status: BookingStatus = BookingStatus.CONFIRMED,
    day: date = DAY,
) -> Booking:
    """Booking to insert straight into the repository, bypassing the orchestrator."""
    return Booking(
        booking_number="TEST",
        store_id=STORE_ID,
        menu_id=MENU_ID,
        resource_id=resource_id,
        interval=make_interval(start, end, day),
        status=status,
        created_at=NOW,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    catalog = InMemoryCatalog()
    catalog.add_store(make_store())
    catalog.add_menu(make_menu())
    catalog.add_resource(make_resource())
    return catalog


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def core(catalog, clock, publisher):
    return build_core(
        catalog=catalog,
        lease_store=InMemoryLeaseStore(clock=clock),
        publisher=publisher,
        clock=clock,
    )


@pytest.fixture
def holds(core):
    return core.holds


@pytest.fixture
def availability(core):
    return core.availability


@pytest.fixture
def orchestrator(core):
    return core.orchestrator
