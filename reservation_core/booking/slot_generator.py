"""
Availability slot generation.

For a store, date and menu, walks the day's open window in fixed steps and
reports every start time at which at least one eligible resource is free
for the menu's full duration (prep + service + cleanup).

Opening hours resolve in this order:
    1. Business-calendar override for the date (closed, or special hours)
    2. Weekly business hours for the weekday
    3. The resource's own working hours, where it has any

Results are cached per (store, date, menu, resource) and invalidated per
(store, date) whenever a hold or booking changes that day.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from reservation_core.booking.conflict_detector import ConflictDetector
from reservation_core.booking.hold_manager import HoldLeaseManager
from reservation_core.config import AvailabilityConfig, settings
from reservation_core.logging_context import get_request_logger
from reservation_core.schemas.availability_schema import (
    DayAvailability,
    NextAvailableSlot,
    ResourceUtilization,
    Slot,
)
from reservation_core.schemas.menu_schema import Menu
from reservation_core.schemas.resource_schema import Resource
from reservation_core.schemas.store_schema import Store
from reservation_core.schemas.time_schema import DailyHours, TimeInterval, overlaps
from reservation_core.store.booking_repository import BookingRepository
from reservation_core.store.catalog import Catalog
from reservation_core.store.slot_cache import SlotCache
from reservation_core.utils import from_minutes, to_minutes, utc_now

logger = get_request_logger(__name__)


class AvailabilityService:
    """Computes bookable slots and day-level availability summaries."""

    def __init__(
        self,
        catalog: Catalog,
        bookings: BookingRepository,
        holds: HoldLeaseManager,
        conflicts: ConflictDetector,
        cache: Optional[SlotCache] = None,
        clock: Callable[[], datetime] = utc_now,
        config: AvailabilityConfig = settings.availability,
    ) -> None:
        self._catalog = catalog
        self._bookings = bookings
        self._holds = holds
        self._conflicts = conflicts
        self._cache = cache
        self._clock = clock
        self._config = config

    # ------------------------------------------------------------------ #
    # Hour resolution
    # ------------------------------------------------------------------ #

    def resolve_open_hours(self, store: Store, day: date) -> Optional[DailyHours]:
        """Open window for ``day``, or None when the store is closed."""
        entry = self._catalog.get_calendar_entry(store.id, day)
        if entry is not None:
            if entry.is_closed:
                return None
            if entry.special_hours is not None:
                return entry.special_hours
        return store.weekly_hours(day)

    def local_now(self, store: Store) -> datetime:
        return store.local_time(self._clock())

    def in_booking_window(self, store: Store, day: date) -> bool:
        today = self.local_now(store).date()
        return today <= day <= today + timedelta(days=store.booking_window_days)

    def is_within_business_hours(
        self, store_id: int, interval: TimeInterval, resource_id: Optional[int] = None
    ) -> bool:
        store = self._catalog.get_store(store_id)
        hours = self.resolve_open_hours(store, interval.date)
        if hours is None or not hours.contains(interval):
            return False
        if resource_id is None:
            return True
        return self._catalog.get_resource(store_id, resource_id).covers(interval)

    def _candidate_resources(
        self, store_id: int, menu: Menu, day: date, resource_id: Optional[int]
    ) -> list[Resource]:
        if resource_id is not None:
            pool = [self._catalog.get_resource(store_id, resource_id)]
        else:
            pool = self._catalog.list_resources(store_id)
        return [
            r for r in pool
            if r.is_active and menu.accepts(r.type) and r.is_working_on(day)
        ]

    # ------------------------------------------------------------------ #
    # Slots
    # ------------------------------------------------------------------ #

    def get_available_slots(
        self, store_id: int, day: date, menu_id: int, resource_id: Optional[int] = None
    ) -> list[Slot]:
        """
        Bookable start times for ``menu_id`` on ``day``, ascending.

        Returns an empty list when the date is outside the booking window,
        the store is closed, or no eligible resource is free.
        """
        store = self._catalog.get_store(store_id)
        menu = self._catalog.get_menu(store_id, menu_id)
        if not self.in_booking_window(store, day):
            logger.debug("Store %s: %s is outside the booking window", store_id, day)
            return []
        hours = self.resolve_open_hours(store, day)
        if hours is None:
            return []

        version = None
        if self._cache is not None:
            # Read once: a hold landing during generation bumps past it
            version = self._cache.version(store_id, day)
            cached = self._cache.get(store_id, day, menu_id, resource_id, version=version)
            if cached is not None:
                return cached

        slots = self._generate(store_id, day, menu, hours, resource_id)
        if self._cache is not None:
            self._cache.put(store_id, day, menu_id, resource_id, slots, version=version)
        logger.info(
            "Store %s: %d slot(s) for menu %s on %s", store_id, len(slots), menu_id, day
        )
        return slots

    def _generate(
        self,
        store_id: int,
        day: date,
        menu: Menu,
        hours: DailyHours,
        resource_id: Optional[int],
    ) -> list[Slot]:
        resources = self._candidate_resources(store_id, menu, day, resource_id)
        if not resources:
            return []
        busy = {r.id: self._conflicts.busy_intervals(store_id, r.id, day) for r in resources}
        duration = menu.total_duration
        step = self._config.slot_interval_minutes
        open_at, close_at = to_minutes(hours.open), to_minutes(hours.close)

        slots = []
        for start in range(open_at, close_at - duration + 1, step):
            interval = TimeInterval(
                date=day, start=from_minutes(start), end=from_minutes(start + duration)
            )
            free = [
                r.id for r in resources
                if r.covers(interval)
                and not any(overlaps(b, interval) for b in busy[r.id])
            ]
            if free:
                slots.append(Slot(
                    start=interval.start,
                    end=interval.end,
                    available_resources=free,
                    menu_duration=duration,
                ))
        return slots

    def get_availability_calendar(
        self, store_id: int, menu_id: int, days: Optional[int] = None
    ) -> dict[date, DayAvailability]:
        """Per-day summary starting today, for month views."""
        days = self._config.calendar_days if days is None else days
        today = self.local_now(self._catalog.get_store(store_id)).date()
        calendar = {}
        for offset in range(days):
            day = today + timedelta(days=offset)
            slots = self.get_available_slots(store_id, day, menu_id)
            calendar[day] = DayAvailability(
                date=day,
                available=bool(slots),
                slots_count=len(slots),
                first_available=slots[0].start if slots else None,
                last_available=slots[-1].start if slots else None,
            )
        return calendar

    def get_next_available_slot(
        self, store_id: int, menu_id: int, resource_id: Optional[int] = None
    ) -> Optional[NextAvailableSlot]:
        """Earliest slot from now to the end of the booking window, or None."""
        store = self._catalog.get_store(store_id)
        now = self.local_now(store)
        for offset in range(store.booking_window_days + 1):
            day = now.date() + timedelta(days=offset)
            slots = self.get_available_slots(store_id, day, menu_id, resource_id)
            if offset == 0:
                slots = [s for s in slots if s.start >= now.time()]
            if slots:
                return NextAvailableSlot(date=day, slot=slots[0])
        return None

    def is_resource_available(
        self, store_id: int, resource_id: int, interval: TimeInterval
    ) -> bool:
        resource = self._catalog.get_resource(store_id, resource_id)
        if not resource.is_active:
            return False
        if not self.is_within_business_hours(store_id, interval, resource_id):
            return False
        return not self._conflicts.has_conflict(store_id, resource_id, interval)

    def get_resource_utilization(self, store_id: int, day: date) -> list[ResourceUtilization]:
        """Booked and held minutes per active resource against its working minutes."""
        store = self._catalog.get_store(store_id)
        store_hours = self.resolve_open_hours(store, day)
        report = []
        for resource in self._catalog.list_resources(store_id):
            if not resource.is_active:
                continue
            if resource.working_hours:
                hours = resource.hours_on(day) if store_hours is not None else None
            else:
                hours = store_hours
            booked = self._bookings.find(store_id, day, resource.id)
            held = self._holds.live_leases(store_id, resource.id, day)
            report.append(ResourceUtilization(
                resource_id=resource.id,
                working_minutes=hours.minutes if hours is not None else 0,
                booked_minutes=sum(b.interval.duration_minutes for b in booked),
                held_minutes=sum(l.interval.duration_minutes for l in held),
            ))
        return report
