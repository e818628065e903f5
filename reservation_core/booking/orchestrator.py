"""
Booking orchestrator: turns a validated request (and usually a hold) into a
persisted booking.

CreateBooking sequence:
    1. Validate the hold token, if one was presented
    2. Re-check conflicts against active bookings and other live holds
    3. Check business/working hours and the booking window
    4. Price the booking
    5. Persist atomically (confirmed, or pending without auto-approval)
    6. Consume the hold, invalidate cached availability, publish an event

Without a token, step 5 is guarded by a transient hold taken through the
same bucket as customer holds, so a concurrent CreateHold and CreateBooking
for the same slot cannot both succeed.

Booking status lifecycle:
    pending   -> confirmed | cancelled
    confirmed -> completed | no_show | cancelled
"""

from datetime import date, datetime, time
from typing import Callable, Optional

from pydantic import ValidationError

from reservation_core.booking.conflict_detector import ConflictDetector
from reservation_core.booking.events import EventPublisher, LoggingEventPublisher
from reservation_core.booking.hold_manager import HoldLeaseManager
from reservation_core.booking.pricing import compute_price
from reservation_core.booking.slot_generator import AvailabilityService
from reservation_core.config import settings
from reservation_core.errors import (
    ConflictError,
    InvalidIntervalError,
    InvalidStatusTransitionError,
    OutsideBusinessHoursError,
    ResourceInactiveError,
    TokenMismatchError,
    UnavailableError,
)
from reservation_core.logging_context import get_request_logger
from reservation_core.result import Result
from reservation_core.schemas.booking_schema import (
    Booking,
    BookingEvent,
    BookingEventType,
    BookingRequest,
    BookingStatus,
)
from reservation_core.schemas.menu_schema import Menu
from reservation_core.schemas.resource_schema import Resource
from reservation_core.schemas.time_schema import TimeInterval
from reservation_core.store.booking_repository import BookingRepository
from reservation_core.store.catalog import Catalog
from reservation_core.store.lease_store import LeaseStore
from reservation_core.store.slot_cache import SlotCache
from reservation_core.utils import mask_token, utc_now

logger = get_request_logger(__name__)

BOOKING_NUMBER_PREFIX = "TG"
SEQUENCE_TTL_MS = 2 * 24 * 60 * 60 * 1000

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.COMPLETED, BookingStatus.NO_SHOW, BookingStatus.CANCELLED,
    }),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def check_booking_transition(booking: Booking, target: BookingStatus) -> None:
    if target not in BOOKING_TRANSITIONS[booking.status]:
        raise InvalidStatusTransitionError(
            f"Booking {booking.booking_number} cannot move from "
            f"'{booking.status.value}' to '{target.value}'",
            details={"booking_id": booking.id, "from": booking.status.value, "to": target.value},
        )


class BookingOrchestrator:
    """Creates and manages bookings on top of holds, conflicts and pricing."""

    def __init__(
        self,
        catalog: Catalog,
        bookings: BookingRepository,
        holds: HoldLeaseManager,
        conflicts: ConflictDetector,
        availability: AvailabilityService,
        sequence_store: LeaseStore,
        publisher: Optional[EventPublisher] = None,
        cache: Optional[SlotCache] = None,
        clock: Callable[[], datetime] = utc_now,
        key_prefix: str = settings.backend.key_prefix,
    ) -> None:
        self._catalog = catalog
        self._bookings = bookings
        self._holds = holds
        self._conflicts = conflicts
        self._availability = availability
        self._sequence = sequence_store
        self._publisher = publisher or LoggingEventPublisher()
        self._cache = cache
        self._clock = clock
        self._prefix = f"{key_prefix}:booking"

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _next_booking_number(self, store_id: int, day: date) -> str:
        """``TG{YYYYMMDD}{store:03d}{seq:03d}``, numbered per store and creation day."""
        key = f"{self._prefix}:seq:{store_id}:{day:%Y%m%d}"
        seq = self._sequence.incr(key, ttl_ms=SEQUENCE_TTL_MS)
        return f"{BOOKING_NUMBER_PREFIX}{day:%Y%m%d}{store_id:03d}{seq:03d}"

    @staticmethod
    def _interval_for(menu: Menu, day: date, start: time, end: Optional[time] = None) -> TimeInterval:
        try:
            if end is None:
                return TimeInterval.from_start(day, start, menu.total_duration)
            return TimeInterval(date=day, start=start, end=end)
        except (ValueError, ValidationError) as e:
            raise InvalidIntervalError(
                f"Invalid booking time {start}-{end or '?'} on {day}",
                details={"date": day.isoformat(), "start": str(start)},
            ) from e

    def _active_resource(self, store_id: int, resource_id: Optional[int]) -> Optional[Resource]:
        if resource_id is None:
            return None
        resource = self._catalog.get_resource(store_id, resource_id)
        if not resource.is_active:
            raise ResourceInactiveError(
                f"Resource {resource_id} is not accepting bookings",
                details={"store_id": store_id, "resource_id": resource_id},
            )
        return resource

    def _check_hours(self, store_id: int, interval: TimeInterval, resource_id: Optional[int]) -> None:
        store = self._catalog.get_store(store_id)
        if not self._availability.in_booking_window(store, interval.date):
            raise OutsideBusinessHoursError(
                f"{interval.date} is outside the booking window",
                details={"date": interval.date.isoformat(), "window_days": store.booking_window_days},
            )
        if not self._availability.is_within_business_hours(store_id, interval, resource_id):
            raise OutsideBusinessHoursError(
                f"{interval.label()} is outside business hours",
                details={"interval": interval.label(), "resource_id": resource_id},
            )

    def _conflict(self, interval: TimeInterval, resource_id: Optional[int]) -> ConflictError:
        return ConflictError(
            "The selected time is no longer available",
            details={"interval": interval.label(), "resource_id": resource_id},
        )

    def _claim(
        self,
        store_id: int,
        resource_id: Optional[int],
        interval: TimeInterval,
        menu_id: int,
        exclude_booking_id: Optional[int] = None,
    ) -> Result[Optional[str]]:
        """Take a transient hold on the slot. Unassigned bookings need none."""
        if resource_id is None:
            return Result.success(None)
        held = self._holds.create_hold(
            store_id, resource_id, interval, menu_id, exclude_booking_id=exclude_booking_id
        )
        if not held.ok:
            return Result.failure(held.error)
        return Result.success(held.unwrap().token)

    def _release_claim(self, token: Optional[str], consumed: bool) -> bool:
        """
        Settle a hold once the booking write has been decided.

        Best effort: the booking row is the source of truth after commit, so
        a lease store failure here is logged and the lease is left to its TTL.
        Returns False when the lease was already gone or could not be settled.
        """
        if token is None:
            return True
        try:
            if consumed:
                return self._holds.consume_hold(token)
            return self._holds.release_hold(token)
        except UnavailableError as e:
            logger.warning("Hold %s left to expire, lease store failed: %s", mask_token(token), e)
            return False

    def _invalidate(self, store_id: int, *days: date) -> None:
        if self._cache is None:
            return
        for day in set(days):
            try:
                self._cache.invalidate(store_id, day)
            except UnavailableError as e:
                logger.warning(
                    "Availability cache for store %s on %s not invalidated: %s", store_id, day, e
                )

    def _publish(self, event_type: BookingEventType, booking: Booking, actor_id: Optional[str]) -> None:
        event = BookingEvent(
            type=event_type, booking=booking, occurred_at=self._clock(), actor_id=actor_id
        )
        try:
            self._publisher.publish(event)
        except Exception:
            logger.exception(
                "Failed to publish %s event for booking %s", event_type.value, booking.booking_number
            )

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def create_booking(
        self,
        store_id: int,
        request: BookingRequest,
        hold_token: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Result[Booking]:
        """
        Create a booking, normally from a hold the customer already owns.

        Returns a failed Result carrying ConflictError when the slot was
        taken. Everything else is raised.

        Raises:
            TokenExpiredError: The hold is gone or past expiry.
            TokenMismatchError: The hold was issued for a different slot.
            OutsideBusinessHoursError: Closed, outside hours or outside the window.
            ResourceInactiveError: The chosen resource is switched off.
            InvalidIntervalError: The requested times do not form an interval.
            NotFoundError: Unknown store, menu or resource.
            UnavailableError: A backing store failed.
        """
        store = self._catalog.get_store(store_id)
        menu = self._catalog.get_menu(store_id, request.menu_id)
        interval = self._interval_for(menu, request.date, request.start, request.end)
        resource = self._active_resource(store_id, request.resource_id)

        if hold_token is not None:
            if request.resource_id is None:
                raise TokenMismatchError(
                    "A hold always names a resource",
                    details={"token": mask_token(hold_token)},
                )
            self._holds.validate_hold(hold_token, store_id, request.resource_id, interval)

        if self._conflicts.has_conflict(
            store_id, request.resource_id, interval, exclude_token=hold_token
        ):
            logger.info("Booking refused, conflict on %s", interval.label())
            return Result.failure(self._conflict(interval, request.resource_id))

        self._check_hours(store_id, interval, request.resource_id)
        pricing = compute_price(menu, request.option_ids, resource)

        claim_token = None
        if hold_token is None:
            claim = self._claim(store_id, request.resource_id, interval, menu.id)
            if not claim.ok:
                return Result.failure(claim.error)
            claim_token = claim.value

        now = self._clock()
        draft = Booking(
            booking_number=self._next_booking_number(store_id, store.local_time(now).date()),
            store_id=store_id,
            menu_id=menu.id,
            resource_id=request.resource_id,
            customer_id=request.customer_id,
            interval=interval,
            status=BookingStatus.CONFIRMED if store.auto_approval else BookingStatus.PENDING,
            total_price=pricing.total,
            pricing=pricing,
            option_ids=list(request.option_ids),
            customer_notes=request.customer_notes,
            created_at=now,
            updated_at=now,
        )
        stored = None
        try:
            stored = self._bookings.add_if_free(draft)
        finally:
            self._release_claim(claim_token, consumed=stored is not None)
        if stored is None:
            logger.info("Booking refused at commit, %s was taken", interval.label())
            return Result.failure(self._conflict(interval, request.resource_id))

        if hold_token is not None and not self._release_claim(hold_token, consumed=True):
            logger.warning(
                "Hold %s was not consumed by booking %s",
                mask_token(hold_token), stored.booking_number,
            )

        self._invalidate(store_id, interval.date)
        logger.info(
            "Booking created: %s store=%s resource=%s %s status=%s total=%d",
            stored.booking_number, store_id, stored.resource_id,
            interval.label(), stored.status.value, stored.total_price,
        )
        self._publish(BookingEventType.CREATED, stored, actor_id)
        return Result.success(stored)

    def reschedule_booking(
        self,
        store_id: int,
        booking_id: int,
        day: date,
        start: time,
        resource_id: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> Result[Booking]:
        """Move an active booking. Its own current interval never blocks the move."""
        booking = self._bookings.get(store_id, booking_id)
        if not booking.is_active:
            raise InvalidStatusTransitionError(
                f"Booking {booking.booking_number} is {booking.status.value} and cannot be moved",
                details={"booking_id": booking_id, "status": booking.status.value},
            )
        menu = self._catalog.get_menu(store_id, booking.menu_id)
        interval = self._interval_for(menu, day, start)
        target_resource = resource_id if resource_id is not None else booking.resource_id
        resource = self._active_resource(store_id, target_resource)

        if self._conflicts.has_conflict(
            store_id, target_resource, interval, exclude_booking_id=booking.id
        ):
            return Result.failure(self._conflict(interval, target_resource))
        self._check_hours(store_id, interval, target_resource)

        claim = self._claim(store_id, target_resource, interval, menu.id, exclude_booking_id=booking.id)
        if not claim.ok:
            return Result.failure(claim.error)

        pricing = compute_price(menu, booking.option_ids, resource)
        moved = booking.model_copy(update={
            "interval": interval,
            "resource_id": target_resource,
            "pricing": pricing,
            "total_price": pricing.total,
            "updated_at": self._clock(),
        })
        stored = None
        try:
            stored = self._bookings.replace_if_free(moved)
        finally:
            self._release_claim(claim.value, consumed=stored is not None)
        if stored is None:
            return Result.failure(self._conflict(interval, target_resource))

        self._invalidate(store_id, booking.date, interval.date)
        logger.info(
            "Booking %s moved from %s to %s",
            booking.booking_number, booking.interval.label(), interval.label(),
        )
        self._publish(BookingEventType.UPDATED, stored, actor_id)
        return Result.success(stored)

    def cancel_booking(
        self,
        store_id: int,
        booking_id: int,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Booking:
        booking = self._bookings.get(store_id, booking_id)
        check_booking_transition(booking, BookingStatus.CANCELLED)
        cancelled = self._bookings.save(booking.model_copy(update={
            "status": BookingStatus.CANCELLED,
            "cancellation_reason": reason,
            "updated_at": self._clock(),
        }))
        self._invalidate(store_id, booking.date)
        logger.info("Booking %s cancelled: %s", booking.booking_number, reason or "no reason given")
        self._publish(BookingEventType.CANCELLED, cancelled, actor_id)
        return cancelled

    def update_booking_status(
        self,
        store_id: int,
        booking_id: int,
        status: BookingStatus,
        actor_id: Optional[str] = None,
    ) -> Booking:
        if status == BookingStatus.CANCELLED:
            return self.cancel_booking(store_id, booking_id, actor_id=actor_id)
        booking = self._bookings.get(store_id, booking_id)
        check_booking_transition(booking, status)
        updated = self._bookings.save(booking.model_copy(update={
            "status": status, "updated_at": self._clock(),
        }))
        if updated.is_active != booking.is_active:
            self._invalidate(store_id, booking.date)
        logger.info(
            "Booking %s status %s -> %s",
            booking.booking_number, booking.status.value, status.value,
        )
        self._publish(BookingEventType.UPDATED, updated, actor_id)
        return updated

    def list_bookings(
        self,
        store_id: int,
        day: Optional[date] = None,
        status: Optional[BookingStatus] = None,
        resource_id: Optional[int] = None,
    ) -> list[Booking]:
        return self._bookings.list_bookings(store_id, day, status, resource_id)
