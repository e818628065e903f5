"""
Booking persistence boundary.

The repository is the arbitration point for the central invariant: no two
pending/confirmed bookings of the same store, resource and date overlap.
``add_if_free`` and ``replace_if_free`` must perform the overlap check and
the write as one atomic step (a row lock or exclusion constraint in a real
database; a mutex here).
"""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from reservation_core.errors import NotFoundError
from reservation_core.schemas.booking_schema import ACTIVE_STATUSES, Booking, BookingStatus
from reservation_core.schemas.time_schema import overlaps

logger = logging.getLogger(__name__)


def in_conflict_scope(existing: Booking, resource_id: Optional[int]) -> bool:
    """A request without a resource competes with every booking of the store."""
    return resource_id is None or existing.resource_id == resource_id


class BookingRepository(ABC):
    """Collaborator interface for booking reads and conditional writes."""

    @abstractmethod
    def find(
        self,
        store_id: int,
        day: date,
        resource_id: Optional[int] = None,
        statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
    ) -> list[Booking]:
        """Bookings on ``day`` in the conflict scope of ``resource_id``."""

    @abstractmethod
    def get(self, store_id: int, booking_id: int) -> Booking:
        """Raises NotFoundError when the booking is not in the store."""

    @abstractmethod
    def list_bookings(
        self,
        store_id: int,
        day: Optional[date] = None,
        status: Optional[BookingStatus] = None,
        resource_id: Optional[int] = None,
    ) -> list[Booking]:
        """Admin listing with optional filters, ordered by date and start."""

    @abstractmethod
    def add_if_free(self, booking: Booking) -> Optional[Booking]:
        """Insert unless an active booking overlaps. Returns the stored booking or None."""

    @abstractmethod
    def replace_if_free(self, booking: Booking) -> Optional[Booking]:
        """Overwrite an existing booking unless its new interval overlaps another."""

    @abstractmethod
    def save(self, booking: Booking) -> Booking:
        """Overwrite an existing booking without a conflict check (status changes)."""


class InMemoryBookingRepository(BookingRepository):
    """Process-local repository. All writes are serialized by a single mutex."""

    def __init__(self) -> None:
        self._bookings: dict[int, Booking] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _find_unlocked(
        self,
        store_id: int,
        day: date,
        resource_id: Optional[int],
        statuses: frozenset,
        exclude_id: Optional[int] = None,
    ) -> list[Booking]:
        return [
            b for b in self._bookings.values()
            if b.store_id == store_id
            and b.date == day
            and b.status in statuses
            and b.id != exclude_id
            and in_conflict_scope(b, resource_id)
        ]

    def _has_overlap(self, booking: Booking) -> bool:
        existing = self._find_unlocked(
            booking.store_id, booking.date, booking.resource_id, ACTIVE_STATUSES, booking.id
        )
        return any(overlaps(b.interval, booking.interval) for b in existing)

    def find(
        self,
        store_id: int,
        day: date,
        resource_id: Optional[int] = None,
        statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
    ) -> list[Booking]:
        with self._lock:
            found = self._find_unlocked(store_id, day, resource_id, frozenset(statuses))
        return sorted(found, key=lambda b: b.interval.start)

    def get(self, store_id: int, booking_id: int) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.store_id != store_id:
            raise NotFoundError(
                f"Booking {booking_id} not found in store {store_id}",
                details={"store_id": store_id, "booking_id": booking_id},
            )
        return booking

    def list_bookings(
        self,
        store_id: int,
        day: Optional[date] = None,
        status: Optional[BookingStatus] = None,
        resource_id: Optional[int] = None,
    ) -> list[Booking]:
        with self._lock:
            found = [
                b for b in self._bookings.values()
                if b.store_id == store_id
                and (day is None or b.date == day)
                and (status is None or b.status == status)
                and (resource_id is None or b.resource_id == resource_id)
            ]
        return sorted(found, key=lambda b: (b.date, b.interval.start))

    def add_if_free(self, booking: Booking) -> Optional[Booking]:
        with self._lock:
            if booking.is_active and self._has_overlap(booking):
                return None
            stored = booking.model_copy(update={"id": next(self._ids)})
            self._bookings[stored.id] = stored
        logger.debug("Stored booking %s (%s)", stored.id, stored.interval.label())
        return stored

    def replace_if_free(self, booking: Booking) -> Optional[Booking]:
        with self._lock:
            if booking.id not in self._bookings:
                raise NotFoundError(f"Booking {booking.id} not found")
            if booking.is_active and self._has_overlap(booking):
                return None
            self._bookings[booking.id] = booking
        return booking

    def save(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id not in self._bookings:
                raise NotFoundError(f"Booking {booking.id} not found")
            self._bookings[booking.id] = booking
        return booking
