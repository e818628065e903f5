"""
Conflict detection between a candidate interval and what already occupies it.

A conflict is any overlap with an active (pending or confirmed) booking or a
live hold lease on the same store, resource and date. Overlap is the single
half-open predicate ``a.start < b.end and b.start < a.end``; intervals that
merely touch do not conflict.
"""

import logging
from datetime import date
from typing import Optional

from reservation_core.booking.hold_manager import HoldLeaseManager
from reservation_core.schemas.time_schema import TimeInterval, overlaps
from reservation_core.store.booking_repository import BookingRepository

logger = logging.getLogger(__name__)

__all__ = ["ConflictDetector", "overlaps"]


class ConflictDetector:
    """Answers "is this interval free?" against bookings and live holds."""

    def __init__(self, bookings: BookingRepository, holds: HoldLeaseManager) -> None:
        self._bookings = bookings
        self._holds = holds

    def busy_intervals(
        self,
        store_id: int,
        resource_id: Optional[int],
        day: date,
        exclude_booking_id: Optional[int] = None,
        exclude_token: Optional[str] = None,
    ) -> list[TimeInterval]:
        """
        Everything occupying ``resource_id`` on ``day``, read once.

        Without a resource the scope is every booking of the store that day;
        holds are always tied to a resource, so none are included then.
        """
        busy = [
            b.interval for b in self._bookings.find(store_id, day, resource_id)
            if b.id != exclude_booking_id
        ]
        if resource_id is not None:
            busy.extend(
                lease.interval
                for lease in self._holds.live_leases(store_id, resource_id, day, exclude_token)
            )
        return sorted(busy, key=lambda i: i.start)

    def has_conflict(
        self,
        store_id: int,
        resource_id: Optional[int],
        interval: TimeInterval,
        exclude_booking_id: Optional[int] = None,
        exclude_token: Optional[str] = None,
    ) -> bool:
        busy = self.busy_intervals(
            store_id, resource_id, interval.date, exclude_booking_id, exclude_token
        )
        clash = next((b for b in busy if overlaps(b, interval)), None)
        if clash is not None:
            logger.debug("Conflict for %s with %s", interval.label(), clash.label())
            return True
        return False
