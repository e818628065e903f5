"""Outbound booking notifications.

The orchestrator hands every booking change to an ``EventPublisher``.
Delivery is fire-and-forget from the core's point of view: a publisher
failure is logged and never undoes the booking.
"""

import logging
import threading
from abc import ABC, abstractmethod

from reservation_core.schemas.booking_schema import BookingEvent

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Notification collaborator interface."""

    @abstractmethod
    def publish(self, event: BookingEvent) -> None:
        ...


class LoggingEventPublisher(EventPublisher):
    """Writes each event to the log. Default when nothing else is wired."""

    def publish(self, event: BookingEvent) -> None:
        booking = event.booking
        logger.info(
            "Booking %s: %s store=%s resource=%s %s status=%s",
            event.type.value,
            booking.booking_number,
            booking.store_id,
            booking.resource_id,
            booking.interval.label(),
            booking.status.value,
        )


class InMemoryEventPublisher(EventPublisher):
    """Collects events in order for tests and the console demo."""

    def __init__(self) -> None:
        self.events: list[BookingEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: BookingEvent) -> None:
        with self._lock:
            self.events.append(event)

    def clear(self) -> None:
        with self._lock:
            self.events.clear()
