from reservation_core.booking.hold_manager import HoldLeaseManager, LEASE_TRANSITIONS
from reservation_core.booking.conflict_detector import ConflictDetector, overlaps
from reservation_core.booking.slot_generator import AvailabilityService
from reservation_core.booking.pricing import compute_price
from reservation_core.booking.events import EventPublisher, InMemoryEventPublisher, LoggingEventPublisher
from reservation_core.booking.orchestrator import BookingOrchestrator, BOOKING_TRANSITIONS

__all__ = [
    "HoldLeaseManager", "LEASE_TRANSITIONS",
    "ConflictDetector", "overlaps",
    "AvailabilityService",
    "compute_price",
    "EventPublisher", "InMemoryEventPublisher", "LoggingEventPublisher",
    "BookingOrchestrator", "BOOKING_TRANSITIONS",
]
