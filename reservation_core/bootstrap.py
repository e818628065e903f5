"""
Wires the reservation core together.

Usage:
    core = build_core(catalog=my_catalog, bookings=my_repository)
    result = core.holds.create_hold(store_id, resource_id, interval, menu_id)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from reservation_core.booking.conflict_detector import ConflictDetector
from reservation_core.booking.events import EventPublisher
from reservation_core.booking.hold_manager import HoldLeaseManager
from reservation_core.booking.orchestrator import BookingOrchestrator
from reservation_core.booking.slot_generator import AvailabilityService
from reservation_core.config import AppConfig, settings
from reservation_core.store.booking_repository import BookingRepository, InMemoryBookingRepository
from reservation_core.store.catalog import Catalog, InMemoryCatalog
from reservation_core.store.lease_store import InMemoryLeaseStore, LeaseStore
from reservation_core.store.redis_lease_store import RedisLeaseStore
from reservation_core.store.slot_cache import SlotCache
from reservation_core.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReservationCore:
    """All core components sharing one lease store, catalog and repository."""
    catalog: Catalog
    bookings: BookingRepository
    lease_store: LeaseStore
    cache: SlotCache
    holds: HoldLeaseManager
    conflicts: ConflictDetector
    availability: AvailabilityService
    orchestrator: BookingOrchestrator


def build_lease_store(
    config: AppConfig = settings, clock: Callable[[], datetime] = utc_now
) -> LeaseStore:
    """Lease store for the configured backend."""
    if config.backend.backend == "redis":
        return RedisLeaseStore.from_url(config.backend.redis_url)
    return InMemoryLeaseStore(clock=clock)


def build_core(
    catalog: Optional[Catalog] = None,
    bookings: Optional[BookingRepository] = None,
    lease_store: Optional[LeaseStore] = None,
    publisher: Optional[EventPublisher] = None,
    clock: Callable[[], datetime] = utc_now,
    config: AppConfig = settings,
) -> ReservationCore:
    """Build every component. Missing collaborators default to in-memory ones."""
    catalog = catalog or InMemoryCatalog()
    bookings = bookings or InMemoryBookingRepository()
    lease_store = lease_store or build_lease_store(config, clock)
    prefix = config.backend.key_prefix

    cache = SlotCache(lease_store, key_prefix=prefix, ttl_minutes=config.availability.cache_ttl_minutes)
    holds = HoldLeaseManager(
        lease_store, catalog, bookings,
        cache=cache, clock=clock, key_prefix=prefix, config=config.hold,
    )
    conflicts = ConflictDetector(bookings, holds)
    availability = AvailabilityService(
        catalog, bookings, holds, conflicts,
        cache=cache, clock=clock, config=config.availability,
    )
    orchestrator = BookingOrchestrator(
        catalog, bookings, holds, conflicts, availability,
        sequence_store=lease_store,
        publisher=publisher,
        cache=cache,
        clock=clock,
        key_prefix=prefix,
    )
    logger.debug("Reservation core built on %s", type(lease_store).__name__)
    return ReservationCore(
        catalog=catalog,
        bookings=bookings,
        lease_store=lease_store,
        cache=cache,
        holds=holds,
        conflicts=conflicts,
        availability=availability,
        orchestrator=orchestrator,
    )
