from reservation_core.store.lease_store import LeaseStore, InMemoryLeaseStore
from reservation_core.store.redis_lease_store import RedisLeaseStore
from reservation_core.store.catalog import Catalog, InMemoryCatalog
from reservation_core.store.booking_repository import BookingRepository, InMemoryBookingRepository
from reservation_core.store.slot_cache import SlotCache

__all__ = [
    "LeaseStore", "InMemoryLeaseStore", "RedisLeaseStore",
    "Catalog", "InMemoryCatalog",
    "BookingRepository", "InMemoryBookingRepository",
    "SlotCache",
]
