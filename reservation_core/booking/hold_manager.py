"""
Hold lease manager: short-lived exclusive reservations of a resource interval.

All live leases for one (store, resource, date) live in a single bucket key.
Every mutation is a read-modify-compare-and-set on that bucket, which makes
the bucket the serialization point for the uniqueness invariant: of two
concurrent holds for overlapping intervals, at most one CAS can succeed
with the other's lease absent. A secondary ``token -> bucket`` index key
gives O(1) lookup by token. Both keys carry store-side TTLs, so an
abandoned or half-written hold disappears on its own.

Lease lifecycle:
    CREATED -> (EXTENDED)* -> RELEASED | EXPIRED | CONSUMED_BY_BOOKING

Usage:
    manager = HoldLeaseManager(lease_store, catalog, bookings)
    result = manager.create_hold(store_id, resource_id, interval, menu_id)
    if result.ok:
        token = result.value.token
"""

import secrets
import string
from datetime import date, datetime, timedelta
from typing import Callable, Optional, TypeVar

from pydantic import TypeAdapter

from reservation_core.config import HoldConfig, settings
from reservation_core.errors import (
    ConflictError,
    InvalidStatusTransitionError,
    ResourceInactiveError,
    TokenExpiredError,
    TokenMismatchError,
    UnavailableError,
)
from reservation_core.logging_context import get_request_logger
from reservation_core.result import Result
from reservation_core.schemas.hold_schema import HoldLease, HoldStats, LeaseState
from reservation_core.schemas.time_schema import TimeInterval, overlaps
from reservation_core.store.booking_repository import BookingRepository
from reservation_core.store.catalog import Catalog
from reservation_core.store.lease_store import LeaseStore
from reservation_core.store.slot_cache import SlotCache
from reservation_core.utils import mask_token, utc_now

logger = get_request_logger(__name__)

T = TypeVar("T")

_LEASES = TypeAdapter(list[HoldLease])

TOKEN_ALPHABET = string.ascii_letters + string.digits
STATS_TTL_MS = 8 * 24 * 60 * 60 * 1000

LEASE_TRANSITIONS: dict[LeaseState, frozenset[LeaseState]] = {
    LeaseState.CREATED: frozenset({
        LeaseState.EXTENDED, LeaseState.RELEASED,
        LeaseState.EXPIRED, LeaseState.CONSUMED_BY_BOOKING,
    }),
    LeaseState.EXTENDED: frozenset({
        LeaseState.EXTENDED, LeaseState.RELEASED,
        LeaseState.EXPIRED, LeaseState.CONSUMED_BY_BOOKING,
    }),
    LeaseState.RELEASED: frozenset(),
    LeaseState.EXPIRED: frozenset(),
    LeaseState.CONSUMED_BY_BOOKING: frozenset(),
}

_STAT_COUNTERS = {
    "created": "total_created",
    "extended": "total_extended",
    "released": "total_released",
    "converted": "total_converted",
    "expired": "total_expired",
}


def check_lease_transition(lease: HoldLease, target: LeaseState) -> None:
    """Raise if ``lease`` may not move to ``target``."""
    if target not in LEASE_TRANSITIONS[lease.state]:
        raise InvalidStatusTransitionError(
            f"Hold cannot move from '{lease.state.value}' to '{target.value}'",
            details={"from": lease.state.value, "to": target.value},
        )


class HoldLeaseManager:
    """Creates, validates, extends, releases and sweeps hold leases."""

    def __init__(
        self,
        store: LeaseStore,
        catalog: Catalog,
        bookings: BookingRepository,
        cache: Optional[SlotCache] = None,
        clock: Callable[[], datetime] = utc_now,
        key_prefix: str = settings.backend.key_prefix,
        config: HoldConfig = settings.hold,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._bookings = bookings
        self._cache = cache
        self.clock = clock
        self._prefix = f"{key_prefix}:hold"
        self._config = config

    # ------------------------------------------------------------------ #
    # Keys and bucket plumbing
    # ------------------------------------------------------------------ #

    def _bucket_key(self, store_id: int, resource_id: int, day: date) -> str:
        return f"{self._prefix}:bucket:{store_id}:{resource_id}:{day.isoformat()}"

    def _token_key(self, token: str) -> str:
        return f"{self._prefix}:token:{token}"

    def _stats_key(self, store_id: int, day: date, counter: str) -> str:
        return f"{self._prefix}:stats:{store_id}:{day.isoformat()}:{counter}"

    def _read_bucket(self, key: str) -> tuple[Optional[str], list[HoldLease]]:
        raw = self._store.get(key)
        return raw, (_LEASES.validate_json(raw) if raw else [])

    def _mutate_bucket(
        self,
        key: str,
        mutate: Callable[[list[HoldLease]], tuple[Optional[list[HoldLease]], T]],
    ) -> T:
        """
        Optimistic read-modify-write of one bucket.

        ``mutate`` returns ``(new_leases, payload)``; ``new_leases=None`` means
        nothing to write. Retries on CAS contention and fails closed when
        the retry budget runs out.
        """
        for _ in range(self._config.max_cas_retries):
            raw, leases = self._read_bucket(key)
            new_leases, payload = mutate(leases)
            if new_leases is None:
                return payload
            if self._store.compare_and_set(key, raw, *self._encode_bucket(new_leases)):
                return payload
        logger.error("Gave up on hold bucket %s after %d CAS attempts", key, self._config.max_cas_retries)
        raise UnavailableError("Hold store is too contended, try again", details={"bucket": key})

    def _encode_bucket(self, leases: list[HoldLease]) -> tuple[Optional[str], Optional[int]]:
        if not leases:
            return None, None
        now = self.clock()
        latest = max(lease.expires_at for lease in leases)
        ttl_ms = max(1, int((latest - now).total_seconds() * 1000))
        return _LEASES.dump_json(leases).decode(), ttl_ms

    def _bump_stat(self, store_id: int, day: date, counter: str) -> None:
        self._store.incr(self._stats_key(store_id, day, counter), ttl_ms=STATS_TTL_MS)

    def _invalidate(self, store_id: int, day: date) -> None:
        if self._cache is not None:
            self._cache.invalidate(store_id, day)

    def _generate_token(self) -> str:
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(self._config.token_length))

    def _locate(self, token: str) -> tuple[str, HoldLease]:
        """Resolve a token to its bucket and live lease, or raise TokenExpiredError."""
        bucket_key = self._store.get(self._token_key(token))
        if bucket_key is None:
            raise TokenExpiredError("Hold has expired or was released", details={"token": mask_token(token)})
        _, leases = self._read_bucket(bucket_key)
        lease = next((l for l in leases if l.token == token), None)
        if lease is None or not lease.is_live(self.clock()):
            raise TokenExpiredError("Hold has expired or was released", details={"token": mask_token(token)})
        return bucket_key, lease

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def create_hold(
        self,
        store_id: int,
        resource_id: int,
        interval: TimeInterval,
        menu_id: int,
        customer_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> Result[HoldLease]:
        """
        Reserve ``interval`` on a resource for the store's hold duration.

        ``exclude_booking_id`` lets a booking being moved hold a slot that
        overlaps its own current interval.

        Returns a failed Result carrying ConflictError when a live hold or an
        active booking already overlaps the interval.

        Raises:
            NotFoundError: Unknown store, resource or menu.
            ResourceInactiveError: The resource is switched off.
            UnavailableError: The backing store failed.
        """
        store = self._catalog.get_store(store_id)
        resource = self._catalog.get_resource(store_id, resource_id)
        self._catalog.get_menu(store_id, menu_id)
        if not resource.is_active:
            raise ResourceInactiveError(
                f"Resource {resource_id} is not accepting bookings",
                details={"store_id": store_id, "resource_id": resource_id},
            )

        details = {"store_id": store_id, "resource_id": resource_id, "interval": interval.label()}
        booked = ConflictError("The selected time is already booked", details=details)
        if self._is_booked(store_id, resource_id, interval, exclude_booking_id):
            logger.info("Hold refused, slot already booked: %s", details)
            return Result.failure(booked)

        now = self.clock()
        lease = HoldLease(
            token=self._generate_token(),
            store_id=store_id,
            resource_id=resource_id,
            interval=interval,
            menu_id=menu_id,
            customer_id=customer_id,
            created_at=now,
            expires_at=now + timedelta(seconds=store.hold_duration_seconds),
        )
        bucket_key = self._bucket_key(store_id, resource_id, interval.date)

        def claim(leases: list[HoldLease]) -> tuple[Optional[list[HoldLease]], Optional[HoldLease]]:
            live = [l for l in leases if l.is_live(now)]
            clash = next((l for l in live if overlaps(l.interval, interval)), None)
            if clash is not None:
                return None, clash
            return live + [lease], None

        clash = self._mutate_bucket(bucket_key, claim)
        if clash is not None:
            logger.info("Hold refused, slot already held: %s", details)
            return Result.failure(ConflictError("The selected time is already held", details=details))

        # A booking commits while its own claim sits in the bucket, so any booking
        # that raced the check above and committed since is visible now.
        if self._is_booked(store_id, resource_id, interval, exclude_booking_id):
            self._drop_from_bucket(bucket_key, lease.token)
            logger.info("Hold refused, slot booked concurrently: %s", details)
            return Result.failure(booked)

        ttl_ms = store.hold_duration_seconds * 1000
        try:
            self._store.set(self._token_key(lease.token), bucket_key, ttl_ms=ttl_ms)
        except UnavailableError:
            self._drop_from_bucket(bucket_key, lease.token)
            raise

        self._bump_stat(store_id, interval.date, "created")
        self._invalidate(store_id, interval.date)
        logger.info(
            "Hold created: token=%s store=%s resource=%s %s expires_at=%s",
            mask_token(lease.token), store_id, resource_id,
            interval.label(), lease.expires_at.isoformat(),
        )
        return Result.success(lease)

    def _is_booked(
        self,
        store_id: int,
        resource_id: int,
        interval: TimeInterval,
        exclude_booking_id: Optional[int],
    ) -> bool:
        booked = self._bookings.find(store_id, interval.date, resource_id)
        return any(b.id != exclude_booking_id and overlaps(b.interval, interval) for b in booked)

    def _drop_from_bucket(self, bucket_key: str, token: str) -> None:
        """Best-effort rollback of a half-written hold; the bucket TTL is the fallback."""
        try:
            self._mutate_bucket(
                bucket_key,
                lambda leases: ([l for l in leases if l.token != token], None),
            )
        except UnavailableError:
            logger.warning("Rollback of hold %s failed, leaving it to TTL", mask_token(token))

    def get_hold(self, token: str) -> HoldLease:
        """Return the live lease for ``token``; raises TokenExpiredError when gone."""
        return self._locate(token)[1]

    def validate_hold(
        self, token: str, store_id: int, resource_id: int, interval: TimeInterval
    ) -> HoldLease:
        """
        Check that ``token`` is live and was issued for exactly this slot.

        Raises:
            TokenExpiredError: Lease gone or past expires_at (even if not yet swept).
            TokenMismatchError: Lease exists but for a different store, resource or interval.
        """
        _, lease = self._locate(token)
        expected = {
            "store_id": (lease.store_id, store_id),
            "resource_id": (lease.resource_id, resource_id),
            "date": (lease.interval.date, interval.date),
            "start": (lease.interval.start, interval.start),
            "end": (lease.interval.end, interval.end),
        }
        mismatched = [name for name, (held, given) in expected.items() if held != given]
        if mismatched:
            logger.warning("Hold %s presented for a different slot: %s", mask_token(token), mismatched)
            raise TokenMismatchError(
                "Hold was issued for a different slot",
                details={"token": mask_token(token), "fields": mismatched},
            )
        return lease

    def extend_hold(self, token: str, minutes: Optional[int] = None) -> HoldLease:
        """Reset the lease expiry to now + ``minutes``. The interval never moves."""
        minutes = self._config.default_extend_minutes if minutes is None else minutes
        if not 1 <= minutes <= self._config.max_extend_minutes:
            raise ValueError(
                f"Extension must be between 1 and {self._config.max_extend_minutes} minutes, got {minutes}"
            )
        bucket_key, _ = self._locate(token)
        now = self.clock()
        new_expiry = now + timedelta(minutes=minutes)

        def extend(leases: list[HoldLease]) -> tuple[Optional[list[HoldLease]], HoldLease]:
            current = next((l for l in leases if l.token == token and l.is_live(now)), None)
            if current is None:
                raise TokenExpiredError("Hold has expired or was released", details={"token": mask_token(token)})
            check_lease_transition(current, LeaseState.EXTENDED)
            updated = current.model_copy(update={"expires_at": new_expiry, "state": LeaseState.EXTENDED})
            return [updated if l.token == token else l for l in leases], updated

        updated = self._mutate_bucket(bucket_key, extend)
        self._store.expire(self._token_key(token), minutes * 60 * 1000)
        self._bump_stat(updated.store_id, updated.date, "extended")
        logger.info("Hold extended: token=%s expires_at=%s", mask_token(token), new_expiry.isoformat())
        return updated

    def release_hold(self, token: str, reason: LeaseState = LeaseState.RELEASED) -> bool:
        """
        Delete a lease. Idempotent.

        Returns False when the lease was already gone (expired, released or
        consumed). That is a signal for logging, not an error.
        """
        bucket_key = self._store.get(self._token_key(token))
        if bucket_key is None:
            logger.debug("Release of %s ignored, hold already gone", mask_token(token))
            return False
        now = self.clock()

        def remove(leases: list[HoldLease]) -> tuple[Optional[list[HoldLease]], Optional[HoldLease]]:
            current = next((l for l in leases if l.token == token), None)
            if current is None:
                return None, None
            return [l for l in leases if l.token != token], current

        removed = self._mutate_bucket(bucket_key, remove)
        self._store.delete(self._token_key(token))
        if removed is None:
            logger.debug("Release of %s ignored, hold already gone", mask_token(token))
            return False

        if not removed.is_live(now):
            self._bump_stat(removed.store_id, removed.date, "expired")
            self._invalidate(removed.store_id, removed.date)
            logger.info("Hold %s had already expired when released", mask_token(token))
            return False

        check_lease_transition(removed, reason)
        counter = "converted" if reason == LeaseState.CONSUMED_BY_BOOKING else "released"
        self._bump_stat(removed.store_id, removed.date, counter)
        self._invalidate(removed.store_id, removed.date)
        logger.info("Hold %s: token=%s %s", reason.value, mask_token(token), removed.interval.label())
        return True

    def consume_hold(self, token: str) -> bool:
        """Release a hold because a booking now occupies its slot."""
        return self.release_hold(token, reason=LeaseState.CONSUMED_BY_BOOKING)

    def live_leases(
        self,
        store_id: int,
        resource_id: int,
        day: date,
        exclude_token: Optional[str] = None,
    ) -> list[HoldLease]:
        """Leases that currently block ``resource_id`` on ``day``."""
        _, leases = self._read_bucket(self._bucket_key(store_id, resource_id, day))
        now = self.clock()
        return [l for l in leases if l.is_live(now) and l.token != exclude_token]

    def list_store_holds(self, store_id: int) -> list[HoldLease]:
        """All live holds of a store, for the admin view. Scans; keep off hot paths."""
        now = self.clock()
        found: list[HoldLease] = []
        for key in self._store.scan(f"{self._prefix}:bucket:{store_id}:"):
            _, leases = self._read_bucket(key)
            found.extend(l for l in leases if l.is_live(now))
        return sorted(found, key=lambda l: (l.date, l.interval.start, l.resource_id))

    def get_hold_stats(self, store_id: int, day: date) -> HoldStats:
        values = {
            field_name: int(self._store.get(self._stats_key(store_id, day, counter)) or 0)
            for counter, field_name in _STAT_COUNTERS.items()
        }
        return HoldStats(**values)

    def sweep_expired(self) -> int:
        """
        Purge leases past expires_at that the TTL backend has not reaped yet.

        Runs out of the request path and may overlap with request traffic or
        another sweeper; every bucket update is a CAS, so nothing is lost.
        Returns the number of leases removed.
        """
        swept = 0
        buckets = self._store.scan(f"{self._prefix}:bucket:")
        for key in buckets:
            now = self.clock()

            def prune(leases: list[HoldLease]) -> tuple[Optional[list[HoldLease]], list[HoldLease]]:
                expired = [l for l in leases if not l.is_live(now)]
                if not expired:
                    return None, []
                return [l for l in leases if l.is_live(now)], expired

            try:
                expired = self._mutate_bucket(key, prune)
            except UnavailableError:
                logger.warning("Sweep skipped bucket %s, store unavailable", key)
                continue

            for lease in expired:
                check_lease_transition(lease, LeaseState.EXPIRED)
                self._store.delete(self._token_key(lease.token))
                self._bump_stat(lease.store_id, lease.date, "expired")
            if expired:
                self._invalidate(expired[0].store_id, expired[0].date)
            swept += len(expired)

        logger.info("Hold sweep removed %d expired lease(s) across %d bucket(s)", swept, len(buckets))
        return swept
