"""Tests for hold lease creation, validation, extension, release and sweeping."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from reservation_core.booking.hold_manager import HoldLeaseManager, check_lease_transition
from reservation_core.config import settings
from reservation_core.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    ResourceInactiveError,
    TokenExpiredError,
    TokenMismatchError,
    UnavailableError,
)
from reservation_core.schemas.hold_schema import LeaseState
from reservation_core.store.booking_repository import InMemoryBookingRepository
from reservation_core.store.lease_store import InMemoryLeaseStore
from reservation_core.utils import mask_token
from tests.conftest import (
    MENU_ID,
    NOW,
    RESOURCE_ID,
    STORE_ID,
    make_booking,
    make_interval,
    make_resource,
)


def _hold(holds, start="10:00", end="11:00", resource_id=RESOURCE_ID):
    return holds.create_hold(STORE_ID, resource_id, make_interval(start, end), MENU_ID)


class TestCreateHold:
    def test_returns_live_lease(self, holds):
        result = _hold(holds)
        assert result.ok
        lease = result.value
        assert len(lease.token) == 32
        assert lease.state == LeaseState.CREATED
        assert lease.expires_at == NOW + timedelta(seconds=600)

    def test_tokens_are_unique(self, holds):
        first = _hold(holds, "09:00", "10:00").unwrap()
        second = _hold(holds, "10:00", "11:00").unwrap()
        assert first.token != second.token

    def test_overlapping_hold_is_a_conflict(self, holds):
        _hold(holds).unwrap()
        result = _hold(holds, "10:30", "11:30")
        assert not result.ok
        assert result.error.code == "conflict"

    def test_touching_hold_is_allowed(self, holds):
        _hold(holds, "10:00", "11:00").unwrap()
        assert _hold(holds, "11:00", "12:00").ok
        assert _hold(holds, "09:00", "10:00").ok

    def test_other_resource_is_independent(self, holds, catalog):
        catalog.add_resource(make_resource(21))
        _hold(holds).unwrap()
        assert _hold(holds, resource_id=21).ok

    def test_booked_slot_cannot_be_held(self, holds, core):
        core.bookings.add_if_free(make_booking("10:00", "11:00"))
        result = _hold(holds, "10:30", "11:30")
        assert not result.ok

    def test_cancelled_booking_does_not_block(self, holds, core):
        from reservation_core.schemas.booking_schema import BookingStatus

        core.bookings.add_if_free(make_booking(status=BookingStatus.CANCELLED))
        assert _hold(holds).ok

    def test_expired_hold_does_not_block(self, holds, clock):
        _hold(holds).unwrap()
        clock.advance(seconds=601)
        assert _hold(holds).ok

    def test_inactive_resource_raises(self, holds, catalog):
        catalog.add_resource(make_resource(22, is_active=False))
        with pytest.raises(ResourceInactiveError):
            _hold(holds, resource_id=22)

    def test_unknown_resource_raises(self, holds):
        with pytest.raises(NotFoundError):
            _hold(holds, resource_id=999)

    def test_store_hold_duration_is_used(self, holds, catalog):
        from tests.conftest import make_store

        catalog.add_store(make_store(hold_duration_seconds=120))
        lease = _hold(holds).unwrap()
        assert lease.expires_at == NOW + timedelta(seconds=120)

    def test_token_is_masked_in_logs(self, holds, caplog):
        caplog.set_level(logging.INFO, logger="reservation_core.booking.hold_manager")
        lease = _hold(holds).unwrap()
        assert mask_token(lease.token) in caplog.text
        assert lease.token not in caplog.text


class TestValidateHold:
    def test_matching_hold_validates(self, holds):
        lease = _hold(holds).unwrap()
        validated = holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval())
        assert validated.token == lease.token

    def test_unknown_token_is_expired(self, holds):
        with pytest.raises(TokenExpiredError):
            holds.validate_hold("x" * 32, STORE_ID, RESOURCE_ID, make_interval())

    def test_different_interval_is_a_mismatch(self, holds):
        lease = _hold(holds).unwrap()
        with pytest.raises(TokenMismatchError) as exc:
            holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval("10:15", "11:15"))
        assert exc.value.details["fields"] == ["start", "end"]

    def test_different_store_is_a_mismatch(self, holds):
        lease = _hold(holds).unwrap()
        with pytest.raises(TokenMismatchError) as exc:
            holds.validate_hold(lease.token, 2, RESOURCE_ID, make_interval())
        assert exc.value.details["fields"] == ["store_id"]

    def test_different_resource_is_a_mismatch(self, holds):
        lease = _hold(holds).unwrap()
        with pytest.raises(TokenMismatchError):
            holds.validate_hold(lease.token, STORE_ID, 21, make_interval())

    def test_expired_hold_fails_after_ttl(self, holds, clock):
        lease = _hold(holds).unwrap()
        clock.advance(seconds=600)
        with pytest.raises(TokenExpiredError):
            holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval())

    def test_expired_hold_fails_before_backend_reaps_it(self, catalog, clock):
        # The store never expires keys, so only expires_at can reject the lease
        frozen_store = InMemoryLeaseStore(clock=lambda: NOW)
        holds = HoldLeaseManager(frozen_store, catalog, InMemoryBookingRepository(), clock=clock)
        lease = _hold(holds).unwrap()
        clock.advance(seconds=601)
        assert frozen_store.scan(f"{settings.backend.key_prefix}:hold:token:") != []
        with pytest.raises(TokenExpiredError):
            holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval())

    def test_get_hold_reports_remaining_seconds(self, holds, clock):
        lease = _hold(holds).unwrap()
        clock.advance(seconds=100)
        assert holds.get_hold(lease.token).remaining_seconds(clock()) == 500


class TestExtendHold:
    def test_extend_moves_only_expiry(self, holds, clock):
        lease = _hold(holds).unwrap()
        clock.advance(seconds=300)
        extended = holds.extend_hold(lease.token, 10)
        assert extended.expires_at == clock() + timedelta(minutes=10)
        assert extended.interval == lease.interval
        assert extended.state == LeaseState.EXTENDED

    def test_original_interval_still_validates_after_extend(self, holds, clock):
        lease = _hold(holds).unwrap()
        clock.advance(seconds=300)
        holds.extend_hold(lease.token, 10)
        clock.advance(seconds=400)  # past the original 600s expiry
        holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval())

    def test_default_extension(self, holds):
        lease = _hold(holds).unwrap()
        extended = holds.extend_hold(lease.token)
        assert extended.expires_at == NOW + timedelta(minutes=10)

    @pytest.mark.parametrize("minutes", [0, -5, 31])
    def test_out_of_range_minutes_rejected(self, holds, minutes):
        lease = _hold(holds).unwrap()
        with pytest.raises(ValueError):
            holds.extend_hold(lease.token, minutes)

    def test_extend_expired_hold_raises(self, holds, clock):
        lease = _hold(holds).unwrap()
        clock.advance(seconds=601)
        with pytest.raises(TokenExpiredError):
            holds.extend_hold(lease.token, 5)

    def test_extend_counts_in_stats(self, holds):
        lease = _hold(holds).unwrap()
        holds.extend_hold(lease.token, 5)
        holds.extend_hold(lease.token, 5)
        assert holds.get_hold_stats(STORE_ID, lease.date).total_extended == 2


class TestReleaseHold:
    def test_release_is_idempotent(self, holds):
        lease = _hold(holds).unwrap()
        assert holds.release_hold(lease.token) is True
        assert holds.release_hold(lease.token) is False

    def test_release_unknown_token_returns_false(self, holds):
        assert holds.release_hold("missing-token-0000000000000000") is False

    def test_released_slot_can_be_held_again(self, holds):
        lease = _hold(holds).unwrap()
        holds.release_hold(lease.token)
        assert _hold(holds).ok

    def test_released_hold_no_longer_validates(self, holds):
        lease = _hold(holds).unwrap()
        holds.release_hold(lease.token)
        with pytest.raises(TokenExpiredError):
            holds.validate_hold(lease.token, STORE_ID, RESOURCE_ID, make_interval())

    def test_release_keeps_neighbouring_leases(self, holds):
        first = _hold(holds, "09:00", "10:00").unwrap()
        second = _hold(holds, "10:00", "11:00").unwrap()
        holds.release_hold(first.token)
        live = holds.live_leases(STORE_ID, RESOURCE_ID, first.date)
        assert [l.token for l in live] == [second.token]

    def test_consume_counts_as_conversion(self, holds):
        lease = _hold(holds).unwrap()
        assert holds.consume_hold(lease.token) is True
        stats = holds.get_hold_stats(STORE_ID, lease.date)
        assert stats.total_converted == 1
        assert stats.total_released == 0
        assert stats.conversion_rate == 1.0


class TestSweepExpired:
    def test_sweep_removes_only_expired(self, holds, clock):
        old = _hold(holds, "09:00", "10:00").unwrap()
        clock.advance(seconds=300)
        fresh = _hold(holds, "10:00", "11:00").unwrap()
        clock.advance(seconds=301)

        assert holds.sweep_expired() == 1
        live = holds.live_leases(STORE_ID, RESOURCE_ID, old.date)
        assert [l.token for l in live] == [fresh.token]
        assert holds.get_hold_stats(STORE_ID, old.date).total_expired == 1

    def test_sweep_with_nothing_expired(self, holds):
        _hold(holds).unwrap()
        assert holds.sweep_expired() == 0

    def test_sweep_on_empty_store(self, holds):
        assert holds.sweep_expired() == 0

    def test_released_after_expiry_returns_false(self, holds, clock):
        old = _hold(holds, "09:00", "10:00").unwrap()
        clock.advance(seconds=300)
        _hold(holds, "10:00", "11:00").unwrap()
        clock.advance(seconds=301)
        # Token index has expired with the lease
        assert holds.release_hold(old.token) is False


class TestListingAndStats:
    def test_list_store_holds_sorted(self, holds, catalog):
        catalog.add_resource(make_resource(21))
        later = _hold(holds, "13:00", "14:00").unwrap()
        earlier = _hold(holds, "09:00", "10:00", resource_id=21).unwrap()
        listed = holds.list_store_holds(STORE_ID)
        assert [l.token for l in listed] == [earlier.token, later.token]

    def test_list_excludes_other_stores(self, holds):
        _hold(holds).unwrap()
        assert holds.list_store_holds(2) == []

    def test_stats_count_created_and_released(self, holds):
        a = _hold(holds, "09:00", "10:00").unwrap()
        _hold(holds, "10:00", "11:00").unwrap()
        holds.release_hold(a.token)
        stats = holds.get_hold_stats(STORE_ID, a.date)
        assert stats.total_created == 2
        assert stats.total_released == 1
        assert stats.conversion_rate == 0.0


class TestLeaseTransitions:
    @pytest.mark.parametrize("terminal", [
        LeaseState.RELEASED, LeaseState.EXPIRED, LeaseState.CONSUMED_BY_BOOKING,
    ])
    def test_no_transition_out_of_terminal_state(self, holds, terminal):
        lease = _hold(holds).unwrap().model_copy(update={"state": terminal})
        with pytest.raises(InvalidStatusTransitionError):
            check_lease_transition(lease, LeaseState.EXTENDED)

    def test_extended_can_be_extended_again(self, holds):
        lease = _hold(holds).unwrap().model_copy(update={"state": LeaseState.EXTENDED})
        check_lease_transition(lease, LeaseState.EXTENDED)


class TestConcurrency:
    def test_concurrent_identical_holds_exactly_one_wins(self, holds):
        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: _hold(holds), range(32)))
        assert sum(r.ok for r in results) == 1

    def test_concurrent_overlapping_holds_at_most_one_wins(self, holds):
        windows = [("10:00", "11:00"), ("10:30", "11:30"), ("09:45", "10:45"), ("10:15", "10:45")]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda w: _hold(holds, *w), windows * 6))
        assert sum(r.ok for r in results) == 1


class _NeverSwapStore(InMemoryLeaseStore):
    def compare_and_set(self, key, expected, new, ttl_ms=None):
        return False


class _BrokenIndexStore(InMemoryLeaseStore):
    def set(self, key, value, ttl_ms=None, nx=False):
        raise UnavailableError("down")


class TestFailClosed:
    def test_exhausted_cas_retries_deny(self, catalog, clock):
        holds = HoldLeaseManager(_NeverSwapStore(clock), catalog, InMemoryBookingRepository(), clock=clock)
        with pytest.raises(UnavailableError):
            _hold(holds)

    def test_failed_index_write_rolls_back_bucket(self, catalog, clock):
        holds = HoldLeaseManager(_BrokenIndexStore(clock), catalog, InMemoryBookingRepository(), clock=clock)
        with pytest.raises(UnavailableError):
            _hold(holds)
        assert holds.live_leases(STORE_ID, RESOURCE_ID, make_interval().date) == []
