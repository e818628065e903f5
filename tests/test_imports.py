"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

import pytest


class TestSchemaImports:
    def test_import_time_schema(self):
        from reservation_core.schemas.time_schema import DailyHours, TimeInterval, overlaps
        assert callable(overlaps)

    def test_import_booking_schema(self):
        from reservation_core.schemas.booking_schema import ACTIVE_STATUSES, BookingStatus
        assert ACTIVE_STATUSES == {BookingStatus.PENDING, BookingStatus.CONFIRMED}

    def test_import_hold_schema(self):
        from reservation_core.schemas.hold_schema import HoldStats, LeaseState
        assert HoldStats().conversion_rate == 0.0
        assert len(LeaseState) == 5


class TestStoreImports:
    def test_import_store_package(self):
        from reservation_core.store import (
            BookingRepository, Catalog, InMemoryBookingRepository, InMemoryCatalog,
            InMemoryLeaseStore, LeaseStore, RedisLeaseStore, SlotCache,
        )
        assert issubclass(InMemoryLeaseStore, LeaseStore)
        assert issubclass(RedisLeaseStore, LeaseStore)
        assert issubclass(InMemoryCatalog, Catalog)
        assert issubclass(InMemoryBookingRepository, BookingRepository)


class TestBookingImports:
    def test_import_booking_package(self):
        from reservation_core.booking import (
            BOOKING_TRANSITIONS, LEASE_TRANSITIONS, AvailabilityService, BookingOrchestrator,
            ConflictDetector, HoldLeaseManager, compute_price, overlaps,
        )
        assert callable(compute_price)
        assert callable(overlaps)

    def test_terminal_states_have_no_exits(self):
        from reservation_core.booking import BOOKING_TRANSITIONS, LEASE_TRANSITIONS
        from reservation_core.schemas.booking_schema import BookingStatus
        from reservation_core.schemas.hold_schema import LeaseState

        for state in (LeaseState.RELEASED, LeaseState.EXPIRED, LeaseState.CONSUMED_BY_BOOKING):
            assert LEASE_TRANSITIONS[state] == frozenset()
        for status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW):
            assert BOOKING_TRANSITIONS[status] == frozenset()


class TestErrorImports:
    def test_error_codes_are_unique(self):
        from reservation_core import errors

        classes = [
            errors.ConflictError, errors.TokenExpiredError, errors.TokenMismatchError,
            errors.OutsideBusinessHoursError, errors.ResourceInactiveError,
            errors.NotFoundError, errors.InvalidStatusTransitionError,
            errors.InvalidIntervalError, errors.UnavailableError,
        ]
        codes = [cls.code for cls in classes]
        assert len(set(codes)) == len(codes)
        assert errors.HoldExpiredError is errors.TokenExpiredError

    def test_to_dict(self):
        from reservation_core.errors import ConflictError

        error = ConflictError("taken", details={"resource_id": 20})
        assert error.to_dict() == {
            "code": "conflict", "message": "taken", "details": {"resource_id": 20},
        }

    def test_result_unwrap_raises_conflict(self):
        from reservation_core.errors import ConflictError
        from reservation_core.result import Result

        with pytest.raises(ConflictError):
            Result.failure(ConflictError("taken")).unwrap()
        assert Result.success(5).unwrap() == 5

    def test_result_unwrap_empty_success(self):
        from reservation_core.result import Result

        result = Result.success(None)
        assert result.ok
        assert result.unwrap() is None


class TestConfigImport:
    def test_import_config(self):
        from reservation_core.config import settings
        assert settings.hold.duration_seconds >= 1
        assert settings.backend.backend in ("memory", "redis")


class TestLoggingContext:
    def test_request_id_attached(self, caplog):
        import logging

        from reservation_core.logging_context import get_request_logger, set_request_id

        set_request_id("REQ-42")
        logger = get_request_logger("reservation_core.test")
        with caplog.at_level(logging.INFO, logger="reservation_core.test"):
            logger.info("hello")
        assert caplog.records[-1].request_id == "REQ-42"

    def test_filter_added_once(self):
        from reservation_core.logging_context import RequestIdFilter, get_request_logger

        get_request_logger("reservation_core.once")
        logger = get_request_logger("reservation_core.once")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1


class TestBootstrap:
    def test_build_core_defaults_to_memory(self):
        from reservation_core.bootstrap import build_core
        from reservation_core.store.lease_store import InMemoryLeaseStore

        core = build_core()
        assert isinstance(core.lease_store, InMemoryLeaseStore)


class TestConsoleDemo:
    def test_console_session_builds(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.core.catalog.get_store(1).name == "Salon Aoyama"

    @pytest.mark.parametrize("scenario", ["booking", "race", "calendar"])
    def test_scenarios_run(self, scenario, capsys):
        from console_demo import ConsoleSession
        ConsoleSession().run_scenario(scenario)
        out = capsys.readouterr().out
        assert f"Scenario '{scenario}' complete." in out
        assert "[conflict]" not in out

    def test_sweeper_single_pass(self):
        import main
        main._run_sweeper(once=True)  # should not raise
