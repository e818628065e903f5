"""Tests for configuration loading and validation."""

from dataclasses import FrozenInstanceError, replace

import pytest

from reservation_core.config import (
    AppConfig,
    AvailabilityConfig,
    BackendConfig,
    HoldConfig,
    _safe_float,
    _safe_int,
    _validate_config,
)


def _config(**sections) -> AppConfig:
    return replace(AppConfig(), **sections)


class TestConfigDefaults:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_hold_defaults(self):
        hold = HoldConfig()
        assert hold.duration_seconds == 600
        assert hold.default_extend_minutes == 10
        assert hold.max_extend_minutes == 30
        assert hold.token_length == 32

    def test_availability_defaults(self):
        availability = AvailabilityConfig()
        assert availability.slot_interval_minutes == 15
        assert availability.cache_ttl_minutes <= 15

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            HoldConfig().duration_seconds = 1  # type: ignore[misc]


class TestConfigValidation:
    def test_zero_hold_duration(self):
        with pytest.raises(ValueError, match="HOLD_DURATION_SECONDS"):
            _validate_config(_config(hold=replace(HoldConfig(), duration_seconds=0)))

    def test_default_extension_above_max(self):
        hold = replace(HoldConfig(), default_extend_minutes=40, max_extend_minutes=30)
        with pytest.raises(ValueError, match="HOLD_DEFAULT_EXTEND_MINUTES"):
            _validate_config(_config(hold=hold))

    def test_short_token(self):
        with pytest.raises(ValueError, match="HOLD_TOKEN_LENGTH"):
            _validate_config(_config(hold=replace(HoldConfig(), token_length=8)))

    def test_no_cas_retries(self):
        with pytest.raises(ValueError, match="HOLD_MAX_CAS_RETRIES"):
            _validate_config(_config(hold=replace(HoldConfig(), max_cas_retries=0)))

    @pytest.mark.parametrize("interval", [0, 7, 45])
    def test_slot_interval_must_divide_an_hour(self, interval):
        availability = replace(AvailabilityConfig(), slot_interval_minutes=interval)
        with pytest.raises(ValueError, match="SLOT_INTERVAL_MINUTES"):
            _validate_config(_config(availability=availability))

    @pytest.mark.parametrize("ttl", [0, 16, 60])
    def test_cache_ttl_capped(self, ttl):
        availability = replace(AvailabilityConfig(), cache_ttl_minutes=ttl)
        with pytest.raises(ValueError, match="AVAILABILITY_CACHE_TTL_MINUTES"):
            _validate_config(_config(availability=availability))

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="LEASE_BACKEND"):
            _validate_config(_config(backend=replace(BackendConfig(), backend="memcached")))

    def test_empty_key_prefix(self):
        with pytest.raises(ValueError, match="KEY_PREFIX"):
            _validate_config(_config(backend=replace(BackendConfig(), key_prefix="")))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_reads_environment(self, monkeypatch):
        monkeypatch.setenv("HOLD_TEST_VALUE", "900")
        assert _safe_int("HOLD_TEST_VALUE", "600") == 900

    def test_safe_int_names_bad_variable(self, monkeypatch):
        monkeypatch.setenv("HOLD_TEST_VALUE", "ten")
        with pytest.raises(ValueError, match="HOLD_TEST_VALUE"):
            _safe_int("HOLD_TEST_VALUE", "600")
