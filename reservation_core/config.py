"""
Centralized configuration with environment variable overrides.

Hold durations, slot granularity, cache lifetimes and backend wiring are
configurable here. Per-store values (business hours, booking window,
auto-approval) come from the store record, not from this module.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

MAX_CACHE_TTL_MINUTES = 15
SUPPORTED_BACKENDS = ("memory", "redis")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class HoldConfig:
    """Hold lease lifetime and arbitration settings."""

    duration_seconds: int = _safe_int("HOLD_DURATION_SECONDS", "600")
    default_extend_minutes: int = _safe_int("HOLD_DEFAULT_EXTEND_MINUTES", "10")
    max_extend_minutes: int = _safe_int("HOLD_MAX_EXTEND_MINUTES", "30")
    token_length: int = _safe_int("HOLD_TOKEN_LENGTH", "32")
    max_cas_retries: int = _safe_int("HOLD_MAX_CAS_RETRIES", "25")
    sweep_interval_seconds: float = _safe_float("HOLD_SWEEP_INTERVAL", "60.0")


@dataclass(frozen=True)
class AvailabilityConfig:
    """Slot enumeration and availability cache settings."""

    slot_interval_minutes: int = _safe_int("SLOT_INTERVAL_MINUTES", "15")
    cache_ttl_minutes: int = _safe_int("AVAILABILITY_CACHE_TTL_MINUTES", "15")
    calendar_days: int = _safe_int("AVAILABILITY_CALENDAR_DAYS", "30")
    default_booking_window_days: int = _safe_int("DEFAULT_BOOKING_WINDOW_DAYS", "30")


@dataclass(frozen=True)
class BackendConfig:
    """Which key-value backend holds leases and cache entries."""

    backend: str = os.getenv("LEASE_BACKEND", "memory")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    key_prefix: str = os.getenv("KEY_PREFIX", "reservation")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    hold: HoldConfig = field(default_factory=HoldConfig)
    availability: AvailabilityConfig = field(default_factory=AvailabilityConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "reservation-core")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.hold.duration_seconds < 1:
        raise ValueError(
            f"HOLD_DURATION_SECONDS must be >= 1, got {config.hold.duration_seconds}"
        )
    if not 1 <= config.hold.default_extend_minutes <= config.hold.max_extend_minutes:
        raise ValueError(
            "HOLD_DEFAULT_EXTEND_MINUTES must be between 1 and HOLD_MAX_EXTEND_MINUTES, "
            f"got {config.hold.default_extend_minutes}"
        )
    if config.hold.token_length < 16:
        raise ValueError(
            f"HOLD_TOKEN_LENGTH must be >= 16, got {config.hold.token_length}"
        )
    if config.hold.max_cas_retries < 1:
        raise ValueError(
            f"HOLD_MAX_CAS_RETRIES must be >= 1, got {config.hold.max_cas_retries}"
        )
    if config.hold.sweep_interval_seconds <= 0:
        raise ValueError(
            f"HOLD_SWEEP_INTERVAL must be > 0, got {config.hold.sweep_interval_seconds}"
        )

    interval = config.availability.slot_interval_minutes
    if interval < 1 or 60 % interval != 0:
        raise ValueError(
            f"SLOT_INTERVAL_MINUTES must divide an hour evenly, got {interval}"
        )
    if not 1 <= config.availability.cache_ttl_minutes <= MAX_CACHE_TTL_MINUTES:
        raise ValueError(
            f"AVAILABILITY_CACHE_TTL_MINUTES must be between 1 and {MAX_CACHE_TTL_MINUTES}, "
            f"got {config.availability.cache_ttl_minutes}"
        )
    for name, value in [
        ("AVAILABILITY_CALENDAR_DAYS", config.availability.calendar_days),
        ("DEFAULT_BOOKING_WINDOW_DAYS", config.availability.default_booking_window_days),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if config.backend.backend not in SUPPORTED_BACKENDS:
        raise ValueError(
            f"LEASE_BACKEND must be one of {SUPPORTED_BACKENDS}, got {config.backend.backend!r}"
        )
    if not config.backend.key_prefix:
        raise ValueError("KEY_PREFIX must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (backend=%s)",
        config.service_name, config.backend.backend,
    )
    return config


# Singleton instance
settings = load_config()
