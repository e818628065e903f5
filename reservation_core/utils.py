"""Shared time and formatting helpers used across the reservation core."""

from datetime import date, datetime, time, timezone

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MINUTES_PER_DAY = 24 * 60
TOKEN_VISIBLE_CHARS = 8


def utc_now() -> datetime:
    """Default clock for the core: timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def day_name(value: date) -> str:
    """Lowercase English weekday name, the key used by weekly hour tables.

    Examples:
        >>> day_name(date(2025, 7, 7))
        'monday'
    """
    return DAY_NAMES[value.weekday()]


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Inverse of to_minutes; 1440 is not representable and raises ValueError."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range for a single day: {minutes}")
    return time(minutes // 60, minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Shift a wall-clock time within the same day."""
    return from_minutes(to_minutes(value) + minutes)


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def mask_token(token: str) -> str:
    """Hide all but the first characters of a hold token for log output.

    Examples:
        >>> mask_token("abcdefghijklmnop")
        'abcdefgh****'
    """
    return token[:TOKEN_VISIBLE_CHARS] + "****"
