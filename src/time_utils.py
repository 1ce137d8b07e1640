"""Time helpers for UTC storage and note stamps."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as already UTC.

    SQLite drops tzinfo on round trip, so naive values read back from the
    store are interpreted as UTC rather than local time.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime | None = None) -> str:
    """Render a UTC ISO-8601 stamp with a trailing ``Z``."""
    stamp = ensure_utc(value or utc_now())
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
