# src/oraclenet_identity/db/time.py
"""Time utilities for models and state-store records."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def isoformat_ms(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utcnow_iso() -> str:
    """Return the current UTC time formatted by `isoformat_ms`."""
    return isoformat_ms(utcnow())
