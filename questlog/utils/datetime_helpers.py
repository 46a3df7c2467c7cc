"""Datetime utility functions for timezone handling."""
from datetime import datetime, timedelta, UTC
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware in UTC.

    The game backend sometimes returns naive timestamps; those are treated as UTC.

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> ensure_utc(naive_dt).tzinfo == UTC
        True

        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_same_utc_day(dt: Optional[datetime], reference: datetime) -> bool:
    """Whether ``dt`` falls on the same UTC calendar day as ``reference``."""
    if dt is None:
        return False
    return ensure_utc(dt).date() == ensure_utc(reference).date()


def is_within_last(dt: Optional[datetime], window: timedelta, reference: datetime) -> bool:
    """Whether ``dt`` lies inside ``window`` before ``reference``."""
    if dt is None:
        return False
    return ensure_utc(dt) > ensure_utc(reference) - window
