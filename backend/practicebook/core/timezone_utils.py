"""
Timezone utilities.

Series rules are expressed in the practitioner's local wall-clock time while
bookings are stored in UTC.
"""

from datetime import datetime, timezone
from typing import Optional

import pytz

from .exceptions import ValidationException


def utc_now() -> datetime:
    """Current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_timezone(name: str) -> pytz.BaseTzInfo:
    """
    Resolve an IANA timezone name.

    Raises:
        ValidationException: If the name is unknown
    """
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationException(f"Unknown timezone: {name}", code="INVALID_TIMEZONE")


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite drops tzinfo on round-trip, so naive values coming out of the
    database are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def localize(naive_local: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """
    Attach a timezone to a naive wall-clock time.

    Nonexistent times (spring-forward gap) are shifted forward by the DST
    offset; ambiguous times (fall-back) resolve to the first occurrence.
    """
    try:
        return tz.localize(naive_local, is_dst=None)
    except pytz.AmbiguousTimeError:
        return tz.localize(naive_local, is_dst=True)
    except pytz.NonExistentTimeError:
        shifted = tz.normalize(tz.localize(naive_local, is_dst=False))
        return shifted


def to_local(dt: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert an aware (or naive UTC) datetime to the given timezone."""
    return ensure_utc(dt).astimezone(tz)
