# airodental/services/timeutils.py
from __future__ import annotations
import logging
from datetime import datetime, date, time, timezone, tzinfo

import pytz
from dateutil import parser as dtparser

logger = logging.getLogger(__name__)

UTC = pytz.UTC


def local_tz(name: str) -> tzinfo:
    """Resolve a timezone name, falling back to UTC if invalid."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Invalid practice timezone '%s'; defaulting to UTC", name)
        return UTC


def localize(naive: datetime, tz: tzinfo) -> datetime:
    """Attach tz to a naive wall-clock datetime (pytz needs localize, not replace)."""
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def localize_wall_time(day: date, t: time, tz: tzinfo) -> datetime | None:
    """
    Wall-clock day+time in tz, or None when that wall time does not exist
    (spring-forward gap). Ambiguous fall-back times resolve to standard time.
    """
    naive = datetime.combine(day, t)
    if not hasattr(tz, "localize"):
        return naive.replace(tzinfo=tz)
    try:
        return tz.localize(naive, is_dst=None)
    except pytz.NonExistentTimeError:
        return None
    except pytz.AmbiguousTimeError:
        return tz.localize(naive, is_dst=False)


def to_utc(dt: datetime, assume_tz: tzinfo = UTC) -> datetime:
    """Aware → UTC. Naive values are read as wall time in assume_tz."""
    if dt.tzinfo is None:
        dt = localize(dt, assume_tz)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: tzinfo) -> datetime:
    # Naive values coming back from SQLite were written as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def parse_instant(value: str, tz: tzinfo) -> datetime:
    """
    Parse an ISO 8601 date or datetime string into an aware UTC datetime.
    Strings without an offset are read in the practice timezone.

    Raises ValueError on anything unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("empty date value")
    try:
        dt = dtparser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid ISO 8601 value: {value!r}") from e
    return to_utc(dt, tz)


def is_date_only(value: str) -> bool:
    """True for an ISO 8601 calendar date with no time part, extended or basic form."""
    try:
        dtparser.isoparser().parse_isodate(value.strip())
    except ValueError:
        return False
    return True


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ====== Spoken formats ======
def time_to_12h(dt: datetime | time) -> str:
    """``14:30`` → ``2:30 PM`` (no leading zero on the hour)."""
    hour = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {period}"


def day_label(d: datetime | date) -> str:
    """``date(2024, 7, 1)`` → ``Monday, July 1``."""
    return f"{d.strftime('%A')}, {d.strftime('%B')} {d.day}"


def long_datetime_label(dt: datetime) -> str:
    """``Monday, July 1, 2024 at 9:00 AM`` (dt already in local time)."""
    return f"{day_label(dt)}, {dt.year} at {time_to_12h(dt)}"
