# airodental/services/formatting.py
from __future__ import annotations
from datetime import datetime, tzinfo
from typing import List

from .availability import AvailabilityKind, AvailabilityResult
from .timeutils import day_label, long_datetime_label, time_to_12h, to_local

# ==========================================================
#  Spoken replies for the voice receptionist
# ==========================================================

NO_AVAILABILITY = (
    "I'm sorry, but there are no appointment slots available in the requested timeframe. "
    "Would you like to try a different date range?"
)


def _fmt_slot(dt: datetime, tz: tzinfo) -> str:
    local = to_local(dt, tz)
    return f"{day_label(local)} at {time_to_12h(local)}"


def _fmt_time(dt: datetime, tz: tzinfo) -> str:
    return time_to_12h(to_local(dt, tz))


def _list_as_line(items: List[str]) -> str:
    return ", ".join(items)


def _nearest(result: AvailabilityResult, tz: tzinfo) -> str:
    requested = _fmt_slot(result.requested_at, tz) if result.requested_at else "that time"
    if result.exact_available:
        others = [_fmt_slot(s, tz) for s in result.nearest if s != result.requested_at]
        reply = f"Yes, {requested} is available."
        if others:
            reply += f" I can also offer: {_list_as_line(others)}."
        return reply + " Would you like me to book it?"
    options = _list_as_line([_fmt_slot(s, tz) for s in result.nearest])
    return (
        f"I don't see availability at exactly {requested}, but I can offer: {options}. "
        "Would any of these work?"
    )


def _by_day(result: AvailabilityResult, tz: tzinfo) -> str:
    parts = [
        f"On {day_label(d.day)}, we have: {_list_as_line([_fmt_time(s, tz) for s in d.slots])}"
        for d in result.days
    ]
    return (
        "We have several appointment slots available. "
        + "; ".join(parts)
        + ". Would any of these times work for you?"
    )


def format_availability(result: AvailabilityResult, tz: tzinfo) -> str:
    """One sentence block the voice agent can read out as-is.

    Both empty kinds (nothing bookable in range / everything taken) get the
    same apology.
    """
    if result.is_empty:
        return NO_AVAILABILITY
    if result.kind == AvailabilityKind.NEAREST:
        return _nearest(result, tz)
    return _by_day(result, tz)


def format_confirmation(name: str, start_at: datetime, tz: tzinfo) -> str:
    return f"Okay, I've booked the appointment for {name} on {long_datetime_label(to_local(start_at, tz))}."
