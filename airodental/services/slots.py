# airodental/services/slots.py
from __future__ import annotations
from datetime import datetime, date, time, timedelta, timezone, tzinfo
from typing import List

from .calendar_policy import CalendarPolicy
from .timeutils import localize_wall_time


def day_bounds(start_date: date, end_date: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    [first day 00:00, day after last day 00:00) in local time, as UTC instants.
    This is the span whose bookings matter for a grid over those days.
    """
    start = localize_wall_time(start_date, time(0, 0), tz)
    end = localize_wall_time(end_date + timedelta(days=1), time(0, 0), tz)
    # Midnight never falls in a DST gap for the zones we serve; fall back to 01:00 if it does
    start = start or localize_wall_time(start_date, time(1, 0), tz)
    end = end or localize_wall_time(end_date + timedelta(days=1), time(1, 0), tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def generate_slot_grid(start_date: date, end_date: date, policy: CalendarPolicy) -> List[datetime]:
    """
    Every candidate slot start for each local day in [start_date, end_date],
    filtered by the policy's day/time eligibility only (bookings and the
    past-time cutoff are the resolver's job).

    Returns ascending, timezone-aware UTC datetimes; empty when end_date is
    before start_date or no day in range is open.
    """
    tz = policy.tz
    times = policy.slot_times()
    slots: List[datetime] = []
    seen: set[datetime] = set()

    day = start_date
    while day <= end_date:
        if policy.is_open_day(day):
            for t in times:
                local = localize_wall_time(day, t, tz)
                if local is None:
                    continue
                instant = local.astimezone(timezone.utc)
                if instant not in seen:
                    seen.add(instant)
                    slots.append(instant)
        day += timedelta(days=1)

    slots.sort()
    return slots
