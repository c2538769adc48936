# airodental/services/calendar_policy.py
"""
Business-calendar policy: which days and wall-clock times accept appointments.

One policy object is built per deployment from ``CALENDAR_POLICY`` and shared
by the availability and booking paths, so the two can never disagree.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from datetime import datetime, date, time, timedelta, tzinfo

from pydantic import BaseModel, ConfigDict

from ..config import CalendarPolicyName, Settings
from .timeutils import local_tz, time_to_12h, to_local

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
SLOT_DURATION = timedelta(minutes=SLOT_MINUTES)


class Eligibility(BaseModel):
    """Outcome of checking one instant against the policy."""

    model_config = ConfigDict(frozen=True)

    eligible: bool
    reason: str = ""


ELIGIBLE = Eligibility(eligible=True)


def _half_hours(start: time, end: time) -> list[time]:
    """Every 30-minute wall time from start to end, both inclusive."""
    out = []
    cur = datetime.combine(date.min, start)
    last = datetime.combine(date.min, end)
    while cur <= last:
        out.append(cur.time())
        cur += SLOT_DURATION
    return out


def _on_slot_boundary(t: time) -> bool:
    return t.minute % SLOT_MINUTES == 0 and t.second == 0 and t.microsecond == 0


class CalendarPolicy(ABC):
    """Day/time eligibility plus the past-time cutoff shared by every variant."""

    name: str

    def __init__(self, tz: tzinfo, past_grace: timedelta = timedelta(minutes=15)) -> None:
        self.tz = tz
        self.past_grace = past_grace

    @abstractmethod
    def is_open_day(self, day: date) -> bool:
        """Whether the practice takes appointments on this local calendar day."""

    @abstractmethod
    def slot_times(self) -> list[time]:
        """Local wall times (ascending) at which slots start on an open day."""

    @abstractmethod
    def _check_time(self, local_time: time) -> Eligibility:
        ...

    def past_cutoff(self, now: datetime) -> datetime:
        """Instants earlier than this are in the past."""
        return now - self.past_grace

    def check(self, instant: datetime, now: datetime) -> Eligibility:
        """Decide whether ``instant`` (aware) can be booked at ``now``."""
        if instant < self.past_cutoff(now):
            return Eligibility(
                eligible=False,
                reason="That time has already passed. Please choose a future date and time.",
            )
        local = to_local(instant, self.tz)
        if not self.is_open_day(local.date()):
            return Eligibility(
                eligible=False,
                reason="Appointments can only be scheduled Monday through Friday.",
            )
        return self._check_time(local.time())


class OpenCalendarPolicy(CalendarPolicy):
    """Every day and every time; only the past-time cutoff applies."""

    name = CalendarPolicyName.open.value

    def is_open_day(self, day: date) -> bool:
        return True

    def slot_times(self) -> list[time]:
        return _half_hours(time(0, 0), time(23, 30))

    def _check_time(self, local_time: time) -> Eligibility:
        return ELIGIBLE


class BusinessHoursPolicy(CalendarPolicy):
    """Monday–Friday, half-hour starts from open to close (last start inclusive)."""

    name = CalendarPolicyName.business_hours.value

    def __init__(
        self,
        tz: tzinfo,
        open_time: time = time(9, 0),
        close_time: time = time(17, 0),
        past_grace: timedelta = timedelta(minutes=15),
    ) -> None:
        super().__init__(tz, past_grace)
        self.open_time = open_time
        self.close_time = close_time
        self._slot_times = _half_hours(open_time, close_time)

    def is_open_day(self, day: date) -> bool:
        return day.weekday() < 5  # Mon=0 … Fri=4

    def slot_times(self) -> list[time]:
        return list(self._slot_times)

    def _check_time(self, local_time: time) -> Eligibility:
        if _on_slot_boundary(local_time) and self.open_time <= local_time <= self.close_time:
            return ELIGIBLE
        return Eligibility(
            eligible=False,
            reason=(
                f"Appointments can only be scheduled between {time_to_12h(self.open_time)} and "
                f"{time_to_12h(self.close_time)} ({self.tz}) in {SLOT_MINUTES}-minute intervals. "
                f"Received: {time_to_12h(local_time)}."
            ),
        )


def build_policy(cfg: Settings) -> CalendarPolicy:
    """Build the single policy selected by configuration."""
    tz = local_tz(cfg.TIMEZONE)
    grace = timedelta(minutes=cfg.PAST_GRACE_MINUTES)
    if cfg.CALENDAR_POLICY == CalendarPolicyName.open:
        policy: CalendarPolicy = OpenCalendarPolicy(tz, past_grace=grace)
    else:
        policy = BusinessHoursPolicy(
            tz,
            open_time=cfg.CLINIC_OPEN_TIME,
            close_time=cfg.CLINIC_CLOSE_TIME,
            past_grace=grace,
        )
    logger.info("Calendar policy: %s tz=%s grace=%s", policy.name, cfg.TIMEZONE, grace)
    return policy
