# airodental/services/availability.py
from __future__ import annotations
import enum
import logging
from datetime import datetime, date, time, timedelta
from itertools import groupby
from typing import Callable, Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict

from ..exceptions import ValidationError
from .calendar_policy import CalendarPolicy
from .repository import AppointmentRepository
from .slots import day_bounds, generate_slot_grid
from .timeutils import is_date_only, localize, parse_instant, to_local, to_utc, utcnow

logger = logging.getLogger(__name__)

# A window shorter than this means "the caller asked about one specific time"
NARROW_WINDOW = timedelta(hours=1)
MAX_DAYS = 3
MAX_SLOTS_PER_DAY = 3
MAX_ALTERNATIVES = 3


class AvailabilityWindow(BaseModel):
    """Query range; ``requested_at`` overrides the midpoint for narrow windows."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    requested_at: Optional[datetime] = None

    @property
    def is_narrow(self) -> bool:
        return self.end - self.start < NARROW_WINDOW

    @property
    def target(self) -> datetime:
        return self.requested_at or self.start + (self.end - self.start) / 2


class AvailabilityKind(str, enum.Enum):
    NO_ELIGIBLE_DAYS = "no_eligible_days"  # nothing in range is ever bookable
    FULLY_BOOKED = "fully_booked"          # bookable days exist, every slot taken or past
    NEAREST = "nearest"                    # narrow window, ranked by distance to target
    BY_DAY = "by_day"                      # wide window, grouped per local day


class DaySlots(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    slots: List[datetime]


class AvailabilityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AvailabilityKind
    requested_at: Optional[datetime] = None
    # NEAREST only: the requested instant itself is free (and is nearest[0])
    exact_available: bool = False
    nearest: List[datetime] = []
    days: List[DaySlots] = []

    @property
    def is_empty(self) -> bool:
        return self.kind in (AvailabilityKind.NO_ELIGIBLE_DAYS, AvailabilityKind.FULLY_BOOKED)


def build_window(start_value: str, end_value: str, policy: CalendarPolicy) -> AvailabilityWindow:
    """
    Window from caller-supplied ISO strings. A date-only end covers that whole
    local day, so ``startDate == endDate`` asks about one full day.
    """
    if not start_value or not end_value:
        raise ValidationError("Missing required parameters: startDate and endDate are required.")
    try:
        start = parse_instant(start_value, policy.tz)
        end = parse_instant(end_value, policy.tz)
    except ValueError as e:
        raise ValidationError("Invalid date format provided. Please use ISO 8601 (YYYY-MM-DD).") from e

    if is_date_only(end_value):
        end_day = to_local(end, policy.tz).date()
        end = to_utc(localize(datetime.combine(end_day, time(23, 59, 59)), policy.tz))
    if end < start:
        raise ValidationError("endDate must not be earlier than startDate.")
    return AvailabilityWindow(start=start, end=end)


def rank_by_proximity(slots: Iterable[datetime], target: datetime, limit: int = MAX_ALTERNATIVES) -> List[datetime]:
    """The ``limit`` slots closest to ``target``; ties go to the earlier slot."""
    return sorted(slots, key=lambda s: (abs(s - target), s))[:limit]


def group_by_day(
    slots: Iterable[datetime],
    policy: CalendarPolicy,
    max_days: int = MAX_DAYS,
    per_day: int = MAX_SLOTS_PER_DAY,
) -> List[DaySlots]:
    """First ``max_days`` local days with free slots, earliest ``per_day`` slots each."""
    out: List[DaySlots] = []
    ordered = sorted(slots)
    for day, day_slots in groupby(ordered, key=lambda s: to_local(s, policy.tz).date()):
        out.append(DaySlots(day=day, slots=list(day_slots)[:per_day]))
        if len(out) == max_days:
            break
    return out


def window_days(window: AvailabilityWindow, policy: CalendarPolicy) -> tuple[date, date]:
    return to_local(window.start, policy.tz).date(), to_local(window.end, policy.tz).date()


def free_slots(
    window: AvailabilityWindow,
    booked: Set[datetime],
    policy: CalendarPolicy,
    now: datetime,
) -> tuple[List[datetime], List[datetime]]:
    """(grid, free) for the window's local days; free excludes booked and past slots."""
    start_day, end_day = window_days(window, policy)
    grid = generate_slot_grid(start_day, end_day, policy)
    cutoff = policy.past_cutoff(now)
    free = [s for s in grid if s not in booked and s >= cutoff]
    return grid, free


def resolve_availability(
    window: AvailabilityWindow,
    booked: Set[datetime],
    policy: CalendarPolicy,
    now: datetime,
) -> AvailabilityResult:
    grid, free = free_slots(window, booked, policy, now)
    requested_at = window.target if window.is_narrow else None

    if not grid:
        return AvailabilityResult(kind=AvailabilityKind.NO_ELIGIBLE_DAYS, requested_at=requested_at)
    if not free:
        return AvailabilityResult(kind=AvailabilityKind.FULLY_BOOKED, requested_at=requested_at)
    if window.is_narrow:
        return AvailabilityResult(
            kind=AvailabilityKind.NEAREST,
            requested_at=requested_at,
            exact_available=window.target in free,
            nearest=rank_by_proximity(free, window.target),
        )
    return AvailabilityResult(kind=AvailabilityKind.BY_DAY, days=group_by_day(free, policy))


class AvailabilityService:
    """Fetches bookings for a window from the repository and resolves free slots."""

    def __init__(
        self,
        repository: AppointmentRepository,
        policy: CalendarPolicy,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> CalendarPolicy:
        return self._policy

    def _booked_for(self, window: AvailabilityWindow) -> Set[datetime]:
        start_day, end_day = window_days(window, self._policy)
        span_start, span_end = day_bounds(start_day, end_day, self._policy.tz)
        return self._repo.list_active_start_times(span_start, span_end)

    def check(self, window: AvailabilityWindow) -> AvailabilityResult:
        logger.info("Checking availability %s → %s", window.start.isoformat(), window.end.isoformat())
        result = resolve_availability(window, self._booked_for(window), self._policy, self._clock())
        logger.info("Availability result: kind=%s", result.kind.value)
        return result

    def list_free(self, window: AvailabilityWindow) -> List[datetime]:
        """Every free slot in the window's days, untruncated (dashboard calendar)."""
        _, free = free_slots(window, self._booked_for(window), self._policy, self._clock())
        return free
