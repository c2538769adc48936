import datetime as dt

import pytest
import pytz

from airodental.services.availability import (
    AvailabilityKind,
    AvailabilityResult,
    DaySlots,
    rank_by_proximity,
)
from airodental.services.formatting import NO_AVAILABILITY, format_availability, format_confirmation
from airodental.services.timeutils import day_label, long_datetime_label, time_to_12h

UTC = dt.timezone.utc
CHICAGO = pytz.timezone("America/Chicago")


def _utc(*args) -> dt.datetime:
    return dt.datetime(*args, tzinfo=UTC)


class TestFormatAvailability:
    def test_alternatives_are_read_closest_first(self) -> None:
        target = _utc(2024, 7, 1, 15, 0)  # 10:00 AM CDT
        candidates = [
            target - dt.timedelta(minutes=15),
            target + dt.timedelta(minutes=10),
            target + dt.timedelta(minutes=90),
        ]
        result = AvailabilityResult(
            kind=AvailabilityKind.NEAREST,
            requested_at=target,
            nearest=rank_by_proximity(candidates, target),
        )

        message = format_availability(result, CHICAGO)

        assert message == (
            "I don't see availability at exactly Monday, July 1 at 10:00 AM, but I can offer: "
            "Monday, July 1 at 10:10 AM, Monday, July 1 at 9:45 AM, Monday, July 1 at 11:30 AM. "
            "Would any of these work?"
        )

    def test_free_requested_time_is_confirmed(self) -> None:
        target = _utc(2024, 7, 1, 14, 0)  # 9:00 AM CDT
        result = AvailabilityResult(
            kind=AvailabilityKind.NEAREST,
            requested_at=target,
            exact_available=True,
            nearest=[target, _utc(2024, 7, 1, 14, 30), _utc(2024, 7, 1, 15, 0)],
        )

        message = format_availability(result, CHICAGO)

        assert message == (
            "Yes, Monday, July 1 at 9:00 AM is available. "
            "I can also offer: Monday, July 1 at 9:30 AM, Monday, July 1 at 10:00 AM. "
            "Would you like me to book it?"
        )
        assert "don't see availability" not in message

    def test_free_requested_time_without_alternatives(self) -> None:
        target = _utc(2024, 7, 1, 14, 0)
        result = AvailabilityResult(
            kind=AvailabilityKind.NEAREST, requested_at=target, exact_available=True, nearest=[target]
        )

        assert format_availability(result, CHICAGO) == (
            "Yes, Monday, July 1 at 9:00 AM is available. Would you like me to book it?"
        )

    def test_by_day_listing(self) -> None:
        result = AvailabilityResult(
            kind=AvailabilityKind.BY_DAY,
            days=[
                DaySlots(day=dt.date(2024, 7, 1), slots=[_utc(2024, 7, 1, 14, 0), _utc(2024, 7, 1, 14, 30)]),
                DaySlots(day=dt.date(2024, 7, 2), slots=[_utc(2024, 7, 2, 19, 0)]),
            ],
        )

        message = format_availability(result, CHICAGO)

        assert message == (
            "We have several appointment slots available. "
            "On Monday, July 1, we have: 9:00 AM, 9:30 AM; "
            "On Tuesday, July 2, we have: 2:00 PM. "
            "Would any of these times work for you?"
        )

    @pytest.mark.parametrize("kind", [AvailabilityKind.NO_ELIGIBLE_DAYS, AvailabilityKind.FULLY_BOOKED])
    def test_empty_results_apologise(self, kind: AvailabilityKind) -> None:
        assert format_availability(AvailabilityResult(kind=kind), CHICAGO) == NO_AVAILABILITY


class TestFormatConfirmation:
    def test_uses_practice_local_time(self) -> None:
        message = format_confirmation("John Daniel", _utc(2024, 7, 1, 14, 0), CHICAGO)

        assert message == "Okay, I've booked the appointment for John Daniel on Monday, July 1, 2024 at 9:00 AM."


class TestSpokenLabels:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (dt.time(0, 0), "12:00 AM"),
            (dt.time(9, 5), "9:05 AM"),
            (dt.time(12, 30), "12:30 PM"),
            (dt.time(17, 0), "5:00 PM"),
        ],
    )
    def test_time_to_12h(self, value: dt.time, expected: str) -> None:
        assert time_to_12h(value) == expected

    def test_day_label_has_no_leading_zero(self) -> None:
        assert day_label(dt.date(2024, 7, 5)) == "Friday, July 5"

    def test_long_label(self) -> None:
        local = CHICAGO.localize(dt.datetime(2024, 12, 2, 16, 30))

        assert long_datetime_label(local) == "Monday, December 2, 2024 at 4:30 PM"
