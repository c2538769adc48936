import datetime as dt

import pytest

from airodental import models
from airodental.exceptions import DependencyUnavailable, ValidationError
from airodental.services.availability import (
    AvailabilityKind,
    AvailabilityService,
    AvailabilityWindow,
    build_window,
    rank_by_proximity,
)
from airodental.services.booking import BookingRequest, BookingService
from airodental.services.calendar_policy import BusinessHoursPolicy
from airodental.services.fake_repository import InMemoryAppointmentRepository

UTC = dt.timezone.utc


def _utc(*args) -> dt.datetime:
    return dt.datetime(*args, tzinfo=UTC)


def _book(repo: InMemoryAppointmentRepository, start_at: dt.datetime, status=models.AppointmentStatus.SCHEDULED):
    return repo.create_appointment(
        patient_id=1,
        start_at=start_at,
        reason="Cleaning",
        patient_type=models.PatientType.EXISTING,
        status=status,
    )


class TestBuildWindow:
    def test_missing_values_rejected(self, policy: BusinessHoursPolicy) -> None:
        with pytest.raises(ValidationError, match="startDate and endDate are required"):
            build_window("", "2024-07-01", policy)

    def test_unparseable_value_rejected(self, policy: BusinessHoursPolicy) -> None:
        with pytest.raises(ValidationError, match="Invalid date format"):
            build_window("next tuesday", "2024-07-01", policy)

    def test_end_before_start_rejected(self, policy: BusinessHoursPolicy) -> None:
        with pytest.raises(ValidationError, match="must not be earlier"):
            build_window("2024-07-02", "2024-07-01", policy)

    def test_date_only_end_covers_whole_local_day(self, policy: BusinessHoursPolicy) -> None:
        window = build_window("2024-07-01", "2024-07-01", policy)

        assert window.start == _utc(2024, 7, 1, 5, 0)  # local midnight, CDT
        assert window.end == _utc(2024, 7, 2, 4, 59, 59)
        assert not window.is_narrow

    def test_basic_format_date_end_covers_whole_local_day(self, policy: BusinessHoursPolicy) -> None:
        window = build_window("2024-07-01", "20240701", policy)

        assert window.end == _utc(2024, 7, 2, 4, 59, 59)
        assert not window.is_narrow

    @pytest.mark.parametrize("end_value", ["2024-07-01T09:00:00", "20240701T0900", "2024-07-01T14:00:00Z"])
    def test_datetime_end_is_not_stretched(self, policy: BusinessHoursPolicy, end_value: str) -> None:
        window = build_window("2024-07-01T08:45:00", end_value, policy)

        assert window.end == _utc(2024, 7, 1, 14, 0)

    def test_offset_values_kept_as_instants(self, policy: BusinessHoursPolicy) -> None:
        window = build_window("2024-07-01T14:10:00Z", "2024-07-01T14:40:00Z", policy)

        assert window.is_narrow
        assert window.target == _utc(2024, 7, 1, 14, 25)


class TestRankByProximity:
    def test_closest_first(self) -> None:
        target = _utc(2024, 7, 1, 15, 0)
        slots = [target + dt.timedelta(minutes=90), target - dt.timedelta(minutes=15), target + dt.timedelta(minutes=10)]

        assert rank_by_proximity(slots, target) == [
            target + dt.timedelta(minutes=10),
            target - dt.timedelta(minutes=15),
            target + dt.timedelta(minutes=90),
        ]

    def test_tie_goes_to_earlier_slot(self) -> None:
        target = _utc(2024, 7, 1, 15, 15)
        later, earlier = _utc(2024, 7, 1, 15, 30), _utc(2024, 7, 1, 15, 0)

        assert rank_by_proximity([later, earlier], target) == [earlier, later]

    def test_limit(self) -> None:
        target = _utc(2024, 7, 1, 15, 0)
        slots = [target + dt.timedelta(minutes=30 * i) for i in range(10)]

        assert len(rank_by_proximity(slots, target, limit=3)) == 3


class TestCheckAvailability:
    def test_example_week_shows_three_weekdays_three_times_each(self, availability: AvailabilityService) -> None:
        window = build_window("2024-07-01T00:00:00Z", "2024-07-07T23:59:00Z", availability.policy)

        result = availability.check(window)

        assert result.kind == AvailabilityKind.BY_DAY
        assert [d.day for d in result.days] == [dt.date(2024, 7, 1), dt.date(2024, 7, 2), dt.date(2024, 7, 3)]
        for day in result.days:
            local_times = [s.astimezone(availability.policy.tz).time() for s in day.slots]
            assert local_times == [dt.time(9, 0), dt.time(9, 30), dt.time(10, 0)]

    def test_same_window_twice_is_identical(self, availability: AvailabilityService, fake_repo) -> None:
        _book(fake_repo, _utc(2024, 7, 1, 14, 30))
        window = build_window("2024-07-01", "2024-07-05", availability.policy)

        assert availability.check(window) == availability.check(window)

    def test_booked_slot_disappears_after_booking(
        self, availability: AvailabilityService, booking: BookingService
    ) -> None:
        window = build_window("2024-07-01", "2024-07-01", availability.policy)
        first = availability.check(window).days[0].slots[0]

        booking.book(BookingRequest(start_at=first, name="John Daniel", email="john.daniel@example.com"))
        after = availability.check(window)

        assert first not in after.days[0].slots
        assert first not in availability.list_free(window)

    def test_cancelled_appointment_does_not_block(self, availability: AvailabilityService, fake_repo) -> None:
        _book(fake_repo, _utc(2024, 7, 1, 14, 0), status=models.AppointmentStatus.CANCELLED)
        window = build_window("2024-07-01", "2024-07-01", availability.policy)

        assert _utc(2024, 7, 1, 14, 0) in availability.list_free(window)

    def test_narrow_window_ranks_nearest(self, availability: AvailabilityService) -> None:
        window = build_window("2024-07-01T14:10:00Z", "2024-07-01T14:40:00Z", availability.policy)

        result = availability.check(window)

        assert result.kind == AvailabilityKind.NEAREST
        assert result.requested_at == _utc(2024, 7, 1, 14, 25)
        assert result.nearest == [_utc(2024, 7, 1, 14, 30), _utc(2024, 7, 1, 14, 0), _utc(2024, 7, 1, 15, 0)]

    def test_narrow_window_skips_booked(self, availability: AvailabilityService, fake_repo) -> None:
        _book(fake_repo, _utc(2024, 7, 1, 14, 30))
        window = build_window("2024-07-01T14:10:00Z", "2024-07-01T14:40:00Z", availability.policy)

        result = availability.check(window)

        assert result.nearest == [_utc(2024, 7, 1, 14, 0), _utc(2024, 7, 1, 15, 0), _utc(2024, 7, 1, 15, 30)]

    def test_requested_at_overrides_midpoint(self, availability: AvailabilityService) -> None:
        window = AvailabilityWindow(
            start=_utc(2024, 7, 1, 14, 0),
            end=_utc(2024, 7, 1, 14, 30),
            requested_at=_utc(2024, 7, 1, 16, 0),
        )

        result = availability.check(window)

        assert result.nearest[0] == _utc(2024, 7, 1, 16, 0)

    def test_free_requested_time_is_flagged_exact(self, availability: AvailabilityService) -> None:
        window = AvailabilityWindow(
            start=_utc(2024, 7, 1, 14, 0),
            end=_utc(2024, 7, 1, 14, 30),
            requested_at=_utc(2024, 7, 1, 14, 0),
        )

        result = availability.check(window)

        assert result.kind == AvailabilityKind.NEAREST
        assert result.exact_available
        assert result.nearest[0] == _utc(2024, 7, 1, 14, 0)

    def test_booked_requested_time_is_not_exact(self, availability: AvailabilityService, fake_repo) -> None:
        _book(fake_repo, _utc(2024, 7, 1, 14, 0))
        window = AvailabilityWindow(
            start=_utc(2024, 7, 1, 14, 0),
            end=_utc(2024, 7, 1, 14, 30),
            requested_at=_utc(2024, 7, 1, 14, 0),
        )

        result = availability.check(window)

        assert not result.exact_available
        assert _utc(2024, 7, 1, 14, 0) not in result.nearest

    def test_off_grid_target_is_not_exact(self, availability: AvailabilityService) -> None:
        window = build_window("2024-07-01T14:10:00Z", "2024-07-01T14:40:00Z", availability.policy)

        assert not availability.check(window).exact_available

    def test_weekend_has_no_eligible_days(self, availability: AvailabilityService) -> None:
        window = build_window("2024-07-06", "2024-07-07", availability.policy)

        result = availability.check(window)

        assert result.kind == AvailabilityKind.NO_ELIGIBLE_DAYS
        assert result.is_empty

    def test_past_day_is_fully_booked(self, fake_repo, policy) -> None:
        service = AvailabilityService(fake_repo, policy, clock=lambda: _utc(2024, 7, 2, 12, 0))
        window = build_window("2024-07-01", "2024-07-01", policy)

        result = service.check(window)

        assert result.kind == AvailabilityKind.FULLY_BOOKED
        assert result.is_empty

    def test_every_slot_booked_is_fully_booked(self, availability: AvailabilityService, fake_repo) -> None:
        window = build_window("2024-07-01", "2024-07-01", availability.policy)
        for slot in availability.list_free(window):
            _book(fake_repo, slot)

        assert availability.check(window).kind == AvailabilityKind.FULLY_BOOKED

    def test_repository_failure_propagates(self, policy, clock) -> None:
        class BrokenRepository(InMemoryAppointmentRepository):
            def list_active_start_times(self, start, end):
                raise DependencyUnavailable("statement timeout")

        service = AvailabilityService(BrokenRepository(), policy, clock=clock)
        window = build_window("2024-07-01", "2024-07-01", policy)

        with pytest.raises(DependencyUnavailable):
            service.check(window)


class TestListFree:
    def test_lists_every_free_slot_untruncated(self, availability: AvailabilityService) -> None:
        window = build_window("2024-07-01", "2024-07-03", availability.policy)

        assert len(availability.list_free(window)) == 3 * 17
