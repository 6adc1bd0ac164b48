"""
Tests for the availability engine.
"""

import pendulum
import pytest

from barberbook.domain.availability import AvailabilityEngine, count_occupants, is_slot_free
from barberbook.domain.exceptions import InvalidDate, InvalidDuration
from barberbook.domain.models import (
    BookedInterval,
    DayWindow,
    StaffAvailability,
    WeeklySchedule,
    parse_clock_time,
)

TZ = "America/Sao_Paulo"
MONDAY = pendulum.date(2024, 11, 25)
TUESDAY = pendulum.date(2024, 11, 26)


def _shop_schedule() -> WeeklySchedule:
    return WeeklySchedule(days=(
        DayWindow(day_of_week=0, start="09:00", end="18:00", is_open=False),
        DayWindow(day_of_week=1, start="09:00", end="18:00"),
        DayWindow(day_of_week=2, start="09:00", end="18:00"),
    ))


def _booking(time: str, duration: int = 45, staff_id=None, date=MONDAY) -> BookedInterval:
    return BookedInterval(date=date, start_time=time, duration_minutes=duration, staff_id=staff_id)


def _early_monday():
    return pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ)


class TestCandidateGeneration:
    """Tests for slot generation inside the working window."""

    def test_open_day_without_bookings(self):
        """Slots start at opening and the last one still ends before closing."""
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=_early_monday(),
        )

        assert slots[0] == "09:00"
        # 17:00 + 45 = 17:45 fits, 17:30 + 45 = 18:15 does not
        assert slots[-1] == "17:00"
        assert len(slots) == 17

    def test_slots_are_spaced_by_interval(self):
        """Consecutive slots differ by exactly the interval when nothing is booked."""
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=_early_monday(),
        )

        minutes = [parse_clock_time(slot) for slot in slots]
        assert all(b - a == 30 for a, b in zip(minutes, minutes[1:]))

    def test_every_slot_fits_the_window(self):
        """No slot runs past closing time."""
        engine = AvailabilityEngine(slot_interval_minutes=15)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=50,
            now=_early_monday(),
        )

        assert slots
        assert all(parse_clock_time(slot) + 50 <= 18 * 60 for slot in slots)
        assert slots[-1] == "17:00"

    def test_service_longer_than_window(self):
        """A service that can't fit yields no slots."""
        schedule = WeeklySchedule(days=(DayWindow(day_of_week=1, start="09:00", end="10:00"),))
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=schedule,
            date=MONDAY,
            service_duration_minutes=90,
            now=_early_monday(),
        )

        assert slots == []

    def test_service_exactly_filling_window(self):
        schedule = WeeklySchedule(days=(DayWindow(day_of_week=1, start="09:00", end="10:00"),))
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=schedule,
            date=MONDAY,
            service_duration_minutes=60,
            now=_early_monday(),
        )

        assert slots == ["09:00"]

    def test_window_not_aligned_to_the_hour(self):
        """Candidates are counted from the window start, not from the full hour."""
        schedule = WeeklySchedule(days=(DayWindow(day_of_week=1, start="09:10", end="10:00"),))
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=schedule,
            date=MONDAY,
            service_duration_minutes=20,
            now=_early_monday(),
        )

        assert slots == ["09:10", "09:40"]

    def test_date_given_as_string(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date="2024-11-25",
            service_duration_minutes=30,
            now=_early_monday(),
        )

        assert slots[0] == "09:00"


class TestClosedDays:
    """Tests for days without a working window."""

    def test_closed_day_is_empty(self):
        """Sunday is configured but closed."""
        engine = AvailabilityEngine()
        sunday = pendulum.date(2024, 11, 24)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=sunday,
            service_duration_minutes=30,
            now=pendulum.datetime(2024, 11, 23, 8, 0, tz=TZ),
        )

        assert slots == []

    def test_missing_weekday_is_empty(self):
        """Saturday has no entry at all."""
        engine = AvailabilityEngine()
        saturday = pendulum.date(2024, 11, 30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=saturday,
            service_duration_minutes=30,
            now=_early_monday(),
        )

        assert slots == []


class TestStaffSchedules:
    """Tests for staff-specific hours."""

    def test_staff_absent_on_weekday(self):
        """Staff without a Tuesday entry has no slots even though the shop is open."""
        staff_schedule = StaffAvailability(
            staff_id="barber_a",
            days=(DayWindow(day_of_week=1, start="09:00", end="17:00"),),
        )
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            staff_schedule=staff_schedule,
            staff_id="barber_a",
            date=TUESDAY,
            service_duration_minutes=30,
            now=_early_monday(),
        )

        assert slots == []

    def test_staff_hours_replace_shop_hours(self):
        staff_schedule = StaffAvailability(
            staff_id="barber_a",
            days=(DayWindow(day_of_week=1, start="12:00", end="15:00"),),
        )
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            staff_schedule=staff_schedule,
            staff_id="barber_a",
            date=MONDAY,
            service_duration_minutes=30,
            now=_early_monday(),
        )

        assert slots == ["12:00", "12:30", "13:00", "13:30", "14:00", "14:30"]

    def test_staff_without_individual_hours_uses_shop_hours(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            staff_schedule=None,
            staff_id="barber_a",
            date=MONDAY,
            service_duration_minutes=45,
            now=_early_monday(),
        )

        assert slots[0] == "09:00"
        assert slots[-1] == "17:00"


class TestConflicts:
    """Tests for filtering out booked time."""

    def test_single_staff_shop_excludes_overlapping_slots(self):
        """A 10:00-10:45 booking blocks 09:30, 10:00 and 10:30 for 45 minute services."""
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00", staff_id="barber_a")],
            all_staff_count=1,
            now=_early_monday(),
        )

        assert "09:00" in slots
        assert "09:30" not in slots
        assert "10:00" not in slots
        assert "10:30" not in slots
        assert "11:00" in slots

    def test_no_slot_overlaps_the_staff_bookings(self):
        engine = AvailabilityEngine(slot_interval_minutes=15)
        bookings = [
            _booking("09:30", duration=30, staff_id="barber_a"),
            _booking("13:15", duration=60, staff_id="barber_a"),
            _booking("11:00", duration=60, staff_id="barber_b"),
        ]

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            staff_id="barber_a",
            date=MONDAY,
            service_duration_minutes=40,
            booked_intervals=bookings,
            now=_early_monday(),
        )

        for slot in slots:
            start = parse_clock_time(slot)
            for booked in bookings:
                if booked.staff_id == "barber_a":
                    assert not booked.overlaps(start, start + 40)

        # barber_b's booking does not block barber_a
        assert "11:00" in slots

    def test_back_to_back_bookings_do_not_conflict(self):
        engine = AvailabilityEngine(slot_interval_minutes=30)

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            staff_id="barber_a",
            date=MONDAY,
            service_duration_minutes=30,
            booked_intervals=[_booking("10:00", duration=30, staff_id="barber_a")],
            now=_early_monday(),
        )

        assert "09:30" in slots
        assert "10:00" not in slots
        assert "10:30" in slots

    def test_slot_stays_open_while_some_staff_are_free(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00", staff_id="barber_a")],
            all_staff_count=2,
            now=_early_monday(),
        )

        assert "10:00" in slots

    def test_slot_closes_when_all_staff_are_booked(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[
                _booking("10:00", staff_id="barber_a"),
                _booking("10:00", staff_id="barber_b"),
            ],
            all_staff_count=2,
            now=_early_monday(),
        )

        assert "10:00" not in slots
        assert "11:00" in slots

    def test_same_staff_counts_once(self):
        """Two overlapping bookings of one staff member occupy one chair."""
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=60,
            booked_intervals=[
                _booking("10:00", duration=30, staff_id="barber_a"),
                _booking("10:30", duration=30, staff_id="barber_a"),
            ],
            all_staff_count=2,
            now=_early_monday(),
        )

        assert "10:00" in slots

    def test_unassigned_bookings_each_take_a_chair(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00"), _booking("10:00")],
            all_staff_count=2,
            now=_early_monday(),
        )

        assert "10:00" not in slots

    def test_shop_without_staff_behaves_as_one_chair(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00")],
            all_staff_count=0,
            now=_early_monday(),
        )

        assert "09:00" in slots
        assert "10:00" not in slots

    def test_bookings_on_other_dates_are_ignored(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00", staff_id="barber_a", date=TUESDAY)],
            staff_id="barber_a",
            now=_early_monday(),
        )

        assert "10:00" in slots


class TestPastFiltering:
    """Tests for hiding slots that already started."""

    def test_same_day_hides_started_slots(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 25, 9, 20, tz=TZ),
        )

        assert "09:00" not in slots
        assert slots[0] == "09:30"

    def test_slot_starting_exactly_now_is_hidden(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 25, 9, 30, tz=TZ),
        )

        assert slots[0] == "10:00"

    def test_seconds_past_the_slot_start_hide_it(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 25, 8, 59, 59, tz=TZ),
        )

        assert slots[0] == "09:00"

    def test_future_date_is_not_filtered(self):
        """Late evening the day before still shows the morning slots."""
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 24, 22, 0, tz=TZ),
        )

        assert slots[0] == "09:00"
        assert len(slots) == 17

    def test_past_date_is_not_rejected(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 27, 12, 0, tz=TZ),
        )

        assert len(slots) == 17

    def test_all_slots_in_the_past(self):
        engine = AvailabilityEngine()

        slots = engine.compute_available_slots(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            now=pendulum.datetime(2024, 11, 25, 19, 0, tz=TZ),
        )

        assert slots == []


class TestErrors:
    """Tests for invalid input."""

    def test_zero_duration(self):
        engine = AvailabilityEngine()

        with pytest.raises(InvalidDuration):
            engine.compute_available_slots(
                shop_schedule=_shop_schedule(),
                date=MONDAY,
                service_duration_minutes=0,
                now=_early_monday(),
            )

    def test_negative_interval(self):
        with pytest.raises(InvalidDuration):
            AvailabilityEngine(slot_interval_minutes=-30)

    @pytest.mark.parametrize("value", ["2024-13-40", "25/11/2024", "tomorrow"])
    def test_unparsable_date(self, value):
        engine = AvailabilityEngine()

        with pytest.raises(InvalidDate):
            engine.compute_available_slots(
                shop_schedule=_shop_schedule(),
                date=value,
                service_duration_minutes=30,
                now=_early_monday(),
            )

    def test_result_is_deterministic(self):
        engine = AvailabilityEngine()
        kwargs = dict(
            shop_schedule=_shop_schedule(),
            date=MONDAY,
            service_duration_minutes=45,
            booked_intervals=[_booking("10:00", staff_id="barber_a")],
            now=pendulum.datetime(2024, 11, 25, 9, 20, tz=TZ),
        )

        assert engine.compute_available_slots(**kwargs) == engine.compute_available_slots(**kwargs)


class TestSlotPredicates:
    """Tests for the shared overlap helpers."""

    def test_count_occupants(self):
        bookings = [
            _booking("10:00", staff_id="barber_a"),
            _booking("10:15", staff_id="barber_a"),
            _booking("10:30", staff_id="barber_b"),
            _booking("10:00"),
        ]

        assert count_occupants(600, 630, bookings) == 2
        assert count_occupants(630, 660, bookings) == 3
        assert count_occupants(480, 600, bookings) == 0

    def test_is_slot_free_for_staff(self):
        bookings = [_booking("10:00", staff_id="barber_a")]

        assert not is_slot_free(600, 30, bookings, staff_id="barber_a")
        assert is_slot_free(600, 30, bookings, staff_id="barber_b")
        assert is_slot_free(645, 30, bookings, staff_id="barber_a")
