"""
Tests for the availability calculator.
"""

import pendulum
import pytest

from studiobook.domain.availability import AvailabilityCalculator, StudioHours
from studiobook.domain.models import Booking, SlotStatus

TZ = "America/Sao_Paulo"


def at(text: str):
    return pendulum.parse(text, tz=TZ)


def booking(booking_id: str, start: str, end: str) -> Booking:
    return Booking(
        id=booking_id,
        start_time=at(start),
        end_time=at(end),
        client_id="client_001",
        project_id="project_001",
    )


@pytest.fixture
def calculator() -> AvailabilityCalculator:
    return AvailabilityCalculator(StudioHours(start_hour=9, end_hour=19, buffer_hours=1, timezone=TZ))


class TestWeekDates:
    """Tests for week generation."""

    @pytest.mark.parametrize(
        "reference",
        [
            "2024-11-25 00:00",  # Monday
            "2024-11-27 15:30",  # Wednesday
            "2024-11-30 23:00",  # Saturday
            "2024-12-01 12:00",  # Sunday belongs to the week before
        ],
    )
    def test_monday_to_saturday(self, calculator, reference):
        """Six consecutive days starting Monday, never a Sunday."""
        dates = calculator.week_dates(at(reference))

        assert len(dates) == 6
        assert dates[0] == at("2024-11-25 00:00")
        assert [d.day_of_week for d in dates] == [
            pendulum.MONDAY,
            pendulum.TUESDAY,
            pendulum.WEDNESDAY,
            pendulum.THURSDAY,
            pendulum.FRIDAY,
            pendulum.SATURDAY,
        ]
        for previous, current in zip(dates, dates[1:]):
            assert current == previous.add(days=1)

    def test_week_crossing_month_boundary(self, calculator):
        dates = calculator.week_dates(at("2025-01-01 10:00"))  # Wednesday

        assert dates[0] == at("2024-12-30 00:00")
        assert dates[-1] == at("2025-01-04 00:00")


    def test_week_is_taken_in_studio_timezone(self, calculator):
        """Monday 02:00 UTC is still Sunday evening in the studio."""
        dates = calculator.week_dates(pendulum.datetime(2024, 11, 25, 2, tz="UTC"))

        assert dates[0] == at("2024-11-18 00:00")
        assert dates[0].timezone_name == TZ


class TestDaySlots:
    """Tests for slot generation."""

    def test_slots_follow_studio_clock(self, calculator):
        slots = calculator.day_slots(pendulum.datetime(2024, 11, 25, 12, tz="UTC"))

        assert slots[0] == at("2024-11-25 09:00")
        assert slots[0] == pendulum.datetime(2024, 11, 25, 12, tz="UTC")

    def test_ten_slots_from_nine_to_eighteen(self, calculator):
        slots = calculator.day_slots(at("2024-11-25 00:00"))

        assert len(slots) == 10
        assert slots[0] == at("2024-11-25 09:00")
        assert slots[-1] == at("2024-11-25 18:00")

    def test_slots_are_one_hour_apart(self, calculator):
        slots = calculator.day_slots(at("2024-11-25 13:47"))

        for previous, current in zip(slots, slots[1:]):
            assert (current - previous).total_seconds() == 3600

    def test_custom_hours(self):
        calculator = AvailabilityCalculator(StudioHours(start_hour=10, end_hour=14))

        slots = calculator.day_slots(at("2024-11-25 00:00"))

        assert [s.hour for s in slots] == [10, 11, 12, 13]


class TestClassify:
    """Tests for booked/buffer/available classification."""

    @pytest.mark.parametrize(
        "slot, expected",
        [
            ("2024-11-25 08:00", SlotStatus.AVAILABLE),
            ("2024-11-25 09:00", SlotStatus.BUFFER),
            ("2024-11-25 10:00", SlotStatus.BOOKED),
            ("2024-11-25 11:00", SlotStatus.BUFFER),
            ("2024-11-25 12:00", SlotStatus.BUFFER),
            ("2024-11-25 13:00", SlotStatus.AVAILABLE),
        ],
    )
    def test_single_booking(self, calculator, slot, expected):
        """A 10:00-11:00 booking blocks its slot and the margins around it."""
        bookings = [booking("b1", "2024-11-25 10:00", "2024-11-25 11:00")]

        result = calculator.classify(at(slot), bookings)

        assert result.status is expected
        if expected is SlotStatus.AVAILABLE:
            assert result.booking is None
        else:
            assert result.booking is bookings[0]

    def test_booked_wins_over_buffer(self, calculator):
        """A slot booked by one booking is never reported as another's buffer."""
        # b1's buffer covers 12:00, but b2 occupies it; b1 comes first in the list
        bookings = [
            booking("b1", "2024-11-25 10:00", "2024-11-25 11:00"),
            booking("b2", "2024-11-25 12:00", "2024-11-25 13:00"),
        ]

        result = calculator.classify(at("2024-11-25 12:00"), bookings)

        assert result.status is SlotStatus.BOOKED
        assert result.booking.id == "b2"

    def test_slot_between_two_bookings_is_buffer_with_one_reference(self, calculator):
        bookings = [
            booking("b1", "2024-11-25 10:00", "2024-11-25 11:00"),
            booking("b2", "2024-11-25 12:00", "2024-11-25 13:00"),
        ]

        result = calculator.classify(at("2024-11-25 11:00"), bookings)

        assert result.status is SlotStatus.BUFFER
        assert result.booking in bookings

    def test_slot_ending_at_booking_start_is_buffer(self, calculator):
        """Exclusive end: a slot that ends when a booking starts is not booked."""
        bookings = [booking("b1", "2024-11-25 14:00", "2024-11-25 16:00")]

        assert calculator.classify(at("2024-11-25 13:00"), bookings).status is SlotStatus.BUFFER

    def test_partial_overlaps_are_booked(self, calculator):
        """Bookings that start or end mid-slot, or sit inside a slot, book it."""
        starts_mid_slot = [booking("b1", "2024-11-25 10:30", "2024-11-25 12:00")]
        ends_mid_slot = [booking("b2", "2024-11-25 08:00", "2024-11-25 10:30")]
        inside_slot = [booking("b3", "2024-11-25 10:15", "2024-11-25 10:45")]

        for bookings in (starts_mid_slot, ends_mid_slot, inside_slot):
            assert calculator.classify(at("2024-11-25 10:00"), bookings).status is SlotStatus.BOOKED

    def test_multi_hour_booking(self, calculator):
        bookings = [booking("b1", "2024-11-25 14:00", "2024-11-25 16:00")]

        assert calculator.classify(at("2024-11-25 14:00"), bookings).is_booked
        assert calculator.classify(at("2024-11-25 15:00"), bookings).is_booked
        assert calculator.classify(at("2024-11-25 16:00"), bookings).is_buffer

    def test_no_bookings(self, calculator):
        assert calculator.classify(at("2024-11-25 10:00"), []).is_available

    def test_zero_buffer(self):
        calculator = AvailabilityCalculator(StudioHours(buffer_hours=0))
        bookings = [booking("b1", "2024-11-25 10:00", "2024-11-25 11:00")]

        assert calculator.classify(at("2024-11-25 09:00"), bookings).is_available
        assert calculator.classify(at("2024-11-25 11:00"), bookings).is_available


class TestGrid:
    """Tests for week grid composition."""

    def test_grid_shape(self, calculator):
        week = calculator.week_dates(at("2024-11-25 00:00"))

        grid = calculator.grid_for(week, [])

        assert len(grid) == 6
        assert all(len(day.slots) == 10 for day in grid)
        assert all(slot.is_available for day in grid for slot in day.slots)

    def test_grid_classifies_against_bookings(self, calculator):
        week = calculator.week_dates(at("2024-11-25 00:00"))
        bookings = [booking("b1", "2024-11-26 14:00", "2024-11-26 16:00")]  # Tuesday

        grid = calculator.grid_for(week, bookings)
        tuesday = {slot.time.hour: slot.status for slot in grid[1].slots}

        assert tuesday[12] is SlotStatus.AVAILABLE
        assert tuesday[13] is SlotStatus.BUFFER
        assert tuesday[14] is SlotStatus.BOOKED
        assert tuesday[15] is SlotStatus.BOOKED
        assert tuesday[16] is SlotStatus.BUFFER
        assert tuesday[17] is SlotStatus.BUFFER
        assert tuesday[18] is SlotStatus.AVAILABLE
        assert all(slot.is_available for slot in grid[0].slots)

    def test_available_slots(self, calculator):
        week = calculator.week_dates(at("2024-11-25 00:00"))
        bookings = [booking("b1", "2024-11-25 10:00", "2024-11-25 11:00")]

        free = calculator.available_slots(week, bookings)

        assert len(free) == 60 - 4  # 09, 10, 11, 12 on Monday
        assert at("2024-11-25 10:00") not in free
        assert at("2024-11-25 13:00") in free

    def test_closed_weekday_is_left_out(self):
        calculator = AvailabilityCalculator(
            StudioHours(closed_weekdays=[pendulum.SATURDAY, pendulum.SUNDAY])
        )
        week = calculator.week_dates(at("2024-11-25 00:00"))

        grid = calculator.grid_for(week, [])

        assert len(grid) == 5
        assert grid[-1].date.day_of_week == pendulum.FRIDAY
