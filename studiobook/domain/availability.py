"""
Core business logic for classifying studio slots.

Pure domain logic without any external dependencies (no storage, no I/O):
every call is computed fresh from the bookings it is given.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

import pendulum
from pendulum import DateTime

from .models import Booking, DaySlots, SlotStatus, TimeRange, TimeSlot

logger = logging.getLogger(__name__)

SLOT_HOURS = 1
DAYS_SHOWN_PER_WEEK = 6  # Monday to Saturday


@dataclass
class StudioHours:
    """
    Operating hours of the studio.

    Slots run from ``start_hour`` up to, but not including, ``end_hour``:
    with 9 and 19 the last slot is 18:00-19:00.
    """
    start_hour: int = 9
    end_hour: int = 19
    buffer_hours: int = 1
    closed_weekdays: List[int] = field(default_factory=lambda: [pendulum.SUNDAY])
    timezone: str = "America/Sao_Paulo"

    def is_open(self, dt: DateTime) -> bool:
        """Check if the studio operates on the local day of ``dt``."""
        return dt.in_timezone(self.timezone).day_of_week not in self.closed_weekdays

    @property
    def slots_per_day(self) -> int:
        return self.end_hour - self.start_hour


class AvailabilityCalculator:
    """
    Classifies 1-hour slots against a list of bookings.

    Algorithm for a single slot:
    1. BOOKED if the slot overlaps any booking (checked for all bookings first)
    2. BUFFER if the slot starts inside the margin before or after any booking
    3. AVAILABLE otherwise
    """

    def __init__(self, studio_hours: StudioHours):
        self.studio_hours = studio_hours

    def to_studio_time(self, dt: DateTime) -> DateTime:
        """Express an instant in the studio timezone."""
        return dt.in_timezone(self.studio_hours.timezone)

    def week_dates(self, reference: DateTime) -> List[DateTime]:
        """
        Return Monday through Saturday of the week containing ``reference``.

        The week is taken in the studio timezone. Sunday is not part of the
        operating calendar and is never returned.
        """
        monday = self.to_studio_time(reference).start_of("week")
        return [monday.add(days=offset) for offset in range(DAYS_SHOWN_PER_WEEK)]

    def day_slots(self, date: DateTime) -> List[DateTime]:
        """
        Generate the start instant of every slot of a day.

        Returns ``end_hour - start_hour`` instants, one per hour, on the
        studio-local calendar day of ``date``.
        """
        first = self.to_studio_time(date).set(
            hour=self.studio_hours.start_hour,
            minute=0,
            second=0,
            microsecond=0
        )
        return [
            first.add(hours=offset)
            for offset in range(self.studio_hours.slots_per_day)
        ]

    def classify(self, slot_start: DateTime, bookings: Sequence[Booking]) -> TimeSlot:
        """
        Classify the slot ``[slot_start, slot_start + 1h)``.

        Args:
            slot_start: Start instant of the slot
            bookings: Existing bookings (read only)

        Returns:
            TimeSlot carrying the status and, for BOOKED/BUFFER, the first
            booking responsible for it
        """
        slot = TimeRange(start=slot_start, end=slot_start.add(hours=SLOT_HOURS))

        # Phase 1: a direct overlap with any booking wins over every buffer
        for booking in bookings:
            if slot.overlaps(booking.time_range):
                return TimeSlot(time=slot_start, status=SlotStatus.BOOKED, booking=booking)

        # Phase 2: transition margins around each booking
        for booking in bookings:
            if self._in_buffer(slot_start, booking):
                return TimeSlot(time=slot_start, status=SlotStatus.BUFFER, booking=booking)

        return TimeSlot(time=slot_start, status=SlotStatus.AVAILABLE)

    def grid_for(
        self,
        week_dates: Sequence[DateTime],
        bookings: Sequence[Booking]
    ) -> List[DaySlots]:
        """Classify every slot of every given day."""
        grid = [
            DaySlots(
                date=date,
                slots=[self.classify(slot, bookings) for slot in self.day_slots(date)]
            )
            for date in week_dates
            if self.studio_hours.is_open(date)
        ]
        logger.debug(
            "Computed grid for %d day(s) against %d booking(s)", len(grid), len(bookings)
        )
        return grid

    def available_slots(
        self,
        week_dates: Sequence[DateTime],
        bookings: Sequence[Booking]
    ) -> List[DateTime]:
        """Start instants of every AVAILABLE slot in the given days."""
        return [
            slot.time
            for day in self.grid_for(week_dates, bookings)
            for slot in day.slots
            if slot.is_available
        ]

    def _in_buffer(self, slot_start: DateTime, booking: Booking) -> bool:
        """
        Check whether a slot starts inside a booking's transition margin.

        Before the booking the margin is ``[start - buffer, start)``; after
        it the margin is ``[end, end + buffer]``, so a slot starting exactly
        ``buffer`` hours after the end is still kept free.
        """
        buffer_hours = self.studio_hours.buffer_hours
        if buffer_hours <= 0:
            return False

        buffer_before_start = booking.start_time.subtract(hours=buffer_hours)
        buffer_after_end = booking.end_time.add(hours=buffer_hours)

        if buffer_before_start <= slot_start < booking.start_time:
            return True
        return booking.end_time <= slot_start <= buffer_after_end
