"""Availability Index

Derives booked dates for one property from its bookings. Only bookings that
still hold their dates (not cancelled, rejected or no-show) count. Stays are
half-open, so a check-out on the same day as another check-in is not a
conflict.
"""
from datetime import date, timedelta
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel

from domain.entities import Booking
from domain.value_objects import is_weekend


class AvailabilityResult(BaseModel):
    available: bool
    booked_dates: List[date] = []
    conflicting_bookings: List[Booking] = []


class CalendarDay(BaseModel):
    day: date
    is_booked: bool
    is_weekend: bool
    is_past: bool


class AvailabilityIndex:
    """Overlap, booked-date and adjacency queries over a property's bookings"""

    def __init__(self, bookings: Iterable[Booking]):
        self._bookings: List[Booking] = sorted(
            (b for b in bookings if b.blocks_dates()),
            key=lambda b: (b.date_range.check_in, b.date_range.check_out),
        )

    def __len__(self) -> int:
        return len(self._bookings)

    def overlaps(self, start: date, end: date) -> List[Booking]:
        return [b for b in self._bookings if b.date_range.overlaps(start, end)]

    def booked_dates(self, start: date, end: date) -> Set[date]:
        """Every booked night inside [start, end)"""
        dates: Set[date] = set()
        for booking in self.overlaps(start, end):
            current = max(booking.date_range.check_in, start)
            last = min(booking.date_range.check_out, end)
            while current < last:
                dates.add(current)
                current += timedelta(days=1)
        return dates

    def check(self, start: date, end: date) -> AvailabilityResult:
        conflicts = self.overlaps(start, end)
        return AvailabilityResult(
            available=not conflicts,
            booked_dates=sorted(self.booked_dates(start, end)),
            conflicting_bookings=conflicts,
        )

    def next_check_in(self, after: date) -> Optional[Booking]:
        """Earliest booking arriving on or after a date"""
        return next((b for b in self._bookings if b.date_range.check_in >= after), None)

    def ending_on(self, day: date) -> List[Booking]:
        return [b for b in self._bookings if b.date_range.check_out == day]

    def starting_on(self, day: date) -> List[Booking]:
        return [b for b in self._bookings if b.date_range.check_in == day]

    def is_sandwiched(self, check_in: date, check_out: date) -> bool:
        """A booking leaves on check_in and another arrives on check_out"""
        return bool(self.ending_on(check_in)) and bool(self.starting_on(check_out))

    def calendar(self, start: date, end: date, today: date) -> List[CalendarDay]:
        booked = self.booked_dates(start, end)
        days = []
        current = start
        while current < end:
            days.append(CalendarDay(
                day=current,
                is_booked=current in booked,
                is_weekend=is_weekend(current),
                is_past=current < today,
            ))
            current += timedelta(days=1)
        return days

    def next_available(self, nights: int, start: date, horizon_days: int) -> Optional[tuple]:
        """First free [check_in, check_out) of the given length within the horizon"""
        last_start = start + timedelta(days=horizon_days)
        current = start
        while current <= last_start:
            check_out = current + timedelta(days=nights)
            if not self.overlaps(current, check_out):
                return current, check_out
            current += timedelta(days=1)
        return None
