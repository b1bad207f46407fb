"""In-Memory Repository Implementations"""
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set
from uuid import UUID

from domain.entities import Booking, PropertyRateProfile, SeasonalRate
from domain.exceptions import ConcurrencyConflictError
from domain.repositories import BookingRepository, PropertyRepository
from infrastructure.unit_of_work import record_undo

BOOKING_NUMBER_PREFIX = "BK"


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository

    Stores deep copies, so callers never hold a reference into storage.
    """

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}
        self._daily_sequence: Dict[date, int] = defaultdict(int)

    async def add(self, booking: Booking) -> Booking:
        """Insert a booking, refusing overlaps and duplicate numbers"""
        if booking.booking_id in self._storage:
            raise ConcurrencyConflictError(f"Booking {booking.booking_id} already exists")
        if any(b.booking_number == booking.booking_number for b in self._storage.values()):
            raise ConcurrencyConflictError(f"Booking number {booking.booking_number} already issued")

        if booking.blocks_dates():
            clash = self._overlapping(
                booking.property_id, booking.date_range.check_in, booking.date_range.check_out
            )
            if clash:
                raise ConcurrencyConflictError(
                    f"Dates overlap booking {clash[0].booking_number} on property {booking.property_id}"
                )

        self._storage[booking.booking_id] = booking.model_copy(deep=True)
        record_undo(lambda: self._storage.pop(booking.booking_id, None))
        return booking.model_copy(deep=True)

    async def update(self, booking: Booking, expected_version: int) -> Booking:
        """Replace a booking if nobody else has written it since it was read"""
        stored = self._storage.get(booking.booking_id)
        if stored is None:
            raise ConcurrencyConflictError(f"Booking {booking.booking_id} no longer exists")
        if stored.version != expected_version:
            raise ConcurrencyConflictError(
                f"Booking {booking.booking_number} is at version {stored.version}, "
                f"expected {expected_version}"
            )

        self._storage[booking.booking_id] = booking.model_copy(deep=True)
        record_undo(lambda: self._storage.__setitem__(booking.booking_id, stored))
        return booking.model_copy(deep=True)

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        booking = self._storage.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def find_by_booking_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        for booking in self._storage.values():
            if booking.booking_number == booking_number:
                return booking.model_copy(deep=True)
        return None

    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        return [
            b.model_copy(deep=True) for b in self._storage.values()
            if b.property_id == property_id
        ]

    async def find_active_by_property(self, property_id: UUID, start: date, end: date) -> List[Booking]:
        return [b.model_copy(deep=True) for b in self._overlapping(property_id, start, end)]

    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        booking = self._storage.pop(booking_id, None)
        if booking is None:
            return False
        record_undo(lambda: self._storage.__setitem__(booking_id, booking))
        return True

    async def next_booking_number(self, day: date) -> str:
        """Numbers are never handed out twice, even if the booking is rolled back"""
        self._daily_sequence[day] += 1
        return f"{BOOKING_NUMBER_PREFIX}{day.strftime('%Y%m%d')}{self._daily_sequence[day]:04d}"

    def _overlapping(self, property_id: UUID, start: date, end: date) -> List[Booking]:
        return [
            b for b in self._storage.values()
            if b.property_id == property_id and b.blocks_dates() and b.date_range.overlaps(start, end)
        ]


class InMemoryPropertyRepository(PropertyRepository):
    """In-memory store of rate profiles, seasonal rates and cleaning flags"""

    def __init__(self):
        self._profiles: Dict[UUID, PropertyRateProfile] = {}
        self._seasonal_rates: Dict[UUID, SeasonalRate] = {}
        self._needs_cleaning: Set[UUID] = set()

    async def save_profile(self, profile: PropertyRateProfile) -> PropertyRateProfile:
        previous = self._profiles.get(profile.property_id)
        self._profiles[profile.property_id] = profile
        record_undo(lambda: self._restore(self._profiles, profile.property_id, previous))
        return profile

    async def find_profile(self, property_id: UUID) -> Optional[PropertyRateProfile]:
        return self._profiles.get(property_id)

    async def save_seasonal_rate(self, rate: SeasonalRate) -> SeasonalRate:
        previous = self._seasonal_rates.get(rate.seasonal_rate_id)
        self._seasonal_rates[rate.seasonal_rate_id] = rate
        record_undo(lambda: self._restore(self._seasonal_rates, rate.seasonal_rate_id, previous))
        return rate

    async def find_seasonal_rate(self, seasonal_rate_id: UUID) -> Optional[SeasonalRate]:
        return self._seasonal_rates.get(seasonal_rate_id)

    async def find_seasonal_rates(self, property_id: UUID) -> List[SeasonalRate]:
        return [r for r in self._seasonal_rates.values() if r.property_id == property_id]

    async def mark_needs_cleaning(self, property_id: UUID) -> None:
        if property_id in self._needs_cleaning:
            return
        self._needs_cleaning.add(property_id)
        record_undo(lambda: self._needs_cleaning.discard(property_id))

    async def mark_cleaned(self, property_id: UUID) -> None:
        if property_id not in self._needs_cleaning:
            return
        self._needs_cleaning.discard(property_id)
        record_undo(lambda: self._needs_cleaning.add(property_id))

    async def needs_cleaning(self, property_id: UUID) -> bool:
        return property_id in self._needs_cleaning

    @staticmethod
    def _restore(storage: dict, key, previous) -> None:
        if previous is None:
            storage.pop(key, None)
        else:
            storage[key] = previous
