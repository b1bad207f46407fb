"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from datetime import date
from typing import AsyncContextManager, Hashable, List, Optional
from uuid import UUID

from domain.entities import Booking, PropertyRateProfile, SeasonalRate


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking

        Must refuse a booking whose dates overlap another date-holding booking
        of the same property, raising ConcurrencyConflictError.
        """
        pass

    @abstractmethod
    async def update(self, booking: Booking, expected_version: int) -> Booking:
        """Replace a stored booking if it is still at expected_version"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_booking_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        """All bookings of a property, including cancelled ones"""
        pass

    @abstractmethod
    async def find_active_by_property(self, property_id: UUID, start: date, end: date) -> List[Booking]:
        """Date-holding bookings of a property overlapping [start, end)"""
        pass

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        pass

    @abstractmethod
    async def next_booking_number(self, day: date) -> str:
        """Allocate the next BK<YYYYMMDD><seq> number for a day, atomically"""
        pass


class PropertyRepository(ABC):
    """Repository interface for property rate profiles and seasonal rates"""

    @abstractmethod
    async def save_profile(self, profile: PropertyRateProfile) -> PropertyRateProfile:
        pass

    @abstractmethod
    async def find_profile(self, property_id: UUID) -> Optional[PropertyRateProfile]:
        pass

    @abstractmethod
    async def save_seasonal_rate(self, rate: SeasonalRate) -> SeasonalRate:
        pass

    @abstractmethod
    async def find_seasonal_rate(self, seasonal_rate_id: UUID) -> Optional[SeasonalRate]:
        pass

    @abstractmethod
    async def find_seasonal_rates(self, property_id: UUID) -> List[SeasonalRate]:
        """All seasonal rates of a property, active or not"""
        pass

    @abstractmethod
    async def mark_needs_cleaning(self, property_id: UUID) -> None:
        pass

    @abstractmethod
    async def mark_cleaned(self, property_id: UUID) -> None:
        pass

    @abstractmethod
    async def needs_cleaning(self, property_id: UUID) -> bool:
        pass


class UnitOfWork(ABC):
    """Transaction boundary

    transaction(*keys) holds mutual exclusion on every key until the block
    exits. Writes inside the block commit together or not at all.
    """

    @abstractmethod
    def transaction(self, *keys: Hashable) -> AsyncContextManager[None]:
        pass
