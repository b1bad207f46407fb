"""API Dependencies - Actor extraction and service wiring"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from application.services import (
    AvailabilityService, BookingService, QuoteService, RateManagementService,
)
from domain.auth import Actor
from infrastructure.clock import SystemClock
from infrastructure.repositories.in_memory_repositories import (
    InMemoryBookingRepository, InMemoryPropertyRepository,
)
from infrastructure.security import decode_actor
from infrastructure.unit_of_work import InMemoryUnitOfWork

# Tokens are issued upstream; this service only reads them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Initialize repositories
booking_repo = InMemoryBookingRepository()
property_repo = InMemoryPropertyRepository()
unit_of_work = InMemoryUnitOfWork()
clock = SystemClock()


# Dependency injection
def get_availability_service() -> AvailabilityService:
    return AvailabilityService(booking_repo, clock)


def get_quote_service() -> QuoteService:
    return QuoteService(property_repo, booking_repo, clock)


def get_booking_service() -> BookingService:
    return BookingService(booking_repo, property_repo, unit_of_work, clock)


def get_rate_management_service() -> RateManagementService:
    return RateManagementService(property_repo, unit_of_work)


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return decode_actor(token)
    except ValueError:
        raise credentials_exception
