"""Minimum-Stay Resolver

Rules, first match wins:

1. sandwiched: a booking checks out on the requested check-in and another
   checks in on the requested check-out; the gap may be booked for 1 night.
2. seasonal_rate: the highest-priority active seasonal rate touching the stay
   sets the minimum.
3. weekend: check-in on Saturday or Sunday uses the property's weekend minimum.
4. weekday: otherwise the property's weekday minimum.
"""
from datetime import date
from typing import Iterable

from domain.availability import AvailabilityIndex
from domain.entities import Booking, PropertyRateProfile, SeasonalRate
from domain.enums import MinimumStayReason
from domain.exceptions import MinimumStayError
from domain.seasonal_rates import SeasonalRateTable
from domain.value_objects import MinimumStay, is_weekend


def resolve(
    profile: PropertyRateProfile,
    seasonal_rates: Iterable[SeasonalRate],
    check_in: date,
    check_out: date,
    existing_bookings: Iterable[Booking],
) -> MinimumStay:
    index = (
        existing_bookings if isinstance(existing_bookings, AvailabilityIndex)
        else AvailabilityIndex(existing_bookings)
    )
    if index.is_sandwiched(check_in, check_out):
        return MinimumStay(min_nights=1, reason=MinimumStayReason.SANDWICHED)

    table = (
        seasonal_rates if isinstance(seasonal_rates, SeasonalRateTable)
        else SeasonalRateTable(seasonal_rates)
    )
    seasonal = table.governing_for_range(check_in, check_out)
    if seasonal is not None:
        return MinimumStay(
            min_nights=seasonal.min_stay_nights,
            reason=MinimumStayReason.SEASONAL_RATE,
            seasonal_rate=seasonal,
        )

    if is_weekend(check_in):
        return MinimumStay(min_nights=profile.min_stay_weekend, reason=MinimumStayReason.WEEKEND)
    return MinimumStay(min_nights=profile.min_stay_weekday, reason=MinimumStayReason.WEEKDAY)


def validate(
    profile: PropertyRateProfile,
    seasonal_rates: Iterable[SeasonalRate],
    check_in: date,
    check_out: date,
    existing_bookings: Iterable[Booking],
) -> MinimumStay:
    """Resolve and raise MinimumStayError if the stay is too short"""
    minimum = resolve(profile, seasonal_rates, check_in, check_out, existing_bookings)
    nights = (check_out - check_in).days
    if not minimum.allows(nights):
        raise MinimumStayError(
            min_nights=minimum.min_nights,
            reason=minimum.reason.value,
            nights=nights,
            seasonal_rate=minimum.seasonal_rate,
        )
    return minimum
