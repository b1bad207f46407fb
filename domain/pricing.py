"""Rate Calculator

Pure, deterministic pricing of a stay. Nightly amounts are accumulated as
exact decimals and each component is rounded to the cent once, after the
nightly loop; tax is computed on the rounded subtotal.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List
from uuid import UUID

from domain.entities import PropertyRateProfile, SeasonalRate
from domain.exceptions import InvalidRangeError
from domain.seasonal_rates import SeasonalRateTable
from domain.value_objects import (
    AppliedSeasonalRate, GuestCount, NightlyRate, RateBreakdown, is_weekend, round_money,
)

# Fixed VAT, not configurable per property
TAX_RATE = Decimal("0.11")


def calculate(
    profile: PropertyRateProfile,
    seasonal_rates: Iterable[SeasonalRate],
    check_in: date,
    check_out: date,
    guest_male: int = 0,
    guest_female: int = 0,
    guest_children: int = 0,
) -> RateBreakdown:
    """Price a stay of [check_in, check_out) for the given guests"""
    if check_out <= check_in:
        raise InvalidRangeError("Check-out must be after check-in")

    guests = GuestCount(male=guest_male, female=guest_female, children=guest_children)
    table = (
        seasonal_rates if isinstance(seasonal_rates, SeasonalRateTable)
        else SeasonalRateTable(seasonal_rates)
    )
    nights = (check_out - check_in).days

    base_amount = Decimal("0")
    weekend_premium_amount = Decimal("0")
    seasonal_premium_amount = Decimal("0")
    nightly: List[NightlyRate] = []
    used: Dict[UUID, list] = {}

    for night in _nights(check_in, nights):
        weekend_premium = profile.weekend_premium(night)
        night_rate = profile.base_rate + weekend_premium

        seasonal_premium = Decimal("0")
        seasonal = table.governing(night)
        if seasonal is not None:
            seasonal_premium = seasonal.premium(night_rate)
            entry = used.setdefault(seasonal.seasonal_rate_id, [seasonal, 0])
            entry[1] += 1

        base_amount += profile.base_rate
        weekend_premium_amount += weekend_premium
        seasonal_premium_amount += seasonal_premium
        nightly.append(NightlyRate(
            night=night,
            base_rate=profile.base_rate,
            is_weekend=is_weekend(night),
            weekend_premium=weekend_premium,
            seasonal_premium=seasonal_premium,
            seasonal_rate_name=seasonal.name if seasonal else None,
        ))

    extra_beds = guests.extra_beds(profile.capacity)
    # Whole cents from here on so deposit and balance can be paid exactly
    base_amount = round_money(base_amount)
    weekend_premium_amount = round_money(weekend_premium_amount)
    seasonal_premium_amount = round_money(seasonal_premium_amount)
    extra_bed_amount = round_money(profile.extra_bed_rate * extra_beds * nights)
    cleaning_fee = round_money(profile.cleaning_fee)

    subtotal = (
        base_amount + weekend_premium_amount + seasonal_premium_amount
        + extra_bed_amount + cleaning_fee
    )
    tax_amount = round_money(subtotal * TAX_RATE)

    applied: List[AppliedSeasonalRate] = [
        rate.to_applied(count) for rate, count in used.values()
    ]

    return RateBreakdown(
        check_in=check_in,
        check_out=check_out,
        nights=nights,
        base_amount=base_amount,
        weekend_premium_amount=weekend_premium_amount,
        seasonal_premium_amount=seasonal_premium_amount,
        extra_beds=extra_beds,
        extra_bed_amount=extra_bed_amount,
        cleaning_fee=cleaning_fee,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
        effective_guest_count=guests.effective_count,
        nightly=nightly,
        seasonal_rates_applied=applied,
    )


def _nights(check_in: date, nights: int):
    for offset in range(nights):
        yield check_in + timedelta(days=offset)
