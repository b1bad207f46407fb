"""Domain Value Objects"""
import math
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterator, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.enums import MinimumStayReason, RateType

# Smallest currency unit; every rounding in the engine lands on it
MONEY_QUANTUM = Decimal("0.01")

SATURDAY = 5


def round_money(amount: Decimal) -> Decimal:
    """Round to the smallest currency unit, half up"""
    return Decimal(amount).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def is_weekend(day: date) -> bool:
    """Saturday and Sunday by calendar"""
    return day.weekday() >= SATURDAY


class DateRange(BaseModel):
    """Half-open stay interval [check_in, check_out)"""
    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "DateRange":
        if self.check_out <= self.check_in:
            raise ValueError("Check-out must be after check-in")
        return self

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def dates(self) -> Iterator[date]:
        """Each night of the stay, check-out excluded"""
        current = self.check_in
        while current < self.check_out:
            yield current
            current += timedelta(days=1)

    def overlaps(self, start: date, end: date) -> bool:
        # Touching boundaries (same-day turnover) do not overlap
        return self.check_in < end and start < self.check_out

    def contains(self, day: date) -> bool:
        return self.check_in <= day < self.check_out


class GuestCount(BaseModel):
    """Guest composition of a booking"""
    model_config = ConfigDict(frozen=True)

    male: int = Field(ge=0, default=0)
    female: int = Field(ge=0, default=0)
    children: int = Field(ge=0, default=0)

    @property
    def total(self) -> int:
        return self.male + self.female + self.children

    @property
    def effective_count(self) -> Decimal:
        """Children count half toward occupancy for bedding"""
        return Decimal(self.male + self.female) + Decimal(self.children) * Decimal("0.5")

    def extra_beds(self, capacity: int) -> int:
        return max(0, math.ceil(self.effective_count) - capacity)


class NightlyRate(BaseModel):
    """One night's line in a rate breakdown"""
    model_config = ConfigDict(frozen=True)

    night: date
    base_rate: Decimal
    is_weekend: bool
    weekend_premium: Decimal = Decimal("0")
    seasonal_premium: Decimal = Decimal("0")
    seasonal_rate_name: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.base_rate + self.weekend_premium + self.seasonal_premium


class AppliedSeasonalRate(BaseModel):
    """A seasonal rate that governed at least one night of a stay"""
    model_config = ConfigDict(frozen=True)

    seasonal_rate_id: UUID
    name: str
    start_date: date
    end_date: date
    rate_type: RateType
    rate_value: Decimal
    nights: int = 0


class RateBreakdown(BaseModel):
    """Full price of a stay"""
    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date
    nights: int
    base_amount: Decimal
    weekend_premium_amount: Decimal
    seasonal_premium_amount: Decimal
    extra_beds: int
    extra_bed_amount: Decimal
    cleaning_fee: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    effective_guest_count: Decimal
    nightly: List[NightlyRate] = []
    seasonal_rates_applied: List[AppliedSeasonalRate] = []

    @property
    def per_night(self) -> Decimal:
        return round_money(self.total_amount / self.nights)

    def has_weekend_premium(self) -> bool:
        return self.weekend_premium_amount > 0

    def has_seasonal_rates(self) -> bool:
        return bool(self.seasonal_rates_applied)

    def requires_extra_beds(self) -> bool:
        return self.extra_beds > 0


class MinimumStay(BaseModel):
    """Resolved minimum stay and the rule that produced it"""
    model_config = ConfigDict(frozen=True)

    min_nights: int = Field(ge=1)
    reason: MinimumStayReason
    seasonal_rate: Optional[Any] = None

    def allows(self, nights: int) -> bool:
        return nights >= self.min_nights


class PaymentProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_paid: Decimal
    dp_percentage: Decimal
    total_percentage: Decimal
    is_dp_complete: bool
    is_fully_paid: bool


class EffectiveRate(BaseModel):
    """One day of a property's rate calendar"""
    model_config = ConfigDict(frozen=True)

    day: date
    is_weekend: bool
    seasonal_rate_id: Optional[UUID] = None
    seasonal_rate_name: Optional[str] = None
    quoted_rate: Decimal
