"""Domain Entities - Aggregates"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from domain.enums import (
    BookingAction, BookingStatus, PaymentRecordStatus, PaymentStatus, PaymentType,
    RateType, VerificationDecision, VerificationStatus,
)
from domain.exceptions import InvalidTransitionError, ValidationError
from domain.value_objects import (
    AppliedSeasonalRate, DateRange, GuestCount, PaymentProgress, RateBreakdown,
    is_weekend, round_money,
)

DP_GRACE_PERIOD = timedelta(days=3)


class PropertyRateProfile(BaseModel):
    """Pricing and stay rules of a property, read-only to the engine"""
    model_config = ConfigDict(frozen=True)

    property_id: UUID = Field(default_factory=uuid4)
    name: str = ""
    base_rate: Decimal = Field(ge=0)
    weekend_premium_percent: Decimal = Field(ge=0, default=Decimal("0"))
    cleaning_fee: Decimal = Field(ge=0, default=Decimal("0"))
    extra_bed_rate: Decimal = Field(ge=0, default=Decimal("0"))
    capacity: int = Field(ge=1)
    capacity_max: int = Field(ge=1)
    min_stay_weekday: int = Field(ge=1, default=1)
    min_stay_weekend: int = Field(ge=1, default=1)
    min_stay_peak: int = Field(ge=1, default=1)

    @model_validator(mode="after")
    def capacity_max_covers_capacity(self) -> "PropertyRateProfile":
        if self.capacity_max < self.capacity:
            raise ValueError("capacity_max must be at least capacity")
        return self

    def weekend_premium(self, night: date) -> Decimal:
        if not is_weekend(night):
            return Decimal("0")
        return self.base_rate * self.weekend_premium_percent / Decimal(100)


class SeasonalRate(BaseModel):
    """Prioritised date-range override of nightly price and minimum stay"""
    model_config = ConfigDict(frozen=True)

    seasonal_rate_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    name: str
    start_date: date
    end_date: date
    rate_type: RateType
    rate_value: Decimal
    min_stay_nights: int = Field(ge=1, default=1)
    applies_to_weekends_only: bool = False
    priority: int = 0
    is_active: bool = True
    description: Optional[str] = None

    @model_validator(mode="after")
    def end_not_before_start(self) -> "SeasonalRate":
        if self.end_date < self.start_date:
            raise ValueError("Seasonal rate end_date must not be before start_date")
        return self

    @property
    def precedence(self) -> tuple:
        """Higher priority wins, ties go to the latest start date"""
        return (self.priority, self.start_date)

    def covers(self, day: date) -> bool:
        # Seasonal ranges are inclusive on both ends
        return self.start_date <= day <= self.end_date

    def applies_to(self, night: date) -> bool:
        if not self.is_active or not self.covers(night):
            return False
        if self.applies_to_weekends_only and not is_weekend(night):
            return False
        return True

    def intersects(self, start: date, end: date) -> bool:
        """True if any night of the half-open stay [start, end) is covered"""
        return self.start_date < end and start <= self.end_date

    def calculate_rate(self, night_rate: Decimal) -> Decimal:
        """Nightly price after this rate is applied"""
        if self.rate_type == RateType.PERCENTAGE:
            return night_rate * (1 + self.rate_value / Decimal(100))
        if self.rate_type == RateType.FIXED:
            return self.rate_value
        if self.rate_type == RateType.MULTIPLIER:
            return night_rate * self.rate_value
        return night_rate

    def premium(self, night_rate: Decimal) -> Decimal:
        """Delta this rate adds to (or, for fixed rates, removes from) a night"""
        return self.calculate_rate(night_rate) - night_rate

    def conflicts_with(self, other: "SeasonalRate") -> bool:
        """Same property, same priority and overlapping dates"""
        if other.seasonal_rate_id == self.seasonal_rate_id:
            return False
        if not (self.is_active and other.is_active):
            return False
        if self.property_id != other.property_id or self.priority != other.priority:
            return False
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def to_applied(self, nights: int) -> AppliedSeasonalRate:
        return AppliedSeasonalRate(
            seasonal_rate_id=self.seasonal_rate_id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            rate_type=self.rate_type,
            rate_value=self.rate_value,
            nights=nights,
        )


class Payment(BaseModel):
    """A single payment against a booking"""
    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    amount: Decimal = Field(gt=0)
    payment_type: PaymentType = PaymentType.DP
    payment_status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[UUID] = None

    def verify(self, now: datetime, verified_by: Optional[UUID] = None) -> None:
        if self.payment_status != PaymentRecordStatus.PENDING:
            raise InvalidTransitionError(self.payment_status.value, "verify payment")
        self.payment_status = PaymentRecordStatus.VERIFIED
        self.verified_at = now
        self.verified_by = verified_by

    def fail(self, now: datetime, verified_by: Optional[UUID] = None, notes: Optional[str] = None) -> None:
        if self.payment_status != PaymentRecordStatus.PENDING:
            raise InvalidTransitionError(self.payment_status.value, "fail payment")
        self.payment_status = PaymentRecordStatus.FAILED
        self.verified_at = now
        self.verified_by = verified_by
        if notes:
            self.notes = notes

    def cancel(self) -> None:
        if self.payment_status not in (PaymentRecordStatus.PENDING, PaymentRecordStatus.VERIFIED):
            raise InvalidTransitionError(self.payment_status.value, "cancel payment")
        self.payment_status = PaymentRecordStatus.CANCELLED

    def counts_toward_balance(self) -> bool:
        return (
            self.payment_status == PaymentRecordStatus.VERIFIED
            and self.payment_type != PaymentType.REFUND
        )


def project_payment_status(
    current: PaymentStatus,
    total_amount: Decimal,
    dp_amount: Decimal,
    payments: List[Payment],
) -> PaymentStatus:
    """Booking payment status as a pure function of its verified payments

    Order independent, so replaying the same verified set always yields the
    same status. Overdue is never stored; see Booking.current_state.
    """
    if current == PaymentStatus.REFUNDED:
        return PaymentStatus.REFUNDED
    paid = sum((p.amount for p in payments if p.counts_toward_balance()), Decimal("0"))
    if paid >= total_amount:
        return PaymentStatus.FULLY_PAID
    if paid >= dp_amount:
        return PaymentStatus.DP_RECEIVED
    return PaymentStatus.DP_PENDING


_PENDING_REVIEW = {BookingStatus.SUBMITTED, BookingStatus.STAFF_REVIEW}
_VERIFIED_FLOW = {
    BookingStatus.APPROVED,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.CHECKED_OUT,
    BookingStatus.COMPLETED,
}
_IN_HOUSE = {BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT, BookingStatus.COMPLETED}
_PAID_DP = {PaymentStatus.DP_RECEIVED, PaymentStatus.FULLY_PAID}
PRE_CHECK_IN = _PENDING_REVIEW | {BookingStatus.APPROVED, BookingStatus.CONFIRMED}
TERMINAL = {BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}


class BookingState(BaseModel):
    """Booking, payment and verification status as one tagged value

    Illegal combinations cannot be constructed.
    """
    model_config = ConfigDict(frozen=True)

    booking_status: BookingStatus = BookingStatus.SUBMITTED
    payment_status: PaymentStatus = PaymentStatus.DP_PENDING
    verification_status: VerificationStatus = VerificationStatus.PENDING

    @model_validator(mode="after")
    def check_combination(self) -> "BookingState":
        booking, payment, verification = (
            self.booking_status, self.payment_status, self.verification_status
        )
        if (booking == BookingStatus.REJECTED) != (verification == VerificationStatus.REJECTED):
            raise ValueError("rejected booking and rejected verification go together")
        if booking in _PENDING_REVIEW and verification != VerificationStatus.PENDING:
            raise ValueError(f"{booking.value} booking must have pending verification")
        if booking in _VERIFIED_FLOW and verification != VerificationStatus.APPROVED:
            raise ValueError(f"{booking.value} booking requires approved verification")
        if booking in _IN_HOUSE and payment not in _PAID_DP:
            raise ValueError(f"{booking.value} booking requires the down payment")
        if payment == PaymentStatus.REFUNDED and booking != BookingStatus.CANCELLED:
            raise ValueError("only cancelled bookings can be refunded")
        return self

    def __str__(self) -> str:
        return (
            f"{self.booking_status.value}/{self.payment_status.value}"
            f"/{self.verification_status.value}"
        )


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    booking_number: str

    # References to other contexts
    property_id: UUID
    guest_id: Optional[UUID] = None
    guest_name: str = ""
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    special_requests: Optional[str] = None

    # Stay
    date_range: DateRange
    nights: int
    guests: GuestCount

    # Rate breakdown
    base_amount: Decimal
    weekend_premium_amount: Decimal
    seasonal_premium_amount: Decimal
    extra_beds: int = 0
    extra_bed_amount: Decimal
    cleaning_fee: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    seasonal_rates_applied: List[AppliedSeasonalRate] = []

    # Deposit
    dp_percentage: Decimal
    dp_amount: Decimal
    remaining_amount: Decimal
    dp_deadline: datetime

    # Status
    state: BookingState = Field(default_factory=BookingState)
    payments: List[Payment] = []
    is_cleaned: Optional[bool] = None
    cancellation_reason: Optional[str] = None
    verification_notes: Optional[str] = None

    # Metadata
    created_at: datetime
    modified_at: datetime
    created_by: Optional[UUID] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def money_is_conserved(self) -> "Booking":
        components = (
            self.base_amount + self.weekend_premium_amount + self.seasonal_premium_amount
            + self.extra_bed_amount + self.cleaning_fee + self.tax_amount
        )
        if components != self.total_amount:
            raise ValueError("total_amount must equal the sum of its components")
        if self.dp_amount + self.remaining_amount != self.total_amount:
            raise ValueError("dp_amount + remaining_amount must equal total_amount")
        return self

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        booking_number: str,
        property_id: UUID,
        guests: GuestCount,
        breakdown: RateBreakdown,
        dp_percentage: Decimal,
        now: datetime,
        created_by: Optional[UUID] = None,
        guest_id: Optional[UUID] = None,
        guest_name: str = "",
        guest_email: Optional[str] = None,
        guest_phone: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> "Booking":
        """Create a submitted booking from a validated quote"""
        dp_percentage = Decimal(dp_percentage)
        if dp_percentage <= 0 or dp_percentage > 100:
            raise ValidationError("dp_percentage must be greater than 0 and at most 100")

        dp_amount = round_money(breakdown.total_amount * dp_percentage / Decimal(100))

        return Booking(
            booking_number=booking_number,
            property_id=property_id,
            guest_id=guest_id,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
            special_requests=special_requests,
            date_range=DateRange(check_in=breakdown.check_in, check_out=breakdown.check_out),
            nights=breakdown.nights,
            guests=guests,
            base_amount=breakdown.base_amount,
            weekend_premium_amount=breakdown.weekend_premium_amount,
            seasonal_premium_amount=breakdown.seasonal_premium_amount,
            extra_beds=breakdown.extra_beds,
            extra_bed_amount=breakdown.extra_bed_amount,
            cleaning_fee=breakdown.cleaning_fee,
            tax_amount=breakdown.tax_amount,
            total_amount=breakdown.total_amount,
            seasonal_rates_applied=list(breakdown.seasonal_rates_applied),
            dp_percentage=dp_percentage,
            dp_amount=dp_amount,
            remaining_amount=breakdown.total_amount - dp_amount,
            dp_deadline=now + DP_GRACE_PERIOD,
            state=BookingState(),
            created_at=now,
            modified_at=now,
            created_by=created_by,
        )

    # ==================== STATUS ACCESSORS ====================
    @property
    def booking_status(self) -> BookingStatus:
        return self.state.booking_status

    @property
    def payment_status(self) -> PaymentStatus:
        return self.state.payment_status

    @property
    def verification_status(self) -> VerificationStatus:
        return self.state.verification_status

    def blocks_dates(self) -> bool:
        """Whether this booking holds its dates on the calendar"""
        return self.booking_status not in TERMINAL

    def current_state(self, now: datetime) -> BookingState:
        """Stored state with the overdue deposit evaluated lazily"""
        if self.is_dp_overdue(now):
            return BookingState(
                booking_status=self.booking_status,
                payment_status=PaymentStatus.OVERDUE,
                verification_status=self.verification_status,
            )
        return self.state

    def is_dp_overdue(self, now: datetime) -> bool:
        return (
            self.payment_status == PaymentStatus.DP_PENDING
            and self.booking_status not in TERMINAL
            and now > self.dp_deadline
        )

    # ==================== STATE TRANSITION METHODS ====================
    def start_review(self, now: datetime) -> None:
        """Staff picks the booking up for review"""
        self._require(BookingAction.REVIEW, {BookingStatus.SUBMITTED})
        self._apply(BookingAction.REVIEW, now, booking_status=BookingStatus.STAFF_REVIEW)

    def verify(
        self,
        decision: VerificationDecision,
        now: datetime,
        verified_by: Optional[UUID] = None,
        auto_confirm: bool = False,
        notes: Optional[str] = None,
    ) -> None:
        """Approve or reject; verification is set exactly once"""
        self._require(BookingAction.VERIFY, _PENDING_REVIEW)

        if decision == VerificationDecision.APPROVE:
            booking_status = BookingStatus.CONFIRMED if auto_confirm else BookingStatus.APPROVED
            self._apply(
                BookingAction.VERIFY, now,
                booking_status=booking_status,
                verification_status=VerificationStatus.APPROVED,
            )
            if auto_confirm:
                self.confirmed_at = now
        else:
            self._apply(
                BookingAction.VERIFY, now,
                booking_status=BookingStatus.REJECTED,
                verification_status=VerificationStatus.REJECTED,
            )
        self.verified_by = verified_by
        self.verified_at = now
        self.verification_notes = notes

    def confirm(self, now: datetime) -> None:
        """Approved booking becomes confirmed"""
        self._require(BookingAction.CONFIRM, {BookingStatus.APPROVED})
        self._apply(BookingAction.CONFIRM, now, booking_status=BookingStatus.CONFIRMED)
        self.confirmed_at = now

    def record_payment(self, payment: Payment, now: datetime) -> PaymentStatus:
        """Add or replace a payment and re-project the payment status"""
        if payment.booking_id != self.booking_id:
            raise ValidationError("Payment belongs to a different booking")
        self._require(BookingAction.RECORD_PAYMENT, set(BookingStatus) - TERMINAL)

        payments = [p for p in self.payments if p.payment_id != payment.payment_id]
        payments.append(payment)
        status = project_payment_status(
            self.payment_status, self.total_amount, self.dp_amount, payments
        )
        self._apply(BookingAction.RECORD_PAYMENT, now, payment_status=status)
        self.payments = payments
        return status

    def check_in(self, now: datetime) -> None:
        """Mark guest as checked in"""
        self._require(BookingAction.CHECK_IN, {BookingStatus.CONFIRMED})
        self._apply(BookingAction.CHECK_IN, now, booking_status=BookingStatus.CHECKED_IN)
        self.checked_in_at = now

    def check_out(self, now: datetime) -> None:
        """Process guest check-out; the property now needs cleaning"""
        self._require(BookingAction.CHECK_OUT, {BookingStatus.CHECKED_IN})
        self._apply(BookingAction.CHECK_OUT, now, booking_status=BookingStatus.CHECKED_OUT)
        self.checked_out_at = now
        self.is_cleaned = False

    def complete(self, now: datetime) -> None:
        self._require(BookingAction.COMPLETE, {BookingStatus.CHECKED_OUT})
        self._apply(BookingAction.COMPLETE, now, booking_status=BookingStatus.COMPLETED)

    def cancel(self, reason: str, now: datetime, cancelled_by: Optional[UUID] = None) -> None:
        """Cancel before check-in; verified money is scheduled for refund"""
        self._require(BookingAction.CANCEL, PRE_CHECK_IN)
        changes = {"booking_status": BookingStatus.CANCELLED}
        if self.has_verified_payment():
            changes["payment_status"] = PaymentStatus.REFUNDED
        self._apply(BookingAction.CANCEL, now, **changes)
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.cancelled_by = cancelled_by

    def mark_no_show(self, now: datetime) -> None:
        """Mark guest as no-show"""
        self._require(BookingAction.NO_SHOW, PRE_CHECK_IN)
        self._apply(BookingAction.NO_SHOW, now, booking_status=BookingStatus.NO_SHOW)

    # ==================== QUERY METHODS ====================
    def has_verified_payment(self) -> bool:
        return any(p.payment_status == PaymentRecordStatus.VERIFIED for p in self.payments)

    def find_payment(self, payment_id: UUID) -> Optional[Payment]:
        return next((p for p in self.payments if p.payment_id == payment_id), None)

    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments if p.counts_toward_balance()), Decimal("0"))

    def outstanding_amount(self) -> Decimal:
        return max(Decimal("0"), self.total_amount - self.total_paid())

    def payment_progress(self) -> PaymentProgress:
        paid = self.total_paid()
        dp_pct = paid / self.dp_amount * 100 if self.dp_amount > 0 else Decimal("0")
        total_pct = paid / self.total_amount * 100 if self.total_amount > 0 else Decimal("0")
        return PaymentProgress(
            total_paid=paid,
            dp_percentage=min(Decimal(100), round_money(dp_pct)),
            total_percentage=min(Decimal(100), round_money(total_pct)),
            is_dp_complete=paid >= self.dp_amount,
            is_fully_paid=paid >= self.total_amount,
        )

    def can_be_deleted(self) -> bool:
        """Only bookings with no money received may be hard-deleted"""
        return self.payment_status == PaymentStatus.DP_PENDING and not self.has_verified_payment()

    # ==================== PRIVATE METHODS ====================
    def _require(self, action: BookingAction, allowed: set) -> None:
        if self.booking_status not in allowed:
            raise InvalidTransitionError(self.state, action.value)

    def _apply(self, action: BookingAction, now: datetime, **changes) -> None:
        """Swap in the next state, or raise without touching anything"""
        try:
            next_state = BookingState(**{**self.state.model_dump(), **changes})
        except PydanticValidationError as e:
            detail = "; ".join(err["msg"] for err in e.errors())
            raise InvalidTransitionError(self.state, action.value, detail) from e

        self.state = next_state
        self.modified_at = now
        self.version += 1
