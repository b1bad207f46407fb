"""Application Services - Business use cases"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from domain import minimum_stay, pricing
from domain.auth import Actor
from domain.availability import AvailabilityIndex, AvailabilityResult, CalendarDay
from domain.entities import Booking, BookingState, Payment, PropertyRateProfile, SeasonalRate
from domain.enums import BookingAction, PaymentType, VerificationDecision
from domain.exceptions import (
    AvailabilityConflictError, BookingEngineError, ConcurrencyConflictError, ForbiddenError,
    InvalidRangeError, MinimumStayError, NotFoundError, ValidationError,
)
from domain.repositories import BookingRepository, PropertyRepository, UnitOfWork
from domain.seasonal_rates import SeasonalRateTable
from domain.value_objects import (
    EffectiveRate, GuestCount, MinimumStay, RateBreakdown, is_weekend, round_money,
)
from infrastructure.config import settings

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _guest_count(male: int, female: int, children: int) -> GuestCount:
    try:
        return GuestCount(male=male, female=female, children=children)
    except PydanticValidationError as e:
        raise ValidationError("Guest counts must not be negative") from e


def _require_range(start: date, end: date) -> None:
    if end <= start:
        raise InvalidRangeError("Check-out must be after check-in")


class AvailabilityService:
    """Calendar and overlap queries for a property"""

    def __init__(self, booking_repo: BookingRepository, clock):
        self.booking_repo = booking_repo
        self.clock = clock

    async def _index(self, property_id: UUID, start: date, end: date) -> AvailabilityIndex:
        return AvailabilityIndex(await self.booking_repo.find_active_by_property(property_id, start, end))

    async def check_availability(self, property_id: UUID, start: date, end: date) -> AvailabilityResult:
        _require_range(start, end)
        index = await self._index(property_id, start, end)
        return index.check(start, end)

    async def booked_dates(self, property_id: UUID, start: date, end: date) -> List[date]:
        _require_range(start, end)
        index = await self._index(property_id, start, end)
        return sorted(index.booked_dates(start, end))

    async def next_check_in(self, property_id: UUID, after: date) -> Optional[Booking]:
        """Earliest arrival on or after a date, for cleaning priority"""
        index = await self._index(property_id, after, date.max)
        return index.next_check_in(after)

    async def calendar(self, property_id: UUID, year: int, month: int) -> List[CalendarDay]:
        """Per-day booked, weekend and past flags for one month"""
        try:
            start = date(year, month, 1)
            end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        except ValueError as e:
            raise ValidationError(f"Invalid calendar month: {e}") from e
        index = await self._index(property_id, start, end)
        return index.calendar(start, end, self.clock.today())

    async def next_available(
        self,
        property_id: UUID,
        nights: int,
        start: Optional[date] = None,
        horizon_days: Optional[int] = None,
    ) -> Optional[Tuple[date, date]]:
        """First free run of `nights` nights, searching from start (default today)"""
        if nights < 1:
            raise ValidationError("nights must be at least 1")
        start = max(start or self.clock.today(), self.clock.today())
        horizon_days = horizon_days if horizon_days is not None else settings.availability_horizon_days
        window_end = start + timedelta(days=horizon_days + nights)
        index = await self._index(property_id, start, window_end)
        return index.next_available(nights, start, horizon_days)


class QuoteService:
    """Availability, minimum stay and price of a requested stay, combined"""

    def __init__(
        self,
        property_repo: PropertyRepository,
        booking_repo: BookingRepository,
        clock,
    ):
        self.property_repo = property_repo
        self.booking_repo = booking_repo
        self.clock = clock

    async def quote(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        guest_male: int = 0,
        guest_female: int = 0,
        guest_children: int = 0,
    ) -> RateBreakdown:
        breakdown, _ = await self.evaluate(
            property_id, check_in, check_out, guest_male, guest_female, guest_children
        )
        return breakdown

    async def evaluate(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        guest_male: int = 0,
        guest_female: int = 0,
        guest_children: int = 0,
    ) -> Tuple[RateBreakdown, MinimumStay]:
        """Validate a request against current bookings and price it

        Raises ValidationError, AvailabilityConflictError or MinimumStayError.
        """
        guests = _guest_count(guest_male, guest_female, guest_children)
        self._validate_dates(check_in, check_out)

        profile = await self.property_repo.find_profile(property_id)
        if profile is None:
            raise NotFoundError(f"Property {property_id} not found")
        self._validate_guests(profile, guests)

        table = SeasonalRateTable(await self.property_repo.find_seasonal_rates(property_id))
        # One day either side so the sandwich rule sees the neighbours
        index = AvailabilityIndex(await self.booking_repo.find_active_by_property(
            property_id, check_in - ONE_DAY, check_out + ONE_DAY
        ))

        conflicts = index.overlaps(check_in, check_out)
        if conflicts:
            logger.warning(
                "Availability conflict on property %s for %s..%s: %s",
                property_id, check_in, check_out, [b.booking_number for b in conflicts],
            )
            raise AvailabilityConflictError(
                f"Property is not available from {check_in} to {check_out}", conflicts
            )

        try:
            minimum = minimum_stay.validate(profile, table, check_in, check_out, index)
        except MinimumStayError as e:
            logger.warning("Minimum stay rejected on property %s: %s", property_id, e)
            raise

        breakdown = pricing.calculate(
            profile, table, check_in, check_out,
            guest_male=guests.male, guest_female=guests.female, guest_children=guests.children,
        )
        return breakdown, minimum

    def _validate_dates(self, check_in: date, check_out: date) -> None:
        _require_range(check_in, check_out)
        if check_in < self.clock.today():
            raise ValidationError("Check-in date cannot be in the past")
        if (check_out - check_in).days > settings.max_stay_nights:
            raise ValidationError(f"Stay cannot exceed {settings.max_stay_nights} nights")

    @staticmethod
    def _validate_guests(profile: PropertyRateProfile, guests: GuestCount) -> None:
        if guests.total < 1:
            raise ValidationError("At least one guest is required")
        if guests.total > profile.capacity_max:
            raise ValidationError(
                f"Guest count {guests.total} exceeds maximum capacity {profile.capacity_max}"
            )


class CleaningSignal(BaseModel):
    property_id: UUID
    needs_cleaning: bool
    next_check_in: Optional[Booking] = None


class BookingService:
    """Booking lifecycle: creation, transitions, payments and deletion"""

    def __init__(
        self,
        booking_repo: BookingRepository,
        property_repo: PropertyRepository,
        uow: UnitOfWork,
        clock,
        quote_service: Optional[QuoteService] = None,
    ):
        self.booking_repo = booking_repo
        self.property_repo = property_repo
        self.uow = uow
        self.clock = clock
        self.quote_service = quote_service or QuoteService(property_repo, booking_repo, clock)

    # ==================== CREATE ====================
    async def create_booking(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        actor: Actor,
        guest_male: int = 0,
        guest_female: int = 0,
        guest_children: int = 0,
        dp_percentage: Optional[Decimal] = None,
        guest_id: Optional[UUID] = None,
        guest_name: str = "",
        guest_email: Optional[str] = None,
        guest_phone: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> Booking:
        """Create a submitted booking

        Availability and minimum stay are checked once up front and again
        inside the property's transaction, right before the insert.
        """
        self._authorize(actor, BookingAction.CREATE)

        dp_percentage = Decimal(
            dp_percentage if dp_percentage is not None else settings.default_dp_percentage
        )
        if dp_percentage <= 0 or dp_percentage > 100:
            raise ValidationError("dp_percentage must be greater than 0 and at most 100")

        guests = _guest_count(guest_male, guest_female, guest_children)
        args = (property_id, check_in, check_out, guests.male, guests.female, guests.children)
        await self.quote_service.evaluate(*args)

        try:
            async with self.uow.transaction(property_id):
                breakdown, _ = await self.quote_service.evaluate(*args)
                now = self.clock.now()
                booking_number = await self.booking_repo.next_booking_number(now.date())
                booking = Booking.create(
                    booking_number=booking_number,
                    property_id=property_id,
                    guests=guests,
                    breakdown=breakdown,
                    dp_percentage=dp_percentage,
                    now=now,
                    created_by=actor.actor_id,
                    guest_id=guest_id,
                    guest_name=guest_name,
                    guest_email=guest_email,
                    guest_phone=guest_phone,
                    special_requests=special_requests,
                )
                booking = await self.booking_repo.add(booking)
        except ConcurrencyConflictError as e:
            logger.warning("Create on property %s lost a race: %s", property_id, e)
            raise

        logger.info(
            "Booking %s created on property %s for %s..%s total=%s by %s",
            booking.booking_number, property_id, check_in, check_out,
            booking.total_amount, actor.role.value,
        )
        return booking

    # ==================== TRANSITIONS ====================
    async def transition_booking(
        self,
        booking_id: UUID,
        action: BookingAction,
        actor: Actor,
        decision: Optional[VerificationDecision] = None,
        auto_confirm: bool = False,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        payment: Optional[Payment] = None,
    ) -> Booking:
        """Apply one lifecycle action atomically

        The booking is mutated as a detached copy; on any error nothing is
        written back.
        """
        self._authorize(actor, action)
        now = self.clock.now()

        async with self.uow.transaction(booking_id):
            booking = await self._load(booking_id)
            version = booking.version
            before = booking.state

            try:
                self._dispatch(booking, action, actor, now, decision, auto_confirm, reason, notes, payment)
            except BookingEngineError as e:
                logger.warning("%s on booking %s refused: %s", action.value, booking.booking_number, e)
                raise

            if action == BookingAction.CHECK_OUT:
                await self.property_repo.mark_needs_cleaning(booking.property_id)
            booking = await self.booking_repo.update(booking, version)

        self._log_transition(booking, action, before, actor)
        return booking

    def _dispatch(
        self,
        booking: Booking,
        action: BookingAction,
        actor: Actor,
        now: datetime,
        decision: Optional[VerificationDecision],
        auto_confirm: bool,
        reason: Optional[str],
        notes: Optional[str],
        payment: Optional[Payment],
    ) -> None:
        if action == BookingAction.REVIEW:
            booking.start_review(now)
        elif action == BookingAction.VERIFY:
            if decision is None:
                raise ValidationError("verify requires a decision (approve or reject)")
            booking.verify(decision, now, verified_by=actor.actor_id, auto_confirm=auto_confirm, notes=notes)
        elif action == BookingAction.CONFIRM:
            booking.confirm(now)
        elif action == BookingAction.RECORD_PAYMENT:
            if payment is None:
                raise ValidationError("record_payment requires a payment")
            booking.record_payment(payment, now)
        elif action == BookingAction.CHECK_IN:
            booking.check_in(now)
        elif action == BookingAction.CHECK_OUT:
            booking.check_out(now)
        elif action == BookingAction.COMPLETE:
            booking.complete(now)
        elif action == BookingAction.CANCEL:
            booking.cancel(reason or "", now, cancelled_by=actor.actor_id)
        elif action == BookingAction.NO_SHOW:
            booking.mark_no_show(now)
        else:
            raise ValidationError(f"{action.value} is not a lifecycle transition")

    # ==================== PAYMENTS ====================
    async def submit_payment(
        self,
        booking_id: UUID,
        amount: Decimal,
        actor: Actor,
        payment_type: PaymentType = PaymentType.DP,
        notes: Optional[str] = None,
    ) -> Payment:
        """Record a pending payment awaiting verification"""
        self._authorize(actor, BookingAction.SUBMIT_PAYMENT)
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if amount != round_money(amount):
            raise ValidationError("Payment amount must be in whole cents")
        if payment_type == PaymentType.REFUND:
            raise ValidationError("Refunds are issued by finance, not submitted")

        now = self.clock.now()
        async with self.uow.transaction(booking_id):
            booking = await self._load(booking_id)
            outstanding = booking.outstanding_amount()
            if amount > outstanding:
                raise ValidationError(
                    f"Payment {amount} exceeds outstanding balance {outstanding}"
                )
            version = booking.version
            payment = Payment(
                booking_id=booking.booking_id,
                amount=amount,
                payment_type=payment_type,
                notes=notes,
                created_at=now,
            )
            booking.record_payment(payment, now)
            await self.booking_repo.update(booking, version)

        logger.info(
            "Payment %s of %s submitted for booking %s", payment.payment_id, amount, booking.booking_number
        )
        return payment

    async def verify_payment(
        self,
        booking_id: UUID,
        payment_id: UUID,
        approve: bool,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> Booking:
        """Verify or fail a pending payment and re-project the booking"""
        self._authorize(actor, BookingAction.RECORD_PAYMENT)

        def apply(payment: Payment, now: datetime) -> None:
            if approve:
                payment.verify(now, verified_by=actor.actor_id)
            else:
                payment.fail(now, verified_by=actor.actor_id, notes=notes)

        return await self._change_payment(booking_id, payment_id, actor, apply)

    async def cancel_payment(self, booking_id: UUID, payment_id: UUID, actor: Actor) -> Booking:
        """Cancel a payment; a verified one stops counting toward the balance"""
        self._authorize(actor, BookingAction.RECORD_PAYMENT)
        return await self._change_payment(
            booking_id, payment_id, actor, lambda payment, now: payment.cancel()
        )

    async def _change_payment(self, booking_id: UUID, payment_id: UUID, actor: Actor, apply) -> Booking:
        now = self.clock.now()
        async with self.uow.transaction(booking_id):
            booking = await self._load(booking_id)
            payment = booking.find_payment(payment_id)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found on booking {booking.booking_number}")
            version = booking.version
            before = booking.state

            payment = payment.model_copy()
            apply(payment, now)
            booking.record_payment(payment, now)
            booking = await self.booking_repo.update(booking, version)

        logger.info(
            "Payment %s on booking %s is %s",
            payment_id, booking.booking_number, payment.payment_status.value,
        )
        if booking.payment_status != before.payment_status:
            self._log_transition(booking, BookingAction.RECORD_PAYMENT, before, actor)
        return booking

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID"""
        return await self.booking_repo.find_by_id(booking_id)

    async def get_booking_by_number(self, booking_number: str) -> Optional[Booking]:
        """Get booking by booking number"""
        return await self.booking_repo.find_by_booking_number(booking_number)

    async def get_property_bookings(self, property_id: UUID) -> List[Booking]:
        bookings = await self.booking_repo.find_by_property(property_id)
        return sorted(bookings, key=lambda b: (b.date_range.check_in, b.booking_number))

    def current_state(self, booking: Booking) -> BookingState:
        """State with the deposit deadline evaluated against the clock"""
        return booking.current_state(self.clock.now())

    async def cleaning_signal(self, property_id: UUID) -> CleaningSignal:
        """Whether the property awaits cleaning, and who arrives next"""
        today = self.clock.today()
        index = AvailabilityIndex(
            await self.booking_repo.find_active_by_property(property_id, today, date.max)
        )
        return CleaningSignal(
            property_id=property_id,
            needs_cleaning=await self.property_repo.needs_cleaning(property_id),
            next_check_in=index.next_check_in(today),
        )

    async def mark_property_cleaned(self, property_id: UUID, actor: Actor) -> CleaningSignal:
        """Clear the flag set at check-out once housekeeping is done"""
        if not actor.can_mark_cleaned():
            logger.warning("Forbidden: role %s may not mark property cleaned", actor.role.value)
            raise ForbiddenError(actor.role, "mark cleaned")
        async with self.uow.transaction(property_id):
            await self.property_repo.mark_cleaned(property_id)
        logger.info("Property %s marked cleaned by %s", property_id, actor.role.value)
        return await self.cleaning_signal(property_id)

    # ==================== DELETE ====================
    async def delete_booking(self, booking_id: UUID, actor: Actor) -> bool:
        """Hard-delete a booking that has received no money"""
        self._authorize(actor, BookingAction.DELETE)
        async with self.uow.transaction(booking_id):
            booking = await self._load(booking_id)
            if not booking.can_be_deleted():
                logger.warning(
                    "Refused to delete booking %s with payment status %s",
                    booking.booking_number, booking.payment_status.value,
                )
                raise ForbiddenError(
                    actor.role, BookingAction.DELETE.value,
                    f"booking {booking.booking_number} has payment status {booking.payment_status.value}",
                )
            deleted = await self.booking_repo.delete(booking_id)

        logger.info("Booking %s deleted by %s", booking.booking_number, actor.role.value)
        return deleted

    # ==================== PRIVATE ====================
    async def _load(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repo.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _authorize(actor: Actor, action: BookingAction) -> None:
        try:
            actor.require(action)
        except ForbiddenError as e:
            logger.warning("Forbidden: %s", e)
            raise

    @staticmethod
    def _log_transition(booking: Booking, action: BookingAction, before: BookingState, actor: Actor) -> None:
        logger.info(
            "Booking %s %s: %s -> %s by %s",
            booking.booking_number, action.value, before, booking.state, actor.role.value,
        )


class RateManagementService:
    """Property rate profiles and seasonal rates"""

    def __init__(self, property_repo: PropertyRepository, uow: UnitOfWork):
        self.property_repo = property_repo
        self.uow = uow

    async def save_profile(self, profile: PropertyRateProfile, actor: Actor) -> PropertyRateProfile:
        self._authorize(actor)
        async with self.uow.transaction(profile.property_id):
            saved = await self.property_repo.save_profile(profile)
        logger.info("Rate profile saved for property %s by %s", profile.property_id, actor.role.value)
        return saved

    async def get_profile(self, property_id: UUID) -> Optional[PropertyRateProfile]:
        return await self.property_repo.find_profile(property_id)

    async def add_seasonal_rate(self, rate: SeasonalRate, actor: Actor) -> SeasonalRate:
        """Add a seasonal rate; overlapping active rates must differ in priority"""
        self._authorize(actor)
        async with self.uow.transaction(rate.property_id):
            if await self.property_repo.find_profile(rate.property_id) is None:
                raise NotFoundError(f"Property {rate.property_id} not found")
            await self._check_conflicts(rate)
            saved = await self.property_repo.save_seasonal_rate(rate)
        logger.info(
            "Seasonal rate %s (%s..%s, priority %s) added to property %s",
            rate.name, rate.start_date, rate.end_date, rate.priority, rate.property_id,
        )
        return saved

    async def update_seasonal_rate(self, seasonal_rate_id: UUID, actor: Actor, **changes) -> SeasonalRate:
        self._authorize(actor)
        existing = await self._load_seasonal_rate(seasonal_rate_id)
        changes.pop("seasonal_rate_id", None)
        changes.pop("property_id", None)

        async with self.uow.transaction(existing.property_id):
            # Merge onto the copy read under the lock
            current = await self._load_seasonal_rate(seasonal_rate_id)
            try:
                updated = SeasonalRate(**{**current.model_dump(), **changes})
            except PydanticValidationError as e:
                raise ValidationError("; ".join(err["msg"] for err in e.errors())) from e
            await self._check_conflicts(updated)
            saved = await self.property_repo.save_seasonal_rate(updated)
        logger.info("Seasonal rate %s updated by %s", seasonal_rate_id, actor.role.value)
        return saved

    async def deactivate_seasonal_rate(self, seasonal_rate_id: UUID, actor: Actor) -> SeasonalRate:
        return await self.update_seasonal_rate(seasonal_rate_id, actor, is_active=False)

    async def list_seasonal_rates(self, property_id: UUID, include_inactive: bool = False) -> List[SeasonalRate]:
        rates = await self.property_repo.find_seasonal_rates(property_id)
        if not include_inactive:
            rates = [r for r in rates if r.is_active]
        return sorted(rates, key=lambda r: (r.start_date, -r.priority))

    async def effective_rates(self, property_id: UUID, start: date, end: date) -> List[EffectiveRate]:
        """Rate calendar over [start, end): the governing rate and nightly price per day"""
        _require_range(start, end)
        profile = await self.property_repo.find_profile(property_id)
        if profile is None:
            raise NotFoundError(f"Property {property_id} not found")

        table = SeasonalRateTable(await self.property_repo.find_seasonal_rates(property_id))
        nights = [start + timedelta(days=i) for i in range((end - start).days)]
        calendar = []
        for night, seasonal in table.effective_rates(nights).items():
            night_rate = profile.base_rate + profile.weekend_premium(night)
            calendar.append(EffectiveRate(
                day=night,
                is_weekend=is_weekend(night),
                seasonal_rate_id=seasonal.seasonal_rate_id if seasonal else None,
                seasonal_rate_name=seasonal.name if seasonal else None,
                quoted_rate=seasonal.calculate_rate(night_rate) if seasonal else night_rate,
            ))
        return calendar

    async def _check_conflicts(self, rate: SeasonalRate) -> None:
        for other in await self.property_repo.find_seasonal_rates(rate.property_id):
            if rate.conflicts_with(other):
                raise ValidationError(
                    f"Seasonal rate '{rate.name}' overlaps '{other.name}' at the same "
                    f"priority {rate.priority}; give one of them a different priority"
                )

    async def _load_seasonal_rate(self, seasonal_rate_id: UUID) -> SeasonalRate:
        rate = await self.property_repo.find_seasonal_rate(seasonal_rate_id)
        if rate is None:
            raise NotFoundError(f"Seasonal rate {seasonal_rate_id} not found")
        return rate

    @staticmethod
    def _authorize(actor: Actor) -> None:
        if not actor.can_manage_rates():
            logger.warning("Forbidden: role %s may not manage rates", actor.role.value)
            raise ForbiddenError(actor.role, "manage rates")
