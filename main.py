import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Depends, Response

from api.schemas import (
    # Property & rates
    PropertyRateProfileRequest, PropertyRateProfileResponse, SeasonalRateRequest,
    UpdateSeasonalRateRequest, SeasonalRateResponse, EffectiveRateResponse,
    # Availability
    AvailabilityResponse, BookingSummaryResponse, CalendarDayResponse, NextAvailableResponse,
    # Quote
    QuoteRequest, RateBreakdownResponse,
    # Booking
    CreateBookingRequest, TransitionRequest, SubmitPaymentRequest, VerifyPaymentRequest,
    BookingResponse, PaymentResponse, PaymentProgressResponse, CleaningSignalResponse,
)
from api.dependencies import (
    get_availability_service, get_booking_service, get_current_actor, get_quote_service,
    get_rate_management_service,
)
from application.services import (
    AvailabilityService, BookingService, QuoteService, RateManagementService,
)
from domain.auth import Actor
from domain.entities import Booking, BookingState, PropertyRateProfile, SeasonalRate
from domain.enums import (
    ActorRole, BookingAction, BookingStatus, PaymentStatus, RateType, VerificationStatus,
)
from domain.exceptions import (
    AvailabilityConflictError, BookingEngineError, ConcurrencyConflictError, ForbiddenError,
    InvalidTransitionError, MinimumStayError, NotFoundError, ValidationError,
)
from infrastructure.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)

app = FastAPI(
    title="Booking Rate & Availability API",
    description="Availability, pricing and booking lifecycle for short-term rental properties",
    version="1.0.0"
)

# Most specific class first
ERROR_STATUS = [
    (AvailabilityConflictError, 409),
    (MinimumStayError, 422),
    (InvalidTransitionError, 409),
    (ConcurrencyConflictError, 409),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ValidationError, 400),
]


def _http_error(error: BookingEngineError) -> HTTPException:
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(error, cls)), 400)
    return HTTPException(status_code=status_code, detail=error.to_dict())

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.value for item in BookingStatus],
        "description": "Booking lifecycle: submitted, staff_review, approved, confirmed, checked_in, checked_out, completed; terminal: rejected, cancelled, no_show"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [item.value for item in PaymentStatus],
        "description": "Payment projection: dp_pending, dp_received, fully_paid; overdue is derived from dp_deadline; refunded is terminal"
    }

@app.get("/api/enums/verification-status", tags=["Enum Reference"])
async def get_verification_statuses():
    """Get all VerificationStatus enum values"""
    return {"values": [item.value for item in VerificationStatus]}

@app.get("/api/enums/rate-type", tags=["Enum Reference"])
async def get_rate_types():
    """Get all RateType enum values"""
    return {
        "values": [item.value for item in RateType],
        "description": "percentage adds rate_value% of the night rate, fixed replaces the night rate, multiplier scales it"
    }

@app.get("/api/enums/booking-action", tags=["Enum Reference"])
async def get_booking_actions():
    """Get all BookingAction enum values"""
    return {"values": [item.value for item in BookingAction]}

@app.get("/api/enums/actor-role", tags=["Enum Reference"])
async def get_actor_roles():
    """Get all ActorRole enum values"""
    return {"values": [item.value for item in ActorRole]}

# ============================================================================
# PROPERTY RATE ENDPOINTS
# ============================================================================

@app.put("/api/properties/{property_id}/rate-profile", response_model=PropertyRateProfileResponse, tags=["Rates"])
async def save_rate_profile(
    property_id: UUID,
    request: PropertyRateProfileRequest,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    """Create or replace a property's rate profile"""
    try:
        profile = PropertyRateProfile(property_id=property_id, **request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        profile = await service.save_profile(profile, actor)
        return PropertyRateProfileResponse(**profile.model_dump())
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/properties/{property_id}/rate-profile", response_model=PropertyRateProfileResponse, tags=["Rates"])
async def get_rate_profile(
    property_id: UUID,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    profile = await service.get_profile(property_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Property not found")
    return PropertyRateProfileResponse(**profile.model_dump())

@app.post("/api/properties/{property_id}/seasonal-rates", response_model=SeasonalRateResponse, status_code=201, tags=["Rates"])
async def add_seasonal_rate(
    property_id: UUID,
    request: SeasonalRateRequest,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    """Add a seasonal rate to a property"""
    try:
        rate = SeasonalRate(property_id=property_id, **request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        rate = await service.add_seasonal_rate(rate, actor)
        return SeasonalRateResponse(**rate.model_dump())
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/properties/{property_id}/seasonal-rates", response_model=List[SeasonalRateResponse], tags=["Rates"])
async def list_seasonal_rates(
    property_id: UUID,
    include_inactive: bool = False,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    rates = await service.list_seasonal_rates(property_id, include_inactive)
    return [SeasonalRateResponse(**r.model_dump()) for r in rates]

@app.patch("/api/seasonal-rates/{seasonal_rate_id}", response_model=SeasonalRateResponse, tags=["Rates"])
async def update_seasonal_rate(
    seasonal_rate_id: UUID,
    request: UpdateSeasonalRateRequest,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    """Update a seasonal rate; omitted fields are left unchanged"""
    try:
        rate = await service.update_seasonal_rate(
            seasonal_rate_id, actor, **request.model_dump(exclude_none=True)
        )
        return SeasonalRateResponse(**rate.model_dump())
    except BookingEngineError as e:
        raise _http_error(e)

@app.delete("/api/seasonal-rates/{seasonal_rate_id}", response_model=SeasonalRateResponse, tags=["Rates"])
async def deactivate_seasonal_rate(
    seasonal_rate_id: UUID,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    """Deactivate a seasonal rate; it stays on record"""
    try:
        rate = await service.deactivate_seasonal_rate(seasonal_rate_id, actor)
        return SeasonalRateResponse(**rate.model_dump())
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/properties/{property_id}/effective-rates", response_model=List[EffectiveRateResponse], tags=["Rates"])
async def get_effective_rates(
    property_id: UUID,
    start: date,
    end: date,
    service: RateManagementService = Depends(get_rate_management_service),
    actor: Actor = Depends(get_current_actor)
):
    """Governing seasonal rate and nightly price for each day in [start, end)"""
    try:
        days = await service.effective_rates(property_id, start, end)
        return [EffectiveRateResponse(**d.model_dump()) for d in days]
    except BookingEngineError as e:
        raise _http_error(e)

# ============================================================================
# AVAILABILITY ENDPOINTS
# ============================================================================

@app.get("/api/properties/{property_id}/availability", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    property_id: UUID,
    check_in: date,
    check_out: date,
    service: AvailabilityService = Depends(get_availability_service),
    actor: Actor = Depends(get_current_actor)
):
    """Check whether [check_in, check_out) is free"""
    try:
        result = await service.check_availability(property_id, check_in, check_out)
        return AvailabilityResponse(
            property_id=property_id,
            check_in=check_in,
            check_out=check_out,
            available=result.available,
            booked_dates=result.booked_dates,
            conflicting_bookings=[_booking_summary(b) for b in result.conflicting_bookings],
        )
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/properties/{property_id}/calendar", response_model=List[CalendarDayResponse], tags=["Availability"])
async def get_calendar(
    property_id: UUID,
    year: int,
    month: int,
    service: AvailabilityService = Depends(get_availability_service),
    actor: Actor = Depends(get_current_actor)
):
    """Availability calendar for one month"""
    try:
        days = await service.calendar(property_id, year, month)
        return [CalendarDayResponse(**d.model_dump()) for d in days]
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/properties/{property_id}/next-available", response_model=NextAvailableResponse, tags=["Availability"])
async def get_next_available(
    property_id: UUID,
    nights: int,
    start: Optional[date] = None,
    horizon_days: Optional[int] = None,
    service: AvailabilityService = Depends(get_availability_service),
    actor: Actor = Depends(get_current_actor)
):
    """First free run of the requested length"""
    try:
        found = await service.next_available(property_id, nights, start, horizon_days)
    except BookingEngineError as e:
        raise _http_error(e)
    if found is None:
        return NextAvailableResponse(property_id=property_id, nights=nights, found=False)
    return NextAvailableResponse(
        property_id=property_id, nights=nights, found=True, check_in=found[0], check_out=found[1]
    )

@app.get("/api/properties/{property_id}/cleaning", response_model=CleaningSignalResponse, tags=["Availability"])
async def get_cleaning_signal(
    property_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Whether the property awaits cleaning and who arrives next"""
    signal = await service.cleaning_signal(property_id)
    return CleaningSignalResponse(
        property_id=property_id,
        needs_cleaning=signal.needs_cleaning,
        next_check_in=_booking_summary(signal.next_check_in) if signal.next_check_in else None,
    )

@app.post("/api/properties/{property_id}/cleaning", response_model=CleaningSignalResponse, tags=["Availability"])
async def mark_property_cleaned(
    property_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Clear the needs-cleaning flag after housekeeping"""
    try:
        signal = await service.mark_property_cleaned(property_id, actor)
    except BookingEngineError as e:
        raise _http_error(e)
    return CleaningSignalResponse(
        property_id=property_id,
        needs_cleaning=signal.needs_cleaning,
        next_check_in=_booking_summary(signal.next_check_in) if signal.next_check_in else None,
    )

# ============================================================================
# QUOTE ENDPOINTS
# ============================================================================

@app.post("/api/quotes", response_model=RateBreakdownResponse, tags=["Quotes"])
async def create_quote(
    request: QuoteRequest,
    service: QuoteService = Depends(get_quote_service),
    actor: Actor = Depends(get_current_actor)
):
    """Price a stay after checking availability and minimum stay"""
    try:
        breakdown = await service.quote(
            property_id=request.property_id,
            check_in=request.check_in,
            check_out=request.check_out,
            guest_male=request.guest_male,
            guest_female=request.guest_female,
            guest_children=request.guest_children,
        )
        return RateBreakdownResponse(**breakdown.model_dump(), currency=settings.currency)
    except BookingEngineError as e:
        raise _http_error(e)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Create new booking"""
    try:
        booking = await service.create_booking(
            property_id=request.property_id,
            check_in=request.check_in,
            check_out=request.check_out,
            actor=actor,
            guest_male=request.guest_male,
            guest_female=request.guest_female,
            guest_children=request.guest_children,
            dp_percentage=request.dp_percentage,
            guest_id=request.guest_id,
            guest_name=request.guest_name,
            guest_email=request.guest_email,
            guest_phone=request.guest_phone,
            special_requests=request.special_requests,
        )
        return _booking_to_response(booking, service.current_state(booking))
    except BookingEngineError as e:
        raise _http_error(e)

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get booking by ID"""
    booking = await service.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking, service.current_state(booking))

@app.get("/api/bookings/number/{booking_number}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking_by_number(
    booking_number: str,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get booking by booking number"""
    booking = await service.get_booking_by_number(booking_number)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking, service.current_state(booking))

@app.get("/api/properties/{property_id}/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def get_property_bookings(
    property_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    bookings = await service.get_property_bookings(property_id)
    return [_booking_to_response(b, service.current_state(b)) for b in bookings]

@app.post("/api/bookings/{booking_id}/transitions", response_model=BookingResponse, tags=["Bookings"])
async def transition_booking(
    booking_id: UUID,
    request: TransitionRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Apply a lifecycle action (review, verify, confirm, check_in, check_out, complete, cancel, no_show)"""
    try:
        booking = await service.transition_booking(
            booking_id=booking_id,
            action=request.action,
            actor=actor,
            decision=request.decision,
            auto_confirm=request.auto_confirm,
            reason=request.reason,
            notes=request.notes,
        )
        next_check_in = None
        if request.action == BookingAction.CHECK_OUT:
            next_check_in = (await service.cleaning_signal(booking.property_id)).next_check_in
        return _booking_to_response(booking, service.current_state(booking), next_check_in)
    except BookingEngineError as e:
        raise _http_error(e)

@app.delete("/api/bookings/{booking_id}", status_code=204, tags=["Bookings"])
async def delete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Hard-delete a booking that has received no money (super admin only)"""
    try:
        await service.delete_booking(booking_id, actor)
        return Response(status_code=204)
    except BookingEngineError as e:
        raise _http_error(e)

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/bookings/{booking_id}/payments", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def submit_payment(
    booking_id: UUID,
    request: SubmitPaymentRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Submit a payment for verification"""
    try:
        payment = await service.submit_payment(
            booking_id, request.amount, actor, request.payment_type, request.notes
        )
        return PaymentResponse(**payment.model_dump())
    except BookingEngineError as e:
        raise _http_error(e)

@app.post("/api/bookings/{booking_id}/payments/{payment_id}/verify", response_model=BookingResponse, tags=["Payments"])
async def verify_payment(
    booking_id: UUID,
    payment_id: UUID,
    request: VerifyPaymentRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Verify (approve) or fail a pending payment"""
    try:
        booking = await service.verify_payment(
            booking_id, payment_id, request.approve, actor, request.notes
        )
        return _booking_to_response(booking, service.current_state(booking))
    except BookingEngineError as e:
        raise _http_error(e)

@app.post("/api/bookings/{booking_id}/payments/{payment_id}/cancel", response_model=BookingResponse, tags=["Payments"])
async def cancel_payment(
    booking_id: UUID,
    payment_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    try:
        booking = await service.cancel_payment(booking_id, payment_id, actor)
        return _booking_to_response(booking, service.current_state(booking))
    except BookingEngineError as e:
        raise _http_error(e)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _booking_summary(booking: Booking) -> BookingSummaryResponse:
    return BookingSummaryResponse(
        booking_id=booking.booking_id,
        booking_number=booking.booking_number,
        check_in=booking.date_range.check_in,
        check_out=booking.date_range.check_out,
        booking_status=booking.booking_status,
    )

def _booking_to_response(
    booking: Booking,
    state: BookingState,
    next_check_in: Optional[Booking] = None,
) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    progress = booking.payment_progress()
    return BookingResponse(
        booking_id=booking.booking_id,
        booking_number=booking.booking_number,
        property_id=booking.property_id,
        guest_id=booking.guest_id,
        guest_name=booking.guest_name,
        guest_email=booking.guest_email,
        guest_phone=booking.guest_phone,
        special_requests=booking.special_requests,
        check_in=booking.date_range.check_in,
        check_out=booking.date_range.check_out,
        nights=booking.nights,
        guest_male=booking.guests.male,
        guest_female=booking.guests.female,
        guest_children=booking.guests.children,
        total_guests=booking.guests.total,
        base_amount=booking.base_amount,
        weekend_premium_amount=booking.weekend_premium_amount,
        seasonal_premium_amount=booking.seasonal_premium_amount,
        extra_beds=booking.extra_beds,
        extra_bed_amount=booking.extra_bed_amount,
        cleaning_fee=booking.cleaning_fee,
        tax_amount=booking.tax_amount,
        total_amount=booking.total_amount,
        dp_percentage=booking.dp_percentage,
        dp_amount=booking.dp_amount,
        remaining_amount=booking.remaining_amount,
        dp_deadline=booking.dp_deadline,
        booking_status=state.booking_status,
        payment_status=state.payment_status,
        verification_status=state.verification_status,
        is_cleaned=booking.is_cleaned,
        cancellation_reason=booking.cancellation_reason,
        payments=[PaymentResponse(**p.model_dump()) for p in booking.payments],
        payment_progress=PaymentProgressResponse(
            **progress.model_dump(), outstanding_amount=booking.outstanding_amount()
        ),
        seasonal_rates_applied=[r.model_dump() for r in booking.seasonal_rates_applied],
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        confirmed_at=booking.confirmed_at,
        checked_in_at=booking.checked_in_at,
        checked_out_at=booking.checked_out_at,
        cancelled_at=booking.cancelled_at,
        version=booking.version,
        next_check_in=_booking_summary(next_check_in) if next_check_in else None,
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
