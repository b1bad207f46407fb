"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import (
    BookingAction, BookingStatus, PaymentRecordStatus, PaymentStatus, PaymentType,
    RateType, VerificationDecision, VerificationStatus,
)


# ============================================================================
# PROPERTY & SEASONAL RATE SCHEMAS
# ============================================================================

class PropertyRateProfileRequest(BaseModel):
    """Property rate profile request DTO"""
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


class PropertyRateProfileResponse(PropertyRateProfileRequest):
    property_id: UUID


class SeasonalRateRequest(BaseModel):
    """Create seasonal rate request DTO"""
    name: str
    start_date: date
    end_date: date
    rate_type: RateType
    rate_value: Decimal
    min_stay_nights: int = Field(ge=1, default=1)
    applies_to_weekends_only: bool = False
    priority: int = 0
    description: Optional[str] = None


class UpdateSeasonalRateRequest(BaseModel):
    """Update seasonal rate request DTO; omitted fields keep their value"""
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rate_type: Optional[RateType] = None
    rate_value: Optional[Decimal] = None
    min_stay_nights: Optional[int] = Field(None, ge=1)
    applies_to_weekends_only: Optional[bool] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class SeasonalRateResponse(BaseModel):
    seasonal_rate_id: UUID
    property_id: UUID
    name: str
    start_date: date
    end_date: date
    rate_type: RateType
    rate_value: Decimal
    min_stay_nights: int
    applies_to_weekends_only: bool
    priority: int
    is_active: bool
    description: Optional[str] = None


class EffectiveRateResponse(BaseModel):
    day: date
    is_weekend: bool
    seasonal_rate_id: Optional[UUID] = None
    seasonal_rate_name: Optional[str] = None
    quoted_rate: Decimal


# ============================================================================
# AVAILABILITY SCHEMAS
# ============================================================================

class BookingSummaryResponse(BaseModel):
    """Conflicting or upcoming booking, without guest details"""
    booking_id: UUID
    booking_number: str
    check_in: date
    check_out: date
    booking_status: BookingStatus


class AvailabilityResponse(BaseModel):
    """Availability check response DTO"""
    property_id: UUID
    check_in: date
    check_out: date
    available: bool
    booked_dates: List[date] = []
    conflicting_bookings: List[BookingSummaryResponse] = []


class CalendarDayResponse(BaseModel):
    day: date
    is_booked: bool
    is_weekend: bool
    is_past: bool


class NextAvailableResponse(BaseModel):
    property_id: UUID
    nights: int
    found: bool
    check_in: Optional[date] = None
    check_out: Optional[date] = None


# ============================================================================
# QUOTE SCHEMAS
# ============================================================================

class GuestsRequest(BaseModel):
    guest_male: int = Field(ge=0, default=0)
    guest_female: int = Field(ge=0, default=0)
    guest_children: int = Field(ge=0, default=0)


class QuoteRequest(GuestsRequest):
    """Quote request DTO"""
    property_id: UUID
    check_in: date
    check_out: date


class NightlyRateResponse(BaseModel):
    night: date
    base_rate: Decimal
    is_weekend: bool
    weekend_premium: Decimal
    seasonal_premium: Decimal
    seasonal_rate_name: Optional[str] = None


class AppliedSeasonalRateResponse(BaseModel):
    seasonal_rate_id: UUID
    name: str
    start_date: date
    end_date: date
    rate_type: RateType
    rate_value: Decimal
    nights: int


class RateBreakdownResponse(BaseModel):
    """Quote response DTO"""
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
    currency: str
    nightly: List[NightlyRateResponse] = []
    seasonal_rates_applied: List[AppliedSeasonalRateResponse] = []


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(QuoteRequest):
    """Create booking request DTO"""
    dp_percentage: Optional[Decimal] = Field(None, gt=0, le=100)
    guest_id: Optional[UUID] = None
    guest_name: str = ""
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    special_requests: Optional[str] = None


class TransitionRequest(BaseModel):
    """Lifecycle transition request DTO"""
    action: BookingAction
    decision: Optional[VerificationDecision] = None
    auto_confirm: bool = False
    reason: Optional[str] = None
    notes: Optional[str] = None


class SubmitPaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_type: PaymentType = PaymentType.DP
    notes: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    approve: bool = True
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: UUID
    booking_id: UUID
    amount: Decimal
    payment_type: PaymentType
    payment_status: PaymentRecordStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None


class PaymentProgressResponse(BaseModel):
    total_paid: Decimal
    outstanding_amount: Decimal
    dp_percentage: Decimal
    total_percentage: Decimal
    is_dp_complete: bool
    is_fully_paid: bool


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    booking_number: str
    property_id: UUID
    guest_id: Optional[UUID] = None
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    special_requests: Optional[str] = None
    check_in: date
    check_out: date
    nights: int
    guest_male: int
    guest_female: int
    guest_children: int
    total_guests: int
    base_amount: Decimal
    weekend_premium_amount: Decimal
    seasonal_premium_amount: Decimal
    extra_beds: int
    extra_bed_amount: Decimal
    cleaning_fee: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    dp_percentage: Decimal
    dp_amount: Decimal
    remaining_amount: Decimal
    dp_deadline: datetime
    booking_status: BookingStatus
    payment_status: PaymentStatus
    verification_status: VerificationStatus
    is_cleaned: Optional[bool] = None
    cancellation_reason: Optional[str] = None
    payments: List[PaymentResponse] = []
    payment_progress: PaymentProgressResponse
    seasonal_rates_applied: List[AppliedSeasonalRateResponse] = []
    created_at: datetime
    modified_at: datetime
    confirmed_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    version: int
    next_check_in: Optional[BookingSummaryResponse] = None


class CleaningSignalResponse(BaseModel):
    property_id: UUID
    needs_cleaning: bool
    next_check_in: Optional[BookingSummaryResponse] = None


# ============================================================================
# ERROR SCHEMAS
# ============================================================================

class ErrorResponse(BaseModel):
    error: str
    message: str
