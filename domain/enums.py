"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    SUBMITTED = "submitted"
    STAFF_REVIEW = "staff_review"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    """Booking-level payment projection"""
    DP_PENDING = "dp_pending"
    DP_RECEIVED = "dp_received"
    FULLY_PAID = "fully_paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentRecordStatus(str, Enum):
    """Status of a single Payment record"""
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    DP = "dp"
    REMAINING = "remaining"
    FULL = "full"
    ADDITIONAL = "additional"
    REFUND = "refund"


class RateType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    MULTIPLIER = "multiplier"


class MinimumStayReason(str, Enum):
    SANDWICHED = "sandwiched"
    SEASONAL_RATE = "seasonal_rate"
    WEEKEND = "weekend"
    WEEKDAY = "weekday"


class BookingAction(str, Enum):
    CREATE = "create"
    REVIEW = "review"
    VERIFY = "verify"
    CONFIRM = "confirm"
    RECORD_PAYMENT = "record_payment"
    SUBMIT_PAYMENT = "submit_payment"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "no_show"
    DELETE = "delete"


class VerificationDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ActorRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    PROPERTY_OWNER = "property_owner"
    PROPERTY_MANAGER = "property_manager"
    FRONT_DESK = "front_desk"
    FINANCE = "finance"
    HOUSEKEEPING = "housekeeping"
    GUEST = "guest"
