"""Domain Exceptions

Every error the booking engine raises derives from BookingEngineError and
carries enough structured data for the caller to explain the rejection.
None of them are retried inside the engine.
"""
from typing import Any, Dict, List, Optional


class BookingEngineError(Exception):
    """Base class for booking engine errors"""

    code = "booking_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class ValidationError(BookingEngineError, ValueError):
    """Bad input shape, rejected before touching persistence"""

    code = "validation_error"


class InvalidRangeError(ValidationError):
    """Check-out is not after check-in"""

    code = "invalid_range"


class NotFoundError(BookingEngineError):
    code = "not_found"


class AvailabilityConflictError(BookingEngineError):
    """Requested dates overlap existing non-cancelled bookings"""

    code = "availability_conflict"

    def __init__(self, message: str, conflicting_bookings: Optional[List[Any]] = None):
        super().__init__(message)
        self.conflicting_bookings = list(conflicting_bookings or [])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["conflicting_bookings"] = [
            {
                "booking_number": b.booking_number,
                "check_in": b.date_range.check_in.isoformat(),
                "check_out": b.date_range.check_out.isoformat(),
            }
            for b in self.conflicting_bookings
        ]
        return data


class MinimumStayError(BookingEngineError):
    """Requested nights fall below the resolved minimum stay"""

    code = "minimum_stay"

    def __init__(self, min_nights: int, reason: str, nights: int, seasonal_rate: Any = None):
        super().__init__(
            f"Minimum stay is {min_nights} night(s) ({reason}), requested {nights}"
        )
        self.min_nights = min_nights
        self.reason = reason
        self.nights = nights
        self.seasonal_rate = seasonal_rate

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "min_nights": self.min_nights,
            "reason": self.reason,
            "nights": self.nights,
            "seasonal_rate": self.seasonal_rate.name if self.seasonal_rate else None,
        })
        return data


class InvalidTransitionError(BookingEngineError):
    """State machine misuse; the booking is left untouched"""

    code = "invalid_transition"

    def __init__(self, current_state: Any, attempted: str, detail: str = ""):
        message = f"Cannot {attempted} booking in state {current_state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.current_state = current_state
        self.attempted = attempted

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"current_state": str(self.current_state), "attempted": self.attempted})
        return data


class ConcurrencyConflictError(BookingEngineError):
    """Lost the race at the transaction boundary; retry the whole flow"""

    code = "concurrency_conflict"


class ForbiddenError(BookingEngineError):
    code = "forbidden"

    def __init__(self, role: Any, action: str, detail: str = ""):
        message = f"Role {getattr(role, 'value', role)} may not {action}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.role = role
        self.action = action
