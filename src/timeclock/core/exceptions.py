from __future__ import annotations

from typing import Optional

from .enums import ErrorCategory, LocationFailure


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AttendanceError(DomainError):
    """Typed time-clock failure.

    ``code`` is stable and meant for API clients; ``category`` tells the caller
    whether the user can fix it by retrying, by doing something else, or whether
    an administrator has to look at it.
    """

    code = "ATTENDANCE_ERROR"
    category = ErrorCategory.USER_ACTION
    default_message = "Attendance operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class SessionAlreadyActive(AttendanceError):
    code = "SESSION_ALREADY_ACTIVE"
    category = ErrorCategory.USER_ACTION
    default_message = "You already have an active check-in. Please check out first."


class NoActiveSession(AttendanceError):
    code = "NO_ACTIVE_SESSION"
    category = ErrorCategory.USER_ACTION
    default_message = "No active check-in session found"


class LocationRequired(AttendanceError):
    code = "LOCATION_REQUIRED"
    category = ErrorCategory.USER_RETRY
    default_message = "Location is required"


class LateJustificationRequired(AttendanceError):
    code = "LATE_REASON_REQUIRED"
    category = ErrorCategory.USER_RETRY
    default_message = "Late reason is required when checking in late"

    def __init__(self, late_minutes: int, message: Optional[str] = None):
        self.late_minutes = late_minutes
        super().__init__(message)


class CheckInLocationMissing(AttendanceError):
    code = "CHECKOUT_LOCATION_MISSING"
    category = ErrorCategory.ADMIN
    default_message = (
        "Check-in location is missing. Cannot validate check-out location. "
        "Please contact administrator."
    )

    def __init__(self, session_id: str, message: Optional[str] = None):
        self.session_id = session_id
        super().__init__(message)


class OutOfRadius(AttendanceError):
    code = "CHECKOUT_OUT_OF_RADIUS"
    category = ErrorCategory.USER_RETRY

    def __init__(self, distance_m: float, radius_m: float):
        self.distance_m = distance_m
        self.radius_m = radius_m
        super().__init__(
            f"Check-out location is {round(distance_m)} meters away from check-in location "
            f"(maximum allowed: {round(radius_m)} meters). "
            f"Please check out from within {round(radius_m)} meters of your check-in location."
        )


class LocationUnavailable(AttendanceError):
    code = "LOCATION_UNAVAILABLE"
    category = ErrorCategory.USER_RETRY

    def __init__(self, reason: LocationFailure = LocationFailure.UNAVAILABLE, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Failed to get location ({reason.value})")
