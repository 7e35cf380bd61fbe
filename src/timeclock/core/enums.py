from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    """Lifecycle of an attendance session."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    AUTO_CLOSED = "AUTO_CLOSED"


class WorkLocation(str, Enum):
    """Where the user declares to be working for the session."""

    OFFICE = "OFFICE"
    SITE = "SITE"


class ErrorCategory(str, Enum):
    """How the calling layer should treat an attendance failure."""

    USER_RETRY = "user_retry"
    USER_ACTION = "user_action"
    ADMIN = "admin"
    BEST_EFFORT = "best_effort"


class LocationFailure(str, Enum):
    """Why a position could not be acquired."""

    UNAVAILABLE = "UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIMEOUT = "TIMEOUT"


class Role(str, Enum):
    """Roles as set on the Flask session by the (external) login flow."""

    ADMIN = "admin"
    STAFF = "staff"
