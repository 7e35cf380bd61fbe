from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

from ..common.datetime_utils import isoformat_or_none
from ..core.enums import SessionStatus, WorkLocation
from ..geo.distance import GeoPoint


@dataclass(frozen=True)
class Location:
    """A position as submitted by the client, with an optional street address."""

    latitude: float
    longitude: float
    address: Optional[str] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude, "address": self.address}


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one check-in to check-out span for a user."""

    session_id: str
    user_id: str
    work_date: date
    work_location: WorkLocation
    status: SessionStatus
    check_in_time: datetime
    check_in_location: Optional[Location]
    is_late: bool = False
    late_minutes: Optional[int] = None
    late_reason: Optional[str] = None
    check_in_notes: Optional[str] = None
    check_out_time: Optional[datetime] = None
    check_out_location: Optional[Location] = None
    check_out_notes: Optional[str] = None
    total_hours: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "user_id": self.user_id,
            "date": self.work_date.isoformat(),
            "work_location": self.work_location.value,
            "status": self.status.value,
            "check_in_time": isoformat_or_none(self.check_in_time),
            "check_in_location": self.check_in_location.to_dict() if self.check_in_location else None,
            "is_late": self.is_late,
            "late_minutes": self.late_minutes,
            "late_reason": self.late_reason,
            "check_in_notes": self.check_in_notes,
            "check_out_time": isoformat_or_none(self.check_out_time),
            "check_out_location": self.check_out_location.to_dict() if self.check_out_location else None,
            "check_out_notes": self.check_out_notes,
            "total_hours": self.total_hours,
            "auto_checked_out": self.status == SessionStatus.AUTO_CLOSED,
        }


@dataclass(frozen=True)
class LocationPing:
    """Append-only position sample owned by one session."""

    ping_id: str
    session_id: str
    timestamp: datetime
    latitude: float
    longitude: float
    address: Optional[str] = None
    accuracy: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.ping_id,
            "session_id": self.session_id,
            "timestamp": isoformat_or_none(self.timestamp),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class NewSession:
    """Everything needed to open a session; ids are assigned by the store."""

    user_id: str
    work_date: date
    work_location: WorkLocation
    check_in_time: datetime
    check_in_location: Location
    is_late: bool
    late_minutes: Optional[int]
    late_reason: Optional[str]
    check_in_notes: Optional[str]


@dataclass(frozen=True)
class SessionClosure:
    """Terminal transition applied only if the session is still ACTIVE."""

    status: SessionStatus
    check_out_time: datetime
    total_hours: float
    check_out_location: Optional[Location] = None
    check_out_notes: Optional[str] = None


@dataclass(frozen=True)
class HistoryFilter:
    user_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    work_location: Optional[WorkLocation] = None
    statuses: tuple[SessionStatus, ...] = ()


@dataclass(frozen=True)
class HistoryPage:
    sessions: list[AttendanceSession]
    total: int
    page: int
    limit: int
