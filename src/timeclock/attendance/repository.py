from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from .model import (
    AttendanceSession,
    HistoryFilter,
    HistoryPage,
    LocationPing,
    NewSession,
    SessionClosure,
)


class SessionStore(Protocol):
    """Persistence contract for attendance sessions and their ping log.

    Implementations must make ``create_session`` an atomic check-and-create
    (at most one ACTIVE session per user) and ``close_session`` an atomic
    conditional transition (only while the row is still ACTIVE).
    """

    def create_session(self, new: NewSession) -> AttendanceSession:
        """Raise ``SessionAlreadyActive`` if the user already has an ACTIVE session."""
        raise NotImplementedError

    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_active_for_user(self, user_id: str) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def close_session(self, session_id: str, closure: SessionClosure) -> Optional[AttendanceSession]:
        """Return the closed session, or None when it was no longer ACTIVE."""
        raise NotImplementedError

    def list_active_opened_before(self, cutoff: datetime) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def list_for_user_and_date(self, user_id: str, work_date: date) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def search(self, criteria: HistoryFilter, *, page: int, limit: int) -> HistoryPage:
        raise NotImplementedError

    def append_ping(
        self,
        *,
        session_id: str,
        timestamp: datetime,
        latitude: float,
        longitude: float,
        address: Optional[str] = None,
        accuracy: Optional[float] = None,
    ) -> Optional[LocationPing]:
        """Append only while the owning session is ACTIVE; None otherwise."""
        raise NotImplementedError

    def list_pings(self, session_id: str) -> Sequence[LocationPing]:
        """Pings ordered by their own timestamp, then insertion order."""
        raise NotImplementedError

    def latest_ping(self, session_id: str) -> Optional[LocationPing]:
        raise NotImplementedError

    def delete_session(self, session_id: str) -> bool:
        """Remove a session together with its pings."""
        raise NotImplementedError
