from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import as_utc
from ..core.enums import SessionStatus
from ..core.exceptions import SessionAlreadyActive
from .model import (
    AttendanceSession,
    HistoryFilter,
    HistoryPage,
    LocationPing,
    NewSession,
    SessionClosure,
)
from .repository import SessionStore


class InMemorySessionStore(SessionStore):
    """Process-local store used for development and tests.

    One lock guards the check-and-create and the conditional transitions, which
    is what the MySQL store gets from its unique index and guarded UPDATE.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, AttendanceSession] = {}
        self._pings: dict[str, list[tuple[int, LocationPing]]] = {}
        self._seq = itertools.count(1)

    def create_session(self, new: NewSession) -> AttendanceSession:
        with self._lock:
            if self._find_active(new.user_id):
                raise SessionAlreadyActive()
            session = AttendanceSession(
                session_id=uuid.uuid4().hex,
                user_id=new.user_id,
                work_date=new.work_date,
                work_location=new.work_location,
                status=SessionStatus.ACTIVE,
                check_in_time=as_utc(new.check_in_time),
                check_in_location=new.check_in_location,
                is_late=new.is_late,
                late_minutes=new.late_minutes,
                late_reason=new.late_reason,
                check_in_notes=new.check_in_notes,
            )
            self._sessions[session.session_id] = session
            self._pings[session.session_id] = []
            return session

    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        return self._sessions.get(session_id)

    def get_active_for_user(self, user_id: str) -> Optional[AttendanceSession]:
        with self._lock:
            return self._find_active(user_id)

    def _find_active(self, user_id: str) -> Optional[AttendanceSession]:
        for s in self._sessions.values():
            if s.user_id == user_id and s.status == SessionStatus.ACTIVE:
                return s
        return None

    def close_session(self, session_id: str, closure: SessionClosure) -> Optional[AttendanceSession]:
        with self._lock:
            current = self._sessions.get(session_id)
            if not current or current.status != SessionStatus.ACTIVE:
                return None
            closed = replace(
                current,
                status=closure.status,
                check_out_time=as_utc(closure.check_out_time),
                check_out_location=closure.check_out_location,
                check_out_notes=closure.check_out_notes,
                total_hours=closure.total_hours,
            )
            self._sessions[session_id] = closed
            return closed

    def list_active_opened_before(self, cutoff: datetime) -> Sequence[AttendanceSession]:
        cutoff = as_utc(cutoff)
        items = [
            s for s in self._sessions.values()
            if s.status == SessionStatus.ACTIVE and s.check_in_time < cutoff
        ]
        items.sort(key=lambda s: s.check_in_time)
        return items

    def list_for_user_and_date(self, user_id: str, work_date: date) -> Sequence[AttendanceSession]:
        items = [s for s in self._sessions.values() if s.user_id == user_id and s.work_date == work_date]
        items.sort(key=lambda s: s.check_in_time, reverse=True)
        return items

    def search(self, criteria: HistoryFilter, *, page: int, limit: int) -> HistoryPage:
        def matches(s: AttendanceSession) -> bool:
            if criteria.user_id is not None and s.user_id != criteria.user_id:
                return False
            if criteria.date_from and s.work_date < criteria.date_from:
                return False
            if criteria.date_to and s.work_date > criteria.date_to:
                return False
            if criteria.work_location and s.work_location != criteria.work_location:
                return False
            if criteria.statuses and s.status not in criteria.statuses:
                return False
            return True

        items = [s for s in self._sessions.values() if matches(s)]
        items.sort(key=lambda s: s.check_in_time, reverse=True)
        start = (page - 1) * limit
        return HistoryPage(sessions=items[start:start + limit], total=len(items), page=page, limit=limit)

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
        with self._lock:
            session = self._sessions.get(session_id)
            if not session or session.status != SessionStatus.ACTIVE:
                return None
            ping = LocationPing(
                ping_id=uuid.uuid4().hex,
                session_id=session_id,
                timestamp=as_utc(timestamp),
                latitude=float(latitude),
                longitude=float(longitude),
                address=address,
                accuracy=accuracy,
            )
            self._pings[session_id].append((next(self._seq), ping))
            return ping

    def list_pings(self, session_id: str) -> Sequence[LocationPing]:
        entries = sorted(self._pings.get(session_id, []), key=lambda e: (e[1].timestamp, e[0]))
        return [ping for _, ping in entries]

    def latest_ping(self, session_id: str) -> Optional[LocationPing]:
        pings = self.list_pings(session_id)
        return pings[-1] if pings else None

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            if session_id not in self._sessions:
                return False
            del self._sessions[session_id]
            self._pings.pop(session_id, None)
            return True
