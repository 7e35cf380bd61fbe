from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.enums import SessionStatus, WorkLocation
from ..core.exceptions import SessionAlreadyActive
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import (
    AttendanceSession,
    HistoryFilter,
    HistoryPage,
    Location,
    LocationPing,
    NewSession,
    SessionClosure,
)
from .repository import SessionStore

_SESSION_COLUMNS = """
    session_id, user_id, work_date, work_location, status,
    check_in_time, check_in_lat, check_in_lng, check_in_address,
    is_late, late_minutes, late_reason, check_in_notes,
    check_out_time, check_out_lat, check_out_lng, check_out_address, check_out_notes,
    total_hours
"""

_PING_COLUMNS = "ping_id, session_id, timestamp, latitude, longitude, address, accuracy"


def _location(lat: Any, lng: Any, address: Any) -> Optional[Location]:
    if lat is None or lng is None:
        return None
    return Location(latitude=float(lat), longitude=float(lng), address=address)


def _to_session(r: Dict[str, Any]) -> AttendanceSession:
    return AttendanceSession(
        session_id=r["session_id"],
        user_id=r["user_id"],
        work_date=r["work_date"],
        work_location=WorkLocation(r["work_location"]),
        status=SessionStatus(r["status"]),
        check_in_time=as_utc(r["check_in_time"]),
        check_in_location=_location(r.get("check_in_lat"), r.get("check_in_lng"), r.get("check_in_address")),
        is_late=bool(r.get("is_late")),
        late_minutes=r.get("late_minutes"),
        late_reason=r.get("late_reason"),
        check_in_notes=r.get("check_in_notes"),
        check_out_time=as_utc(r["check_out_time"]) if r.get("check_out_time") else None,
        check_out_location=_location(r.get("check_out_lat"), r.get("check_out_lng"), r.get("check_out_address")),
        check_out_notes=r.get("check_out_notes"),
        total_hours=float(r["total_hours"]) if r.get("total_hours") is not None else None,
    )


def _to_ping(r: Dict[str, Any]) -> LocationPing:
    return LocationPing(
        ping_id=r["ping_id"],
        session_id=r["session_id"],
        timestamp=as_utc(r["timestamp"]),
        latitude=float(r["latitude"]),
        longitude=float(r["longitude"]),
        address=r.get("address"),
        accuracy=float(r["accuracy"]) if r.get("accuracy") is not None else None,
    )


class MySQLSessionStore(SessionStore):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_session(self, new: NewSession) -> AttendanceSession:
        session_id = uuid.uuid4().hex
        loc = new.check_in_location
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_sessions(
                        session_id, user_id, work_date, work_location, status,
                        check_in_time, check_in_lat, check_in_lng, check_in_address,
                        is_late, late_minutes, late_reason, check_in_notes
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        session_id,
                        new.user_id,
                        new.work_date,
                        new.work_location.value,
                        SessionStatus.ACTIVE.value,
                        to_naive_utc(new.check_in_time),
                        loc.latitude,
                        loc.longitude,
                        loc.address,
                        int(new.is_late),
                        new.late_minutes,
                        new.late_reason,
                        new.check_in_notes,
                    ),
                )
        except IntegrityError as exc:
            # uq_attendance_one_active: a concurrent check-in won the race
            if is_duplicate_key(exc):
                raise SessionAlreadyActive() from exc
            raise

        created = self.get_session(session_id)
        if created is None:
            raise RuntimeError(f"Session {session_id} vanished right after insert")
        return created

    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SESSION_COLUMNS} FROM attendance_sessions WHERE session_id=%s",
                (session_id,),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_active_for_user(self, user_id: str) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SESSION_COLUMNS} FROM attendance_sessions WHERE active_user_id=%s",
                (user_id,),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def close_session(self, session_id: str, closure: SessionClosure) -> Optional[AttendanceSession]:
        loc = closure.check_out_location
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET status=%s, check_out_time=%s,
                    check_out_lat=%s, check_out_lng=%s, check_out_address=%s,
                    check_out_notes=%s, total_hours=%s
                WHERE session_id=%s AND status='ACTIVE'
                """,
                (
                    closure.status.value,
                    to_naive_utc(closure.check_out_time),
                    loc.latitude if loc else None,
                    loc.longitude if loc else None,
                    loc.address if loc else None,
                    closure.check_out_notes,
                    closure.total_hours,
                    session_id,
                ),
            )
            if cur.rowcount == 0:
                return None
        return self.get_session(session_id)

    def list_active_opened_before(self, cutoff: datetime) -> Sequence[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SESSION_COLUMNS}
                FROM attendance_sessions
                WHERE status='ACTIVE' AND check_in_time < %s
                ORDER BY check_in_time ASC
                """,
                (to_naive_utc(cutoff),),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def list_for_user_and_date(self, user_id: str, work_date: date) -> Sequence[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SESSION_COLUMNS}
                FROM attendance_sessions
                WHERE user_id=%s AND work_date=%s
                ORDER BY check_in_time DESC
                """,
                (user_id, work_date),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def search(self, criteria: HistoryFilter, *, page: int, limit: int) -> HistoryPage:
        clauses = ["1=1"]
        params: list[object] = []

        if criteria.user_id is not None:
            clauses.append("user_id=%s")
            params.append(criteria.user_id)
        if criteria.date_from:
            clauses.append("work_date >= %s")
            params.append(criteria.date_from)
        if criteria.date_to:
            clauses.append("work_date <= %s")
            params.append(criteria.date_to)
        if criteria.work_location:
            clauses.append("work_location=%s")
            params.append(criteria.work_location.value)
        if criteria.statuses:
            clauses.append(f"status IN ({', '.join(['%s'] * len(criteria.statuses))})")
            params.extend(s.value for s in criteria.statuses)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM attendance_sessions WHERE {where}", tuple(params))
            total = int(fetchone(cur)["total"])
            cur.execute(
                f"""
                SELECT {_SESSION_COLUMNS}
                FROM attendance_sessions
                WHERE {where}
                ORDER BY check_in_time DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (int(limit), int((page - 1) * limit)),
            )
            sessions = [_to_session(r) for r in fetchall(cur)]

        return HistoryPage(sessions=sessions, total=total, page=page, limit=limit)

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
        ping_id = uuid.uuid4().hex
        with db_cursor(self._conn_factory) as (_, cur):
            # Insert-select keeps the ACTIVE check and the append in one statement.
            cur.execute(
                """
                INSERT INTO attendance_locations(ping_id, session_id, timestamp, latitude, longitude, address, accuracy)
                SELECT %s, session_id, %s, %s, %s, %s, %s
                FROM attendance_sessions
                WHERE session_id=%s AND status='ACTIVE'
                """,
                (ping_id, to_naive_utc(timestamp), float(latitude), float(longitude), address, accuracy, session_id),
            )
            if cur.rowcount == 0:
                return None

        return LocationPing(
            ping_id=ping_id,
            session_id=session_id,
            timestamp=as_utc(timestamp),
            latitude=float(latitude),
            longitude=float(longitude),
            address=address,
            accuracy=accuracy,
        )

    def list_pings(self, session_id: str) -> Sequence[LocationPing]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PING_COLUMNS}
                FROM attendance_locations
                WHERE session_id=%s
                ORDER BY timestamp ASC, ping_seq ASC
                """,
                (session_id,),
            )
            return [_to_ping(r) for r in fetchall(cur)]

    def latest_ping(self, session_id: str) -> Optional[LocationPing]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PING_COLUMNS}
                FROM attendance_locations
                WHERE session_id=%s
                ORDER BY timestamp DESC, ping_seq DESC
                LIMIT 1
                """,
                (session_id,),
            )
            r = fetchone(cur)
            return _to_ping(r) if r else None

    def delete_session(self, session_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_sessions WHERE session_id=%s", (session_id,))
            return cur.rowcount > 0
