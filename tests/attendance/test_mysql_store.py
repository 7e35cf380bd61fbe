from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from timeclock.attendance.model import HistoryFilter, Location, NewSession, SessionClosure
from timeclock.attendance.mysql_attendance_repository import MySQLSessionStore
from timeclock.core.enums import SessionStatus, WorkLocation
from timeclock.core.exceptions import SessionAlreadyActive

T0 = datetime(2026, 2, 2, 4, 0, tzinfo=timezone.utc)


class StubCursor:
    """Replays one scripted outcome per execute(): an exception or a result dict."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.executed = []
        self.rowcount = 0
        self._result = {}

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))
        outcome = self.outcomes.pop(0) if self.outcomes else {}
        if isinstance(outcome, Exception):
            raise outcome
        self._result = outcome
        self.rowcount = outcome.get("rowcount", 1)

    def fetchone(self):
        return self._result.get("one")

    def fetchall(self):
        return self._result.get("all", [])

    def close(self):
        pass


class StubConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass


class StubConnectionFactory:
    def __init__(self, cursor):
        self.cursor = cursor
        self.connections = []

    def connect(self, *, with_database=True):
        conn = StubConnection(self.cursor)
        self.connections.append(conn)
        return conn


def _row(**overrides):
    row = {
        "session_id": "abc",
        "user_id": "u1",
        "work_date": date(2026, 2, 2),
        "work_location": "OFFICE",
        "status": "ACTIVE",
        "check_in_time": datetime(2026, 2, 2, 4, 0),
        "check_in_lat": 27.7172,
        "check_in_lng": 85.324,
        "check_in_address": None,
        "is_late": 0,
        "late_minutes": None,
        "late_reason": None,
        "check_in_notes": None,
        "check_out_time": None,
        "check_out_lat": None,
        "check_out_lng": None,
        "check_out_address": None,
        "check_out_notes": None,
        "total_hours": None,
    }
    row.update(overrides)
    return row


def _new_session() -> NewSession:
    return NewSession(
        user_id="u1",
        work_date=date(2026, 2, 2),
        work_location=WorkLocation.OFFICE,
        check_in_time=T0,
        check_in_location=Location(27.7172, 85.324),
        is_late=False,
        late_minutes=None,
        late_reason=None,
        check_in_notes=None,
    )


def _store(*outcomes):
    factory = StubConnectionFactory(StubCursor(*outcomes))
    return MySQLSessionStore(factory), factory


def test_duplicate_active_session_maps_to_domain_error():
    dup = IntegrityError(msg="Duplicate entry 'u1' for key 'uq_attendance_one_active'", errno=errorcode.ER_DUP_ENTRY)
    store, factory = _store(dup)

    with pytest.raises(SessionAlreadyActive):
        store.create_session(_new_session())

    assert factory.connections[0].rollbacks == 1
    assert factory.connections[0].commits == 0


def test_other_integrity_errors_propagate():
    fk = IntegrityError(msg="Cannot add or update a child row", errno=errorcode.ER_NO_REFERENCED_ROW_2)
    store, _ = _store(fk)

    with pytest.raises(IntegrityError):
        store.create_session(_new_session())


def test_create_session_reads_back_utc_row():
    store, factory = _store({"rowcount": 1}, {"one": _row()})

    session = store.create_session(_new_session())

    insert_sql, insert_params = factory.cursor.executed[0]
    assert insert_sql.startswith("INSERT INTO attendance_sessions")
    assert insert_params[5] == datetime(2026, 2, 2, 4, 0)
    assert session.check_in_time == T0
    assert session.status == SessionStatus.ACTIVE
    assert session.check_in_location == Location(27.7172, 85.324)


def test_close_is_guarded_on_active_status():
    store, factory = _store({"rowcount": 0})

    closed = store.close_session("abc", SessionClosure(SessionStatus.CLOSED, T0 + timedelta(hours=1), 1.0))

    sql, params = factory.cursor.executed[0]
    assert closed is None
    assert "WHERE session_id=%s AND status='ACTIVE'" in sql
    assert params[-1] == "abc"
    assert len(factory.cursor.executed) == 1


def test_close_returns_updated_row():
    out_at = datetime(2026, 2, 2, 5, 0)
    store, _ = _store(
        {"rowcount": 1},
        {"one": _row(status="AUTO_CLOSED", check_out_time=out_at, total_hours=1.0)},
    )

    closed = store.close_session("abc", SessionClosure(SessionStatus.AUTO_CLOSED, T0 + timedelta(hours=1), 1.0))

    assert closed.status == SessionStatus.AUTO_CLOSED
    assert closed.check_out_location is None
    assert closed.check_out_time == out_at.replace(tzinfo=timezone.utc)


def test_ping_insert_is_guarded_on_active_status():
    store, factory = _store({"rowcount": 0}, {"rowcount": 1})

    dropped = store.append_ping(session_id="abc", timestamp=T0, latitude=27.7, longitude=85.3)
    kept = store.append_ping(session_id="abc", timestamp=T0, latitude=27.7, longitude=85.3, accuracy=9.0)

    sql, _ = factory.cursor.executed[0]
    assert "INSERT INTO attendance_locations" in sql
    assert "WHERE session_id=%s AND status='ACTIVE'" in sql
    assert dropped is None
    assert kept.accuracy == 9.0
    assert kept.timestamp == T0


def test_search_counts_then_pages():
    store, factory = _store({"one": {"total": 3}}, {"all": [_row(status="CLOSED")]})

    page = store.search(
        HistoryFilter(user_id="u1", statuses=(SessionStatus.CLOSED, SessionStatus.AUTO_CLOSED)),
        page=2,
        limit=2,
    )

    count_sql, count_params = factory.cursor.executed[0]
    _, page_params = factory.cursor.executed[1]
    assert "status IN (%s, %s)" in count_sql
    assert count_params == ("u1", "CLOSED", "AUTO_CLOSED")
    assert page_params[-2:] == (2, 2)
    assert page.total == 3
    assert [s.status for s in page.sessions] == [SessionStatus.CLOSED]
