from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from timeclock.attendance.memory_repository import InMemorySessionStore
from timeclock.attendance.model import Location, NewSession, SessionClosure
from timeclock.core.enums import SessionStatus, WorkLocation
from timeclock.core.exceptions import SessionAlreadyActive

T0 = datetime(2026, 2, 2, 4, 0, tzinfo=timezone.utc)


def _new(user_id="u1", at=T0) -> NewSession:
    return NewSession(
        user_id=user_id,
        work_date=date(2026, 2, 2),
        work_location=WorkLocation.OFFICE,
        check_in_time=at,
        check_in_location=Location(27.7172, 85.324),
        is_late=False,
        late_minutes=None,
        late_reason=None,
        check_in_notes=None,
    )


def _ping(store, session_id, at, lat=27.7172):
    return store.append_ping(session_id=session_id, timestamp=at, latitude=lat, longitude=85.324)


def test_concurrent_creates_leave_one_active_session():
    store = InMemorySessionStore()
    outcomes = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        try:
            store.create_session(_new())
            outcomes.append("ok")
        except SessionAlreadyActive:
            outcomes.append("dup")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == 7


def test_new_session_allowed_after_close():
    store = InMemorySessionStore()
    first = store.create_session(_new())
    store.close_session(first.session_id, SessionClosure(SessionStatus.CLOSED, T0 + timedelta(hours=1), 1.0))

    second = store.create_session(_new(at=T0 + timedelta(hours=2)))

    assert second.session_id != first.session_id
    assert store.get_active_for_user("u1") == second


def test_close_is_conditional_on_active():
    store = InMemorySessionStore()
    session = store.create_session(_new())

    first = store.close_session(session.session_id, SessionClosure(SessionStatus.CLOSED, T0 + timedelta(hours=1), 1.0))
    second = store.close_session(session.session_id, SessionClosure(SessionStatus.AUTO_CLOSED, T0 + timedelta(hours=20), 20.0))

    assert first.status == SessionStatus.CLOSED
    assert second is None
    assert store.get_session(session.session_id).total_hours == 1.0


def test_pings_ordered_by_timestamp_then_insertion():
    store = InMemorySessionStore()
    session = store.create_session(_new())

    late = _ping(store, session.session_id, T0 + timedelta(minutes=10), lat=1)
    early = _ping(store, session.session_id, T0 + timedelta(minutes=5), lat=2)
    tie = _ping(store, session.session_id, T0 + timedelta(minutes=10), lat=3)

    assert store.list_pings(session.session_id) == [early, late, tie]
    assert store.latest_ping(session.session_id) == tie


def test_pings_rejected_once_closed():
    store = InMemorySessionStore()
    session = store.create_session(_new())
    store.close_session(session.session_id, SessionClosure(SessionStatus.CLOSED, T0 + timedelta(hours=1), 1.0))

    assert _ping(store, session.session_id, T0 + timedelta(hours=2)) is None
    assert _ping(store, "missing", T0) is None
    assert store.latest_ping(session.session_id) is None


def test_delete_cascades_to_pings():
    store = InMemorySessionStore()
    session = store.create_session(_new())
    _ping(store, session.session_id, T0)

    assert store.delete_session(session.session_id) is True
    assert store.get_session(session.session_id) is None
    assert store.list_pings(session.session_id) == []
    assert store.delete_session(session.session_id) is False


@pytest.mark.parametrize("offset_hours, expected", [(0, []), (1, ["u1"])])
def test_list_active_opened_before(offset_hours, expected):
    store = InMemorySessionStore()
    store.create_session(_new())

    stale = store.list_active_opened_before(T0 + timedelta(hours=offset_hours))

    assert [s.user_id for s in stale] == expected
