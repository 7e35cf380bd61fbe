from __future__ import annotations

import asyncio

import pytest

from timeclock.attendance.model import Location
from timeclock.client.api import InProcessAttendanceClient
from timeclock.client.state import SamplerSupervisor, SessionState, SessionStatePoller
from timeclock.client.timeclock import TimeClock
from timeclock.core.enums import LocationFailure, WorkLocation
from timeclock.core.exceptions import LocationUnavailable
from timeclock.geo.position import FixedPositionProvider, LocationAcquirer, PositionFix


class FakeSampler:
    def __init__(self):
        self.events = []

    def start(self, session_id):
        self.events.append(("start", session_id))

    def stop(self):
        self.events.append(("stop", None))


class DeniedProvider:
    async def acquire(self) -> PositionFix:
        raise LocationUnavailable(LocationFailure.PERMISSION_DENIED)


class CountingClient:
    def __init__(self):
        self.calls = []

    async def current(self):
        self.calls.append("current")
        return {"active_session": None}

    async def check_in(self, payload):
        self.calls.append("check_in")
        return {}

    async def check_out(self, payload):
        self.calls.append("check_out")
        return {}

    async def record_location(self, payload):
        self.calls.append("record_location")
        return True


def _view(session_id, status="ACTIVE"):
    return {"active_session": {"id": session_id, "status": status}}


def test_state_notifies_only_on_session_change():
    state = SessionState()
    changes = []
    unsubscribe = state.subscribe(lambda prev, cur: changes.append((prev, cur)))

    state.update(_view("s1"))
    state.update(_view("s1"))
    state.update(_view("s1", status="CLOSED"))
    unsubscribe()
    state.update(_view("s2"))

    assert changes == [(None, "s1"), ("s1", None)]
    assert state.active_session_id == "s2"


def test_supervisor_follows_state():
    state = SessionState()
    state.update(_view("s1"))
    sampler = FakeSampler()

    supervisor = SamplerSupervisor(state, sampler)
    state.update({"active_session": None})
    state.update(_view("s2"))
    supervisor.close()
    state.update(_view("s3"))

    assert sampler.events == [("start", "s1"), ("stop", None), ("start", "s2"), ("stop", None)]


def test_location_failure_never_reaches_the_backend():
    client = CountingClient()
    clock = TimeClock(client, LocationAcquirer(DeniedProvider()))

    with pytest.raises(LocationUnavailable):
        asyncio.run(clock.check_in(WorkLocation.OFFICE))
    with pytest.raises(LocationUnavailable):
        asyncio.run(clock.check_out())

    assert client.calls == []


def test_check_in_starts_sampling_and_check_out_stops_it(service, store):
    acquirer = LocationAcquirer(FixedPositionProvider(27.7172, 85.324, accuracy=8.0))
    client = InProcessAttendanceClient(service, "u1")

    async def scenario():
        clock = TimeClock(client, acquirer, poll_interval_seconds=60, sample_interval_seconds=60)
        session = await clock.check_in(WorkLocation.SITE)
        clock.start()
        await asyncio.sleep(0.1)
        running_while_active = clock.sampler.running
        await clock.stop()
        return session, running_while_active, clock

    session, running_while_active, clock = asyncio.run(scenario())

    assert session["work_location"] == "SITE"
    assert running_while_active is True
    assert clock.sampler.running is False
    pings = store.list_pings(session["id"])
    assert len(pings) >= 2
    assert pings[-1].accuracy == 8.0


def test_check_out_clears_state(service, fixed_now):
    acquirer = LocationAcquirer(FixedPositionProvider(27.7172, 85.324))
    client = InProcessAttendanceClient(service, "u1")
    service.check_in("u1", location=Location(27.7172, 85.324), work_location="OFFICE", now=fixed_now.replace(hour=3))

    async def scenario():
        clock = TimeClock(client, acquirer, poll_interval_seconds=60, sample_interval_seconds=60)
        await clock.refresh()
        assert clock.state.active_session_id is not None
        closed = await clock.check_out(notes="done")
        return closed, clock.state.active_session_id

    closed, active_id = asyncio.run(scenario())

    assert closed["status"] == "CLOSED"
    assert closed["check_out_notes"] == "done"
    assert active_id is None

class UnreachableStatusClient(CountingClient):
    async def current(self):
        self.calls.append("current")
        raise ConnectionError("status endpoint down")

    async def check_in(self, payload):
        self.calls.append("check_in")
        return {"id": "s1", "status": "ACTIVE"}

    async def check_out(self, payload):
        self.calls.append("check_out")
        return {"id": "s1", "status": "CLOSED"}


def test_accepted_change_is_returned_even_if_status_refresh_fails():
    client = UnreachableStatusClient()
    clock = TimeClock(client, LocationAcquirer(FixedPositionProvider(27.7172, 85.324)))

    session = asyncio.run(clock.check_in("OFFICE", late_reason="traffic"))
    closed = asyncio.run(clock.check_out(notes="done"))

    assert session == {"id": "s1", "status": "ACTIVE"}
    assert closed["status"] == "CLOSED"
    assert client.calls == ["check_in", "current", "check_out", "current"]


def test_poller_aclose_waits_for_cancellation():
    client = CountingClient()

    async def scenario():
        poller = SessionStatePoller(client, SessionState(), interval_seconds=60)
        poller.start()
        await asyncio.sleep(0.02)
        await poller.aclose()
        return poller

    poller = asyncio.run(scenario())

    assert poller.running is False
    assert client.calls == ["current"]


def test_timeclock_stop_closes_poller():
    client = CountingClient()

    async def scenario():
        clock = TimeClock(client, LocationAcquirer(FixedPositionProvider(1, 2)), poll_interval_seconds=0.01)
        clock.start()
        await asyncio.sleep(0.05)
        await clock.stop()
        count = len(client.calls)
        await asyncio.sleep(0.05)
        return count

    count = asyncio.run(scenario())

    assert count >= 1
    assert len(client.calls) == count
