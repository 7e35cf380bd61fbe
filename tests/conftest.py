from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from timeclock.attendance.memory_repository import InMemorySessionStore
from timeclock.attendance.service import AttendanceService
from timeclock.punctuality.classifier import PunctualityPolicy

# 09:45 on 2026-02-02 in UTC+05:45
FIXED_NOW = datetime(2026, 2, 2, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> PunctualityPolicy:
    return PunctualityPolicy.from_settings(late_cutoff="10:01", utc_offset="+05:45")


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def service(store, policy, fixed_now) -> AttendanceService:
    return AttendanceService(
        store,
        policy=policy,
        checkout_radius_m=500,
        max_open=timedelta(hours=16),
        clock=lambda: fixed_now,
    )
