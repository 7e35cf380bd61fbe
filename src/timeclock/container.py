from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from types import ModuleType
from typing import Callable, Optional

from .attendance.memory_repository import InMemorySessionStore
from .attendance.mysql_attendance_repository import MySQLSessionStore
from .attendance.repository import SessionStore
from .attendance.service import AttendanceService
from .autoclose.sweeper import AutoCloser
from .common.datetime_utils import now_utc
from .core.constants import (
    DEFAULT_CHECKOUT_RADIUS_M,
    DEFAULT_LATE_CUTOFF,
    DEFAULT_MAX_OPEN_HOURS,
    DEFAULT_REFERENCE_UTC_OFFSET,
)
from .database.connection import DBConfig, DatabaseConnection
from .punctuality.classifier import PunctualityPolicy


@dataclass(frozen=True)
class Container:
    store: SessionStore
    policy: PunctualityPolicy

    attendance_service: AttendanceService
    auto_closer: AutoCloser

    conn: Optional[DatabaseConnection] = None


def build_store(settings: ModuleType) -> tuple[SessionStore, Optional[DatabaseConnection]]:
    backend = str(getattr(settings, "STORAGE_BACKEND", "mysql")).lower()
    if backend == "memory":
        return InMemorySessionStore(), None
    if backend == "mysql":
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(getattr(settings, "DB_CONFIG")))
        return MySQLSessionStore(conn), conn
    raise ValueError(f"Unsupported STORAGE_BACKEND: {backend!r}")


def build_container(
    settings: ModuleType,
    *,
    store: Optional[SessionStore] = None,
    clock: Callable = now_utc,
) -> Container:
    conn = None
    if store is None:
        store, conn = build_store(settings)

    policy = PunctualityPolicy.from_settings(
        late_cutoff=getattr(settings, "LATE_CUTOFF", DEFAULT_LATE_CUTOFF),
        utc_offset=getattr(settings, "REFERENCE_UTC_OFFSET", DEFAULT_REFERENCE_UTC_OFFSET),
    )
    attendance_service = AttendanceService(
        store,
        policy=policy,
        checkout_radius_m=float(getattr(settings, "CHECKOUT_RADIUS_METERS", DEFAULT_CHECKOUT_RADIUS_M)),
        max_open=timedelta(hours=float(getattr(settings, "AUTO_CLOSE_MAX_OPEN_HOURS", DEFAULT_MAX_OPEN_HOURS))),
        clock=clock,
    )
    auto_closer = AutoCloser(attendance_service, store, clock=clock)

    return Container(
        store=store,
        policy=policy,
        attendance_service=attendance_service,
        auto_closer=auto_closer,
        conn=conn,
    )
