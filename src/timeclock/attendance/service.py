from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Union

from ..common.datetime_utils import as_utc, format_elapsed, hours_between, now_utc
from ..common.validators import optional_text, require_coordinate
from ..core.enums import SessionStatus, WorkLocation
from ..core.exceptions import (
    CheckInLocationMissing,
    LateJustificationRequired,
    LocationRequired,
    NoActiveSession,
    OutOfRadius,
    SessionAlreadyActive,
    ValidationError,
)
from ..geo.distance import haversine_distance
from ..punctuality.classifier import PunctualityPolicy
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

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentSessionView:
    """Read model polled by the dashboard widget."""

    active_session: Optional[AttendanceSession]
    latest_ping: Optional[LocationPing]
    today_sessions: Sequence[AttendanceSession] = field(default_factory=list)
    elapsed: str = "00:00:00"

    @property
    def has_active_session(self) -> bool:
        return self.active_session is not None

    def to_dict(self) -> dict:
        return {
            "active_session": self.active_session.to_dict() if self.active_session else None,
            "latest_location": self.latest_ping.to_dict() if self.latest_ping else None,
            "today_sessions": [s.to_dict() for s in self.today_sessions],
            "has_active_session": self.has_active_session,
            "elapsed": self.elapsed,
        }


def _checked_location(location: Optional[Location]) -> Location:
    if location is None:
        raise LocationRequired()
    return Location(
        latitude=require_coordinate(location.latitude, "latitude", limit=90),
        longitude=require_coordinate(location.longitude, "longitude", limit=180),
        address=optional_text(location.address),
    )


def _checked_work_location(value: Union[WorkLocation, str, None]) -> WorkLocation:
    try:
        return WorkLocation(str(value.value if isinstance(value, WorkLocation) else value).upper())
    except ValueError:
        raise ValidationError("Work location must be OFFICE or SITE")


class AttendanceService:
    """Session state machine: NONE -> ACTIVE -> CLOSED | AUTO_CLOSED."""

    def __init__(
        self,
        store: SessionStore,
        *,
        policy: PunctualityPolicy,
        checkout_radius_m: float,
        max_open: timedelta,
        clock: Callable[[], datetime] = now_utc,
    ):
        if max_open <= timedelta(0):
            raise ValueError("max_open must be positive")
        self._store = store
        self._policy = policy
        self._radius_m = float(checkout_radius_m)
        self._max_open = max_open
        self._clock = clock

    @property
    def max_open(self) -> timedelta:
        return self._max_open

    def _now(self, now: Optional[datetime]) -> datetime:
        return as_utc(now or self._clock())

    def check_in(
        self,
        user_id: str,
        *,
        location: Optional[Location],
        work_location: Union[WorkLocation, str, None],
        notes: Optional[str] = None,
        late_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceSession:
        now = self._now(now)
        location = _checked_location(location)
        work_location = _checked_work_location(work_location)

        # Fast path; the store re-checks atomically on insert.
        if self._store.get_active_for_user(user_id):
            raise SessionAlreadyActive()

        punctuality = self._policy.classify(now)
        late_reason = optional_text(late_reason)
        if punctuality.is_late and not late_reason:
            raise LateJustificationRequired(late_minutes=punctuality.late_minutes or 0)

        session = self._store.create_session(
            NewSession(
                user_id=user_id,
                work_date=punctuality.work_date,
                work_location=work_location,
                check_in_time=now,
                check_in_location=location,
                is_late=punctuality.is_late,
                late_minutes=punctuality.late_minutes,
                late_reason=late_reason if punctuality.is_late else None,
                check_in_notes=optional_text(notes),
            )
        )
        self._store.append_ping(
            session_id=session.session_id,
            timestamp=now,
            latitude=location.latitude,
            longitude=location.longitude,
            address=location.address,
        )

        logger.info(
            "check_in is_late=%s late_minutes=%s",
            session.is_late,
            session.late_minutes,
            extra={"user_id": user_id, "session_id": session.session_id},
        )
        return session

    def record_location(
        self,
        session_id: str,
        *,
        location: Optional[Location],
        accuracy: Optional[float] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[LocationPing]:
        """Best-effort ping append. Never raises; returns None when nothing was recorded."""
        try:
            now = self._now(now)
            location = _checked_location(location)

            session = self._store.get_session(session_id)
            if not session or not session.is_active:
                logger.info("ping ignored: session not active", extra={"session_id": session_id})
                return None
            if user_id is not None and session.user_id != user_id:
                logger.warning("ping ignored: session owned by another user", extra={"session_id": session_id, "user_id": user_id})
                return None

            ping = self._store.append_ping(
                session_id=session_id,
                timestamp=now,
                latitude=location.latitude,
                longitude=location.longitude,
                address=location.address,
                accuracy=float(accuracy) if accuracy is not None else None,
            )
            if ping is None:
                logger.info("ping ignored: session closed concurrently", extra={"session_id": session_id})
            return ping
        except Exception as exc:
            logger.warning(
                "ping recording failed",
                exc_info=True,
                extra={"session_id": session_id, "error": str(exc)},
            )
            return None

    def check_out(
        self,
        user_id: str,
        *,
        location: Optional[Location],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceSession:
        session = self._store.get_active_for_user(user_id)
        if not session:
            raise NoActiveSession()
        return self._check_out(session, location=location, notes=notes, now=now)

    def check_out_session(
        self,
        session_id: str,
        *,
        location: Optional[Location],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceSession:
        session = self._store.get_session(session_id)
        if not session or not session.is_active:
            raise NoActiveSession()
        return self._check_out(session, location=location, notes=notes, now=now)

    def _check_out(
        self,
        session: AttendanceSession,
        *,
        location: Optional[Location],
        notes: Optional[str],
        now: Optional[datetime],
    ) -> AttendanceSession:
        now = self._now(now)
        location = _checked_location(location)

        check_in_location = session.check_in_location
        if check_in_location is None:
            logger.error(
                "integrity violation: active session has no check-in location",
                extra={"user_id": session.user_id, "session_id": session.session_id},
            )
            raise CheckInLocationMissing(session.session_id)

        distance = haversine_distance(check_in_location.point, location.point)
        if distance > self._radius_m:
            logger.info(
                "check_out blocked distance_m=%.1f",
                distance,
                extra={"user_id": session.user_id, "session_id": session.session_id},
            )
            raise OutOfRadius(distance_m=distance, radius_m=self._radius_m)

        if now <= session.check_in_time:
            raise ValidationError("Check-out time must be after check-in time")

        # Final ping goes in while the session is still ACTIVE.
        self._store.append_ping(
            session_id=session.session_id,
            timestamp=now,
            latitude=location.latitude,
            longitude=location.longitude,
            address=location.address,
        )
        closed = self._store.close_session(
            session.session_id,
            SessionClosure(
                status=SessionStatus.CLOSED,
                check_out_time=now,
                total_hours=hours_between(session.check_in_time, now),
                check_out_location=location,
                check_out_notes=optional_text(notes),
            ),
        )
        if closed is None:
            # Lost the race against the auto-closer or a second check-out.
            raise NoActiveSession()

        logger.info(
            "check_out total_hours=%.2f distance_m=%.1f",
            closed.total_hours or 0.0,
            distance,
            extra={"user_id": closed.user_id, "session_id": closed.session_id},
        )
        return closed

    def auto_close(self, session_id: str, *, now: Optional[datetime] = None) -> Optional[AttendanceSession]:
        """Force-close a stale session without a location. No-op unless still ACTIVE and overdue."""
        now = self._now(now)

        session = self._store.get_session(session_id)
        if not session or not session.is_active:
            return None
        if now - session.check_in_time <= self._max_open:
            return None

        closed = self._store.close_session(
            session_id,
            SessionClosure(
                status=SessionStatus.AUTO_CLOSED,
                check_out_time=now,
                total_hours=hours_between(session.check_in_time, now),
            ),
        )
        if closed is not None:
            logger.info(
                "auto_close total_hours=%.2f",
                closed.total_hours or 0.0,
                extra={"user_id": closed.user_id, "session_id": closed.session_id},
            )
        return closed

    def get_current_session(self, user_id: str, *, now: Optional[datetime] = None) -> CurrentSessionView:
        now = self._now(now)
        active = self._store.get_active_for_user(user_id)
        today = self._store.list_for_user_and_date(user_id, self._policy.local_date(now))

        if not active:
            return CurrentSessionView(active_session=None, latest_ping=None, today_sessions=today)

        return CurrentSessionView(
            active_session=active,
            latest_ping=self._store.latest_ping(active.session_id),
            today_sessions=today,
            elapsed=format_elapsed(active.check_in_time, now),
        )

    def list_pings(self, session_id: str, *, user_id: Optional[str] = None) -> Sequence[LocationPing]:
        session = self._store.get_session(session_id)
        if not session or (user_id is not None and session.user_id != user_id):
            raise ValidationError("Session not found")
        return self._store.list_pings(session_id)

    def get_history(self, criteria: HistoryFilter, *, page: int = 1, limit: int = 20) -> HistoryPage:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        if criteria.date_from and criteria.date_to and criteria.date_from > criteria.date_to:
            raise ValidationError("date_from must not be after date_to")
        return self._store.search(criteria, page=page, limit=limit)
