from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ..attendance.repository import SessionStore
from ..attendance.service import AttendanceService
from ..common.datetime_utils import as_utc, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    session_id: str
    user_id: str
    success: bool
    closed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "success": self.success,
            "closed": self.closed,
            "error": self.error,
        }


@dataclass
class SweepReport:
    started_at: datetime
    results: list[SweepResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def closed(self) -> int:
        return sum(1 for r in self.results if r.closed)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


class AutoCloser:
    """Force-closes sessions left open longer than the service's ``max_open``.

    Each session is handled on its own: a failure is recorded in the report
    and the sweep moves on. A session checked out between selection and
    processing comes back as closed=False (``auto_close`` is a no-op then).
    """

    def __init__(
        self,
        service: AttendanceService,
        store: SessionStore,
        *,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._service = service
        self._store = store
        self._clock = clock

    def sweep(self, *, now: Optional[datetime] = None) -> SweepReport:
        now = as_utc(now or self._clock())
        report = SweepReport(started_at=now)

        candidates = self._store.list_active_opened_before(now - self._service.max_open)
        for session in candidates:
            try:
                closed = self._service.auto_close(session.session_id, now=now)
                report.results.append(
                    SweepResult(session_id=session.session_id, user_id=session.user_id, success=True, closed=closed is not None)
                )
            except Exception as exc:
                logger.exception(
                    "auto_close failed",
                    extra={"session_id": session.session_id, "user_id": session.user_id, "error": str(exc)},
                )
                report.results.append(
                    SweepResult(session_id=session.session_id, user_id=session.user_id, success=False, error=str(exc))
                )

        logger.info(
            "auto_close sweep processed=%s closed=%s failed=%s",
            report.processed,
            report.closed,
            report.failed,
        )
        return report

    def run_forever(self, *, interval_seconds: float, once: bool = False) -> None:
        while True:
            try:
                self.sweep()
            except Exception:
                # Listing candidates failed (DB down); try again next interval.
                logger.exception("auto_close sweep failed")
            if once:
                break
            time.sleep(interval_seconds)
