from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..core.enums import WorkLocation
from ..geo.position import LocationAcquirer, PositionFix
from .api import AttendanceClient
from .sampler import LocationSampler
from .state import SamplerSupervisor, SessionState, SessionStatePoller

logger = logging.getLogger(__name__)


class TimeClock:
    """Client-side facade used by the dashboard widget.

    Owns the session state, the status poller and the location sampler, and
    exposes one explicit ``start``/``stop`` handle for all background work.
    Check-in and check-out acquire a position first; if that fails the
    backend is never called.
    """

    def __init__(
        self,
        client: AttendanceClient,
        acquirer: LocationAcquirer,
        *,
        poll_interval_seconds: float = 30,
        sample_interval_seconds: float = 300,
    ):
        self._client = client
        self._acquirer = acquirer
        self.state = SessionState()
        self._poller = SessionStatePoller(client, self.state, interval_seconds=poll_interval_seconds)
        self._sampler = LocationSampler(acquirer, self._submit_sample, interval_seconds=sample_interval_seconds)
        self._supervisor: Optional[SamplerSupervisor] = None

    @property
    def sampler(self) -> LocationSampler:
        return self._sampler

    def start(self) -> None:
        if self._supervisor is None:
            self._supervisor = SamplerSupervisor(self.state, self._sampler)
        self._poller.start()

    async def stop(self) -> None:
        await self._poller.aclose()
        if self._supervisor is not None:
            self._supervisor.close()
            self._supervisor = None
        await self._sampler.aclose()

    async def refresh(self) -> Dict[str, Any]:
        await self._poller.refresh()
        return self.state.view

    async def check_in(
        self,
        work_location: WorkLocation | str,
        *,
        notes: Optional[str] = None,
        late_reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        fix = await self._acquirer.acquire()
        payload = self._position_payload(fix)
        payload.update(
            {
                "work_location": work_location.value if isinstance(work_location, WorkLocation) else work_location,
                "notes": notes,
                "late_reason": late_reason,
            }
        )
        session = await self._client.check_in(payload)
        await self._refresh_after_change()
        return session

    async def check_out(self, *, notes: Optional[str] = None) -> Dict[str, Any]:
        fix = await self._acquirer.acquire()
        payload = self._position_payload(fix)
        payload["notes"] = notes
        session = await self._client.check_out(payload)
        await self._refresh_after_change()
        return session

    async def _refresh_after_change(self) -> None:
        # The backend already accepted the change; the poller catches up later.
        try:
            await self.refresh()
        except Exception as exc:
            logger.warning("session state refresh failed", extra={"error": str(exc)})

    async def _submit_sample(self, session_id: str, fix: PositionFix) -> None:
        payload = self._position_payload(fix)
        payload["session_id"] = session_id
        payload["accuracy"] = fix.accuracy
        recorded = await self._client.record_location(payload)
        if not recorded:
            logger.info("location sample not recorded", extra={"session_id": session_id})

    @staticmethod
    def _position_payload(fix: PositionFix) -> Dict[str, Any]:
        return {"latitude": fix.latitude, "longitude": fix.longitude, "address": fix.address}
