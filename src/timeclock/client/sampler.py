from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..core.exceptions import LocationUnavailable
from ..geo.position import LocationAcquirer, PositionFix

logger = logging.getLogger(__name__)

SubmitFn = Callable[[str, PositionFix], Awaitable[Any]]


class LocationSampler:
    """Periodic position sampling for one ACTIVE session.

    ``start`` submits a sample right away and then one per interval until
    ``stop``. A failed acquisition or submission is logged and the loop keeps
    going; only cancellation ends it.
    """

    def __init__(self, acquirer: LocationAcquirer, submit: SubmitFn, *, interval_seconds: float = 300):
        self._acquirer = acquirer
        self._submit = submit
        self._interval = float(interval_seconds)
        self._task: Optional[asyncio.Task] = None
        self._session_id: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, session_id: str) -> None:
        if self.running and self._session_id == session_id:
            return
        self.stop()
        self._session_id = session_id
        self._task = asyncio.get_running_loop().create_task(
            self._run(session_id), name=f"location-sampler-{session_id}"
        )
        logger.info("location sampler started", extra={"session_id": session_id})

    def stop(self) -> None:
        task, session_id = self._task, self._session_id
        self._task = None
        self._session_id = None
        if task is not None and not task.done():
            task.cancel()
            logger.info("location sampler stopped", extra={"session_id": session_id})

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, session_id: str) -> None:
        while True:
            await self._sample_once(session_id)
            await asyncio.sleep(self._interval)

    async def _sample_once(self, session_id: str) -> bool:
        try:
            fix = await self._acquirer.acquire()
        except LocationUnavailable as exc:
            logger.warning("location sample skipped: %s", exc.reason.value, extra={"session_id": session_id})
            return False
        except Exception as exc:
            logger.warning("location sample skipped", exc_info=True, extra={"session_id": session_id, "error": str(exc)})
            return False

        if self._session_id != session_id:
            # stop() was requested while acquiring
            return False

        try:
            await self._submit(session_id, fix)
        except Exception as exc:
            logger.warning("location sample not submitted", exc_info=True, extra={"session_id": session_id, "error": str(exc)})
            return False
        return True
