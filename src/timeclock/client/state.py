from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .api import AttendanceClient
from .sampler import LocationSampler

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[str], Optional[str]], None]


class SessionState:
    """Current attendance snapshot shared by the widget, the poller and the sampler.

    Listeners are called with ``(previous_id, current_id)`` whenever the id of
    the ACTIVE session changes, including to and from ``None``.
    """

    def __init__(self):
        self._view: Dict[str, Any] = {}
        self._listeners: List[Listener] = []

    @property
    def view(self) -> Dict[str, Any]:
        return self._view

    @property
    def active_session(self) -> Optional[Dict[str, Any]]:
        session = self._view.get("active_session")
        if session and session.get("status") == "ACTIVE":
            return session
        return None

    @property
    def active_session_id(self) -> Optional[str]:
        session = self.active_session
        return session["id"] if session else None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, view: Dict[str, Any]) -> None:
        previous = self.active_session_id
        self._view = dict(view or {})
        current = self.active_session_id
        if previous != current:
            for listener in list(self._listeners):
                listener(previous, current)


class SessionStatePoller:
    """Refreshes a SessionState from the backend on a fixed interval."""

    def __init__(self, client: AttendanceClient, state: SessionState, *, interval_seconds: float = 30):
        self._client = client
        self._state = state
        self._interval = float(interval_seconds)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> None:
        self._state.update(await self._client.current())

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="session-state-poller")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as exc:
                logger.warning("session state refresh failed", extra={"error": str(exc)})
            await asyncio.sleep(self._interval)


class SamplerSupervisor:
    """Ties the sampler's lifetime to the session being ACTIVE."""

    def __init__(self, state: SessionState, sampler: LocationSampler):
        self._sampler = sampler
        self._unsubscribe = state.subscribe(self._on_change)
        if state.active_session_id:
            sampler.start(state.active_session_id)

    def _on_change(self, previous: Optional[str], current: Optional[str]) -> None:
        if current:
            self._sampler.start(current)
        else:
            self._sampler.stop()

    def close(self) -> None:
        self._unsubscribe()
        self._sampler.stop()
