from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Protocol

import httpx

from ..attendance.model import Location
from ..attendance.service import AttendanceService
from ..core.exceptions import AttendanceError


class AttendanceApiError(AttendanceError):
    """Error body returned by the attendance HTTP API."""

    def __init__(self, code: str, message: str, *, status_code: int, body: Optional[Dict[str, Any]] = None):
        self.code = code
        self.status_code = status_code
        self.body = body or {}
        super().__init__(message)


class AttendanceClient(Protocol):
    """What the client-side loops need from the attendance backend."""

    async def current(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def check_in(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def check_out(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def record_location(self, payload: Dict[str, Any]) -> bool:
        raise NotImplementedError


class HttpAttendanceClient:
    """Talks to the Flask routes under ``/api/attendance``."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    async def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = await self._http.request(method, f"/api/attendance{path}", json=payload)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            raise AttendanceApiError(
                str(body.get("error") or f"HTTP_{resp.status_code}"),
                str(body.get("message") or body.get("error") or resp.text),
                status_code=resp.status_code,
                body=body,
            )
        return body

    async def current(self) -> Dict[str, Any]:
        return await self._call("GET", "/current")

    async def check_in(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self._call("POST", "/check-in", payload))["session"]

    async def check_out(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self._call("POST", "/check-out", payload))["session"]

    async def record_location(self, payload: Dict[str, Any]) -> bool:
        return bool((await self._call("POST", "/location", payload)).get("recorded"))


class InProcessAttendanceClient:
    """Runs the service in a worker thread so the event loop never blocks on storage."""

    def __init__(self, service: AttendanceService, user_id: str):
        self._service = service
        self._user_id = user_id

    @staticmethod
    def _location(payload: Dict[str, Any]) -> Optional[Location]:
        if payload.get("latitude") is None or payload.get("longitude") is None:
            return None
        return Location(
            latitude=payload["latitude"],
            longitude=payload["longitude"],
            address=payload.get("address"),
        )

    async def current(self) -> Dict[str, Any]:
        view = await asyncio.to_thread(self._service.get_current_session, self._user_id)
        return view.to_dict()

    async def check_in(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await asyncio.to_thread(
            lambda: self._service.check_in(
                self._user_id,
                location=self._location(payload),
                work_location=payload.get("work_location"),
                notes=payload.get("notes"),
                late_reason=payload.get("late_reason"),
            )
        )
        return session.to_dict()

    async def check_out(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await asyncio.to_thread(
            lambda: self._service.check_out(
                self._user_id,
                location=self._location(payload),
                notes=payload.get("notes"),
            )
        )
        return session.to_dict()

    async def record_location(self, payload: Dict[str, Any]) -> bool:
        ping = await asyncio.to_thread(
            lambda: self._service.record_location(
                payload["session_id"],
                location=self._location(payload),
                accuracy=payload.get("accuracy"),
                user_id=self._user_id,
            )
        )
        return ping is not None
