from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..core.enums import LocationFailure
from ..core.exceptions import LocationUnavailable
from .geocoder import NullGeocoder, ReverseGeocoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    address: Optional[str] = None


class PositionProvider(Protocol):
    """Device/browser geolocation.

    Raise ``LocationUnavailable`` with UNAVAILABLE or PERMISSION_DENIED when
    the position cannot be read; timeouts are enforced by the caller.
    """

    async def acquire(self) -> PositionFix:
        raise NotImplementedError


class FixedPositionProvider:
    """Always reports the same coordinates (kiosks, demos, tests)."""

    def __init__(self, latitude: float, longitude: float, *, accuracy: Optional[float] = None):
        self._fix = PositionFix(latitude=float(latitude), longitude=float(longitude), accuracy=accuracy)

    async def acquire(self) -> PositionFix:
        return self._fix


class LocationAcquirer:
    """Bounded-time position acquisition plus best-effort address lookup."""

    def __init__(
        self,
        provider: PositionProvider,
        *,
        geocoder: Optional[ReverseGeocoder] = None,
        timeout: float = 10.0,
    ):
        self._provider = provider
        self._geocoder = geocoder or NullGeocoder()
        self._timeout = float(timeout)

    async def acquire(self) -> PositionFix:
        try:
            fix = await asyncio.wait_for(self._provider.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise LocationUnavailable(
                LocationFailure.TIMEOUT,
                f"Timed out after {self._timeout:g}s waiting for a position",
            )

        if fix.address:
            return fix

        try:
            address = await self._geocoder.resolve(fix.latitude, fix.longitude)
        except Exception as exc:
            # Address is cosmetic; never block the caller on it.
            logger.warning("address lookup failed", exc_info=True, extra={"error": str(exc)})
            address = None
        return PositionFix(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            address=address,
        )
