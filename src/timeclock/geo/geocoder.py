from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

OPENCAGE_URL = "https://api.opencagedata.com/geocode/v1/json"


class ReverseGeocoder(Protocol):
    """Coordinates to a human readable address. Must never raise."""

    async def resolve(self, latitude: float, longitude: float) -> Optional[str]:
        raise NotImplementedError


class NullGeocoder:
    async def resolve(self, latitude: float, longitude: float) -> Optional[str]:
        return None


class OpenCageGeocoder:
    def __init__(self, api_key: str, *, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def resolve(self, latitude: float, longitude: float) -> Optional[str]:
        params = {"q": f"{latitude},{longitude}", "key": self._api_key, "no_annotations": 1, "limit": 1}
        try:
            if self._client is not None:
                resp = await self._client.get(OPENCAGE_URL, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(OPENCAGE_URL, params=params)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            # Address is cosmetic; the check-in/out flow goes on without it.
            logger.warning("reverse geocoding failed", extra={"error": str(exc)})
            return None

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            logger.warning("reverse geocoding returned an unexpected body")
            return None
        if not results or not isinstance(results[0], dict):
            return None
        formatted = results[0].get("formatted")
        return formatted if isinstance(formatted, str) else None


def build_geocoder(api_key: str) -> ReverseGeocoder:
    if api_key:
        return OpenCageGeocoder(api_key)
    return NullGeocoder()
