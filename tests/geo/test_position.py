from __future__ import annotations

import asyncio

import httpx
import pytest

from timeclock.core.enums import LocationFailure
from timeclock.core.exceptions import LocationUnavailable
from timeclock.geo.geocoder import NullGeocoder, OpenCageGeocoder, build_geocoder
from timeclock.geo.position import FixedPositionProvider, LocationAcquirer, PositionFix


class SlowProvider:
    async def acquire(self) -> PositionFix:
        await asyncio.sleep(5)
        return PositionFix(0.0, 0.0)


class DeniedProvider:
    async def acquire(self) -> PositionFix:
        raise LocationUnavailable(LocationFailure.PERMISSION_DENIED)


class StaticGeocoder:
    def __init__(self, address):
        self.address = address
        self.calls = []

    async def resolve(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return self.address


def _opencage(handler) -> OpenCageGeocoder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenCageGeocoder("key-123", client=client)


def test_timeout_becomes_location_unavailable():
    acquirer = LocationAcquirer(SlowProvider(), timeout=0.01)

    with pytest.raises(LocationUnavailable) as ei:
        asyncio.run(acquirer.acquire())

    assert ei.value.reason == LocationFailure.TIMEOUT
    assert ei.value.code == "LOCATION_UNAVAILABLE"


def test_permission_denied_propagates():
    acquirer = LocationAcquirer(DeniedProvider())

    with pytest.raises(LocationUnavailable) as ei:
        asyncio.run(acquirer.acquire())

    assert ei.value.reason == LocationFailure.PERMISSION_DENIED


def test_fix_is_enriched_with_address():
    geocoder = StaticGeocoder("Durbar Marg, Kathmandu")
    acquirer = LocationAcquirer(FixedPositionProvider(27.7172, 85.324, accuracy=12.0), geocoder=geocoder)

    fix = asyncio.run(acquirer.acquire())

    assert fix == PositionFix(27.7172, 85.324, accuracy=12.0, address="Durbar Marg, Kathmandu")
    assert geocoder.calls == [(27.7172, 85.324)]


def test_missing_address_is_fine():
    fix = asyncio.run(LocationAcquirer(FixedPositionProvider(1, 2)).acquire())

    assert fix.address is None
    assert (fix.latitude, fix.longitude) == (1.0, 2.0)


def test_opencage_returns_formatted_address():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["q"] = request.url.params["q"]
        seen["key"] = request.url.params["key"]
        return httpx.Response(200, json={"results": [{"formatted": "Thamel, Kathmandu"}]})

    address = asyncio.run(_opencage(handler).resolve(27.7, 85.3))

    assert address == "Thamel, Kathmandu"
    assert seen == {"q": "27.7,85.3", "key": "key-123"}


def test_opencage_failure_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="busy")

    assert asyncio.run(_opencage(handler).resolve(27.7, 85.3)) is None


def test_opencage_empty_results_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": []})

    assert asyncio.run(_opencage(handler).resolve(27.7, 85.3)) is None


def test_build_geocoder_without_key_is_null():
    assert isinstance(build_geocoder(""), NullGeocoder)
    assert isinstance(build_geocoder("abc"), OpenCageGeocoder)


class BrokenGeocoder:
    async def resolve(self, latitude, longitude):
        raise RuntimeError("geocoder exploded")


def test_geocoder_crash_does_not_block_acquisition():
    acquirer = LocationAcquirer(FixedPositionProvider(27.7172, 85.324, accuracy=5.0), geocoder=BrokenGeocoder())

    fix = asyncio.run(acquirer.acquire())

    assert fix == PositionFix(27.7172, 85.324, accuracy=5.0, address=None)


def test_opencage_non_object_body_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["captive portal"])

    acquirer = LocationAcquirer(FixedPositionProvider(27.7172, 85.324), geocoder=_opencage(handler))

    assert asyncio.run(acquirer.acquire()).address is None
    assert asyncio.run(_opencage(handler).resolve(27.7, 85.3)) is None


def test_opencage_malformed_results_yield_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": "nope"})

    assert asyncio.run(_opencage(handler).resolve(27.7, 85.3)) is None
