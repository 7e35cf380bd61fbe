"""Example: drive the time clock without Flask.

The service layer is used in-process through the same TimeClock facade the
dashboard widget uses over HTTP. Run with APP_ENV=testing for in-memory storage.
"""

import asyncio

from timeclock.client.api import InProcessAttendanceClient
from timeclock.client.timeclock import TimeClock
from timeclock.container import build_container
from timeclock.core.enums import WorkLocation
from timeclock.geo.geocoder import build_geocoder
from timeclock.geo.position import FixedPositionProvider, LocationAcquirer
from timeclock.main import load_settings


async def main():
    settings = load_settings()
    container = build_container(settings)

    acquirer = LocationAcquirer(
        FixedPositionProvider(27.7172, 85.3240, accuracy=15.0),
        geocoder=build_geocoder(settings.OPENCAGE_API_KEY),
        timeout=settings.LOCATION_TIMEOUT_SECONDS,
    )
    clock = TimeClock(
        InProcessAttendanceClient(container.attendance_service, user_id="1"),
        acquirer,
        poll_interval_seconds=settings.STATUS_POLL_INTERVAL_SECONDS,
        sample_interval_seconds=settings.LOCATION_SAMPLE_INTERVAL_SECONDS,
    )

    clock.start()
    try:
        session = await clock.check_in(WorkLocation.OFFICE, late_reason="example run")
        print("checked in:", session["id"], "late:", session["is_late"])
        await asyncio.sleep(1)
        session = await clock.check_out(notes="example done")
        print("checked out:", session["status"], "hours:", round(session["total_hours"], 4))
    finally:
        await clock.stop()


if __name__ == "__main__":
    asyncio.run(main())
