"""Close attendance sessions left open past AUTO_CLOSE_MAX_OPEN_HOURS.

Run under cron with ``--once`` or as a long-lived worker.
"""

from __future__ import annotations

import argparse
import logging

from timeclock.container import build_container
from timeclock.core.logging import configure_logging
from timeclock.main import load_settings

logger = logging.getLogger("auto_close_worker")


def main() -> None:
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Auto-close stale attendance sessions.")
    parser.add_argument("--once", action="store_true", help="Run one sweep and exit.")
    parser.add_argument(
        "--interval",
        type=int,
        default=int(getattr(settings, "AUTO_CLOSE_INTERVAL_SECONDS", 300)),
        help="Seconds between sweeps.",
    )
    args = parser.parse_args()

    configure_logging(level=getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(settings)
    logger.info(
        "auto_close worker starting (max_open=%s, interval=%ss)",
        container.attendance_service.max_open,
        args.interval,
    )
    container.auto_closer.run_forever(interval_seconds=args.interval, once=args.once)


if __name__ == "__main__":
    main()
