"""Settings shared by every environment.

Environment modules star-import this one and override what differs.
"""

import os

from ..core import constants as _defaults

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timeclock_db"),
}

# "mysql" or "memory"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql").lower()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Punctuality is judged on the wall clock of this fixed offset, not the server's.
REFERENCE_UTC_OFFSET = os.getenv("REFERENCE_UTC_OFFSET", _defaults.DEFAULT_REFERENCE_UTC_OFFSET)
LATE_CUTOFF = os.getenv("LATE_CUTOFF", _defaults.DEFAULT_LATE_CUTOFF)

CHECKOUT_RADIUS_METERS = float(os.getenv("CHECKOUT_RADIUS_METERS", _defaults.DEFAULT_CHECKOUT_RADIUS_M))

AUTO_CLOSE_MAX_OPEN_HOURS = float(os.getenv("AUTO_CLOSE_MAX_OPEN_HOURS", _defaults.DEFAULT_MAX_OPEN_HOURS))
AUTO_CLOSE_INTERVAL_SECONDS = int(os.getenv("AUTO_CLOSE_INTERVAL_SECONDS", _defaults.DEFAULT_AUTO_CLOSE_INTERVAL_SECONDS))

LOCATION_SAMPLE_INTERVAL_SECONDS = int(os.getenv("LOCATION_SAMPLE_INTERVAL_SECONDS", _defaults.DEFAULT_SAMPLE_INTERVAL_SECONDS))
LOCATION_TIMEOUT_SECONDS = float(os.getenv("LOCATION_TIMEOUT_SECONDS", _defaults.DEFAULT_LOCATION_TIMEOUT_SECONDS))
STATUS_POLL_INTERVAL_SECONDS = int(os.getenv("STATUS_POLL_INTERVAL_SECONDS", _defaults.DEFAULT_STATUS_POLL_INTERVAL_SECONDS))

# Bearer token expected by the HTTP auto-checkout trigger
CRON_SECRET = os.getenv("CRON_SECRET", "")

OPENCAGE_API_KEY = os.getenv("OPENCAGE_API_KEY", "")
