"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_M = 6_371_000.0

DEFAULT_REFERENCE_UTC_OFFSET = "+05:45"
DEFAULT_LATE_CUTOFF = "10:01"
DEFAULT_CHECKOUT_RADIUS_M = 500.0

DEFAULT_MAX_OPEN_HOURS = 16
DEFAULT_AUTO_CLOSE_INTERVAL_SECONDS = 300

DEFAULT_SAMPLE_INTERVAL_SECONDS = 300
DEFAULT_LOCATION_TIMEOUT_SECONDS = 10
DEFAULT_STATUS_POLL_INTERVAL_SECONDS = 30

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 200
