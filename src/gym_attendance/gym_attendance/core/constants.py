"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SYNC_TIMEOUT_SECONDS = 10.0
DEFAULT_PROBE_INTERVAL_SECONDS = 30.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
DEFAULT_PROBE_URL = "https://www.google.com"
DEFAULT_RECENT_ACTIVITY_LIMIT = 5

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

DEVICE_ID_META_KEY = "device_id"
