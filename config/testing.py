import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "url": os.getenv("LEDGER_DB_URL", "sqlite:///:memory:"),
    "device_id": "test-device",
}

SYNC_CONFIG = {
    "remote_base_url": "http://remote.invalid/api",
    "timeout": 1.0,
    "probe_url": "http://remote.invalid/health",
    "probe_interval": 3600.0,
    "probe_timeout": 0.5,
}

DEBUG = False
TESTING = True

LOG_LEVEL = "WARNING"
LOG_FILE = None
