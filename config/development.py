import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

# On-device ledger; records are written here first and replicated later.
DB_CONFIG = {
    "url": os.getenv("LEDGER_DB_URL", "sqlite:///instance/ledger.db"),
    "device_id": os.getenv("DEVICE_ID", ""),
    "echo": bool(int(os.getenv("DB_ECHO", "0"))),
}

SYNC_CONFIG = {
    "remote_base_url": os.getenv("REMOTE_BASE_URL", "http://localhost:8000/api"),
    "remote_api_key": os.getenv("REMOTE_API_KEY", ""),
    "timeout": float(os.getenv("SYNC_TIMEOUT_SECONDS", "10")),
    "probe_url": os.getenv("PROBE_URL", "https://www.google.com"),
    "probe_interval": float(os.getenv("PROBE_INTERVAL_SECONDS", "30")),
    "probe_timeout": float(os.getenv("PROBE_TIMEOUT_SECONDS", "5")),
}

DEBUG = True

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_FILE = os.getenv("LOG_FILE") or None
