"""Runtime configuration for Volunteer Connect.

Every value can be overridden through the environment; defaults target a
local development setup.
"""

import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# HTTP
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]

# Admin surface. Open by default: the admin pages ship without authentication.
# Set ADMIN_ACTIONS_OPEN=false to require the X-Admin-Token header.
ADMIN_ACTIONS_OPEN = _env_flag("ADMIN_ACTIONS_OPEN", True)
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

# Live store
STORE_WRITE_WORKERS = max(1, int(os.getenv("STORE_WRITE_WORKERS", "1")))
STORE_FLUSH_TIMEOUT = float(os.getenv("STORE_FLUSH_TIMEOUT", "5"))

# Server-sent event streams
STREAM_HEARTBEAT_SECONDS = float(os.getenv("STREAM_HEARTBEAT_SECONDS", "15"))
