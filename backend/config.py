"""Application-wide configuration constants."""

import os
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Networking ---
API_HOST = os.environ.get("HOST", "0.0.0.0")
API_PORT = int(os.environ.get("PORT", "4000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# --- Liveness ---
HEARTBEAT_INTERVAL = float(os.environ.get("HEARTBEAT_INTERVAL", "30"))  # seconds
OUTBOX_SIZE = int(os.environ.get("OUTBOX_SIZE", "256"))  # frames per connection

# --- Identity ---
MAX_ID_ATTEMPTS = 8  # regenerations before giving up on a colliding id
GREETING = os.environ.get("GREETING", "Hello welcome I'm the tracker")
# Register peers as soon as they connect, using the transport address
REGISTER_ON_CONNECT = _env_bool("REGISTER_ON_CONNECT", False)

# --- Logging ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# --- Frontend ---
STATIC_DIR = Path(
    os.environ.get("STATIC_DIR", Path(__file__).parent.parent / "public")
)
