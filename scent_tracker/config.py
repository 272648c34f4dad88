"""Central configuration for the scent tracking toolkit.

All values are constants imported by the rest of the package. Adjust as needed
for your environment or override them through environment variables
(optionally via a local `.env`). Embedding applications can also pass
explicit values to the constructors that consume these defaults.
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# GPS sampling
# ---------------------------------------------------------------------------
# Ignore fixes whose reported accuracy radius is worse than this (metres).
GPS_MIN_ACCURACY_M = _env_float("GPS_MIN_ACCURACY_M", 20.0)

# Only record a new point once the handler/dog moved at least this far
# (metres). Smaller moves are treated as GPS drift.
GPS_MIN_DISTANCE_M = _env_float("GPS_MIN_DISTANCE_M", 4.0)

# Time allowed for the platform to produce a fix (milliseconds). Generous
# because satellite acquisition outdoors can be slow.
GPS_FIX_TIMEOUT_MS = _env_int("GPS_FIX_TIMEOUT_MS", 15000)

# Maximum age of a cached platform fix (milliseconds). 0 forces fresh fixes.
GPS_MAXIMUM_AGE_MS = _env_int("GPS_MAXIMUM_AGE_MS", 0)

# Request the high-accuracy positioning mode from the platform.
GPS_HIGH_ACCURACY = _env_bool("GPS_HIGH_ACCURACY", True)


# ---------------------------------------------------------------------------
# Object detection
# ---------------------------------------------------------------------------
# A placed object counts as found once the dog is strictly closer than this
# (metres).
PROXIMITY_RADIUS_M = _env_float("PROXIMITY_RADIUS_M", 7.0)

# When True, proximity hits are held as pending until the handler confirms
# them; otherwise they are committed immediately.
CONFIRM_BEFORE_MARKING_FOUND = _env_bool("CONFIRM_BEFORE_MARKING_FOUND", False)


# ---------------------------------------------------------------------------
# Crash-resume snapshots
# ---------------------------------------------------------------------------
# Snapshots older than this (seconds) are never offered for resume.
RESUME_MAX_AGE_SECONDS = _env_int("RESUME_MAX_AGE_SECONDS", 24 * 3600)

# JSON file used as the local key-value store by `replay --resume-store`
# when no path is given.
RESUME_STORE_PATH = os.getenv("RESUME_STORE_PATH", ".scent_tracker_state.json")


# ---------------------------------------------------------------------------
# Tracker API (key-value backed HTTP service)
# ---------------------------------------------------------------------------
TRACKER_API_BASE_URL = os.getenv("TRACKER_API_BASE_URL", "http://localhost:8000")

# Bearer token forwarded to the service. Do not hardcode secrets.
TRACKER_API_TOKEN = os.getenv("TRACKER_API_TOKEN", "")

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# HTTP session pool sizes for concurrent live-session pushes.
HTTP_POOL_CONNECTIONS = _env_int("HTTP_POOL_CONNECTIONS", 10)
HTTP_POOL_MAXSIZE = _env_int("HTTP_POOL_MAXSIZE", 10)

# Retries for GET requests answered with 502/503/504. Writes are not retried.
HTTP_RETRY_TOTAL = _env_int("HTTP_RETRY_TOTAL", 2)
HTTP_RETRY_BACKOFF_SECONDS = _env_float("HTTP_RETRY_BACKOFF_SECONDS", 0.5)

# Live-session snapshots fetched by observers are reused for this long
# (seconds); observers poll every few seconds.
LIVE_SESSION_CACHE_TTL_SECONDS = _env_float("LIVE_SESSION_CACHE_TTL_SECONDS", 3.0)
LIVE_SESSION_CACHE_SIZE = _env_int("LIVE_SESSION_CACHE_SIZE", 64)


# ---------------------------------------------------------------------------
# Scoring / history
# ---------------------------------------------------------------------------
# Dog points are compared against the trail in blocks of this many rows to
# keep the distance matrix bounded for long sessions.
DEVIATION_BLOCK_ROWS = _env_int("DEVIATION_BLOCK_ROWS", 2048)

# "Recent activity" window for the training summary (days).
HISTORY_RECENT_DAYS = _env_int("HISTORY_RECENT_DAYS", 30)

# Number of months reported in the monthly progress table.
HISTORY_MONTHS = _env_int("HISTORY_MONTHS", 6)

# Minimum nearest-trail deviation (metres) highlighted on deviation maps.
DEVIATION_MAP_THRESHOLD_M = _env_float("DEVIATION_MAP_THRESHOLD_M", 15.0)
