"""HTTP client for the tracker service (tracks and live sessions)."""

from .client import TrackerClient
from .live_sessions import LiveSessionSink
from .session import build_retry, create_default_session, get_default_session

__all__ = [
    "TrackerClient",
    "LiveSessionSink",
    "build_retry",
    "create_default_session",
    "get_default_session",
]
