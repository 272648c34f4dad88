"""Live recording of trails and dog paths."""

from .recorder import (
    GpsStatus,
    LiveSessionSink,
    RecorderConfig,
    RecorderState,
    SessionRecorder,
)
from .resume import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
    ResumeCache,
    ResumeSnapshot,
)

__all__ = [
    "GpsStatus",
    "LiveSessionSink",
    "RecorderConfig",
    "RecorderState",
    "SessionRecorder",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorage",
    "ResumeCache",
    "ResumeSnapshot",
]
