"""Scent tracking session recorder and scoring package."""

from .main import main
from .models import (
    GeoFix,
    MarkerKind,
    ObjectMarker,
    RecordingResult,
    SessionMode,
    TrackStats,
    TrailPoint,
)
from .errors import GeolocationError, TrackerAPIError

__all__ = [
    "main",
    "GeoFix",
    "MarkerKind",
    "ObjectMarker",
    "RecordingResult",
    "SessionMode",
    "TrackStats",
    "TrailPoint",
    "GeolocationError",
    "TrackerAPIError",
]
