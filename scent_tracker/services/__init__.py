"""Service layer package.

Exports high-level services consumed by orchestration / presentation layers.
"""

from .track_service import TrackService, TrackServiceConfig, build_track_record

__all__ = ["TrackService", "TrackServiceConfig", "build_track_record"]
