"""Hand finished sessions to the persistence service.

The statistics are computed here, once, from the frozen recorder buffers.
`build_track_record` is pure so the record layout can be tested without I/O;
`TrackService` adds the call to the tracker service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Mapping, Optional, Sequence
import uuid

from ..models import ObjectMarker, RecordingResult, TrackStats, TrailPoint
from ..scoring.stats import compute_track_stats
from ..tracker_client import TrackerClient

TrackRecord = Dict[str, Any]


def build_track_record(
    reference_trail: Sequence[TrailPoint],
    dog_path: Sequence[TrailPoint],
    placed_objects: Sequence[ObjectMarker],
    found_objects: Sequence[ObjectMarker],
    *,
    dog_id: Optional[str] = None,
    conditions: Optional[Mapping[str, Any]] = None,
    track_id: Optional[str] = None,
    date: Optional[datetime] = None,
    stats: Optional[TrackStats] = None,
) -> TrackRecord:
    """Return the opaque record stored for one training session."""

    stats = stats or compute_track_stats(
        reference_trail, dog_path, placed_objects, found_objects
    )
    when = date or datetime.now(timezone.utc)
    return {
        "id": track_id or uuid.uuid4().hex,
        "dogId": dog_id,
        "date": when.isoformat(),
        "trailPoints": [point.to_dict() for point in reference_trail],
        "dogPoints": [point.to_dict() for point in dog_path],
        "objects": [marker.to_dict() for marker in (*placed_objects, *found_objects)],
        "conditions": dict(conditions or {}),
        "stats": stats.to_dict(),
    }


@dataclass(slots=True)
class TrackServiceConfig:
    client: Optional[TrackerClient] = None
    logger: Optional[logging.Logger] = None


class TrackService:
    def __init__(self, config: TrackServiceConfig | None = None):
        self.config = config or TrackServiceConfig()
        self._client = self.config.client or TrackerClient()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)

    def save_session(
        self,
        tracking: RecordingResult,
        *,
        trail: Optional[RecordingResult] = None,
        dog_id: Optional[str] = None,
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> TrackRecord:
        """Score a finished tracking session and store it.

        The reference trail and placed objects come from ``trail`` when the
        trail was recorded in the same sitting, otherwise from the buffers the
        tracking recorder was seeded with.
        """

        reference = trail.points if trail is not None else tracking.reference_trail
        placed = (
            trail.placed_objects if trail is not None else tracking.placed_objects
        )
        dog = dog_id or tracking.metadata.get("dogId")
        if dog is None and trail is not None:
            dog = trail.metadata.get("dogId")
        stats = compute_track_stats(
            reference, tracking.points, placed, tracking.found_objects
        )
        record = build_track_record(
            reference,
            tracking.points,
            placed,
            tracking.found_objects,
            dog_id=dog,
            conditions=conditions,
            stats=stats,
        )
        self._log.info(
            "Saving track %s: trail %.0fm, dog %.0fm, avg deviation %.1fm, "
            "objects %d/%d",
            record["id"],
            stats.trail_distance_m,
            stats.dog_distance_m,
            stats.average_deviation_m,
            stats.objects_found,
            stats.objects_total,
        )
        stored = self._client.create_track(record)
        return {**record, **stored}


__all__ = ["TrackService", "TrackServiceConfig", "build_track_record"]
