"""Final statistics for a finished trail / dog-path pair."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..geo.distance import path_length
from ..models import ObjectMarker, TrackStats, TrailPoint
from .deviation import score_deviation


def _span_seconds(points: Sequence[TrailPoint]) -> float:
    if len(points) < 2:
        return 0.0
    return max(0.0, (points[-1].timestamp_ms - points[0].timestamp_ms) / 1000.0)


def compute_track_stats(
    reference_trail: Sequence[TrailPoint],
    dog_path: Sequence[TrailPoint],
    placed_objects: Iterable[ObjectMarker] = (),
    found_objects: Iterable[ObjectMarker] = (),
) -> TrackStats:
    """Compute :class:`TrackStats`; a pure function of its inputs.

    Duration is the time spanned by the dog path, or by the reference trail
    when fewer than two dog points exist. Found objects are counted by
    distinct id.
    """

    trail_distance = path_length(reference_trail)
    dog_distance = path_length(dog_path)
    duration = _span_seconds(dog_path)
    if len(dog_path) < 2:
        duration = _span_seconds(reference_trail)
    average_speed = dog_distance / duration if duration > 0 else 0.0
    deviation = score_deviation(reference_trail, dog_path)
    found_ids = {marker.id for marker in found_objects}
    return TrackStats(
        trail_distance_m=trail_distance,
        dog_distance_m=dog_distance,
        duration_s=duration,
        average_speed_mps=average_speed,
        average_deviation_m=deviation.average_m,
        max_deviation_m=deviation.max_m,
        objects_found=len(found_ids),
        objects_total=sum(1 for _ in placed_objects),
    )


__all__ = ["compute_track_stats"]
