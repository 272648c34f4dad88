"""Detect placed objects the dog has reached."""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List

from ..config import PROXIMITY_RADIUS_M
from ..geo.distance import haversine_distance
from ..models import Coordinate, MarkerKind, ObjectMarker, as_latlon


def detect_newly_found(
    live_position: Coordinate,
    placed_markers: Iterable[ObjectMarker],
    already_found_ids: AbstractSet[str],
    radius_m: float = PROXIMITY_RADIUS_M,
) -> List[str]:
    """Return ids of placed markers strictly within ``radius_m`` of the position.

    Markers whose id is in ``already_found_ids`` are never returned, and found
    markers in ``placed_markers`` are ignored. The function only reports
    candidates; committing them (and deduplicating against the authoritative
    found set) is the caller's job.
    """

    hits: List[str] = []
    for marker in placed_markers:
        if marker.kind is not MarkerKind.PLACED or marker.id in already_found_ids:
            continue
        distance = haversine_distance(live_position, marker)
        if distance < radius_m:
            logging.debug(
                "Object %s within %.1fm (radius %.1fm)", marker.id, distance, radius_m
            )
            hits.append(marker.id)
    return hits


def make_found_marker(
    marker_id: str, position: Coordinate, timestamp_ms: int
) -> ObjectMarker:
    """Build the found marker recorded for ``marker_id`` at ``position``."""

    lat, lon = as_latlon(position)
    return ObjectMarker(
        id=marker_id,
        latitude=lat,
        longitude=lon,
        kind=MarkerKind.FOUND,
        timestamp_ms=timestamp_ms,
    )


__all__ = ["detect_newly_found", "make_found_marker"]
