"""Great-circle distance helpers.

Every distance in the package (sample filtering, proximity checks, deviation
scoring, track statistics) goes through this module. ``haversine_distance``
is the scalar form; ``haversine_matrix`` evaluates the same formula over all
pairs of two point sets with numpy.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from ..models import Coordinate, as_latlon

EARTH_RADIUS_M = 6_371_000.0

MetricArray = NDArray[np.float64]


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance in metres between two coordinates."""

    lat1, lon1 = as_latlon(a)
    lat2, lon2 = as_latlon(b)
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(max(h, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def path_length(points: Iterable[Coordinate]) -> float:
    """Sum of haversine distances over consecutive points (0 for < 2 points)."""

    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += haversine_distance(previous, point)
        previous = point
    return total


def to_latlon_array(points: Sequence[Coordinate]) -> MetricArray:
    """Return an ``(n, 2)`` float array of ``(lat, lon)`` degrees."""

    if len(points) == 0:
        return np.empty((0, 2), dtype=float)
    return np.asarray([as_latlon(point) for point in points], dtype=float)


def haversine_matrix(
    a_points: Sequence[Coordinate] | MetricArray,
    b_points: Sequence[Coordinate] | MetricArray,
) -> MetricArray:
    """Return the ``(len(a), len(b))`` matrix of pairwise distances in metres."""

    a = _as_array(a_points)
    b = _as_array(b_points)
    if a.shape[0] == 0 or b.shape[0] == 0:
        return np.zeros((a.shape[0], b.shape[0]), dtype=float)
    lat1 = a[:, 0][:, np.newaxis]
    lon1 = a[:, 1][:, np.newaxis]
    lat2 = b[:, 0][np.newaxis, :]
    lon2 = b[:, 1][np.newaxis, :]
    d_lat = np.radians(lat2 - lat1)
    d_lon = np.radians(lon2 - lon1)
    h = (
        np.sin(d_lat / 2) ** 2
        + np.cos(np.radians(lat1)) * np.cos(np.radians(lat2)) * np.sin(d_lon / 2) ** 2
    )
    # Rounding can push h marginally outside [0, 1] for near-antipodal pairs.
    h = np.clip(h, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def _as_array(points: Sequence[Coordinate] | MetricArray) -> MetricArray:
    if isinstance(points, np.ndarray):
        array = np.asarray(points, dtype=float)
        if array.ndim != 2 or (array.size and array.shape[1] != 2):
            raise ValueError("Expected a sequence of (lat, lon) coordinates")
        return array.reshape(-1, 2)
    return to_latlon_array(points)


__all__ = [
    "EARTH_RADIUS_M",
    "haversine_distance",
    "haversine_matrix",
    "path_length",
    "to_latlon_array",
]
