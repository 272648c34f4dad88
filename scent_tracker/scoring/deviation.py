"""Deviation of a recorded dog path from the reference trail."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import DEVIATION_BLOCK_ROWS
from ..geo.distance import haversine_matrix, to_latlon_array
from ..models import Coordinate, DeviationScore, accuracy_percentage

MetricArray = NDArray[np.float64]


def nearest_distances(
    reference_trail: Sequence[Coordinate],
    dog_path: Sequence[Coordinate],
    *,
    block_rows: int = DEVIATION_BLOCK_ROWS,
) -> MetricArray:
    """Return, per dog point, the distance to the closest reference point.

    Point-to-point nearest neighbour over the full reference trail. Rows are
    evaluated in blocks of ``block_rows`` dog points so the pairwise matrix
    stays bounded for long sessions.
    """

    trail = to_latlon_array(reference_trail)
    dog = to_latlon_array(dog_path)
    if trail.shape[0] == 0 or dog.shape[0] == 0:
        return np.zeros(0, dtype=float)
    step = max(1, int(block_rows))
    minima = np.empty(dog.shape[0], dtype=float)
    for start in range(0, dog.shape[0], step):
        block = haversine_matrix(dog[start : start + step], trail)
        minima[start : start + step] = block.min(axis=1)
    return minima


def score_deviation(
    reference_trail: Sequence[Coordinate],
    dog_path: Sequence[Coordinate],
) -> DeviationScore:
    """Average and maximum nearest-trail distance of the dog path.

    Returns ``DeviationScore(0, 0)`` when either sequence is empty.
    """

    minima = nearest_distances(reference_trail, dog_path)
    if minima.size == 0:
        return DeviationScore(0.0, 0.0)
    return DeviationScore(average_m=float(np.mean(minima)), max_m=float(np.max(minima)))


__all__ = ["accuracy_percentage", "nearest_distances", "score_deviation"]
