"""Accuracy and drift gate applied to every incoming GPS fix."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from ..config import GPS_MIN_ACCURACY_M, GPS_MIN_DISTANCE_M
from ..models import Coordinate, GeoFix
from .distance import haversine_distance


@dataclass(frozen=True, slots=True)
class FilterConfig:
    """Thresholds used by :func:`should_accept` (metres)."""

    min_accuracy_m: float = GPS_MIN_ACCURACY_M
    min_distance_m: float = GPS_MIN_DISTANCE_M


DEFAULT_FILTER_CONFIG = FilterConfig()


def should_accept(
    new_fix: GeoFix,
    last_accepted: Optional[Coordinate],
    config: Optional[FilterConfig] = None,
) -> bool:
    """Decide whether ``new_fix`` becomes the next trail point.

    Rules are applied in order:

    1. a fix reporting an accuracy radius worse than ``min_accuracy_m`` is
       rejected, even when it would be the first point;
    2. the first fix of a sequence (``last_accepted`` is None) is accepted;
    3. a fix closer than ``min_distance_m`` to the last accepted point is
       rejected as drift.

    Args:
        new_fix: Candidate fix.
        last_accepted: Last point accepted into the same sequence, if any.
        config: Thresholds; defaults to the configured GPS constants.

    Returns:
        True when the fix should be appended.
    """

    cfg = config or DEFAULT_FILTER_CONFIG
    accuracy = new_fix.accuracy_m
    if accuracy and accuracy > cfg.min_accuracy_m:
        logging.debug(
            "GPS fix skipped: low accuracy (%.1fm > %.1fm)",
            accuracy,
            cfg.min_accuracy_m,
        )
        return False

    if last_accepted is None:
        return True

    moved = haversine_distance(last_accepted, new_fix)
    if moved < cfg.min_distance_m:
        logging.debug(
            "GPS fix skipped: drift (%.2fm < %.1fm)", moved, cfg.min_distance_m
        )
        return False
    return True


__all__ = ["DEFAULT_FILTER_CONFIG", "FilterConfig", "should_accept"]
