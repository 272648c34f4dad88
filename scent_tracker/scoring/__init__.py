"""Proximity detection, deviation scoring and track statistics."""

from .deviation import accuracy_percentage, nearest_distances, score_deviation
from .proximity import detect_newly_found, make_found_marker
from .stats import compute_track_stats

__all__ = [
    "accuracy_percentage",
    "nearest_distances",
    "score_deviation",
    "detect_newly_found",
    "make_found_marker",
    "compute_track_stats",
]
