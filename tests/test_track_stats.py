import pytest

from scent_tracker.geo.distance import path_length
from scent_tracker.models import MarkerKind, ObjectMarker, TrackStats, TrailPoint
from scent_tracker.scoring.stats import compute_track_stats


def _found(marker_id):
    return ObjectMarker(marker_id, 50.0, 30.0, MarkerKind.FOUND, 0)


def test_stats_for_dog_following_trail(trail_points, placed_marker):
    dog = [TrailPoint(p.latitude, p.longitude, i * 10_000) for i, p in enumerate(trail_points)]
    stats = compute_track_stats(
        trail_points, dog, [placed_marker], [_found("obj-1"), _found("obj-1")]
    )
    assert stats.trail_distance_m == pytest.approx(path_length(trail_points))
    assert stats.dog_distance_m == pytest.approx(stats.trail_distance_m)
    assert stats.duration_s == pytest.approx(100.0)
    assert stats.average_speed_mps == pytest.approx(stats.dog_distance_m / 100.0)
    assert stats.average_deviation_m == pytest.approx(0.0)
    assert stats.objects_found == 1
    assert stats.objects_total == 1
    assert stats.object_success_rate == pytest.approx(100.0)


def test_duration_falls_back_to_trail_span(trail_points):
    stats = compute_track_stats(trail_points, [trail_points[0]])
    assert stats.duration_s == pytest.approx(100.0)
    assert stats.dog_distance_m == 0.0
    assert stats.average_speed_mps == 0.0


def test_empty_session():
    stats = compute_track_stats([], [])
    assert stats == TrackStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0, 0)
    assert stats.object_success_rate == 0.0


def test_stats_wire_format_round_trip(trail_points):
    stats = compute_track_stats(trail_points, trail_points[:3])
    data = stats.to_dict()
    assert set(data) == {
        "trailDistance",
        "dogDistance",
        "duration",
        "averageSpeed",
        "averageDeviation",
        "maxDeviation",
        "objectsFound",
        "objectsTotal",
    }
    assert TrackStats.from_dict(data) == stats
