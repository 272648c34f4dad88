import numpy as np
import pytest

from scent_tracker.geo.distance import (
    EARTH_RADIUS_M,
    haversine_distance,
    haversine_matrix,
    path_length,
)
from scent_tracker.models import TrailPoint


def test_zero_distance_to_self():
    assert haversine_distance((50.0, 30.0), (50.0, 30.0)) == 0.0


def test_distance_is_symmetric():
    a = (50.4501, 30.5234)
    b = (50.4547, 30.5238)
    assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_M * np.pi / 180.0
    assert haversine_distance((0.0, 0.0), (1.0, 0.0)) == pytest.approx(expected)


def test_accepts_points_and_tuples():
    point = TrailPoint(50.0, 30.0, 0)
    assert haversine_distance(point, (50.0, 30.001)) == pytest.approx(
        haversine_distance((50.0, 30.0), (50.0, 30.001))
    )


def test_antipodal_points_do_not_fail():
    assert haversine_distance((0.0, 0.0), (0.0, 180.0)) == pytest.approx(
        np.pi * EARTH_RADIUS_M
    )


def test_path_length_edge_cases():
    assert path_length([]) == 0.0
    assert path_length([(50.0, 30.0)]) == 0.0


def test_path_length_sums_segments():
    pts = [(50.0, 30.0), (50.0, 30.001), (50.001, 30.001)]
    expected = haversine_distance(pts[0], pts[1]) + haversine_distance(pts[1], pts[2])
    assert path_length(pts) == pytest.approx(expected)


def test_matrix_matches_scalar_formula():
    a = [(50.0, 30.0), (50.001, 30.002)]
    b = [(50.0005, 30.0), (49.999, 30.001), (50.0, 30.0)]
    matrix = haversine_matrix(a, b)
    assert matrix.shape == (2, 3)
    for i, pa in enumerate(a):
        for j, pb in enumerate(b):
            assert matrix[i, j] == pytest.approx(haversine_distance(pa, pb))


def test_matrix_with_empty_side():
    assert haversine_matrix([], [(50.0, 30.0)]).shape == (0, 1)
