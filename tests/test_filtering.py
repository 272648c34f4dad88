import logging

from scent_tracker.geo.filtering import FilterConfig, should_accept
from scent_tracker.models import GeoFix, TrailPoint

from conftest import METRE_LAT


def _fix(lat, lon, accuracy=5.0):
    return GeoFix(latitude=lat, longitude=lon, timestamp_ms=0, accuracy_m=accuracy)


def test_first_fix_is_accepted():
    assert should_accept(_fix(50.0, 30.0), None)


def test_low_accuracy_rejected_even_as_first_point():
    assert not should_accept(_fix(50.0, 30.0, accuracy=999.0), None)


def test_missing_accuracy_is_not_a_rejection():
    assert should_accept(_fix(50.0, 30.0, accuracy=None), None)


def test_small_drift_rejected_and_real_move_accepted(caplog):
    last = TrailPoint(50.0, 30.0, 0)
    with caplog.at_level(logging.DEBUG):
        assert not should_accept(_fix(50.0 + 1.1 * METRE_LAT, 30.0), last)
    assert "drift" in caplog.text
    assert should_accept(_fix(50.0 + 5.0 * METRE_LAT, 30.0), last)


def test_custom_thresholds():
    cfg = FilterConfig(min_accuracy_m=50.0, min_distance_m=1.0)
    last = TrailPoint(50.0, 30.0, 0)
    assert should_accept(_fix(50.0 + 1.5 * METRE_LAT, 30.0, accuracy=40.0), last, cfg)
