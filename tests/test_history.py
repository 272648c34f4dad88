from datetime import datetime, timezone

import pytest

from scent_tracker.history import (
    sort_tracks,
    summarize_tracks,
    tracks_frame,
)

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _record(track_id, dog, date, *, trail=100.0, deviation=10.0, found=1, total=2, duration=300.0):
    return {
        "id": track_id,
        "dogId": dog,
        "date": date,
        "stats": {
            "trailDistance": trail,
            "dogDistance": trail * 1.1,
            "duration": duration,
            "averageSpeed": 1.0,
            "averageDeviation": deviation,
            "maxDeviation": deviation * 2,
            "objectsFound": found,
            "objectsTotal": total,
        },
    }


@pytest.fixture
def records():
    return [
        _record("t1", "rex", "2026-06-10T08:00:00+00:00", trail=200.0, deviation=10.0),
        _record("t2", "rex", "2026-04-02T08:00:00+00:00", trail=150.0, deviation=120.0, found=0),
        _record("t3", "fido", "2025-11-20T08:00:00+00:00", trail=300.0, deviation=30.0, found=2),
    ]


def test_tracks_frame_flattens_stats(records):
    df = tracks_frame(records)
    assert list(df["Track"]) == ["t1", "t2", "t3"]
    assert df["Accuracy (%)"].tolist() == pytest.approx([90.0, 0.0, 70.0])
    assert str(df["Date"].dt.tz) == "UTC"


def test_summary_totals(records):
    summary = summarize_tracks(records, now=NOW)
    assert summary.total_tracks == 3
    assert summary.total_distance_m == pytest.approx(650.0)
    assert summary.total_duration_s == pytest.approx(900.0)
    assert summary.average_accuracy_pct == pytest.approx((90.0 + 0.0 + 70.0) / 3)
    assert summary.objects_found == 3
    assert summary.objects_placed == 6
    assert summary.object_success_rate == pytest.approx(50.0)


def test_recent_window(records):
    summary = summarize_tracks(records, now=NOW)
    assert summary.recent_tracks == 1
    assert summary.recent_distance_m == pytest.approx(200.0)
    assert summary.recent_accuracy_pct == pytest.approx(90.0)


def test_per_dog_table_uses_dog_names(records):
    dogs = [
        {"id": "rex", "name": "Rex"},
        {"id": "fido", "name": "Fido"},
        {"id": "max", "name": "Max"},
    ]
    per_dog = summarize_tracks(records, dogs, now=NOW).per_dog.set_index("Dog")
    assert per_dog.loc["rex", "Name"] == "Rex"
    assert per_dog.loc["rex", "Tracks"] == 2
    assert per_dog.loc["rex", "Total Distance (m)"] == pytest.approx(350.0)
    assert per_dog.loc["rex", "Average Accuracy (%)"] == pytest.approx(45.0)
    assert per_dog.loc["rex", "Object Success Rate (%)"] == pytest.approx(25.0)
    assert per_dog.loc["max", "Tracks"] == 0
    assert per_dog.loc["max", "Average Accuracy (%)"] == 0.0


def test_monthly_progress_keeps_last_months(records):
    monthly = summarize_tracks(records, now=NOW, months=2).monthly
    assert monthly["Month"].tolist() == ["2026-04", "2026-06"]
    assert monthly["Tracks"].tolist() == [1, 1]
    assert monthly["Distance (m)"].tolist() == pytest.approx([150.0, 200.0])


def test_empty_history():
    summary = summarize_tracks([], now=NOW)
    assert summary.total_tracks == 0
    assert summary.average_accuracy_pct == 0.0
    assert summary.object_success_rate == 0.0
    assert summary.per_dog.empty
    assert summary.monthly.empty


def test_sort_tracks(records):
    assert [r["id"] for r in sort_tracks(records, "date")] == ["t1", "t2", "t3"]
    assert [r["id"] for r in sort_tracks(records, "distance")] == ["t3", "t1", "t2"]
    assert [r["id"] for r in sort_tracks(records, "deviation")] == ["t2", "t3", "t1"]


def test_sort_tracks_rejects_unknown_key(records):
    with pytest.raises(ValueError):
        sort_tracks(records, "speed")
