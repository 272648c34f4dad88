import json

import pytest

from scent_tracker.main import main
from scent_tracker.models import SessionMode, TrailPoint
from scent_tracker.recording.resume import JsonFileStorage, ResumeCache
from scent_tracker.services import build_track_record

from conftest import METRE_LAT, approach, raw_fix, straight_trail


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_score_prints_stats(tmp_path, capsys):
    trail = straight_trail()
    record = build_track_record(trail, trail, [], [], dog_id="rex")
    track_file = _write(tmp_path / "track.json", {"track": record})

    assert main(["score", str(track_file)]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["averageDeviation"] == pytest.approx(0.0)
    assert stats["trailDistance"] == pytest.approx(record["stats"]["trailDistance"])


def test_replay_trail_then_tracking(tmp_path):
    walk = [
        raw_fix(50.0 + i * 10 * METRE_LAT, 30.0, 1_000_000 + i * 5_000) for i in range(5)
    ]
    fixes_file = _write(tmp_path / "trail_fixes.json", walk)
    trail_out = tmp_path / "trail.json"
    assert (
        main(
            [
                "replay",
                str(fixes_file),
                "--mode",
                "trail",
                "--dog",
                "rex",
                "--output",
                str(trail_out),
            ]
        )
        == 0
    )
    trail = json.loads(trail_out.read_text(encoding="utf-8"))
    assert len(trail["trailPoints"]) == 5
    assert trail["dogId"] == "rex"

    # Seed a placed object at the end of the trail and walk the dog to it.
    end = trail["trailPoints"][-1]
    trail["objects"] = [
        {"id": "obj-1", "lat": end["lat"], "lng": end["lng"], "type": "placed", "timestamp": 1}
    ]
    _write(trail_out, trail)
    dog_fixes = approach((50.0, 30.0), (end["lat"], end["lng"]), [0.0, 0.25, 0.5, 0.75, 1.0])
    dog_file = _write(tmp_path / "dog_fixes.json", dog_fixes)
    track_out = tmp_path / "track.json"

    argv = ["replay", str(dog_file), "--trail", str(trail_out), "--output", str(track_out)]
    assert main(argv) == 0
    track = json.loads(track_out.read_text(encoding="utf-8"))
    assert track["dogId"] == "rex"
    assert track["stats"]["objectsFound"] == 1
    assert track["stats"]["objectsTotal"] == 1
    assert track["stats"]["averageDeviation"] == pytest.approx(0.0, abs=0.01)


def test_replay_without_accepted_fixes_fails(tmp_path):
    fixes_file = _write(tmp_path / "fixes.json", [raw_fix(50.0, 30.0, 1, accuracy=500.0)])
    assert main(["replay", str(fixes_file), "--mode", "trail"]) == 1


def test_summary_prints_totals(tmp_path, capsys):
    trail = straight_trail()
    records = [
        build_track_record(trail, trail, [], [], dog_id="rex"),
        build_track_record(trail, trail[:5], [], [], dog_id="rex"),
    ]
    tracks_file = _write(tmp_path / "tracks.json", {"tracks": records})
    dogs_file = _write(tmp_path / "dogs.json", [{"id": "rex", "name": "Rex"}])

    assert main(["summary", str(tracks_file), "--dogs", str(dogs_file), "--sort", "distance"]) == 0
    out = capsys.readouterr().out
    assert "Tracks: 2" in out
    assert "Average accuracy: 100.0%" in out
    assert "Rex" in out


def test_missing_input_file_returns_error(tmp_path):
    assert main(["score", str(tmp_path / "nope.json")]) == 1


def test_replay_resumes_from_store(tmp_path):
    store = tmp_path / "state.json"
    cache = ResumeCache(JsonFileStorage(store), SessionMode.TRAIL)
    cache.save([TrailPoint(50.0, 30.0, 1), TrailPoint(50.0 + 10 * METRE_LAT, 30.0, 2)], [])
    fixes_file = _write(
        tmp_path / "fixes.json", [raw_fix(50.0 + 20 * METRE_LAT, 30.0, 3)]
    )
    out = tmp_path / "trail.json"

    argv = ["replay", str(fixes_file), "--mode", "trail", "--resume-store", str(store)]
    assert main(argv + ["--output", str(out)]) == 0
    trail = json.loads(out.read_text(encoding="utf-8"))
    assert len(trail["trailPoints"]) == 3
    assert cache.load() is None
