import json

from scent_tracker.models import MarkerKind, ObjectMarker, SessionMode, TrailPoint
from scent_tracker.recording.resume import (
    InMemoryStorage,
    JsonFileStorage,
    ResumeCache,
)


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _points():
    return [TrailPoint(50.0, 30.0, 1), TrailPoint(50.0001, 30.0, 2)]


def test_key_is_per_mode():
    storage = InMemoryStorage()
    assert ResumeCache(storage, SessionMode.TRAIL).key == "current_trail_session"
    assert ResumeCache(storage, SessionMode.TRACKING).key == "current_tracking_session"


def test_snapshot_younger_than_a_day_is_offered():
    clock = Clock()
    storage = InMemoryStorage()
    cache = ResumeCache(storage, SessionMode.TRACKING, clock=clock)
    placed = ObjectMarker("a", 50.0, 30.0, MarkerKind.PLACED, 1)
    cache.save(
        _points(),
        [],
        reference_trail=_points(),
        placed_objects=[placed],
        extra={"dogId": "rex"},
    )
    clock.now += 24 * 3600 - 1
    snapshot = cache.load()
    assert snapshot is not None
    assert snapshot.points == _points()
    assert snapshot.reference_trail == _points()
    assert snapshot.placed_objects == [placed]
    assert snapshot.extra == {"dogId": "rex"}


def test_snapshot_older_than_a_day_is_discarded():
    clock = Clock()
    storage = InMemoryStorage()
    cache = ResumeCache(storage, SessionMode.TRAIL, clock=clock)
    cache.save(_points(), [])
    clock.now += 24 * 3600
    assert cache.load() is None
    assert storage.get(cache.key) is None


def test_corrupt_snapshot_is_cleared(caplog):
    storage = InMemoryStorage()
    cache = ResumeCache(storage, SessionMode.TRAIL)
    storage.set(cache.key, "{not json")
    assert cache.load() is None
    assert storage.get(cache.key) is None
    assert "Error parsing saved trail session" in caplog.text

    storage.set(cache.key, json.dumps([1, 2, 3]))
    assert cache.load() is None


def test_json_file_storage_persists_between_instances(tmp_path):
    path = tmp_path / "state" / "resume.json"
    cache = ResumeCache(JsonFileStorage(path), SessionMode.TRAIL)
    cache.save(_points(), [])
    assert path.exists()

    reopened = ResumeCache(JsonFileStorage(path), SessionMode.TRAIL)
    snapshot = reopened.load()
    assert snapshot is not None
    assert snapshot.mode is SessionMode.TRAIL
    reopened.clear()
    assert JsonFileStorage(path).get(reopened.key) is None


def test_json_file_storage_ignores_unreadable_file(tmp_path):
    path = tmp_path / "resume.json"
    path.write_text("garbage", encoding="utf-8")
    storage = JsonFileStorage(path)
    assert storage.get("anything") is None
    storage.set("k", "v")
    assert storage.get("k") == "v"
