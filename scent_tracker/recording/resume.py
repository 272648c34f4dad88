"""Crash-resume snapshots of an in-progress recording.

A recorder saves its buffers after every change into a single slot per
session kind (``current_trail_session`` / ``current_tracking_session``). The
slot lives in a small key-value store handed in by the caller, so tests can
use :class:`InMemoryStorage` while the CLI keeps a JSON file on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
from threading import RLock
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from ..config import RESUME_MAX_AGE_SECONDS
from ..models import ObjectMarker, SessionMode, TrailPoint
from ..utils import json_dumps_sorted, markers_from_dicts, points_from_dicts

PathLike = Union[str, Path]


class KeyValueStorage(Protocol):
    """String key-value capability (get / set / delete)."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStorage:
    """Process-local storage, mainly for tests."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStorage:
    """All keys kept in one JSON object on disk, rewritten atomically."""

    def __init__(self, path: PathLike) -> None:
        self._path = Path(path)
        self._lock = RLock()

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logging.warning("Ignoring unreadable state file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


@dataclass(frozen=True, slots=True)
class ResumeSnapshot:
    """Buffers of an unfinished session.

    ``points`` / ``objects`` are the session's own buffers (trail points and
    placed objects when laying a trail; dog points and found objects when
    tracking). ``reference_trail`` / ``placed_objects`` carry the secondary
    buffers a tracking session needs to be resumed on its own.
    """

    mode: SessionMode
    timestamp_ms: int
    points: List[TrailPoint] = field(default_factory=list)
    objects: List[ObjectMarker] = field(default_factory=list)
    reference_trail: List[TrailPoint] = field(default_factory=list)
    placed_objects: List[ObjectMarker] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "timestamp": self.timestamp_ms,
            "points": [p.to_dict() for p in self.points],
            "objects": [o.to_dict() for o in self.objects],
            "secondaryBuffers": {
                "trail": [p.to_dict() for p in self.reference_trail],
                "placedObjects": [o.to_dict() for o in self.placed_objects],
            },
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResumeSnapshot":
        secondary = data.get("secondaryBuffers") or {}
        return cls(
            mode=SessionMode(data["mode"]),
            timestamp_ms=int(data["timestamp"]),
            points=points_from_dicts(data.get("points")),
            objects=markers_from_dicts(data.get("objects")),
            reference_trail=points_from_dicts(secondary.get("trail")),
            placed_objects=markers_from_dicts(secondary.get("placedObjects")),
            extra=dict(data.get("extra") or {}),
        )


class ResumeCache:
    """Single resume slot for one session mode with a bounded validity window."""

    def __init__(
        self,
        storage: KeyValueStorage,
        mode: SessionMode,
        *,
        max_age_s: float = RESUME_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._mode = SessionMode(mode)
        self._max_age_ms = max_age_s * 1000.0
        self._clock = clock

    @property
    def key(self) -> str:
        return f"current_{self._mode.value}_session"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def save(
        self,
        points: List[TrailPoint],
        objects: List[ObjectMarker],
        *,
        reference_trail: Optional[List[TrailPoint]] = None,
        placed_objects: Optional[List[ObjectMarker]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ResumeSnapshot:
        """Overwrite the slot with the current buffers stamped with now."""

        snapshot = ResumeSnapshot(
            mode=self._mode,
            timestamp_ms=self._now_ms(),
            points=list(points),
            objects=list(objects),
            reference_trail=list(reference_trail or []),
            placed_objects=list(placed_objects or []),
            extra=dict(extra or {}),
        )
        self._storage.set(self.key, json_dumps_sorted(snapshot.to_dict()))
        return snapshot

    def load(self) -> Optional[ResumeSnapshot]:
        """Return the snapshot if present and younger than the validity window."""

        raw = self._storage.get(self.key)
        if not raw:
            return None
        try:
            snapshot = ResumeSnapshot.from_dict(json.loads(raw))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logging.error("Error parsing saved %s session: %s", self._mode.value, exc)
            self.clear()
            return None
        age_ms = self._now_ms() - snapshot.timestamp_ms
        if age_ms >= self._max_age_ms:
            logging.info(
                "Discarding stale %s session snapshot (%.1f h old)",
                self._mode.value,
                age_ms / 3_600_000,
            )
            self.clear()
            return None
        return snapshot

    def clear(self) -> None:
        self._storage.delete(self.key)


__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorage",
    "ResumeCache",
    "ResumeSnapshot",
]
