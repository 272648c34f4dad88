"""Global pytest fixtures & helpers.

Adds project root to path and provides small factories for GPS fixes, trails
and in-memory collaborators shared by the recorder, scoring and CLI tests.
"""
from __future__ import annotations

import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from scent_tracker.models import MarkerKind, ObjectMarker, SessionMode, TrailPoint

# One metre of latitude in degrees on the haversine sphere.
METRE_LAT = 1.0 / 111_194.926644


# --- Factory helpers -------------------------------------------------
def raw_fix(
    lat: float, lon: float, timestamp_ms: int, accuracy: Optional[float] = 5.0
) -> Dict[str, Any]:
    """Return a provider position in the nested ``coords`` shape."""

    return {
        "coords": {"latitude": lat, "longitude": lon, "accuracy": accuracy},
        "timestamp": timestamp_ms,
    }


def raw_error(code: int, message: str = "") -> Dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def straight_trail(
    count: int = 11,
    *,
    lat: float = 50.0,
    lon: float = 30.0,
    step_deg: float = 0.0001,
    start_ms: int = 1_000_000,
) -> List[TrailPoint]:
    """East-bound trail with ~7 m between consecutive points at 50N."""

    return [
        TrailPoint(lat, lon + i * step_deg, start_ms + i * 10_000) for i in range(count)
    ]


def approach(
    start: Tuple[float, float],
    target: Tuple[float, float],
    fractions: List[float],
    *,
    start_ms: int = 2_000_000,
) -> List[Dict[str, Any]]:
    """Raw fixes walking from ``start`` toward ``target``."""

    fixes = []
    for i, fraction in enumerate(fractions):
        lat = start[0] + (target[0] - start[0]) * fraction
        lon = start[1] + (target[1] - start[1]) * fraction
        fixes.append(raw_fix(lat, lon, start_ms + i * 5_000))
    return fixes


class RecordingSink:
    """Live-session sink capturing every call."""

    def __init__(self, session_id: str = "ABCD1234", fail_push: bool = False):
        self.session_id = session_id
        self.fail_push = fail_push
        self.created: List[Tuple[Optional[str], SessionMode]] = []
        self.pushes: List[Tuple[str, Dict[str, Any]]] = []
        self.ended: List[str] = []

    def create(self, dog_id, mode):
        self.created.append((dog_id, mode))
        return self.session_id

    def push(self, session_id, snapshot):
        if self.fail_push:
            raise RuntimeError("network down")
        self.pushes.append((session_id, dict(snapshot)))

    def end(self, session_id):
        self.ended.append(session_id)


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def trail_points() -> List[TrailPoint]:
    return straight_trail()


@pytest.fixture
def placed_marker() -> ObjectMarker:
    return ObjectMarker(
        id="obj-1",
        latitude=50.001,
        longitude=30.001,
        kind=MarkerKind.PLACED,
        timestamp_ms=1_000_000,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
