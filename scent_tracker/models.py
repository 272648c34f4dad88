from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple, Union

LatLon = Tuple[float, float]


class HasCoordinates(Protocol):
    latitude: float
    longitude: float


Coordinate = Union[LatLon, Sequence[float], HasCoordinates]


def as_latlon(value: Coordinate) -> LatLon:
    """Return ``(lat, lon)`` for tuples or objects exposing latitude/longitude."""

    lat = getattr(value, "latitude", None)
    lon = getattr(value, "longitude", None)
    if lat is not None and lon is not None:
        return float(lat), float(lon)
    if len(value) != 2:  # type: ignore[arg-type]
        raise ValueError("Expected a (lat, lon) pair")
    lat, lon = value  # type: ignore[misc]
    return float(lat), float(lon)


def accuracy_percentage(average_deviation_m: float) -> float:
    """Linear score: 100 at zero deviation, minus one point per metre, floored at 0."""

    return max(0.0, 100.0 - average_deviation_m)


class SessionMode(str, Enum):
    TRAIL = "trail"
    TRACKING = "tracking"


class MarkerKind(str, Enum):
    PLACED = "placed"
    FOUND = "found"


@dataclass(frozen=True, slots=True)
class TrailPoint:
    latitude: float
    longitude: float
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "timestamp": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrailPoint":
        return cls(
            latitude=float(data["lat"]),
            longitude=float(data["lng"]),
            timestamp_ms=int(data.get("timestamp") or 0),
        )


@dataclass(frozen=True, slots=True)
class GeoFix:
    latitude: float
    longitude: float
    timestamp_ms: int
    accuracy_m: Optional[float] = None
    altitude_m: Optional[float] = None
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None

    def to_point(self) -> TrailPoint:
        return TrailPoint(self.latitude, self.longitude, self.timestamp_ms)


@dataclass(frozen=True, slots=True)
class ObjectMarker:
    id: str
    latitude: float
    longitude: float
    kind: MarkerKind
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.latitude,
            "lng": self.longitude,
            "type": self.kind.value,
            "timestamp": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ObjectMarker":
        return cls(
            id=str(data["id"]),
            latitude=float(data["lat"]),
            longitude=float(data["lng"]),
            kind=MarkerKind(data.get("type", MarkerKind.PLACED.value)),
            timestamp_ms=int(data.get("timestamp") or 0),
        )


@dataclass(frozen=True, slots=True)
class DeviationScore:
    """Average and worst nearest-trail distance of a dog path (metres)."""

    average_m: float = 0.0
    max_m: float = 0.0

    @property
    def accuracy_pct(self) -> float:
        return accuracy_percentage(self.average_m)


@dataclass(frozen=True, slots=True)
class TrackStats:
    trail_distance_m: float
    dog_distance_m: float
    duration_s: float
    average_speed_mps: float
    average_deviation_m: float
    max_deviation_m: float
    objects_found: int
    objects_total: int

    @property
    def accuracy_pct(self) -> float:
        return accuracy_percentage(self.average_deviation_m)

    @property
    def object_success_rate(self) -> float:
        if self.objects_total <= 0:
            return 0.0
        return self.objects_found / self.objects_total * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trailDistance": self.trail_distance_m,
            "dogDistance": self.dog_distance_m,
            "duration": self.duration_s,
            "averageSpeed": self.average_speed_mps,
            "averageDeviation": self.average_deviation_m,
            "maxDeviation": self.max_deviation_m,
            "objectsFound": self.objects_found,
            "objectsTotal": self.objects_total,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackStats":
        return cls(
            trail_distance_m=float(data.get("trailDistance", 0.0)),
            dog_distance_m=float(data.get("dogDistance", 0.0)),
            duration_s=float(data.get("duration", 0.0)),
            average_speed_mps=float(data.get("averageSpeed", 0.0)),
            average_deviation_m=float(data.get("averageDeviation", 0.0)),
            max_deviation_m=float(data.get("maxDeviation", 0.0)),
            objects_found=int(data.get("objectsFound", 0)),
            objects_total=int(data.get("objectsTotal", 0)),
        )


@dataclass(frozen=True, slots=True)
class RecordingResult:
    """Frozen buffers handed over when a recorder finishes."""

    mode: SessionMode
    points: Tuple[TrailPoint, ...]
    placed_objects: Tuple[ObjectMarker, ...] = ()
    found_objects: Tuple[ObjectMarker, ...] = ()
    reference_trail: Tuple[TrailPoint, ...] = ()
    live_session_id: Optional[str] = None
    started_at_ms: Optional[int] = None
    finished_at_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
