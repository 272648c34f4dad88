"""General utility helpers shared across modules."""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Union

from .models import ObjectMarker, TrailPoint

PathLike = Union[str, Path]


def format_duration(seconds: float) -> str:
    """Format seconds into a ``Xm Ys`` string."""

    mins, sec = divmod(int(round(seconds)), 60)
    return f"{mins}m {sec}s"


def points_from_dicts(rows: Iterable[Mapping[str, Any]] | None) -> List[TrailPoint]:
    """Parse wire-format points, skipping rows without coordinates."""

    points: List[TrailPoint] = []
    for row in rows or ():
        if row.get("lat") is None or row.get("lng") is None:
            continue
        points.append(TrailPoint.from_dict(row))
    return points


def markers_from_dicts(rows: Iterable[Mapping[str, Any]] | None) -> List[ObjectMarker]:
    """Parse wire-format object markers."""

    return [ObjectMarker.from_dict(row) for row in rows or ()]


def _normalise_value(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if hasattr(value, "to_dict"):
        return _normalise_value(value.to_dict())
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalise_value(val) for key, val in value.items()}
    return value


def json_dumps_sorted(value: Any, *, indent: int | None = None) -> str:
    """Return canonical JSON for storage / comparisons."""

    normalised = _normalise_value(value)
    if indent is not None:
        return json.dumps(normalised, sort_keys=True, indent=indent)
    return json.dumps(normalised, sort_keys=True, separators=(",", ":"))


def load_json(path: PathLike) -> Any:
    """Read a UTF-8 JSON document from disk."""

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)
