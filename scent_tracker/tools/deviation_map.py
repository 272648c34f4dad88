"""Generate interactive deviation overlays for stored training tracks."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import folium  # Using folium to build an interactive Leaflet map.
import numpy as np

from ..config import DEVIATION_MAP_THRESHOLD_M
from ..models import MarkerKind, ObjectMarker, TrailPoint
from ..scoring.deviation import nearest_distances
from ..utils import load_json, markers_from_dicts, points_from_dicts

LatLon = Tuple[float, float]
PathLike = Union[str, Path]

_TRAIL_COLOR = "#1a9641"
_DOG_COLOR = "#2c7bb6"
_DIVERGENCE_COLOR = "#d73027"
_PLACED_COLOR = "#fdae61"
_FOUND_COLOR = "#5e3c99"


@dataclass(slots=True)
class DeviationSummary:
    """Summary describing the worst deviation observed in a dog path."""

    index: int
    offset_m: float
    coordinate: LatLon


def _contiguous_runs(indices: np.ndarray) -> List[Tuple[int, int]]:
    """Return inclusive index ranges representing contiguous slices."""

    if indices.size == 0:
        return []
    slices: List[Tuple[int, int]] = []
    start = int(indices[0])
    previous = start
    for value in map(int, indices[1:]):
        if value != previous + 1:
            slices.append((start, previous))
            start = value
        previous = value
    slices.append((start, previous))
    return slices


def _worst_deviation(
    offsets: np.ndarray, coordinates: Sequence[LatLon]
) -> Optional[DeviationSummary]:
    if offsets.size == 0:
        return None
    index = int(np.argmax(offsets))
    return DeviationSummary(
        index=index, offset_m=float(offsets[index]), coordinate=coordinates[index]
    )


def create_deviation_map(
    reference_trail: Sequence[TrailPoint],
    dog_path: Sequence[TrailPoint],
    objects: Sequence[ObjectMarker] = (),
    *,
    threshold_m: float = DEVIATION_MAP_THRESHOLD_M,
    output_html_path: Optional[PathLike] = None,
) -> folium.Map:
    """Create an interactive map highlighting where the dog left the trail.

    Args:
        reference_trail: Trail laid by the handler.
        dog_path: Path recorded while the dog worked.
        objects: Placed and found object markers.
        threshold_m: Nearest-trail distance (metres) at or above which a dog
            point is drawn as divergent.
        output_html_path: Optional path to persist the map as an HTML file.

    Returns:
        A :class:`folium.Map` instance containing the overlay.

    Raises:
        ValueError: If neither the trail nor the dog path has any points.
    """

    trail_coords: List[LatLon] = [(p.latitude, p.longitude) for p in reference_trail]
    dog_coords: List[LatLon] = [(p.latitude, p.longitude) for p in dog_path]
    if not trail_coords and not dog_coords:
        raise ValueError("Nothing to draw: trail and dog path are both empty")

    offsets = nearest_distances(reference_trail, dog_path)
    divergent = np.nonzero(offsets >= threshold_m)[0] if offsets.size else np.array([])
    worst = _worst_deviation(offsets, dog_coords)

    if worst is not None:
        map_center = worst.coordinate
    else:
        map_center = (trail_coords or dog_coords)[0]
    folium_map = folium.Map(location=map_center, zoom_start=17, control_scale=True)
    if len(trail_coords) >= 2:
        folium.PolyLine(
            trail_coords,
            color=_TRAIL_COLOR,
            weight=4,
            opacity=0.8,
            tooltip="Reference trail",
        ).add_to(folium_map)
    if len(dog_coords) >= 2:
        folium.PolyLine(
            dog_coords,
            color=_DOG_COLOR,
            weight=4,
            opacity=0.5,
            tooltip="Dog path",
        ).add_to(folium_map)

    for start, end in _contiguous_runs(np.asarray(divergent, dtype=int)):
        segment = dog_coords[start : end + 1]
        if len(segment) < 2:
            continue
        folium.PolyLine(
            segment,
            color=_DIVERGENCE_COLOR,
            weight=6,
            opacity=0.9,
            tooltip="Divergent section",
        ).add_to(folium_map)

    for marker in objects:
        color = _FOUND_COLOR if marker.kind is MarkerKind.FOUND else _PLACED_COLOR
        folium.CircleMarker(
            location=(marker.latitude, marker.longitude),
            radius=5,
            color=color,
            fill=True,
            fill_color=color,
            tooltip=f"Object {marker.id} ({marker.kind.value})",
        ).add_to(folium_map)

    if worst is not None:
        popup = folium.Popup(
            html=(
                f"<strong>Max deviation:</strong> {worst.offset_m:.1f} m "
                f"(point {worst.index})"
            ),
            max_width=300,
        )
        folium.CircleMarker(
            location=worst.coordinate,
            radius=7,
            color=_DIVERGENCE_COLOR,
            fill=True,
            fill_color=_DIVERGENCE_COLOR,
            tooltip="Highest deviation",
            popup=popup,
        ).add_to(folium_map)

    if output_html_path is not None:
        output_path = Path(output_html_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        folium_map.save(str(output_path))

    return folium_map


def build_deviation_map_for_record(
    record: Mapping[str, Any],
    *,
    threshold_m: float = DEVIATION_MAP_THRESHOLD_M,
    output_html: Optional[PathLike] = None,
) -> folium.Map:
    """Create a deviation map from a stored track record."""

    return create_deviation_map(
        points_from_dicts(record.get("trailPoints")),
        points_from_dicts(record.get("dogPoints")),
        markers_from_dicts(record.get("objects")),
        threshold_m=threshold_m,
        output_html_path=output_html,
    )


def _build_parser() -> argparse.ArgumentParser:
    """Return the CLI argument parser for the deviation map tool."""

    parser = argparse.ArgumentParser(
        description=(
            "Generate an interactive HTML map highlighting where the dog path"
            " deviates from the reference trail."
        )
    )
    parser.add_argument("track", type=Path, help="Track record JSON file")
    parser.add_argument(
        "--threshold-m",
        type=float,
        default=DEVIATION_MAP_THRESHOLD_M,
        help="Minimum deviation (metres) flagged as divergence",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional output HTML path; defaults to maps/<track>.html",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point used via ``python -m scent_tracker.tools.deviation_map``."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    try:
        record = load_json(args.track)
    except (OSError, ValueError) as exc:
        logging.error("Failed to load track '%s': %s", args.track, exc)
        return 1
    if not isinstance(record, dict):
        logging.error("Track file '%s' does not contain a track object", args.track)
        return 1
    record = record.get("track", record)

    output_path = args.output or Path("maps") / f"{args.track.stem}.html"
    try:
        build_deviation_map_for_record(
            record, threshold_m=args.threshold_m, output_html=output_path
        )
    except (KeyError, TypeError, ValueError) as exc:
        logging.error("Failed to build deviation map: %s", exc)
        return 1
    logging.info("Deviation map written to %s", output_path)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
