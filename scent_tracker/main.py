"""Command line entry point: score stored tracks, replay fixes, summarise history."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import RESUME_STORE_PATH
from .geo.sampler import GeoSampler, ReplayLocationProvider
from .history import sort_tracks, summarize_tracks
from .models import MarkerKind, RecordingResult, SessionMode
from .recording.recorder import RecorderConfig, SessionRecorder
from .recording.resume import JsonFileStorage, ResumeCache
from .scoring.stats import compute_track_stats
from .services.track_service import build_track_record
from .utils import (
    format_duration,
    json_dumps_sorted,
    load_json,
    markers_from_dicts,
    points_from_dicts,
)


def _setup_logging() -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _unwrap(document: Any, key: str) -> Any:
    """Accept both a bare payload and the service envelope ``{key: payload}``."""

    if isinstance(document, dict) and key in document:
        return document[key]
    return document


def _emit(payload: Any, output: Optional[Path]) -> None:
    text = json_dumps_sorted(payload, indent=2)
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    logging.info("Wrote %s", output)


def _cmd_score(args: argparse.Namespace) -> int:
    record = _unwrap(load_json(args.track), "track")
    if not isinstance(record, dict):
        logging.error("'%s' does not contain a track record", args.track)
        return 1
    markers = markers_from_dicts(record.get("objects"))
    stats = compute_track_stats(
        points_from_dicts(record.get("trailPoints")),
        points_from_dicts(record.get("dogPoints")),
        [m for m in markers if m.kind is MarkerKind.PLACED],
        [m for m in markers if m.kind is MarkerKind.FOUND],
    )
    _emit(stats, args.output)
    return 0


def _replay(
    mode: SessionMode,
    entries: List[Mapping[str, Any]],
    trail_record: Mapping[str, Any],
    resume_cache: Optional[ResumeCache] = None,
) -> Optional[RecordingResult]:
    markers = markers_from_dicts(trail_record.get("objects"))
    provider = ReplayLocationProvider(entries)
    sampler = GeoSampler(provider)
    recorder = SessionRecorder(
        mode,
        sampler,
        config=RecorderConfig(background_sync=False),
        dog_id=trail_record.get("dogId"),
        reference_trail=points_from_dicts(trail_record.get("trailPoints")),
        placed_objects=[m for m in markers if m.kind is MarkerKind.PLACED],
        resume_cache=resume_cache,
    )
    snapshot = recorder.offer_resume()
    if snapshot is not None and recorder.restore(snapshot):
        logging.info("Resuming unfinished %s session", mode.value)
    with recorder:
        if not recorder.start():
            return None
        delivered = provider.drain()
        logging.info("Replayed %d of %d entries", delivered, len(entries))
        return recorder.finish()


def _cmd_replay(args: argparse.Namespace) -> int:
    entries = _unwrap(load_json(args.fixes), "fixes")
    if not isinstance(entries, list):
        logging.error("'%s' does not contain a list of fixes", args.fixes)
        return 1
    mode = SessionMode(args.mode)
    trail_record: Dict[str, Any] = {}
    if args.trail is not None:
        loaded = _unwrap(load_json(args.trail), "track")
        if isinstance(loaded, dict):
            trail_record = loaded
    elif mode is SessionMode.TRACKING:
        logging.warning("Tracking replay without --trail: deviation will be 0")
    if args.dog:
        trail_record = {**trail_record, "dogId": args.dog}

    resume_cache = None
    if args.resume_store is not None:
        resume_cache = ResumeCache(JsonFileStorage(args.resume_store), mode)

    result = _replay(mode, entries, trail_record, resume_cache)
    if result is None:
        logging.error("Replay produced no recording (no accepted fixes)")
        return 1

    if mode is SessionMode.TRAIL:
        payload: Dict[str, Any] = {
            "dogId": trail_record.get("dogId"),
            "trailPoints": list(result.points),
            "objects": list(result.placed_objects),
        }
    else:
        payload = build_track_record(
            result.reference_trail,
            result.points,
            result.placed_objects,
            result.found_objects,
            dog_id=trail_record.get("dogId"),
        )
    _emit(payload, args.output)
    return 0


def _cmd_summary(args: argparse.Namespace) -> int:
    records = _unwrap(load_json(args.tracks), "tracks")
    if not isinstance(records, list):
        logging.error("'%s' does not contain a list of tracks", args.tracks)
        return 1
    dogs = load_json(args.dogs) if args.dogs is not None else None
    summary = summarize_tracks(records, _unwrap(dogs, "dogs"))

    lines = [
        f"Tracks: {summary.total_tracks}",
        f"Total distance: {summary.total_distance_m:.0f} m",
        f"Total time: {format_duration(summary.total_duration_s)}",
        f"Average accuracy: {summary.average_accuracy_pct:.1f}%",
        (
            f"Objects: {summary.objects_found}/{summary.objects_placed}"
            f" ({summary.object_success_rate:.1f}%)"
        ),
        (
            f"Recent: {summary.recent_tracks} tracks,"
            f" {summary.recent_distance_m:.0f} m,"
            f" {summary.recent_accuracy_pct:.1f}% accuracy"
        ),
        "",
        summary.per_dog.to_string(index=False),
        "",
        summary.monthly.to_string(index=False),
    ]
    if args.sort:
        lines.append("")
        for record in sort_tracks(records, args.sort):
            stats = record.get("stats") or {}
            lines.append(
                f"{record.get('date')}  {record.get('dogId')}"
                f"  {float(stats.get('trailDistance', 0.0)):.0f} m"
                f"  {float(stats.get('averageDeviation', 0.0)):.1f} m dev"
            )
    print("\n".join(lines))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scent_tracker",
        description="Score, replay and summarise scent-tracking sessions.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Compute statistics for a stored track")
    score.add_argument("track", type=Path, help="Track record JSON file")
    score.add_argument("--output", type=Path, help="Write JSON here instead of stdout")
    score.set_defaults(handler=_cmd_score)

    replay = sub.add_parser("replay", help="Replay recorded GPS fixes")
    replay.add_argument("fixes", type=Path, help="JSON list of raw positions")
    replay.add_argument(
        "--mode",
        choices=[mode.value for mode in SessionMode],
        default=SessionMode.TRACKING.value,
    )
    replay.add_argument(
        "--trail", type=Path, help="Track or trail JSON providing the reference"
    )
    replay.add_argument("--dog", help="Dog id stored on the output record")
    replay.add_argument(
        "--resume-store",
        type=Path,
        nargs="?",
        const=Path(RESUME_STORE_PATH),
        help="Keep a crash-resume snapshot in this JSON file and resume from it",
    )
    replay.add_argument("--output", type=Path, help="Write JSON here instead of stdout")
    replay.set_defaults(handler=_cmd_replay)

    summary = sub.add_parser("summary", help="Summarise stored training history")
    summary.add_argument("tracks", type=Path, help="JSON list of track records")
    summary.add_argument("--dogs", type=Path, help="JSON list of dogs (id, name)")
    summary.add_argument(
        "--sort", choices=["date", "distance", "deviation"], help="List tracks"
    )
    summary.set_defaults(handler=_cmd_summary)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging()
    try:
        return args.handler(args)
    except (OSError, ValueError) as exc:
        logging.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
