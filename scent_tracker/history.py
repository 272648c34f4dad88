"""Training history aggregation.

Pure functions turning stored track records (as returned by the tracker
service) into summary figures and DataFrames: overall totals, per-dog
progress, recent activity and monthly volume.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .config import HISTORY_MONTHS, HISTORY_RECENT_DAYS
from .models import TrackStats

TrackRecord = Mapping[str, Any]

TRACK_COL = "Track"
DOG_COL = "Dog"
DATE_COL = "Date"
TRAIL_DISTANCE_COL = "Trail Distance (m)"
DOG_DISTANCE_COL = "Dog Distance (m)"
DURATION_COL = "Duration (s)"
AVG_DEVIATION_COL = "Avg Deviation (m)"
MAX_DEVIATION_COL = "Max Deviation (m)"
ACCURACY_COL = "Accuracy (%)"
FOUND_COL = "Objects Found"
TOTAL_COL = "Objects Total"

TRACK_COLUMNS = [
    TRACK_COL,
    DOG_COL,
    DATE_COL,
    TRAIL_DISTANCE_COL,
    DOG_DISTANCE_COL,
    DURATION_COL,
    AVG_DEVIATION_COL,
    MAX_DEVIATION_COL,
    ACCURACY_COL,
    FOUND_COL,
    TOTAL_COL,
]

NAME_COL = "Name"
TRACKS_COL = "Tracks"
TOTAL_DISTANCE_COL = "Total Distance (m)"
AVG_ACCURACY_COL = "Average Accuracy (%)"
SUCCESS_RATE_COL = "Object Success Rate (%)"
MONTH_COL = "Month"
DISTANCE_COL = "Distance (m)"

SORT_KEYS = ("date", "distance", "deviation")


@dataclass(slots=True)
class TrainingSummary:
    total_tracks: int
    total_distance_m: float
    total_duration_s: float
    average_accuracy_pct: float
    objects_found: int
    objects_placed: int
    object_success_rate: float
    recent_tracks: int
    recent_distance_m: float
    recent_accuracy_pct: float
    per_dog: pd.DataFrame
    monthly: pd.DataFrame


def _row_for_track(record: TrackRecord) -> Dict[str, Any]:
    stats = TrackStats.from_dict(record.get("stats") or {})
    return {
        TRACK_COL: record.get("id"),
        DOG_COL: record.get("dogId"),
        DATE_COL: record.get("date"),
        TRAIL_DISTANCE_COL: stats.trail_distance_m,
        DOG_DISTANCE_COL: stats.dog_distance_m,
        DURATION_COL: stats.duration_s,
        AVG_DEVIATION_COL: stats.average_deviation_m,
        MAX_DEVIATION_COL: stats.max_deviation_m,
        ACCURACY_COL: stats.accuracy_pct,
        FOUND_COL: stats.objects_found,
        TOTAL_COL: stats.objects_total,
    }


def tracks_frame(records: Iterable[TrackRecord]) -> pd.DataFrame:
    """One row per track with parsed UTC dates and flattened stats."""

    df = pd.DataFrame([_row_for_track(r) for r in records], columns=TRACK_COLUMNS)
    df[DATE_COL] = pd.to_datetime(df[DATE_COL], utc=True, errors="coerce")
    return df


def _success_rate(found: float, total: float) -> float:
    return float(found) / float(total) * 100.0 if total > 0 else 0.0


def _mean_or_zero(series: pd.Series) -> float:
    return float(series.mean()) if not series.empty else 0.0


def _per_dog_frame(
    df: pd.DataFrame, dogs: Optional[Sequence[Mapping[str, Any]]]
) -> pd.DataFrame:
    if dogs is None:
        dogs = [{"id": dog_id} for dog_id in df[DOG_COL].dropna().unique()]
    rows: List[Dict[str, Any]] = []
    for dog in dogs:
        subset = df[df[DOG_COL] == dog.get("id")]
        rows.append(
            {
                DOG_COL: dog.get("id"),
                NAME_COL: dog.get("name", dog.get("id")),
                TRACKS_COL: int(len(subset)),
                TOTAL_DISTANCE_COL: float(subset[TRAIL_DISTANCE_COL].sum()),
                AVG_ACCURACY_COL: _mean_or_zero(subset[ACCURACY_COL]),
                SUCCESS_RATE_COL: _success_rate(
                    subset[FOUND_COL].sum(), subset[TOTAL_COL].sum()
                ),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            DOG_COL,
            NAME_COL,
            TRACKS_COL,
            TOTAL_DISTANCE_COL,
            AVG_ACCURACY_COL,
            SUCCESS_RATE_COL,
        ],
    )


def _monthly_frame(df: pd.DataFrame, months: int) -> pd.DataFrame:
    dated = df.dropna(subset=[DATE_COL])
    if dated.empty:
        return pd.DataFrame(columns=[MONTH_COL, TRACKS_COL, DISTANCE_COL])
    keys = dated[DATE_COL].dt.strftime("%Y-%m")
    grouped = (
        dated.assign(**{MONTH_COL: keys})
        .groupby(MONTH_COL)
        .agg(
            **{
                TRACKS_COL: (TRACK_COL, "size"),
                DISTANCE_COL: (TRAIL_DISTANCE_COL, "sum"),
            }
        )
        .reset_index()
        .sort_values(MONTH_COL)
    )
    return grouped.tail(max(0, months)).reset_index(drop=True)


def summarize_tracks(
    records: Iterable[TrackRecord],
    dogs: Optional[Sequence[Mapping[str, Any]]] = None,
    *,
    now: Optional[datetime] = None,
    recent_days: int = HISTORY_RECENT_DAYS,
    months: int = HISTORY_MONTHS,
) -> TrainingSummary:
    """Aggregate stored tracks into a :class:`TrainingSummary`.

    Accuracy is the per-track ``max(0, 100 - average deviation)`` averaged
    over the tracks considered.
    """

    df = tracks_frame(records)
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    cutoff = pd.Timestamp(current - timedelta(days=recent_days))
    recent = df[df[DATE_COL] >= cutoff]
    found = int(df[FOUND_COL].sum())
    placed = int(df[TOTAL_COL].sum())
    return TrainingSummary(
        total_tracks=int(len(df)),
        total_distance_m=float(df[TRAIL_DISTANCE_COL].sum()),
        total_duration_s=float(df[DURATION_COL].sum()),
        average_accuracy_pct=_mean_or_zero(df[ACCURACY_COL]),
        objects_found=found,
        objects_placed=placed,
        object_success_rate=_success_rate(found, placed),
        recent_tracks=int(len(recent)),
        recent_distance_m=float(recent[TRAIL_DISTANCE_COL].sum()),
        recent_accuracy_pct=_mean_or_zero(recent[ACCURACY_COL]),
        per_dog=_per_dog_frame(df, dogs),
        monthly=_monthly_frame(df, months),
    )


def sort_tracks(records: Iterable[TrackRecord], by: str = "date") -> List[TrackRecord]:
    """Return records newest first, longest first, or most deviating first."""

    if by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{by}'; expected one of {SORT_KEYS}")
    items = list(records)
    if by == "date":
        epoch = pd.Timestamp(0, tz="UTC")

        def _date_key(record: TrackRecord) -> pd.Timestamp:
            parsed = pd.to_datetime(record.get("date"), utc=True, errors="coerce")
            return epoch if pd.isna(parsed) else parsed

        return sorted(items, key=_date_key, reverse=True)
    field = "trailDistance" if by == "distance" else "averageDeviation"
    return sorted(
        items,
        key=lambda record: float((record.get("stats") or {}).get(field, 0.0)),
        reverse=True,
    )


__all__ = [
    "TrainingSummary",
    "sort_tracks",
    "summarize_tracks",
    "tracks_frame",
]
