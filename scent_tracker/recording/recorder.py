"""Session recorder: the state machine driving a live recording.

A recorder owns one ordered point buffer (the reference trail when laying a
trail, the dog path when tracking) and the object markers of the session.
Fixes arrive one at a time from :class:`GeoSampler`; each accepted fix is
appended, checked against the placed objects (tracking only), saved to the
resume slot and mirrored to the live-session sink.

States: ``idle -> running <-> paused -> finished``. Finishing requires at
least one accepted point. A finished recorder cannot be restarted.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
import logging
from threading import RLock
import time
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
)
import uuid

from ..config import (
    CONFIRM_BEFORE_MARKING_FOUND,
    GPS_FIX_TIMEOUT_MS,
    PROXIMITY_RADIUS_M,
)
from ..errors import GeolocationError, LocationTimeoutError
from ..geo.distance import path_length
from ..geo.filtering import FilterConfig, should_accept
from ..geo.sampler import GeoSampler
from ..models import (
    GeoFix,
    MarkerKind,
    ObjectMarker,
    RecordingResult,
    SessionMode,
    TrailPoint,
)
from ..scoring.proximity import detect_newly_found, make_found_marker
from .resume import ResumeCache, ResumeSnapshot


class RecorderState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class GpsStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    ERROR = "error"


class LiveSessionSink(Protocol):
    """External mirror of an in-progress recording."""

    def create(self, dog_id: Optional[str], mode: SessionMode) -> Optional[str]: ...

    def push(self, session_id: str, snapshot: Mapping[str, Any]) -> None: ...

    def end(self, session_id: str) -> None: ...


FinishCallback = Callable[[RecordingResult], None]
ObjectFoundCallback = Callable[[ObjectMarker, bool], None]
StatusCallback = Callable[[GpsStatus, Optional[GeolocationError]], None]


@dataclass(slots=True)
class RecorderConfig:
    filter: FilterConfig = field(default_factory=FilterConfig)
    proximity_radius_m: float = PROXIMITY_RADIUS_M
    confirm_before_marking_found: bool = CONFIRM_BEFORE_MARKING_FOUND
    # Push live snapshots from a worker thread instead of the fix path.
    background_sync: bool = True
    # Seconds to wait for the optional start-up fix.
    start_fix_timeout_s: float = GPS_FIX_TIMEOUT_MS / 1000.0 + 1.0


class SessionRecorder:
    """Record a trail or a dog path from a stream of GPS fixes."""

    def __init__(
        self,
        mode: SessionMode,
        sampler: GeoSampler,
        *,
        config: Optional[RecorderConfig] = None,
        dog_id: Optional[str] = None,
        reference_trail: Iterable[TrailPoint] = (),
        placed_objects: Iterable[ObjectMarker] = (),
        live_sink: Optional[LiveSessionSink] = None,
        live_session_id: Optional[str] = None,
        resume_cache: Optional[ResumeCache] = None,
        on_finish: Optional[FinishCallback] = None,
        on_object_found: Optional[ObjectFoundCallback] = None,
        on_status: Optional[StatusCallback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._mode = SessionMode(mode)
        self._sampler = sampler
        self._config = config or RecorderConfig()
        self._dog_id = dog_id
        self._reference_trail: List[TrailPoint] = list(reference_trail)
        self._placed: List[ObjectMarker] = list(placed_objects)
        self._found: List[ObjectMarker] = []
        self._pending: Dict[str, ObjectMarker] = {}
        self._points: List[TrailPoint] = []
        self._live_sink = live_sink
        self._live_session_id = live_session_id
        self._resume_cache = resume_cache
        self._on_finish = on_finish
        self._on_object_found = on_object_found
        self._on_status = on_status
        self._clock = clock

        self._state = RecorderState.IDLE
        self._gps_status = GpsStatus.WAITING
        self._last_error: Optional[GeolocationError] = None
        self._last_position: Optional[GeoFix] = None
        self._started_at_ms: Optional[int] = None
        self._finished_at_ms: Optional[int] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        # Newest unsent live snapshot; one drain loop sends it at a time.
        self._sync_slot: Optional[Tuple[str, Dict[str, Any]]] = None
        self._sync_scheduled = False
        # Single writer: UI actions and the fix callback both go through this lock.
        self._lock = RLock()
        self._log = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def gps_status(self) -> GpsStatus:
        return self._gps_status

    @property
    def last_error(self) -> Optional[GeolocationError]:
        return self._last_error

    @property
    def last_position(self) -> Optional[GeoFix]:
        return self._last_position

    @property
    def live_session_id(self) -> Optional[str]:
        return self._live_session_id

    @property
    def points(self) -> Tuple[TrailPoint, ...]:
        with self._lock:
            return tuple(self._points)

    @property
    def reference_trail(self) -> Tuple[TrailPoint, ...]:
        return tuple(self._reference_trail)

    @property
    def placed_objects(self) -> Tuple[ObjectMarker, ...]:
        with self._lock:
            return tuple(self._placed)

    @property
    def found_objects(self) -> Tuple[ObjectMarker, ...]:
        with self._lock:
            return tuple(self._found)

    @property
    def pending_found_ids(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._pending)

    @property
    def distance_m(self) -> float:
        return path_length(self.points)

    @property
    def duration_s(self) -> float:
        with self._lock:
            if not self._points:
                return 0.0
            end_ms = self._finished_at_ms or self._now_ms()
            return max(0.0, (end_ms - self._points[0].timestamp_ms) / 1000.0)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, *, wait_for_fix: bool = False) -> bool:
        """Move from idle to running and begin watching the location.

        With ``wait_for_fix`` a one-shot position is requested first; any
        geolocation failure (permission denied in particular) leaves the
        recorder idle and returns False.
        """

        with self._lock:
            if self._state is not RecorderState.IDLE:
                self._log.warning(
                    "Cannot start recorder in state %s", self._state.value
                )
                return False

        if wait_for_fix:
            future = self._sampler.get_current_position()
            try:
                fix = future.result(timeout=self._config.start_fix_timeout_s)
            except GeolocationError as exc:
                self._log.error("Recording not started: %s", exc.message)
                self._set_status(GpsStatus.ERROR, exc)
                return False
            except FutureTimeoutError:
                exc = LocationTimeoutError()
                self._log.error("Recording not started: %s", exc.message)
                self._set_status(GpsStatus.ERROR, exc)
                return False
            self._last_position = fix
            self._set_status(GpsStatus.ACTIVE)

        with self._lock:
            # Another start() may have won while the fix was awaited.
            if self._state is not RecorderState.IDLE:
                self._log.warning(
                    "Cannot start recorder in state %s", self._state.value
                )
                return False
            self._state = RecorderState.RUNNING
            if self._started_at_ms is None:
                self._started_at_ms = self._now_ms()
        self._ensure_live_session()
        self._start_watch()
        self._log.info("Started %s recording", self._mode.value)
        return True

    def pause(self) -> bool:
        with self._lock:
            if self._state is not RecorderState.RUNNING:
                return False
            self._state = RecorderState.PAUSED
        self._sampler.stop_watching()
        self._log.info("Paused %s recording", self._mode.value)
        return True

    def resume(self) -> bool:
        with self._lock:
            if self._state is not RecorderState.PAUSED:
                return False
            self._state = RecorderState.RUNNING
        self._start_watch()
        self._log.info("Resumed %s recording", self._mode.value)
        return True

    def toggle_pause(self) -> bool:
        if self._state is RecorderState.PAUSED:
            return self.resume()
        return self.pause()

    def finish(self) -> Optional[RecordingResult]:
        """Freeze the buffers and signal completion.

        Rejected (returns None, state unchanged, no callback) unless the
        recorder is running or paused and holds at least one point.
        """

        with self._lock:
            if self._state not in (RecorderState.RUNNING, RecorderState.PAUSED):
                self._log.warning(
                    "Finish rejected: recorder is %s", self._state.value
                )
                return None
            if not self._points:
                self._log.warning("Finish rejected: no points recorded yet")
                return None
            self._state = RecorderState.FINISHED
            self._finished_at_ms = self._now_ms()
            result = RecordingResult(
                mode=self._mode,
                points=tuple(self._points),
                placed_objects=tuple(self._placed),
                found_objects=tuple(self._found),
                reference_trail=tuple(self._reference_trail),
                live_session_id=self._live_session_id,
                started_at_ms=self._started_at_ms,
                finished_at_ms=self._finished_at_ms,
                metadata={"dogId": self._dog_id} if self._dog_id else {},
            )

        self._sampler.stop_watching()
        if self._resume_cache is not None:
            self._resume_cache.clear()
        # Drain in-flight pushes first so none lands after the session ends.
        self._shutdown_sync(wait=True)
        self._end_live_session()
        self._log.info(
            "Finished %s recording: %d points, %d placed, %d found",
            self._mode.value,
            len(result.points),
            len(result.placed_objects),
            len(result.found_objects),
        )
        if self._on_finish is not None:
            self._on_finish(result)
        return result

    def close(self) -> None:
        """Tear down the watch and sync workers without finishing."""

        self._sampler.stop_watching()
        self._shutdown_sync(wait=False)

    def __enter__(self) -> "SessionRecorder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Resume
    # ------------------------------------------------------------------
    def offer_resume(self) -> Optional[ResumeSnapshot]:
        """Return a resumable snapshot for a fresh recorder, if one is valid."""

        if self._resume_cache is None:
            return None
        with self._lock:
            if self._state is not RecorderState.IDLE or self._points:
                return None
        return self._resume_cache.load()

    def restore(self, snapshot: ResumeSnapshot) -> bool:
        """Seed the buffers of an idle recorder from ``snapshot``."""

        with self._lock:
            if self._state is not RecorderState.IDLE:
                self._log.warning(
                    "Cannot restore into a %s recorder", self._state.value
                )
                return False
            if snapshot.mode is not self._mode:
                self._log.warning(
                    "Ignoring %s snapshot for %s recorder",
                    snapshot.mode.value,
                    self._mode.value,
                )
                return False
            self._points = list(snapshot.points)
            if self._mode is SessionMode.TRAIL:
                self._placed = list(snapshot.objects)
            else:
                self._found = []
                seen = set()
                for marker in snapshot.objects:
                    if marker.id not in seen:
                        seen.add(marker.id)
                        self._found.append(marker)
                if snapshot.reference_trail:
                    self._reference_trail = list(snapshot.reference_trail)
                if snapshot.placed_objects:
                    self._placed = list(snapshot.placed_objects)
            dog_id = snapshot.extra.get("dogId")
            if dog_id and not self._dog_id:
                self._dog_id = str(dog_id)
        self._log.info(
            "Restored %s session with %d points", self._mode.value, len(snapshot.points)
        )
        return True

    def decline_resume(self) -> None:
        if self._resume_cache is not None:
            self._resume_cache.clear()

    # ------------------------------------------------------------------
    # Sampler callbacks
    # ------------------------------------------------------------------
    def handle_fix(self, fix: GeoFix) -> bool:
        """Process one fix to completion; return True when it was accepted."""

        events: List[Tuple[ObjectMarker, bool]] = []
        accepted = False
        with self._lock:
            if self._state is not RecorderState.RUNNING:
                self._log.debug("Ignoring fix while %s", self._state.value)
                return False
            self._last_position = fix
            status_changed = self._apply_status(GpsStatus.ACTIVE)
            last = self._points[-1] if self._points else None
            if should_accept(fix, last, self._config.filter):
                accepted = True
                self._points.append(fix.to_point())
                if self._mode is SessionMode.TRACKING:
                    events = self._detect_objects(fix)
                self._autosave()
                self._stage_snapshot()
        if status_changed:
            self._notify_status(GpsStatus.ACTIVE, None)
        if not accepted:
            return False
        self._flush_live()
        if self._on_object_found is not None:
            for marker, pending in events:
                self._on_object_found(marker, pending)
        return True

    def handle_error(self, error: GeolocationError) -> None:
        """Record a provider failure; permission errors end the watch."""

        self._set_status(GpsStatus.ERROR, error)
        if error.is_transient:
            self._log.warning(
                "GPS signal problem (code %s): %s", error.code, error.message
            )
            return
        self._log.error("GPS unavailable (code %s): %s", error.code, error.message)
        self._sampler.stop_watching()

    # ------------------------------------------------------------------
    # Object markers
    # ------------------------------------------------------------------
    def place_object(self) -> Optional[ObjectMarker]:
        """Drop a placed marker at the current position (trail mode only)."""

        with self._lock:
            if self._mode is not SessionMode.TRAIL:
                self._log.warning("Objects can only be placed while laying a trail")
                return None
            if self._state not in (RecorderState.RUNNING, RecorderState.PAUSED):
                return None
            if not self._points:
                self._log.warning("Start recording the trail before placing objects")
                return None
            lat, lon = self._current_latlon()
            marker = ObjectMarker(
                id=uuid.uuid4().hex,
                latitude=lat,
                longitude=lon,
                kind=MarkerKind.PLACED,
                timestamp_ms=self._now_ms(),
            )
            self._placed.append(marker)
            self._autosave()
            self._stage_snapshot()
        self._flush_live()
        return marker

    def mark_object_found(self) -> Optional[ObjectMarker]:
        """Record a handler-reported find at the current position."""

        with self._lock:
            if self._mode is not SessionMode.TRACKING:
                return None
            if self._state not in (RecorderState.RUNNING, RecorderState.PAUSED):
                return None
            if not self._points:
                return None
            marker = make_found_marker(
                uuid.uuid4().hex, self._current_latlon(), self._now_ms()
            )
            self._found.append(marker)
            self._autosave()
            self._stage_snapshot()
        self._flush_live()
        return marker

    def confirm_found(self, marker_id: str) -> Optional[ObjectMarker]:
        """Commit a pending proximity hit."""

        with self._lock:
            if self._state is RecorderState.FINISHED:
                return None
            candidate = self._pending.pop(marker_id, None)
            if candidate is None:
                return None
            committed = self._commit_found(candidate)
            if committed is None:
                return None
            self._autosave()
            self._stage_snapshot()
        self._flush_live()
        return committed

    def dismiss_found(self, marker_id: str) -> bool:
        """Drop a pending hit; the object may be detected again later."""

        with self._lock:
            return self._pending.pop(marker_id, None) is not None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _current_latlon(self) -> Tuple[float, float]:
        if self._last_position is not None:
            return self._last_position.latitude, self._last_position.longitude
        last = self._points[-1]
        return last.latitude, last.longitude

    def _start_watch(self) -> None:
        self._set_status(GpsStatus.WAITING)
        self._sampler.start_watching(self.handle_fix, self.handle_error)

    def _apply_status(
        self, status: GpsStatus, error: Optional[GeolocationError] = None
    ) -> bool:
        with self._lock:
            changed = status is not self._gps_status or error is not self._last_error
            self._gps_status = status
            self._last_error = error
        return changed

    def _notify_status(
        self, status: GpsStatus, error: Optional[GeolocationError]
    ) -> None:
        if self._on_status is not None:
            self._on_status(status, error)

    def _set_status(
        self, status: GpsStatus, error: Optional[GeolocationError] = None
    ) -> None:
        """Update the GPS status; the callback runs without the lock held."""

        if self._apply_status(status, error):
            self._notify_status(status, error)

    def _detect_objects(self, fix: GeoFix) -> List[Tuple[ObjectMarker, bool]]:
        excluded = {marker.id for marker in self._found} | set(self._pending)
        hits = detect_newly_found(
            fix, self._placed, excluded, self._config.proximity_radius_m
        )
        events: List[Tuple[ObjectMarker, bool]] = []
        for marker_id in hits:
            candidate = make_found_marker(marker_id, fix, fix.timestamp_ms)
            if self._config.confirm_before_marking_found:
                self._pending[marker_id] = candidate
                events.append((candidate, True))
                continue
            committed = self._commit_found(candidate)
            if committed is not None:
                events.append((committed, False))
        return events

    def _commit_found(self, marker: ObjectMarker) -> Optional[ObjectMarker]:
        if any(existing.id == marker.id for existing in self._found):
            self._log.debug("Object %s already marked as found", marker.id)
            return None
        self._found.append(marker)
        self._log.info("Object %s found", marker.id)
        return marker

    def _session_objects(self) -> List[ObjectMarker]:
        if self._mode is SessionMode.TRAIL:
            return self._placed
        return self._found

    def _snapshot(self, *, active: bool) -> Dict[str, Any]:
        return {
            "type": self._mode.value,
            "points": [point.to_dict() for point in self._points],
            "objects": [marker.to_dict() for marker in self._session_objects()],
            "active": active,
        }

    def _autosave(self) -> None:
        if self._resume_cache is None or not self._points:
            return
        try:
            tracking = self._mode is SessionMode.TRACKING
            self._resume_cache.save(
                self._points,
                self._session_objects(),
                reference_trail=self._reference_trail,
                placed_objects=self._placed if tracking else None,
                extra={"dogId": self._dog_id} if self._dog_id else None,
            )
        except OSError as exc:
            self._log.warning("Auto-save failed: %s", exc)

    def _ensure_live_session(self) -> None:
        if self._live_sink is None or self._live_session_id is not None:
            return
        try:
            self._live_session_id = self._live_sink.create(self._dog_id, self._mode)
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Live session could not be created: %s", exc)
            return
        if self._live_session_id:
            self._log.info("Live session %s created", self._live_session_id)

    def _stage_snapshot(self) -> None:
        """Replace any unsent live snapshot with the current buffers (lock held)."""

        session_id = self._live_session_id
        if self._live_sink is None or not session_id:
            return
        self._sync_slot = (session_id, self._snapshot(active=True))

    def _flush_live(self) -> None:
        """Make sure a drain loop will deliver the staged snapshot.

        Only one drain runs at a time, so pushes reach the sink in order and
        the last push always carries the newest buffers.
        """

        executor: Optional[ThreadPoolExecutor] = None
        with self._lock:
            if self._sync_slot is None or self._sync_scheduled:
                return
            self._sync_scheduled = True
            if self._config.background_sync:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix="live-sync"
                    )
                executor = self._executor
        if executor is None:
            self._drain_sync()
            return
        try:
            executor.submit(self._drain_sync)
        except RuntimeError as exc:
            # Executor already shut down (recorder closed concurrently).
            with self._lock:
                self._sync_scheduled = False
            self._log.debug("Live sync skipped: %s", exc)

    def _drain_sync(self) -> None:
        while True:
            with self._lock:
                pending = self._sync_slot
                self._sync_slot = None
                if pending is None:
                    self._sync_scheduled = False
                    return
            self._send(*pending)

    def _send(self, session_id: str, snapshot: Mapping[str, Any]) -> None:
        sink = self._live_sink
        if sink is None:
            return
        try:
            sink.push(session_id, snapshot)
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Error updating live session %s: %s", session_id, exc)

    def _end_live_session(self) -> None:
        if self._live_sink is None or not self._live_session_id:
            return
        try:
            self._live_sink.end(self._live_session_id)
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "Error ending live session %s: %s", self._live_session_id, exc
            )

    def _shutdown_sync(self, *, wait: bool) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait)


__all__ = [
    "GpsStatus",
    "LiveSessionSink",
    "RecorderConfig",
    "RecorderState",
    "SessionRecorder",
]
