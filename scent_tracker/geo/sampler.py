"""Location sampling on top of a platform location provider.

The provider follows the browser geolocation contract: a continuous watch
identified by an opaque handle, a one-shot position request, raw positions in
the ``{"coords": {...}, "timestamp": ms}`` shape and numeric error codes.
:class:`GeoSampler` turns that into normalised :class:`GeoFix` records and
typed :class:`GeolocationError` failures and owns the watch lifecycle.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
import itertools
import logging
from threading import RLock
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Hashable,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    Tuple,
)

from ..config import GPS_FIX_TIMEOUT_MS, GPS_HIGH_ACCURACY, GPS_MAXIMUM_AGE_MS
from ..errors import (
    GeolocationError,
    LocationPermissionError,
    LocationTimeoutError,
    LocationUnsupportedError,
    PositionUnavailableError,
)
from ..models import GeoFix

RawPosition = Mapping[str, Any]
RawPositionCallback = Callable[[RawPosition], None]
RawErrorCallback = Callable[[int, Optional[str]], None]
FixCallback = Callable[[GeoFix], None]
ErrorCallback = Callable[[GeolocationError], None]

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

_ERROR_TYPES: Dict[int, type[GeolocationError]] = {
    0: LocationUnsupportedError,
    PERMISSION_DENIED: LocationPermissionError,
    POSITION_UNAVAILABLE: PositionUnavailableError,
    TIMEOUT: LocationTimeoutError,
}


@dataclass(frozen=True, slots=True)
class PositionOptions:
    """Options forwarded to the provider for watches and one-shot requests."""

    enable_high_accuracy: bool = GPS_HIGH_ACCURACY
    timeout_ms: int = GPS_FIX_TIMEOUT_MS
    maximum_age_ms: int = GPS_MAXIMUM_AGE_MS


class LocationProvider(Protocol):
    """Platform positioning primitive wrapped by :class:`GeoSampler`."""

    def is_available(self) -> bool: ...

    def watch_position(
        self,
        on_position: RawPositionCallback,
        on_error: RawErrorCallback,
        options: PositionOptions,
    ) -> Hashable: ...

    def clear_watch(self, handle: Hashable) -> None: ...

    def get_current_position(
        self,
        on_position: RawPositionCallback,
        on_error: RawErrorCallback,
        options: PositionOptions,
    ) -> None: ...


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def convert_position(raw: RawPosition) -> GeoFix:
    """Normalise a raw provider position into a :class:`GeoFix`.

    Accepts the nested ``coords`` shape as well as the flat
    ``{"lat", "lng", "timestamp", "accuracy"}`` shape used in stored traces.
    """

    coords = raw.get("coords")
    if isinstance(coords, Mapping):
        return GeoFix(
            latitude=float(coords["latitude"]),
            longitude=float(coords["longitude"]),
            timestamp_ms=int(raw["timestamp"]),
            accuracy_m=_optional_float(coords.get("accuracy")),
            altitude_m=_optional_float(coords.get("altitude")),
            speed_mps=_optional_float(coords.get("speed")),
            heading_deg=_optional_float(coords.get("heading")),
        )
    return GeoFix(
        latitude=float(raw["lat"]),
        longitude=float(raw["lng"]),
        timestamp_ms=int(raw["timestamp"]),
        accuracy_m=_optional_float(raw.get("accuracy")),
        altitude_m=_optional_float(raw.get("altitude")),
        speed_mps=_optional_float(raw.get("speed")),
        heading_deg=_optional_float(raw.get("heading")),
    )


def convert_error(code: int, detail: Optional[str] = None) -> GeolocationError:
    """Map a provider error code to the matching :class:`GeolocationError`."""

    error_type = _ERROR_TYPES.get(code)
    if error_type is None:
        error = GeolocationError(detail)
        error.code = code
        return error
    error = error_type()
    if detail:
        logging.debug("Geolocation error %s detail: %s", code, detail)
    return error


class GeoSampler:
    """Owns at most one provider watch and converts what it reports."""

    def __init__(
        self,
        provider: LocationProvider,
        options: Optional[PositionOptions] = None,
    ) -> None:
        self._provider = provider
        self._options = options or PositionOptions()
        self._lock = RLock()
        self._watching = False
        self._handle: Optional[Hashable] = None
        # Callbacks from a torn-down watch carry a stale generation and are dropped.
        self._generation = 0
        self._log = logging.getLogger(self.__class__.__name__)

    @property
    def options(self) -> PositionOptions:
        return self._options

    @property
    def is_watching(self) -> bool:
        return self._watching

    def is_available(self) -> bool:
        return self._provider.is_available()

    def start_watching(
        self, on_fix: FixCallback, on_error: Optional[ErrorCallback] = None
    ) -> None:
        """Begin continuous reporting; a no-op while a watch is active."""

        if not self._provider.is_available():
            if on_error is not None:
                on_error(LocationUnsupportedError())
            return
        with self._lock:
            if self._watching:
                return
            self._watching = True
            self._generation += 1
            generation = self._generation

            def _on_position(raw: RawPosition) -> None:
                if generation != self._generation:
                    return
                fix = self._convert(raw)
                if fix is not None:
                    on_fix(fix)

            def _on_error(code: int, detail: Optional[str] = None) -> None:
                if generation != self._generation:
                    return
                if on_error is not None:
                    on_error(convert_error(code, detail))

            try:
                handle = self._provider.watch_position(
                    _on_position, _on_error, self._options
                )
            except Exception:
                self._watching = False
                self._generation += 1
                raise
            if generation == self._generation:
                self._handle = handle
            else:
                # A callback stopped the watch while it was being registered.
                self._provider.clear_watch(handle)
        self._log.debug("Started location watch (generation %d)", generation)

    def stop_watching(self) -> None:
        """Release the provider subscription; safe to call repeatedly."""

        with self._lock:
            if not self._watching:
                return
            handle = self._handle
            self._handle = None
            self._watching = False
            self._generation += 1
        if handle is not None:
            self._provider.clear_watch(handle)
        self._log.debug("Stopped location watch")

    def get_current_position(self) -> "Future[GeoFix]":
        """Request a single fix; the future resolves or fails, never retries."""

        future: "Future[GeoFix]" = Future()
        if not self._provider.is_available():
            future.set_exception(LocationUnsupportedError())
            return future

        def _on_position(raw: RawPosition) -> None:
            if future.done():
                return
            fix = self._convert(raw)
            if fix is None:
                future.set_exception(PositionUnavailableError())
            else:
                future.set_result(fix)

        def _on_error(code: int, detail: Optional[str] = None) -> None:
            if not future.done():
                future.set_exception(convert_error(code, detail))

        self._provider.get_current_position(_on_position, _on_error, self._options)
        return future

    def _convert(self, raw: RawPosition) -> Optional[GeoFix]:
        try:
            return convert_position(raw)
        except (KeyError, TypeError, ValueError) as exc:
            self._log.warning("Ignoring malformed position %r: %s", raw, exc)
            return None

    def __enter__(self) -> "GeoSampler":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_watching()


class ReplayLocationProvider:
    """Provider that replays recorded positions on demand.

    Entries are raw positions (either shape accepted by
    :func:`convert_position`) or ``{"error": {"code": int, "message": str}}``
    records. Nothing is delivered until :meth:`drain` is called, and only
    while at least one watch is registered.
    """

    def __init__(self, entries: Iterable[Mapping[str, Any]], *, available: bool = True):
        self._queue: Deque[Mapping[str, Any]] = deque(entries)
        self._watches: Dict[int, Tuple[RawPositionCallback, RawErrorCallback]] = {}
        self._handles = itertools.count(1)
        self._available = available
        self.watch_calls = 0
        self.clear_calls = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def is_available(self) -> bool:
        return self._available

    def watch_position(
        self,
        on_position: RawPositionCallback,
        on_error: RawErrorCallback,
        options: PositionOptions,
    ) -> Hashable:
        handle = next(self._handles)
        self._watches[handle] = (on_position, on_error)
        self.watch_calls += 1
        return handle

    def clear_watch(self, handle: Hashable) -> None:
        if self._watches.pop(handle, None) is not None:  # type: ignore[call-overload]
            self.clear_calls += 1

    def get_current_position(
        self,
        on_position: RawPositionCallback,
        on_error: RawErrorCallback,
        options: PositionOptions,
    ) -> None:
        if not self._queue:
            on_error(TIMEOUT, "No recorded position available")
            return
        self._dispatch(self._queue[0], on_position, on_error)

    def drain(self, limit: Optional[int] = None) -> int:
        """Deliver queued entries to the active watches; return how many."""

        delivered = 0
        while self._queue and self._watches:
            if limit is not None and delivered >= limit:
                break
            entry = self._queue.popleft()
            for on_position, on_error in list(self._watches.values()):
                self._dispatch(entry, on_position, on_error)
            delivered += 1
        return delivered

    @staticmethod
    def _dispatch(
        entry: Mapping[str, Any],
        on_position: RawPositionCallback,
        on_error: RawErrorCallback,
    ) -> None:
        error = entry.get("error")
        if isinstance(error, Mapping):
            on_error(int(error.get("code", POSITION_UNAVAILABLE)), error.get("message"))
        else:
            on_position(entry)


__all__ = [
    "GeoSampler",
    "LocationProvider",
    "PositionOptions",
    "ReplayLocationProvider",
    "convert_error",
    "convert_position",
]
