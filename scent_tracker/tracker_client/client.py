"""Client for the key-value backed tracker service.

The service stores tracks per user and mirrors in-progress recordings as
"live sessions" that instructors can watch. Every endpoint answers with a
JSON object; failures carry an ``error`` message.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional

import requests
from cachetools import TTLCache

from ..config import (
    LIVE_SESSION_CACHE_SIZE,
    LIVE_SESSION_CACHE_TTL_SECONDS,
    REQUEST_TIMEOUT,
    TRACKER_API_BASE_URL,
    TRACKER_API_TOKEN,
)
from ..errors import TrackerAPIError
from ..models import SessionMode
from .response_handling import error_for_response
from .session import get_default_session

JSONDict = Dict[str, Any]


class TrackerClient:
    """Thin wrapper over the tracker HTTP API."""

    def __init__(
        self,
        base_url: str = TRACKER_API_BASE_URL,
        token: Optional[str] = TRACKER_API_TOKEN,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        live_cache_ttl_s: float = LIVE_SESSION_CACHE_TTL_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token or None
        self._session = session or get_default_session()
        self._timeout = timeout
        self._live_cache: TTLCache[str, JSONDict] = TTLCache(
            maxsize=max(1, LIVE_SESSION_CACHE_SIZE), ttl=max(live_cache_ttl_s, 0.001)
        )
        self._live_cache_lock = RLock()
        self._log = logging.getLogger(self.__class__.__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        context: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> JSONDict:
        url = f"{self._base_url}{path}"
        self._log.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(),
                json=dict(payload) if payload is not None else None,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TrackerAPIError(f"{context} failed: {exc}") from exc
        error = error_for_response(response, context)
        if error is not None:
            raise error
        try:
            data = response.json()
        except ValueError as exc:
            raise TrackerAPIError(f"{context} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise TrackerAPIError(f"{context} returned unexpected payload")
        return data

    # ------------------------------------------------------------------
    # Live sessions
    # ------------------------------------------------------------------
    def create_live_session(self, dog_id: Optional[str], mode: SessionMode) -> str:
        """Open a live session and return its share code."""

        data = self._request(
            "POST",
            "/live-sessions",
            "Create live session",
            {"dogId": dog_id, "type": SessionMode(mode).value},
        )
        session = data.get("session") or {}
        session_id = session.get("id")
        if not session_id:
            raise TrackerAPIError("Create live session returned no session id")
        return str(session_id)

    def update_live_session(
        self, session_id: str, snapshot: Mapping[str, Any]
    ) -> JSONDict:
        data = self._request(
            "POST",
            f"/live-sessions/{session_id}/update",
            f"Update live session {session_id}",
            snapshot,
        )
        with self._live_cache_lock:
            self._live_cache.pop(session_id, None)
        return data.get("session") or {}

    def end_live_session(self, session_id: str) -> JSONDict:
        data = self._request(
            "POST",
            f"/live-sessions/{session_id}/end",
            f"End live session {session_id}",
        )
        with self._live_cache_lock:
            self._live_cache.pop(session_id, None)
        return data.get("session") or {}

    def get_live_session(self, session_id: str, *, use_cache: bool = True) -> JSONDict:
        """Fetch a live session for observers; short-lived responses are reused."""

        if use_cache:
            with self._live_cache_lock:
                cached = self._live_cache.get(session_id)
            if cached is not None:
                return cached
        data = self._request(
            "GET", f"/live-sessions/{session_id}", f"Fetch live session {session_id}"
        )
        session = data.get("session") or {}
        with self._live_cache_lock:
            self._live_cache[session_id] = session
        return session

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------
    def create_track(self, record: Mapping[str, Any]) -> JSONDict:
        """Store a finished track; returns the record as stored by the service."""

        data = self._request("POST", "/tracks", "Create track", record)
        track = data.get("track")
        if not isinstance(track, dict):
            raise TrackerAPIError("Create track returned no track")
        return track

    def list_tracks(self) -> List[JSONDict]:
        data = self._request("GET", "/tracks", "List tracks")
        tracks = data.get("tracks") or []
        return [track for track in tracks if isinstance(track, dict)]

    def get_track(self, track_id: str) -> JSONDict:
        data = self._request("GET", f"/tracks/{track_id}", f"Fetch track {track_id}")
        track = data.get("track")
        if not isinstance(track, dict):
            raise TrackerAPIError(f"Fetch track {track_id} returned no track")
        return track


__all__ = ["TrackerClient"]
