"""Adapter exposing :class:`TrackerClient` as a recorder live-session sink."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..models import SessionMode
from .client import TrackerClient


class LiveSessionSink:
    """Create / push / end live sessions through the tracker service.

    Pushes are idempotent upserts keyed by the session id: the service keeps
    whatever arrives last.
    """

    def __init__(self, client: TrackerClient) -> None:
        self._client = client

    def create(self, dog_id: Optional[str], mode: SessionMode) -> Optional[str]:
        return self._client.create_live_session(dog_id, mode)

    def push(self, session_id: str, snapshot: Mapping[str, Any]) -> None:
        self._client.update_live_session(session_id, snapshot)

    def end(self, session_id: str) -> None:
        self._client.end_live_session(session_id)


__all__ = ["LiveSessionSink"]
