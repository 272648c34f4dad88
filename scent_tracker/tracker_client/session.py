"""Pooled ``requests`` sessions for the tracker service.

Only idempotent reads are retried. Live-session pushes and track uploads are
POSTs; a failed one is reported to the caller and superseded by the next
snapshot rather than replayed.
"""

from __future__ import annotations

from threading import Lock
from typing import Optional

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    HTTP_RETRY_BACKOFF_SECONDS,
    HTTP_RETRY_TOTAL,
)

__all__ = ["build_retry", "create_default_session", "get_default_session"]

RETRY_STATUSES = (502, 503, 504)


def build_retry(
    total: int = HTTP_RETRY_TOTAL, backoff: float = HTTP_RETRY_BACKOFF_SECONDS
) -> Retry:
    return Retry(
        total=total,
        backoff_factor=backoff,
        status_forcelist=list(RETRY_STATUSES),
        allowed_methods=["GET"],
        raise_on_status=False,
    )


def create_default_session(
    *,
    pool_connections: int = HTTP_POOL_CONNECTIONS,
    pool_maxsize: int = HTTP_POOL_MAXSIZE,
    retry: Optional[Retry] = None,
) -> Session:
    """Return a new session with a pooled adapter mounted for both schemes."""

    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=retry if retry is not None else build_retry(),
    )
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    session.headers.update({"Accept": "application/json"})
    return session


_DEFAULT_SESSION: Optional[Session] = None
_DEFAULT_SESSION_LOCK = Lock()


def get_default_session() -> Session:
    """Return the shared session, creating it on first use."""

    global _DEFAULT_SESSION
    with _DEFAULT_SESSION_LOCK:
        if _DEFAULT_SESSION is None:
            _DEFAULT_SESSION = create_default_session()
        return _DEFAULT_SESSION
