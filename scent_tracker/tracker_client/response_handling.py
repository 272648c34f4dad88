"""Turn tracker service responses into typed errors."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

import requests

from ..errors import TrackerAPIError, TrackerNotFoundError, TrackerPermissionError

__all__ = [
    "error_for_response",
    "extract_error",
]

MAX_ERROR_TEXT = 300

# status -> (error type, log level, message template)
_STATUS_ERRORS: Dict[int, Tuple[Type[TrackerAPIError], int, str]] = {
    401: (TrackerPermissionError, logging.WARNING, "{context} unauthorized (status 401)"),
    403: (TrackerPermissionError, logging.WARNING, "{context} forbidden (status 403)"),
    404: (TrackerNotFoundError, logging.INFO, "{context} not found"),
}


def error_for_response(
    response: requests.Response, context: str
) -> Optional[TrackerAPIError]:
    """Return the error matching a non-success status, or None when OK.

    The service's own ``error`` message (or a trimmed text body) is appended
    to the message so callers can surface it unchanged.
    """

    status = response.status_code
    if status < 400:
        return None
    error_type, level, template = _STATUS_ERRORS.get(
        status,
        (TrackerAPIError, logging.ERROR, "{context} request failed (status {status})"),
    )
    message = template.format(context=context, status=status)
    detail = extract_error(response)
    if detail:
        message = f"{message} | {detail}"
    logging.log(level, message)
    return error_type(message)


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return the service's ``error`` message, or a trimmed body snippet."""

    if resp is None:
        return None
    try:
        data: Any = resp.json()
    except ValueError as exc:
        # requests' JSONDecodeError subclasses ValueError.
        logging.debug("Non-JSON error body from %s: %s", getattr(resp, "url", "?"), exc)
        return _trimmed_text(resp)
    if isinstance(data, dict):
        error = data.get("error") or data.get("message")
        return str(error) if error else None
    return None


def _trimmed_text(resp: requests.Response) -> Optional[str]:
    text = getattr(resp, "text", "")
    if not isinstance(text, str) or not text.strip():
        return None
    trimmed = text.strip()
    if len(trimmed) > MAX_ERROR_TEXT:
        return trimmed[: MAX_ERROR_TEXT - 3] + "..."
    return trimmed
