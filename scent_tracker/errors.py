"""Central error types used across the package."""

from __future__ import annotations


class GeolocationError(RuntimeError):
    """Base error for failures reported by the location provider.

    Every subclass carries a stable numeric ``code`` (matching the platform
    error codes) and a human-readable ``message`` suitable for a status line.
    """

    code: int = -1
    default_message = "Geolocation error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def is_transient(self) -> bool:
        """True when the caller may retry (signal problems, not permissions)."""

        return False


class LocationUnsupportedError(GeolocationError):
    """Raised when no location provider is available on this platform."""

    code = 0
    default_message = "Geolocation is not available on this device."


class LocationPermissionError(GeolocationError):
    """Raised when the user denied access to location services."""

    code = 1
    default_message = "Location access denied. Grant permission in the settings."


class PositionUnavailableError(GeolocationError):
    """Raised when the provider cannot determine a position (no signal)."""

    code = 2
    default_message = "Searching for satellites... Make sure you are in the open."

    @property
    def is_transient(self) -> bool:
        return True


class LocationTimeoutError(GeolocationError):
    """Raised when no fix arrived within the configured timeout."""

    code = 3
    default_message = "Weak GPS signal. Try again."

    @property
    def is_transient(self) -> bool:
        return True


class TrackerAPIError(RuntimeError):
    """Base error for tracker service failures."""


class TrackerPermissionError(TrackerAPIError):
    """Raised when the service rejects the credentials (401/403)."""


class TrackerNotFoundError(TrackerAPIError):
    """Raised when a track or live session does not exist."""


__all__ = [
    "GeolocationError",
    "LocationUnsupportedError",
    "LocationPermissionError",
    "PositionUnavailableError",
    "LocationTimeoutError",
    "TrackerAPIError",
    "TrackerPermissionError",
    "TrackerNotFoundError",
]
