"""
Errors raised on the tracking client.

Each error carries two texts: ``message`` for logs and ``user_message`` for
the person holding the device, which says what to check or do next.
"""

import enum
from typing import Any, Dict, Optional


class GeolocationErrorKind(str, enum.Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


class TrackingError(Exception):
    """Base tracking client exception."""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: str,
        user_message: Optional[str] = None,
        details: Dict[str, Any] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.user_message = user_message or message
        self.details = details or {}
        super().__init__(message)


class GeolocationError(TrackingError):
    kind = GeolocationErrorKind.UNKNOWN


class PermissionDenied(GeolocationError):
    kind = GeolocationErrorKind.PERMISSION_DENIED

    def __init__(self, message: str = "Geolocation permission denied"):
        super().__init__(
            message,
            "ERR_GEO_001",
            "Location access denied. Please enable location permissions in your "
            "browser or device settings and try again.",
        )


class PositionUnavailable(GeolocationError):
    kind = GeolocationErrorKind.POSITION_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "Position unavailable"):
        super().__init__(
            message,
            "ERR_GEO_002",
            "Location information is unavailable. Please check your GPS settings.",
        )


class AcquisitionTimeout(GeolocationError):
    kind = GeolocationErrorKind.TIMEOUT
    retryable = True

    def __init__(self, message: str = "Location request timed out", exhausted: bool = False):
        self.exhausted = exhausted
        if exhausted:
            user_message = (
                "Unable to get location even with reduced accuracy. "
                "Please check your device settings."
            )
        else:
            user_message = "Location request timed out. Retrying with lower accuracy..."
        super().__init__(message, "ERR_GEO_003", user_message, {"exhausted": exhausted})
        if exhausted:
            self.retryable = False


class GeolocationUnsupported(GeolocationError):
    kind = GeolocationErrorKind.UNSUPPORTED

    def __init__(self, message: str = "Geolocation is not available on this device"):
        super().__init__(
            message,
            "ERR_GEO_004",
            "Geolocation is not supported by your browser. Please update your "
            "browser or enable location services.",
        )


class UnknownGeolocationError(GeolocationError):
    kind = GeolocationErrorKind.UNKNOWN

    def __init__(self, message: str = "Unknown geolocation error"):
        super().__init__(
            message,
            "ERR_GEO_000",
            "An unknown error occurred while retrieving location.",
        )


class NetworkFailure(TrackingError):
    """Transport error, timeout or 5xx from the backend."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(
            message,
            "ERR_NET_001",
            "Could not reach the server. Check your connection and try again.",
            {"status_code": status_code},
        )


class RequestRejected(TrackingError):
    """The backend answered with a 4xx."""

    def __init__(self, message: str, status_code: int, error_code: Optional[str] = None):
        self.status_code = status_code
        self.remote_error_code = error_code
        super().__init__(
            message,
            "ERR_NET_002",
            message,
            {"status_code": status_code, "remote_error_code": error_code},
        )

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401
