from typing import Optional

from fishtracker.orchestrator.contracts import FailureKind

ERR_PERMISSION_DENIED = "PERMISSION_DENIED"
ERR_UNAVAILABLE = "UNAVAILABLE"
ERR_TOO_LARGE = "PAYLOAD_TOO_LARGE"
ERR_INVALID_TRANSITION = "INVALID_TRANSITION"
ERR_NO_DETECTION = "NO_DETECTION"
ERR_NETWORK = "NETWORK"
ERR_HTTP = "HTTP"
ERR_PROTOCOL = "PROTOCOL"
ERR_UNKNOWN = "UNKNOWN"

FAILURE_CODES = {
    FailureKind.NETWORK: ERR_NETWORK,
    FailureKind.HTTP: ERR_HTTP,
    FailureKind.PROTOCOL: ERR_PROTOCOL,
}


class FishTrackerError(Exception):
    code = ERR_UNKNOWN


class CameraError(FishTrackerError):
    pass


class PermissionDenied(CameraError):
    code = ERR_PERMISSION_DENIED


class Unavailable(CameraError):
    code = ERR_UNAVAILABLE


class PayloadTooLarge(FishTrackerError):
    code = ERR_TOO_LARGE

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Image is too large ({size / 1024 / 1024:.1f} MB). "
            f"Maximum size is {limit // (1024 * 1024)} MB."
        )


class InvalidTransition(FishTrackerError):
    code = ERR_INVALID_TRANSITION


class ServiceError(FishTrackerError):
    """Read-path failure talking to the identification service."""

    def __init__(self, kind: FailureKind, message: str, status: Optional[int] = None):
        self.kind = kind
        self.status = status
        self.code = FAILURE_CODES[kind]
        super().__init__(message)
