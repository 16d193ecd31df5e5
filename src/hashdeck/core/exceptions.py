"""
Hashdeck exception hierarchy.

Bridge-facing errors carry an ``ErrorKind`` tag.  Components raise them; the
command bridge turns them into failed ``BridgeResult`` values so nothing is
thrown across the UI boundary.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    BACKEND_ERROR = "backend_error"
    NOT_CONNECTED = "not_connected"
    BUSY = "busy"
    INVALID_ADDRESS = "invalid_address"
    SURFACE_UNAVAILABLE = "surface_unavailable"
    UNKNOWN_OPERATION = "unknown_operation"
    INVALID_ARGUMENTS = "invalid_arguments"


class HashdeckError(Exception):
    """Base class for all Hashdeck errors."""


class ConfigError(HashdeckError):
    """Configuration file is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """An explicitly requested configuration file does not exist."""


class BridgeError(HashdeckError):
    """An error that a bridge operation reports to its caller."""

    kind: ErrorKind = ErrorKind.BACKEND_ERROR


class BackendUnreachable(BridgeError):
    kind = ErrorKind.UNREACHABLE


class BackendTimeout(BridgeError):
    kind = ErrorKind.TIMEOUT


class MalformedResponse(BridgeError):
    kind = ErrorKind.MALFORMED_RESPONSE


class BackendError(BridgeError):
    """The backend answered, but with an error status."""

    kind = ErrorKind.BACKEND_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotConnected(BridgeError):
    kind = ErrorKind.NOT_CONNECTED


class RelayBusy(BridgeError):
    kind = ErrorKind.BUSY


class InvalidRelayAddress(BridgeError):
    kind = ErrorKind.INVALID_ADDRESS


class SurfaceUnavailable(BridgeError):
    kind = ErrorKind.SURFACE_UNAVAILABLE


class UnknownOperation(BridgeError):
    kind = ErrorKind.UNKNOWN_OPERATION


class InvalidArguments(BridgeError):
    kind = ErrorKind.INVALID_ARGUMENTS
