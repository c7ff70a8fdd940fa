"""Error taxonomy for printer communication."""

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Stable error codes reported to callers."""

    UNKNOWN = "UNKNOWN_ERROR"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"
    BLUETOOTH_DISABLED = "BLUETOOTH_DISABLED"
    BLUETOOTH_UNAVAILABLE = "BLUETOOTH_UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIMEOUT = "TIMEOUT"
    IO_ERROR = "IO_ERROR"
    PRINTER_ERROR = "PRINTER_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"


class LabelwireError(Exception):
    """Base exception for all classified printer communication errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "", details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a wire payload."""
        return error_payload(self.kind, self.message, self.details)


class ConnectionFailedError(LabelwireError):
    """Channel could not be opened, or opening it timed out."""

    kind = ErrorKind.CONNECTION_FAILED


class NotConnectedError(LabelwireError):
    """Operation attempted without a usable connection."""

    kind = ErrorKind.NOT_CONNECTED


class BluetoothUnavailableError(ConnectionFailedError):
    """The host has no Bluetooth hardware or RFCOMM support."""

    kind = ErrorKind.BLUETOOTH_UNAVAILABLE


class BluetoothDisabledError(ConnectionFailedError):
    """The Bluetooth adapter exists but is powered off."""

    kind = ErrorKind.BLUETOOTH_DISABLED


class PermissionDeniedError(LabelwireError):
    """The OS refused access to the channel."""

    kind = ErrorKind.PERMISSION_DENIED


class TransportTimeoutError(LabelwireError):
    """A read or write exceeded its configured bound."""

    kind = ErrorKind.TIMEOUT


class TransportIOError(LabelwireError):
    """Lower-level fault while writing to or reading from a transport."""

    kind = ErrorKind.IO_ERROR


class PrinterError(LabelwireError):
    """The printer reported a fault condition."""

    kind = ErrorKind.PRINTER_ERROR


class InvalidArgumentError(LabelwireError, ValueError):
    """Malformed caller input."""

    kind = ErrorKind.INVALID_ARGUMENT


class DeviceNotFoundError(ConnectionFailedError):
    """No attached device matches the requested address."""

    kind = ErrorKind.DEVICE_NOT_FOUND


def map_exception(exc: BaseException) -> tuple[ErrorKind, str]:
    """Classify an exception into an error kind and a human message.

    Args:
        exc: Any exception raised while talking to a printer.

    Returns:
        Tuple of (error kind, message).
    """
    if isinstance(exc, LabelwireError):
        return exc.kind, exc.message or exc.kind.value
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT, f"Communication timeout: {str(exc) or 'No response from printer'}"
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED, f"Permission denied: {detail}"
    if isinstance(exc, OSError):
        return ErrorKind.IO_ERROR, f"Communication error: {detail}"
    if isinstance(exc, ValueError):
        return ErrorKind.INVALID_ARGUMENT, f"Invalid argument: {detail}"
    return ErrorKind.UNKNOWN, f"Unknown error: {detail}"


def error_payload(kind: ErrorKind, message: str, details: Any = None) -> dict[str, Any]:
    """Build the standard error map returned to API callers."""
    return {
        "errorCode": kind.value,
        "message": message,
        "details": details,
    }
