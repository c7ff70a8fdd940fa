"""Bluetooth Classic RFCOMM transport."""

import asyncio
import errno
import logging
import re
import socket

from labelwire.errors import (
    BluetoothDisabledError,
    BluetoothUnavailableError,
    ConnectionFailedError,
    InvalidArgumentError,
    LabelwireError,
    PermissionDeniedError,
)
from labelwire.transports.base import DEFAULT_READ_TIMEOUT_MS, PERMISSION_ERRNOS
from labelwire.transports.stream import StreamTransport

logger = logging.getLogger(__name__)

DEFAULT_RFCOMM_CHANNEL = 1

MAC_ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")

# Errors meaning the local adapter cannot be used
ADAPTER_DOWN_ERRNOS = (errno.ENETDOWN, errno.ENODEV, errno.EADDRNOTAVAIL)


def rfcomm_supported() -> bool:
    """Check whether this Python build exposes RFCOMM sockets."""
    return hasattr(socket, "AF_BLUETOOTH") and hasattr(socket, "BTPROTO_RFCOMM")


class BluetoothTransport(StreamTransport):
    """Printer reachable over a Bluetooth RFCOMM channel."""

    def __init__(
        self,
        address: str,
        channel: int = DEFAULT_RFCOMM_CHANNEL,
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
    ) -> None:
        if not MAC_ADDRESS_RE.match(address or ""):
            raise InvalidArgumentError(f"Invalid Bluetooth address: {address!r}")
        if not 1 <= channel <= 30:
            raise InvalidArgumentError(f"RFCOMM channel must be between 1 and 30, got {channel}")
        super().__init__(read_timeout_ms)
        self.address = address.upper()
        self.channel = channel

    @property
    def description(self) -> str:
        return f"{self.address} ch {self.channel}"

    async def connect(self, timeout_ms: int) -> None:
        """Open an RFCOMM socket to the printer."""
        await self.close()

        if not rfcomm_supported():
            raise BluetoothUnavailableError("Bluetooth RFCOMM sockets are not supported on this platform")

        try:
            sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        except OSError as e:
            if e.errno in (errno.EAFNOSUPPORT, errno.EPROTONOSUPPORT):
                raise BluetoothUnavailableError(f"Bluetooth is not available: {e}") from e
            raise ConnectionFailedError(f"Failed to allocate RFCOMM socket: {e}") from e

        sock.setblocking(False)
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.sock_connect(sock, (self.address, self.channel)), timeout=timeout_ms / 1000)
            self._reader, self._writer = await asyncio.open_connection(sock=sock)
        except TimeoutError as e:
            sock.close()
            raise ConnectionFailedError(f"Timeout connecting to Bluetooth device {self.address}") from e
        except OSError as e:
            sock.close()
            raise self._connect_error(e) from e
        except asyncio.CancelledError:
            sock.close()
            raise

        logger.info(f"Connected to Bluetooth printer {self.description}")

    def _connect_error(self, error: OSError) -> LabelwireError:
        if error.errno in PERMISSION_ERRNOS:
            return PermissionDeniedError(f"Not allowed to open RFCOMM channel to {self.address}: {error}")
        if error.errno in ADAPTER_DOWN_ERRNOS:
            return BluetoothDisabledError(f"Bluetooth adapter is not powered: {error}")
        if error.errno == errno.EHOSTDOWN:
            return ConnectionFailedError(
                f"Cannot connect to Bluetooth device {self.address}. "
                f"Ensure it is powered on, in range, paired and not connected to another host."
            )
        if error.errno == errno.ECONNREFUSED:
            return ConnectionFailedError(
                f"Connection refused by device {self.address}. The device may be busy or use another channel."
            )
        return ConnectionFailedError(f"Failed to connect to Bluetooth device {self.address}: {error}")
