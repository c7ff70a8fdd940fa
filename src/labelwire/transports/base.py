"""Abstract base class for transport implementations."""

import asyncio
import errno
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

from labelwire.errors import (
    NotConnectedError,
    PermissionDeniedError,
    TransportIOError,
    TransportTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT_MS = 10000

# Bytes requested per read when the response length is open-ended
READ_CHUNK_SIZE = 1024

PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)

T = TypeVar("T")


class BaseTransport(ABC):
    """Byte-stream channel to a single printer.

    Subclasses open and close the physical channel and move raw bytes;
    this class owns the request/response protocol on top: timeouts, exact
    length reads and terminator scanning.
    """

    # True when _send and _recv stop on their own once `timeout` elapses;
    # they are then awaited to completion rather than cancelled.
    bounds_own_io = False

    def __init__(self, read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS) -> None:
        self.read_timeout_ms = read_timeout_ms

    async def _bounded(self, operation: Awaitable[T], timeout: float) -> T:
        if self.bounds_own_io:
            return await operation
        return await asyncio.wait_for(operation, timeout=timeout)

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable target, used in log and error messages."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Liveness from internal state only, without touching the device."""

    @abstractmethod
    async def connect(self, timeout_ms: int) -> None:
        """Open the channel, replacing any stale handles.

        Raises:
            ConnectionFailedError: If the channel cannot be opened within
                `timeout_ms` (subclasses raise more specific kinds where known).
            PermissionDeniedError: If the OS refuses access.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the channel. Never raises."""

    @abstractmethod
    async def _send(self, data: bytes, timeout: float) -> None:
        """Write all of `data`."""

    @abstractmethod
    async def _recv(self, size: int, timeout: float) -> bytes:
        """Read up to `size` bytes; b"" means the peer closed the channel.

        Raises:
            TimeoutError: If nothing arrives within `timeout` seconds.
        """

    async def write(
        self,
        data: bytes,
        response_byte_count: int | None = None,
        terminator: bytes | None = None,
        timeout_ms: int | None = None,
    ) -> bytes | None:
        """Write data and optionally read a bounded response.

        Args:
            data: Bytes to send.
            response_byte_count: None to skip reading, N >= 0 to read exactly
                N bytes, -1 to read until `terminator` or end of stream.
            terminator: Byte sequence ending a variable-length response. It is
                included in the returned bytes.
            timeout_ms: Bound for the write and for the read, defaults to
                `read_timeout_ms`.

        Returns:
            Response bytes, or None if no response was requested.

        Raises:
            NotConnectedError: If the channel is not open.
            TransportTimeoutError: If the write or read exceeds the bound.
            TransportIOError: On lower-level faults, or if the stream ends before
                an exact count is read.
            PermissionDeniedError: If the OS refuses access mid-transfer.
        """
        if not self.is_connected:
            raise NotConnectedError(f"{self.description} is not connected")

        timeout_ms = timeout_ms or self.read_timeout_ms
        timeout = timeout_ms / 1000

        try:
            await self._bounded(self._send(data, timeout), timeout)
        except TimeoutError as e:
            raise TransportTimeoutError(f"Write to {self.description} timed out after {timeout_ms} ms") from e
        except OSError as e:
            raise self._io_error("write", e) from e

        logger.debug(f"Wrote {len(data)} bytes to {self.description}")

        if response_byte_count is None:
            return None

        try:
            return await self._read_response(response_byte_count, terminator or None, timeout_ms)
        except OSError as e:
            raise self._io_error("read", e) from e

    async def _read_response(self, count: int, terminator: bytes | None, timeout_ms: int) -> bytes:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        buffer = bytearray()
        open_ended = count < 0 and terminator is None

        while True:
            if count >= 0 and len(buffer) >= count:
                return bytes(buffer[:count])
            if terminator is not None:
                index = buffer.find(terminator)
                if index >= 0:
                    return bytes(buffer[: index + len(terminator)])

            remaining = deadline - loop.time()
            try:
                if remaining <= 0:
                    raise TimeoutError
                want = count - len(buffer) if count >= 0 else READ_CHUNK_SIZE
                chunk = await self._bounded(self._recv(want, remaining), remaining)
            except TimeoutError as e:
                if open_ended and buffer:
                    return bytes(buffer)
                raise TransportTimeoutError(
                    f"No response from {self.description} within {timeout_ms} ms",
                    details={"received": len(buffer)},
                ) from e

            if not chunk:
                if count < 0:
                    return bytes(buffer)
                raise TransportIOError(
                    f"{self.description} closed the connection after {len(buffer)} response bytes",
                    details={"received": len(buffer)},
                )
            buffer += chunk

    def _io_error(self, action: str, error: OSError) -> Exception:
        if error.errno in PERMISSION_ERRNOS:
            return PermissionDeniedError(f"Permission denied during {action} on {self.description}: {error}")
        return TransportIOError(f"Failed to {action} {self.description}: {error}")

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "closed"
        return f"<{type(self).__name__} {self.description} {state}>"
