"""Shared asyncio stream handling for socket based transports."""

import asyncio
import logging

from labelwire.transports.base import DEFAULT_READ_TIMEOUT_MS, BaseTransport

logger = logging.getLogger(__name__)


class StreamTransport(BaseTransport):
    """Transport over an asyncio StreamReader/StreamWriter pair."""

    def __init__(self, read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS) -> None:
        super().__init__(read_timeout_ms)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def is_connected(self) -> bool:
        if self._writer is None or self._reader is None:
            return False
        return not self._writer.is_closing() and not self._reader.at_eof()

    async def close(self) -> None:
        """Close the stream, ignoring errors."""
        if self._writer:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except Exception as e:
                logger.debug(f"Ignoring error while closing {self.description}: {e}")
            self._writer = None
            self._reader = None

    async def _send(self, data: bytes, timeout: float) -> None:
        if not self._writer:
            raise ConnectionError("No connection available")
        self._writer.write(data)
        await self._writer.drain()

    async def _recv(self, size: int, timeout: float) -> bytes:
        if not self._reader:
            raise ConnectionError("No connection available")
        return await asyncio.wait_for(self._reader.read(size), timeout=timeout)
