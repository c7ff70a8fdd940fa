"""Raw TCP socket transport (port 9100 style printers)."""

import asyncio
import logging

from labelwire.errors import ConnectionFailedError, InvalidArgumentError, PermissionDeniedError
from labelwire.transports.base import DEFAULT_READ_TIMEOUT_MS
from labelwire.transports.stream import StreamTransport

logger = logging.getLogger(__name__)

DEFAULT_TCP_PORT = 9100


def parse_tcp_address(address: str, default_port: int = DEFAULT_TCP_PORT) -> tuple[str, int]:
    """Split "host:port" into its parts.

    A missing or non-numeric port falls back to `default_port`. IPv6 hosts
    must be bracketed to carry a port ("[fe80::1]:9100").
    """
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, _, port_text = address.partition(":")
    else:
        host, port_text = address, ""

    try:
        port = int(port_text)
    except ValueError:
        port = default_port
    if not 0 < port < 65536:
        port = default_port

    return host, port


class TCPTransport(StreamTransport):
    """Printer reachable over a raw TCP socket."""

    def __init__(self, host: str, port: int = DEFAULT_TCP_PORT, read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS) -> None:
        if not host:
            raise InvalidArgumentError("TCP host is required")
        if not 0 < port < 65536:
            raise InvalidArgumentError(f"Invalid TCP port: {port}")
        super().__init__(read_timeout_ms)
        self.host = host
        self.port = port

    @property
    def description(self) -> str:
        return f"{self.host}:{self.port}"

    async def connect(self, timeout_ms: int) -> None:
        """Connect via TCP socket."""
        await self.close()
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError as e:
            raise ConnectionFailedError(f"Timeout connecting to {self.host}:{self.port}") from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Not allowed to connect to {self.host}:{self.port}: {e}") from e
        except OSError as e:
            raise ConnectionFailedError(f"Failed to connect to {self.host}:{self.port}: {e}") from e

        logger.info(f"Connected to TCP printer {self.host}:{self.port}")
