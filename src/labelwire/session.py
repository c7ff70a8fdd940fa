"""Connection session owning the single active printer transport."""

import asyncio
import logging
from collections.abc import Callable

from pydantic import ValidationError

from labelwire.config import Settings, settings as default_settings
from labelwire.converters import encode_image
from labelwire.errors import (
    ConnectionFailedError,
    InvalidArgumentError,
    LabelwireError,
    NotConnectedError,
    PermissionDeniedError,
    PrinterError,
    TransportIOError,
    TransportTimeoutError,
)
from labelwire.models.job import PrintOptions, PrintResult
from labelwire.models.printer import ConnectionType, PrinterDevice, PrinterStatus
from labelwire.transports import BaseTransport, create_transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[PrinterDevice, Settings], BaseTransport]

# Number of payload bytes shown in debug hex dumps
HEX_PREVIEW_BYTES = 64


def _hex_preview(data: bytes) -> str:
    preview = data[:HEX_PREVIEW_BYTES].hex(" ").upper()
    if len(data) > HEX_PREVIEW_BYTES:
        preview += " ..."
    return preview


def _make_device(**fields) -> PrinterDevice:
    try:
        return PrinterDevice(**fields)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid printer device: {e}") from e


class PrinterSession:
    """Holds at most one connected printer and serializes all I/O on it.

    Every operation that touches the transport runs under one asyncio lock,
    so a write and its response read never interleave with another caller.
    Connecting always closes the previous transport first.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport_factory: TransportFactory = create_transport,
    ) -> None:
        self.settings = settings or default_settings
        self._transport_factory = transport_factory
        self._transport: BaseTransport | None = None
        self._device: PrinterDevice | None = None
        self._connect_timeout_ms = self.settings.connect_timeout_ms
        self._lock = asyncio.Lock()

    @property
    def transport(self) -> BaseTransport | None:
        """The active transport, if any."""
        return self._transport

    @property
    def current_device(self) -> PrinterDevice | None:
        """Device of the most recent successful connect."""
        return self._device

    def get_current_device(self) -> PrinterDevice | None:
        return self._device

    def is_connected(self) -> bool:
        """Ask the active transport whether its channel is still up."""
        return self._transport is not None and self._transport.is_connected

    async def connect(self, device: PrinterDevice, timeout_ms: int | None = None) -> bool:
        """Connect to a printer, replacing any current connection.

        Args:
            device: Printer to connect to; its connection type selects the
                transport.
            timeout_ms: Bound for opening the channel.

        Returns:
            True on success.

        Raises:
            ConnectionFailedError: If the channel cannot be opened (or a more
                specific subclass such as BluetoothDisabledError).
            PermissionDeniedError: If the OS refuses access.
            InvalidArgumentError: If the device address is malformed.
        """
        timeout_ms = timeout_ms or self.settings.connect_timeout_ms
        if timeout_ms <= 0:
            raise InvalidArgumentError(f"Connect timeout must be positive, got {timeout_ms}")

        async with self._lock:
            await self._close_current()

            transport = self._transport_factory(device, self.settings)
            logger.info(f"Connecting to {device.connection_type} printer {device.address} (timeout {timeout_ms} ms)")
            try:
                await transport.connect(timeout_ms)
            except LabelwireError:
                await transport.close()
                raise
            except Exception as e:
                await transport.close()
                raise ConnectionFailedError(f"Failed to connect to {device.address}: {e}") from e

            self._transport = transport
            self._device = device
            self._connect_timeout_ms = timeout_ms

        logger.info(f"Connected to {device.address}")
        return True

    async def connect_bluetooth(self, address: str, timeout_ms: int | None = None) -> bool:
        """Connect to a Bluetooth printer by MAC address."""
        device = _make_device(address=address, connection_type=ConnectionType.BLUETOOTH)
        return await self.connect(device, timeout_ms)

    async def connect_tcp(self, ip: str, port: int, timeout_ms: int | None = None) -> bool:
        """Connect to a network printer."""
        if not ip:
            raise InvalidArgumentError("IP address is required")
        if not 0 < port < 65536:
            raise InvalidArgumentError(f"Invalid TCP port: {port}")
        device = _make_device(address=f"{ip}:{port}", connection_type=ConnectionType.TCP)
        return await self.connect(device, timeout_ms)

    async def connect_usb(self, serial_number: str, timeout_ms: int | None = None) -> bool:
        """Connect to a USB printer by serial number."""
        device = _make_device(
            address=serial_number,
            connection_type=ConnectionType.USB,
            serial_number=serial_number,
        )
        return await self.connect(device, timeout_ms)

    async def disconnect(self) -> bool:
        """Close the current connection. Safe to call when not connected."""
        async with self._lock:
            await self._close_current()
        return True

    async def _close_current(self) -> None:
        transport, device = self._transport, self._device
        self._transport = None
        self._device = None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing {transport!r}: {e}")
        logger.info(f"Disconnected from {device.address if device else transport.description}")

    async def send_raw_data(self, data: bytes, options: PrintOptions | None = None) -> PrintResult:
        """Send bytes to the printer and optionally read its response.

        Transmission failures come back as a failed PrintResult so one bad job
        does not end the session.

        Raises:
            NotConnectedError: If no printer is connected, or the connection
                dropped and the single reconnect attempt failed.
            PermissionDeniedError: If the OS refuses access mid-transfer.
        """
        options = options or PrintOptions()
        async with self._lock:
            return await self._send(data, options)

    async def print_raw_data(self, data: bytes, options: PrintOptions | None = None) -> PrintResult:
        """Send raw printer commands `options.copies` times.

        Stops at the first failed copy and returns its result.
        """
        options = options or PrintOptions()
        async with self._lock:
            result = PrintResult(success=False, message="Nothing sent")
            for copy in range(options.copies):
                result = await self._send(data, options)
                if not result.success:
                    logger.error(f"Copy {copy + 1} of {options.copies} failed: {result.message}")
                    break
            return result

    async def print_image(self, image_bytes: bytes, options: PrintOptions | None = None) -> PrintResult:
        """Print an encoded image (PNG, JPEG, ...).

        With `convert_to_sbpl` the image is rasterized and wrapped in the
        command language chosen by `image_encoding`, copies included;
        otherwise the bytes are sent as they are.

        Raises:
            NotConnectedError: If no printer is connected.
            InvalidArgumentError: If the image cannot be decoded or converted.
        """
        options = options or PrintOptions()
        if not options.convert_to_sbpl:
            return await self.print_raw_data(image_bytes, options)

        if self._transport is None:
            raise NotConnectedError("No printer connected")

        payload = await asyncio.to_thread(encode_image, image_bytes, options)
        logger.debug(f"Encoded {len(image_bytes)} image bytes as {len(payload)} {options.image_encoding} bytes")
        return await self.send_raw_data(payload, options)

    async def _send(self, data: bytes, options: PrintOptions) -> PrintResult:
        transport = self._transport
        if transport is None or self._device is None:
            raise NotConnectedError("No printer connected")

        if not transport.is_connected:
            logger.info(f"Printer {self._device.address} not connected, attempting to reconnect")
            try:
                await transport.connect(self._connect_timeout_ms)
            except Exception as e:
                raise NotConnectedError(f"Printer {self._device.address} is not connected and reconnect failed: {e}") from e
            logger.info(f"Reconnected to {self._device.address}")

        response_byte_count = options.response_byte_count if options.expect_response else None
        logger.debug(f"Sending {len(data)} bytes: {_hex_preview(data)}")

        try:
            response = await transport.write(
                data,
                response_byte_count,
                options.response_terminator,
                options.timeout,
            )
        except (NotConnectedError, PermissionDeniedError):
            raise
        except TransportTimeoutError as e:
            logger.error(f"Read timeout on {transport.description}: {e}")
            return PrintResult(success=False, message=f"Read timeout: {e.message}")
        except TransportIOError as e:
            logger.error(f"IO error on {transport.description}: {e}")
            return PrintResult(success=False, message=f"IO error: {e.message}")
        except PrinterError as e:
            logger.error(f"Printer error on {transport.description}: {e}")
            return PrintResult(success=False, message=f"Printer error: {e.message}")
        except Exception as e:
            logger.exception(f"Unexpected error sending to {transport.description}")
            return PrintResult(success=False, message=f"Unexpected error: {e}")

        if response is not None:
            logger.debug(f"Response {len(response)} bytes: {_hex_preview(response)}")

        return PrintResult(success=True, message="Data sent successfully", response_data=response)

    def get_status(self) -> PrinterStatus:
        """Report connectivity; media and cover state are not observable."""
        connected = self.is_connected()
        return PrinterStatus(is_connected=connected, is_online=connected)

    def set_read_timeout(self, timeout_ms: int) -> bool:
        """Set the default read timeout of the active transport.

        Does nothing when no printer is connected.
        """
        if timeout_ms <= 0:
            raise InvalidArgumentError(f"Read timeout must be positive, got {timeout_ms}")
        if self._transport is not None:
            self._transport.read_timeout_ms = timeout_ms
        return True

    async def close(self) -> None:
        """Release the connection at teardown."""
        await self.disconnect()

    async def __aenter__(self) -> "PrinterSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
