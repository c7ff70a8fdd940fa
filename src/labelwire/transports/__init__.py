"""Transport implementations for Labelwire."""

from collections.abc import Callable

from labelwire.config import Settings
from labelwire.errors import InvalidArgumentError
from labelwire.models.printer import ConnectionType, PrinterDevice
from labelwire.transports.base import BaseTransport
from labelwire.transports.bluetooth import BluetoothTransport
from labelwire.transports.tcp import TCPTransport, parse_tcp_address
from labelwire.transports.usb import USBTransport

__all__ = [
    "BaseTransport",
    "BluetoothTransport",
    "TCPTransport",
    "USBTransport",
    "create_transport",
    "parse_tcp_address",
]


def _tcp(device: PrinterDevice, settings: Settings) -> BaseTransport:
    host, port = parse_tcp_address(device.address, settings.default_tcp_port)
    return TCPTransport(host, port, read_timeout_ms=settings.read_timeout_ms)


def _bluetooth(device: PrinterDevice, settings: Settings) -> BaseTransport:
    return BluetoothTransport(
        device.address,
        channel=settings.bluetooth_channel,
        read_timeout_ms=settings.read_timeout_ms,
    )


def _usb(device: PrinterDevice, settings: Settings) -> BaseTransport:
    return USBTransport(
        device.serial_number or device.address,
        vendor_ids=settings.usb_vendor_ids,
        read_timeout_ms=settings.read_timeout_ms,
    )


def create_transport(device: PrinterDevice, settings: Settings) -> BaseTransport:
    """Factory function to create a transport for a device.

    Args:
        device: The printer to connect to.
        settings: Supplies default port, RFCOMM channel, USB vendor filter and
            read timeout.

    Returns:
        An unconnected transport.

    Raises:
        InvalidArgumentError: If the device address is malformed.
    """
    builders: dict[ConnectionType, Callable[[PrinterDevice, Settings], BaseTransport]] = {
        ConnectionType.TCP: _tcp,
        ConnectionType.BLUETOOTH: _bluetooth,
        ConnectionType.USB: _usb,
    }
    builder = builders.get(device.connection_type)
    if not builder:
        raise InvalidArgumentError(f"Unknown connection type: {device.connection_type}")
    return builder(device, settings)
