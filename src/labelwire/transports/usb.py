"""USB bulk transfer transport using pyusb."""

import asyncio
import errno
import logging
import time
from collections.abc import Iterable
from typing import Any

import usb.core
import usb.util

from labelwire.errors import (
    ConnectionFailedError,
    DeviceNotFoundError,
    InvalidArgumentError,
    PermissionDeniedError,
)
from labelwire.transports.base import DEFAULT_READ_TIMEOUT_MS, PERMISSION_ERRNOS, BaseTransport

logger = logging.getLogger(__name__)

# USB interface class for printers
PRINTER_INTERFACE_CLASS = 0x07


def read_usb_string(device: Any, index: int) -> str | None:
    """Read a string descriptor, returning None if the device has none."""
    if not index:
        return None
    return usb.util.get_string(device, index)


def find_usb_devices(vendor_ids: Iterable[int] = ()) -> list[Any]:
    """List attached USB devices, optionally limited to some vendor ids.

    Blocking; run it in an executor from async code.

    Raises:
        usb.core.NoBackendError: If libusb is not installed.
    """
    vendor_ids = list(vendor_ids)
    if not vendor_ids:
        return list(usb.core.find(find_all=True))

    devices: list[Any] = []
    for vendor_id in vendor_ids:
        devices.extend(usb.core.find(find_all=True, idVendor=vendor_id))
    return devices


def find_usb_device(serial_number: str, vendor_ids: Iterable[int] = ()) -> Any:
    """Return the attached device with this serial number, or None."""
    for device in find_usb_devices(vendor_ids):
        try:
            serial = read_usb_string(device, device.iSerialNumber)
        except (usb.core.USBError, ValueError) as e:
            logger.debug(f"Skipping USB device {device.idVendor:04x}:{device.idProduct:04x}: {e}")
            continue
        if serial == serial_number:
            return device
    return None


def _is_bulk(endpoint: Any, direction: int) -> bool:
    return (
        usb.util.endpoint_direction(endpoint.bEndpointAddress) == direction
        and usb.util.endpoint_type(endpoint.bmAttributes) == usb.util.ENDPOINT_TYPE_BULK
    )


def _find_bulk_interface(configuration: Any) -> Any:
    """Pick the printer-class interface, or any interface with a bulk OUT endpoint."""
    candidates = [intf for intf in configuration if any(_is_bulk(ep, usb.util.ENDPOINT_OUT) for ep in intf)]
    for intf in candidates:
        if intf.bInterfaceClass == PRINTER_INTERFACE_CLASS:
            return intf
    return candidates[0] if candidates else None


class USBTransport(BaseTransport):
    """Printer attached over USB, addressed by serial number."""

    # libusb timeouts end every transfer
    bounds_own_io = True

    def __init__(
        self,
        serial_number: str,
        vendor_ids: Iterable[int] = (),
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
    ) -> None:
        if not serial_number:
            raise InvalidArgumentError("USB serial number is required")
        super().__init__(read_timeout_ms)
        self.serial_number = serial_number
        self.vendor_ids = list(vendor_ids)
        self._device: Any = None
        self._interface_number: int | None = None
        self._endpoint_out: Any = None
        self._endpoint_in: Any = None

    @property
    def description(self) -> str:
        return f"USB {self.serial_number}"

    @property
    def is_connected(self) -> bool:
        return self._device is not None and self._endpoint_out is not None

    async def connect(self, timeout_ms: int) -> None:
        """Find the device by serial number and claim its bulk interface."""
        await self.close()
        loop = asyncio.get_running_loop()
        opening = loop.run_in_executor(None, self._open)
        try:
            handle = await asyncio.wait_for(asyncio.shield(opening), timeout=timeout_ms / 1000)
        except TimeoutError as e:
            # The worker thread cannot be stopped; release what it opens late
            opening.add_done_callback(self._release_abandoned)
            raise ConnectionFailedError(f"Timeout opening {self.description}") from e
        except asyncio.CancelledError:
            opening.add_done_callback(self._release_abandoned)
            raise

        self._device, self._interface_number, self._endpoint_out, self._endpoint_in = handle
        logger.info(f"Connected to USB printer {self.serial_number}")

    def _open(self) -> tuple[Any, int, Any, Any]:
        """Claim the printer interface.

        Blocking. Returns (device, interface number, bulk OUT, bulk IN) and
        leaves the transport untouched; `connect` adopts the handle.
        """
        try:
            device = find_usb_device(self.serial_number, self.vendor_ids)
            if device is None:
                raise DeviceNotFoundError(f"No USB printer with serial number {self.serial_number}")

            interface = _find_bulk_interface(device[0])
            if interface is None:
                raise ConnectionFailedError(f"{self.description} has no bulk OUT endpoint")
            number = interface.bInterfaceNumber

            try:
                if device.is_kernel_driver_active(number):
                    device.detach_kernel_driver(number)
            except NotImplementedError:
                pass  # Not supported by every backend (e.g. Windows)

            device.set_configuration()
            usb.util.claim_interface(device, number)
        except usb.core.NoBackendError as e:
            raise ConnectionFailedError(f"No USB backend available (is libusb installed?): {e}") from e
        except usb.core.USBError as e:
            if e.errno in PERMISSION_ERRNOS:
                raise PermissionDeniedError(f"Permission denied opening {self.description}: {e}") from e
            raise ConnectionFailedError(f"Failed to open {self.description}: {e}") from e

        endpoint_out = usb.util.find_descriptor(interface, custom_match=lambda ep: _is_bulk(ep, usb.util.ENDPOINT_OUT))
        endpoint_in = usb.util.find_descriptor(interface, custom_match=lambda ep: _is_bulk(ep, usb.util.ENDPOINT_IN))
        return device, number, endpoint_out, endpoint_in

    def _release_abandoned(self, opening: asyncio.Future) -> None:
        if opening.cancelled() or opening.exception() is not None:
            return
        device, number, _, _ = opening.result()
        logger.debug(f"Releasing {self.description}, opened after its connect timed out")
        self._release(device, number)

    def _release(self, device: Any, number: int | None) -> None:
        try:
            if number is not None:
                usb.util.release_interface(device, number)
            usb.util.dispose_resources(device)
        except Exception as e:
            logger.debug(f"Ignoring error while closing {self.description}: {e}")

    async def close(self) -> None:
        """Release the interface and libusb resources, ignoring errors."""
        if self._device is None:
            return

        device, number = self._device, self._interface_number
        self._device = None
        self._interface_number = None
        self._endpoint_out = None
        self._endpoint_in = None
        self._release(device, number)

    async def _send(self, data: bytes, timeout: float) -> None:
        endpoint = self._endpoint_out
        if endpoint is None:
            raise ConnectionError("No connection available")
        deadline = time.monotonic() + timeout

        def write_all() -> None:
            sent = 0
            while sent < len(data):
                remaining_ms = int((deadline - time.monotonic()) * 1000)
                if remaining_ms <= 0:
                    raise TimeoutError(f"Write to {self.description} timed out")
                written = endpoint.write(data[sent:], remaining_ms)
                if written <= 0:
                    raise OSError(errno.EIO, "USB endpoint accepted no data")
                sent += written

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, write_all)
        except usb.core.USBTimeoutError as e:
            raise TimeoutError(str(e)) from e

    async def _recv(self, size: int, timeout: float) -> bytes:
        endpoint = self._endpoint_in
        if endpoint is None:
            raise OSError(errno.EIO, f"{self.description} has no bulk IN endpoint")
        # Reads shorter than a packet overflow on the host side
        length = max(size, endpoint.wMaxPacketSize)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining_ms = int((deadline - loop.time()) * 1000)
            if remaining_ms <= 0:
                raise TimeoutError(f"No data from {self.description}")
            try:
                # libusb ends the read at remaining_ms
                data = await loop.run_in_executor(None, endpoint.read, length, remaining_ms)
            except usb.core.USBTimeoutError as e:
                raise TimeoutError(str(e)) from e
            # Zero-length packets are not an end of stream on USB
            if data:
                return bytes(data)
