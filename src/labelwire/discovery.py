"""Printer discovery for Bluetooth and USB."""

import asyncio
import logging
import re
from collections.abc import Iterable
from pathlib import Path

import usb.core

from labelwire.config import SATO_USB_VENDOR_ID
from labelwire.errors import PermissionDeniedError
from labelwire.models.printer import BluetoothStatus, ConnectionType, PrinterDevice
from labelwire.transports.usb import find_usb_devices, read_usb_string

logger = logging.getLogger(__name__)

SYS_CLASS_BLUETOOTH = Path("/sys/class/bluetooth")

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]|\x01|\x02")
CONTROLLER_RE = re.compile(r"^Controller\s+([0-9A-F:]{17})", re.MULTILINE | re.IGNORECASE)
POWERED_RE = re.compile(r"^\s*Powered:\s*yes", re.MULTILINE | re.IGNORECASE)
DEVICE_LINE_RE = re.compile(r"^Device\s+([0-9A-F]{2}(?::[0-9A-F]{2}){5})(?:\s+(.*))?$", re.IGNORECASE)


class BluetoothDiscovery:
    """Paired Bluetooth printers, read from BlueZ through `bluetoothctl`."""

    def __init__(self, timeout: float = 10.0, command: str = "bluetoothctl") -> None:
        self.timeout = timeout
        self.command = command

    async def _run(self, *args: str) -> str | None:
        """Run a bluetoothctl command, returning stdout or None on any failure."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.debug(f"{self.command} not found, Bluetooth discovery unavailable")
            return None
        except PermissionError as e:
            raise PermissionDeniedError(f"Not allowed to run {self.command}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"{self.command} {' '.join(args)} timed out after {self.timeout}s")
            return None

        if process.returncode != 0:
            logger.debug(f"{self.command} {' '.join(args)} exited {process.returncode}: {stderr.decode(errors='replace')}")
            return None

        return ANSI_ESCAPE_RE.sub("", stdout.decode("utf-8", errors="replace"))

    async def check_status(self) -> BluetoothStatus:
        """Report whether an adapter exists and whether it is powered."""
        listing = await self._run("list")
        available = bool(listing and CONTROLLER_RE.search(listing))
        if not available and SYS_CLASS_BLUETOOTH.is_dir():
            available = any(SYS_CLASS_BLUETOOTH.iterdir())
        if not available:
            return BluetoothStatus(available=False, enabled=False)

        show = await self._run("show")
        enabled = bool(show and POWERED_RE.search(show))
        return BluetoothStatus(available=True, enabled=enabled)

    async def discover(self) -> list[PrinterDevice]:
        """List paired devices; empty when Bluetooth is unavailable or off."""
        status = await self.check_status()
        if not status.available or not status.enabled:
            logger.info(f"Bluetooth not ready (available={status.available}, enabled={status.enabled})")
            return []

        output = await self._run("devices", "Paired")
        if output is None:
            # BlueZ before 5.65
            output = await self._run("paired-devices")
        if output is None:
            return []

        devices = parse_device_list(output)
        logger.info(f"Found {len(devices)} paired Bluetooth device(s)")
        return devices


def parse_device_list(output: str) -> list[PrinterDevice]:
    """Parse `Device <MAC> <name>` lines printed by bluetoothctl."""
    devices: list[PrinterDevice] = []
    seen: set[PrinterDevice] = set()
    for line in output.splitlines():
        match = DEVICE_LINE_RE.match(line.strip())
        if not match:
            continue
        address, name = match.group(1).upper(), (match.group(2) or "").strip()
        device = PrinterDevice(
            name=name or None,
            address=address,
            connection_type=ConnectionType.BLUETOOTH,
        )
        if device not in seen:
            seen.add(device)
            devices.append(device)
    return devices


class UsbDiscovery:
    """Attached USB printers that expose a serial number."""

    def __init__(self, vendor_ids: Iterable[int] = (SATO_USB_VENDOR_ID,)) -> None:
        self.vendor_ids = list(vendor_ids)

    async def discover(self) -> list[PrinterDevice]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._enumerate)

    def _enumerate(self) -> list[PrinterDevice]:
        try:
            usb_devices = find_usb_devices(self.vendor_ids)
        except usb.core.NoBackendError as e:
            logger.warning(f"USB discovery unavailable, no libusb backend: {e}")
            return []

        printers = []
        for usb_device in usb_devices:
            ident = f"{usb_device.idVendor:04x}:{usb_device.idProduct:04x}"
            try:
                serial = read_usb_string(usb_device, usb_device.iSerialNumber)
            except (usb.core.USBError, ValueError) as e:
                # Usually missing permissions on the device node
                logger.debug(f"Skipping USB device {ident}: cannot read serial number ({e})")
                continue
            if not serial:
                logger.debug(f"Skipping USB device {ident}: no serial number")
                continue

            try:
                name = read_usb_string(usb_device, usb_device.iProduct)
            except (usb.core.USBError, ValueError):
                name = None

            printers.append(
                PrinterDevice(
                    name=name,
                    address=serial,
                    connection_type=ConnectionType.USB,
                    serial_number=serial,
                )
            )

        logger.info(f"Found {len(printers)} USB printer(s)")
        return printers
