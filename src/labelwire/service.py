"""Printer service bundling the session with device discovery."""

import logging

from labelwire.config import Settings, settings as default_settings
from labelwire.discovery import BluetoothDiscovery, UsbDiscovery
from labelwire.models.printer import BluetoothStatus, PrinterDevice
from labelwire.session import PrinterSession

logger = logging.getLogger(__name__)


class PrinterService:
    """Entry point for callers: discovery plus the one printer session."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: PrinterSession | None = None,
        bluetooth: BluetoothDiscovery | None = None,
        usb: UsbDiscovery | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.session = session or PrinterSession(self.settings)
        self.bluetooth = bluetooth or BluetoothDiscovery(timeout=self.settings.bluetoothctl_timeout)
        self.usb = usb or UsbDiscovery(self.settings.usb_vendor_ids)

    async def discover_bluetooth_printers(self) -> list[PrinterDevice]:
        return await self.bluetooth.discover()

    async def discover_usb_printers(self) -> list[PrinterDevice]:
        return await self.usb.discover()

    async def check_bluetooth_status(self) -> BluetoothStatus:
        return await self.bluetooth.check_status()

    async def close(self) -> None:
        """Disconnect the printer at shutdown."""
        await self.session.close()

    async def __aenter__(self) -> "PrinterService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
