"""Pydantic models for Labelwire."""

from labelwire.models.job import ImageEncoding, PrintOptions, PrintResult
from labelwire.models.printer import BluetoothStatus, ConnectionType, PrinterDevice, PrinterStatus

__all__ = [
    "BluetoothStatus",
    "ConnectionType",
    "ImageEncoding",
    "PrinterDevice",
    "PrinterStatus",
    "PrintOptions",
    "PrintResult",
]
