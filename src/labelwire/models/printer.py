"""Printer device and status models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator
from pydantic.alias_generators import to_camel

from labelwire.errors import InvalidArgumentError


class ConnectionType(StrEnum):
    """Supported connection types."""

    BLUETOOTH = "bluetooth"
    TCP = "tcp"
    USB = "usb"

    @classmethod
    def parse(cls, value: "str | ConnectionType") -> "ConnectionType":
        """Parse a connection type name, ignoring case."""
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown connection type: {value}") from e


class PrinterDevice(BaseModel):
    """A printer that can be connected to.

    Two devices are the same printer when address and connection type match;
    the display name and serial number do not take part in equality.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    name: str | None = None
    address: str = Field(min_length=1)  # MAC, "ip:port" or USB serial number
    connection_type: ConnectionType
    serial_number: str | None = None  # USB only

    @field_validator("connection_type", mode="before")
    @classmethod
    def _normalize_connection_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrinterDevice):
            return NotImplemented
        return (self.address, self.connection_type) == (other.address, other.connection_type)

    def __hash__(self) -> int:
        return hash((self.address, self.connection_type))

    def to_dict(self) -> dict[str, Any]:
        """Return the device as a camelCase wire map."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrinterDevice":
        """Parse a device from a wire map.

        Raises:
            InvalidArgumentError: If required fields are missing or malformed.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid printer device: {e}") from e


class PrinterStatus(BaseModel):
    """Best-effort printer status.

    Most transports only know whether the channel is up, so the media and
    cover flags stay False unless a protocol reports them.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    is_connected: bool = False
    is_online: bool = False
    is_paper_out: bool = False
    is_ribbon_out: bool = False
    is_cover_open: bool = False
    has_error: bool = False
    error_message: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_ready(self) -> bool:
        """True when the printer can accept a job."""
        return (
            self.is_connected
            and self.is_online
            and not self.is_paper_out
            and not self.is_ribbon_out
            and not self.is_cover_open
            and not self.has_error
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BluetoothStatus(BaseModel):
    """Bluetooth adapter capability check."""

    available: bool = False
    enabled: bool = False
