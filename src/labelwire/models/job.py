"""Print options and result models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from labelwire.errors import InvalidArgumentError

DEFAULT_TIMEOUT_MS = 10000


class ImageEncoding(StrEnum):
    """Printer language used when converting images."""

    SBPL = "sbpl"  # Raw raster inside an SBPL GH command
    ZPL = "zpl"  # Hex raster inside a ZPL ^GFA command


class PrintOptions(BaseModel):
    """Options for a single print or write call."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    copies: int = Field(default=1, ge=1)
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)  # Milliseconds, this call only
    expect_response: bool = False
    response_byte_count: int = Field(default=-1, ge=-1)  # -1 = until terminator or EOF
    response_terminator: bytes | None = None
    x_position: int = Field(default=0, ge=0)
    y_position: int = Field(default=0, ge=0)
    convert_to_sbpl: bool = True  # False sends image bytes unmodified
    image_encoding: ImageEncoding = ImageEncoding.SBPL
    compress_hex: bool = True  # ZPL only
    threshold: int = Field(default=128, ge=0, le=255)
    blackness_percentage: int | None = Field(default=None, ge=1, le=100)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PrintOptions":
        """Parse options from a wire map, using defaults for missing keys.

        Raises:
            InvalidArgumentError: If a value is out of range.
        """
        if not data:
            return cls()
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid print options: {e}") from e


class PrintResult(BaseModel):
    """Outcome of a print or write call."""

    success: bool
    message: str | None = None
    response_data: bytes | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "responseData": self.response_data,
        }
