"""Wrap rasters in SBPL graphic commands."""

from PIL import Image

from labelwire.converters.raster import Raster, rasterize
from labelwire.errors import InvalidArgumentError

STX = b"\x02"
ETX = b"\x03"


def _field(name: str, value: int, digits: int) -> bytes:
    if not 0 <= value < 10**digits:
        raise InvalidArgumentError(f"{name} {value} does not fit in {digits} digits")
    return f"{value:0{digits}d}".encode("ascii")


def wrap_sbpl_graphic(
    raster: Raster,
    x_position: int = 0,
    y_position: int = 0,
    copies: int = 1,
) -> bytes:
    """Build an SBPL graphic print job for a raster.

    Layout:
        STX H<xxxx> V<yyyy> GH<bbb><hhh> <raw bytes> Q<copies> ETX

    Args:
        raster: Packed 1-bit image.
        x_position: Horizontal offset in dots.
        y_position: Vertical offset in dots.
        copies: Print quantity.

    Returns:
        SBPL command bytes.

    Raises:
        InvalidArgumentError: If a value does not fit its field.
    """
    if copies < 1:
        raise InvalidArgumentError(f"copies must be at least 1, got {copies}")

    return b"".join(
        [
            STX,
            b"H" + _field("xPosition", x_position, 4),
            b"V" + _field("yPosition", y_position, 4),
            b"GH" + _field("bytesPerRow", raster.bytes_per_row, 3) + _field("height", raster.height, 3),
            raster.data,
            b"Q" + str(copies).encode("ascii"),
            ETX,
        ]
    )


def image_to_sbpl(
    image: Image.Image,
    x_position: int = 0,
    y_position: int = 0,
    copies: int = 1,
    threshold: int = 128,
    blackness_percentage: int | None = None,
) -> bytes:
    """Convert a PIL image to an SBPL graphic print job."""
    raster = rasterize(image, threshold=threshold, blackness_percentage=blackness_percentage)
    return wrap_sbpl_graphic(raster, x_position, y_position, copies)
