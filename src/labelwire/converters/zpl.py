"""Convert PIL images to ZPL ^GFA commands."""

from PIL import Image

from labelwire.converters.hexrle import compress_hex_ascii, raster_to_hex
from labelwire.converters.raster import Raster, rasterize
from labelwire.errors import InvalidArgumentError


def raster_to_zpl(
    raster: Raster,
    x_position: int = 0,
    y_position: int = 0,
    copies: int = 1,
    compress: bool = True,
) -> bytes:
    """Wrap a raster in a complete ZPL label.

    ZPL ^GFA format:
    ^GFA,<total_bytes>,<total_bytes>,<bytes_per_row>,<hex_data>

    Args:
        raster: Packed 1-bit image.
        x_position: Field origin X in dots.
        y_position: Field origin Y in dots.
        copies: Print quantity, emitted as ^PQ when above 1.
        compress: Use run-length compressed hex.

    Returns:
        ZPL commands as bytes.
    """
    if copies < 1:
        raise InvalidArgumentError(f"copies must be at least 1, got {copies}")

    total_bytes = raster.bytes_per_row * raster.height
    hex_rows = raster_to_hex(raster)
    if compress:
        hex_data = compress_hex_ascii(hex_rows, raster.bytes_per_row)
    else:
        hex_data = hex_rows.replace("\n", "")

    zpl = f"^XA^FO{x_position},{y_position}^GFA,{total_bytes},{total_bytes},{raster.bytes_per_row},{hex_data}^FS"
    if copies > 1:
        zpl += f"^PQ{copies}"
    zpl += "^XZ"

    return zpl.encode("ascii")


def image_to_zpl(
    image: Image.Image,
    x_position: int = 0,
    y_position: int = 0,
    copies: int = 1,
    compress: bool = True,
    threshold: int = 128,
    blackness_percentage: int | None = None,
) -> bytes:
    """Convert a PIL image to a ZPL label with a ^GFA graphic field."""
    raster = rasterize(image, threshold=threshold, blackness_percentage=blackness_percentage)
    return raster_to_zpl(raster, x_position, y_position, copies, compress)
