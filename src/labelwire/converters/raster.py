"""Convert PIL images to packed 1-bit rasters."""

import io
from collections.abc import Callable
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from labelwire.errors import InvalidArgumentError

# Luma weights (ITU-R BT.601)
RED_WEIGHT = 0.299
GREEN_WEIGHT = 0.587
BLUE_WEIGHT = 0.114

# Upper bound of R + G + B, used by the blackness percentage cutoff
MAX_CHANNEL_SUM = 768


@dataclass(frozen=True)
class Raster:
    """A 1-bit-per-pixel image, rows padded to whole bytes.

    Bit 1 marks ink (printed dot), bit 0 blank. The most significant bit of
    each byte is the leftmost pixel.
    """

    data: bytes
    width: int
    height: int
    bytes_per_row: int

    def row(self, y: int) -> bytes:
        """Return the packed bytes of row y."""
        start = y * self.bytes_per_row
        return self.data[start : start + self.bytes_per_row]


def bytes_per_row_for(width: int) -> int:
    """Number of bytes needed to hold one row of `width` pixels."""
    return (width + 7) // 8


def blackness_limit(percentage: int) -> int:
    """Map a blackness percentage (1-100) to a sum-of-channels cutoff."""
    if not 1 <= percentage <= 100:
        raise InvalidArgumentError(f"Blackness percentage must be 1-100, got {percentage}")
    return percentage * MAX_CHANNEL_SUM // 100


def _ink_test(threshold: int, blackness_percentage: int | None) -> Callable[[int, int, int], bool]:
    if blackness_percentage is not None:
        limit = blackness_limit(blackness_percentage)
        return lambda r, g, b: r + g + b <= limit

    if not 0 <= threshold <= 255:
        raise InvalidArgumentError(f"Threshold must be 0-255, got {threshold}")
    return lambda r, g, b: int(RED_WEIGHT * r + GREEN_WEIGHT * g + BLUE_WEIGHT * b) < threshold


def rasterize(
    image: Image.Image,
    threshold: int = 128,
    blackness_percentage: int | None = None,
) -> Raster:
    """Convert a PIL image to a packed 1-bit raster.

    A pixel becomes ink when its luma is below `threshold`. When
    `blackness_percentage` is given it replaces the luma rule: the pixel is
    blank when R + G + B exceeds `percentage * 768 / 100`.

    Args:
        image: PIL Image in any mode. Alpha is ignored.
        threshold: Luma cutoff, 0-255.
        blackness_percentage: Optional 1-100 sum-of-channels cutoff.

    Returns:
        Raster with `ceil(width / 8)` bytes per row.

    Raises:
        InvalidArgumentError: If the threshold or percentage is out of range.
    """
    is_ink = _ink_test(threshold, blackness_percentage)

    if image.mode != "RGB":
        image = image.convert("RGB")

    width, height = image.size
    bytes_per_row = bytes_per_row_for(width)
    rgb = image.tobytes()

    data = bytearray(bytes_per_row * height)
    for y in range(height):
        row_offset = y * bytes_per_row
        pixel_offset = y * width * 3
        for x in range(width):
            i = pixel_offset + x * 3
            if is_ink(rgb[i], rgb[i + 1], rgb[i + 2]):
                data[row_offset + (x >> 3)] |= 0x80 >> (x & 7)

    return Raster(data=bytes(data), width=width, height=height, bytes_per_row=bytes_per_row)


def unpack_raster(raster: Raster) -> list[list[int]]:
    """Expand a raster back into rows of 0/1 pixel values, dropping padding."""
    rows = []
    for y in range(raster.height):
        packed = raster.row(y)
        rows.append([(packed[x >> 3] >> (7 - (x & 7))) & 1 for x in range(raster.width)])
    return rows


def decode_image(image_bytes: bytes) -> Image.Image:
    """Decode encoded image bytes (PNG, JPEG, BMP, ...) into a PIL image.

    Raises:
        InvalidArgumentError: If the bytes are not a readable image.
    """
    if not image_bytes:
        raise InvalidArgumentError("Failed to decode image: no data")
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidArgumentError(f"Failed to decode image: {e}") from e
    return image
