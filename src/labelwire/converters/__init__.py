"""Image to printer command converters."""

from labelwire.converters.hexrle import compress_hex_ascii, expand_hex_ascii, raster_to_hex
from labelwire.converters.raster import Raster, decode_image, rasterize, unpack_raster
from labelwire.converters.sbpl import image_to_sbpl, wrap_sbpl_graphic
from labelwire.converters.zpl import image_to_zpl, raster_to_zpl
from labelwire.models.job import ImageEncoding, PrintOptions

__all__ = [
    "Raster",
    "compress_hex_ascii",
    "decode_image",
    "encode_image",
    "expand_hex_ascii",
    "image_to_sbpl",
    "image_to_zpl",
    "raster_to_hex",
    "raster_to_zpl",
    "rasterize",
    "unpack_raster",
    "wrap_sbpl_graphic",
]


def encode_image(image_bytes: bytes, options: PrintOptions) -> bytes:
    """Turn encoded image bytes into a print job for the selected printer language.

    Copies are carried inside the command, so the result is sent once.

    Raises:
        InvalidArgumentError: If the image cannot be decoded or does not fit
            the command's fields.
    """
    raster = rasterize(
        decode_image(image_bytes),
        threshold=options.threshold,
        blackness_percentage=options.blackness_percentage,
    )
    if options.image_encoding == ImageEncoding.ZPL:
        return raster_to_zpl(
            raster,
            options.x_position,
            options.y_position,
            copies=options.copies,
            compress=options.compress_hex,
        )
    return wrap_sbpl_graphic(raster, options.x_position, options.y_position, copies=options.copies)
