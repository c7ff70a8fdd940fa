"""Tests for SBPL graphic framing."""

import pytest
from PIL import Image

from labelwire.converters.raster import Raster
from labelwire.converters.sbpl import image_to_sbpl, wrap_sbpl_graphic
from labelwire.errors import InvalidArgumentError


class TestWrapSbplGraphic:
    """Tests for wrap_sbpl_graphic."""

    def test_byte_exact_frame(self):
        """The frame is STX, position, GH header, raw bytes, quantity, ETX."""
        raster = Raster(data=b"\xff\x00\x81\x7e", width=16, height=2, bytes_per_row=2)

        job = wrap_sbpl_graphic(raster, x_position=12, y_position=345)

        assert job == b"\x02H0012V0345GH002002\xff\x00\x81\x7eQ1\x03"

    def test_copies(self):
        raster = Raster(data=b"\x00", width=8, height=1, bytes_per_row=1)
        assert wrap_sbpl_graphic(raster, copies=25).endswith(b"Q25\x03")

    def test_defaults_to_origin(self):
        raster = Raster(data=b"\x00", width=8, height=1, bytes_per_row=1)
        assert wrap_sbpl_graphic(raster).startswith(b"\x02H0000V0000GH001001")

    @pytest.mark.parametrize(
        "kwargs",
        [{"x_position": 10000}, {"y_position": -1}, {"copies": 0}],
    )
    def test_values_out_of_range(self, kwargs):
        raster = Raster(data=b"\x00", width=8, height=1, bytes_per_row=1)
        with pytest.raises(InvalidArgumentError):
            wrap_sbpl_graphic(raster, **kwargs)

    def test_raster_too_tall(self):
        """GH carries the height in three digits."""
        raster = Raster(data=b"\x00" * 1000, width=8, height=1000, bytes_per_row=1)
        with pytest.raises(InvalidArgumentError):
            wrap_sbpl_graphic(raster)


class TestImageToSbpl:
    def test_black_square(self):
        """A 16x2 black image becomes four 0xFF bytes."""
        job = image_to_sbpl(Image.new("RGB", (16, 2), "black"), x_position=1, y_position=2)
        assert job == b"\x02H0001V0002GH002002\xff\xff\xff\xffQ1\x03"
