"""Tests for ZPL hex-ASCII run-length compression."""

import pytest
from PIL import Image

from labelwire.converters.hexrle import compress_hex_ascii, expand_hex_ascii, raster_to_hex
from labelwire.converters.raster import Raster, rasterize
from labelwire.errors import InvalidArgumentError


class TestRasterToHex:
    def test_one_line_per_row(self):
        raster = Raster(data=b"\x0f\xa0\xff\x01", width=16, height=2, bytes_per_row=2)
        assert raster_to_hex(raster) == "0FA0\nFF01\n"


class TestCompressHexAscii:
    """Tests for compress_hex_ascii."""

    def test_run_code_example(self):
        """39 zeros then F in a 20 byte row."""
        assert compress_hex_ascii("0" * 39 + "F" + "\n", 20) == "gY0GF"

    def test_single_digits_get_count_one(self):
        assert compress_hex_ascii("0F\n", 1) == "G0GF"

    def test_exact_multiple_of_twenty(self):
        row = "1" * 20 + "2" * 40 + "3" * 20
        assert compress_hex_ascii(row + "\n", 40) == "g1h2g3"

    def test_whole_row_of_zeros(self):
        """A run of zeros filling the row becomes ','."""
        assert compress_hex_ascii("0000\n", 2) == ","

    def test_whole_row_of_ones(self):
        assert compress_hex_ascii("FFFF\n", 2) == "!"

    def test_trailing_run_shorter_than_row(self):
        """Only a final run at least a full row long uses the fill codes."""
        assert compress_hex_ascii("A000\n", 2) == "GAI0"

    def test_repeated_rows(self):
        """Each row identical to the one before becomes ':'."""
        code = "A0A0\n" * 3 + "0000\n" + "0000\n"
        assert compress_hex_ascii(code, 2) == "GAG0GAG0::,:"

    def test_long_runs(self):
        """Runs over 400 repeat the largest code."""
        assert compress_hex_ascii("1" * 400 + "2" + "\n", 201) == "z1G2"
        assert compress_hex_ascii("1" * 425 + "2" + "\n", 213) == "zgK1G2"
        assert compress_hex_ascii("1" * 841 + "2" + "\n", 421) == "zzhG1G2"

    def test_lowercase_input(self):
        assert compress_hex_ascii("ffff\n", 2) == "!"

    def test_missing_final_newline(self):
        assert compress_hex_ascii("0000\n0000", 2) == ",:"

    def test_row_width_defaults_to_first_row(self):
        assert compress_hex_ascii("0000\nFFFF\n") == ",!"

    def test_empty(self):
        assert compress_hex_ascii("") == ""


class TestExpandHexAscii:
    """Tests for expand_hex_ascii."""

    def test_run_codes(self):
        assert expand_hex_ascii("gY0GF", 20) == "0" * 39 + "F\n"

    def test_fill_and_repeat(self):
        assert expand_hex_ascii("GAG0GAG0::,:", 2) == "A0A0\n" * 3 + "0000\n" * 2

    def test_fill_after_partial_row(self):
        assert expand_hex_ascii("GA!", 2) == "AFFF\n"

    def test_uncompressed_digits(self):
        assert expand_hex_ascii("0FA0FF01", 2) == "0FA0\nFF01\n"

    @pytest.mark.parametrize("code", [":", "G0:", "GX", "I0H0", "H0H0H0", "G0G0G0", "G0#G0"])
    def test_invalid(self, code):
        """Misplaced repeats, stray characters, overlong and truncated rows."""
        with pytest.raises(InvalidArgumentError):
            expand_hex_ascii(code, 2)

    def test_invalid_row_width(self):
        with pytest.raises(InvalidArgumentError):
            expand_hex_ascii(",", 0)


class TestCompressExpand:
    def test_rasterized_image(self):
        """Expanding the compressed text reproduces the hex stream."""
        image = Image.new("RGB", (100, 12), "white")
        for y in range(3, 9):
            for x in range(10, 60):
                image.putpixel((x, y), (0, 0, 0))
        raster = rasterize(image)
        code = raster_to_hex(raster)

        compressed = compress_hex_ascii(code, raster.bytes_per_row)

        assert ":" in compressed
        assert len(compressed) < len(code)
        assert expand_hex_ascii(compressed, raster.bytes_per_row) == code
