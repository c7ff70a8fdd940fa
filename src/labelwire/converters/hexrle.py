"""ZPL hex-ASCII run-length compression.

The ^GFA command accepts graphic data as hex digits, one image row per line.
ZPL printers understand a compact form of that text:

- A run of a digit is written as repeat-count letters followed by the digit.
  'G'..'Y' count 1..19, 'g'..'z' count 20..400 in steps of 20, and counts
  of consecutive letters add up ("gY0" is 39 zeros).
- ',' fills the rest of the row with '0', '!' fills it with 'F'.
- ':' repeats the previous row.
"""

import itertools
import string

from labelwire.converters.raster import Raster
from labelwire.errors import InvalidArgumentError

RUN_CODES: dict[int, str] = {
    1: "G",
    2: "H",
    3: "I",
    4: "J",
    5: "K",
    6: "L",
    7: "M",
    8: "N",
    9: "O",
    10: "P",
    11: "Q",
    12: "R",
    13: "S",
    14: "T",
    15: "U",
    16: "V",
    17: "W",
    18: "X",
    19: "Y",
    20: "g",
    40: "h",
    60: "i",
    80: "j",
    100: "k",
    120: "l",
    140: "m",
    160: "n",
    180: "o",
    200: "p",
    220: "q",
    240: "r",
    260: "s",
    280: "t",
    300: "u",
    320: "v",
    340: "w",
    360: "x",
    380: "y",
    400: "z",
}

CODE_VALUES: dict[str, int] = {code: count for count, code in RUN_CODES.items()}

MAX_MULTIPLE = 400
FILL_ZERO = ","
FILL_ONE = "!"
REPEAT_ROW = ":"


def raster_to_hex(raster: Raster) -> str:
    """Render a raster as uppercase hex text, one newline-terminated line per row."""
    return "".join(raster.row(y).hex().upper() + "\n" for y in range(raster.height))


def _encode_run(count: int, digit: str) -> str:
    prefix = ""
    # Only runs of 420+ need more than one multiple-of-20 letter
    while count >= MAX_MULTIPLE + 20:
        prefix += RUN_CODES[MAX_MULTIPLE]
        count -= MAX_MULTIPLE

    if count <= 20:
        return prefix + RUN_CODES[count] + digit

    multiple, rest = divmod(count, 20)
    code = prefix + RUN_CODES[multiple * 20]
    if rest:
        code += RUN_CODES[rest]
    return code + digit


def _encode_row(row: str, max_line: int) -> str:
    runs = [(digit, sum(1 for _ in group)) for digit, group in itertools.groupby(row)]
    parts = []
    for index, (digit, count) in enumerate(runs):
        is_last = index == len(runs) - 1
        if is_last and count >= max_line and digit == "0":
            parts.append(FILL_ZERO)
        elif is_last and count >= max_line and digit == "F":
            parts.append(FILL_ONE)
        else:
            parts.append(_encode_run(count, digit))
    return "".join(parts)


def compress_hex_ascii(code: str, bytes_per_row: int | None = None) -> str:
    """Compress newline-separated hex rows with ZPL run-length codes.

    Args:
        code: Hex text, one row per line (as produced by `raster_to_hex`).
        bytes_per_row: Raster row width in bytes. Defaults to half the length
            of the first row.

    Returns:
        The compressed text with rows concatenated. Empty input is returned
        unchanged.
    """
    if not code:
        return code

    rows = code.upper().split("\n")
    if rows[-1] == "":
        rows.pop()
    if bytes_per_row is None:
        bytes_per_row = len(rows[0]) // 2 if rows else 0
    max_line = bytes_per_row * 2

    encoded_rows = []
    previous: str | None = None
    for row in rows:
        encoded = _encode_row(row, max_line)
        encoded_rows.append(REPEAT_ROW if encoded == previous else encoded)
        previous = encoded

    return "".join(encoded_rows)


def expand_hex_ascii(code: str, bytes_per_row: int) -> str:
    """Expand ZPL run-length compressed hex back into newline-terminated rows.

    Raises:
        InvalidArgumentError: If the text is not valid compressed data for the
            given row width.
    """
    if bytes_per_row < 1:
        raise InvalidArgumentError(f"bytes_per_row must be positive, got {bytes_per_row}")

    max_line = bytes_per_row * 2
    rows: list[str] = []
    current = ""
    count = 0

    def finish_row() -> None:
        nonlocal current
        rows.append(current)
        current = ""

    for char in code:
        if char in CODE_VALUES:
            count += CODE_VALUES[char]
        elif char in string.hexdigits:
            current += char.upper() * (count or 1)
            count = 0
            if len(current) > max_line:
                raise InvalidArgumentError(f"Row {len(rows)} exceeds {max_line} hex digits")
            if len(current) == max_line:
                finish_row()
        elif char in (FILL_ZERO, FILL_ONE):
            fill = "0" if char == FILL_ZERO else "F"
            current += fill * (max_line - len(current))
            count = 0
            finish_row()
        elif char == REPEAT_ROW:
            if current or not rows:
                raise InvalidArgumentError(f"Row repeat at invalid position in row {len(rows)}")
            rows.append(rows[-1])
        elif char.isspace():
            continue
        else:
            raise InvalidArgumentError(f"Unexpected character {char!r} in compressed data")

    if count:
        raise InvalidArgumentError("Repeat count without a digit at end of data")
    if current:
        raise InvalidArgumentError(f"Truncated final row: {len(current)} of {max_line} hex digits")

    return "".join(row + "\n" for row in rows)
