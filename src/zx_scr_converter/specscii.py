"""SPECSCII text screens.

A SPECSCII file is a stream of character codes and BASIC print control
codes laid out on a 32x24 character grid. Decoding turns the stream into
regular SCR bytes so it can be drawn like any other screen.
"""

# Reference: control codes
# Code | Arguments | Effect
# -----|-----------|----------------------------------------
# 0x0D | -         | newline
# 0x10 | n         | INK n (0-7)
# 0x11 | n         | PAPER n (0-7)
# 0x12 | n         | FLASH n (0/1)
# 0x13 | n         | BRIGHT n (0/1)
# 0x14 | n         | INVERSE n (0/1), swaps ink and paper
# 0x15 | n         | OVER n (0/1), XOR glyph, keep paper
# 0x16 | row, col  | AT row, col
# 0x17 | col       | TAB col
# 0x20-0x7F        | glyph from the font
# 0x80-0xFF        | 2x2 block graphic, pattern in the low nibble

from __future__ import annotations

from typing import Optional

from PIL import Image

from .colorspace import luminance
from .errors import ConversionError
from .formats import ATTR_SIZE, BITMAP_SIZE, COLUMNS, ROWS, bitmap_offset
from .palette import make_attribute

FONT_SIZE = 768
FIRST_CHAR = 0x20

CC_ENTER = 0x0D
CC_INK = 0x10
CC_PAPER = 0x11
CC_FLASH = 0x12
CC_BRIGHT = 0x13
CC_INVERSE = 0x14
CC_OVER = 0x15
CC_AT = 0x16
CC_TAB = 0x17

# Block graphic pattern bits per quadrant
QUADRANT_TOP_RIGHT = 0x01
QUADRANT_TOP_LEFT = 0x02
QUADRANT_BOTTOM_RIGHT = 0x04
QUADRANT_BOTTOM_LEFT = 0x08


def block_graphic(code: int) -> bytes:
    """Eight bitmap rows of block graphic character ``code``."""
    pattern = code & 0x0F
    top = (0xF0 if pattern & QUADRANT_TOP_LEFT else 0) | (0x0F if pattern & QUADRANT_TOP_RIGHT else 0)
    bottom = (0xF0 if pattern & QUADRANT_BOTTOM_LEFT else 0) | (0x0F if pattern & QUADRANT_BOTTOM_RIGHT else 0)
    return bytes([top] * 4 + [bottom] * 4)


def glyph(code: int, font: Optional[bytes]) -> bytes:
    if code >= 0x80:
        return block_graphic(code)
    if FIRST_CHAR <= code < 0x80 and font is not None:
        start = (code - FIRST_CHAR) * 8
        return bytes(font[start:start + 8]).ljust(8, b"\x00")
    return bytes(8)


def decode_to_scr(data: bytes, font: Optional[bytes] = None) -> bytes:
    """Interpret a SPECSCII stream and return the equivalent 6912-byte screen.

    Without a font, printable characters still take their cell's colors but
    draw no pixels. Cells never printed to stay white ink on black paper
    with an empty bitmap.
    """
    if font is not None and len(font) < FONT_SIZE:
        raise ConversionError(f"SPECSCII font needs {FONT_SIZE} bytes, got {len(font)}")
    screen = bytearray(BITMAP_SIZE + ATTR_SIZE)
    default_attr = make_attribute(7, 0)
    for i in range(ATTR_SIZE):
        screen[BITMAP_SIZE + i] = default_attr

    ink, paper = 7, 0
    bright = flash = inverse = over = 0
    row = col = 0
    i = 0
    size = len(data)
    while i < size and row < ROWS:
        code = data[i]
        if code == CC_ENTER:
            col = 0
            row += 1
            i += 1
            continue
        if code < CC_INK or 0x18 <= code <= 0x1F:
            i += 1
            continue
        if CC_INK <= code <= CC_OVER and i + 1 < size:
            value = data[i + 1]
            if code == CC_INK:
                ink = value & 0x07
            elif code == CC_PAPER:
                paper = value & 0x07
            elif code == CC_FLASH:
                flash = value & 0x01
            elif code == CC_BRIGHT:
                bright = value & 0x01
            elif code == CC_INVERSE:
                inverse = value & 0x01
            else:
                over = value & 0x01
            i += 2
            continue
        if code == CC_AT and i + 2 < size:
            row = min(data[i + 1], ROWS - 1)
            col = min(data[i + 2], COLUMNS - 1)
            i += 3
            continue
        if code == CC_TAB and i + 1 < size:
            col = min(data[i + 1], COLUMNS - 1)
            i += 2
            continue

        cell_ink, cell_paper = (paper, ink) if inverse else (ink, paper)
        attr_pos = BITMAP_SIZE + row * COLUMNS + col
        if over:
            cell_paper = (screen[attr_pos] >> 3) & 0x07
        screen[attr_pos] = make_attribute(cell_ink, cell_paper, bool(bright), bool(flash))
        rows = glyph(code, font)
        for line in range(8):
            pos = bitmap_offset(row * 8 + line, col)
            if over:
                screen[pos] ^= rows[line]
            else:
                screen[pos] = rows[line]

        col += 1
        if col >= COLUMNS:
            col = 0
            row += 1
        i += 1
    return bytes(screen)


def encode_blocks(image: Image.Image) -> bytes:
    """Encode a 256x192 image as 768 block graphic characters.

    A quadrant is set (drawn in white ink) when its mean luminance is at
    least 128.
    """
    pixels = image.convert("RGB").load()
    out = bytearray()
    quadrants = (
        (0, 0, QUADRANT_TOP_LEFT),
        (4, 0, QUADRANT_TOP_RIGHT),
        (0, 4, QUADRANT_BOTTOM_LEFT),
        (4, 4, QUADRANT_BOTTOM_RIGHT),
    )
    for row in range(ROWS):
        for col in range(COLUMNS):
            pattern = 0
            for qx, qy, bit in quadrants:
                total = 0.0
                for y in range(row * 8 + qy, row * 8 + qy + 4):
                    for x in range(col * 8 + qx, col * 8 + qx + 4):
                        total += luminance(pixels[x, y])
                if total / 16 >= 128:
                    pattern |= bit
            out.append(0x80 | pattern)
    return bytes(out)
