"""Border data for BSC and BMC4 screens.

Both formats carry a 4224-byte border description for a 384x304 frame in
which the 256x192 screen sits at (64, 64). Each border line is split into
8-pixel segments; a byte holds two segment colors
(``first | second << 3``), taken from the regular (non-bright) bank.
"""

# Reference: border layout
# Lines    | Kind | Bytes per line | Covered pixels
# ---------|------|----------------|--------------------------------------
# 0-63     | full | 24             | x 0-383
# 64-255   | side | 8              | 4 bytes at x 0-63, 4 bytes at x 320-383
# 256-303  | full | 24             | x 0-383
#
# Timing rule used when encoding full lines: the three segments at each end
# may change color every 8 pixels, the interior only every 24 pixels
# (14 blocks of 3 segments). Side lines use 8-pixel segments throughout.

from __future__ import annotations

from typing import Iterator, List, Sequence, Tuple

from PIL import Image

from .colorspace import DistanceMetric, nearest_index
from .errors import ConversionError
from .formats import (
    BORDER_FRAME_HEIGHT,
    BORDER_FRAME_WIDTH,
    BORDER_SCREEN_X,
    BORDER_SCREEN_Y,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
)
from .palette import Palette

BORDER_SIZE = 4224
TOP_LINES = 64
SIDE_LINES = 192
BOTTOM_LINES = 48
FULL_LINE_BYTES = 24
SIDE_LINE_BYTES = 8
SEGMENT_WIDTH = 8
SEGMENTS_PER_LINE = BORDER_FRAME_WIDTH // SEGMENT_WIDTH  # 48
RIGHT_BORDER_X = 320
EDGE_SEGMENTS = 3
INTERIOR_BLOCK_WIDTH = 24


def is_full_line(y: int) -> bool:
    return y < TOP_LINES or y >= TOP_LINES + SIDE_LINES


def line_offset(y: int) -> int:
    """Offset of border line ``y`` within the border block."""
    if y < TOP_LINES:
        return y * FULL_LINE_BYTES
    if y < TOP_LINES + SIDE_LINES:
        return TOP_LINES * FULL_LINE_BYTES + (y - TOP_LINES) * SIDE_LINE_BYTES
    return (
        TOP_LINES * FULL_LINE_BYTES
        + SIDE_LINES * SIDE_LINE_BYTES
        + (y - TOP_LINES - SIDE_LINES) * FULL_LINE_BYTES
    )


def unpack_line(border: Sequence[int], y: int) -> List[int]:
    """Segment colors of line ``y``: 48 for full lines, 16 (8 left + 8 right) for side lines."""
    start = line_offset(y)
    count = FULL_LINE_BYTES if is_full_line(y) else SIDE_LINE_BYTES
    colors: List[int] = []
    for value in border[start:start + count]:
        colors.append(value & 0x07)
        colors.append((value >> 3) & 0x07)
    return colors


def segment_x(y: int, index: int) -> int:
    """Left pixel of segment ``index`` as returned by :func:`unpack_line`."""
    if is_full_line(y) or index < 8:
        return index * SEGMENT_WIDTH
    return RIGHT_BORDER_X + (index - 8) * SEGMENT_WIDTH


def iter_lines(border: Sequence[int]) -> Iterator[Tuple[int, bool, List[int]]]:
    """Yield ``(y, full_line, segment colors)`` for all 304 lines."""
    for y in range(BORDER_FRAME_HEIGHT):
        yield y, is_full_line(y), unpack_line(border, y)


def draw_border(image: Image.Image, border: Sequence[int], palette: Palette) -> None:
    """Paint border segments onto a 384x304 RGB image in place."""
    if len(border) < BORDER_SIZE:
        raise ConversionError(f"border needs {BORDER_SIZE} bytes, got {len(border)}")
    pixels = image.load()
    for y, _, colors in iter_lines(border):
        for index, color in enumerate(colors):
            rgb = palette.regular[color]
            x0 = segment_x(y, index)
            for x in range(x0, x0 + SEGMENT_WIDTH):
                pixels[x, y] = rgb


def _average(pixels, x0: int, width: int, y: int) -> Tuple[float, float, float]:
    r = g = b = 0.0
    for x in range(x0, x0 + width):
        pr, pg, pb = pixels[x, y][:3]
        r += pr
        g += pg
        b += pb
    return r / width, g / width, b / width


def _pack(colors: Sequence[int]) -> bytes:
    return bytes(colors[i] | (colors[i + 1] << 3) for i in range(0, len(colors), 2))


def encode_border(
    frame: Image.Image,
    palette: Palette,
    metric: DistanceMetric = DistanceMetric.LAB,
) -> bytes:
    """Encode the border area of a 384x304 frame into 4224 bytes."""
    if frame.size != (BORDER_FRAME_WIDTH, BORDER_FRAME_HEIGHT):
        raise ConversionError(
            f"border frame must be {BORDER_FRAME_WIDTH}x{BORDER_FRAME_HEIGHT}, got {frame.size}"
        )
    pixels = frame.convert("RGB").load()
    colors = palette.regular

    def nearest(x0: int, width: int, y: int) -> int:
        return nearest_index(_average(pixels, x0, width, y), colors, metric)

    data = bytearray()
    for y in range(BORDER_FRAME_HEIGHT):
        if is_full_line(y):
            segments = [0] * SEGMENTS_PER_LINE
            for s in range(EDGE_SEGMENTS):
                segments[s] = nearest(s * SEGMENT_WIDTH, SEGMENT_WIDTH, y)
                right = SEGMENTS_PER_LINE - EDGE_SEGMENTS + s
                segments[right] = nearest(right * SEGMENT_WIDTH, SEGMENT_WIDTH, y)
            blocks = (SEGMENTS_PER_LINE - 2 * EDGE_SEGMENTS) // EDGE_SEGMENTS
            for block in range(1, blocks + 1):
                color = nearest(block * INTERIOR_BLOCK_WIDTH, INTERIOR_BLOCK_WIDTH, y)
                first = block * EDGE_SEGMENTS
                segments[first:first + EDGE_SEGMENTS] = [color] * EDGE_SEGMENTS
        else:
            segments = [nearest(s * SEGMENT_WIDTH, SEGMENT_WIDTH, y) for s in range(8)]
            segments += [nearest(RIGHT_BORDER_X + s * SEGMENT_WIDTH, SEGMENT_WIDTH, y) for s in range(8)]
        data.extend(_pack(segments))
    return bytes(data)


def uniform_border(color: int) -> bytes:
    """A border block that paints every segment with ``color``."""
    value = (color & 0x07) | ((color & 0x07) << 3)
    return bytes([value]) * BORDER_SIZE


def screen_box() -> Tuple[int, int, int, int]:
    """``(left, top, right, bottom)`` of the main screen inside the frame."""
    return (
        BORDER_SCREEN_X,
        BORDER_SCREEN_Y,
        BORDER_SCREEN_X + SCREEN_WIDTH,
        BORDER_SCREEN_Y + SCREEN_HEIGHT,
    )
