"""ULA+ palette support.

The ULA+ extension replaces the fixed 16 colors by a 64-byte palette of
GRB332 values organized as 4 CLUTs x 16 entries (8 ink + 8 paper). A cell's
FLASH and BRIGHT bits select the CLUT, so FLASH no longer blinks.
"""

# Reference: GRB332 byte
# Bits  | Channel
# ------|---------------------
# 7-5   | green (0-7)
# 4-2   | red (0-7)
# 1-0   | blue (0-3)

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Sequence, Tuple

from PIL import Image

from .colorspace import rgb_pixels
from .errors import ConversionError
from .palette import BRIGHT_BIT, FLASH_BIT, Color

logger = logging.getLogger(__name__)

PALETTE_SIZE = 64
CLUT_SIZE = 16
CLUT_COLORS = 8
CLUT_CAPACITY = 4 * (CLUT_COLORS - 2)
BLOCK_SIZE = 8
BLACK = 0x00
WHITE = 0xFF


def grb332_to_rgb(value: int) -> Color:
    g3 = (value >> 5) & 0x07
    r3 = (value >> 2) & 0x07
    b2 = value & 0x03
    return (round(r3 * 255 / 7), round(g3 * 255 / 7), round(b2 * 255 / 3))


def rgb_to_grb332(rgb: Sequence[float]) -> int:
    r3 = round(rgb[0] * 7 / 255)
    g3 = round(rgb[1] * 7 / 255)
    b2 = round(rgb[2] * 3 / 255)
    return (g3 << 5) | (r3 << 2) | b2


def palette_colors(palette: Sequence[int]) -> List[Color]:
    """Decode a 64-byte ULA+ palette into RGB colors."""
    if len(palette) < PALETTE_SIZE:
        raise ConversionError(f"ULA+ palette needs {PALETTE_SIZE} bytes, got {len(palette)}")
    return [grb332_to_rgb(v) for v in palette[:PALETTE_SIZE]]


def palette_index(attr: int) -> Tuple[int, int]:
    """Return the palette entries ``(ink, paper)`` used by an attribute byte."""
    clut = ((1 if attr & FLASH_BIT else 0) << 1) | (1 if attr & BRIGHT_BIT else 0)
    ink = attr & 0x07
    paper = (attr >> 3) & 0x07
    return clut * CLUT_SIZE + ink, clut * CLUT_SIZE + 8 + paper


def default_palette() -> bytes:
    """Standard Spectrum colors in every CLUT; odd CLUTs use the bright levels."""
    data = bytearray()
    for clut in range(4):
        level = 255 if clut & 1 else 215
        entries = []
        for index in range(8):
            rgb = (
                level if index & 2 else 0,
                level if index & 4 else 0,
                level if index & 1 else 0,
            )
            entries.append(rgb_to_grb332(rgb))
        data.extend(entries)  # ink
        data.extend(entries)  # paper
    return bytes(data)


def _reduce_colors(image: Image.Image) -> List[int]:
    """GRB332 value of every pixel, median-cut first when the CLUTs cannot hold them all."""
    values = [rgb_to_grb332(p) for p in rgb_pixels(image)]
    if len(set(values)) > CLUT_CAPACITY:
        reduced = image.quantize(colors=CLUT_CAPACITY, method=Image.MEDIANCUT).convert("RGB")
        values = [rgb_to_grb332(p) for p in rgb_pixels(reduced)]
    return values


def block_pairs(values: Sequence[int], width: int, height: int) -> Counter:
    """Count the two dominant GRB332 colors of every 8x8 block."""
    pairs: Counter = Counter()
    for by in range(0, height, BLOCK_SIZE):
        for bx in range(0, width, BLOCK_SIZE):
            counts = Counter(
                values[y * width + x]
                for y in range(by, min(by + BLOCK_SIZE, height))
                for x in range(bx, min(bx + BLOCK_SIZE, width))
            )
            pairs[tuple(sorted(v for v, _ in counts.most_common(2)))] += 1
    return pairs


def group_pairs(pairs: Counter) -> List[List[int]]:
    """Distribute block color pairs over the four CLUTs.

    Pairs are placed most frequent first, each into the CLUT that needs the
    fewest new entries for it (then the emptiest one), so both colors of a
    placed pair always share a CLUT. Pairs that fit nowhere are left to the
    nearest-color search.
    """
    groups = [[BLACK, WHITE] for _ in range(4)]
    skipped = 0
    for pair, _ in sorted(pairs.items(), key=lambda item: (-item[1], item[0])):
        best = None
        for index, entries in enumerate(groups):
            missing = [v for v in pair if v not in entries]
            if len(entries) + len(missing) > CLUT_COLORS:
                continue
            key = (len(missing), len(entries), index)
            if best is None or key < best[0]:
                best = (key, index, missing)
        if best is None:
            skipped += 1
            continue
        groups[best[1]].extend(best[2])
    if skipped:
        logger.debug("ULA+ palette: %d block pairs did not fit a CLUT", skipped)
    return groups


def build_palette(image: Image.Image) -> bytes:
    """Derive a 64-byte ULA+ palette from ``image``.

    Every 8x8 block contributes its two dominant colors as a pair, and the
    pairs are grouped into the four CLUTs (see :func:`group_pairs`). Each
    CLUT starts with black and white; free slots take the image's most
    frequent colors. Ink and paper halves of a CLUT are identical so any
    pair can be chosen.
    """
    rgb = image.convert("RGB")
    width, height = rgb.size
    values = _reduce_colors(rgb)
    by_frequency = [v for v, _ in Counter(values).most_common()]

    data = bytearray()
    for clut, entries in enumerate(group_pairs(block_pairs(values, width, height))):
        for value in by_frequency:
            if len(entries) >= CLUT_COLORS:
                break
            if value not in entries:
                entries.append(value)
        while len(entries) < CLUT_COLORS:
            entries.append(BLACK)
        logger.debug("ULA+ CLUT %d: %s", clut, " ".join(f"{v:02X}" for v in entries))
        data.extend(entries)  # ink
        data.extend(entries)  # paper
    return bytes(data)
