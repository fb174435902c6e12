"""Choose the two colors of an attribute block.

A block is 8 pixels wide and ``len(pixels) // 8`` lines tall. Pixels are
given in row order; a ``None`` entry marks a transparent pixel, which is not
scored and always ends up as paper.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .colorspace import DistanceMetric, distance
from .palette import Color, Palette, make_attribute

BlockPixel = Optional[Tuple[float, float, float]]


@dataclass(frozen=True)
class BlockChoice:
    ink: int
    paper: int
    bright: bool
    bitmap: Tuple[int, ...]  # one byte per line, set bit = ink
    error: float
    flash: bool = False

    @property
    def attribute(self) -> int:
        return make_attribute(self.ink, self.paper, self.bright, self.flash)

    @property
    def clut(self) -> int:
        """ULA+ color lookup table selected by the FLASH/BRIGHT bits."""
        return (int(self.flash) << 1) | int(self.bright)


def _distance_table(
    pixels: Sequence[BlockPixel], colors: Sequence[Color], metric: DistanceMetric
) -> List[Optional[List[float]]]:
    return [
        None if p is None else [distance(p, c, metric) for c in colors]
        for p in pixels
    ]


def _bitmap(table: Sequence[Optional[List[float]]], ink: int, paper: int) -> Tuple[int, ...]:
    height = len(table) // 8
    rows = [0] * height
    for i, dists in enumerate(table):
        if dists is not None and dists[ink] < dists[paper]:
            rows[i // 8] |= 0x80 >> (i % 8)
    return tuple(rows)


def _search(
    table: Sequence[Optional[List[float]]], banks: int
) -> Tuple[int, int, int, float]:
    """Exhaustive (bank, ink, paper) search over ``banks`` groups of 8 columns.

    Returns ``(bank, ink, paper, error)``; the first strictly smaller error
    wins, and ink 0 / paper 7 / bank 0 is kept when nothing scores.
    """
    rows = [d for d in table if d is not None]
    best = (0, 0, 7, float("inf"))
    for bank in range(banks):
        base = bank * 8
        for ink in range(8):
            for paper in range(8):
                i = base + ink
                p = base + paper
                err = 0.0
                for d in rows:
                    a = d[i]
                    b = d[p]
                    err += a if a < b else b
                if err < best[3]:
                    best = (bank, ink, paper, err)
    if best[3] == float("inf"):
        return 0, 0, 7, 0.0
    return best


def _collapse(bitmap: Tuple[int, ...], ink: int, paper: int) -> Tuple[int, int]:
    """Give a single-color block the same ink and paper."""
    if all(row == 0 for row in bitmap):
        return paper, paper
    if all(row == 0xFF for row in bitmap):
        return ink, ink
    return ink, paper


def select_block_colors(
    pixels: Sequence[BlockPixel],
    palette: Palette,
    metric: DistanceMetric = DistanceMetric.LAB,
) -> BlockChoice:
    """Best ink/paper/bright triple for one block (2 x 8 x 8 candidates)."""
    table = _distance_table(pixels, palette.regular + palette.bright, metric)
    bank, ink, paper, err = _search(table, 2)
    bitmap = _bitmap(table, bank * 8 + ink, bank * 8 + paper)
    if table and all(d is not None for d in table):
        ink, paper = _collapse(bitmap, ink, paper)
    return BlockChoice(ink=ink, paper=paper, bright=bool(bank), bitmap=bitmap, error=err)


def select_ulaplus_colors(
    pixels: Sequence[BlockPixel],
    palette64: Sequence[Color],
    metric: DistanceMetric = DistanceMetric.LAB,
) -> BlockChoice:
    """Best (CLUT, ink, paper) for one block against a 64-entry ULA+ palette.

    Inks come from entries ``clut*16 + 0..7`` and papers from
    ``clut*16 + 8..15``; the CLUT is returned through the FLASH/BRIGHT bits.
    """
    table = _distance_table(pixels, palette64, metric)
    rows = [d for d in table if d is not None]
    best = (0, 0, 7, float("inf"))
    for clut in range(4):
        base = clut * 16
        for ink in range(8):
            for paper in range(8):
                i = base + ink
                p = base + 8 + paper
                err = 0.0
                for d in rows:
                    a = d[i]
                    b = d[p]
                    err += a if a < b else b
                if err < best[3]:
                    best = (clut, ink, paper, err)
    clut, ink, paper, err = best
    if err == float("inf"):
        err = 0.0
    bitmap = _bitmap(table, clut * 16 + ink, clut * 16 + 8 + paper)
    return BlockChoice(
        ink=ink,
        paper=paper,
        bright=bool(clut & 1),
        flash=bool(clut & 2),
        bitmap=bitmap,
        error=err,
    )


def mono_choice(
    pixels: Sequence[BlockPixel],
    palette: Palette,
    metric: DistanceMetric = DistanceMetric.LAB,
) -> BlockChoice:
    """Fixed black ink on white paper (attribute 0x78)."""
    table = _distance_table(pixels, (palette.black, palette.white), metric)
    bitmap = _bitmap(table, 0, 1)
    err = sum(min(d) for d in table if d is not None)
    return BlockChoice(ink=0, paper=7, bright=True, bitmap=bitmap, error=err)


def select_pattern_colors(
    pixels: Sequence[BlockPixel],
    pattern: Sequence[int],
    palette: Palette,
    metric: DistanceMetric = DistanceMetric.LAB,
) -> BlockChoice:
    """Best attribute for a block whose bitmap is fixed to ``pattern``.

    Pixels under a set pattern bit are scored against ink, the rest against
    paper. Both halves are independent, so the best ink and best paper are
    found separately within each bank; the earliest winner is kept on ties.
    """
    colors = palette.regular + palette.bright
    table = _distance_table(pixels, colors, metric)
    ink_rows = []
    paper_rows = []
    for i, dists in enumerate(table):
        if dists is None:
            continue
        if pattern[(i // 8) % len(pattern)] & (0x80 >> (i % 8)):
            ink_rows.append(dists)
        else:
            paper_rows.append(dists)

    best = (0, 0, 7, float("inf"))
    for bank in range(2):
        base = bank * 8
        ink_scores = [sum(d[base + c] for d in ink_rows) for c in range(8)]
        paper_scores = [sum(d[base + c] for d in paper_rows) for c in range(8)]
        ink = min(range(8), key=lambda c: ink_scores[c])
        paper = min(range(8), key=lambda c: paper_scores[c])
        err = ink_scores[ink] + paper_scores[paper]
        if err < best[3]:
            best = (bank, ink, paper, err)
    bank, ink, paper, err = best
    height = len(pixels) // 8
    bitmap = tuple(pattern[y % len(pattern)] for y in range(height))
    return BlockChoice(ink=ink, paper=paper, bright=bool(bank), bitmap=bitmap, error=err)
