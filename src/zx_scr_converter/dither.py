"""Dithering algorithms.

Two families live here:

* :class:`Dither` implementations quantize a whole float RGB buffer in place
  so every pixel becomes one of the given palette colors.
* :class:`CellDither` implementations work on a single attribute block whose
  two colors (ink and paper) are already fixed, and return the block bitmap.
  Error never leaves the block.

Buffers are flat lists of floats laid out ``[r, g, b, r, g, b, ...]``.
"""

# Reference: error diffusion kernels (dx, dy, weight)
# Name              | Divisor | Neighbors
# ------------------|---------|------------------------------------------------
# Floyd-Steinberg   | 16      | (1,0)=7 (-1,1)=3 (0,1)=5 (1,1)=1
# Jarvis-Judice-N.  | 48      | 12 neighbors over two rows
# Stucki            | 42      | same shape as Jarvis, 8/4 and 2/4/8/4/2 rows
# Burkes            | 32      | (1,0)=8 (2,0)=4, one row 2/4/8/4/2
# Sierra            | 32      | 5/3, 2/4/5/4/2, 2/3/2
# Sierra Lite       | 4       | (1,0)=2 (-1,1)=1 (0,1)=1
# Sierra-2          | 16      | 4/3, 1/2/3/2/1
# Atkinson          | 8       | six neighbors at 1/8, 2/8 of the error is dropped

from __future__ import annotations

import math
import random
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .colorspace import DistanceMetric, clamp, distance, luminance, nearest_index, rgb_pixels
from .palette import Color

PixelBuffer = List[float]
Kernel = Sequence[Tuple[int, int, float]]


class DitherMethod(str, Enum):
    NONE = "none"
    FLOYD_STEINBERG = "floyd-steinberg"
    JARVIS = "jarvis"
    STUCKI = "stucki"
    BURKES = "burkes"
    SIERRA = "sierra"
    SIERRA_LITE = "sierra-lite"
    SIERRA2 = "sierra2"
    ATKINSON = "atkinson"
    SERPENTINE = "serpentine"
    RIEMERSMA = "riemersma"
    ORDERED = "ordered"
    ORDERED8 = "ordered8"
    BLUE_NOISE = "blue-noise"
    PATTERN = "pattern"
    NOISE = "noise"


class CellDitherMethod(str, Enum):
    NONE = "none"
    FLOYD_STEINBERG = "floyd"
    ATKINSON = "atkinson"
    ORDERED = "ordered"
    SIERRA2 = "sierra2"
    SERPENTINE = "serpentine"
    RIEMERSMA = "riemersma"
    BLUE_NOISE = "blue-noise"
    PATTERN = "pattern"


BAYER_4X4 = (
    (0, 8, 2, 10),
    (12, 4, 14, 6),
    (3, 11, 1, 9),
    (15, 7, 13, 5),
)

BAYER_8X8 = (
    (0, 32, 8, 40, 2, 34, 10, 42),
    (48, 16, 56, 24, 50, 18, 58, 26),
    (12, 44, 4, 36, 14, 46, 6, 38),
    (60, 28, 52, 20, 62, 30, 54, 22),
    (3, 35, 11, 43, 1, 33, 9, 41),
    (51, 19, 59, 27, 49, 17, 57, 25),
    (15, 47, 7, 39, 13, 45, 5, 37),
    (63, 31, 55, 23, 61, 29, 53, 21),
)

# Clustered-dot halftone screen
CLUSTER_8X8 = (
    (24, 10, 12, 26, 35, 47, 49, 37),
    (8, 0, 2, 14, 45, 59, 61, 51),
    (22, 6, 4, 16, 43, 57, 63, 53),
    (30, 20, 18, 28, 33, 41, 55, 39),
    (34, 46, 48, 36, 25, 11, 13, 27),
    (44, 58, 60, 50, 9, 1, 3, 15),
    (42, 56, 62, 52, 23, 7, 5, 17),
    (32, 40, 54, 38, 31, 21, 19, 29),
)

BLUE_NOISE_16 = (
    (106, 53, 174, 89, 219, 16, 142, 70, 195, 38, 162, 121, 8, 182, 65, 237),
    (231, 138, 21, 246, 115, 180, 56, 241, 108, 225, 82, 205, 145, 95, 213, 42),
    (76, 189, 98, 156, 46, 208, 130, 12, 167, 47, 134, 26, 239, 58, 156, 123),
    (152, 6, 217, 67, 136, 88, 252, 78, 193, 96, 177, 69, 113, 186, 31, 199),
    (249, 112, 165, 30, 185, 35, 163, 116, 29, 248, 147, 223, 4, 140, 86, 243),
    (59, 202, 83, 235, 101, 222, 50, 210, 144, 61, 17, 102, 172, 236, 51, 130),
    (133, 17, 143, 54, 149, 2, 126, 73, 186, 92, 196, 82, 41, 117, 192, 73),
    (228, 178, 92, 198, 170, 250, 183, 242, 22, 232, 125, 155, 214, 63, 160, 14),
    (44, 109, 254, 37, 79, 107, 40, 100, 150, 48, 173, 10, 253, 91, 229, 105),
    (148, 211, 64, 168, 122, 206, 158, 226, 69, 209, 77, 187, 135, 33, 176, 49),
    (18, 85, 188, 8, 238, 23, 62, 4, 119, 255, 99, 52, 234, 111, 216, 139),
    (234, 128, 227, 102, 146, 181, 134, 197, 161, 25, 139, 169, 72, 153, 81, 247),
    (57, 175, 44, 203, 55, 247, 86, 34, 83, 218, 194, 20, 245, 38, 190, 28),
    (201, 93, 161, 78, 166, 118, 220, 151, 240, 110, 58, 129, 97, 164, 114, 127),
    (11, 244, 120, 223, 15, 191, 42, 103, 66, 175, 148, 220, 184, 45, 230, 68),
    (137, 36, 183, 90, 141, 252, 75, 179, 13, 201, 88, 7, 254, 75, 141, 204),
)

FLOYD_STEINBERG_KERNEL: Kernel = ((1, 0, 7 / 16), (-1, 1, 3 / 16), (0, 1, 5 / 16), (1, 1, 1 / 16))
JARVIS_KERNEL: Kernel = (
    (1, 0, 7 / 48), (2, 0, 5 / 48),
    (-2, 1, 3 / 48), (-1, 1, 5 / 48), (0, 1, 7 / 48), (1, 1, 5 / 48), (2, 1, 3 / 48),
    (-2, 2, 1 / 48), (-1, 2, 3 / 48), (0, 2, 5 / 48), (1, 2, 3 / 48), (2, 2, 1 / 48),
)
STUCKI_KERNEL: Kernel = (
    (1, 0, 8 / 42), (2, 0, 4 / 42),
    (-2, 1, 2 / 42), (-1, 1, 4 / 42), (0, 1, 8 / 42), (1, 1, 4 / 42), (2, 1, 2 / 42),
    (-2, 2, 1 / 42), (-1, 2, 2 / 42), (0, 2, 4 / 42), (1, 2, 2 / 42), (2, 2, 1 / 42),
)
BURKES_KERNEL: Kernel = (
    (1, 0, 8 / 32), (2, 0, 4 / 32),
    (-2, 1, 2 / 32), (-1, 1, 4 / 32), (0, 1, 8 / 32), (1, 1, 4 / 32), (2, 1, 2 / 32),
)
SIERRA_KERNEL: Kernel = (
    (1, 0, 5 / 32), (2, 0, 3 / 32),
    (-2, 1, 2 / 32), (-1, 1, 4 / 32), (0, 1, 5 / 32), (1, 1, 4 / 32), (2, 1, 2 / 32),
    (-1, 2, 2 / 32), (0, 2, 3 / 32), (1, 2, 2 / 32),
)
SIERRA_LITE_KERNEL: Kernel = ((1, 0, 2 / 4), (-1, 1, 1 / 4), (0, 1, 1 / 4))
SIERRA2_KERNEL: Kernel = (
    (1, 0, 4 / 16), (2, 0, 3 / 16),
    (-2, 1, 1 / 16), (-1, 1, 2 / 16), (0, 1, 3 / 16), (1, 1, 2 / 16), (2, 1, 1 / 16),
)
# Only 6/8 of the error is passed on.
ATKINSON_KERNEL: Kernel = (
    (1, 0, 1 / 8), (2, 0, 1 / 8),
    (-1, 1, 1 / 8), (0, 1, 1 / 8), (1, 1, 1 / 8),
    (0, 2, 1 / 8),
)

RIEMERSMA_QUEUE_SIZE = 16


def image_to_buffer(image) -> PixelBuffer:
    """Flatten an RGB Pillow image into a float buffer."""
    buffer: PixelBuffer = []
    for r, g, b in rgb_pixels(image):
        buffer.extend((float(r), float(g), float(b)))
    return buffer


def buffer_pixel(buffer: PixelBuffer, width: int, x: int, y: int) -> Tuple[float, float, float]:
    i = (y * width + x) * 3
    return buffer[i], buffer[i + 1], buffer[i + 2]


def _store(buffer: PixelBuffer, i: int, color: Color) -> None:
    buffer[i] = color[0]
    buffer[i + 1] = color[1]
    buffer[i + 2] = color[2]


class Dither:
    """Quantize a float RGB buffer in place to ``colors``."""

    method: DitherMethod = DitherMethod.NONE

    def dither(
        self,
        pixels: PixelBuffer,
        width: int,
        height: int,
        colors: Sequence[Color],
        metric: DistanceMetric = DistanceMetric.LAB,
    ) -> None:
        raise NotImplementedError


class NearestDither(Dither):
    method = DitherMethod.NONE

    def dither(self, pixels, width, height, colors, metric=DistanceMetric.LAB):
        for i in range(0, width * height * 3, 3):
            rgb = (pixels[i], pixels[i + 1], pixels[i + 2])
            _store(pixels, i, colors[nearest_index(rgb, colors, metric)])


class ErrorDiffusionDither(Dither):
    """Raster-order error diffusion driven by a ``(dx, dy, weight)`` kernel.

    The nearest color is picked from the unclamped accumulated value and the
    full difference is spread, so large errors can carry over several pixels.
    """

    kernel: Kernel = FLOYD_STEINBERG_KERNEL

    def dither(self, pixels, width, height, colors, metric=DistanceMetric.LAB):
        kernel = self.kernel
        for y in range(height):
            for x in range(width):
                i = (y * width + x) * 3
                old = (pixels[i], pixels[i + 1], pixels[i + 2])
                new = colors[nearest_index(old, colors, metric)]
                _store(pixels, i, new)
                err_r = old[0] - new[0]
                err_g = old[1] - new[1]
                err_b = old[2] - new[2]
                for dx, dy, weight in kernel:
                    nx = x + dx
                    ny = y + dy
                    if 0 <= nx < width and ny < height:
                        j = (ny * width + nx) * 3
                        pixels[j] += err_r * weight
                        pixels[j + 1] += err_g * weight
                        pixels[j + 2] += err_b * weight


class FloydSteinbergDither(ErrorDiffusionDither):
    method = DitherMethod.FLOYD_STEINBERG
    kernel = FLOYD_STEINBERG_KERNEL


class JarvisDither(ErrorDiffusionDither):
    method = DitherMethod.JARVIS
    kernel = JARVIS_KERNEL


class StuckiDither(ErrorDiffusionDither):
    method = DitherMethod.STUCKI
    kernel = STUCKI_KERNEL


class BurkesDither(ErrorDiffusionDither):
    method = DitherMethod.BURKES
    kernel = BURKES_KERNEL


class SierraDither(ErrorDiffusionDither):
    method = DitherMethod.SIERRA
    kernel = SIERRA_KERNEL


class SierraLiteDither(ErrorDiffusionDither):
    method = DitherMethod.SIERRA_LITE
    kernel = SIERRA_LITE_KERNEL


class Sierra2Dither(ErrorDiffusionDither):
    method = DitherMethod.SIERRA2
    kernel = SIERRA2_KERNEL


class AtkinsonDither(ErrorDiffusionDither):
    method = DitherMethod.ATKINSON
    kernel = ATKINSON_KERNEL


class SerpentineDither(Dither):
    """Floyd-Steinberg with the scan direction flipped on odd rows."""

    method = DitherMethod.SERPENTINE

    def dither(self, pixels, width, height, colors, metric=DistanceMetric.LAB):
        for y in range(height):
            reverse = y % 2 == 1
            step = -1 if reverse else 1
            xs = range(width - 1, -1, -1) if reverse else range(width)
            for x in xs:
                i = (y * width + x) * 3
                old = (pixels[i], pixels[i + 1], pixels[i + 2])
                new = colors[nearest_index(old, colors, metric)]
                _store(pixels, i, new)
                err = (old[0] - new[0], old[1] - new[1], old[2] - new[2])
                for dx, dy, weight in FLOYD_STEINBERG_KERNEL:
                    nx = x + dx * step
                    ny = y + dy
                    if 0 <= nx < width and ny < height:
                        j = (ny * width + nx) * 3
                        pixels[j] += err[0] * weight
                        pixels[j + 1] += err[1] * weight
                        pixels[j + 2] += err[2] * weight


def hilbert_curve(order: int) -> List[Tuple[int, int]]:
    """Visit order of a ``2**order`` square Hilbert curve."""
    n = 1 << order
    points = []
    for d in range(n * n):
        x = y = 0
        t = d
        s = 1
        while s < n:
            rx = 1 & (t // 2)
            ry = 1 & (t ^ rx)
            if ry == 0:
                if rx == 1:
                    x = s - 1 - x
                    y = s - 1 - y
                x, y = y, x
            x += s * rx
            y += s * ry
            t //= 4
            s *= 2
        points.append((x, y))
    return points


def riemersma_weights(size: int = RIEMERSMA_QUEUE_SIZE) -> List[float]:
    weights = [2 ** (-(i + 1) / 3) for i in range(size)]
    total = sum(weights)
    return [w / total for w in weights]


class RiemersmaDither(Dither):
    """Error diffusion along a Hilbert curve through a weighted error history."""

    method = DitherMethod.RIEMERSMA

    def dither(self, pixels, width, height, colors, metric=DistanceMetric.LAB):
        weights = riemersma_weights()
        order = max(0, math.ceil(math.log2(max(width, height, 1))))
        queue: List[Tuple[float, float, float]] = [(0.0, 0.0, 0.0)] * RIEMERSMA_QUEUE_SIZE
        for x, y in hilbert_curve(order):
            if x >= width or y >= height:
                continue
            i = (y * width + x) * 3
            add_r = add_g = add_b = 0.0
            for (er, eg, eb), weight in zip(queue, weights):
                add_r += er * weight
                add_g += eg * weight
                add_b += eb * weight
            old = (pixels[i] + add_r, pixels[i + 1] + add_g, pixels[i + 2] + add_b)
            new = colors[nearest_index((clamp(old[0]), clamp(old[1]), clamp(old[2])), colors, metric)]
            _store(pixels, i, new)
            queue = queue[1:] + [(old[0] - new[0], old[1] - new[1], old[2] - new[2])]


class ThresholdDither(Dither):
    """Add a position-dependent offset to every channel, then snap."""

    def threshold(self, x: int, y: int) -> float:
        raise NotImplementedError

    def dither(self, pixels, width, height, colors, metric=DistanceMetric.LAB):
        for y in range(height):
            for x in range(width):
                i = (y * width + x) * 3
                t = self.threshold(x, y)
                rgb = (clamp(pixels[i] + t), clamp(pixels[i + 1] + t), clamp(pixels[i + 2] + t))
                _store(pixels, i, colors[nearest_index(rgb, colors, metric)])


class OrderedDither(ThresholdDither):
    method = DitherMethod.ORDERED

    def threshold(self, x, y):
        return (BAYER_4X4[y % 4][x % 4] / 16 - 0.5) * 64


class Ordered8Dither(ThresholdDither):
    method = DitherMethod.ORDERED8

    def threshold(self, x, y):
        return (BAYER_8X8[y % 8][x % 8] / 64 - 0.5) * 64


class BlueNoiseDither(ThresholdDither):
    method = DitherMethod.BLUE_NOISE

    def threshold(self, x, y):
        return (BLUE_NOISE_16[y % 16][x % 16] - 128) * 0.5


class PatternDither(ThresholdDither):
    method = DitherMethod.PATTERN

    def threshold(self, x, y):
        return (CLUSTER_8X8[y % 8][x % 8] - 32) * 4


class NoiseDither(ThresholdDither):
    method = DitherMethod.NOISE

    def __init__(self, seed: Optional[int] = None) -> None:
        self.rng = random.Random(seed)

    def threshold(self, x, y):
        return (self.rng.random() - 0.5) * 64


_DITHERS: Dict[DitherMethod, type] = {
    cls.method: cls
    for cls in (
        NearestDither,
        FloydSteinbergDither,
        JarvisDither,
        StuckiDither,
        BurkesDither,
        SierraDither,
        SierraLiteDither,
        Sierra2Dither,
        AtkinsonDither,
        SerpentineDither,
        RiemersmaDither,
        OrderedDither,
        Ordered8Dither,
        BlueNoiseDither,
        PatternDither,
        NoiseDither,
    )
}


def get_dither(method: DitherMethod) -> Dither:
    return _DITHERS[DitherMethod(method)]()


def dither(
    pixels: PixelBuffer,
    width: int,
    height: int,
    colors: Sequence[Color],
    method: DitherMethod = DitherMethod.FLOYD_STEINBERG,
    metric: DistanceMetric = DistanceMetric.LAB,
) -> None:
    get_dither(method).dither(pixels, width, height, colors, metric)


# --- cell-local dithering -------------------------------------------------


BlockPixels = Sequence[Tuple[float, float, float]]


class CellDither:
    """Decide ink/paper for every pixel of one 8-pixel-wide block.

    ``pixels`` holds ``8 * height`` RGB tuples in row order. ``origin`` is
    the block's top-left position on screen; tiled threshold maps are
    indexed with screen coordinates so neighboring blocks line up.
    Returns one byte per line, bit 7 = leftmost pixel, set = ink.
    """

    method: CellDitherMethod = CellDitherMethod.NONE

    def bitmap(
        self,
        pixels: BlockPixels,
        height: int,
        ink: Color,
        paper: Color,
        metric: DistanceMetric = DistanceMetric.LAB,
        origin: Tuple[int, int] = (0, 0),
    ) -> List[int]:
        raise NotImplementedError


def _use_ink(rgb: Sequence[float], ink: Color, paper: Color, metric: DistanceMetric) -> bool:
    return distance(rgb, ink, metric) < distance(rgb, paper, metric)


class CellNearestDither(CellDither):
    method = CellDitherMethod.NONE

    def bitmap(self, pixels, height, ink, paper, metric=DistanceMetric.LAB, origin=(0, 0)):
        rows = [0] * height
        for dy in range(height):
            for dx in range(8):
                if _use_ink(pixels[dy * 8 + dx], ink, paper, metric):
                    rows[dy] |= 0x80 >> dx
        return rows


class CellKernelDither(CellDither):
    kernel: Kernel = FLOYD_STEINBERG_KERNEL
    serpentine = False

    def bitmap(self, pixels, height, ink, paper, metric=DistanceMetric.LAB, origin=(0, 0)):
        local = [list(p) for p in pixels]
        rows = [0] * height
        for dy in range(height):
            reverse = self.serpentine and dy % 2 == 1
            step = -1 if reverse else 1
            for i in range(8):
                dx = 7 - i if reverse else i
                rgb = local[dy * 8 + dx]
                use_ink = _use_ink(rgb, ink, paper, metric)
                new = ink if use_ink else paper
                if use_ink:
                    rows[dy] |= 0x80 >> dx
                err = (rgb[0] - new[0], rgb[1] - new[1], rgb[2] - new[2])
                for kx, ky, weight in self.kernel:
                    nx = dx + kx * step
                    ny = dy + ky
                    if 0 <= nx < 8 and ny < height:
                        target = local[ny * 8 + nx]
                        target[0] += err[0] * weight
                        target[1] += err[1] * weight
                        target[2] += err[2] * weight
        return rows


class CellFloydSteinbergDither(CellKernelDither):
    method = CellDitherMethod.FLOYD_STEINBERG
    kernel = FLOYD_STEINBERG_KERNEL


class CellAtkinsonDither(CellKernelDither):
    method = CellDitherMethod.ATKINSON
    kernel = ATKINSON_KERNEL


class CellSierra2Dither(CellKernelDither):
    method = CellDitherMethod.SIERRA2
    kernel = SIERRA2_KERNEL


class CellSerpentineDither(CellKernelDither):
    method = CellDitherMethod.SERPENTINE
    kernel = FLOYD_STEINBERG_KERNEL
    serpentine = True


def morton_curve(height: int) -> List[Tuple[int, int]]:
    """Z-order walk over an 8-wide block of ``height`` lines."""
    points = []
    for i in range(64):
        x = y = 0
        for b in range(3):
            x |= ((i >> (2 * b)) & 1) << b
            y |= ((i >> (2 * b + 1)) & 1) << b
        if y < height:
            points.append((x, y))
    return points


class CellRiemersmaDither(CellDither):
    method = CellDitherMethod.RIEMERSMA
    history = 16

    def bitmap(self, pixels, height, ink, paper, metric=DistanceMetric.LAB, origin=(0, 0)):
        rows = [0] * height
        size = self.history
        norm = size * (size + 1) / 2
        errors = [(0.0, 0.0, 0.0)] * size
        slot = 0
        for x, y in morton_curve(height):
            base = pixels[y * 8 + x]
            acc = [0.0, 0.0, 0.0]
            for h in range(size):
                weight = (size - h) / norm
                acc[0] += errors[h][0] * weight
                acc[1] += errors[h][1] * weight
                acc[2] += errors[h][2] * weight
            rgb = (base[0] + acc[0], base[1] + acc[1], base[2] + acc[2])
            use_ink = _use_ink(rgb, ink, paper, metric)
            if use_ink:
                rows[y] |= 0x80 >> x
            new = ink if use_ink else paper
            errors[slot] = (rgb[0] - new[0], rgb[1] - new[1], rgb[2] - new[2])
            slot = (slot + 1) % size
        return rows


class CellThresholdDither(CellDither):
    """Compare pixel luminance, normalized between paper and ink, to a map."""

    def threshold(self, x: int, y: int) -> float:
        raise NotImplementedError

    def bitmap(self, pixels, height, ink, paper, metric=DistanceMetric.LAB, origin=(0, 0)):
        ink_lum = luminance(ink)
        paper_lum = luminance(paper)
        low = min(ink_lum, paper_lum)
        span = abs(ink_lum - paper_lum)
        ink_is_darker = ink_lum < paper_lum
        ox, oy = origin
        rows = [0] * height
        for dy in range(height):
            for dx in range(8):
                t = (luminance(pixels[dy * 8 + dx]) - low) / span if span > 0 else 0.5
                t = max(0.0, min(1.0, t))
                thr = self.threshold(ox + dx, oy + dy)
                use_ink = t < thr if ink_is_darker else t >= 1 - thr
                if use_ink:
                    rows[dy] |= 0x80 >> dx
        return rows


class CellOrderedDither(CellThresholdDither):
    method = CellDitherMethod.ORDERED

    def threshold(self, x, y):
        return (BAYER_4X4[y % 4][x % 4] + 0.5) / 16


class CellBlueNoiseDither(CellThresholdDither):
    method = CellDitherMethod.BLUE_NOISE

    def threshold(self, x, y):
        return BLUE_NOISE_16[y % 16][x % 16] / 255


class CellPatternDither(CellThresholdDither):
    method = CellDitherMethod.PATTERN

    def threshold(self, x, y):
        return (CLUSTER_8X8[y % 8][x % 8] + 0.5) / 64


_CELL_DITHERS: Dict[CellDitherMethod, type] = {
    cls.method: cls
    for cls in (
        CellNearestDither,
        CellFloydSteinbergDither,
        CellAtkinsonDither,
        CellSierra2Dither,
        CellSerpentineDither,
        CellRiemersmaDither,
        CellOrderedDither,
        CellBlueNoiseDither,
        CellPatternDither,
    )
}

# Cell methods that diffuse error, and the global algorithm that replaces
# them for two-color (mono) output.
CELL_DIFFUSION_GLOBAL: Dict[CellDitherMethod, DitherMethod] = {
    CellDitherMethod.FLOYD_STEINBERG: DitherMethod.FLOYD_STEINBERG,
    CellDitherMethod.ATKINSON: DitherMethod.ATKINSON,
    CellDitherMethod.SIERRA2: DitherMethod.SIERRA2,
    CellDitherMethod.SERPENTINE: DitherMethod.SERPENTINE,
    CellDitherMethod.RIEMERSMA: DitherMethod.RIEMERSMA,
}


def get_cell_dither(method: CellDitherMethod) -> CellDither:
    return _CELL_DITHERS[CellDitherMethod(method)]()
