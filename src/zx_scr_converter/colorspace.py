"""Color conversion and distance metrics."""

from __future__ import annotations

import math
from enum import Enum
from functools import lru_cache
from typing import List, Sequence, Tuple

from .palette import Color

Lab = Tuple[float, float, float]
RGBf = Tuple[float, float, float]

# D65 reference white (X, Y, Z scaled to 100)
REF_WHITE = (95.047, 100.000, 108.883)
LAB_EPSILON = 0.008856
LAB_KAPPA = 903.3

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def rgb_pixels(image) -> List[Color]:
    """Row-major RGB tuples of a Pillow image."""
    data = image.convert("RGB").tobytes()
    return list(zip(data[0::3], data[1::3], data[2::3]))


class DistanceMetric(str, Enum):
    WEIGHTED_RGB = "rgb"
    LAB = "lab"


def clamp(value: float) -> int:
    return max(0, min(255, int(round(value))))


def luminance(rgb: Sequence[float]) -> float:
    wr, wg, wb = LUMA_WEIGHTS
    return rgb[0] * wr + rgb[1] * wg + rgb[2] * wb


def srgb_to_linear(c: float) -> float:
    c = c / 255.0
    if c <= 0.04045:
        return c / 12.92
    return ((c + 0.055) / 1.055) ** 2.4


def rgb_to_xyz(rgb: Sequence[float]) -> Tuple[float, float, float]:
    r = srgb_to_linear(rgb[0])
    g = srgb_to_linear(rgb[1])
    b = srgb_to_linear(rgb[2])
    x = r * 0.4124564 + g * 0.3575761 + b * 0.1804375
    y = r * 0.2126729 + g * 0.7151522 + b * 0.0721750
    z = r * 0.0193339 + g * 0.1191920 + b * 0.9503041
    return x * 100, y * 100, z * 100


def _lab_f(t: float) -> float:
    if t > LAB_EPSILON:
        return t ** (1.0 / 3.0)
    return (LAB_KAPPA * t + 16) / 116


def xyz_to_lab(xyz: Sequence[float]) -> Lab:
    fx = _lab_f(xyz[0] / REF_WHITE[0])
    fy = _lab_f(xyz[1] / REF_WHITE[1])
    fz = _lab_f(xyz[2] / REF_WHITE[2])
    return 116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz)


def to_lab(rgb: Sequence[float]) -> Lab:
    """sRGB (0-255) to CIE Lab under D65."""
    return xyz_to_lab(rgb_to_xyz(rgb))


@lru_cache(maxsize=None)
def _lab_for_key(r: int, g: int, b: int) -> Lab:
    return to_lab((r, g, b))


def to_lab_cached(rgb: Sequence[float]) -> Lab:
    """Memoized :func:`to_lab` keyed by the integer RGB value.

    Fractional and out-of-gamut samples (error diffusion accumulates both)
    are truncated, not rounded, into 0..255 before the lookup. The downward
    bias is intentional and matches converters that truncate with integer
    bit operations.
    """
    return _lab_for_key(
        max(0, min(255, int(rgb[0]))),
        max(0, min(255, int(rgb[1]))),
        max(0, min(255, int(rgb[2]))),
    )


def weighted_rgb_distance(a: Sequence[float], b: Sequence[float]) -> float:
    r_mean = (a[0] + b[0]) / 2
    dr = a[0] - b[0]
    dg = a[1] - b[1]
    db = a[2] - b[2]
    r_weight = 2 + r_mean / 256
    b_weight = 2 + (255 - r_mean) / 256
    return math.sqrt(r_weight * dr * dr + 4 * dg * dg + b_weight * db * db)


def lab_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """CIE76 delta E."""
    l1, a1, b1 = to_lab_cached(a)
    l2, a2, b2 = to_lab_cached(b)
    return math.sqrt((l1 - l2) ** 2 + (a1 - a2) ** 2 + (b1 - b2) ** 2)


def distance(a: Sequence[float], b: Sequence[float], metric: DistanceMetric = DistanceMetric.LAB) -> float:
    if metric == DistanceMetric.LAB:
        return lab_distance(a, b)
    return weighted_rgb_distance(a, b)


def nearest_index(
    rgb: Sequence[float],
    colors: Sequence[Color],
    metric: DistanceMetric = DistanceMetric.LAB,
) -> int:
    """
    Return the index of the color closest to ``rgb``.
    Only a strictly smaller distance replaces the current best, so the first
    of several equally close colors wins.
    """
    best_idx = 0
    best_dist = float("inf")
    if metric == DistanceMetric.LAB:
        l0, a0, b0 = to_lab_cached(rgb)
        for i, color in enumerate(colors):
            l1, a1, b1 = to_lab_cached(color)
            dist = math.sqrt((l0 - l1) ** 2 + (a0 - a1) ** 2 + (b0 - b1) ** 2)
            if dist < best_dist:
                best_idx = i
                best_dist = dist
        return best_idx
    for i, color in enumerate(colors):
        dist = weighted_rgb_distance(rgb, color)
        if dist < best_dist:
            best_idx = i
            best_dist = dist
    return best_idx
