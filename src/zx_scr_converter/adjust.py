"""Image adjustments applied before quantization.

Every stage takes and returns an RGB :class:`PIL.Image.Image`, is a no-op at
its neutral value, and clamps to 0..255 after it runs. The order used by
:func:`apply_adjustments` matters:

    grayscale | (saturation, color balance)
    -> gamma -> levels -> brightness/contrast -> smoothing -> sharpening
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from PIL import Image, ImageEnhance, ImageFilter, ImageStat

from .colorspace import clamp, rgb_pixels
from .errors import ConversionError

SHARPEN_KERNEL = ImageFilter.Kernel((3, 3), [0, -1, 0, -1, 5, -1, 0, -1, 0], scale=1)


@dataclass(frozen=True)
class Adjustments:
    """Adjustment parameters; the defaults leave the image untouched."""

    brightness: int = 0  # -100..100
    contrast: int = 0  # -100..100
    saturation: int = 0  # -100..100
    gamma: float = 1.0  # > 0
    grayscale: bool = False
    sharpness: int = 0  # 0..100
    smoothing: int = 0  # 0..100
    black_point: int = 0
    white_point: int = 255
    balance_r: int = 0  # -100..100
    balance_g: int = 0
    balance_b: int = 0

    def validate(self) -> None:
        if self.gamma <= 0:
            raise ConversionError("Gamma must be greater than 0")
        if not (0 <= self.black_point < self.white_point <= 255):
            raise ConversionError("Levels need 0 <= black point < white point <= 255")
        for label, value in (
            ("Brightness", self.brightness),
            ("Contrast", self.contrast),
            ("Saturation", self.saturation),
            ("Red balance", self.balance_r),
            ("Green balance", self.balance_g),
            ("Blue balance", self.balance_b),
        ):
            if not (-100 <= value <= 100):
                raise ConversionError(f"{label} must be between -100 and 100")
        if not (0 <= self.sharpness <= 100 and 0 <= self.smoothing <= 100):
            raise ConversionError("Sharpness and smoothing must be between 0 and 100")


def _apply_lut(image: Image.Image, lut: List[int]) -> Image.Image:
    return image.point(lut * len(image.getbands()))


def apply_grayscale(image: Image.Image) -> Image.Image:
    return image.convert("L").convert("RGB")


def apply_saturation(image: Image.Image, saturation: int) -> Image.Image:
    if saturation == 0:
        return image
    return ImageEnhance.Color(image).enhance((saturation + 100) / 100)


def apply_color_balance(image: Image.Image, r: int, g: int, b: int) -> Image.Image:
    if r == 0 and g == 0 and b == 0:
        return image
    lut: List[int] = []
    for adjust in (r, g, b):
        offset = adjust * 2.55
        lut.extend(clamp(value + offset) for value in range(256))
    return image.point(lut)


def gamma_lut(gamma: float) -> List[int]:
    inv = 1.0 / gamma
    return [clamp(255 * (value / 255.0) ** inv) for value in range(256)]


def apply_gamma(image: Image.Image, gamma: float) -> Image.Image:
    if gamma == 1.0:
        return image
    if gamma <= 0:
        raise ConversionError("Gamma must be greater than 0")
    return _apply_lut(image, gamma_lut(gamma))


def levels_lut(black_point: int, white_point: int) -> List[int]:
    span = white_point - black_point
    lut = []
    for value in range(256):
        if value <= black_point:
            lut.append(0)
        elif value >= white_point:
            lut.append(255)
        else:
            lut.append(clamp((value - black_point) / span * 255))
    return lut


def apply_levels(image: Image.Image, black_point: int, white_point: int) -> Image.Image:
    if black_point <= 0 and white_point >= 255:
        return image
    if black_point >= white_point:
        raise ConversionError("Black point must be below white point")
    return _apply_lut(image, levels_lut(black_point, white_point))


def brightness_contrast_lut(brightness: int, contrast: int) -> List[int]:
    factor = (259 * (contrast + 255)) / (255 * (259 - contrast))
    return [clamp(factor * (value - 128 + brightness) + 128) for value in range(256)]


def apply_brightness_contrast(image: Image.Image, brightness: int, contrast: int) -> Image.Image:
    if brightness == 0 and contrast == 0:
        return image
    return _apply_lut(image, brightness_contrast_lut(brightness, contrast))


def apply_sharpening(image: Image.Image, amount: int) -> Image.Image:
    """Blend the image with a 3x3 Laplacian sharpened copy by ``amount``%.

    Pillow leaves the outermost rows and columns of a kernel filter as they
    are, so only interior pixels change.
    """
    if amount <= 0:
        return image
    image = image.convert("RGB")
    sharp = image.filter(SHARPEN_KERNEL)
    return Image.blend(image, sharp, min(amount, 100) / 100)


def apply_bilateral(image: Image.Image, amount: int) -> Image.Image:
    """Edge-preserving smoothing; ``amount`` (0-100) scales both sigmas."""
    if amount <= 0:
        return image
    spatial_sigma = 2 + (amount / 100) * 4
    range_sigma = 20 + (amount / 100) * 60
    radius = int(math.ceil(spatial_sigma * 2))

    spatial = {}
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            spatial[(dx, dy)] = math.exp(-(dx * dx + dy * dy) / (2 * spatial_sigma * spatial_sigma))
    # 441 == int(sqrt(3 * 255**2))
    range_weights = [math.exp(-(i * i) / (2 * range_sigma * range_sigma)) for i in range(442)]

    width, height = image.size
    src = rgb_pixels(image)
    out = []
    for y in range(height):
        y0 = max(0, y - radius)
        y1 = min(height - 1, y + radius)
        for x in range(width):
            x0 = max(0, x - radius)
            x1 = min(width - 1, x + radius)
            cr, cg, cb = src[y * width + x][:3]
            sum_r = sum_g = sum_b = weight_sum = 0.0
            for ny in range(y0, y1 + 1):
                row = ny * width
                dy = ny - y
                for nx in range(x0, x1 + 1):
                    nr, ng, nb = src[row + nx][:3]
                    dr = nr - cr
                    dg = ng - cg
                    db = nb - cb
                    dist = min(int(math.sqrt(dr * dr + dg * dg + db * db)), 441)
                    weight = spatial[(nx - x, dy)] * range_weights[dist]
                    sum_r += nr * weight
                    sum_g += ng * weight
                    sum_b += nb * weight
                    weight_sum += weight
            out.append((clamp(sum_r / weight_sum), clamp(sum_g / weight_sum), clamp(sum_b / weight_sum)))
    result = Image.new("RGB", image.size)
    result.putdata(out)
    return result


def apply_adjustments(image: Image.Image, adjustments: Adjustments) -> Image.Image:
    """Run the whole pipeline in its fixed order."""
    adjustments.validate()
    image = image.convert("RGB")
    if adjustments.grayscale:
        image = apply_grayscale(image)
    else:
        image = apply_saturation(image, adjustments.saturation)
        image = apply_color_balance(
            image, adjustments.balance_r, adjustments.balance_g, adjustments.balance_b
        )
    image = apply_gamma(image, adjustments.gamma)
    image = apply_levels(image, adjustments.black_point, adjustments.white_point)
    image = apply_brightness_contrast(image, adjustments.brightness, adjustments.contrast)
    image = apply_bilateral(image, adjustments.smoothing)
    image = apply_sharpening(image, adjustments.sharpness)
    return image


def auto_brightness(image: Image.Image) -> int:
    """Suggest a brightness value that pulls the mean luma towards 128."""
    mean = ImageStat.Stat(image.convert("L")).mean[0]
    return max(-100, min(100, int(round((128 - mean) * 0.5))))
