import pytest
from PIL import Image

from zx_scr_converter.adjust import (
    Adjustments,
    apply_adjustments,
    apply_bilateral,
    apply_grayscale,
    apply_sharpening,
    auto_brightness,
    brightness_contrast_lut,
    gamma_lut,
    levels_lut,
)
from zx_scr_converter.colorspace import rgb_pixels
from zx_scr_converter.errors import ConversionError


def _gradient(width: int = 32, height: int = 8) -> Image.Image:
    image = Image.new("RGB", (width, height))
    image.putdata([((x * 8) % 256, (y * 30) % 256, (x * y) % 256) for y in range(height) for x in range(width)])
    return image


def test_neutral_adjustments_keep_pixels() -> None:
    image = _gradient()
    result = apply_adjustments(image, Adjustments())
    assert rgb_pixels(result) == rgb_pixels(image)


def test_neutral_luts_are_identity() -> None:
    identity = list(range(256))
    assert gamma_lut(1.0) == identity
    assert levels_lut(0, 255) == identity
    assert brightness_contrast_lut(0, 0) == identity


def test_levels_lut_stretches_range() -> None:
    lut = levels_lut(50, 200)
    assert lut[50] == 0
    assert lut[200] == 255
    assert lut[125] == 128


def test_brightness_shifts_values() -> None:
    lut = brightness_contrast_lut(20, 0)
    assert lut[100] == 120
    assert lut[250] == 255


def test_grayscale_equalizes_channels() -> None:
    result = apply_grayscale(_gradient())
    assert all(r == g == b for r, g, b in rgb_pixels(result))


def test_invalid_adjustments_raise() -> None:
    with pytest.raises(ConversionError):
        Adjustments(gamma=0).validate()
    with pytest.raises(ConversionError):
        Adjustments(black_point=200, white_point=100).validate()
    with pytest.raises(ConversionError):
        apply_adjustments(_gradient(), Adjustments(contrast=150))


def test_auto_brightness_direction() -> None:
    dark = Image.new("RGB", (8, 8), (20, 20, 20))
    light = Image.new("RGB", (8, 8), (240, 240, 240))
    assert auto_brightness(dark) > 0
    assert auto_brightness(light) < 0


def test_adjustment_ranges_are_checked() -> None:
    for bad in (
        Adjustments(brightness=101),
        Adjustments(brightness=-101),
        Adjustments(saturation=-150),
        Adjustments(balance_r=101),
        Adjustments(balance_g=-101),
        Adjustments(balance_b=200),
        Adjustments(sharpness=101),
        Adjustments(smoothing=-1),
    ):
        with pytest.raises(ConversionError):
            bad.validate()
    Adjustments(brightness=-100, saturation=100, balance_r=100, balance_b=-100, sharpness=100).validate()


def _dot(center: int, around: int) -> Image.Image:
    image = Image.new("RGB", (3, 3), (around, around, around))
    image.putpixel((1, 1), (center, center, center))
    return image


def test_sharpening_matches_laplacian() -> None:
    image = _dot(100, 80)
    assert apply_sharpening(image, 0) is image
    # 5 * 100 - 4 * 80
    assert apply_sharpening(image, 100).getpixel((1, 1)) == (180, 180, 180)
    assert apply_sharpening(image, 50).getpixel((1, 1)) == (140, 140, 140)


def test_bilateral_neutral_and_flat() -> None:
    image = _gradient()
    assert apply_bilateral(image, 0) is image

    flat = Image.new("RGB", (8, 8), (90, 120, 30))
    assert set(rgb_pixels(apply_bilateral(flat, 60))) == {(90, 120, 30)}


def test_bilateral_keeps_edges_and_smooths_noise() -> None:
    width, height = 16, 8
    image = Image.new("RGB", (width, height))
    pixels = []
    for y in range(height):
        for x in range(width):
            noise = 20 if (x + y) % 2 else 0
            value = noise if x < 8 else 255 - noise
            pixels.append((value, value, value))
    image.putdata(pixels)

    result = rgb_pixels(apply_bilateral(image, 50))
    left = [result[y * width + x][0] for y in range(height) for x in range(8)]
    right = [result[y * width + x][0] for y in range(height) for x in range(8, width)]
    assert max(left) < 30
    assert min(right) > 225
    assert max(left) - min(left) < 10
    assert max(right) - min(right) < 10
