import pytest
from PIL import Image

from zx_scr_converter.border import uniform_border
from zx_scr_converter.colorspace import DistanceMetric, rgb_pixels
from zx_scr_converter.decoder import decode
from zx_scr_converter.dither import CellDitherMethod, DitherMethod
from zx_scr_converter.encoder import (
    ConversionRequest,
    FitMode,
    alpha_mask,
    crop_image,
    detect_screen_region,
    encode,
    encode_animation,
    fit_image,
    prepare_image,
)
from zx_scr_converter.errors import ConversionError
from zx_scr_converter.formats import ScreenFormat, bitmap_offset
from zx_scr_converter.palette import DEFAULT_PALETTE
from zx_scr_converter.sca import read_sca

REGULAR = DEFAULT_PALETTE.regular


def _two_color_image(block_height: int) -> Image.Image:
    """Checkerboard of two regular colors per 8 x ``block_height`` block."""
    pixels = []
    for y in range(192):
        for x in range(256):
            k = x // 8 + y // block_height
            ink = REGULAR[k % 8]
            paper = REGULAR[(k + 3) % 8]
            pixels.append(ink if (x + y) % 2 else paper)
    image = Image.new("RGB", (256, 192))
    image.putdata(pixels)
    return image


def _gradient(width: int = 64, height: int = 48) -> Image.Image:
    image = Image.new("RGB", (width, height))
    image.putdata([(x * 4, y * 5, (x + y) * 2) for y in range(height) for x in range(width)])
    return image


@pytest.mark.parametrize(
    "fmt,size",
    [
        (ScreenFormat.SCR, 6912),
        (ScreenFormat.SCR_ULAPLUS, 6976),
        (ScreenFormat.ATTR_53C, 768),
        (ScreenFormat.BSC, 11136),
        (ScreenFormat.IFL, 9216),
        (ScreenFormat.BMC4, 11904),
        (ScreenFormat.MLT, 12288),
        (ScreenFormat.RGB3, 18432),
        (ScreenFormat.GIGASCREEN, 13824),
        (ScreenFormat.MONO_FULL, 6144),
        (ScreenFormat.MONO_2_3, 4096),
        (ScreenFormat.MONO_1_3, 2048),
        (ScreenFormat.SPECSCII, 768),
        (ScreenFormat.SCA, 6927),
    ],
)
def test_encoded_sizes(fmt: ScreenFormat, size: int) -> None:
    request = ConversionRequest(image=_gradient(), format=fmt, dither=DitherMethod.ORDERED)
    assert len(encode(request)) == size


@pytest.mark.parametrize(
    "fmt,block_height",
    [(ScreenFormat.SCR, 8), (ScreenFormat.IFL, 2), (ScreenFormat.MLT, 1)],
)
def test_expressible_images_round_trip(fmt: ScreenFormat, block_height: int) -> None:
    image = _two_color_image(block_height)
    data = encode(ConversionRequest(image=image, format=fmt))
    decoded = decode(data, fmt, DEFAULT_PALETTE)
    assert rgb_pixels(decoded) == rgb_pixels(image)


def test_mono_round_trip() -> None:
    image = Image.new("RGB", (256, 192))
    image.putdata(
        [(0, 0, 0) if (x // 3 + y // 5) % 2 else (255, 255, 255) for y in range(192) for x in range(256)]
    )
    for fmt, height in ((ScreenFormat.MONO_FULL, 192), (ScreenFormat.MONO_2_3, 128)):
        data = encode(ConversionRequest(image=image, format=fmt, dither=DitherMethod.NONE))
        decoded = decode(data, fmt, DEFAULT_PALETTE)
        assert decoded.size == (256, height)
        assert rgb_pixels(decoded) == rgb_pixels(image.crop((0, 0, 256, height)))


def test_uniform_frame_gives_uniform_bsc_border() -> None:
    frame = Image.new("RGB", (384, 304), REGULAR[1])
    data = encode(ConversionRequest(image=frame, format=ScreenFormat.BSC))
    assert data[6912:] == uniform_border(1)
    assert data[6144:6912] == bytes([0x09]) * 768


def test_cell_dither_path() -> None:
    for method in (CellDitherMethod.ORDERED, CellDitherMethod.FLOYD_STEINBERG):
        request = ConversionRequest(image=_gradient(), cell_dither=method, metric=DistanceMetric.WEIGHTED_RGB)
        assert len(encode(request)) == 6912
    request = ConversionRequest(
        image=_gradient(), format=ScreenFormat.MONO_1_3, cell_dither=CellDitherMethod.ATKINSON
    )
    assert len(encode(request)) == 2048


def test_unknown_53c_pattern() -> None:
    with pytest.raises(ConversionError):
        encode(ConversionRequest(image=_gradient(), format=ScreenFormat.ATTR_53C, pattern="zigzag"))


def test_fit_modes() -> None:
    red = Image.new("RGB", (100, 50), (255, 0, 0))
    fitted = fit_image(red, (256, 192), FitMode.FIT)
    assert fitted.size == (256, 192)
    assert fitted.getpixel((0, 0)) == (0, 0, 0, 255)
    assert fitted.getpixel((128, 96)) == (255, 0, 0, 255)

    stretched = fit_image(red, (256, 192), FitMode.STRETCH)
    assert stretched.getpixel((0, 0)) == (255, 0, 0, 255)

    filled = fit_image(red, (256, 192), FitMode.FILL)
    assert filled.getpixel((0, 0)) == (255, 0, 0, 255)


def test_crop_and_screen_region() -> None:
    image = _gradient(384, 304)
    assert detect_screen_region(image) == (64, 64, 256, 192)
    assert detect_screen_region(_gradient(100, 80)) == (0, 0, 100, 80)
    assert detect_screen_region(_gradient(300, 200)) == (22, 4, 256, 192)
    assert crop_image(image, (64, 64, 256, 192)).size == (256, 192)
    with pytest.raises(ConversionError):
        crop_image(image, (300, 0, 100, 10))
    with pytest.raises(ConversionError):
        crop_image(image, (0, 0, 0, 10))


def test_prepare_image_applies_crop_then_fit() -> None:
    image = Image.new("RGB", (512, 192), (0, 0, 255))
    image.paste((255, 255, 0), (0, 0, 256, 192))
    prepared = prepare_image(ConversionRequest(image=image, crop=(0, 0, 256, 192)))
    assert prepared.mode == "RGB"
    assert prepared.size == (256, 192)
    assert prepared.getpixel((128, 96)) == (255, 255, 0)


def test_alpha_mask_leaves_transparent_pixels_as_paper() -> None:
    image = Image.new("RGBA", (256, 192), (255, 255, 255, 255))
    image.paste((255, 255, 255, 0), (0, 0, 8, 192))
    request = ConversionRequest(image=image, format=ScreenFormat.MONO_FULL, dither=DitherMethod.NONE)
    mask = alpha_mask(request)
    assert mask is not None
    assert mask.is_transparent(0, 0)
    assert not mask.is_transparent(8, 0)
    assert alpha_mask(ConversionRequest(image=image.convert("RGB"))) is None

    black = Image.new("RGBA", (256, 192), (0, 0, 0, 255))
    black.paste((0, 0, 0, 0), (0, 0, 8, 192))
    data = encode(ConversionRequest(image=black, format=ScreenFormat.MONO_FULL, dither=DitherMethod.NONE), mask=mask)
    assert data[bitmap_offset(0, 0)] == 0x00
    assert data[bitmap_offset(0, 1)] == 0xFF


def test_encode_animation() -> None:
    requests = [ConversionRequest(image=_gradient(), dither=DitherMethod.NONE) for _ in range(2)]
    animation = read_sca(encode_animation(requests, [3, 7], border=2))
    assert animation.frame_count == 2
    assert animation.delays == (3, 7)
    assert animation.header.border == 2
