"""Render ZX Spectrum screen data to RGB images."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from PIL import Image

from .border import draw_border, screen_box
from .capabilities import ReferenceOverlay, TransparencyMask
from .colorspace import rgb_pixels
from .errors import ConversionError
from .formats import (
    BITMAP_SIZE,
    COLUMNS,
    PATTERNS_53C,
    SCR_SIZE,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    ScreenFormat,
    attribute_offset,
    bitmap_offset,
    check_size,
    get_descriptor,
)
from .palette import RGB3_COLORS, Color, Palette
from .sca import frame_screen, read_sca
from .specscii import decode_to_scr
from .ulaplus import palette_colors, palette_index

logger = logging.getLogger(__name__)

CHECKER_CELL = 4
CHECKER_LIGHT = 68
CHECKER_DARK = 34


class GigascreenMode(str, Enum):
    AVERAGE = "average"
    FRAME_0 = "0"
    FRAME_1 = "1"


@dataclass(frozen=True)
class RenderOptions:
    flash_phase: bool = False
    show_attributes: bool = True
    pattern: str = "checker"  # 53c cell bitmap
    gigascreen: GigascreenMode = GigascreenMode.AVERAGE
    rgb3_plane: Optional[str] = None  # r, g, b or None for all planes
    mono_ink: Optional[Color] = None  # default: bright black
    mono_paper: Optional[Color] = None  # default: bright white
    font: Optional[bytes] = None  # 768-byte SPECSCII font
    frame: int = 0  # SCA frame
    show_border: bool = True  # BSC/BMC4


AttrColors = Callable[[int], Tuple[Color, Color]]


def _attribute_colors(palette: Palette, options: RenderOptions) -> AttrColors:
    if not options.show_attributes:
        fixed = (palette.regular[7], palette.regular[0])
        return lambda attr: fixed
    return lambda attr: palette.attribute_colors(attr, options.flash_phase)


def _render(
    bitmap: bytes,
    attr_at: Callable[[int, int], int],
    colors: AttrColors,
    height: int = SCREEN_HEIGHT,
) -> Image.Image:
    """Draw a bitmap where ``attr_at(y, col)`` gives each byte's attribute."""
    pixels: List[Color] = []
    for y in range(height):
        for col in range(COLUMNS):
            value = bitmap[bitmap_offset(y, col)]
            ink, paper = colors(attr_at(y, col))
            for bit in range(8):
                pixels.append(ink if value & (0x80 >> bit) else paper)
    image = Image.new("RGB", (SCREEN_WIDTH, height))
    image.putdata(pixels)
    return image


def render_scr(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    return render_attributes(data, ScreenFormat.SCR, palette, options)


def render_attributes(
    data: bytes, fmt: ScreenFormat, palette: Palette, options: RenderOptions = RenderOptions()
) -> Image.Image:
    """SCR, IFL, MLT and BMC4 screen areas."""
    def attr_at(y, col):
        return data[attribute_offset(fmt, y, col)]

    return _render(data, attr_at, _attribute_colors(palette, options))


def render_ulaplus(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    colors64 = palette_colors(data[SCR_SIZE:SCR_SIZE + 64])

    def colors(attr):
        if not options.show_attributes:
            return palette.regular[7], palette.regular[0]
        ink, paper = palette_index(attr)
        return colors64[ink], colors64[paper]

    def attr_at(y, col):
        return data[attribute_offset(ScreenFormat.SCR, y, col)]

    return _render(data, attr_at, colors)


def render_53c(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    try:
        pattern = PATTERNS_53C[options.pattern]
    except KeyError:
        raise ConversionError(f"Unknown 53c pattern {options.pattern!r}") from None
    bitmap = bytearray(BITMAP_SIZE)
    for y in range(SCREEN_HEIGHT):
        start = bitmap_offset(y)
        bitmap[start:start + COLUMNS] = bytes([pattern[y % 8]]) * COLUMNS

    def attr_at(y, col):
        return data[attribute_offset(ScreenFormat.ATTR_53C, y, col)]

    return _render(bytes(bitmap), attr_at, _attribute_colors(palette, options))


def render_mono(
    data: bytes, fmt: ScreenFormat, palette: Palette, options: RenderOptions = RenderOptions()
) -> Image.Image:
    height = get_descriptor(fmt).bitmap_height
    ink = options.mono_ink or palette.black
    paper = options.mono_paper or palette.white
    padded = bytes(data).ljust(BITMAP_SIZE, b"\x00")
    return _render(padded, lambda y, col: 0, lambda attr: (ink, paper), height)


def render_rgb3(data: bytes, options: RenderOptions = RenderOptions()) -> Image.Image:
    """Union of the R, G and B planes, or a single plane in its own color."""
    planes = (0, BITMAP_SIZE, BITMAP_SIZE * 2)
    only = None
    if options.rgb3_plane is not None:
        try:
            only = "rgb".index(options.rgb3_plane.lower())
        except ValueError:
            raise ConversionError(f"Unknown RGB3 plane {options.rgb3_plane!r}") from None
    pixels: List[Color] = []
    for y in range(SCREEN_HEIGHT):
        for col in range(COLUMNS):
            offset = bitmap_offset(y, col)
            values = [data[p + offset] for p in planes]
            for bit in range(8):
                mask = 0x80 >> bit
                index = 0
                for plane, value in enumerate(values):
                    if value & mask and (only is None or only == plane):
                        index |= 4 >> plane
                pixels.append(RGB3_COLORS[index])
    image = Image.new("RGB", (SCREEN_WIDTH, SCREEN_HEIGHT))
    image.putdata(pixels)
    return image


def render_gigascreen(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    """Show one frame or the flicker average of both.

    The average must round half up per channel, ``(a + b + 1) // 2``, which
    ``Image.blend`` (truncating) does not do.
    """
    mode = GigascreenMode(options.gigascreen)
    first = render_scr(data[:SCR_SIZE], palette, options)
    if mode == GigascreenMode.FRAME_0:
        return first
    second = render_scr(data[SCR_SIZE:SCR_SIZE * 2], palette, options)
    if mode == GigascreenMode.FRAME_1:
        return second
    blended = Image.new("RGB", first.size)
    blended.putdata(
        [
            ((a[0] + b[0] + 1) // 2, (a[1] + b[1] + 1) // 2, (a[2] + b[2] + 1) // 2)
            for a, b in zip(rgb_pixels(first), rgb_pixels(second))
        ]
    )
    return blended


def _with_border(screen: Image.Image, border: bytes, palette: Palette, options: RenderOptions) -> Image.Image:
    if not options.show_border:
        return screen
    descriptor = get_descriptor(ScreenFormat.BSC)
    frame = Image.new("RGB", (descriptor.frame_width, descriptor.frame_height))
    draw_border(frame, border, palette)
    frame.paste(screen, screen_box()[:2])
    return frame


def render_bsc(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    screen = render_scr(data[:SCR_SIZE], palette, options)
    return _with_border(screen, data[SCR_SIZE:], palette, options)


def render_bmc4(data: bytes, palette: Palette, options: RenderOptions = RenderOptions()) -> Image.Image:
    screen = render_attributes(data, ScreenFormat.BMC4, palette, options)
    offset = get_descriptor(ScreenFormat.BMC4).border_offset
    return _with_border(screen, data[offset:], palette, options)


def decode_sca_frame(
    data: bytes, index: int, palette: Palette, options: RenderOptions = RenderOptions()
) -> Image.Image:
    animation = read_sca(data)
    return render_scr(frame_screen(animation, index), palette, options)


def apply_mask(image: Image.Image, mask: TransparencyMask) -> Image.Image:
    """Replace transparent screen pixels by a gray checkerboard."""
    result = image.copy()
    pixels = result.load()
    # Masks use screen coordinates; bordered frames hold the screen at an offset.
    if image.size == (SCREEN_WIDTH, SCREEN_HEIGHT):
        ox = oy = 0
    else:
        ox, oy = screen_box()[:2]
    height = min(SCREEN_HEIGHT, image.height - oy)
    for y in range(height):
        for x in range(SCREEN_WIDTH):
            if mask.is_transparent(x, y):
                checker = ((x // CHECKER_CELL) + (y // CHECKER_CELL)) % 2 == 0
                gray = CHECKER_LIGHT if checker else CHECKER_DARK
                pixels[ox + x, oy + y] = (gray, gray, gray)
    return result


def apply_overlay(image: Image.Image, overlay: ReferenceOverlay) -> Image.Image:
    reference = overlay.overlay_image().convert("RGB")
    if reference.size != image.size:
        reference = reference.resize(image.size, Image.LANCZOS)
    return Image.blend(image, reference, overlay.opacity)


def decode(
    data: bytes,
    fmt: ScreenFormat,
    palette: Palette,
    *,
    options: RenderOptions = RenderOptions(),
    mask: Optional[TransparencyMask] = None,
    overlay: Optional[ReferenceOverlay] = None,
) -> Image.Image:
    """Render ``data`` of format ``fmt`` to an RGB image.

    Bordered formats (BSC, BMC4) produce a 384x304 frame, mono 2/3 and 1/3
    screens are 128 and 64 lines tall, everything else is 256x192.
    """
    fmt = ScreenFormat(fmt)
    if fmt not in (ScreenFormat.SPECSCII, ScreenFormat.SCA):
        check_size(data, fmt)
    logger.debug("decoding %d bytes as %s", len(data), fmt.value)

    if fmt == ScreenFormat.SCR:
        image = render_scr(data, palette, options)
    elif fmt in (ScreenFormat.IFL, ScreenFormat.MLT):
        image = render_attributes(data, fmt, palette, options)
    elif fmt == ScreenFormat.SCR_ULAPLUS:
        image = render_ulaplus(data, palette, options)
    elif fmt == ScreenFormat.ATTR_53C:
        image = render_53c(data, palette, options)
    elif fmt == ScreenFormat.BSC:
        image = render_bsc(data, palette, options)
    elif fmt == ScreenFormat.BMC4:
        image = render_bmc4(data, palette, options)
    elif fmt == ScreenFormat.RGB3:
        image = render_rgb3(data, options)
    elif fmt == ScreenFormat.GIGASCREEN:
        image = render_gigascreen(data, palette, options)
    elif fmt in (ScreenFormat.MONO_FULL, ScreenFormat.MONO_2_3, ScreenFormat.MONO_1_3):
        image = render_mono(data, fmt, palette, options)
    elif fmt == ScreenFormat.SPECSCII:
        image = render_scr(decode_to_scr(data, options.font), palette, options)
    elif fmt == ScreenFormat.SCA:
        image = decode_sca_frame(data, options.frame, palette, options)
    else:  # pragma: no cover
        raise ConversionError(f"Unsupported format: {fmt}")

    if mask is not None:
        image = apply_mask(image, mask)
    if overlay is not None:
        image = apply_overlay(image, overlay)
    return image
