"""Image to ZX Spectrum screen encoder.

:func:`encode` runs the whole conversion for a :class:`ConversionRequest`:
crop and fit the source, apply adjustments, pick two colors per attribute
block, dither and write the bytes in the target format's layout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image

from .adjust import Adjustments, apply_adjustments
from .blocks import (
    BlockChoice,
    BlockPixel,
    mono_choice,
    select_block_colors,
    select_pattern_colors,
    select_ulaplus_colors,
)
from .border import encode_border, screen_box
from .capabilities import AlphaMask, TransparencyMask
from .colorspace import DistanceMetric, clamp, nearest_index, rgb_pixels
from .decoder import render_scr
from .dither import (
    CELL_DIFFUSION_GLOBAL,
    CellDitherMethod,
    DitherMethod,
    dither,
    get_cell_dither,
    image_to_buffer,
)
from .errors import ConversionError
from .formats import (
    ATTR_SIZE,
    BITMAP_SIZE,
    COLUMNS,
    MONO_FORMATS,
    PATTERNS_53C,
    SCR_SIZE,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    ScreenFormat,
    attribute_offset,
    bitmap_offset,
    get_descriptor,
)
from .palette import DEFAULT_PALETTE, RGB3_COLORS, Color, Palette
from .sca import build_sca
from .specscii import encode_blocks
from .ulaplus import build_palette, palette_colors

logger = logging.getLogger(__name__)

RGB3_PLANE_OFFSETS = (0, BITMAP_SIZE, BITMAP_SIZE * 2)  # R, G, B

DEFAULT_SCA_DELAY = 5


class FitMode(str, Enum):
    STRETCH = "stretch"
    FIT = "fit"
    FILL = "fill"
    FIT_WIDTH = "fit-width"
    FIT_HEIGHT = "fit-height"


@dataclass(frozen=True)
class ConversionRequest:
    image: Image.Image
    format: ScreenFormat = ScreenFormat.SCR
    palette: Palette = DEFAULT_PALETTE
    dither: DitherMethod = DitherMethod.FLOYD_STEINBERG
    cell_dither: Optional[CellDitherMethod] = None  # set = per-block dithering
    metric: DistanceMetric = DistanceMetric.LAB
    fit: FitMode = FitMode.FIT
    crop: Optional[Tuple[int, int, int, int]] = None  # x, y, width, height
    adjustments: Adjustments = field(default_factory=Adjustments)
    pattern: str = "checker"  # 53c only


def target_size(fmt: ScreenFormat) -> Tuple[int, int]:
    descriptor = get_descriptor(fmt)
    return descriptor.frame_width, descriptor.frame_height


def detect_screen_region(image: Image.Image) -> Tuple[int, int, int, int]:
    """Guess where a 256x192 screen sits inside an emulator screenshot.

    Returns ``(x, y, width, height)``. Known bordered sizes map to fixed
    offsets, other large images are center-cropped and small ones are used
    whole.
    """
    width, height = image.size
    known = {
        (320, 240): (32, 24),
        (352, 296): (48, 52),
        (384, 304): (64, 64),
        (384, 288): (64, 48),
    }
    if (width, height) in known:
        x, y = known[(width, height)]
        return x, y, SCREEN_WIDTH, SCREEN_HEIGHT
    if width >= SCREEN_WIDTH and height >= SCREEN_HEIGHT:
        return (width - SCREEN_WIDTH) // 2, (height - SCREEN_HEIGHT) // 2, SCREEN_WIDTH, SCREEN_HEIGHT
    return 0, 0, width, height


def crop_image(image: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
    x, y, width, height = box
    if width <= 0 or height <= 0:
        raise ConversionError("Crop width and height must be positive")
    if x < 0 or y < 0 or x + width > image.width or y + height > image.height:
        raise ConversionError(
            f"Crop box {box} exceeds the {image.width}x{image.height} image"
        )
    return image.crop((x, y, x + width, y + height))


def fit_image(image: Image.Image, size: Tuple[int, int], mode: FitMode = FitMode.FIT) -> Image.Image:
    """Scale ``image`` onto an opaque black RGBA canvas of ``size``."""
    target_w, target_h = size
    src = image.convert("RGBA")
    width, height = src.size
    canvas = Image.new("RGBA", size, (0, 0, 0, 255))
    mode = FitMode(mode)

    if mode == FitMode.STRETCH:
        new_size = (target_w, target_h)
    else:
        if mode == FitMode.FIT:
            ratio = min(target_w / width, target_h / height)
        elif mode == FitMode.FILL:
            ratio = max(target_w / width, target_h / height)
        elif mode == FitMode.FIT_WIDTH:
            ratio = target_w / width
        else:
            ratio = target_h / height
        new_size = (max(1, round(width * ratio)), max(1, round(height * ratio)))

    if new_size != src.size:
        src = src.resize(new_size, Image.LANCZOS)
    offset = ((target_w - new_size[0]) // 2, (target_h - new_size[1]) // 2)
    canvas.paste(src, offset)
    return canvas


def _fitted(request: ConversionRequest) -> Image.Image:
    image = request.image
    if request.crop is not None:
        image = crop_image(image, request.crop)
    return fit_image(image, target_size(request.format), request.fit)


def prepare_image(request: ConversionRequest) -> Image.Image:
    """Crop, fit and adjust the source; returns an RGB image of the target frame size."""
    fitted = _fitted(request).convert("RGB")
    return apply_adjustments(fitted, request.adjustments)


def alpha_mask(request: ConversionRequest) -> Optional[AlphaMask]:
    """Transparency mask from the source alpha channel, in screen coordinates."""
    if "A" not in request.image.getbands() and "transparency" not in request.image.info:
        return None
    fitted = _fitted(request)
    if fitted.size != (SCREEN_WIDTH, SCREEN_HEIGHT):
        fitted = fitted.crop(screen_box())
    return AlphaMask(fitted.getchannel("A"))


# --- block engine ---------------------------------------------------------

Resolver = Callable[[BlockChoice], Tuple[Color, Color]]
Chooser = Callable[[Sequence[BlockPixel]], BlockChoice]


def _pixel_rows(image: Image.Image) -> List[Tuple[float, float, float]]:
    return rgb_pixels(image)


def _buffer_rows(buffer: Sequence[float]) -> List[Tuple[float, float, float]]:
    return [(buffer[i], buffer[i + 1], buffer[i + 2]) for i in range(0, len(buffer), 3)]


def _block_pixels(
    pixels: Sequence[Tuple[float, float, float]],
    x0: int,
    y0: int,
    height: int,
    mask: Optional[TransparencyMask],
) -> List[BlockPixel]:
    out: List[BlockPixel] = []
    for y in range(y0, y0 + height):
        row = y * SCREEN_WIDTH
        for x in range(x0, x0 + 8):
            if mask is not None and mask.is_transparent(x, y):
                out.append(None)
            else:
                out.append(pixels[row + x])
    return out


def _encode_blocks(
    image: Image.Image,
    request: ConversionRequest,
    block_height: int,
    rows: int,
    choose: Chooser,
    resolve: Resolver,
    colors: Sequence[Color],
    mask: Optional[TransparencyMask],
    mono: bool = False,
) -> Tuple[bytearray, List[List[BlockChoice]]]:
    """Fill a bitmap and return the chosen block colors.

    Without a cell dither the whole image is dithered to ``colors`` first and
    blocks are chosen from the result. With one, blocks are chosen from raw
    pixels and each block is dithered between its own two colors.
    """
    bitmap = bytearray(BITMAP_SIZE)
    cell = None
    method = request.dither
    if request.cell_dither is not None:
        cell_method = CellDitherMethod(request.cell_dither)
        if mono and cell_method in CELL_DIFFUSION_GLOBAL:
            method = CELL_DIFFUSION_GLOBAL[cell_method]
        else:
            cell = get_cell_dither(cell_method)

    if cell is None:
        buffer = image_to_buffer(image)
        dither(buffer, SCREEN_WIDTH, SCREEN_HEIGHT, colors, method, request.metric)
        pixels = _buffer_rows(buffer)
    else:
        pixels = _pixel_rows(image)

    choices: List[List[BlockChoice]] = []
    for block_row in range(rows):
        y0 = block_row * block_height
        line: List[BlockChoice] = []
        for col in range(COLUMNS):
            block = _block_pixels(pixels, col * 8, y0, block_height, mask)
            choice = choose(block)
            lines = list(choice.bitmap)
            if cell is not None:
                ink, paper = resolve(choice)
                filled = [paper if p is None else p for p in block]
                lines = cell.bitmap(filled, block_height, ink, paper, request.metric, (col * 8, y0))
            if mask is not None:
                for i, p in enumerate(block):
                    if p is None:
                        lines[i // 8] &= ~(0x80 >> (i % 8)) & 0xFF
            for dy, value in enumerate(lines):
                bitmap[bitmap_offset(y0 + dy, col)] = value
            line.append(choice)
        choices.append(line)
    return bitmap, choices


def _standard_blocks(
    image: Image.Image,
    request: ConversionRequest,
    block_height: int,
    mask: Optional[TransparencyMask],
) -> Tuple[bytearray, List[List[BlockChoice]]]:
    palette = request.palette
    metric = request.metric

    def choose(pixels):
        return select_block_colors(pixels, palette, metric)

    def resolve(choice):
        return palette.color(choice.ink, choice.bright), palette.color(choice.paper, choice.bright)

    return _encode_blocks(
        image,
        request,
        block_height,
        SCREEN_HEIGHT // block_height,
        choose,
        resolve,
        palette.colors,
        mask,
    )


def _write_attributes(
    out: bytearray, fmt: ScreenFormat, choices: List[List[BlockChoice]], block_height: int
) -> None:
    for block_row, line in enumerate(choices):
        y = block_row * block_height
        for col, choice in enumerate(line):
            out[attribute_offset(fmt, y, col)] = choice.attribute


# --- per-format encoders --------------------------------------------------


def encode_scr(image: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    bitmap, choices = _standard_blocks(image, request, 8, mask)
    out = bytearray(SCR_SIZE)
    out[:BITMAP_SIZE] = bitmap
    _write_attributes(out, ScreenFormat.SCR, choices, 8)
    return bytes(out)


def encode_multicolor(image: Image.Image, request: ConversionRequest, fmt: ScreenFormat, mask=None) -> bytes:
    """IFL (8x2) and MLT (8x1) screens."""
    descriptor = get_descriptor(fmt)
    bitmap, choices = _standard_blocks(image, request, descriptor.block_height, mask)
    out = bytearray(descriptor.total_size)
    out[:BITMAP_SIZE] = bitmap
    _write_attributes(out, fmt, choices, descriptor.block_height)
    return bytes(out)


def encode_mono(image: Image.Image, request: ConversionRequest, fmt: ScreenFormat, mask=None) -> bytes:
    descriptor = get_descriptor(fmt)
    palette = request.palette
    metric = request.metric
    rows = descriptor.bitmap_height // 8

    def choose(pixels):
        return mono_choice(pixels, palette, metric)

    def resolve(choice):
        return palette.black, palette.white

    bitmap, _ = _encode_blocks(
        image,
        request,
        8,
        rows,
        choose,
        resolve,
        (palette.black, palette.white),
        mask,
        mono=True,
    )
    return bytes(bitmap[:descriptor.total_size])


def encode_53c(image: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    try:
        pattern = PATTERNS_53C[request.pattern]
    except KeyError:
        raise ConversionError(
            f"Unknown 53c pattern {request.pattern!r} (known: {', '.join(PATTERNS_53C)})"
        ) from None
    pixels = _pixel_rows(image)
    out = bytearray(ATTR_SIZE)
    for row in range(SCREEN_HEIGHT // 8):
        for col in range(COLUMNS):
            block = _block_pixels(pixels, col * 8, row * 8, 8, mask)
            choice = select_pattern_colors(block, pattern, request.palette, request.metric)
            out[row * COLUMNS + col] = choice.attribute
    return bytes(out)


def encode_ulaplus(image: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    palette_bytes = build_palette(image)
    colors64 = palette_colors(palette_bytes)
    metric = request.metric

    def choose(pixels):
        return select_ulaplus_colors(pixels, colors64, metric)

    def resolve(choice):
        base = choice.clut * 16
        return colors64[base + choice.ink], colors64[base + 8 + choice.paper]

    bitmap, choices = _encode_blocks(
        image,
        request,
        8,
        SCREEN_HEIGHT // 8,
        choose,
        resolve,
        sorted(set(colors64)),
        mask,
    )
    out = bytearray(get_descriptor(ScreenFormat.SCR_ULAPLUS).total_size)
    out[:BITMAP_SIZE] = bitmap
    _write_attributes(out, ScreenFormat.SCR, choices, 8)
    out[SCR_SIZE:] = palette_bytes
    return bytes(out)


def encode_rgb3(image: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    """Dither to the 8 pure RGB colors and split the index bits into planes."""
    buffer = image_to_buffer(image)
    dither(buffer, SCREEN_WIDTH, SCREEN_HEIGHT, RGB3_COLORS, request.dither, request.metric)
    out = bytearray(get_descriptor(ScreenFormat.RGB3).total_size)
    for y in range(SCREEN_HEIGHT):
        for x in range(SCREEN_WIDTH):
            if mask is not None and mask.is_transparent(x, y):
                continue
            i = (y * SCREEN_WIDTH + x) * 3
            index = nearest_index((buffer[i], buffer[i + 1], buffer[i + 2]), RGB3_COLORS, request.metric)
            offset = bitmap_offset(y, x // 8)
            bit = 0x80 >> (x % 8)
            for plane, plane_offset in enumerate(RGB3_PLANE_OFFSETS):
                if index & (4 >> plane):
                    out[plane_offset + offset] |= bit
    return bytes(out)


def encode_gigascreen(image: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    """Two SCR frames whose average approximates the image.

    The second frame encodes ``2 * image - first`` so the pair averages back
    to the source where the palette allows it.
    """
    first = encode_scr(image, request, mask)
    shown = rgb_pixels(render_scr(first, request.palette))
    residual = Image.new("RGB", image.size)
    residual.putdata(
        [
            (clamp(2 * s[0] - d[0]), clamp(2 * s[1] - d[1]), clamp(2 * s[2] - d[2]))
            for s, d in zip(rgb_pixels(image), shown)
        ]
    )
    second = encode_scr(residual, request, mask)
    return first + second


def _split_frame(frame: Image.Image) -> Image.Image:
    return frame.crop(screen_box())


def encode_bsc(frame: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    screen = encode_scr(_split_frame(frame), request, mask)
    return screen + encode_border(frame, request.palette, request.metric)


def encode_bmc4(frame: Image.Image, request: ConversionRequest, mask=None) -> bytes:
    """8x4 multicolor screen plus border; each cell's two halves use separate attribute banks."""
    bitmap, choices = _standard_blocks(_split_frame(frame), request, 4, mask)
    out = bytearray(get_descriptor(ScreenFormat.BMC4).total_size)
    out[:BITMAP_SIZE] = bitmap
    _write_attributes(out, ScreenFormat.BMC4, choices, 4)
    border_offset = get_descriptor(ScreenFormat.BMC4).border_offset
    out[border_offset:] = encode_border(frame, request.palette, request.metric)
    return bytes(out)


def encode(request: ConversionRequest, *, mask: Optional[TransparencyMask] = None) -> bytes:
    """Convert ``request.image`` to the bytes of ``request.format``.

    ``mask`` marks pixels to leave out of color selection; they are written
    as paper.
    """
    fmt = ScreenFormat(request.format)
    image = prepare_image(request)
    logger.debug("encoding %s (%dx%d) with %s", fmt.value, image.width, image.height, request.dither)

    if fmt == ScreenFormat.SCR:
        data = encode_scr(image, request, mask)
    elif fmt == ScreenFormat.SCR_ULAPLUS:
        data = encode_ulaplus(image, request, mask)
    elif fmt == ScreenFormat.ATTR_53C:
        data = encode_53c(image, request, mask)
    elif fmt == ScreenFormat.BSC:
        data = encode_bsc(image, request, mask)
    elif fmt == ScreenFormat.BMC4:
        data = encode_bmc4(image, request, mask)
    elif fmt in (ScreenFormat.IFL, ScreenFormat.MLT):
        data = encode_multicolor(image, request, fmt, mask)
    elif fmt == ScreenFormat.RGB3:
        data = encode_rgb3(image, request, mask)
    elif fmt == ScreenFormat.GIGASCREEN:
        data = encode_gigascreen(image, request, mask)
    elif fmt in MONO_FORMATS:
        data = encode_mono(image, request, fmt, mask)
    elif fmt == ScreenFormat.SPECSCII:
        data = encode_blocks(image)
    elif fmt == ScreenFormat.SCA:
        data = build_sca([encode_scr(image, request, mask)], [DEFAULT_SCA_DELAY])
    else:  # pragma: no cover
        raise ConversionError(f"Unsupported format: {fmt}")

    expected = get_descriptor(fmt).total_size
    if expected is not None and len(data) != expected:
        raise ConversionError(f"Encoded {len(data)} bytes, expected {expected}")
    return data


def encode_animation(
    requests: Sequence[ConversionRequest],
    delays: Optional[Sequence[int]] = None,
    border: int = 0,
) -> bytes:
    """Encode every request as an SCR frame and pack them into one SCA file."""
    frames = []
    for request in requests:
        image = prepare_image(request)
        frames.append(encode_scr(image, request))
    if delays is None:
        delays = [DEFAULT_SCA_DELAY] * len(frames)
    return build_sca(frames, delays, border=border)
