"""Screen format catalog: sizes, block geometry and bitmap addressing."""

# Reference: ZX Spectrum screen memory
# Region       | Offset | Size | Notes
# -------------|--------|------|------------------------------------------
# Bitmap       | 0      | 6144 | 3 thirds x 8 char rows x 8 pixel lines
# Attributes   | 6144   | 768  | 32 x 24, one byte per 8x8 cell
#
# Bitmap byte for pixel row y, byte column col:
#   (y // 64) * 2048 + (y % 8) * 256 + ((y % 64) // 8) * 32 + col

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import FormatMismatchError

logger = logging.getLogger(__name__)

SCREEN_WIDTH = 256
SCREEN_HEIGHT = 192
COLUMNS = 32
ROWS = 24
BITMAP_SIZE = 6144
ATTR_SIZE = 768
SCR_SIZE = BITMAP_SIZE + ATTR_SIZE

BORDER_FRAME_WIDTH = 384
BORDER_FRAME_HEIGHT = 304
BORDER_SCREEN_X = 64
BORDER_SCREEN_Y = 64


class ScreenFormat(str, Enum):
    SCR = "scr"
    SCR_ULAPLUS = "ulaplus"
    ATTR_53C = "53c"
    BSC = "bsc"
    IFL = "ifl"
    BMC4 = "bmc4"
    MLT = "mlt"
    RGB3 = "rgb3"
    GIGASCREEN = "gigascreen"
    MONO_FULL = "mono"
    MONO_2_3 = "mono-2-3"
    MONO_1_3 = "mono-1-3"
    SPECSCII = "specscii"
    SCA = "sca"


@dataclass(frozen=True)
class FormatDescriptor:
    format: ScreenFormat
    name: str
    total_size: Optional[int]  # None for variable-size containers
    block_height: int = 8
    attr_offset: Optional[int] = None
    border_offset: Optional[int] = None
    palette_offset: Optional[int] = None
    bitmap_thirds: int = 3
    frame_width: int = SCREEN_WIDTH
    frame_height: int = SCREEN_HEIGHT
    extension: str = "scr"

    @property
    def bitmap_height(self) -> int:
        return self.bitmap_thirds * 64

    @property
    def has_attributes(self) -> bool:
        return self.attr_offset is not None

    @property
    def has_border(self) -> bool:
        return self.border_offset is not None


FORMATS: Dict[ScreenFormat, FormatDescriptor] = {
    ScreenFormat.SCR: FormatDescriptor(ScreenFormat.SCR, "SCR", 6912, attr_offset=6144),
    ScreenFormat.SCR_ULAPLUS: FormatDescriptor(
        ScreenFormat.SCR_ULAPLUS, "SCR (ULA+)", 6976, attr_offset=6144, palette_offset=6912
    ),
    ScreenFormat.ATTR_53C: FormatDescriptor(
        ScreenFormat.ATTR_53C, "53c attributes", 768, attr_offset=0, bitmap_thirds=0, extension="53c"
    ),
    ScreenFormat.BSC: FormatDescriptor(
        ScreenFormat.BSC,
        "BSC (border screen)",
        11136,
        attr_offset=6144,
        border_offset=6912,
        frame_width=BORDER_FRAME_WIDTH,
        frame_height=BORDER_FRAME_HEIGHT,
        extension="bsc",
    ),
    ScreenFormat.IFL: FormatDescriptor(
        ScreenFormat.IFL, "IFL (8x2 multicolor)", 9216, block_height=2, attr_offset=6144, extension="ifl"
    ),
    ScreenFormat.BMC4: FormatDescriptor(
        ScreenFormat.BMC4,
        "BMC4 (8x4 multicolor + border)",
        11904,
        block_height=4,
        attr_offset=6144,
        border_offset=7680,
        frame_width=BORDER_FRAME_WIDTH,
        frame_height=BORDER_FRAME_HEIGHT,
        extension="bmc4",
    ),
    ScreenFormat.MLT: FormatDescriptor(
        ScreenFormat.MLT, "MLT (8x1 multicolor)", 12288, block_height=1, attr_offset=6144, extension="mlt"
    ),
    ScreenFormat.RGB3: FormatDescriptor(ScreenFormat.RGB3, "RGB3 (tricolor)", 18432, extension="3"),
    ScreenFormat.GIGASCREEN: FormatDescriptor(
        ScreenFormat.GIGASCREEN, "Gigascreen", 13824, attr_offset=6144, extension="img"
    ),
    ScreenFormat.MONO_FULL: FormatDescriptor(ScreenFormat.MONO_FULL, "Monochrome", 6144),
    ScreenFormat.MONO_2_3: FormatDescriptor(
        ScreenFormat.MONO_2_3, "Monochrome 2/3", 4096, bitmap_thirds=2
    ),
    ScreenFormat.MONO_1_3: FormatDescriptor(
        ScreenFormat.MONO_1_3, "Monochrome 1/3", 2048, bitmap_thirds=1
    ),
    ScreenFormat.SPECSCII: FormatDescriptor(
        ScreenFormat.SPECSCII, "SPECSCII text", 768, bitmap_thirds=0, extension="specscii"
    ),
    ScreenFormat.SCA: FormatDescriptor(ScreenFormat.SCA, "SCA animation", None, extension="sca"),
}

MONO_FORMATS = (ScreenFormat.MONO_FULL, ScreenFormat.MONO_2_3, ScreenFormat.MONO_1_3)

# Fixed 8x8 cell bitmaps shown by 53c screens
PATTERNS_53C: Dict[str, bytes] = {
    "checker": bytes([0xAA, 0x55] * 4),
    "stripes": bytes([0xCC, 0x33] * 4),
    "dd77": bytes([0xDD, 0x77] * 4),
}

# Extension hints are checked before sizes.
_EXTENSION_FORMATS: Dict[str, ScreenFormat] = {
    "53c": ScreenFormat.ATTR_53C,
    "atr": ScreenFormat.ATTR_53C,
    "bsc": ScreenFormat.BSC,
    "ifl": ScreenFormat.IFL,
    "bmc4": ScreenFormat.BMC4,
    "mlt": ScreenFormat.MLT,
    "mc": ScreenFormat.MLT,
    "3": ScreenFormat.RGB3,
    "specscii": ScreenFormat.SPECSCII,
    "sca": ScreenFormat.SCA,
}

_SIZE_ORDER: Tuple[Tuple[int, ScreenFormat], ...] = (
    (768, ScreenFormat.ATTR_53C),
    (11136, ScreenFormat.BSC),
    (9216, ScreenFormat.IFL),
    (11904, ScreenFormat.BMC4),
    (12288, ScreenFormat.MLT),
    (18432, ScreenFormat.RGB3),
    (13824, ScreenFormat.GIGASCREEN),
    (6976, ScreenFormat.SCR_ULAPLUS),
    (6912, ScreenFormat.SCR),
    (6144, ScreenFormat.MONO_FULL),
    (4096, ScreenFormat.MONO_2_3),
    (2048, ScreenFormat.MONO_1_3),
)


def bitmap_offset(y: int, col: int = 0) -> int:
    """Offset of the bitmap byte holding pixel row ``y``, byte column ``col``."""
    return (y // 64) * 2048 + (y % 8) * 256 + ((y % 64) // 8) * 32 + col


def pixel_address(x: int, y: int) -> Tuple[int, int]:
    """Return ``(byte offset, bit mask)`` for pixel ``(x, y)``; MSB is leftmost."""
    return bitmap_offset(y, x // 8), 0x80 >> (x % 8)


def attribute_offset(fmt: ScreenFormat, y: int, col: int) -> int:
    """Offset of the attribute that colors pixel row ``y`` in column ``col``."""
    if fmt == ScreenFormat.IFL:
        return 6144 + (y // 2) * COLUMNS + col
    if fmt == ScreenFormat.MLT:
        return 6144 + y * COLUMNS + col
    if fmt == ScreenFormat.BMC4:
        row = y // 8
        bank = 6144 if y % 8 < 4 else 6912
        return bank + row * COLUMNS + col
    if fmt == ScreenFormat.ATTR_53C:
        return (y // 8) * COLUMNS + col
    return 6144 + (y // 8) * COLUMNS + col


def get_descriptor(fmt: ScreenFormat) -> FormatDescriptor:
    return FORMATS[ScreenFormat(fmt)]


def detect_format(name: str, size: int) -> ScreenFormat:
    """Guess the format of a file from its extension, then its byte length.

    ``.img`` is only trusted for 13824-byte Gigascreen files.
    Raises :class:`FormatMismatchError` when nothing matches.
    """
    ext = os.path.splitext(name)[1].lower().lstrip(".")
    if ext == "img":
        if size == 13824:
            logger.debug("%s: gigascreen by extension", name)
            return ScreenFormat.GIGASCREEN
        raise FormatMismatchError(f"{name}: .img file of {size} bytes is not a Gigascreen screen")
    if ext in _EXTENSION_FORMATS:
        logger.debug("%s: %s by extension", name, _EXTENSION_FORMATS[ext].value)
        return _EXTENSION_FORMATS[ext]
    for known_size, fmt in _SIZE_ORDER:
        if size == known_size:
            logger.debug("%s: %s by size %d", name, fmt.value, size)
            return fmt
    raise FormatMismatchError(f"{name}: unknown screen format ({size} bytes)")


def check_size(data: bytes, fmt: ScreenFormat) -> None:
    """Raise :class:`FormatMismatchError` unless ``data`` has the format's size."""
    expected = get_descriptor(fmt).total_size
    if expected is not None and len(data) < expected:
        raise FormatMismatchError(
            f"{get_descriptor(fmt).name} needs {expected} bytes, got {len(data)}"
        )
