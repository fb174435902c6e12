"""ZX Spectrum screen converter.

Converts images into ZX Spectrum screen formats (SCR, ULA+, 53c, BSC, IFL,
BMC4, MLT, RGB3, Gigascreen, monochrome, SPECSCII and SCA animations) and
renders those formats back to RGB images. It can be invoked through the CLI
(``python -m zx_scr_converter``) or imported to convert a Pillow image into
bytes.
"""

from .adjust import Adjustments
from .asm_export import export_border_asm
from .colorspace import DistanceMetric
from .decoder import GigascreenMode, RenderOptions, decode
from .dither import CellDitherMethod, DitherMethod
from .encoder import ConversionRequest, FitMode, encode, encode_animation
from .errors import (
    ConversionError,
    FormatMismatchError,
    MalformedHeaderError,
    VersionMismatchWarning,
)
from .formats import ScreenFormat, detect_format
from .palette import DEFAULT_PALETTE, PALETTES, Palette, get_palette

__all__ = [
    "Adjustments",
    "CellDitherMethod",
    "ConversionError",
    "ConversionRequest",
    "DEFAULT_PALETTE",
    "DistanceMetric",
    "DitherMethod",
    "FitMode",
    "FormatMismatchError",
    "GigascreenMode",
    "MalformedHeaderError",
    "PALETTES",
    "Palette",
    "RenderOptions",
    "ScreenFormat",
    "VersionMismatchWarning",
    "decode",
    "detect_format",
    "encode",
    "encode_animation",
    "export_border_asm",
    "get_palette",
]
