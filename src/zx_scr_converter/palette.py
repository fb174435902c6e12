"""ZX Spectrum color tables.

A :class:`Palette` is an immutable pair of 8-color banks (regular and
bright). Nothing in the package keeps a "current" palette; callers pick one
from :data:`PALETTES` (or build their own) and pass it explicitly.
"""

# Reference: attribute byte
# Bit   | Meaning
# ------|------------------------------------------
# 0-2   | INK color index (0-7)
# 3-5   | PAPER color index (0-7)
# 6     | BRIGHT (selects the bright bank)
# 7     | FLASH (swap INK/PAPER periodically)

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .errors import ConversionError

Color = Tuple[int, int, int]

BRIGHT_BIT = 0x40
FLASH_BIT = 0x80


class PaletteError(ConversionError):
    """Raised for unknown palette names or malformed color tables."""


@dataclass(frozen=True)
class Palette:
    """Sixteen colors: ``regular`` (indices 0-7) and ``bright`` (8-15)."""

    name: str
    regular: Tuple[Color, ...]
    bright: Tuple[Color, ...]
    title: str = ""

    def __post_init__(self) -> None:
        if len(self.regular) != 8 or len(self.bright) != 8:
            raise PaletteError(f"Palette {self.name!r} needs 8 regular and 8 bright colors")

    def bank(self, bright: bool) -> Tuple[Color, ...]:
        return self.bright if bright else self.regular

    def color(self, index: int, bright: bool = False) -> Color:
        return self.bank(bright)[index & 0x07]

    @property
    def colors(self) -> Tuple[Color, ...]:
        """All 16 colors, regular bank first."""
        return self.regular + self.bright

    @property
    def black(self) -> Color:
        return self.bright[0]

    @property
    def white(self) -> Color:
        return self.bright[7]

    def attribute_colors(self, attr: int, flash_phase: bool = False) -> Tuple[Color, Color]:
        """Return ``(ink, paper)`` for an attribute byte.

        INK and PAPER are swapped when the FLASH bit is set and the caller is
        in the swapped flash phase.
        """
        ink = attr & 0x07
        paper = (attr >> 3) & 0x07
        if flash_phase and attr & FLASH_BIT:
            ink, paper = paper, ink
        bank = self.bank(bool(attr & BRIGHT_BIT))
        return bank[ink], bank[paper]


def make_attribute(ink: int, paper: int, bright: bool = False, flash: bool = False) -> int:
    attr = (ink & 0x07) | ((paper & 0x07) << 3)
    if bright:
        attr |= BRIGHT_BIT
    if flash:
        attr |= FLASH_BIT
    return attr


def hex_to_rgb(text: str) -> Color:
    text = text.strip().lstrip("#")
    if len(text) != 6:
        raise PaletteError(f"Invalid hex color: #{text}")
    try:
        return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
    except ValueError as exc:
        raise PaletteError(f"Invalid hex color: #{text}") from exc


def palette_from_hex(name: str, colors: Sequence[str], title: str = "") -> Palette:
    if len(colors) != 16:
        raise PaletteError(f"Palette {name!r} must list 16 colors, got {len(colors)}")
    rgb = [hex_to_rgb(value) for value in colors]
    return Palette(name=name, regular=tuple(rgb[:8]), bright=tuple(rgb[8:]), title=title or name)


# Emulator palettes: 8 regular colors followed by 8 bright colors.
_PALETTE_TABLE: List[Tuple[str, str, List[str]]] = [
    ("alone", "Alone", ["#000000", "#0000A0", "#A00000", "#A000A0", "#00A000", "#00A0A0", "#A0A000", "#A0A0A0", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
    ("art-schafft", "Art by Schafft", ["#000000", "#1C0077", "#A2232A", "#8417A8", "#7B8707", "#2D91C3", "#DAA73E", "#BABABA", "#000000", "#2100A5", "#E02C35", "#B71BE8", "#A7BA08", "#42C2FF", "#FFD66D", "#FCFCFC"]),
    ("atm-turbo", "ATM-Turbo", ["#000000", "#0000AA", "#AA0000", "#AA00AA", "#00AA00", "#00AAAA", "#AAAA00", "#AAAAAA", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
    ("default", "Default", ["#000000", "#0000D7", "#D70000", "#D700D7", "#00D700", "#00D7D7", "#D7D700", "#D7D7D7", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
    ("emuzwin", "EmuzWin", ["#000000", "#0000C4", "#C40000", "#C400C4", "#00B900", "#00C4C4", "#C4C400", "#C4C4C4", "#000000", "#0000ED", "#ED0000", "#ED00ED", "#00D900", "#00DFDB", "#EDEB00", "#EDEBEB"]),
    ("escale", "Escale (Grayscale)", ["#3E414C", "#4E515F", "#5E6273", "#6E7386", "#7E839A", "#8E94AD", "#9EA4C1", "#AEB5D4", "#3E414C", "#525564", "#666A7C", "#7A7F94", "#8E93AD", "#A2A8C5", "#B5BCDD", "#C9D1F5"]),
    ("grey", "Grey", ["#000000", "#1B1B1B", "#373636", "#525252", "#6E6D6D", "#898989", "#A5A4A4", "#C0C0C0", "#000000", "#242424", "#494949", "#6D6D6D", "#929292", "#B6B6B6", "#DBDBDB", "#FFFFFF"]),
    ("linear", "Linear", ["#000000", "#0000BC", "#BC0000", "#BC00BC", "#00BC00", "#00BCBC", "#BCBC00", "#BCBCBC", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
    ("mars", "Mars", ["#000000", "#000090", "#BF3000", "#BF3090", "#009030", "#0090C0", "#BFC030", "#BFC0C0", "#000000", "#0000BF", "#FE3F00", "#FE3FBF", "#00BF3F", "#00BFFF", "#FEFF3F", "#FEFFFF"]),
    ("ocean", "Ocean", ["#20201F", "#38389F", "#88201F", "#A0389F", "#20881F", "#38A09F", "#88881F", "#A0A09F", "#20201F", "#4444DF", "#BC201F", "#E044DF", "#20BC1F", "#44E0DF", "#BCBC1F", "#E0E0DF"]),
    ("orthodox", "Orthodox", ["#000000", "#0000CD", "#A70000", "#A700CD", "#00B700", "#00B7CD", "#A7B700", "#A7B7CD", "#000000", "#0000FF", "#D00000", "#D000FF", "#00E400", "#00E4FF", "#D0E400", "#D0E4FF"]),
    ("pulsar", "Pulsar", ["#000000", "#0000CD", "#CD0000", "#CD00CD", "#00CD00", "#00CDCD", "#CDCD00", "#CDCDCD", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
    ("spectaculator", "Spectaculator", ["#000000", "#0000CE", "#CE0000", "#CE00CE", "#00CB00", "#00CBCE", "#CECB00", "#CECBCE", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FB00", "#00FBFF", "#FFFB00", "#FFFBFF"]),
    ("spectaculator-bw", "Spectaculator b/w", ["#101010", "#292C29", "#4A4D4A", "#6B6D6B", "#7B7D7B", "#9C9E9C", "#BDBEBD", "#DEDFDE", "#101010", "#313031", "#5A5D5A", "#7B7D7B", "#9C9E9C", "#BDBEBD", "#E7E3E7", "#FFFFFF"]),
    ("specemu", "SpecEmu", ["#000000", "#0000B2", "#B20000", "#B200B2", "#00B200", "#00B2B2", "#B2B200", "#B2B2B2", "#050505", "#0505E6", "#E60505", "#E605E6", "#05E605", "#05E6E6", "#E6E605", "#E6E6E6"]),
    ("specemu-green", "SpecEmu (green)", ["#000000", "#001400", "#002900", "#003D00", "#005200", "#006600", "#007A00", "#008F00", "#000000", "#001C00", "#003800", "#005400", "#007000", "#008C00", "#00A800", "#00C400"]),
    ("specemu-grey", "SpecEmu (grey)", ["#000000", "#141414", "#292929", "#3D3D3D", "#525252", "#666666", "#7A7A7A", "#8F8F8F", "#000000", "#1C1C1C", "#383838", "#545454", "#707070", "#8C8C8C", "#A8A8A8", "#C4C4C4"]),
    ("wiki-1", "Wikipedia #1", ["#000000", "#0100CE", "#CF0100", "#CF01CE", "#00CF15", "#01CFCF", "#CFCF15", "#CFCFCF", "#000000", "#0200FD", "#FF0201", "#FF02FD", "#00FF1C", "#02FFFF", "#FFFF1D", "#FFFFFF"]),
    ("wiki-2", "Wikipedia #2", ["#000000", "#001DC8", "#D8240F", "#D530C9", "#00C721", "#00C9CB", "#CECA27", "#CBCBCB", "#000000", "#0027FB", "#FF3016", "#FF3FFC", "#00F92C", "#00FCFE", "#FFFD33", "#FFFFFF"]),
    ("zx-next-hdmi", "ZX Spectrum Next HDMI", ["#000000", "#0000B0", "#B00000", "#B000B0", "#00B000", "#00B0B0", "#B0B000", "#B0B0B0", "#000000", "#0000FF", "#FF0000", "#FF00FF", "#00FF00", "#00FFFF", "#FFFF00", "#FFFFFF"]),
]

PALETTES: Dict[str, Palette] = {
    name: palette_from_hex(name, colors, title) for name, title, colors in _PALETTE_TABLE
}

DEFAULT_PALETTE = PALETTES["default"]

# Tricolor RGB: one bit per plane, index = R<<2 | G<<1 | B
RGB3_COLORS: Tuple[Color, ...] = tuple(
    (255 if i & 4 else 0, 255 if i & 2 else 0, 255 if i & 1 else 0) for i in range(8)
)


def get_palette(name: str) -> Palette:
    try:
        return PALETTES[name]
    except KeyError:
        known = ", ".join(sorted(PALETTES))
        raise PaletteError(f"Unknown palette {name!r} (known: {known})") from None


def parse_color(text: str) -> Color:
    """Parse ``#RRGGBB``, ``RRGGBB`` or ``r,g,b``."""
    text = text.strip()
    if "," in text:
        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 3:
            raise PaletteError("Color must have exactly three components")
        try:
            values = tuple(int(part) for part in parts)
        except ValueError as exc:
            raise PaletteError(f"Invalid color: {text}") from exc
        if any(not (0 <= v <= 255) for v in values):
            raise PaletteError("Color components must be between 0 and 255")
        return values  # type: ignore[return-value]
    return hex_to_rgb(text)


def format_palette_text(palette: Palette) -> str:
    entries = [f"{idx}: #{r:02X}{g:02X}{b:02X}" for idx, (r, g, b) in enumerate(palette.colors)]
    return ", ".join(entries)
