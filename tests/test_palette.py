import pytest

from zx_scr_converter.palette import (
    DEFAULT_PALETTE,
    PALETTES,
    RGB3_COLORS,
    Palette,
    PaletteError,
    format_palette_text,
    get_palette,
    hex_to_rgb,
    make_attribute,
    parse_color,
)


def test_named_palettes_have_sixteen_colors() -> None:
    assert "default" in PALETTES
    for palette in PALETTES.values():
        assert len(palette.colors) == 16


def test_default_palette_levels() -> None:
    assert DEFAULT_PALETTE.regular[1] == (0, 0, 0xD7)
    assert DEFAULT_PALETTE.bright[2] == (0xFF, 0, 0)
    assert DEFAULT_PALETTE.black == (0, 0, 0)
    assert DEFAULT_PALETTE.white == (255, 255, 255)


def test_get_palette_unknown_name() -> None:
    with pytest.raises(PaletteError):
        get_palette("no-such-palette")


def test_palette_requires_two_banks_of_eight() -> None:
    with pytest.raises(PaletteError):
        Palette(name="short", regular=((0, 0, 0),) * 7, bright=((0, 0, 0),) * 8)


def test_make_attribute_bits() -> None:
    assert make_attribute(1, 2) == 0x11
    assert make_attribute(7, 0, bright=True) == 0x47
    assert make_attribute(0, 7, bright=True, flash=True) == 0xF8
    assert make_attribute(9, 8) == 0x01


def test_attribute_colors_bright_and_flash() -> None:
    attr = make_attribute(1, 2, bright=True, flash=True)
    ink, paper = DEFAULT_PALETTE.attribute_colors(attr)
    assert ink == DEFAULT_PALETTE.bright[1]
    assert paper == DEFAULT_PALETTE.bright[2]

    ink, paper = DEFAULT_PALETTE.attribute_colors(attr, flash_phase=True)
    assert ink == DEFAULT_PALETTE.bright[2]
    assert paper == DEFAULT_PALETTE.bright[1]


def test_parse_color_forms() -> None:
    assert parse_color("#FF8000") == (255, 128, 0)
    assert parse_color("ff8000") == (255, 128, 0)
    assert parse_color("1, 2, 3") == (1, 2, 3)
    assert hex_to_rgb("#000000") == (0, 0, 0)
    with pytest.raises(PaletteError):
        parse_color("1,2")
    with pytest.raises(PaletteError):
        parse_color("0,0,256")
    with pytest.raises(PaletteError):
        parse_color("#GG0000")


def test_rgb3_colors_use_bit_order_rgb() -> None:
    assert RGB3_COLORS[0] == (0, 0, 0)
    assert RGB3_COLORS[4] == (255, 0, 0)
    assert RGB3_COLORS[2] == (0, 255, 0)
    assert RGB3_COLORS[1] == (0, 0, 255)
    assert RGB3_COLORS[7] == (255, 255, 255)


def test_format_palette_text() -> None:
    text = format_palette_text(DEFAULT_PALETTE)
    assert text.startswith("0: #000000, 1: #0000D7")
    assert "15: #FFFFFF" in text
