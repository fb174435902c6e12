import pytest
from PIL import Image

from zx_scr_converter.border import (
    BORDER_SIZE,
    draw_border,
    encode_border,
    line_offset,
    segment_x,
    screen_box,
    uniform_border,
    unpack_line,
)
from zx_scr_converter.errors import ConversionError
from zx_scr_converter.palette import DEFAULT_PALETTE


def test_line_layout() -> None:
    assert BORDER_SIZE == 4224
    assert line_offset(0) == 0
    assert line_offset(64) == 64 * 24
    assert line_offset(65) == 64 * 24 + 8
    assert line_offset(256) == 64 * 24 + 192 * 8
    assert len(unpack_line(uniform_border(3), 10)) == 48
    assert len(unpack_line(uniform_border(3), 100)) == 16


def test_segment_positions() -> None:
    assert segment_x(0, 47) == 376
    assert segment_x(100, 7) == 56
    assert segment_x(100, 8) == 320
    assert segment_x(100, 15) == 376


def test_unpack_low_bits_first() -> None:
    border = bytearray(BORDER_SIZE)
    border[0] = 0x2A  # 2, then 5
    assert unpack_line(border, 0)[:2] == [2, 5]


def test_uniform_frame_encodes_uniform_border() -> None:
    frame = Image.new("RGB", (384, 304), DEFAULT_PALETTE.regular[1])
    assert encode_border(frame, DEFAULT_PALETTE) == uniform_border(1)


def test_full_lines_use_wide_interior_blocks() -> None:
    frame = Image.new("RGB", (384, 304), (0, 0, 0))
    frame.paste(DEFAULT_PALETTE.regular[2], (24, 0, 32, 1))
    frame.paste(DEFAULT_PALETTE.regular[2], (40, 0, 48, 1))
    colors = unpack_line(encode_border(frame, DEFAULT_PALETTE), 0)
    assert colors[3:6] == [2, 2, 2]
    assert colors[:3] == [0, 0, 0]


def test_draw_border_round_trip() -> None:
    frame = Image.new("RGB", (384, 304))
    draw_border(frame, uniform_border(5), DEFAULT_PALETTE)
    assert frame.getpixel((0, 0)) == DEFAULT_PALETTE.regular[5]
    assert frame.getpixel((383, 303)) == DEFAULT_PALETTE.regular[5]
    assert frame.getpixel((100, 100)) == (0, 0, 0)
    assert screen_box() == (64, 64, 320, 256)


def test_border_errors() -> None:
    with pytest.raises(ConversionError):
        draw_border(Image.new("RGB", (384, 304)), bytes(10), DEFAULT_PALETTE)
    with pytest.raises(ConversionError):
        encode_border(Image.new("RGB", (256, 192)), DEFAULT_PALETTE)
