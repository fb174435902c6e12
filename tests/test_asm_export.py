import pytest

from zx_scr_converter.asm_export import export_border_asm, format_db_lines
from zx_scr_converter.border import BORDER_SIZE, uniform_border
from zx_scr_converter.errors import ConversionError


def _bsc(border: bytes, screen: bytes = bytes(6912)) -> bytes:
    return screen + border


def test_program_skeleton() -> None:
    source = export_border_asm(_bsc(uniform_border(0)), name="demo")
    assert "    DEVICE ZXSPECTRUM128" in source
    assert "    ORG #8000" in source
    assert "    IM 2" in source
    assert "MainLoop:" in source
    assert "FrameStart:" in source
    assert '    SAVESNA "demo.sna",Start' in source
    assert source.count("    DB ") == 432


def test_black_border_is_all_nops() -> None:
    source = export_border_asm(_bsc(uniform_border(0)))
    frame = source.split("FrameStart:")[1].split("ScrData:")[0]
    assert frame.count("    DUP 56") == 304
    assert "OUT (C),B" not in frame


def test_color_change_is_emitted_once() -> None:
    source = export_border_asm(_bsc(uniform_border(1)))
    frame = source.split("FrameStart:")[1].split("ScrData:")[0]
    assert frame.count("    OUT (C),B") == 1
    assert frame.count("    DUP 53") == 1
    assert frame.count("    DUP 56") == 303


def test_side_line_right_border_change() -> None:
    border = bytearray(BORDER_SIZE)
    side = 64 * 24
    border[side + 4] = 0x07  # right segment 0 of the first side line: color 7
    lines = export_border_asm(_bsc(bytes(border))).split("FrameStart:")[1].split("\n")
    out_index = lines.index("    OUT (C),A")
    assert lines[out_index - 3:out_index] == ["    DUP 38", "    NOP", "    EDUP"]
    assert lines[out_index + 1] == "    OUT (C),0"
    assert lines[out_index + 2:out_index + 5] == ["    DUP 12", "    NOP", "    EDUP"]


def test_incbin_mode() -> None:
    source = export_border_asm(_bsc(uniform_border(2)), name="pic", incbin=True)
    assert '    INCBIN "pic.bsc",0,6912' in source
    assert "    DB " not in source
    assert "    OUT (C),D" in source


def test_db_lines() -> None:
    assert format_db_lines(bytes([0, 255, 16])) == ["    DB #00,#FF,#10"]
    assert len(format_db_lines(bytes(33))) == 3


def test_short_data_raises() -> None:
    with pytest.raises(ConversionError):
        export_border_asm(bytes(6912))
