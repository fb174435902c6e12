import warnings

import pytest

from zx_scr_converter.errors import ConversionError, MalformedHeaderError, VersionMismatchWarning
from zx_scr_converter.sca import (
    HEADER_SIZE,
    build_sca,
    count_duplicate_frames,
    dump_sca,
    export_frames,
    frame_delay_ms,
    frame_screen,
    has_loop_frame,
    parse_sca_header,
    read_sca,
    read_sca_header,
    remove_duplicate_frames,
    set_delay,
    trim_frames,
    trim_loop_frame,
)


def _screen(value: int) -> bytes:
    return bytes([value]) * 6912


def test_single_frame_file_is_6927_bytes() -> None:
    data = build_sca([_screen(1)], [5])
    assert len(data) == 6927
    header = parse_sca_header(data)
    assert header is not None
    assert header.version == 1
    assert (header.width, header.height) == (256, 192)
    assert header.frame_count == 1
    assert header.payload_type == 0
    assert header.payload_offset == HEADER_SIZE


def test_header_byte_layout() -> None:
    data = build_sca([_screen(0), _screen(1)], [3, 4], border=9)
    assert data[:3] == b"SCA"
    assert data[3] == 1
    assert data[4:6] == bytes([0x00, 0x01])
    assert data[6:8] == bytes([0xC0, 0x00])
    assert data[8] == 1
    assert data[9:11] == bytes([2, 0])
    assert data[14:16] == bytes([3, 4])


def test_invalid_headers_are_rejected() -> None:
    good = bytearray(build_sca([_screen(1)], [5]))
    assert parse_sca_header(bytes(good[:13])) is None
    assert parse_sca_header(b"XYZ" + bytes(good[3:])) is None

    no_frames = bytearray(good)
    no_frames[9] = 0
    assert parse_sca_header(bytes(no_frames)) is None

    bad_type = bytearray(good)
    bad_type[11] = 2
    assert parse_sca_header(bytes(bad_type)) is None

    assert parse_sca_header(bytes(good[:-1])) is None
    with pytest.raises(MalformedHeaderError):
        read_sca_header(bytes(no_frames))


def test_version_mismatch_warns_but_parses() -> None:
    data = bytearray(build_sca([_screen(1)], [5]))
    data[3] = 2
    with pytest.warns(VersionMismatchWarning):
        header = parse_sca_header(bytes(data))
    assert header is not None
    assert header.version == 2


def test_supported_version_does_not_warn() -> None:
    data = build_sca([_screen(1)], [5])
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        parse_sca_header(data)


def test_attribute_only_payload() -> None:
    fill = bytes([0xAA, 0x55] * 4)
    data = build_sca([bytes([0x38]) * 768, bytes([0x07]) * 768], [1, 2], fill_pattern=fill)
    assert len(data) == 14 + 2 + 8 + 2 * 768
    animation = read_sca(data)
    assert animation.is_attribute_only
    assert animation.fill_pattern == fill
    screen = frame_screen(animation, 1)
    assert len(screen) == 6912
    assert screen[0] == 0xAA
    assert screen[256] == 0x55
    assert screen[6144:] == bytes([0x07]) * 768


def test_build_sca_errors() -> None:
    with pytest.raises(ConversionError):
        build_sca([], [])
    with pytest.raises(ConversionError):
        build_sca([_screen(1)], [1, 2])
    with pytest.raises(ConversionError):
        build_sca([bytes(768)], [1])
    with pytest.raises(ConversionError):
        build_sca([bytes(100)], [1])


def test_delays_are_capped_and_timed() -> None:
    animation = read_sca(build_sca([_screen(1), _screen(2)], [0, 300]))
    assert animation.delays == (0, 255)
    assert frame_delay_ms(0) == 20
    assert animation.duration_ms() == 20 + 255 * 20


def test_frame_screen_range() -> None:
    animation = read_sca(build_sca([_screen(1)], [1]))
    assert frame_screen(animation, 0) == _screen(1)
    with pytest.raises(ConversionError):
        frame_screen(animation, 1)


def test_remove_duplicate_frames_merges_delays() -> None:
    frames = [_screen(1), _screen(1), _screen(1), _screen(2), _screen(1)]
    animation = read_sca(build_sca(frames, [100, 100, 100, 4, 5]))
    assert count_duplicate_frames(animation) == 2
    merged = remove_duplicate_frames(animation)
    assert merged.frame_count == 3
    assert merged.delays == (255, 4, 5)
    assert merged.header.frame_count == 3
    assert read_sca(dump_sca(merged)).frames == merged.frames


def test_trim_loop_frame() -> None:
    animation = read_sca(build_sca([_screen(1), _screen(2), _screen(1)], [3, 4, 5]))
    assert has_loop_frame(animation)
    trimmed = trim_loop_frame(animation)
    assert trimmed.frame_count == 2
    assert trimmed.delays == (8, 4)
    assert not has_loop_frame(trimmed)
    assert trim_loop_frame(trimmed) is trimmed


def test_trim_frames_and_set_delay() -> None:
    animation = read_sca(build_sca([_screen(i) for i in range(4)], [1, 2, 3, 4]))
    trimmed = trim_frames(animation, 1, 1)
    assert trimmed.frames == (_screen(1), _screen(2))
    assert trimmed.delays == (2, 3)
    with pytest.raises(ConversionError):
        trim_frames(animation, 2, 2)

    assert set_delay(animation, 9).delays == (9, 9, 9, 9)
    assert set_delay(animation, 9, 2).delays == (1, 2, 9, 4)
    with pytest.raises(ConversionError):
        set_delay(animation, 256)


def test_export_frames() -> None:
    animation = read_sca(build_sca([_screen(1), _screen(2)], [1, 1]))
    assert export_frames(animation, "scr") == [_screen(1), _screen(2)]
    assert export_frames(animation, "53c") == [bytes([1]) * 768, bytes([2]) * 768]
    with pytest.raises(ConversionError):
        export_frames(animation, "gif")
