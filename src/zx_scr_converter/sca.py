"""SCA screen animations: parsing, building and simple frame editing."""

# Reference: SCA header (multi-byte fields little endian)
# Offset | Size | Field
# -------|------|------------------------------------------
# 0      | 3    | "SCA"
# 3      | 1    | version (1)
# 4      | 2    | width
# 6      | 2    | height
# 8      | 1    | border color (bits 0-2)
# 9      | 2    | frame count
# 11     | 1    | payload type (0 full frames, 1 attributes only)
# 12     | 2    | payload offset (start of the delay table)
#
# After the delay table (one byte per frame, 20 ms units) come the frames:
# type 0 = 6912-byte screens, type 1 = 8-byte fill pattern then 768-byte
# attribute frames.

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .errors import ConversionError, MalformedHeaderError, VersionMismatchWarning
from .formats import ATTR_SIZE, BITMAP_SIZE, COLUMNS, SCR_SIZE, bitmap_offset

logger = logging.getLogger(__name__)

SIGNATURE = b"SCA"
HEADER_SIZE = 14
SUPPORTED_VERSION = 1
FILL_PATTERN_SIZE = 8
DELAY_UNIT_MS = 20
MAX_DELAY = 255

PAYLOAD_FULL = 0
PAYLOAD_ATTRIBUTES = 1


@dataclass(frozen=True)
class ScaHeader:
    version: int
    width: int
    height: int
    border: int
    frame_count: int
    payload_type: int
    payload_offset: int

    @property
    def frame_size(self) -> int:
        return ATTR_SIZE if self.payload_type == PAYLOAD_ATTRIBUTES else SCR_SIZE

    @property
    def fill_pattern_offset(self) -> Optional[int]:
        if self.payload_type != PAYLOAD_ATTRIBUTES:
            return None
        return self.payload_offset + self.frame_count

    @property
    def frame_data_start(self) -> int:
        start = self.payload_offset + self.frame_count
        if self.payload_type == PAYLOAD_ATTRIBUTES:
            start += FILL_PATTERN_SIZE
        return start

    @property
    def expected_size(self) -> int:
        return self.frame_data_start + self.frame_count * self.frame_size


@dataclass(frozen=True)
class ScaAnimation:
    header: ScaHeader
    delays: Tuple[int, ...]
    frames: Tuple[bytes, ...]
    fill_pattern: Optional[bytes] = None

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def is_attribute_only(self) -> bool:
        return self.header.payload_type == PAYLOAD_ATTRIBUTES

    def duration_ms(self) -> int:
        return sum(frame_delay_ms(d) for d in self.delays)


def frame_delay_ms(delay: int) -> int:
    """Playback time of one frame; a zero delay plays as one unit."""
    return max(1, delay) * DELAY_UNIT_MS


def parse_sca_header(data: bytes) -> Optional[ScaHeader]:
    """Parse an SCA header, or return ``None`` when it is not a usable file.

    A version other than 1 only triggers :class:`VersionMismatchWarning`.
    """
    if len(data) < HEADER_SIZE:
        return None
    if bytes(data[0:3]) != SIGNATURE:
        return None
    header = ScaHeader(
        version=data[3],
        width=data[4] | (data[5] << 8),
        height=data[6] | (data[7] << 8),
        border=data[8] & 0x07,
        frame_count=data[9] | (data[10] << 8),
        payload_type=data[11],
        payload_offset=data[12] | (data[13] << 8),
    )
    if header.frame_count == 0:
        return None
    if header.payload_type not in (PAYLOAD_FULL, PAYLOAD_ATTRIBUTES):
        return None
    if len(data) < header.expected_size:
        return None
    if header.version != SUPPORTED_VERSION:
        warnings.warn(
            f"SCA version {header.version} is not supported; decoding may be wrong",
            VersionMismatchWarning,
            stacklevel=2,
        )
    logger.debug(
        "SCA v%d %dx%d, %d frames, payload type %d",
        header.version,
        header.width,
        header.height,
        header.frame_count,
        header.payload_type,
    )
    return header


def read_sca_header(data: bytes) -> ScaHeader:
    header = parse_sca_header(data)
    if header is None:
        raise MalformedHeaderError("Not a valid SCA animation")
    return header


def read_sca(data: bytes) -> ScaAnimation:
    header = read_sca_header(data)
    start = header.payload_offset
    delays = tuple(data[start:start + header.frame_count])
    fill_pattern = None
    if header.fill_pattern_offset is not None:
        offset = header.fill_pattern_offset
        fill_pattern = bytes(data[offset:offset + FILL_PATTERN_SIZE])
    size = header.frame_size
    base = header.frame_data_start
    frames = tuple(
        bytes(data[base + i * size:base + (i + 1) * size]) for i in range(header.frame_count)
    )
    return ScaAnimation(header=header, delays=delays, frames=frames, fill_pattern=fill_pattern)


def attributes_to_scr(attributes: bytes, fill_pattern: bytes) -> bytes:
    """Expand a 768-byte attribute frame to a screen whose every cell is ``fill_pattern``."""
    screen = bytearray(SCR_SIZE)
    for y in range(192):
        value = fill_pattern[y % 8]
        start = bitmap_offset(y)
        screen[start:start + COLUMNS] = bytes([value]) * COLUMNS
    screen[BITMAP_SIZE:] = attributes[:ATTR_SIZE]
    return bytes(screen)


def frame_screen(animation: ScaAnimation, index: int) -> bytes:
    """Frame ``index`` as a 6912-byte SCR."""
    if not 0 <= index < animation.frame_count:
        raise ConversionError(f"Frame {index} out of range (0-{animation.frame_count - 1})")
    frame = animation.frames[index]
    if animation.is_attribute_only:
        return attributes_to_scr(frame, animation.fill_pattern or bytes(FILL_PATTERN_SIZE))
    return frame


def build_sca(
    frames: Sequence[bytes],
    delays: Sequence[int],
    border: int = 0,
    fill_pattern: Optional[bytes] = None,
    width: int = 256,
    height: int = 192,
) -> bytes:
    """Write an SCA file.

    6912-byte frames give payload type 0. 768-byte attribute frames give
    payload type 1 and need ``fill_pattern``.
    """
    if not frames:
        raise ConversionError("An SCA animation needs at least one frame")
    if len(delays) != len(frames):
        raise ConversionError("Need exactly one delay per frame")
    sizes = {len(f) for f in frames}
    if sizes == {SCR_SIZE}:
        payload_type = PAYLOAD_FULL
    elif sizes == {ATTR_SIZE}:
        payload_type = PAYLOAD_ATTRIBUTES
        if fill_pattern is None or len(fill_pattern) != FILL_PATTERN_SIZE:
            raise ConversionError("Attribute-only frames need an 8-byte fill pattern")
    else:
        raise ConversionError("Frames must all be 6912-byte screens or 768-byte attributes")

    count = len(frames)
    out = bytearray(SIGNATURE)
    out += bytes([
        SUPPORTED_VERSION,
        width & 0xFF,
        (width >> 8) & 0xFF,
        height & 0xFF,
        (height >> 8) & 0xFF,
        border & 0x07,
        count & 0xFF,
        (count >> 8) & 0xFF,
        payload_type,
        HEADER_SIZE & 0xFF,
        (HEADER_SIZE >> 8) & 0xFF,
    ])
    out += bytes(max(0, min(MAX_DELAY, d)) for d in delays)
    if payload_type == PAYLOAD_ATTRIBUTES:
        out += bytes(fill_pattern)
    for frame in frames:
        out += frame
    return bytes(out)


def dump_sca(animation: ScaAnimation) -> bytes:
    return build_sca(
        animation.frames,
        animation.delays,
        border=animation.header.border,
        fill_pattern=animation.fill_pattern,
        width=animation.header.width,
        height=animation.header.height,
    )


def compare_frames(animation: ScaAnimation, first: int, second: int) -> bool:
    return animation.frames[first] == animation.frames[second]


def _with_frames(animation: ScaAnimation, frames: List[bytes], delays: List[int]) -> ScaAnimation:
    header = replace(
        animation.header,
        frame_count=len(frames),
        payload_offset=HEADER_SIZE,
        version=SUPPORTED_VERSION,
    )
    return replace(animation, header=header, frames=tuple(frames), delays=tuple(delays))


def count_duplicate_frames(animation: ScaAnimation) -> int:
    """Number of frames identical to the frame right before their run."""
    count = 0
    i = 0
    while i < animation.frame_count - 1:
        j = i + 1
        while j < animation.frame_count and compare_frames(animation, i, j):
            count += 1
            j += 1
        i = j
    return count


def remove_duplicate_frames(animation: ScaAnimation) -> ScaAnimation:
    """Merge runs of identical consecutive frames.

    The kept frame's delay absorbs the removed ones, capped at 255.
    """
    frames: List[bytes] = []
    delays: List[int] = []
    i = 0
    while i < animation.frame_count:
        delay = animation.delays[i]
        j = i + 1
        while j < animation.frame_count and compare_frames(animation, i, j):
            delay = min(MAX_DELAY, delay + animation.delays[j])
            j += 1
        frames.append(animation.frames[i])
        delays.append(delay)
        i = j
    removed = animation.frame_count - len(frames)
    if removed:
        logger.debug("removed %d duplicate frames", removed)
    return _with_frames(animation, frames, delays)


def has_loop_frame(animation: ScaAnimation) -> bool:
    last = animation.frame_count - 1
    return last > 0 and compare_frames(animation, 0, last)


def trim_loop_frame(animation: ScaAnimation) -> ScaAnimation:
    """Drop a last frame that repeats frame 0, adding its delay to frame 0."""
    if not has_loop_frame(animation):
        return animation
    frames = list(animation.frames[:-1])
    delays = list(animation.delays[:-1])
    delays[0] = min(MAX_DELAY, delays[0] + animation.delays[-1])
    return _with_frames(animation, frames, delays)


def trim_frames(animation: ScaAnimation, start: int = 0, end: int = 0) -> ScaAnimation:
    """Remove ``start`` frames from the beginning and ``end`` from the end."""
    if start < 0 or end < 0 or start + end >= animation.frame_count:
        raise ConversionError("No frames remain after trimming")
    stop = animation.frame_count - end
    return _with_frames(
        animation, list(animation.frames[start:stop]), list(animation.delays[start:stop])
    )


def set_delay(animation: ScaAnimation, delay: int, index: Optional[int] = None) -> ScaAnimation:
    """Set the delay of one frame, or of every frame when ``index`` is None."""
    if not 0 <= delay <= MAX_DELAY:
        raise ConversionError(f"Delay must be between 0 and {MAX_DELAY}")
    delays = list(animation.delays)
    if index is None:
        delays = [delay] * len(delays)
    else:
        delays[index] = delay
    return replace(animation, delays=tuple(delays))


def export_frames(animation: ScaAnimation, kind: str = "scr") -> List[bytes]:
    """Every frame as ``.scr`` (6912 bytes) or ``.53c`` (768 bytes) data."""
    if kind == "scr":
        return [frame_screen(animation, i) for i in range(animation.frame_count)]
    if kind == "53c":
        if animation.is_attribute_only:
            return [bytes(f[:ATTR_SIZE]) for f in animation.frames]
        return [bytes(f[BITMAP_SIZE:SCR_SIZE]) for f in animation.frames]
    raise ConversionError(f"Unknown frame export kind: {kind}")
